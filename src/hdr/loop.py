"""Model tool-use loop driving one computer."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from loguru import logger
from mcp.shared.exceptions import McpError

from hdr.errors import ChannelError, SideChannelUnavailableError, ValidationError
from hdr.oracle import Oracle, TextBlock, ToolCall
from hdr.schemas import UnknownAction, validate_action
from hdr.tools import make_error_result, make_mcp_tool_result, make_tool_result, strip_images
from hdr.types import MachineMetadata

if TYPE_CHECKING:
    from hdr.computer import Computer


def system_capability(metadata: MachineMetadata | None, *, today: date | None = None) -> str:
    arch = metadata.arch if metadata is not None and metadata.arch else "unknown"
    current = (today or date.today()).strftime("%B %d, %Y")
    return f"""<SYSTEM_CAPABILITY>
* You are utilising an Ubuntu virtual machine using {arch} architecture with internet access.
* You can feel free to install Ubuntu applications with your bash tool. Use curl instead of wget.
* To open firefox, please just click on the firefox icon. Note, firefox-esr is what is installed on your system.
* Using bash tool you can start GUI applications, but you need to set export DISPLAY=:1 and use a subshell. \
For example "(DISPLAY=:1 xterm &)". GUI apps run with bash tool will appear within your desktop environment, \
but they may take some time to appear. Take a screenshot to confirm it did.
* When using your bash tool with commands that are expected to output very large quantities of text, \
redirect into a tmp file and use str_replace_editor or `grep -n -B <lines before> -A <lines after> <query> \
<filename>` to confirm output.
* When viewing a page it can be helpful to zoom out so that you can see everything on the page. Either that, \
or make sure you scroll down to see everything before deciding something isn't available.
* When using your computer function calls, they take a while to run and send back to you. Where possible, \
try to chain multiple of these calls all into one function calls request.
* The current date is {current}.
</SYSTEM_CAPABILITY>"""


@dataclass(frozen=True)
class LoopResult:
    messages: list[dict[str, Any]]
    steps: int
    text: str
    error: str | None = None


class ComputerUseLoop:
    """Alternates model turns and tool dispatch until the model stops calling tools."""

    def __init__(
        self,
        computer: Computer,
        oracle: Oracle,
        *,
        max_steps: int | None = None,
        on_text: Callable[[str], None] | None = None,
    ) -> None:
        self._computer = computer
        self._oracle = oracle
        self._max_steps = max_steps
        self._on_text = on_text

    async def run(self, task: str) -> LoopResult:
        await self._computer.connect()
        messages: list[dict[str, Any]] = [{"role": "user", "content": task}]
        step = 0
        text = ""
        while True:
            if self._max_steps is not None and step >= self._max_steps:
                logger.warning("loop.max_steps_reached task={} max_steps={}", task, self._max_steps)
                return LoopResult(messages, step, text, error=f"max_steps_reached={self._max_steps}")

            step += 1
            tools = await self._computer.list_all_tools()
            logger.info("loop.step step={} tools={}", step, [tool.name for tool in tools])
            turn = await self._oracle.respond(
                system=system_capability(self._computer.machine_metadata),
                messages=messages,
                tools=[tool.to_param() for tool in tools],
            )

            results: list[dict[str, Any]] = []
            for item in turn.content:
                if isinstance(item, TextBlock):
                    logger.info("loop.assistant text={}", item.text)
                    if self._on_text is not None:
                        self._on_text(item.text)
                    continue
                results.append(await self._dispatch(item))

            messages.append(turn.to_message())
            text = turn.text
            if not results:
                logger.info("loop.done task={} steps={}", task, step)
                return LoopResult(messages, step, text)
            logger.debug("loop.tool_results content={}", strip_images(results))
            messages.append({"role": "user", "content": results})

    async def _dispatch(self, call: ToolCall) -> dict[str, Any]:
        logger.info("loop.tool_call name={} id={}", call.name, call.id)
        validation = validate_action({"tool": call.name, "params": call.input})
        if validation.error is not None:
            logger.warning("loop.tool_call.invalid name={} error={}", call.name, validation.error.message)
            return make_error_result(f"Tool {call.name} is invalid: {validation.error.message}", call.id)

        action = validation.action
        if isinstance(action, UnknownAction):
            try:
                mcp_result = await self._computer.call_mcp_tool(action.tool, action.params)
            except ChannelError:
                raise
            except (SideChannelUnavailableError, McpError) as exc:
                logger.warning("loop.tool_call.failed name={} error={}", call.name, exc)
                return make_error_result(f"Tool {call.name} failed: {exc}", call.id)
            except Exception as exc:
                logger.exception("loop.tool_call.error name={}", call.name)
                return make_error_result(f"Tool {call.name} failed: {type(exc).__name__}: {exc}", call.id)
            return make_mcp_tool_result(mcp_result, call.id)

        assert action is not None
        try:
            message = await self._computer.execute(action)
        except ValidationError as exc:
            logger.warning("loop.tool_call.failed name={} error={}", call.name, exc)
            return make_error_result(f"Tool {call.name} failed: {exc}", call.id)
        return make_tool_result(message.tool_result, call.id)
