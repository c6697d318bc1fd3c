"""Model oracle: turns conversation history into text and tool-call intents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, TypeAlias

from anthropic import AsyncAnthropic
from loguru import logger


@dataclass(frozen=True)
class TextBlock:
    text: str

    def to_param(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolCall:
    """A tool-call intent; ``id`` correlates the result sent back to the model."""

    id: str
    name: str
    input: dict[str, Any]

    def to_param(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


ContentItem: TypeAlias = TextBlock | ToolCall


@dataclass(frozen=True)
class OracleTurn:
    """One model turn with its content items in model order."""

    content: tuple[ContentItem, ...]
    stop_reason: str | None = None

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [item for item in self.content if isinstance(item, ToolCall)]

    @property
    def text(self) -> str:
        return "\n\n".join(item.text for item in self.content if isinstance(item, TextBlock))

    def to_message(self) -> dict[str, Any]:
        return {"role": "assistant", "content": [item.to_param() for item in self.content]}


class Oracle(Protocol):
    async def respond(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> OracleTurn: ...


class AnthropicOracle:
    """Oracle backed by the Anthropic computer-use beta."""

    BETAS: ClassVar[tuple[str, ...]] = ("computer-use-2024-10-22",)

    def __init__(
        self,
        *,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = client

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic()
        return self._client

    async def respond(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> OracleTurn:
        response = await self.client.beta.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            system=[{"type": "text", "text": system}],
            messages=messages,  # type: ignore[arg-type]
            tools=tools,  # type: ignore[arg-type]
            betas=list(self.BETAS),
        )
        content: list[ContentItem] = []
        for block in response.content:
            if block.type == "text":
                content.append(TextBlock(text=block.text))
            elif block.type == "tool_use":
                tool_input = dict(block.input)  # type: ignore[call-overload]
                content.append(ToolCall(id=block.id, name=block.name, input=tool_input))
            else:
                logger.debug("oracle.block.skipped type={}", block.type)
        return OracleTurn(content=tuple(content), stop_reason=response.stop_reason)
