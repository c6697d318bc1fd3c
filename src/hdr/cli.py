"""Command line entry points for driving an HDR computer."""

from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from loguru import logger

from hdr.computer import Computer
from hdr.errors import HdrError
from hdr.logging_utils import configure_logging

T = TypeVar("T")

app = typer.Typer(name="hdr", help="Drive a remote HDR computer.", add_completion=False)


def _run(handler: Callable[[Computer], Awaitable[T]], *, metadata: bool = False) -> T:
    async def _main() -> T:
        async with Computer() as computer:
            if metadata:
                await computer.wait_for_metadata()
            return await handler(computer)

    try:
        return asyncio.run(_main())
    except HdrError as exc:
        logger.error("cli.error error={}", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(1) from exc


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    configure_logging(level="DEBUG" if verbose else None, profile="rich")


@app.command("do")
def do(
    objective: str = typer.Argument(..., help="Task for the model to carry out on the computer"),
) -> None:
    """Let the model drive the computer until the task is done."""

    result = _run(lambda computer: computer.do(objective, on_text=typer.echo))
    if result.error:
        typer.echo(f"stopped: {result.error}", err=True)
        raise typer.Exit(2)


@app.command("bash")
def bash(
    command: str = typer.Argument(..., help="Shell command to run on the computer"),
) -> None:
    """Run one shell command and print its output."""

    message = _run(lambda computer: computer.execute({"tool": "bash", "params": {"command": command}}))
    if message.tool_result.output:
        typer.echo(message.tool_result.output)
    if message.tool_result.error:
        typer.echo(message.tool_result.error, err=True)
        raise typer.Exit(1)


@app.command("screenshot")
def screenshot(
    path: Path = typer.Argument(Path("screenshot.png"), help="Where to write the PNG"),  # noqa: B008
) -> None:
    """Save a screenshot of the computer's display."""

    image = _run(lambda computer: computer.screenshot())
    path.write_bytes(base64.b64decode(image))
    typer.echo(str(path))


@app.command("tools")
def tools() -> None:
    """Print the tools advertised to the model, with the machine's real display geometry."""

    descriptors = _run(lambda computer: computer.list_all_tools(), metadata=True)
    typer.echo(json.dumps([descriptor.to_param() for descriptor in descriptors], indent=2))


if __name__ == "__main__":
    app()
