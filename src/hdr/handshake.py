"""Welcome-frame detection and machine metadata promotion."""

from __future__ import annotations

import asyncio

from loguru import logger

from hdr.errors import HandshakeTimeoutError
from hdr.session import Session
from hdr.types import ComputerMessage, MachineMetadata, parse_machine_metadata

DEFAULT_METADATA_TIMEOUT = 10.0


class HandshakeExtractor:
    """Promotes the welcome frame's machine metadata into the session, once per connection."""

    def __init__(self, session: Session, *, id_field: str | None = None) -> None:
        self._session = session
        self._id_field = id_field
        self._ready = asyncio.Event()
        self._promotions = 0

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    @property
    def promotions(self) -> int:
        """Number of promotions since the last ``reset()``."""
        return self._promotions

    def reset(self) -> None:
        """Forget the previous connection's handshake; the next welcome frame promotes again."""

        self._ready.clear()
        self._promotions = 0

    def inspect(self, message: ComputerMessage) -> bool:
        """Return True when ``message`` was the welcome frame and was promoted."""

        if self._ready.is_set():
            return False
        metadata = parse_machine_metadata(message.tool_result.system, id_field=self._id_field)
        if metadata is None:
            return False
        self._promote(message, metadata)
        return True

    def _promote(self, message: ComputerMessage, metadata: MachineMetadata) -> None:
        session = self._session
        session.machine_metadata = metadata
        session.session_id = str(message.metadata.session_id)
        computer_tool = session.tools.get("computer")
        if computer_tool is not None:
            session.tools = session.tools.replace(
                computer_tool.with_display(metadata.display_width, metadata.display_height, metadata.display_num)
            )
        self._promotions += 1
        self._ready.set()
        logger.info(
            "handshake.promoted session_id={} machine_id={} arch={} display={}x{}",
            session.session_id,
            metadata.machine_id,
            metadata.arch,
            metadata.display_width,
            metadata.display_height,
        )

    async def wait(self, timeout: float = DEFAULT_METADATA_TIMEOUT) -> MachineMetadata:
        """Wait for the welcome frame; raise ``HandshakeTimeoutError`` after ``timeout`` seconds."""

        try:
            async with asyncio.timeout(timeout):
                await self._ready.wait()
        except TimeoutError as exc:
            raise HandshakeTimeoutError(timeout) from exc
        assert self._session.machine_metadata is not None
        return self._session.machine_metadata
