"""Per-connection session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from hdr.tools import ToolSet
from hdr.types import MachineMetadata


@dataclass
class Session:
    """State of one logical connection to a remote computer.

    Each field has a single writer: the transport owns ``updated_at``, the
    handshake extractor owns ``session_id``, ``machine_metadata`` and ``tools``.
    ``tools`` is only ever swapped for a new ``ToolSet``, never mutated.
    """

    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None
    session_id: str | None = None
    machine_metadata: MachineMetadata | None = None
    tools: ToolSet = field(default_factory=ToolSet)

    def touch(self, timestamp: datetime) -> None:
        self.updated_at = timestamp
