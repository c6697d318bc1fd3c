"""Conversation log sink: every sent action and received message as JSON lines."""

from __future__ import annotations

import base64
import binascii
import json
import shutil
import threading
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from hdr.schemas import FixedAction, dump_action
from hdr.types import ComputerMessage, ComputerMessageLog

CONVERSATION_FILE = "conversation.jsonl"


def _run_stamp() -> str:
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")


def _file_stamp(timestamp: datetime) -> str:
    return timestamp.astimezone(UTC).strftime("%Y%m%dT%H%M%S%fZ")


class ComputerLogger:
    """Appends the conversation with one computer to ``<log_dir>/<run_dir>/conversation.jsonl``.

    Screenshots are written next to the log as PNG files and the record keeps
    only their path.
    """

    def __init__(
        self,
        log_dir: Path | str = Path("./computer_logs"),
        *,
        run_dir: str | None = None,
        log_conversation: bool = True,
        log_screenshot: bool = True,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.run_dir = self.log_dir / (run_dir or _run_stamp())
        self.conversation_file = self.run_dir / CONVERSATION_FILE
        self.log_conversation = log_conversation
        self.log_screenshot = log_screenshot
        self._lock = threading.Lock()
        if log_conversation or log_screenshot:
            logger.debug("computer_logger.run_dir path={}", self.run_dir)
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def log_send(self, action: FixedAction) -> None:
        if not self.log_conversation:
            return
        self._append(json.dumps(dump_action(action), ensure_ascii=False))

    def log_receive(self, message: ComputerMessage) -> None:
        screenshot_file = self._write_screenshot(message)
        if not self.log_conversation:
            return
        record = ComputerMessageLog.model_validate(message.model_dump())
        record.tool_result.base64_image = None
        if screenshot_file is not None:
            record.screenshot_file = str(screenshot_file)
        self._append(record.model_dump_json())

    def _write_screenshot(self, message: ComputerMessage) -> Path | None:
        data = message.tool_result.base64_image
        if not data or not self.log_screenshot:
            return None
        try:
            image = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("computer_logger.screenshot.invalid message_id={}", message.metadata.message_id)
            return None
        path = self.run_dir / f"screenshot_{_file_stamp(message.metadata.request_timestamp)}.png"
        logger.debug("computer_logger.screenshot path={}", path)
        path.write_bytes(image)
        return path

    def _append(self, line: str) -> None:
        with self._lock, self.conversation_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def read(self) -> list[dict[str, object]]:
        """Read back all records of this run."""

        if not self.conversation_file.exists():
            return []
        records: list[dict[str, object]] = []
        with self.conversation_file.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(payload, dict):
                    records.append(payload)
        return records

    def cleanup(self) -> None:
        """Remove every file this logger created for the run."""

        logger.debug("computer_logger.cleanup path={}", self.run_dir)
        shutil.rmtree(self.run_dir, ignore_errors=True)
