from __future__ import annotations

from pathlib import Path

import pytest

from hdr.config import Settings


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("HDR_API_KEY", "HDR_BASE_URL", "HDR_WS_URL", "HDR_MCP_URL", "HDR_HOSTNAME_OVERRIDE", "HDR_MAX_STEPS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        base_url="https://api.hdr.test/compute/",
        api_key="test-key",
        log_dir=tmp_path / "logs",
    )
