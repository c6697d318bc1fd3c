"""HTTP endpoints served by the machine host."""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import httpx
import pydantic
from loguru import logger
from pydantic import BaseModel

from hdr.errors import ApiError, ValidationError
from hdr.types import MachineMetadata, StartServerRequest, StartServerResponse
from hdr.urls import join_url

M = TypeVar("M", bound=BaseModel)

DEFAULT_HTTP_TIMEOUT = 30.0


@dataclass(frozen=True)
class HdrApiPaths:
    mcp: str
    mcp_start_server: str
    file_upload: str
    system: str

    @classmethod
    def for_host(cls, hostname: str) -> HdrApiPaths:
        return cls(
            mcp=join_url(hostname, "mcp"),
            mcp_start_server=join_url(hostname, "mcp", "register_server"),
            file_upload=join_url(hostname, "file", "file", "upload"),
            system=join_url(hostname, "system"),
        )


class HdrApi:
    """Thin async client for the machine host's HTTP endpoints."""

    def __init__(
        self,
        hostname: str,
        api_key: str | None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self.hostname = hostname
        self.api_key = api_key
        self.paths = HdrApiPaths.for_host(hostname)
        self._client = client
        self._timeout = timeout

    def headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    async def fetch_machine_metadata(self) -> MachineMetadata:
        return await self._fetch_and_validate("GET", self.paths.system, MachineMetadata)

    async def start_mcp_server(self, name: str, command: str) -> StartServerResponse:
        request = StartServerRequest(name=name, command=command)
        logger.info("api.mcp.start_server name={} command={}", name, command)
        return await self._fetch_and_validate(
            "POST",
            self.paths.mcp_start_server,
            StartServerResponse,
            json=request.model_dump(),
        )

    async def upload_file(self, path: Path | str) -> httpx.Response:
        source = Path(path)
        logger.info("api.file.upload name={} size={}", source.name, source.stat().st_size)
        async with self._http() as client:
            response = await client.post(
                self.paths.file_upload,
                headers=self.headers(),
                files={"file": (source.name, source.read_bytes())},
            )
        _raise_for_status(response)
        return response

    async def _fetch_and_validate(
        self,
        method: str,
        url: str,
        model: type[M],
        **kwargs: Any,
    ) -> M:
        async with self._http() as client:
            response = await client.request(method, url, headers=self.headers(), **kwargs)
        _raise_for_status(response)
        try:
            return model.model_validate(response.json())
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{url} returned non-JSON body: {exc}") from exc
        except pydantic.ValidationError as exc:
            rows = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors(include_url=False)]
            raise ValidationError(f"{url} returned invalid body: {', '.join(rows)}") from exc

    @contextlib.asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise ApiError(response.status_code, response.reason_phrase, response.text)
