"""Endpoint derivation helpers."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

WS_SCHEMES = {"http": "wss", "https": "wss", "ws": "wss", "wss": "wss"}


def join_url(base: str, *parts: str) -> str:
    """Join path segments onto a URL without collapsing the scheme separator."""

    segments = [part.strip("/") for part in parts if part.strip("/")]
    if not segments:
        return base
    return "/".join([base.rstrip("/"), *segments])


def get_wss_url(base_url: str) -> str:
    """Convert an HTTP(S) base URL into the ephemeral websocket endpoint.

    ``https://api.hdr.is/compute`` becomes ``wss://api.hdr.is/compute/ephemeral``.
    """

    parts = urlsplit(base_url)
    if parts.scheme not in WS_SCHEMES or not parts.netloc:
        raise ValueError(f"not an http(s) or ws(s) URL: {base_url!r}")
    path = parts.path.rstrip("/") + "/ephemeral"
    return urlunsplit(("wss", parts.netloc, path, parts.query, parts.fragment))


def get_stream_url(base_url: str, machine_id: str) -> str:
    """Build the display stream URL for one machine."""

    return f"{base_url.rstrip('/')}/compute/{machine_id}/stream"


def resolve_hostname(base_url: str, machine_id: str | None, *, override: str | None = None) -> str:
    """Resolve the per-machine host that serves the HTTP and MCP endpoints."""

    if override:
        return override
    if machine_id:
        return join_url(base_url, machine_id)
    raise ValueError("unable to resolve hostname: machine_id is null and no hostname override is set")
