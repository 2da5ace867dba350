from __future__ import annotations

from typing import Any

import httpx

from ..errors import CheckConfigError, CheckFailure
from .base import safe_url


DEFAULT_TIMEOUT_SECONDS = 15.0


def _allowed_status_codes(config: dict[str, Any]) -> list[int] | None:
    raw = config.get("expected_status")
    if raw is None:
        return None
    if isinstance(raw, (int, str)):
        raw = [raw]
    try:
        return [int(code) for code in raw]
    except (TypeError, ValueError):
        raise CheckConfigError(".expected_status must be a status code or list of status codes") from None


class HttpCheck:
    """Passes when url answers with an allowed status code (2xx unless expected_status is set)."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.client = client

    async def run(self, config: dict[str, Any]) -> None:
        url = config.get("url")
        if not url:
            raise CheckConfigError(".url required")

        allowed = _allowed_status_codes(config)
        timeout = float(config.get("timeout") or DEFAULT_TIMEOUT_SECONDS)

        if self.client is not None:
            resp = await self.client.get(url, follow_redirects=True, timeout=timeout)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.get(url, follow_redirects=True, timeout=timeout)

        if allowed is not None:
            status_ok = resp.status_code in allowed
        else:
            status_ok = 200 <= resp.status_code < 300

        if not status_ok:
            raise CheckFailure(f"{safe_url(url)} returned unexpected status {resp.status_code}")
