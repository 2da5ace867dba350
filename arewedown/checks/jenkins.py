from __future__ import annotations

import json
from typing import Any

import httpx

from ..errors import CheckConfigError, CheckFailure


DEFAULT_TIMEOUT_SECONDS = 15.0


class JenkinsBuildSuccess:
    """
    Passes when the last build of a Jenkins job succeeded.

    url should point at the job's build JSON, e.g.
    http://<jenkins>/job/<job>/lastBuild/api/json
    (or http://user:password@<jenkins>/job/<job>/lastBuild/api/json).
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.client = client

    async def _download(self, url: str, timeout: float) -> str:
        if self.client is not None:
            resp = await self.client.get(url, follow_redirects=True, timeout=timeout)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.get(url, follow_redirects=True, timeout=timeout)
        resp.raise_for_status()
        return resp.text

    async def run(self, config: dict[str, Any]) -> None:
        url = config.get("url")
        if not url:
            raise CheckConfigError(".url required")

        timeout = float(config.get("timeout") or DEFAULT_TIMEOUT_SECONDS)
        try:
            body = await self._download(url, timeout)
        except httpx.HTTPStatusError as e:
            raise CheckFailure(f"Jenkins returned status {e.response.status_code}") from e
        except httpx.ConnectError:
            # left for the watcher, which turns resolution faults into an "unreachable" message
            raise
        except httpx.HTTPError as e:
            raise CheckFailure(f"{type(e).__name__}: {e}") from e

        try:
            data = json.loads(body)
        except ValueError:
            raise CheckFailure("Jenkins returned invalid JSON") from None

        result = data.get("result") if isinstance(data, dict) else None
        if result != "SUCCESS":
            raise CheckFailure(f'Jenkins job has unwanted status "{result}".')
