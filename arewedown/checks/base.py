"""Check plugin contract, registry and fault conversion."""

from __future__ import annotations

import asyncio
import inspect
import socket
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..errors import CheckConfigError, CheckFailure, CheckOutcome, OutcomeKind


_RESOLUTION_ERROR_MARKERS = (
    "name or service not known",
    "nodename nor servname provided",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
)


def safe_url(url: str) -> str:
    """
    Strip credentials, querystring and fragment so secrets in URLs don't end up
    in failure messages and notifications.
    """
    s = (url or "").strip()
    if not s:
        return s
    try:
        parts = urlsplit(s)
        netloc = parts.hostname or ""
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, "", ""))
    except ValueError:
        return s[:500]


@runtime_checkable
class CheckPlugin(Protocol):
    """
    A probe against one target.

    run() returns normally when the target is healthy and raises CheckFailure
    (or CheckConfigError when required fields are missing) when it is not.
    A plain synchronous run() is also accepted; it is executed in a worker thread.
    """

    async def run(self, config: dict[str, Any]) -> None: ...


class CheckRegistry:
    """Explicit mapping from plugin identifier to plugin instance."""

    def __init__(self) -> None:
        self._plugins: dict[str, CheckPlugin] = {}

    def register(self, name: str, plugin: CheckPlugin) -> None:
        if not name:
            raise ValueError("Check plugin name must not be empty")
        self._plugins[name] = plugin

    def get(self, name: str) -> CheckPlugin:
        try:
            return self._plugins[name]
        except KeyError:
            raise KeyError(f"Unknown check plugin: {name}") from None

    def names(self) -> list[str]:
        return sorted(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins


def is_unreachable_error(exc: BaseException) -> bool:
    """True when exc (or anything in its cause chain) is a DNS resolution fault."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        if isinstance(current, httpx.ConnectError):
            msg = str(current).lower()
            if any(marker in msg for marker in _RESOLUTION_ERROR_MARKERS):
                return True
        current = current.__cause__ or current.__context__
    return False


async def run_check(plugin: CheckPlugin, config: dict[str, Any]) -> CheckOutcome:
    """Run a plugin and convert whatever happens into a CheckOutcome. Never raises."""
    try:
        if inspect.iscoroutinefunction(plugin.run):
            await plugin.run(config)
        else:
            result = await asyncio.to_thread(plugin.run, config)
            if inspect.isawaitable(result):
                await result
    except CheckConfigError as e:
        return CheckOutcome(kind=OutcomeKind.CONFIG_ERROR, reason=e.reason)
    except CheckFailure as e:
        return CheckOutcome(kind=OutcomeKind.FAILED, reason=e.reason)
    except Exception as e:
        if is_unreachable_error(e):
            target = safe_url(str(config.get("url") or ""))
            return CheckOutcome(kind=OutcomeKind.FAULT, reason=f"{target} could not be reached.")
        return CheckOutcome(kind=OutcomeKind.FAULT, reason=str(e) or type(e).__name__)
    return CheckOutcome.success()
