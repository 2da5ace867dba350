"""Check plugins and the registry the engine looks them up in."""

from __future__ import annotations

import httpx

from .base import CheckPlugin, CheckRegistry, is_unreachable_error, run_check, safe_url
from .http_check import HttpCheck
from .jenkins import JenkinsBuildSuccess


def default_registry(client: httpx.AsyncClient | None = None) -> CheckRegistry:
    registry = CheckRegistry()
    registry.register("system/httpcheck", HttpCheck(client))
    registry.register("jenkins.buildSuccess", JenkinsBuildSuccess(client))
    return registry


__all__ = [
    "CheckPlugin",
    "CheckRegistry",
    "HttpCheck",
    "JenkinsBuildSuccess",
    "default_registry",
    "is_unreachable_error",
    "run_check",
    "safe_url",
]
