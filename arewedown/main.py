"""Main entry point for the watchdog daemon."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import subprocess
import sys
from pathlib import Path

import httpx
import structlog
import uvicorn

from . import __version__
from .api import create_app
from .checks import default_registry
from .config import AppConfig, load_config
from .errors import ArewedownError, ConfigurationError
from .notifications import NotificationDispatcher, select_transport
from .scheduler import JobScheduler, WatcherScheduler
from .store import StatusStore


logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO") -> None:
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    # Telegram bot tokens are part of request URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def execute_start_script(config: AppConfig) -> None:
    """
    Run the optional onstart shell command, intended for container setups that
    need to install tools or set state without baking a custom image.
    """
    if not config.onstart:
        return

    logger.info("onstart command executing", command=config.onstart)
    result = subprocess.run(config.onstart, shell=True, capture_output=True, text=True)
    if result.returncode == 0:
        logger.info("onstart finished", stdout=result.stdout.strip())
        return

    if config.onstart_ignore_error:
        logger.warning("onstart failed, error ignored", returncode=result.returncode, stderr=result.stderr.strip())
        return

    raise ConfigurationError(f"onstart failed with exit code {result.returncode}: {result.stderr.strip()}")


async def run(config: AppConfig) -> int:
    execute_start_script(config)
    Path(config.logs).mkdir(parents=True, exist_ok=True)

    async with httpx.AsyncClient() as http_client:
        store = StatusStore(config.logs)
        dispatcher = NotificationDispatcher(select_transport(config, http_client))
        watchers = WatcherScheduler(
            config,
            registry=default_registry(http_client),
            store=store,
            dispatcher=dispatcher,
            scheduler=JobScheduler(),
        )
        watchers.start()

        server = uvicorn.Server(
            uvicorn.Config(create_app(watchers, store), host="0.0.0.0", port=config.port, log_level="warning")
        )
        logger.info("Are We Down? listening", port=config.port)
        try:
            await server.serve()
        finally:
            watchers.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Are We Down? watchdog daemon")
    parser.add_argument("--config", default=None, help="Path to YAML config (default: $AREWEDOWN_CONFIG or config/arewedown.yaml)")
    parser.add_argument("--log-level", default=None, help="Logging level (INFO, WARNING, ...)")
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    args = parser.parse_args(argv)

    if args.version:
        print(f"AreWeDown? v{__version__}")
        return 0

    configure_logging(args.log_level or os.getenv("LOG_LEVEL", "INFO"))
    try:
        config = load_config(args.config)
        if args.log_level is None and config.log_level:
            configure_logging(config.log_level)
        return asyncio.run(run(config))
    except ArewedownError as e:
        logger.error("Startup failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
