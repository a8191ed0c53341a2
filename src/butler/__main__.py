"""Entry point: python -m butler [chat|serve]

- No args / "chat": Interactive CLI REPL with the scheduler (development)
- "serve":          Daemon mode (production, Telegram + scheduler)
"""

from __future__ import annotations

import asyncio
import logging
import sys

from butler.config import load_config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # python-telegram-bot logs every getUpdates poll at INFO through httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _chat(config) -> None:
    from butler.connectors.cli import CLIConnector
    from butler.daemon import build_butler
    from butler.scheduler.jobs import Scheduler

    butler = build_butler(config)
    butler.add_connector(CLIConnector())
    scheduler = Scheduler(butler, config)
    shutdown = asyncio.Event()

    sched_task = asyncio.ensure_future(scheduler.start(shutdown))
    try:
        await butler.start()
    finally:
        shutdown.set()
        await sched_task
        await butler.stop()


def _run_cli() -> None:
    """Interactive CLI REPL mode."""
    config = load_config()
    _setup_logging(config.log_level)

    try:
        asyncio.run(_chat(config))
    except KeyboardInterrupt:
        pass


def _run_serve() -> None:
    """Daemon mode: Telegram connector + scheduler."""
    config = load_config()
    _setup_logging(config.log_level)

    from butler.daemon import ButlerDaemon

    daemon = ButlerDaemon(config)
    asyncio.run(daemon.run())


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else "chat"

    if cmd in ("chat", "repl"):
        _run_cli()
    elif cmd == "serve":
        _run_serve()
    else:
        print("Usage: python -m butler [chat|serve]")
        print("  chat   Interactive CLI REPL (default)")
        print("  serve  Daemon mode with Telegram + scheduler")
        sys.exit(1)


if __name__ == "__main__":
    main()
