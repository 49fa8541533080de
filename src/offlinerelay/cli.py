"""Command line entry point: ``offlinerelay --origin https://app.example.com``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from offlinerelay import __version__
from offlinerelay.config import RelayConfig
from offlinerelay.exceptions import RelayConfigError

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="offlinerelay",
        description="Offline asset cache and WebSocket relay for a single application origin",
    )
    parser.add_argument("--version", action="version", version=f"offlinerelay {__version__}")
    parser.add_argument("--origin", help="Application origin (default: $RELAY_ORIGIN)")
    parser.add_argument("--cache-name", help="Live cache generation name (default: v1)")
    parser.add_argument(
        "--asset",
        action="append",
        dest="assets",
        help="Asset path to precache; repeat for each asset (default: $RELAY_ASSETS)",
    )
    parser.add_argument("--host", dest="listen_host", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", dest="listen_port", type=int, help="Port to bind (default: 8080)")
    parser.add_argument(
        "--reconnect-delay",
        type=float,
        help="Seconds before reconnecting the relay after a close (default: 3.0)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose (debug) logging")
    return parser


def config_from_args(args: argparse.Namespace) -> RelayConfig:
    overrides = {
        "origin": args.origin,
        "cache_name": args.cache_name,
        "assets": tuple(args.assets) if args.assets else None,
        "listen_host": args.listen_host,
        "listen_port": args.listen_port,
        "reconnect_delay": args.reconnect_delay,
    }
    return RelayConfig.from_env(**{k: v for k, v in overrides.items() if v is not None})


async def _run(config: RelayConfig) -> None:
    from offlinerelay.server import serve

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
    await serve(config, stop)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = config_from_args(args)
    except RelayConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    logger.info("offlinerelay %s starting for %s", __version__, config.origin)
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    logger.info("Shutdown complete")
