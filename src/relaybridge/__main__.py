"""Command line entry point.

    relaybridge run    # poller, worker, reconciler and audit loops
    relaybridge api    # the same loops plus the REST API
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import uvicorn

from .api import create_app
from .config import BridgeConfig
from .errors import RelayBridgeError
from .logging import LogConfig, LogLevel, get_logger, setup_logging, shutdown_logging
from .service import RelayBridgeService

logger = get_logger("relaybridge.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relaybridge", description="Burn-to-mint bridge relay"
    )
    parser.add_argument("--env-file", help="Load environment variables from this file")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (debug, info, warning, error)")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run the relay loops")
    api = subparsers.add_parser("api", help="Run the relay loops and the REST API")
    api.add_argument("--host", help="Override API_HOST")
    api.add_argument("--port", type=int, help="Override API_PORT")
    return parser


async def _wait_for_shutdown() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass
    await stop.wait()


async def run_relay(service: RelayBridgeService) -> None:
    await service.start()
    try:
        await _wait_for_shutdown()
    finally:
        await service.stop()


async def run_api(service: RelayBridgeService, host: str, port: int, log_level: str) -> None:
    server = uvicorn.Server(
        uvicorn.Config(create_app(service), host=host, port=port, log_level=log_level)
    )
    await service.start()
    try:
        await server.serve()
    finally:
        await service.stop()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "run"

    try:
        config = BridgeConfig.from_env(env_file=args.env_file)
        if args.log_level:
            config.log_level = args.log_level
        setup_logging(
            LogConfig(
                name="relaybridge",
                level=LogLevel.parse(config.log_level),
                format_type=config.log_format,
            )
        )
        config.validate()
    except (RelayBridgeError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        service = RelayBridgeService(config)
        if command == "api":
            asyncio.run(
                run_api(
                    service,
                    args.host or config.api.host,
                    args.port or config.api.port,
                    config.log_level.lower(),
                )
            )
        else:
            asyncio.run(run_relay(service))
    except KeyboardInterrupt:
        pass
    except RelayBridgeError as e:
        logger.critical(f"Relay stopped: {e}", exception=e)
        return 1
    finally:
        shutdown_logging()
    return 0


if __name__ == "__main__":
    sys.exit(main())
