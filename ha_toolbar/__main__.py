"""Command line entry point for the Home Assistant toolbar client."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import aiohttp

from .api import RESTClient
from .domain.state import ClientEvent, ConnectionStateEvent
from .errors import HomeAssistantClientError, InvalidConfigurationError
from .service import SensorService
from .settings import (
    ToolbarSettings,
    apply_environment,
    load_settings,
    override_settings,
)

_LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``python -m ha_toolbar``."""

    parser = argparse.ArgumentParser(
        prog="ha-toolbar",
        description="Follow Home Assistant sensor entities in real time",
    )
    parser.add_argument("--config", metavar="PATH", help="JSON settings file")
    parser.add_argument("--host", help="Home Assistant host name")
    parser.add_argument("--port", type=int, help="Home Assistant port")
    parser.add_argument(
        "--no-tls",
        dest="use_tls",
        action="store_false",
        default=None,
        help="Use ws:// and http:// instead of TLS",
    )
    parser.add_argument("--token", help="Long-lived access token")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("watch", help="Stream sensor updates until interrupted")
    commands.add_parser("snapshot", help="Print the current sensor states as JSON")
    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def resolve_settings(
    args: argparse.Namespace, environ: dict[str, str] | None = None
) -> ToolbarSettings:
    """Combine the settings file, environment and command line flags."""

    settings = load_settings(args.config) if args.config else ToolbarSettings()
    settings = apply_environment(settings, environ)
    return override_settings(
        settings,
        host=args.host,
        port=args.port,
        use_tls=args.use_tls,
        token=args.token,
    )


async def run_snapshot(
    settings: ToolbarSettings, session: aiohttp.ClientSession
) -> dict[str, Any]:
    """Fetch every mapped entity once and return readings keyed by sensor."""

    if not settings.is_configured:
        msg = "host and token are required"
        raise InvalidConfigurationError(msg)
    client = RESTClient(session, settings.connection_configuration())
    snapshots = await client.fetch_entity_states(list(settings.entities.values()))
    result: dict[str, Any] = {}
    for name, entity_id in sorted(settings.entities.items()):
        snapshot = snapshots.get(entity_id)
        if snapshot is None:
            continue
        result[name] = {
            "entity_id": snapshot.entity_id,
            "state": snapshot.state,
            "last_updated": (
                snapshot.last_updated.isoformat() if snapshot.last_updated else None
            ),
        }
    return result


async def run_watch(
    settings: ToolbarSettings,
    session: aiohttp.ClientSession,
    *,
    stop: asyncio.Event | None = None,
) -> dict[str, Any]:
    """Stream updates until ``stop`` is set or the task is cancelled.

    The health snapshot is printed on the way out and returned.
    """

    service = SensorService(session=session)
    if not await service.configure(settings):
        msg = "host and token are required"
        raise InvalidConfigurationError(msg)
    client = service.client
    if client is None:
        msg = "service did not create a client"
        raise InvalidConfigurationError(msg)

    def _log_transition(event: ClientEvent) -> None:
        if isinstance(event, ConnectionStateEvent):
            _LOGGER.info("Connection %s", event.state)

    def _log_reading(entity_id: str, state: str) -> None:
        _LOGGER.info("%s = %s", entity_id, state)

    client.add_listener(_log_transition)
    for entity_id in set(settings.entities.values()):
        service.add_entity_listener(entity_id, _log_reading)

    service.connect()
    try:
        await (stop or asyncio.Event()).wait()
    finally:
        health = client.health.snapshot()
        health["total_events_processed"] = service.total_events_processed
        health["total_pings"] = service.total_pings
        health["sensors"] = service.sensors.as_dict()
        await service.aclose()
        print(json.dumps(health, indent=2, sort_keys=True))
    return health


async def _run(args: argparse.Namespace, settings: ToolbarSettings) -> None:
    async with aiohttp.ClientSession() as session:
        if args.command == "snapshot":
            output = await run_snapshot(settings, session)
            print(json.dumps(output, indent=2, sort_keys=True))
        else:
            await run_watch(settings, session)


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the requested command and return an exit code."""

    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = resolve_settings(args)
        asyncio.run(_run(args, settings))
    except InvalidConfigurationError as err:
        print(f"error: {err}", file=sys.stderr)
        return 2
    except HomeAssistantClientError as err:
        print(f"error: {err}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
