"""CLI entry point for the notecast client.

Publishes a note to the configured relays, streams events from a relay, or
prints the public key of the configured secret. The secret key is always
read from an environment variable, never from the command line.

Examples:
    ```bash
    export PRIVATE_KEY=nsec1...
    python -m notecast pubkey
    python -m notecast publish "hello nostr" --relay wss://nos.lol
    python -m notecast listen --relay wss://nos.lol --kind 1 --limit 20
    python -m notecast --config config/notecast.yaml --log-level DEBUG listen
    ```
"""

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path

from notecast.core import ClientConfig, Logger, MetricsServer, setup_logging
from notecast.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    InvalidKeyFormatError,
    NotecastError,
    SubscriptionClosedError,
)
from notecast.models import Event, EventKind, Filter
from notecast.services import END_OF_STORED_EVENTS, NostrClient, Subscription
from notecast.utils.keys import encode_secret, load_keys_from_env


DEFAULT_CONFIG = Path("config") / "notecast.yaml"

logger = Logger("cli")


def _load_config(path: Path | None) -> ClientConfig:
    """Load the YAML config and check its relay URLs.

    Falls back to defaults when no path is given and the default file is absent.
    """
    if path is None:
        if not DEFAULT_CONFIG.exists():
            return ClientConfig()
        path = DEFAULT_CONFIG
    config = ClientConfig.from_yaml(path)
    config.relay_endpoints()
    return config


async def cmd_pubkey(config: ClientConfig, args: argparse.Namespace) -> int:
    keys = load_keys_from_env(args.key_env or config.keys_env)
    public = keys.public_key()
    print(public.to_hex())
    print(public.to_bech32())
    if args.show_nsec:
        print(encode_secret(keys.secret_key()))
    return 0


async def cmd_publish(config: ClientConfig, args: argparse.Namespace) -> int:
    keys = load_keys_from_env(args.key_env or config.keys_env)
    async with NostrClient(config) as client:
        result = await client.connect_all(args.relay or None)
        for url, reason in sorted(result.failures.items()):
            logger.warning("relay_unavailable", relay=url, reason=reason)
        if result.all_failed:
            logger.error("no_relays_connected")
            return 1

        event = client.create_event(args.kind, keys.secret_key(), args.content, args.tag or ())
        statuses = await client.publish(event, sorted(result.connected))

    for status in statuses:
        outcome = "ok" if status.success else "failed"
        print(f"{outcome}\t{status.relay}\t{status.message or ''}")
    print(event.id)
    return 0 if any(s.success for s in statuses) else 1


def _print_event(event: Event) -> None:
    print(f"{event.created_at}\t{event.pubkey[:16]}\t{event.kind}\t{event.content}")


async def _stream(sub: Subscription, *, once: bool) -> None:
    try:
        async for item in sub:
            if item is END_OF_STORED_EVENTS:
                logger.info("end_of_stored_events", relay=sub.relay)
                if once:
                    return
                continue
            _print_event(item)
    except SubscriptionClosedError as e:
        logger.warning("subscription_closed", relay=sub.relay, reason=e.reason)


async def cmd_listen(config: ClientConfig, args: argparse.Namespace) -> int:
    flt = Filter(
        kinds=args.kind or None,
        authors=args.author or None,
        since=args.since,
        limit=args.limit,
    )
    relay = args.relay or (config.relays[0] if config.relays else None)
    if relay is None:
        logger.error("no_relay_configured")
        return 1

    metrics_server = MetricsServer(config.metrics)
    await metrics_server.start()
    if config.metrics.enabled:
        logger.info("metrics_server_started", host=config.metrics.host, port=config.metrics.port)

    stop = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with NostrClient(config) as client:
            result = await client.connect_all([relay])
            if result.all_failed:
                for url, reason in result.failures.items():
                    logger.error("relay_unavailable", relay=url, reason=reason)
                return 1

            async with await client.subscribe(relay, flt) as sub:
                reader = asyncio.create_task(_stream(sub, once=args.once))
                stopper = asyncio.create_task(stop.wait())
                done, _ = await asyncio.wait(
                    {reader, stopper}, return_when=asyncio.FIRST_COMPLETED
                )
                stopper.cancel()
                if reader in done:
                    reader.result()
                else:
                    reader.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await reader
        return 0
    finally:
        await metrics_server.stop()


COMMANDS = {
    "pubkey": cmd_pubkey,
    "publish": cmd_publish,
    "listen": cmd_listen,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="notecast",
        description="Publish and read Nostr notes across many relays",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=f"Client config path (default: {DEFAULT_CONFIG} if present)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--key-env",
        help="Environment variable holding the secret key (default: from config)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    pubkey = sub.add_parser("pubkey", help="Print the public key of the configured secret")
    pubkey.add_argument("--show-nsec", action="store_true", help="Also print the nsec form")

    publish = sub.add_parser("publish", help="Sign and publish a note")
    publish.add_argument("content", help="Note text")
    publish.add_argument("--kind", type=int, default=int(EventKind.TEXT_NOTE))
    publish.add_argument(
        "--relay", action="append", help="Target relay (repeatable, default: config relays)"
    )
    publish.add_argument(
        "--tag",
        nargs=2,
        action="append",
        metavar=("NAME", "VALUE"),
        help="Extra event tag (repeatable)",
    )

    listen = sub.add_parser("listen", help="Stream events from one relay")
    listen.add_argument("--relay", help="Relay URL (default: first config relay)")
    listen.add_argument("--kind", type=int, action="append", help="Kind filter (repeatable)")
    listen.add_argument("--author", action="append", help="Author pubkey hex (repeatable)")
    listen.add_argument(
        "--since", type=int, default=None, help="Only events at or after this unix time"
    )
    listen.add_argument("--limit", type=int, default=None)
    listen.add_argument(
        "--once", action="store_true", help="Exit after the stored events have been delivered"
    )

    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Parse args, load config, and dispatch the subcommand."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = _load_config(args.config)
        return await COMMANDS[args.command](config, args)
    except (ConfigurationError, FileNotFoundError) as e:
        logger.error("config_failed", error=str(e))
        return 2
    except InvalidKeyFormatError as e:
        logger.error("invalid_key", error=str(e))
        return 2
    except ConnectivityError as e:
        logger.error("connection_failed", error=str(e))
        return 1
    except (NotecastError, ValueError) as e:  # CLI error boundary
        logger.error(f"{args.command}_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
