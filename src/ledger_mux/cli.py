"""Command line watcher printing provider events as JSON lines."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import suppress
from functools import partial
from typing import List, Optional, Sequence

import orjson

from .client import ProviderRpcClient
from .config import settings
from .dto import ProviderEvent, Topic
from .errors import LedgerMuxError
from .subscription import Subscription
from .transport import WebSocketTransport


logger = logging.getLogger("ledger_mux.cli")


def _print_event(topic: Topic, event: ProviderEvent) -> None:
    line = orjson.dumps({"event": topic.value, "data": event.model_dump(mode="json", by_alias=True)})
    sys.stdout.write(line.decode("utf-8") + "\n")
    sys.stdout.flush()


async def watch(url: str, topics: Sequence[Topic], addresses: Sequence[str]) -> None:
    transport = WebSocketTransport(url)
    client = ProviderRpcClient(transport)
    subscriptions: List[Subscription[ProviderEvent]] = []
    await transport.start()
    try:
        for topic in topics:
            targets: Sequence[Optional[str]] = addresses if topic.is_address_scoped else [None]
            for address in targets:
                subscription = await client.subscribe(topic, address)
                subscription.on("data", partial(_print_event, topic))
                subscriptions.append(subscription)
        logger.info("Watching %s subscriptions on %s", len(subscriptions), url)
        await asyncio.Event().wait()
    finally:
        for subscription in subscriptions:
            if not subscription.is_active:
                continue
            try:
                await subscription.unsubscribe()
            except (LedgerMuxError, asyncio.TimeoutError) as exc:
                logger.warning("Failed to unsubscribe cleanly: %s", exc)
        client.close()
        await transport.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ledger-mux", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)
    watch_cmd = commands.add_parser("watch", help="print provider events until interrupted")
    watch_cmd.add_argument("--url", default=settings.ws_url, help="provider WebSocket URL")
    watch_cmd.add_argument(
        "--topic",
        dest="topics",
        action="append",
        choices=[topic.value for topic in Topic],
        help="event to subscribe to (repeatable); defaults to every applicable event",
    )
    watch_cmd.add_argument("--address", dest="addresses", action="append", default=[], help="account address (repeatable)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.log_level)

    if args.topics:
        topics = [Topic(value) for value in args.topics]
    else:
        topics = [topic for topic in Topic if args.addresses or not topic.is_address_scoped]
    if any(topic.is_address_scoped for topic in topics) and not args.addresses:
        parser.error("--address is required for transactionsFound and contractStateChanged")

    with suppress(KeyboardInterrupt):
        asyncio.run(watch(args.url, topics, args.addresses))
    return 0


if __name__ == "__main__":
    sys.exit(main())
