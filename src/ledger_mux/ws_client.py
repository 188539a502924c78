"""Low-level WebSocket client utilities."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import suppress
from typing import Any, Awaitable, Callable, Optional, Tuple

import orjson
from anyio import sleep
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .config import settings

OnMessage = Callable[[Any], Awaitable[None]]
OnConnect = Callable[[int], Awaitable[None]]
OnDisconnect = Callable[[Optional[int], str], Awaitable[None]]


def close_details(error: Optional[BaseException]) -> Tuple[Optional[int], str]:
    """Close code and reason of a lost connection, as far as they are known."""
    if isinstance(error, ConnectionClosed):
        frame = error.rcvd or error.sent
        if frame is not None:
            return frame.code, frame.reason or str(error)
    if error is None:
        return None, "connection closed"
    return None, str(error) or type(error).__name__


async def run_ws_loop(
    url: str,
    outbound_queue: "asyncio.Queue[Optional[dict]]",
    on_connect: OnConnect,
    on_message: OnMessage,
    on_disconnect: OnDisconnect,
    stop_event: asyncio.Event,
    logger: logging.Logger,
) -> None:
    """Run a resilient WebSocket loop with automatic reconnect and send queue.

    ``on_connect`` receives the 1-based session number, so callers can tell a
    reconnect from the first connection and restore server-side state.
    """

    backoff = settings.reconnect_base_delay
    sessions = 0

    while not stop_event.is_set():
        connected = False
        error: Optional[BaseException] = None
        try:
            async with connect(
                url,
                ping_interval=settings.ping_interval,
                ping_timeout=settings.ping_interval + 5,
                close_timeout=10,
                max_queue=None,
            ) as ws:
                connected = True
                sessions += 1
                logger.info("Connected to %s (session %s)", url, sessions)
                backoff = settings.reconnect_base_delay
                await _handle_connection(ws, sessions, outbound_queue, on_connect, on_message, stop_event, logger)
        except asyncio.CancelledError:
            raise
        except (OSError, WebSocketException) as exc:
            error = exc
            logger.warning("WebSocket error: %s", exc)
        except Exception as exc:  # pragma: no cover - defensive
            error = exc
            logger.exception("Unexpected WebSocket failure: %s", exc)

        if connected:
            code, reason = close_details(error)
            logger.info("Disconnected from %s: %s", url, reason)
            await on_disconnect(code, reason)
        if stop_event.is_set():
            break
        delay = min(backoff, settings.reconnect_max_delay)
        jitter = random.uniform(0.0, min(1.0, delay / 2))
        await sleep(delay + jitter)
        backoff = min(backoff * 2, settings.reconnect_max_delay)

    logger.info("WS loop for %s stopped", url)


async def _handle_connection(
    ws: ClientConnection,
    session: int,
    outbound_queue: "asyncio.Queue[Optional[dict]]",
    on_connect: OnConnect,
    on_message: OnMessage,
    stop_event: asyncio.Event,
    logger: logging.Logger,
) -> None:
    send_task = asyncio.create_task(_sender(ws, outbound_queue, stop_event, logger))
    try:
        await on_connect(session)
        async for raw in ws:
            if stop_event.is_set():
                break
            try:
                payload = orjson.loads(raw)
            except orjson.JSONDecodeError:
                logger.debug("Ignoring malformed JSON: %s", raw)
                continue
            await on_message(payload)
    except asyncio.CancelledError:
        raise
    finally:
        send_task.cancel()
        with suppress(asyncio.CancelledError):
            await send_task


async def _sender(
    ws: ClientConnection,
    outbound_queue: "asyncio.Queue[Optional[dict]]",
    stop_event: asyncio.Event,
    logger: logging.Logger,
) -> None:
    try:
        while not stop_event.is_set():
            message = await outbound_queue.get()
            if message is None:
                break
            data = orjson.dumps(message).decode("utf-8")
            await ws.send(data)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        # Requests lost here are failed by the transport once the reader sees the close.
        logger.debug("Sender loop exiting due to error: %s", exc)
    finally:
        logger.debug("Sender loop stopped")
