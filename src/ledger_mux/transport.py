"""Transport contract and the JSON-RPC over WebSocket implementation."""

from __future__ import annotations

import asyncio
import itertools
import logging
from contextlib import suppress
from typing import Any, Callable, Dict, List, Optional, Protocol

from .config import settings
from .errors import ProviderRpcError, TransportClosedError
from .ws_client import run_ws_loop


EventListener = Callable[[str, Dict[str, Any]], None]

CONNECTED_EVENT = "connected"
DISCONNECTED_EVENT = "disconnected"


class Transport(Protocol):
    """What the multiplexer needs from the channel to the provider.

    Listeners receive provider notifications as ``(name, params)``. A
    transport that can lose its session also emits ``connected`` each time a
    new session is established.
    """

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any: ...

    def add_listener(self, listener: EventListener) -> None: ...

    def remove_listener(self, listener: EventListener) -> None: ...


def _rpc_error(error: Any) -> ProviderRpcError:
    if not isinstance(error, dict):
        return ProviderRpcError(-32603, str(error))
    try:
        code = int(error.get("code", -32603))
    except (TypeError, ValueError):
        code = -32603
    return ProviderRpcError(code, str(error.get("message", "")), error.get("data"))


class WebSocketTransport:
    """Correlates JSON-RPC requests with responses and emits notifications.

    Requests issued before :meth:`start` are queued and sent once connected.
    Pending requests fail with :class:`TransportClosedError` when the
    connection drops or the transport stops. Listeners get a ``connected``
    event with the session number whenever a connection is established and a
    ``disconnected`` event on every connection loss.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        request_timeout: Optional[float] = None,
        outbound_queue: Optional[asyncio.Queue] = None,
    ) -> None:
        self._url = url or settings.ws_url
        self._request_timeout = settings.request_timeout if request_timeout is None else request_timeout
        self._outbound: asyncio.Queue = outbound_queue or asyncio.Queue(maxsize=settings.outbound_queue_size)
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._pending: Dict[int, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._listeners: List[EventListener] = []
        self._closed = False
        self._logger = logging.getLogger("ledger_mux.ws")

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._closed = False
        self._stop_event.clear()
        self._task = asyncio.create_task(
            run_ws_loop(
                self._url,
                self._outbound,
                self._on_connect,
                self._on_message,
                self._on_disconnect,
                self._stop_event,
                self._logger,
            )
        )

    async def stop(self) -> None:
        self._closed = True
        self._stop_event.set()
        with suppress(asyncio.QueueFull):
            self._outbound.put_nowait(None)
        if self._task:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._drain_outbound()
        self._fail_pending(TransportClosedError("transport stopped"))

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def url(self) -> str:
        return self._url

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        with suppress(ValueError):
            self._listeners.remove(listener)

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self._closed:
            raise TransportClosedError("transport stopped")
        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params
        try:
            await self._outbound.put(message)
            self._logger.debug("-> %s #%s", method, request_id)
            if self._request_timeout > 0:
                return await asyncio.wait_for(future, self._request_timeout)
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def _on_connect(self, session: int = 1) -> None:
        self._logger.info("Provider session %s ready (%s pending requests)", session, len(self._pending))
        self._emit(CONNECTED_EVENT, {"session": session})

    async def _on_message(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            self._logger.debug("Dropping non-object message: %r", payload)
            return
        request_id = payload.get("id")
        if request_id is not None:
            future = self._pending.get(request_id)
            if future is None or future.done():
                self._logger.debug("Dropping response for unknown request %r", request_id)
                return
            if payload.get("error") is not None:
                future.set_exception(_rpc_error(payload["error"]))
            else:
                future.set_result(payload.get("result"))
            return
        method = payload.get("method")
        if not isinstance(method, str):
            self._logger.debug("Dropping message without method: %r", payload)
            return
        params = payload.get("params")
        self._emit(method, params if isinstance(params, dict) else {})

    async def _on_disconnect(self, code: Optional[int] = None, reason: str = "connection closed") -> None:
        self._drain_outbound()
        self._fail_pending(TransportClosedError(reason))
        self._emit(DISCONNECTED_EVENT, {"code": code, "reason": reason})

    def _emit(self, name: str, params: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(name, params)
            except Exception:
                self._logger.exception("Event listener for %s failed", name)

    def _drain_outbound(self) -> None:
        with suppress(asyncio.QueueEmpty):
            while True:
                self._outbound.get_nowait()

    def _fail_pending(self, error: BaseException) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(error)


__all__ = ["CONNECTED_EVENT", "DISCONNECTED_EVENT", "EventListener", "Transport", "WebSocketTransport"]
