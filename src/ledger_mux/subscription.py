"""Caller-facing subscription handle."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Generic, List, Optional, Set, TypeVar, Union

from .config import settings


T = TypeVar("T")

_CLOSED = object()


class SubscriptionEvent(str, Enum):
    DATA = "data"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


class SubscriptionState(str, Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    UNSUBSCRIBING = "unsubscribing"


class Subscription(Generic[T]):
    """Wraps a subscribe/unsubscribe action pair and the caller's listeners.

    ``data`` listeners receive each event payload, ``subscribed`` and
    ``unsubscribed`` listeners are called without arguments once the matching
    action has completed. Listeners are kept across unsubscribe/subscribe
    cycles, so a handle can be re-subscribed with the same parameters.
    """

    def __init__(
        self,
        subscribe_action: Callable[["Subscription[T]"], Awaitable[None]],
        unsubscribe_action: Callable[[], Awaitable[None]],
    ) -> None:
        self._subscribe_action = subscribe_action
        self._unsubscribe_action = unsubscribe_action
        self._listeners: Dict[SubscriptionEvent, List[Callable[..., Any]]] = {
            event: [] for event in SubscriptionEvent
        }
        self._queues: Set[asyncio.Queue] = set()
        self._state = SubscriptionState.IDLE

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SubscriptionState.ACTIVE

    def on(self, event: Union[SubscriptionEvent, str], listener: Callable[..., Any]) -> "Subscription[T]":
        self._listeners[SubscriptionEvent(event)].append(listener)
        return self

    async def subscribe(self) -> None:
        previous = self._state
        self._state = SubscriptionState.SUBSCRIBING
        try:
            await self._subscribe_action(self)
        except BaseException:
            self._state = previous
            raise
        self._state = SubscriptionState.ACTIVE
        for listener in list(self._listeners[SubscriptionEvent.SUBSCRIBED]):
            listener()

    async def unsubscribe(self) -> None:
        previous = self._state
        self._state = SubscriptionState.UNSUBSCRIBING
        try:
            await self._unsubscribe_action()
        except BaseException:
            self._state = previous
            raise
        self._state = SubscriptionState.IDLE
        self._close_queues()
        for listener in list(self._listeners[SubscriptionEvent.UNSUBSCRIBED]):
            listener()

    def notify(self, data: T) -> None:
        for listener in list(self._listeners[SubscriptionEvent.DATA]):
            listener(data)
        for queue in list(self._queues):
            _put_latest(queue, data)

    async def events(self, maxsize: Optional[int] = None) -> AsyncIterator[T]:
        """Iterate over delivered payloads until the handle unsubscribes.

        When the consumer falls behind, the oldest buffered payload is dropped.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=settings.events_queue_size if maxsize is None else maxsize)
        self._queues.add(queue)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            self._queues.discard(queue)

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._state is SubscriptionState.ACTIVE:
            await self.unsubscribe()

    def _close_queues(self) -> None:
        queues = list(self._queues)
        self._queues.clear()
        for queue in queues:
            _put_latest(queue, _CLOSED)

    def __repr__(self) -> str:
        return f"<Subscription state={self._state.value}>"


def _put_latest(queue: asyncio.Queue, item: object) -> None:
    with suppress(asyncio.QueueFull):
        queue.put_nowait(item)
        return
    with suppress(asyncio.QueueEmpty):
        queue.get_nowait()
    with suppress(asyncio.QueueFull):
        queue.put_nowait(item)


__all__ = ["Subscription", "SubscriptionEvent", "SubscriptionState"]
