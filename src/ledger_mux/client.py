"""Multiplexes many consumer subscriptions over one provider channel."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional, Set, Union

from pydantic import ValidationError

from .api import ProviderApi
from .bus import TopicRegistry
from .dto import InterestFlags, ProviderEvent, Topic, parse_event
from .errors import UnknownTopicError
from .interest import AddressInterestRegistry
from .subscription import Subscription
from .transport import CONNECTED_EVENT, Transport


class ProviderRpcClient:
    """Hands out subscriptions and keeps upstream subscriptions minimal.

    Global topics only need a local callback. For address-scoped topics the
    provider is told the union of what every live subscription wants for that
    address, and only when that union changes. When the transport reports a
    new session, that union is sent again for every watched address.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._api = ProviderApi(transport)
        self._topics = TopicRegistry()
        self._interests = AddressInterestRegistry(self._api)
        self._ids = itertools.count(1)
        self._logger = logging.getLogger("ledger_mux.client")
        self._closed = False
        self._resync_tasks: Set[asyncio.Task] = set()
        transport.add_listener(self._on_event)

    @property
    def api(self) -> ProviderApi:
        return self._api

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def topics(self) -> TopicRegistry:
        return self._topics

    @property
    def interests(self) -> AddressInterestRegistry:
        return self._interests

    async def subscribe(self, topic: Union[Topic, str], address: Optional[Any] = None) -> Subscription[ProviderEvent]:
        """Open a subscription and wait until it is established.

        ``address`` is required for ``transactionsFound`` and
        ``contractStateChanged`` and ignored for every other topic.
        """
        try:
            topic = Topic(topic)
        except ValueError:
            raise UnknownTopicError(topic) from None
        if topic.is_address_scoped:
            if address is None:
                raise ValueError(f"{topic.value} subscription requires an address")
            subscription = self._address_subscription(topic, str(address))
        else:
            subscription = self._global_subscription(topic)
        await subscription.subscribe()
        return subscription

    def close(self) -> None:
        """Detach from the transport and forget every subscription."""
        if self._closed:
            return
        self._closed = True
        self._transport.remove_listener(self._on_event)
        for task in list(self._resync_tasks):
            task.cancel()
        self._resync_tasks.clear()
        self._topics.clear()
        self._interests.clear()

    def _global_subscription(self, topic: Topic) -> Subscription[ProviderEvent]:
        subscription_id = next(self._ids)

        async def subscribe(subscription: Subscription[ProviderEvent]) -> None:
            self._topics.add(topic, subscription_id, subscription.notify)

        async def unsubscribe() -> None:
            self._topics.remove(topic, subscription_id)

        return Subscription(subscribe, unsubscribe)

    def _address_subscription(self, topic: Topic, address: str) -> Subscription[ProviderEvent]:
        subscription_id = next(self._ids)
        flags = InterestFlags.for_topic(topic)

        async def subscribe(subscription: Subscription[ProviderEvent]) -> None:
            def deliver(event: Any) -> None:
                if event.address == address:
                    subscription.notify(event)

            if not self._topics.add(topic, subscription_id, deliver):
                return
            try:
                await self._interests.add(address, subscription_id, flags)
            except BaseException:
                self._topics.remove(topic, subscription_id)
                raise

        async def unsubscribe() -> None:
            detached = self._topics.detach(topic, subscription_id)
            try:
                await self._interests.remove(address, subscription_id)
            except BaseException:
                if detached is not None:
                    index, callback = detached
                    self._topics.restore(topic, subscription_id, callback, index)
                raise

        return Subscription(subscribe, unsubscribe)

    def _on_event(self, name: str, payload: Dict[str, Any]) -> None:
        if name == CONNECTED_EVENT:
            self._schedule_resync(payload.get("session"))
            return
        try:
            topic = Topic(name)
        except ValueError:
            self._logger.debug("Ignoring unknown provider event %r", name)
            return
        if not self._topics.count(topic):
            return
        try:
            event = parse_event(topic, payload)
        except ValidationError as exc:
            self._logger.debug("Dropping invalid %s payload: %s (%s)", name, payload, exc)
            return
        self._topics.dispatch(topic, event)

    def _schedule_resync(self, session: Any) -> None:
        # Responses are only read after the connect hook returns, so the
        # re-subscribe calls must not be awaited from inside it.
        addresses = self._interests.addresses()
        if not addresses:
            return
        self._logger.info("Restoring %s address subscriptions for session %s", len(addresses), session)
        task = asyncio.get_running_loop().create_task(self._interests.resync())
        self._resync_tasks.add(task)
        task.add_done_callback(self._resync_tasks.discard)


__all__ = ["ProviderRpcClient"]
