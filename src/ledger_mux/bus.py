"""Per-topic fan-out of provider events to subscription callbacks."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .dto import Topic


logger = logging.getLogger("ledger_mux.bus")

Callback = Callable[[Any], None]


class TopicRegistry:
    """Maps each topic to the delivery callbacks of its subscription ids.

    Callbacks run synchronously, in the order they were registered.
    """

    def __init__(self) -> None:
        self._callbacks: Dict[Topic, Dict[int, Callback]] = {}

    def add(self, topic: Topic, subscription_id: int, callback: Callback) -> bool:
        """Register ``callback``; returns False if the id is already present."""
        callbacks = self._callbacks.setdefault(topic, {})
        if subscription_id in callbacks:
            return False
        callbacks[subscription_id] = callback
        return True

    def remove(self, topic: Topic, subscription_id: int) -> Optional[Callback]:
        """Unregister an id and hand back its callback, if it had one."""
        callbacks = self._callbacks.get(topic)
        if callbacks is None:
            return None
        callback = callbacks.pop(subscription_id, None)
        if not callbacks:
            self._callbacks.pop(topic, None)
        return callback

    def detach(self, topic: Topic, subscription_id: int) -> Optional[Tuple[int, Callback]]:
        """Like :meth:`remove`, but also report where the callback was."""
        callbacks = self._callbacks.get(topic, {})
        if subscription_id not in callbacks:
            return None
        index = list(callbacks).index(subscription_id)
        return index, self.remove(topic, subscription_id)

    def restore(self, topic: Topic, subscription_id: int, callback: Callback, index: int) -> None:
        """Put a detached callback back at its former position."""
        items = list(self._callbacks.get(topic, {}).items())
        items = [item for item in items if item[0] != subscription_id]
        items.insert(min(index, len(items)), (subscription_id, callback))
        self._callbacks[topic] = dict(items)

    def ids(self, topic: Topic) -> List[int]:
        return list(self._callbacks.get(topic, {}))

    def contains(self, topic: Topic, subscription_id: int) -> bool:
        return subscription_id in self._callbacks.get(topic, {})

    def count(self, topic: Topic) -> int:
        return len(self._callbacks.get(topic, {}))

    def dispatch(self, topic: Topic, event: Any) -> int:
        """Deliver ``event`` to every callback of ``topic``; returns how many ran."""
        callbacks: List[Callback] = list(self._callbacks.get(topic, {}).values())
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber callback for %s failed", topic.value)
        return len(callbacks)

    def clear(self) -> None:
        self._callbacks.clear()


__all__ = ["Callback", "TopicRegistry"]
