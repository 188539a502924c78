"""Per-address interest bookkeeping and upstream subscription sync."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Dict, Iterable, List, NamedTuple, Optional, Protocol

from .dto import InterestFlags


logger = logging.getLogger("ledger_mux.interest")


class UpstreamSubscriptions(Protocol):
    def subscribe(self, address: str, subscriptions: InterestFlags) -> Awaitable[object]: ...

    def unsubscribe(self, address: str) -> Awaitable[object]: ...


class InterestFold(NamedTuple):
    total: InterestFlags
    without_excluded: InterestFlags


def fold_interest(
    entries: Iterable[InterestFlags],
    excluded: Optional[InterestFlags] = None,
) -> InterestFold:
    """OR the flags together, once for all entries and once without ``excluded``.

    ``excluded`` is matched by identity since several consumers may hold equal
    flags. Scanning stops once the partial union without ``excluded`` is already
    full, at which point ``total`` is full too.
    """

    state = transactions = False
    other_state = other_transactions = False
    for item in entries:
        if other_state and other_transactions:
            break
        state = state or item.state
        transactions = transactions or item.transactions
        if item is not excluded:
            other_state = other_state or item.state
            other_transactions = other_transactions or item.transactions
    return InterestFold(
        total=InterestFlags(state=state, transactions=transactions),
        without_excluded=InterestFlags(state=other_state, transactions=other_transactions),
    )


class AddressInterestRegistry:
    """Tracks what every subscription id wants per address.

    The upstream provider only ever sees the union of those flags: a call is
    issued when adding or removing an entry changes the union, and never
    otherwise. Mutations for one address are serialized by a per-address lock
    so the union is always computed against the state the upstream call
    applies to. A lock lives only while some task holds or waits on it.
    """

    def __init__(self, upstream: UpstreamSubscriptions) -> None:
        self._upstream = upstream
        self._buckets: Dict[str, Dict[int, InterestFlags]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def add(self, address: str, subscription_id: int, flags: InterestFlags) -> None:
        async with self._locked(address):
            bucket = self._buckets.setdefault(address, {})
            if subscription_id in bucket:
                return
            # Private copy: the fold excludes by identity.
            entry = flags.model_copy()
            bucket[subscription_id] = entry
            total, without_excluded = fold_interest(bucket.values(), entry)
            if total == without_excluded:
                logger.debug("Interest of #%s on %s already covered", subscription_id, address)
                return
            try:
                logger.debug("Subscribing %s with %s", address, total)
                await self._upstream.subscribe(address, total)
            except BaseException:
                self._discard(address, subscription_id)
                raise

    async def remove(self, address: str, subscription_id: int) -> None:
        async with self._locked(address):
            bucket = self._buckets.get(address)
            if bucket is None or subscription_id not in bucket:
                return
            flags = bucket[subscription_id]
            total, without_excluded = fold_interest(bucket.values(), flags)
            self._discard(address, subscription_id)
            try:
                if without_excluded.is_empty:
                    logger.debug("Unsubscribing %s", address)
                    await self._upstream.unsubscribe(address)
                elif total != without_excluded:
                    logger.debug("Narrowing %s to %s", address, without_excluded)
                    await self._upstream.subscribe(address, without_excluded)
            except BaseException:
                self._buckets.setdefault(address, {})[subscription_id] = flags
                raise

    async def resync(self) -> int:
        """Re-send the current union of every address to the provider.

        Used after the provider session was replaced. A failing address is
        logged and skipped; returns how many addresses were re-subscribed.
        """
        synced = 0
        for address in self.addresses():
            async with self._locked(address):
                union = self.interest(address)
                if union.is_empty:
                    continue
                try:
                    await self._upstream.subscribe(address, union)
                except Exception as exc:
                    logger.warning("Failed to restore subscription of %s: %s", address, exc)
                    continue
                synced += 1
        return synced

    def interest(self, address: str) -> InterestFlags:
        """Current union of all flags registered for ``address``."""
        return fold_interest(self._buckets.get(address, {}).values()).total

    def subscriptions(self, address: str) -> Dict[int, InterestFlags]:
        return dict(self._buckets.get(address, {}))

    def addresses(self) -> List[str]:
        return list(self._buckets.keys())

    def clear(self) -> None:
        self._buckets.clear()
        self._locks.clear()
        self._lock_users.clear()

    def __contains__(self, address: object) -> bool:
        return address in self._buckets

    @asynccontextmanager
    async def _locked(self, address: str) -> AsyncIterator[None]:
        lock = self._locks.get(address)
        if lock is None:
            lock = self._locks[address] = asyncio.Lock()
        self._lock_users[address] = self._lock_users.get(address, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users.get(address, 1) - 1
            if remaining > 0:
                self._lock_users[address] = remaining
            else:
                self._lock_users.pop(address, None)
                if self._locks.get(address) is lock:
                    del self._locks[address]

    def _discard(self, address: str, subscription_id: int) -> None:
        bucket = self._buckets.get(address)
        if bucket is None:
            return
        bucket.pop(subscription_id, None)
        if not bucket:
            self._buckets.pop(address, None)


__all__ = ["AddressInterestRegistry", "InterestFold", "UpstreamSubscriptions", "fold_interest"]
