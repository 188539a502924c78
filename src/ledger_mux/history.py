"""Merging of transaction batches into a locally held history."""

from __future__ import annotations

from typing import List, Sequence, Tuple, Union

from .dto import Transaction, TransactionsBatchInfo


def lt_key(lt: str) -> Tuple[int, Union[int, str]]:
    """Sort key for logical times.

    Decimal strings compare numerically, so ``"9" < "10"``; anything else
    falls back to plain string order. In a mixed history every non-decimal
    lt sorts above every decimal one, whatever its characters.
    """

    if lt.isdecimal():
        return (0, int(lt))
    return (1, lt)


def _insertion_index(known: Sequence[Transaction], max_lt: str) -> int:
    # First index whose lt is below ``max_lt``; ``known`` is descending.
    bound = lt_key(max_lt)
    lo, hi = 0, len(known)
    while lo < hi:
        mid = (lo + hi) // 2
        if lt_key(known[mid].id.lt) >= bound:
            lo = mid + 1
        else:
            hi = mid
    return lo


def merge_transactions(
    known: List[Transaction],
    incoming: Sequence[Transaction],
    info: TransactionsBatchInfo,
) -> List[Transaction]:
    """Merge ``incoming`` into ``known`` in place and return ``known``.

    Both sequences must be sorted by descending logical time. ``old`` batches
    extend the history backwards; ``new`` batches are inserted in front of the
    first known transaction older than the newest one in the batch.

    Duplicates are not removed.
    """

    if info.batch_type == "old" or not known:
        known.extend(incoming)
        return known

    index = _insertion_index(known, info.max_lt)
    known[index:index] = list(incoming)
    return known


__all__ = ["lt_key", "merge_transactions"]
