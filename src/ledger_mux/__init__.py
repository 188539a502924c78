"""Client-side multiplexer for ledger provider subscriptions."""

from .client import ProviderRpcClient
from .dto import InterestFlags, Topic, Transaction, TransactionsBatchInfo
from .errors import LedgerMuxError, ProviderRpcError, TransportClosedError, UnknownTopicError
from .history import merge_transactions
from .subscription import Subscription, SubscriptionEvent, SubscriptionState
from .transport import Transport, WebSocketTransport

__all__ = [
    "InterestFlags",
    "LedgerMuxError",
    "ProviderRpcClient",
    "ProviderRpcError",
    "Subscription",
    "SubscriptionEvent",
    "SubscriptionState",
    "Topic",
    "Transaction",
    "TransactionsBatchInfo",
    "Transport",
    "TransportClosedError",
    "UnknownTopicError",
    "WebSocketTransport",
    "merge_transactions",
]
