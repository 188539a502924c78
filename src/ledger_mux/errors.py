"""Exceptions raised by the multiplexer and its transport."""

from __future__ import annotations

from typing import Any, Optional


class LedgerMuxError(Exception):
    """Base class for all errors raised by this package."""


class UnknownTopicError(LedgerMuxError, ValueError):
    def __init__(self, topic: object) -> None:
        super().__init__(f"unknown event {topic!r}")
        self.topic = topic


class ProviderRpcError(LedgerMuxError):
    """The provider answered a request with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Optional[Any] = None) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data


class TransportClosedError(LedgerMuxError, ConnectionError):
    """A request could not complete because the connection went away."""


__all__ = ["LedgerMuxError", "UnknownTopicError", "ProviderRpcError", "TransportClosedError"]
