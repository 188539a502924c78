"""Typed representations of provider payloads."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Topic(str, Enum):
    """Events a provider can push to its clients."""

    DISCONNECTED = "disconnected"
    TRANSACTIONS_FOUND = "transactionsFound"
    CONTRACT_STATE_CHANGED = "contractStateChanged"
    NETWORK_CHANGED = "networkChanged"
    PERMISSIONS_CHANGED = "permissionsChanged"
    LOGGED_OUT = "loggedOut"

    @property
    def is_address_scoped(self) -> bool:
        return self in ADDRESS_SCOPED_TOPICS


ADDRESS_SCOPED_TOPICS = frozenset({Topic.TRANSACTIONS_FOUND, Topic.CONTRACT_STATE_CHANGED})


def _coerce_lt(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError("logical time cannot be a boolean")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("logical time cannot be empty")
        return value
    raise ValueError(f"unsupported type for logical time: {type(value)!r}")


class WireModel(BaseModel):
    """Base for payloads that use camelCase keys on the wire."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)


class InterestFlags(WireModel):
    """What one consumer wants delivered for one address."""

    state: bool = False
    transactions: bool = False

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_topic(cls, topic: Topic) -> "InterestFlags":
        return cls(
            state=topic is Topic.CONTRACT_STATE_CHANGED,
            transactions=topic is Topic.TRANSACTIONS_FOUND,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.state or self.transactions)

    @property
    def is_full(self) -> bool:
        return self.state and self.transactions


class TransactionId(WireModel):
    lt: str
    hash: str = ""

    @field_validator("lt", mode="before")
    @classmethod
    def _parse_lt(cls, value: Any) -> str:
        return _coerce_lt(value)


class Message(WireModel):
    src: Optional[str] = None
    dst: Optional[str] = None
    value: str = "0"
    bounce: bool = False
    bounced: bool = False
    body: Optional[str] = None
    body_hash: Optional[str] = None


class Transaction(WireModel):
    id: TransactionId
    prev_transaction_id: Optional[TransactionId] = None
    created_at: int = 0
    aborted: bool = False
    exit_code: Optional[int] = None
    result_code: Optional[int] = None
    orig_status: str = "uninit"
    end_status: str = "uninit"
    total_fees: str = "0"
    in_message: Optional[Message] = None
    out_messages: List[Message] = Field(default_factory=list)

    @property
    def lt(self) -> str:
        return self.id.lt


class TransactionsBatchInfo(WireModel):
    min_lt: str
    max_lt: str
    batch_type: Literal["old", "new"]

    @field_validator("min_lt", "max_lt", mode="before")
    @classmethod
    def _parse_lt(cls, value: Any) -> str:
        return _coerce_lt(value)


class GenTimings(WireModel):
    gen_lt: str = "0"
    gen_utime: int = 0

    @field_validator("gen_lt", mode="before")
    @classmethod
    def _parse_lt(cls, value: Any) -> str:
        return _coerce_lt(value)


class ContractState(WireModel):
    balance: str = "0"
    gen_timings: GenTimings = Field(default_factory=GenTimings)
    last_transaction_id: Optional[TransactionId] = None
    is_deployed: bool = False


class FullContractState(ContractState):
    boc: str = ""
    code_hash: Optional[str] = None


class AccountInteraction(WireModel):
    address: str
    public_key: str
    contract_type: str


class Permissions(WireModel):
    ton_client: Optional[bool] = None
    account_interaction: Optional[AccountInteraction] = None


class ProviderState(WireModel):
    version: str
    numeric_version: int
    selected_connection: str
    permissions: Permissions = Field(default_factory=Permissions)
    subscriptions: Dict[str, InterestFlags] = Field(default_factory=dict)


class TransactionsList(WireModel):
    transactions: List[Transaction] = Field(default_factory=list)
    continuation: Optional[TransactionId] = None
    info: Optional[TransactionsBatchInfo] = None


class DisconnectedEvent(WireModel):
    code: Optional[int] = None
    reason: str = ""


class TransactionsFoundEvent(WireModel):
    address: str
    transactions: List[Transaction]
    info: TransactionsBatchInfo


class ContractStateChangedEvent(WireModel):
    address: str
    state: ContractState


class NetworkChangedEvent(WireModel):
    selected_connection: str


class PermissionsChangedEvent(WireModel):
    permissions: Permissions


class LoggedOutEvent(WireModel):
    pass


ProviderEvent = Union[
    DisconnectedEvent,
    TransactionsFoundEvent,
    ContractStateChangedEvent,
    NetworkChangedEvent,
    PermissionsChangedEvent,
    LoggedOutEvent,
]

EVENT_MODELS: Dict[Topic, type] = {
    Topic.DISCONNECTED: DisconnectedEvent,
    Topic.TRANSACTIONS_FOUND: TransactionsFoundEvent,
    Topic.CONTRACT_STATE_CHANGED: ContractStateChangedEvent,
    Topic.NETWORK_CHANGED: NetworkChangedEvent,
    Topic.PERMISSIONS_CHANGED: PermissionsChangedEvent,
    Topic.LOGGED_OUT: LoggedOutEvent,
}


def parse_event(topic: Union[Topic, str], payload: Optional[Mapping[str, Any]]) -> ProviderEvent:
    """Parse a raw event payload into the model registered for ``topic``."""
    try:
        topic = Topic(topic)
    except ValueError as exc:
        raise ValueError(f"unsupported event: {topic!r}") from exc
    return EVENT_MODELS[topic].model_validate(dict(payload or {}))
