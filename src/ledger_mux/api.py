"""Typed wrappers for the provider's RPC methods."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from .dto import FullContractState, InterestFlags, Permissions, ProviderState, TransactionId, TransactionsList
from .transport import Transport


class ProviderMethod(str, Enum):
    REQUEST_PERMISSIONS = "requestPermissions"
    DISCONNECT = "disconnect"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    UNSUBSCRIBE_ALL = "unsubscribeAll"
    GET_PROVIDER_STATE = "getProviderState"
    GET_FULL_CONTRACT_STATE = "getFullContractState"
    GET_TRANSACTIONS = "getTransactions"


class ProviderApi:
    """One coroutine per provider method, each with a typed result."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def _call(self, method: ProviderMethod, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._transport.request(method.value, params)

    async def request_permissions(self, permissions: Iterable[str]) -> Permissions:
        result = await self._call(ProviderMethod.REQUEST_PERMISSIONS, {"permissions": list(permissions)})
        return Permissions.model_validate(result or {})

    async def disconnect(self) -> None:
        await self._call(ProviderMethod.DISCONNECT)

    async def subscribe(self, address: str, subscriptions: InterestFlags) -> InterestFlags:
        result = await self._call(
            ProviderMethod.SUBSCRIBE,
            {"address": str(address), "subscriptions": subscriptions.model_dump(by_alias=True)},
        )
        # Providers answer with the effective subscription; some answer nothing.
        return InterestFlags.model_validate(result) if result else subscriptions

    async def unsubscribe(self, address: str) -> None:
        await self._call(ProviderMethod.UNSUBSCRIBE, {"address": str(address)})

    async def unsubscribe_all(self) -> None:
        await self._call(ProviderMethod.UNSUBSCRIBE_ALL)

    async def get_provider_state(self) -> ProviderState:
        result = await self._call(ProviderMethod.GET_PROVIDER_STATE)
        return ProviderState.model_validate(result)

    async def get_full_contract_state(self, address: str) -> Optional[FullContractState]:
        result = await self._call(ProviderMethod.GET_FULL_CONTRACT_STATE, {"address": str(address)})
        state = (result or {}).get("state")
        return FullContractState.model_validate(state) if state is not None else None

    async def get_transactions(
        self,
        address: str,
        continuation: Optional[Union[TransactionId, Dict[str, Any]]] = None,
        limit: Optional[int] = None,
    ) -> TransactionsList:
        params: Dict[str, Any] = {"address": str(address)}
        if continuation is not None:
            if isinstance(continuation, TransactionId):
                continuation = continuation.model_dump(by_alias=True)
            params["continuation"] = continuation
        if limit is not None:
            params["limit"] = limit
        result = await self._call(ProviderMethod.GET_TRANSACTIONS, params)
        return TransactionsList.model_validate(result or {})


__all__ = ["ProviderApi", "ProviderMethod"]
