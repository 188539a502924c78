import pytest
from pydantic import ValidationError

from ledger_mux.dto import (
    ContractStateChangedEvent,
    InterestFlags,
    LoggedOutEvent,
    PermissionsChangedEvent,
    Topic,
    TransactionsFoundEvent,
    parse_event,
)


def test_parse_transactions_found_event():
    payload = {
        "address": "0:abc",
        "transactions": [
            {
                "id": {"lt": 2000, "hash": "ff"},
                "prevTransactionId": {"lt": "1990", "hash": "ee"},
                "createdAt": 1700000000,
                "aborted": False,
                "origStatus": "active",
                "endStatus": "active",
                "totalFees": "1000",
                "inMessage": {"src": "0:def", "dst": "0:abc", "value": "5", "bounce": True},
                "outMessages": [],
                "somethingNew": 1,
            }
        ],
        "info": {"minLt": "2000", "maxLt": "2000", "batchType": "new"},
    }
    event = parse_event("transactionsFound", payload)
    assert isinstance(event, TransactionsFoundEvent)
    transaction = event.transactions[0]
    assert transaction.id.lt == "2000"
    assert transaction.lt == "2000"
    assert transaction.prev_transaction_id.lt == "1990"
    assert transaction.in_message.bounce is True
    assert event.info.batch_type == "new"


def test_parse_contract_state_changed_event():
    event = parse_event(
        Topic.CONTRACT_STATE_CHANGED,
        {"address": "0:abc", "state": {"balance": "42", "genTimings": {"genLt": 7, "genUtime": 1}, "isDeployed": True}},
    )
    assert isinstance(event, ContractStateChangedEvent)
    assert event.state.gen_timings.gen_lt == "7"
    assert event.state.is_deployed is True


def test_parse_permissions_and_empty_events():
    event = parse_event(
        "permissionsChanged",
        {
            "permissions": {
                "tonClient": True,
                "accountInteraction": {"address": "0:abc", "publicKey": "aa", "contractType": "SafeMultisigWallet"},
            }
        },
    )
    assert isinstance(event, PermissionsChangedEvent)
    assert event.permissions.account_interaction.public_key == "aa"
    assert isinstance(parse_event("loggedOut", None), LoggedOutEvent)


def test_parse_unknown_event():
    with pytest.raises(ValueError):
        parse_event("unknown", {})


def test_batch_type_is_validated():
    with pytest.raises(ValidationError):
        parse_event(
            "transactionsFound",
            {"address": "0:abc", "transactions": [], "info": {"minLt": "1", "maxLt": "2", "batchType": "mid"}},
        )


def test_interest_flags_helpers():
    assert InterestFlags.for_topic(Topic.TRANSACTIONS_FOUND) == InterestFlags(transactions=True)
    assert InterestFlags.for_topic(Topic.CONTRACT_STATE_CHANGED) == InterestFlags(state=True)
    assert InterestFlags().is_empty
    assert InterestFlags(state=True, transactions=True).is_full
    assert InterestFlags(state=True).model_dump(by_alias=True) == {"state": True, "transactions": False}
    assert Topic.TRANSACTIONS_FOUND.is_address_scoped
    assert not Topic.NETWORK_CHANGED.is_address_scoped
