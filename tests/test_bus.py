import logging

from ledger_mux.bus import TopicRegistry
from ledger_mux.dto import Topic


def test_dispatch_runs_callbacks_in_registration_order():
    registry = TopicRegistry()
    seen = []
    registry.add(Topic.NETWORK_CHANGED, 3, lambda event: seen.append(("a", event)))
    registry.add(Topic.NETWORK_CHANGED, 1, lambda event: seen.append(("b", event)))
    registry.add(Topic.LOGGED_OUT, 2, lambda event: seen.append(("other", event)))

    delivered = registry.dispatch(Topic.NETWORK_CHANGED, "payload")

    assert delivered == 2
    assert seen == [("a", "payload"), ("b", "payload")]


def test_topic_without_callbacks_drops_events():
    registry = TopicRegistry()
    assert registry.dispatch(Topic.DISCONNECTED, object()) == 0


def test_add_refuses_duplicate_ids_and_remove_returns_callback():
    registry = TopicRegistry()

    def first(event):
        pass

    assert registry.add(Topic.LOGGED_OUT, 1, first)
    assert not registry.add(Topic.LOGGED_OUT, 1, lambda event: None)
    assert registry.contains(Topic.LOGGED_OUT, 1)

    assert registry.remove(Topic.LOGGED_OUT, 1) is first
    assert registry.remove(Topic.LOGGED_OUT, 1) is None
    assert registry.count(Topic.LOGGED_OUT) == 0


def test_failing_callback_does_not_stop_fan_out(caplog):
    registry = TopicRegistry()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    registry.add(Topic.PERMISSIONS_CHANGED, 1, broken)
    registry.add(Topic.PERMISSIONS_CHANGED, 2, seen.append)

    with caplog.at_level(logging.ERROR, logger="ledger_mux.bus"):
        registry.dispatch(Topic.PERMISSIONS_CHANGED, "event")

    assert seen == ["event"]
    assert "permissionsChanged" in caplog.text


def test_clear_forgets_everything():
    registry = TopicRegistry()
    registry.add(Topic.LOGGED_OUT, 1, lambda event: None)
    registry.clear()
    assert registry.count(Topic.LOGGED_OUT) == 0


def test_restore_puts_callback_back_at_its_position():
    registry = TopicRegistry()
    seen = []
    registry.add(Topic.TRANSACTIONS_FOUND, 1, lambda event: seen.append(1))
    registry.add(Topic.TRANSACTIONS_FOUND, 2, lambda event: seen.append(2))
    registry.add(Topic.TRANSACTIONS_FOUND, 3, lambda event: seen.append(3))

    index, callback = registry.detach(Topic.TRANSACTIONS_FOUND, 1)
    assert index == 0
    assert registry.ids(Topic.TRANSACTIONS_FOUND) == [2, 3]

    registry.restore(Topic.TRANSACTIONS_FOUND, 1, callback, index)
    registry.dispatch(Topic.TRANSACTIONS_FOUND, "event")

    assert registry.ids(Topic.TRANSACTIONS_FOUND) == [1, 2, 3]
    assert seen == [1, 2, 3]
    assert registry.detach(Topic.TRANSACTIONS_FOUND, 99) is None
