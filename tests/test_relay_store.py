"""Тесты хранилища переписки (почтовые ящики + forward-индекс)."""

from metagate.relay.models import ImageMessage, TextMessage
from metagate.relay.store import ConversationStore


def test_drain_returns_enqueue_order_and_empties_outbox():
    store = ConversationStore()
    msgs = [TextMessage("one"), ImageMessage("http://x/1.jpg"), TextMessage("three")]
    for m in msgs:
        store.enqueue_outbound("v1", m)

    assert store.drain_outbound("v1") == msgs
    assert store.drain_outbound("v1") == []
    assert store.has_pending("v1") is False


def test_drain_unknown_visitor_does_not_create_mailbox():
    store = ConversationStore()
    assert store.drain_outbound("ghost") == []
    assert store.has_mailbox("ghost") is False


def test_record_inbound_creates_mailbox_lazily():
    store = ConversationStore()
    store.record_inbound("v1", "hello")
    store.record_inbound("v1", "again")

    inbox = store.inbox("v1")
    assert [r.text for r in inbox] == ["hello", "again"]
    assert all(r.sender == "visitor" for r in inbox)
    # inbox не влияет на outbox
    assert store.drain_outbound("v1") == []


def test_enqueue_runs_wake_hook_after_append():
    store = ConversationStore()
    seen = []
    store.on_enqueue = lambda vid: seen.append((vid, store.has_pending(vid)))

    store.enqueue_outbound("v1", TextMessage("hi"))
    assert seen == [("v1", True)]


def test_requeue_front_keeps_order():
    store = ConversationStore()
    store.enqueue_outbound("v1", TextMessage("c"))
    store.requeue_front("v1", [TextMessage("a"), TextMessage("b")])

    assert [m.content for m in store.drain_outbound("v1")] == ["a", "b", "c"]


def test_forward_index_evicts_oldest():
    store = ConversationStore(forward_index_max=2)
    store.remember_forward(1, "a")
    store.remember_forward(2, "b")
    store.remember_forward(3, "c")

    assert store.lookup_forward(1) is None
    assert store.lookup_forward(2) == "b"
    assert store.lookup_forward(3) == "c"
    assert store.lookup_forward(None) is None
    store.remember_forward(None, "ignored")
    assert store.stats()["forwarded"] == 2
