"""Тесты long-poll: удержание, пробуждение, таймаут, вытеснение, отключение."""

import threading
import time

from metagate import metrics
from metagate.relay.models import TextMessage
from metagate.relay.service import RelayService
from metagate.relay.waker import DELIVERED, DISCONNECTED, IMMEDIATE, SUPERSEDED, TIMEOUT


def _relay(fake_timers, hold=25):
    return RelayService(hold_seconds=hold, timer_factory=fake_timers)


def test_poll_with_pending_messages_resolves_immediately(fake_timers):
    relay = _relay(fake_timers)
    relay.enqueue_outbound("v1", TextMessage("a"))
    relay.enqueue_outbound("v1", TextMessage("b"))

    ticket = relay.poll("v1")

    assert ticket.done
    assert ticket.outcome == IMMEDIATE
    assert [m.content for m in ticket.replies] == ["a", "b"]
    assert relay.waker.is_waiting("v1") is False
    assert fake_timers.created == []
    assert relay.drain_outbound("v1") == []


def test_enqueue_wakes_held_poll(fake_timers):
    relay = _relay(fake_timers)
    ticket = relay.poll("v1")
    assert not ticket.done
    assert relay.waker.is_waiting("v1")
    timer = fake_timers.created[0]
    assert timer.started and timer.interval == 25

    relay.enqueue_outbound("v1", TextMessage("hello"))

    assert ticket.outcome == DELIVERED
    assert [m.content for m in ticket.replies] == ["hello"]
    assert timer.cancelled
    assert relay.waker.is_waiting("v1") is False
    # outbox уже пуст
    assert relay.drain_outbound("v1") == []


def test_timeout_answers_empty_and_later_messages_are_kept(fake_timers):
    relay = _relay(fake_timers)
    ticket = relay.poll("v1")
    fake_timers.created[0].fire()

    assert ticket.outcome == TIMEOUT
    assert ticket.replies == []
    assert relay.waker.is_waiting("v1") is False
    assert metrics.snapshot()["relay_polls_timeout_total"] == 1

    relay.enqueue_outbound("v1", TextMessage("late"))
    assert ticket.replies == []
    assert [m.content for m in relay.drain_outbound("v1")] == ["late"]


def test_second_poll_supersedes_first(fake_timers):
    relay = _relay(fake_timers)
    first = relay.poll("v1")
    second = relay.poll("v1")

    assert first.outcome == SUPERSEDED
    assert first.replies == []
    assert fake_timers.created[0].cancelled
    assert not second.done
    assert relay.waker.is_waiting("v1")

    # таймер первого запроса не должен трогать второй
    first_timer = fake_timers.created[0]
    first_timer.function(*first_timer.args)
    assert not second.done

    relay.enqueue_outbound("v1", TextMessage("for second"))
    assert second.outcome == DELIVERED
    assert first.replies == []


def test_disconnect_clears_slot_and_cancels_timer(fake_timers):
    relay = _relay(fake_timers)
    ticket = relay.poll("v1")
    timer = fake_timers.created[0]

    assert relay.release("v1", ticket) is True
    assert ticket.outcome == DISCONNECTED
    assert timer.cancelled
    assert relay.waker.is_waiting("v1") is False

    # запоздавший таймер и повторный release — no-op
    timer.function(*timer.args)
    assert ticket.outcome == DISCONNECTED
    assert relay.release("v1", ticket) is False
    assert "relay_polls_timeout_total" not in metrics.snapshot()

    # сообщение после отключения ждёт следующего poll
    relay.enqueue_outbound("v1", TextMessage("kept"))
    assert ticket.replies == []
    assert [m.content for m in relay.poll("v1").replies] == ["kept"]


def test_only_one_resolution_path_fires(fake_timers):
    relay = _relay(fake_timers)
    ticket = relay.poll("v1")
    relay.enqueue_outbound("v1", TextMessage("x"))
    timer = fake_timers.created[0]

    timer.function(*timer.args)
    relay.release("v1", ticket)

    assert ticket.outcome == DELIVERED
    assert [m.content for m in ticket.replies] == ["x"]
    assert ticket.resolve([], TIMEOUT) is False


def test_polls_of_different_visitors_are_independent(fake_timers):
    relay = _relay(fake_timers)
    t1 = relay.poll("v1")
    t2 = relay.poll("v2")

    relay.enqueue_outbound("v2", TextMessage("to v2"))

    assert not t1.done
    assert t2.outcome == DELIVERED
    assert relay.stats()["waiting_polls"] == 1


def test_real_timer_wake_from_other_thread():
    relay = RelayService(hold_seconds=5)
    ticket = relay.poll("v1")

    threading.Timer(0.05, relay.enqueue_outbound, args=("v1", TextMessage("ping"))).start()

    assert ticket.wait(2)
    assert ticket.outcome == DELIVERED
    assert ticket.replies[0].content == "ping"


def test_real_timer_timeout():
    relay = RelayService(hold_seconds=0.05)
    started = time.monotonic()
    ticket = relay.poll("v1")

    assert ticket.wait(2)
    assert ticket.outcome == TIMEOUT
    assert time.monotonic() - started < 2


def test_concurrent_producers_no_loss_no_duplicates():
    relay = RelayService(hold_seconds=0.05)
    producers, per_producer = 4, 50
    expected = {f"{p}-{i}" for p in range(producers) for i in range(per_producer)}
    received = []

    def produce(p):
        for i in range(per_producer):
            relay.enqueue_outbound("v1", TextMessage(f"{p}-{i}"))

    threads = [threading.Thread(target=produce, args=(p,)) for p in range(producers)]
    for t in threads:
        t.start()

    deadline = time.monotonic() + 10
    while len(received) < len(expected) and time.monotonic() < deadline:
        ticket = relay.poll("v1")
        ticket.wait(2)
        received.extend(m.content for m in ticket.replies)

    for t in threads:
        t.join()

    assert len(received) == len(expected)
    assert set(received) == expected
    # порядок внутри одного производителя сохраняется
    for p in range(producers):
        mine = [int(x.split("-")[1]) for x in received if x.startswith(f"{p}-")]
        assert mine == sorted(mine)


def test_reclaim_returns_delivered_replies_in_order(fake_timers):
    relay = _relay(fake_timers)
    ticket = relay.poll("v1")
    relay.enqueue_outbound("v1", TextMessage("a"))
    relay.enqueue_outbound("v1", TextMessage("b"))  # после wake: уже в outbox
    assert ticket.outcome == DELIVERED

    assert relay.release("v1", ticket) is False
    assert relay.reclaim("v1", ticket) == 1
    assert relay.reclaim("v1", ticket) == 0

    assert [m.content for m in relay.drain_outbound("v1")] == ["a", "b"]


def test_reclaim_wakes_newer_poll(fake_timers):
    relay = _relay(fake_timers)
    first = relay.poll("v1")
    relay.enqueue_outbound("v1", TextMessage("x"))
    second = relay.poll("v1")
    assert not second.done

    relay.reclaim("v1", first)

    assert second.outcome == DELIVERED
    assert [m.content for m in second.replies] == ["x"]


def test_reclaim_ignores_empty_outcomes(fake_timers):
    relay = _relay(fake_timers)
    ticket = relay.poll("v1")
    fake_timers.created[0].fire()
    assert relay.reclaim("v1", ticket) == 0
    assert relay.drain_outbound("v1") == []
