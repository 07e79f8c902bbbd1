import random
from datetime import datetime, timedelta
from app.core.ordering import order, serving_order, currently_serving, next_up
from app.models.ticket import Ticket

T0 = datetime(2026, 3, 2, 8, 0, 0)

def make_ticket(ticket_id, seconds, prioritized=False, status="waiting", called=None):
    return Ticket(
        id=ticket_id,
        officer_id="o1",
        number=ticket_id,
        status=status,
        is_prioritized=prioritized,
        created_at=T0 + timedelta(seconds=seconds),
        called_at=T0 + timedelta(seconds=called) if called is not None else None,
    )

def ids(tickets):
    return [t.id for t in tickets]

def test_prioritized_ticket_goes_first():
    a = make_ticket(1, 0)
    b = make_ticket(2, 1)
    c = make_ticket(3, 2, prioritized=True)

    assert ids(order([a, b, c])) == [3, 1, 2]
    assert currently_serving([a, b, c]) is c
    assert next_up([a, b, c]) is a

def test_empty_input():
    assert order([]) == []
    assert currently_serving([]) is None
    assert next_up([make_ticket(1, 0)]) is None

def test_only_waiting_tickets_are_ordered():
    tickets = [
        make_ticket(1, 0, status="served"),
        make_ticket(2, 1),
        make_ticket(3, 2, status="no_show"),
        make_ticket(4, 3, status="cancelled"),
        make_ticket(5, 4, status="transferred"),
    ]
    assert ids(order(tickets)) == [2]

def test_all_prioritized_sorted_by_created_at():
    tickets = [make_ticket(i, 10 - i, prioritized=True) for i in range(1, 6)]
    assert ids(order(tickets)) == [5, 4, 3, 2, 1]

def test_equal_timestamps_fall_back_to_id():
    tickets = [make_ticket(3, 0), make_ticket(1, 0), make_ticket(2, 0)]
    assert ids(order(tickets)) == [1, 2, 3]

def test_partitions_hold_for_random_input():
    rng = random.Random(7)
    tickets = [make_ticket(i, rng.randint(0, 50), prioritized=rng.random() < 0.3) for i in range(1, 40)]
    rng.shuffle(tickets)

    ordered = order(tickets)
    flags = [t.is_prioritized for t in ordered]
    assert flags == sorted(flags, reverse=True)

    for group in (True, False):
        part = [(t.created_at, t.id) for t in ordered if t.is_prioritized is group]
        assert part == sorted(part)

    assert ids(order(ordered)) == ids(ordered)
    assert ids(order(list(reversed(tickets)))) == ids(ordered)
    assert len(ordered) == len(tickets)

def test_called_ticket_is_not_displaced_by_prioritization():
    a = make_ticket(1, 0, called=5)
    b = make_ticket(2, 1)
    c = make_ticket(3, 2, prioritized=True)

    assert ids(order([a, b, c])) == [3, 1, 2]
    assert ids(serving_order([a, b, c])) == [1, 3, 2]

def test_most_recently_called_ticket_is_pinned():
    a = make_ticket(1, 0, called=5)
    b = make_ticket(2, 1, called=9)
    c = make_ticket(3, 2)
    assert ids(serving_order([a, b, c])) == [2, 1, 3]

def test_serving_order_without_calls_matches_order():
    tickets = [make_ticket(1, 3), make_ticket(2, 1, prioritized=True), make_ticket(3, 2)]
    assert ids(serving_order(tickets)) == ids(order(tickets))
