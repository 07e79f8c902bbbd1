"""
Serving order for one officer's waiting tickets.

Prioritized tickets come first, then everyone else, each group by created_at.
The ticket an officer has already called to the desk keeps position 0
regardless of later prioritizations.
"""
from typing import Iterable, List, Optional
from app.models.ticket import Ticket

WAITING = "waiting"


def _sort_key(ticket: Ticket):
    # id is the stable tie-break for equal timestamps
    return (ticket.created_at, ticket.id if ticket.id is not None else 0)


def order(tickets: Iterable[Ticket]) -> List[Ticket]:
    waiting = [t for t in tickets if t.status == WAITING]
    prioritized = sorted((t for t in waiting if t.is_prioritized), key=_sort_key)
    normal = sorted((t for t in waiting if not t.is_prioritized), key=_sort_key)
    return prioritized + normal


def serving_order(tickets: Iterable[Ticket]) -> List[Ticket]:
    """order(), with the most recently called waiting ticket pinned in front."""
    waiting = [t for t in tickets if t.status == WAITING]
    called = [t for t in waiting if t.called_at is not None]
    if not called:
        return order(waiting)

    pinned = max(called, key=lambda t: (t.called_at, t.id or 0))
    return [pinned] + order(t for t in waiting if t is not pinned)


def currently_serving(tickets: Iterable[Ticket]) -> Optional[Ticket]:
    ordered = serving_order(tickets)
    return ordered[0] if ordered else None


def next_up(tickets: Iterable[Ticket]) -> Optional[Ticket]:
    ordered = serving_order(tickets)
    return ordered[1] if len(ordered) > 1 else None
