"""
Moving a ticket up to just behind whoever is being served.

The waiting order sorts on created_at, so prioritizing rewrites that
timestamp to land one epsilon after the head of the queue (or after the
last ticket already prioritized, so prioritized tickets keep their own
arrival order) instead of keeping a separate rank column.
"""
import logging
from datetime import timedelta
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.db import utcnow
from app.core.errors import InvalidStateError
from app.core.fsm import TicketStatus
from app.core.ordering import serving_order
from app.models.ticket import Ticket, TicketEvent

logger = logging.getLogger(__name__)

PRIORITIZE = "prioritize"


def prioritize(db: Session, ticket: Ticket, actor: str = "system") -> Ticket:
    """
    Flag a waiting ticket as prioritized. Already prioritized tickets are
    left untouched. Does NOT commit.
    """
    if ticket.status != TicketStatus.WAITING:
        raise InvalidStateError(
            f"Ticket {ticket.id} is '{ticket.status}'; only waiting tickets can be prioritized.",
            current_state=ticket.status,
            attempted_event=PRIORITIZE,
        )
    if ticket.is_prioritized:
        logger.debug("Ticket %s already prioritized", ticket.id)
        return ticket

    waiting = (
        db.query(Ticket)
        .filter(Ticket.officer_id == ticket.officer_id, Ticket.status == TicketStatus.WAITING)
        .all()
    )
    ordered = serving_order(waiting)
    position = next((i for i, t in enumerate(ordered) if t.id == ticket.id), None)

    now = utcnow()
    previous_created_at = ticket.created_at
    if position is not None and position > 1:
        # behind the head and any ticket prioritized before this one
        anchor = max([ordered[0].created_at] + [t.created_at for t in ordered[1:position] if t.is_prioritized])
        ticket.created_at = anchor + timedelta(milliseconds=settings.PRIORITY_EPSILON_MS)

    ticket.is_prioritized = True
    ticket.priority_timestamp = now

    db.add(TicketEvent(
        ticket_id=ticket.id,
        officer_id=ticket.officer_id,
        actor=actor,
        action=PRIORITIZE,
        previous_state=ticket.status,
        new_state=ticket.status,
        reason="Prioritized",
        metadata_info={
            "position": position,
            "previous_created_at": previous_created_at.isoformat() if previous_created_at else None,
        },
        timestamp=now,
    ))
    logger.info("Ticket %s prioritized from position %s", ticket.id, position)
    return ticket
