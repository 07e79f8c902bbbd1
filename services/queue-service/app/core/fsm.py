import logging
from datetime import timedelta
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.db import utcnow
from app.core.errors import InvalidStateError, ValidationError
from app.models.ticket import Ticket, TicketEvent

logger = logging.getLogger(__name__)

class TicketStatus:
    WAITING = "waiting"
    SERVED = "served"
    NO_SHOW = "no_show"
    TRANSFERRED = "transferred"
    CANCELLED = "cancelled"

ALL_STATUSES = (
    TicketStatus.WAITING,
    TicketStatus.SERVED,
    TicketStatus.NO_SHOW,
    TicketStatus.TRANSFERRED,
    TicketStatus.CANCELLED,
)

class TicketEventType:
    SERVE = "serve"
    NO_SHOW = "no_show"
    CANCEL = "cancel"
    TRANSFER = "transfer"
    REVERT = "revert"
    ROLLBACK_TRANSFER = "transfer_rollback"


def _stamp(ticket: Ticket, now) -> Dict[str, Any]:
    ticket.updated_at = now
    return {}


def _leave_waiting(ticket: Ticket, now) -> Dict[str, Any]:
    # revert restores the flag from the audit event
    undo = {"was_prioritized": bool(ticket.is_prioritized)}
    ticket.updated_at = now
    ticket.is_prioritized = False
    return undo


class Transition(NamedTuple):
    next_state: str
    side_effects: Callable[[Ticket, Any], Dict[str, Any]]


TRANSITIONS: Dict[Tuple[str, str], Transition] = {
    (TicketStatus.WAITING, TicketEventType.SERVE): Transition(TicketStatus.SERVED, _leave_waiting),
    (TicketStatus.WAITING, TicketEventType.NO_SHOW): Transition(TicketStatus.NO_SHOW, _leave_waiting),
    (TicketStatus.WAITING, TicketEventType.CANCEL): Transition(TicketStatus.CANCELLED, _leave_waiting),
    (TicketStatus.WAITING, TicketEventType.TRANSFER): Transition(TicketStatus.TRANSFERRED, _leave_waiting),
    (TicketStatus.SERVED, TicketEventType.REVERT): Transition(TicketStatus.WAITING, _stamp),
    (TicketStatus.NO_SHOW, TicketEventType.REVERT): Transition(TicketStatus.WAITING, _stamp),
    (TicketStatus.CANCELLED, TicketEventType.REVERT): Transition(TicketStatus.WAITING, _stamp),
    # only used by transfer reconciliation
    (TicketStatus.TRANSFERRED, TicketEventType.ROLLBACK_TRANSFER): Transition(TicketStatus.WAITING, _stamp),
}

# Target status requested by a caller -> the forward event reaching it
STATUS_EVENTS = {
    TicketStatus.SERVED: TicketEventType.SERVE,
    TicketStatus.NO_SHOW: TicketEventType.NO_SHOW,
    TicketStatus.CANCELLED: TicketEventType.CANCEL,
    TicketStatus.TRANSFERRED: TicketEventType.TRANSFER,
}

class TicketStateMachine:
    def __init__(self, db: Session, actor: str = "system"):
        self.db = db
        self.actor = actor

    def validate_transition(self, current_state: str, event: str) -> Transition:
        transition = TRANSITIONS.get((current_state, event))
        if transition is None:
            raise InvalidStateError(
                f"Event '{event}' is not permitted from status '{current_state}'.",
                current_state=current_state,
                attempted_event=event,
            )
        return transition

    def transition(self, ticket: Ticket, new_status: str, reason: Optional[str] = None, metadata_info: Optional[Dict[str, Any]] = None) -> Ticket:
        """
        Move a waiting ticket to new_status and record the audit event.
        Does NOT commit. The caller must commit the transaction.
        """
        if ticket.status != TicketStatus.WAITING:
            raise InvalidStateError(
                f"Ticket {ticket.id} is '{ticket.status}'; only waiting tickets can change status.",
                current_state=ticket.status,
                attempted_state=new_status,
            )
        event = STATUS_EVENTS.get(new_status)
        if event is None:
            raise ValidationError(
                f"'{new_status}' is not a valid target status.",
                allowed=sorted(STATUS_EVENTS),
            )
        return self.apply(ticket, event, reason=reason, metadata_info=metadata_info)

    def revert(self, ticket: Ticket, reason: Optional[str] = None) -> Ticket:
        """Undo the last served/no_show/cancelled transition inside the undo window."""
        last = self.last_transition_event(ticket)
        now = utcnow()
        window = timedelta(seconds=settings.UNDO_WINDOW_SECONDS)
        if last is None or last.new_state != ticket.status or now - last.timestamp > window:
            raise InvalidStateError(
                f"Ticket {ticket.id} can no longer be reverted.",
                current_state=ticket.status,
                attempted_event=TicketEventType.REVERT,
            )

        self.apply(ticket, TicketEventType.REVERT, reason=reason or "Undo", now=now)
        undo = last.metadata_info or {}
        ticket.is_prioritized = bool(undo.get("was_prioritized", False))
        return ticket

    def apply(self, ticket: Ticket, event: str, reason: Optional[str] = None, metadata_info: Optional[Dict[str, Any]] = None, now=None) -> Ticket:
        transition = self.validate_transition(ticket.status, event)
        now = now or utcnow()

        previous_state = ticket.status
        ticket.status = transition.next_state
        undo = transition.side_effects(ticket, now)

        info = dict(metadata_info or {})
        info.update(undo)
        self.db.add(TicketEvent(
            ticket_id=ticket.id,
            officer_id=ticket.officer_id,
            actor=self.actor,
            action=event,
            previous_state=previous_state,
            new_state=transition.next_state,
            reason=reason,
            metadata_info=info,
            timestamp=now,
        ))
        logger.info("Ticket %s %s -> %s (%s)", ticket.id, previous_state, transition.next_state, event)
        return ticket

    def last_transition_event(self, ticket: Ticket) -> Optional[TicketEvent]:
        events = {e for (_, e) in TRANSITIONS}
        self.db.flush()
        return (
            self.db.query(TicketEvent)
            .filter(TicketEvent.ticket_id == ticket.id, TicketEvent.action.in_(events))
            .order_by(TicketEvent.timestamp.desc(), TicketEvent.id.desc())
            .first()
        )
