import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from app.core import stats
from app.core.counters import CounterAllocator
from app.core.db import utcnow
from app.core.errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from app.core.fsm import TicketStateMachine, TicketStatus, TicketEventType
from app.core.ordering import serving_order
from app.core.prioritization import prioritize as prioritize_ticket
from app.models.officer import Officer, QueueCounter
from app.models.stats import DailyQueueStat
from app.models.ticket import Ticket, TicketEvent

logger = logging.getLogger(__name__)

METADATA_FIELDS = ("full_name", "college", "organization", "email")
OFFICER_FIELDS = ("prefix", "name", "role", "counter_type", "online")

class QueueService:
    """
    The operations the admin dashboard, intake form and public display call.
    Each public write runs in its own transaction: committed on success,
    rolled back on any error.
    """

    def __init__(self, db: Session, actor: str = "system"):
        self.db = db
        self.actor = actor
        self.counters = CounterAllocator(db)
        self.fsm = TicketStateMachine(db, actor=actor)

    @contextmanager
    def _unit_of_work(self):
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Write rejected by the store: %s", exc.orig)
            raise ConflictError("The change conflicts with existing data.") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Store failure: %s", exc)
            raise StoreUnavailableError("The ticket store is unavailable.") from exc
        except Exception:
            self.db.rollback()
            raise

    def _audit(self, action: str, ticket: Optional[Ticket] = None, officer_id: Optional[str] = None, reason: Optional[str] = None, metadata_info: Optional[Dict[str, Any]] = None, previous_state: Optional[str] = None):
        self.db.add(TicketEvent(
            ticket_id=ticket.id if ticket is not None else None,
            officer_id=officer_id or (ticket.officer_id if ticket is not None else None),
            actor=self.actor,
            action=action,
            previous_state=previous_state,
            new_state=ticket.status if ticket is not None else None,
            reason=reason,
            metadata_info=metadata_info or {},
            timestamp=utcnow(),
        ))

    def _invalidate(self, ticket: Ticket):
        if ticket.created_at is not None:
            stats.invalidate(self.db, ticket.created_at.date(), ticket.officer_id)

    # Officers

    def create_officer(self, officer_id: str, prefix: str, name: Optional[str] = None, counter_type: Optional[str] = None, online: bool = True, role: Optional[str] = None) -> Officer:
        if self.db.get(Officer, officer_id) is not None:
            raise ValidationError(f"Officer '{officer_id}' already exists.", officer_id=officer_id)
        with self._unit_of_work():
            officer = Officer(id=officer_id, prefix=prefix, name=name, counter_type=counter_type, online=online, role=role)
            self.db.add(officer)
            self.db.add(QueueCounter(officer_id=officer_id, counter=1))
        self.db.refresh(officer)
        return officer

    def get_officer(self, officer_id: str) -> Officer:
        officer = self.db.get(Officer, officer_id)
        if officer is None:
            raise NotFoundError(f"Officer '{officer_id}' not found.", officer_id=officer_id)
        return officer

    def list_officers(self, online: Optional[bool] = None) -> List[Officer]:
        query = self.db.query(Officer)
        if online is not None:
            query = query.filter(Officer.online == online)
        return query.order_by(Officer.prefix, Officer.id).all()

    def update_officer(self, officer_id: str, **changes: Any) -> Officer:
        """Edit prefix, name, role, counter_type or online. None values are left alone."""
        unknown = set(changes) - set(OFFICER_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update officer fields: {', '.join(sorted(unknown))}.", officer_id=officer_id)
        officer = self.get_officer(officer_id)
        changes = {field: value for field, value in changes.items() if value is not None}
        if "prefix" in changes and not changes["prefix"]:
            raise ValidationError("Officer prefix cannot be empty.", officer_id=officer_id)
        if not changes:
            return officer

        previous = {field: getattr(officer, field) for field in changes}
        with self._unit_of_work():
            for field, value in changes.items():
                setattr(officer, field, value)
            self._audit("officer_update", officer_id=officer_id, metadata_info={"previous": previous, "changes": changes})
        self.db.refresh(officer)
        logger.info("Officer %s updated: %s", officer_id, ", ".join(sorted(changes)))
        return officer

    def set_online(self, officer_id: str, online: bool) -> Officer:
        return self.update_officer(officer_id, online=online)

    def delete_officer(self, officer_id: str) -> None:
        """
        Remove an officer with its counter, cached stats and finished tickets.
        Refused while the officer still has waiting tickets; transfer them or
        reset the queue first.
        """
        officer = self.get_officer(officer_id)
        waiting = (
            self.db.query(Ticket)
            .filter(Ticket.officer_id == officer_id, Ticket.status == TicketStatus.WAITING)
            .count()
        )
        if waiting:
            raise ConflictError(
                f"Officer '{officer_id}' still has {waiting} waiting tickets.",
                officer_id=officer_id,
                waiting_count=waiting,
            )
        with self._unit_of_work():
            deleted = (
                self.db.query(Ticket)
                .filter(Ticket.officer_id == officer_id)
                .delete(synchronize_session=False)
            )
            self.db.query(QueueCounter).filter(QueueCounter.officer_id == officer_id).delete(synchronize_session=False)
            self.db.query(DailyQueueStat).filter(DailyQueueStat.officer_id == officer_id).delete(synchronize_session=False)
            self.db.delete(officer)
            self._audit("officer_delete", officer_id=officer_id, metadata_info={"deleted_tickets": deleted})
        self.db.expire_all()
        logger.info("Deleted officer %s (%d tickets removed)", officer_id, deleted)

    # Tickets

    def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found.", ticket_id=ticket_id)
        return ticket

    def route_officer(self, counter_type: str) -> Officer:
        """First online officer of the counter type, by prefix."""
        officer = (
            self.db.query(Officer)
            .filter(Officer.counter_type == counter_type, Officer.online.is_(True))
            .order_by(Officer.prefix, Officer.id)
            .first()
        )
        if officer is None:
            raise ValidationError("No available officers for this service", counter_type=counter_type)
        return officer

    def create_ticket(self, officer_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None, counter_type: Optional[str] = None) -> Ticket:
        if officer_id is None and not counter_type:
            raise ValidationError("Either officer_id or counter_type is required.")
        officer = self.get_officer(officer_id) if officer_id is not None else self.route_officer(counter_type)
        metadata = metadata or {}

        with self._unit_of_work():
            number = self.counters.allocate(officer.id)
            ticket = Ticket(
                officer_id=officer.id,
                number=number,
                status=TicketStatus.WAITING,
                is_prioritized=False,
                created_at=utcnow(),
                **{field: metadata.get(field) for field in METADATA_FIELDS},
            )
            self.db.add(ticket)
            self.db.flush()
            self._audit("create", ticket, reason=f"Issued {officer.prefix}{number}")
            self._invalidate(ticket)
        self.db.refresh(ticket)
        logger.info("Issued ticket %s%s (id=%s)", officer.prefix, number, ticket.id)
        return ticket

    def list_waiting(self, officer_id: str) -> List[Ticket]:
        self.get_officer(officer_id)
        try:
            waiting = (
                self.db.query(Ticket)
                .filter(Ticket.officer_id == officer_id, Ticket.status == TicketStatus.WAITING)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("The ticket store is unavailable.") from exc
        return serving_order(waiting)

    def transition(self, ticket_id: int, new_status: str, reason: Optional[str] = None) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        if new_status == TicketStatus.TRANSFERRED and ticket.status == TicketStatus.WAITING:
            raise ValidationError("Transfers need a target officer; use transfer().", ticket_id=ticket_id)
        with self._unit_of_work():
            self.fsm.transition(ticket, new_status, reason=reason)
            self._invalidate(ticket)
        self.db.refresh(ticket)
        return ticket

    def revert(self, ticket_id: int, reason: Optional[str] = None) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        with self._unit_of_work():
            self.fsm.revert(ticket, reason=reason)
            self._invalidate(ticket)
        self.db.refresh(ticket)
        return ticket

    def prioritize(self, ticket_id: int) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        with self._unit_of_work():
            self._invalidate(ticket)
            prioritize_ticket(self.db, ticket, actor=self.actor)
            self._invalidate(ticket)
        self.db.refresh(ticket)
        return ticket

    def transfer(self, ticket_id: int, target_officer_id: str, reason: Optional[str] = None) -> Ticket:
        """Move a waiting ticket to another officer's queue. Returns the destination ticket."""
        source = self.get_ticket(ticket_id)
        target = self.get_officer(target_officer_id)
        if source.officer_id == target.id:
            raise ValidationError("Cannot transfer a ticket to the officer it is already queued for.", ticket_id=ticket_id)

        with self._unit_of_work():
            self.fsm.transition(source, TicketStatus.TRANSFERRED, reason=reason, metadata_info={"target_officer_id": target.id})
            destination = self._complete_transfer(source, target)
        self.db.refresh(destination)
        return destination

    def _complete_transfer(self, source: Ticket, target: Officer) -> Ticket:
        number = self.counters.allocate(target.id)
        destination = Ticket(
            officer_id=target.id,
            number=number,
            status=TicketStatus.WAITING,
            is_prioritized=False,
            created_at=utcnow(),
            transferred_from_id=source.id,
            **{field: getattr(source, field) for field in METADATA_FIELDS},
        )
        self.db.add(destination)
        self.db.flush()
        source.transferred_to_id = destination.id
        self._audit(
            "transfer_in",
            destination,
            reason=f"Transferred from ticket {source.id}",
            metadata_info={"source_ticket_id": source.id, "source_officer_id": source.officer_id},
        )
        self._invalidate(source)
        self._invalidate(destination)
        logger.info("Ticket %s transferred to officer %s as ticket %s", source.id, target.id, destination.id)
        return destination

    def call_next(self, officer_id: str) -> Optional[Ticket]:
        """Serve whoever is at the desk and call the next ticket."""
        ordered = self.list_waiting(officer_id)
        with self._unit_of_work():
            if ordered and ordered[0].called_at is not None:
                current = ordered.pop(0)
                self.fsm.transition(current, TicketStatus.SERVED, reason="Next serving")
                self._invalidate(current)
            called = ordered[0] if ordered else None
            if called is not None:
                called.called_at = utcnow()
                self._audit("call", called, reason="Now serving", previous_state=called.status)
        if called is not None:
            self.db.refresh(called)
        return called

    def reset_officer_queue(self, officer_id: str) -> int:
        self.get_officer(officer_id)
        with self._unit_of_work():
            deleted = (
                self.db.query(Ticket)
                .filter(Ticket.officer_id == officer_id)
                .delete(synchronize_session=False)
            )
            self.counters.reset(officer_id)
            stats.invalidate(self.db, None, officer_id)
            self._audit("reset", officer_id=officer_id, reason="Queue reset", metadata_info={"deleted": deleted})
        self.db.expire_all()
        logger.info("Reset queue for officer %s (%d tickets deleted)", officer_id, deleted)
        return deleted

    def reconcile_transfers(self) -> int:
        """
        Repair transferred tickets that never got a destination row: complete
        the transfer if the target officer is known, otherwise put the ticket
        back in its original queue.
        """
        orphans = (
            self.db.query(Ticket)
            .filter(Ticket.status == TicketStatus.TRANSFERRED, Ticket.transferred_to_id.is_(None))
            .all()
        )
        repaired = 0
        for source in orphans:
            event = (
                self.db.query(TicketEvent)
                .filter(TicketEvent.ticket_id == source.id, TicketEvent.action == TicketEventType.TRANSFER)
                .order_by(TicketEvent.timestamp.desc(), TicketEvent.id.desc())
                .first()
            )
            target_id = (event.metadata_info or {}).get("target_officer_id") if event is not None else None
            target = self.db.get(Officer, target_id) if target_id else None
            with self._unit_of_work():
                if target is not None and target.id != source.officer_id:
                    self._complete_transfer(source, target)
                else:
                    self.fsm.apply(source, TicketEventType.ROLLBACK_TRANSFER, reason="Transfer target missing")
                    self._invalidate(source)
            repaired += 1
        if repaired:
            logger.warning("Reconciled %d incomplete transfers", repaired)
        return repaired

    # Read models

    def display_board(self) -> Dict[str, Any]:
        """Now serving / next per online officer, plus the latest served ticket."""
        board = []
        for officer in self.list_officers(online=True):
            ordered = self.list_waiting(officer.id)
            board.append({
                "officer": officer,
                "serving": ordered[0] if ordered else None,
                "next": ordered[1] if len(ordered) > 1 else None,
                "waiting_count": len(ordered),
            })
        last_served = (
            self.db.query(Ticket)
            .join(Officer, Officer.id == Ticket.officer_id)
            .filter(Ticket.status == TicketStatus.SERVED, Officer.online.is_(True))
            .order_by(Ticket.updated_at.desc(), Ticket.id.desc())
            .first()
        )
        return {"queues": board, "last_served": last_served}

    def get_daily_stats(self, day: Optional[date] = None, officer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if officer_id is not None:
            self.get_officer(officer_id)
        return stats.get_daily_stats(self.db, day or utcnow().date(), officer_id)

    def get_stats_history(self, start: date, end: date, officer_id: Optional[str] = None, period: str = "day") -> List[Dict[str, Any]]:
        if officer_id is not None:
            self.get_officer(officer_id)
        return stats.get_stats_history(self.db, start, end, officer_id, period)

    def refresh_daily_stats(self, day: Optional[date] = None) -> List[Dict[str, Any]]:
        with self._unit_of_work():
            result = stats.refresh_daily_stats(self.db, day or utcnow().date())
        return result
