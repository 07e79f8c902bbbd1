import logging
from typing import Dict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.db import utcnow
from app.core.errors import StoreUnavailableError
from app.models.officer import QueueCounter

logger = logging.getLogger(__name__)

class CounterAllocator:
    """
    Per-officer ticket number sequence. Numbers start at 1 and grow by one
    per allocation until the officer's queue is reset.
    Does NOT commit; allocation and ticket insert share the caller's transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _row(self, officer_id: str, lock: bool = False) -> QueueCounter:
        query = self.db.query(QueueCounter).filter(QueueCounter.officer_id == officer_id)
        if lock:
            # FOR UPDATE on backends that support it, ignored by SQLite
            query = query.with_for_update()
        return query.first()

    def allocate(self, officer_id: str) -> int:
        try:
            row = self._row(officer_id, lock=True)
            if row is None:
                row = QueueCounter(officer_id=officer_id, counter=1)
                self.db.add(row)
            number = row.counter or 1
            row.counter = number + 1
            self.db.flush()
        except SQLAlchemyError as exc:
            logger.error("Counter allocation failed for officer %s: %s", officer_id, exc)
            raise StoreUnavailableError("Could not allocate a ticket number.", officer_id=officer_id) from exc
        return number

    def reset(self, officer_id: str) -> None:
        try:
            row = self._row(officer_id, lock=True)
            if row is None:
                row = QueueCounter(officer_id=officer_id)
                self.db.add(row)
            row.counter = 1
            row.last_reset = utcnow()
            self.db.flush()
        except SQLAlchemyError as exc:
            logger.error("Counter reset failed for officer %s: %s", officer_id, exc)
            raise StoreUnavailableError("Could not reset the ticket counter.", officer_id=officer_id) from exc
        logger.info("Counter reset for officer %s", officer_id)

    def peek(self, officer_id: str) -> int:
        row = self._row(officer_id)
        return row.counter if row is not None else 1

    def snapshot(self) -> Dict[str, int]:
        rows = self.db.query(QueueCounter).order_by(QueueCounter.officer_id).all()
        return {row.officer_id: row.counter for row in rows}
