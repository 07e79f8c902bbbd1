"""
Daily per-officer queue statistics.

Everything here derives from ticket rows. The daily_queue_stats table is a
materialized view that writes invalidate; when it has nothing for a query
the figures are recomputed from the tickets with the same function, so both
paths produce identical counts.
"""
import logging
import time
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.db import utcnow
from app.core.errors import StoreUnavailableError, ValidationError
from app.core.fsm import TicketStatus
from app.models.officer import Officer
from app.models.stats import DailyQueueStat
from app.models.ticket import Ticket

logger = logging.getLogger(__name__)

STAT_FIELDS = (
    "total_count",
    "waiting_count",
    "served_count",
    "no_show_count",
    "transferred_count",
    "cancelled_count",
    "prioritized_count",
    "avg_waiting_time",
    "avg_consultation_time",
    "longest_waiting_time",
    "shortest_waiting_time",
)

STATUS_COUNT_FIELDS = {
    TicketStatus.WAITING: "waiting_count",
    TicketStatus.SERVED: "served_count",
    TicketStatus.NO_SHOW: "no_show_count",
    TicketStatus.TRANSFERRED: "transferred_count",
    TicketStatus.CANCELLED: "cancelled_count",
}


def _seconds(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None:
        return None
    return (end - start).total_seconds()


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_daily_stat(officer_id: str, day: date, tickets: Iterable[Ticket]) -> Dict:
    """Aggregate one officer's tickets for one day into a stats dict."""
    stat = {field: 0 for field in STATUS_COUNT_FIELDS.values()}
    stat["prioritized_count"] = 0
    waiting_times: List[float] = []
    consultation_times: List[float] = []

    for ticket in tickets:
        if ticket.officer_id != officer_id:
            continue
        field = STATUS_COUNT_FIELDS.get(ticket.status)
        if field is None:
            logger.warning("Ticket %s has unknown status %r, skipped", ticket.id, ticket.status)
            continue
        stat[field] += 1

        if ticket.status == TicketStatus.WAITING and ticket.is_prioritized:
            stat["prioritized_count"] += 1

        if ticket.status == TicketStatus.SERVED:
            waited = _seconds(ticket.created_at, ticket.updated_at)
            if waited is not None:
                waiting_times.append(waited)
            consulted = _seconds(ticket.called_at, ticket.updated_at)
            if consulted is not None:
                consultation_times.append(consulted)

    stat["total_count"] = sum(stat[f] for f in STATUS_COUNT_FIELDS.values())
    stat["avg_waiting_time"] = _mean(waiting_times)
    stat["avg_consultation_time"] = _mean(consultation_times)
    stat["longest_waiting_time"] = max(waiting_times) if waiting_times else 0.0
    stat["shortest_waiting_time"] = min(waiting_times) if waiting_times else 0.0
    stat["officer_id"] = officer_id
    stat["date"] = day
    return stat


def _day_bounds(day: date):
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def fetch_tickets(db: Session, start: datetime, end: datetime, officer_id: Optional[str] = None) -> List[Ticket]:
    """Read tickets created in [start, end), retrying a few times before giving up."""
    attempts = max(1, settings.STATS_FETCH_RETRIES)
    last_exception = None
    for attempt in range(attempts):
        try:
            query = db.query(Ticket).filter(Ticket.created_at >= start, Ticket.created_at < end)
            if officer_id is not None:
                query = query.filter(Ticket.officer_id == officer_id)
            return query.order_by(Ticket.created_at.asc()).all()
        except SQLAlchemyError as e:
            db.rollback()
            last_exception = e
            if attempt + 1 < attempts:
                logger.warning(
                    "Stats fetch failed on attempt %d/%d for %s..%s. Retrying in %.2fs...",
                    attempt + 1, attempts, start, end, settings.STATS_RETRY_DELAY_SECONDS
                )
                time.sleep(settings.STATS_RETRY_DELAY_SECONDS)

    logger.error("Failed to fetch stats after %d attempts: %s", attempts, last_exception)
    raise StoreUnavailableError(
        "Could not load tickets for statistics.",
        start=start.isoformat(),
        end=end.isoformat(),
    ) from last_exception


def fetch_tickets_for_day(db: Session, day: date, officer_id: Optional[str] = None) -> List[Ticket]:
    start, end = _day_bounds(day)
    return fetch_tickets(db, start, end, officer_id)


def aggregate(db: Session, officer_id: str, day: date) -> Dict:
    tickets = fetch_tickets_for_day(db, day, officer_id)
    return compute_daily_stat(officer_id, day, tickets)


def compute_from_tickets(db: Session, day: date, officer_id: Optional[str] = None) -> List[Dict]:
    """Fallback path: stats for every officer (or one) straight from ticket rows."""
    tickets = fetch_tickets_for_day(db, day, officer_id)
    if officer_id is not None:
        officer_ids = [officer_id]
    else:
        officer_ids = [o.id for o in db.query(Officer).order_by(Officer.id).all()]
    return [compute_daily_stat(oid, day, tickets) for oid in officer_ids]


def _row_to_dict(row: DailyQueueStat) -> Dict:
    data = {field: getattr(row, field) for field in STAT_FIELDS}
    data["officer_id"] = row.officer_id
    data["date"] = row.date
    return data


def refresh_daily_stats(db: Session, day: date, officer_id: Optional[str] = None) -> List[Dict]:
    """
    Recompute and store the materialized rows for the day.
    Does NOT commit.
    """
    stats = compute_from_tickets(db, day, officer_id)
    invalidate(db, day, officer_id)
    now = utcnow()
    for stat in stats:
        row = DailyQueueStat(officer_id=stat["officer_id"], date=day, computed_at=now)
        for field in STAT_FIELDS:
            setattr(row, field, stat[field])
        db.add(row)
    db.flush()
    logger.info("Materialized %d daily stat rows for %s", len(stats), day)
    return stats


def invalidate(db: Session, day: Optional[date], officer_id: Optional[str] = None) -> None:
    """Drop cached rows; day=None drops every day."""
    query = db.query(DailyQueueStat)
    if day is not None:
        query = query.filter(DailyQueueStat.date == day)
    if officer_id is not None:
        query = query.filter(DailyQueueStat.officer_id == officer_id)
    query.delete(synchronize_session=False)


def get_daily_stats(db: Session, day: date, officer_id: Optional[str] = None) -> List[Dict]:
    """Read the materialized view, recomputing from tickets when it is empty."""
    try:
        query = db.query(DailyQueueStat).filter(DailyQueueStat.date == day)
        if officer_id is not None:
            query = query.filter(DailyQueueStat.officer_id == officer_id)
        rows = query.order_by(DailyQueueStat.officer_id).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.info("Daily stats view unavailable (%s), calculating from tickets", e)
        rows = []

    if rows and officer_id is None:
        known = {o.id for o in db.query(Officer.id).all()}
        if not known.issubset({row.officer_id for row in rows}):
            # partially invalidated view
            rows = []

    if rows:
        return [_row_to_dict(row) for row in rows]

    logger.debug("Calculating daily stats from tickets for %s", day)
    return compute_from_tickets(db, day, officer_id)


PERIODS = ("day", "month", "year")


def _period_start(day: date, period: str) -> date:
    if period == "year":
        return day.replace(month=1, day=1)
    if period == "month":
        return day.replace(day=1)
    return day


def get_stats_history(db: Session, start: date, end: date, officer_id: Optional[str] = None, period: str = "day") -> List[Dict]:
    """
    Stats per officer for every day, month or year between start and end
    (both inclusive) that had tickets, oldest first. Each entry's date is the
    first day of its period.
    """
    if period not in PERIODS:
        raise ValidationError(f"Unknown period '{period}'.", period=period, allowed=list(PERIODS))
    if end < start:
        raise ValidationError("End date is before start date.", start=start.isoformat(), end=end.isoformat())

    tickets = fetch_tickets(db, _day_bounds(start)[0], _day_bounds(end)[1], officer_id)
    groups: Dict = {}
    for ticket in tickets:
        key = (_period_start(ticket.created_at.date(), period), ticket.officer_id)
        groups.setdefault(key, []).append(ticket)
    return [compute_daily_stat(oid, bucket, groups[(bucket, oid)]) for bucket, oid in sorted(groups)]
