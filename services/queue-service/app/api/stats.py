from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.db import get_db
from app.core.queue_service import QueueService
from app.schemas.stats import DailyStatResponse

router = APIRouter(prefix="/stats", tags=["Statistics"])

@router.get("/daily", response_model=List[DailyStatResponse])
def get_daily_stats(
    day: Optional[date] = Query(None, alias="date"),
    officer_id: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Per-officer counts and average durations for a day (default: today).
    Served from the materialized table when present, otherwise computed live.
    """
    return QueueService(db).get_daily_stats(day, officer_id)


@router.post("/daily/refresh", response_model=List[DailyStatResponse])
def refresh_daily_stats(day: Optional[date] = Query(None, alias="date"), db: Session = Depends(get_db)):
    return QueueService(db).refresh_daily_stats(day)


@router.get("/history", response_model=List[DailyStatResponse])
def get_stats_history(
    start: date,
    end: date,
    officer_id: Optional[str] = None,
    period: str = Query("day", description="day, month or year"),
    db: Session = Depends(get_db)
):
    """Stats over a date range grouped by day, month or year, oldest first."""
    return QueueService(db).get_stats_history(start, end, officer_id, period)
