from sqlalchemy import Column, Integer, String, Float, Date, DateTime, UniqueConstraint
from app.core.db import Base, utcnow

class DailyQueueStat(Base):
    """
    Materialized per-officer daily aggregate. Derived from tickets only,
    never a source of truth: it can be dropped and recomputed at any time.
    """
    __tablename__ = "daily_queue_stats"
    __table_args__ = (UniqueConstraint("officer_id", "date", name="uq_daily_stat_officer_date"),)

    id = Column(Integer, primary_key=True, index=True)
    officer_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    total_count = Column(Integer, nullable=False, default=0)
    waiting_count = Column(Integer, nullable=False, default=0)
    served_count = Column(Integer, nullable=False, default=0)
    no_show_count = Column(Integer, nullable=False, default=0)
    transferred_count = Column(Integer, nullable=False, default=0)
    cancelled_count = Column(Integer, nullable=False, default=0)
    prioritized_count = Column(Integer, nullable=False, default=0)

    # seconds
    avg_waiting_time = Column(Float, nullable=False, default=0.0)
    avg_consultation_time = Column(Float, nullable=False, default=0.0)
    longest_waiting_time = Column(Float, nullable=False, default=0.0)
    shortest_waiting_time = Column(Float, nullable=False, default=0.0)

    computed_at = Column(DateTime, default=utcnow)
