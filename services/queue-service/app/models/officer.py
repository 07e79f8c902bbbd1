from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from app.core.db import Base, utcnow

class Officer(Base):
    __tablename__ = "officers"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    prefix = Column(String(10), nullable=False)
    online = Column(Boolean, nullable=False, default=True)
    counter_type = Column(String(100), nullable=True, index=True)
    role = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utcnow)

class QueueCounter(Base):
    """Next ticket number per officer. Reset back to 1 with the queue."""
    __tablename__ = "queue_counters"

    officer_id = Column(String(64), ForeignKey("officers.id", ondelete="CASCADE"), primary_key=True)
    counter = Column(Integer, nullable=False, default=1)
    last_reset = Column(DateTime, nullable=True)
