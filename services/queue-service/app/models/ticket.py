from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON
from app.core.db import Base, utcnow

class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    officer_id = Column(String(64), ForeignKey("officers.id"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="waiting", index=True)

    is_prioritized = Column(Boolean, nullable=False, default=False)
    priority_timestamp = Column(DateTime, nullable=True)

    # Rank key for the waiting order; prioritization rewrites it.
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=True)
    called_at = Column(DateTime, nullable=True)

    transferred_from_id = Column(Integer, nullable=True)
    transferred_to_id = Column(Integer, nullable=True)

    full_name = Column(String(255), nullable=True)
    college = Column(String(255), nullable=True)
    organization = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<Ticket {self.id} officer={self.officer_id} #{self.number} {self.status}>"

class TicketEvent(Base):
    """
    Immutable audit records of every queue mutation.
    Kept without a foreign key so that queue resets do not erase history.
    """
    __tablename__ = "ticket_events"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, nullable=True, index=True)
    officer_id = Column(String(64), nullable=True, index=True)
    actor = Column(String(255), nullable=False, default="system")
    action = Column(String(50), nullable=False, index=True)
    previous_state = Column(String(20), nullable=True)
    new_state = Column(String(20), nullable=True)
    reason = Column(Text, nullable=True)
    metadata_info = Column(JSON, nullable=True)
    timestamp = Column(DateTime, default=utcnow, index=True)
