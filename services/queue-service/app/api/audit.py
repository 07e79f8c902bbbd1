from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.db import get_db
from app.models.ticket import TicketEvent
from app.schemas.ticket import TicketEventResponse

router = APIRouter(prefix="/audit", tags=["Audit"])

@router.get("", response_model=List[TicketEventResponse])
def get_audit_events(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ticket_id: Optional[int] = None,
    officer_id: Optional[str] = None,
    action: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Retrieve the immutable queue events with optional filtering, newest first.
    """
    query = db.query(TicketEvent)

    if ticket_id is not None:
        query = query.filter(TicketEvent.ticket_id == ticket_id)
    if officer_id is not None:
        query = query.filter(TicketEvent.officer_id == officer_id)
    if action is not None:
        query = query.filter(TicketEvent.action == action)

    return query.order_by(TicketEvent.timestamp.desc(), TicketEvent.id.desc()).offset(skip).limit(limit).all()
