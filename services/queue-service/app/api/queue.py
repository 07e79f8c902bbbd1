from typing import Dict, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.core.counters import CounterAllocator
from app.core.db import get_db
from app.core.queue_service import QueueService
from app.schemas.officer import DisplayBoard
from app.schemas.ticket import TicketResponse, WaitingListResponse

router = APIRouter(prefix="/queue", tags=["Queue"])

# Static paths are registered before /{officer_id} so they are not shadowed.

@router.get("/counters", response_model=Dict[str, int])
def get_counters(db: Session = Depends(get_db)):
    """Next number each officer will hand out."""
    return CounterAllocator(db).snapshot()


@router.get("/display", response_model=DisplayBoard)
def get_display(db: Session = Depends(get_db)):
    """Public "now serving" board for online officers."""
    board = QueueService(db).display_board()
    return DisplayBoard.model_validate(board, from_attributes=True)


@router.post("/reconcile")
def reconcile_transfers(db: Session = Depends(get_db)):
    return {"repaired": QueueService(db).reconcile_transfers()}


@router.get("/{officer_id}", response_model=WaitingListResponse)
def list_waiting(officer_id: str, db: Session = Depends(get_db)):
    """
    The officer's waiting tickets in serving order: element 0 is being served,
    element 1 is next.
    """
    ordered = QueueService(db).list_waiting(officer_id)
    return WaitingListResponse.model_validate(
        {
            "officer_id": officer_id,
            "serving": ordered[0] if ordered else None,
            "next": ordered[1] if len(ordered) > 1 else None,
            "tickets": ordered,
        },
        from_attributes=True,
    )


@router.post("/{officer_id}/next", response_model=Optional[TicketResponse])
def call_next(officer_id: str, db: Session = Depends(get_db)):
    """Serve the ticket at the desk and call the next one."""
    return QueueService(db).call_next(officer_id)


@router.delete("/{officer_id}", status_code=status.HTTP_200_OK)
def reset_queue(officer_id: str, db: Session = Depends(get_db)):
    """Delete every ticket of the officer and restart numbering at 1."""
    deleted = QueueService(db).reset_officer_queue(officer_id)
    return {"officer_id": officer_id, "deleted": deleted}
