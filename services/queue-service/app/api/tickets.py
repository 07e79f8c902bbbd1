from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.core.db import get_db
from app.core.queue_service import QueueService
from app.schemas.ticket import (
    TicketCreate,
    TicketResponse,
    StatusChangeRequest,
    TransferRequest,
)

router = APIRouter(prefix="/tickets", tags=["Tickets"])

@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(ticket_in: TicketCreate, db: Session = Depends(get_db)):
    """
    Issue a queue number. Either queues for a given officer or routes by
    counter_type to the first online officer offering that service.
    """
    service = QueueService(db)
    return service.create_ticket(
        officer_id=ticket_in.officer_id,
        counter_type=ticket_in.counter_type,
        metadata=ticket_in.model_dump(include={"full_name", "college", "organization", "email"}),
    )


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: int, db: Session = Depends(get_db)):
    return QueueService(db).get_ticket(ticket_id)


@router.post("/{ticket_id}/status", response_model=TicketResponse)
def change_status(ticket_id: int, request: StatusChangeRequest, db: Session = Depends(get_db)):
    """
    Mark a waiting ticket served, no_show or cancelled.
    Any other current status is rejected with 409.
    """
    return QueueService(db).transition(ticket_id, request.status.value, reason=request.reason)


@router.post("/{ticket_id}/revert", response_model=TicketResponse)
def revert_status(ticket_id: int, db: Session = Depends(get_db)):
    """Undo the last status change while the undo window is still open."""
    return QueueService(db).revert(ticket_id)


@router.post("/{ticket_id}/prioritize", response_model=TicketResponse)
def prioritize_ticket(ticket_id: int, db: Session = Depends(get_db)):
    return QueueService(db).prioritize(ticket_id)


@router.post("/{ticket_id}/transfer", response_model=TicketResponse)
def transfer_ticket(ticket_id: int, request: TransferRequest, db: Session = Depends(get_db)):
    """
    Move a waiting ticket to another officer's queue.
    Returns the new ticket now waiting under the target officer.
    """
    return QueueService(db).transfer(ticket_id, request.target_officer_id, reason=request.reason)
