from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.core.db import get_db
from app.core.queue_service import QueueService
from app.schemas.officer import OfficerCreate, OfficerResponse, OfficerUpdate

router = APIRouter(prefix="/officers", tags=["Officers"])

@router.post("", response_model=OfficerResponse, status_code=status.HTTP_201_CREATED)
def create_officer(officer_in: OfficerCreate, db: Session = Depends(get_db)):
    return QueueService(db).create_officer(
        officer_id=officer_in.id,
        prefix=officer_in.prefix,
        name=officer_in.name,
        counter_type=officer_in.counter_type,
        online=officer_in.online,
        role=officer_in.role,
    )


@router.get("", response_model=List[OfficerResponse])
def list_officers(online: Optional[bool] = None, db: Session = Depends(get_db)):
    return QueueService(db).list_officers(online=online)


@router.get("/{officer_id}", response_model=OfficerResponse)
def get_officer(officer_id: str, db: Session = Depends(get_db)):
    return QueueService(db).get_officer(officer_id)


@router.patch("/{officer_id}", response_model=OfficerResponse)
def update_officer(officer_id: str, update_data: OfficerUpdate, db: Session = Depends(get_db)):
    return QueueService(db).update_officer(officer_id, **update_data.model_dump(exclude_unset=True))


@router.delete("/{officer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_officer(officer_id: str, db: Session = Depends(get_db)):
    """Refused with 409 while the officer still has waiting tickets."""
    QueueService(db).delete_officer(officer_id)
