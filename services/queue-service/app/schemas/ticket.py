from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

class TicketStatusEnum(str, Enum):
    WAITING = "waiting"
    SERVED = "served"
    NO_SHOW = "no_show"
    TRANSFERRED = "transferred"
    CANCELLED = "cancelled"

class TicketEventResponse(BaseModel):
    id: int
    ticket_id: Optional[int] = None
    officer_id: Optional[str] = None
    actor: str = Field(..., description="Who performed the action.")
    action: str = Field(..., description="The event applied, e.g. serve, prioritize, transfer.")
    previous_state: Optional[str] = Field(None, description="Ticket status before the action.")
    new_state: Optional[str] = Field(None, description="Ticket status after the action.")
    reason: Optional[str] = None
    metadata_info: Optional[Dict[str, Any]] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class TicketMetadata(BaseModel):
    full_name: Optional[str] = Field(None, description="Visitor name, carried through unchanged.")
    college: Optional[str] = None
    organization: Optional[str] = None
    email: Optional[str] = None

class TicketCreate(TicketMetadata):
    officer_id: Optional[str] = Field(None, description="Queue directly for this officer.")
    counter_type: Optional[str] = Field(None, description="Route to the first online officer of this counter type.")

    @model_validator(mode="after")
    def require_destination(self):
        if not self.officer_id and not self.counter_type:
            raise ValueError("Either officer_id or counter_type is required.")
        return self

class TicketResponse(TicketMetadata):
    id: int
    officer_id: str
    number: int
    status: TicketStatusEnum
    is_prioritized: bool
    priority_timestamp: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    called_at: Optional[datetime] = None
    transferred_from_id: Optional[int] = None
    transferred_to_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class StatusChangeRequest(BaseModel):
    status: TicketStatusEnum = Field(..., description="Target status: served, no_show or cancelled.")
    reason: Optional[str] = Field(None, description="Why the status changed.")

class TransferRequest(BaseModel):
    target_officer_id: str = Field(..., description="The officer whose queue receives the ticket.")
    reason: Optional[str] = None

class WaitingListResponse(BaseModel):
    officer_id: str
    serving: Optional[TicketResponse] = None
    next: Optional[TicketResponse] = None
    tickets: List[TicketResponse] = []
