from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from app.schemas.ticket import TicketResponse

class OfficerCreate(BaseModel):
    id: str = Field(..., description="Officer identifier, e.g. 'o1'.")
    prefix: str = Field(..., min_length=1, max_length=10, description="Display label shown before ticket numbers.")
    name: Optional[str] = None
    counter_type: Optional[str] = Field(None, description="Service category used to route new tickets.")
    online: bool = True
    role: Optional[str] = None

class OfficerUpdate(BaseModel):
    prefix: Optional[str] = Field(None, min_length=1, max_length=10)
    name: Optional[str] = None
    role: Optional[str] = None
    counter_type: Optional[str] = None
    online: Optional[bool] = None

class OfficerResponse(BaseModel):
    id: str
    prefix: str
    name: Optional[str] = None
    counter_type: Optional[str] = None
    online: bool
    role: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DisplayQueue(BaseModel):
    officer: OfficerResponse
    serving: Optional[TicketResponse] = None
    next: Optional[TicketResponse] = None
    waiting_count: int = 0

class DisplayBoard(BaseModel):
    queues: List[DisplayQueue] = []
    last_served: Optional[TicketResponse] = None
