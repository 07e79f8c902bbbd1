from datetime import date as date_type
from pydantic import BaseModel, ConfigDict

class DailyStatResponse(BaseModel):
    officer_id: str
    date: date_type
    total_count: int
    waiting_count: int
    served_count: int
    no_show_count: int
    transferred_count: int
    cancelled_count: int
    prioritized_count: int
    avg_waiting_time: float
    avg_consultation_time: float
    longest_waiting_time: float
    shortest_waiting_time: float

    model_config = ConfigDict(from_attributes=True)
