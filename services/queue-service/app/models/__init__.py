from .officer import Officer, QueueCounter
from .ticket import Ticket, TicketEvent
from .stats import DailyQueueStat

__all__ = ["Officer", "QueueCounter", "Ticket", "TicketEvent", "DailyQueueStat"]
