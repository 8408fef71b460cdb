from doujindesk.models.user import User
from doujindesk.models.ticket import TicketType, TicketPurchase, TicketValidation
from doujindesk.models.finance import Transaction, RefundRequest, ExchangeRate
from doujindesk.models.circle import Circle
from doujindesk.models.staff import StaffTask, Shift, Incident

__all__ = [
    "User",
    "TicketType", "TicketPurchase", "TicketValidation",
    "Transaction", "RefundRequest", "ExchangeRate",
    "Circle",
    "StaffTask", "Shift", "Incident",
]
