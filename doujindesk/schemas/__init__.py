from doujindesk.schemas.user import UserCreate, UserResponse, UserLogin, Token
from doujindesk.schemas.ticket import (
    TicketTypeCreate, TicketTypeUpdate, TicketTypeResponse,
    QuoteRequest, QuoteResponse, SalesStatsResponse,
)
from doujindesk.schemas.purchase import (
    PurchaseCreate, PurchaseUpdate, PurchaseResponse,
    ScanRequest, SyncRequest, ValidationResponse,
)
from doujindesk.schemas.finance import TransactionCreate, TransactionResponse, FinancialSummary
from doujindesk.schemas.circle import CircleCreate, CircleReview, CircleResponse, CircleStats
from doujindesk.schemas.staff import (
    TaskCreate, TaskUpdate, TaskAssign, TaskComplete, TaskResponse,
    ShiftCreate, ShiftUpdate, ShiftClock, ShiftClose, ShiftResponse,
    IncidentCreate, IncidentAssign, IncidentResolve, IncidentResponse,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "TicketTypeCreate", "TicketTypeUpdate", "TicketTypeResponse",
    "QuoteRequest", "QuoteResponse", "SalesStatsResponse",
    "PurchaseCreate", "PurchaseUpdate", "PurchaseResponse",
    "ScanRequest", "SyncRequest", "ValidationResponse",
    "TransactionCreate", "TransactionResponse", "FinancialSummary",
    "CircleCreate", "CircleReview", "CircleResponse", "CircleStats",
    "TaskCreate", "TaskUpdate", "TaskAssign", "TaskComplete", "TaskResponse",
    "ShiftCreate", "ShiftUpdate", "ShiftClock", "ShiftClose", "ShiftResponse",
    "IncidentCreate", "IncidentAssign", "IncidentResolve", "IncidentResponse",
]
