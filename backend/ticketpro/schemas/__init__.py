from ticketpro.schemas.user import UserCreate, UserResponse, UserLogin, Token
from ticketpro.schemas.ticket import TicketCreate, TicketResponse, TicketListResponse
from ticketpro.schemas.booking import BookingCreate, BookingResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "TicketCreate", "TicketResponse", "TicketListResponse",
    "BookingCreate", "BookingResponse",
]
