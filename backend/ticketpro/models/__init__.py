from ticketpro.models.user import User
from ticketpro.models.ticket import Ticket
from ticketpro.models.booking import Booking
from ticketpro.models.commission import CommissionRecord
from ticketpro.models.notification import Notification
from ticketpro.models.email_dispatch import EmailDispatch
from ticketpro.models.backup_log import BackupLog

__all__ = [
    "User", "Ticket", "Booking", "CommissionRecord",
    "Notification", "EmailDispatch", "BackupLog",
]
