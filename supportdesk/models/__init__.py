"""
SupportDesk Models

Accounts (closed role variant) + Tickets + Messages
"""

from .common import utcnow
from .account import (
    # Enums
    AccountRole,
    InvitationStatus,

    # Accounts
    Account,
    AccountBase,
    BusinessAccount,
    CustomerAccount,
    EmployeeAccount,
    ACCOUNT_CLASSES,
    PROFILE_FIELDS,

    # Businesses
    BusinessProfile,
    BusinessEmployee,
    EmployeeInvitation,
)
from .ticket import (
    # Enums
    TicketStatus,
    TicketCategory,
    Priority,
    EscalationLevel,

    # Core models
    Ticket,
    TicketNote,
    TicketFeedback,
    TicketInvariantError,
)
from .message import (
    MessageStatus,
    Message,
    UnreadCounter,
)

__all__ = [
    "utcnow",
    "AccountRole", "InvitationStatus",
    "Account", "AccountBase", "BusinessAccount", "CustomerAccount", "EmployeeAccount",
    "ACCOUNT_CLASSES", "PROFILE_FIELDS",
    "BusinessProfile", "BusinessEmployee", "EmployeeInvitation",
    "TicketStatus", "TicketCategory", "Priority", "EscalationLevel",
    "Ticket", "TicketNote", "TicketFeedback", "TicketInvariantError",
    "MessageStatus", "Message", "UnreadCounter",
]
