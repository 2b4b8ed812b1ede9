"""
SupportDesk Services

Business logic for the ticket lifecycle and everything around it.
"""

from .directory import DirectoryService
from .lifecycle import TicketLifecycleService, LifecycleGuard
from .invitation import InvitationService
from .messaging import MessagingService
from .notes import NoteService
from .feedback import FeedbackService, FeedbackSummary
from .analytics import AnalyticsService, TicketAnalytics
from .container import ServiceContainer

__all__ = [
    # Accounts, businesses, memberships
    "DirectoryService",

    # Ticket state machine
    "TicketLifecycleService", "LifecycleGuard",

    # Employee invitations
    "InvitationService",

    # Chat + delivery status
    "MessagingService",

    # Notes and feedback
    "NoteService",
    "FeedbackService", "FeedbackSummary",

    # Dashboards
    "AnalyticsService", "TicketAnalytics",

    "ServiceContainer",
]
