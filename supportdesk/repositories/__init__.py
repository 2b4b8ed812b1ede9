"""
SupportDesk Repositories

Storage boundary for the services. The in-memory store stands in for the
managed relational store; atomic operations mirror conditional UPDATEs.
"""

from .memory import (
    AccountRepository,
    BusinessProfileRepository,
    MembershipRepository,
    InvitationRepository,
    TicketRepository,
    NoteRepository,
    FeedbackRepository,
    MessageRepository,
    UnreadRepository,
    MemoryStore,
)

__all__ = [
    "AccountRepository", "BusinessProfileRepository", "MembershipRepository",
    "InvitationRepository", "TicketRepository", "NoteRepository",
    "FeedbackRepository", "MessageRepository", "UnreadRepository",
    "MemoryStore",
]
