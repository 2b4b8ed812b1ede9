"""Wires one store to every service."""

from typing import Optional

from ..repositories import MemoryStore
from .analytics import AnalyticsService
from .directory import DirectoryService
from .feedback import FeedbackService
from .invitation import InvitationService
from .lifecycle import TicketLifecycleService
from .messaging import MessagingService
from .notes import NoteService


class ServiceContainer:

    def __init__(self, store: Optional[MemoryStore] = None):
        self.store = store or MemoryStore()

        self.directory = DirectoryService(
            self.store.accounts,
            self.store.businesses,
            self.store.memberships,
        )
        self.tickets = TicketLifecycleService(self.store.tickets, self.directory)
        self.invitations = InvitationService(self.store.invitations, self.directory)
        self.messaging = MessagingService(
            self.store.messages,
            self.store.unread,
            self.store.tickets,
            self.directory,
        )
        self.notes = NoteService(self.store.notes, self.store.tickets, self.directory)
        self.feedback = FeedbackService(self.store.feedback, self.store.tickets, self.directory)
        self.analytics = AnalyticsService(self.store.tickets, self.directory)
