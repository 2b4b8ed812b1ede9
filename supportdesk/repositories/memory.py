"""
SupportDesk In-Memory Store

Async repositories backing the services. Rows are copied on the way in and
on the way out, so callers never share state with the store and must save
explicitly, the same contract a relational store gives.

Each repository serialises its writes behind one asyncio.Lock. Operations
that must be atomic at the storage layer (claim, versioned update,
one-feedback-per-ticket, forward-only message status) check and write
inside a single critical section.
"""

import asyncio
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, TypeVar
from uuid import UUID

from pydantic import BaseModel

from ..errors import ConflictError, NotFoundError
from ..models import (
    AccountBase,
    AccountRole,
    BusinessEmployee,
    BusinessProfile,
    EmployeeInvitation,
    InvitationStatus,
    Message,
    MessageStatus,
    Priority,
    Ticket,
    TicketCategory,
    TicketFeedback,
    TicketNote,
    TicketStatus,
    UnreadCounter,
    utcnow,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _copy(row: ModelT) -> ModelT:
    return row.model_copy(deep=True)


class _MemoryRepository:
    """Id-keyed rows plus one write lock."""

    entity_name = "Record"

    def __init__(self):
        self._rows: Dict[UUID, BaseModel] = {}
        self._lock = asyncio.Lock()

    async def find(self, row_id: UUID):
        row = self._rows.get(row_id)
        return _copy(row) if row is not None else None

    async def get(self, row_id: UUID):
        row = self._rows.get(row_id)
        if row is None:
            raise NotFoundError(f"{self.entity_name} {row_id} not found")
        return _copy(row)

    def _select(self, predicate) -> list:
        return [_copy(row) for row in self._rows.values() if predicate(row)]


class _MutableRepository(_MemoryRepository):
    """Rows that may be rewritten in place once they exist."""

    async def save(self, row):
        async with self._lock:
            if row.id not in self._rows:
                raise NotFoundError(f"{self.entity_name} {row.id} not found")
            self._rows[row.id] = _copy(row)
        return _copy(row)


# =============================================================================
# ACCOUNTS & BUSINESSES
# =============================================================================

class AccountRepository(_MutableRepository):
    entity_name = "Account"

    async def add(self, account: AccountBase) -> AccountBase:
        """Insert, enforcing username uniqueness (case-insensitive)."""
        handle = account.username.lower()
        async with self._lock:
            if any(row.username.lower() == handle for row in self._rows.values()):
                raise ConflictError(f"Username {account.username!r} is already taken")
            self._rows[account.id] = _copy(account)
        return _copy(account)

    async def find_by_username(self, username: str) -> Optional[AccountBase]:
        handle = username.strip().lower()
        for row in self._rows.values():
            if row.username.lower() == handle:
                return _copy(row)
        return None

    async def list_by_role(self, role: AccountRole) -> List[AccountBase]:
        rows = self._select(lambda row: row.role == role)
        return sorted(rows, key=lambda row: row.username.lower())


class BusinessProfileRepository(_MutableRepository):
    entity_name = "Business"

    async def add(self, profile: BusinessProfile) -> BusinessProfile:
        """Insert, enforcing one profile per owning account."""
        async with self._lock:
            if any(row.owner_id == profile.owner_id for row in self._rows.values()):
                raise ConflictError("Business account already has a profile")
            self._rows[profile.id] = _copy(profile)
        return _copy(profile)

    async def find_by_owner(self, owner_id: UUID) -> Optional[BusinessProfile]:
        for row in self._rows.values():
            if row.owner_id == owner_id:
                return _copy(row)
        return None

    async def list_all(self) -> List[BusinessProfile]:
        return sorted(self._select(lambda row: True), key=lambda row: row.name.lower())


class MembershipRepository(_MutableRepository):
    entity_name = "Membership"

    async def add(self, membership: BusinessEmployee) -> BusinessEmployee:
        """Insert, enforcing (business, employee) uniqueness."""
        async with self._lock:
            if self._find_pair(membership.business_id, membership.employee_id):
                raise ConflictError("Employee already belongs to this business")
            self._rows[membership.id] = _copy(membership)
        return _copy(membership)

    async def activate(self, business_id: UUID, employee_id: UUID) -> BusinessEmployee:
        """Create the membership, or flip an existing one back to active."""
        async with self._lock:
            row = self._find_pair(business_id, employee_id)
            if row is None:
                row = BusinessEmployee(business_id=business_id, employee_id=employee_id)
                self._rows[row.id] = row
            else:
                row.is_active = True
            return _copy(row)

    async def find_pair(self, business_id: UUID, employee_id: UUID) -> Optional[BusinessEmployee]:
        row = self._find_pair(business_id, employee_id)
        return _copy(row) if row is not None else None

    async def list_for_business(self, business_id: UUID, active_only: bool = False) -> List[BusinessEmployee]:
        return self._select(
            lambda row: row.business_id == business_id and (row.is_active or not active_only)
        )

    async def list_for_employee(self, employee_id: UUID, active_only: bool = False) -> List[BusinessEmployee]:
        return self._select(
            lambda row: row.employee_id == employee_id and (row.is_active or not active_only)
        )

    def _find_pair(self, business_id: UUID, employee_id: UUID) -> Optional[BusinessEmployee]:
        for row in self._rows.values():
            if row.business_id == business_id and row.employee_id == employee_id:
                return row
        return None


class InvitationRepository(_MemoryRepository):
    entity_name = "Invitation"

    async def add_if_no_pending(self, invitation: EmployeeInvitation) -> Optional[EmployeeInvitation]:
        """Insert unless the pair already has a pending invitation. None on clash."""
        async with self._lock:
            for row in self._rows.values():
                if (
                    row.business_id == invitation.business_id
                    and row.employee_id == invitation.employee_id
                    and row.status == InvitationStatus.PENDING
                ):
                    return None
            self._rows[invitation.id] = _copy(invitation)
        return _copy(invitation)

    async def resolve_if_pending(
        self,
        invitation_id: UUID,
        status: InvitationStatus,
        at: datetime,
    ) -> Optional[EmployeeInvitation]:
        """Move pending -> status atomically. None if no longer pending."""
        async with self._lock:
            row = self._rows.get(invitation_id)
            if row is None:
                raise NotFoundError(f"Invitation {invitation_id} not found")
            if row.status != InvitationStatus.PENDING:
                return None
            row.status = status
            row.responded_at = at
            row.updated_at = at
            return _copy(row)

    async def list_for_employee(
        self,
        employee_id: UUID,
        status: Optional[InvitationStatus] = None,
    ) -> List[EmployeeInvitation]:
        rows = self._select(
            lambda row: row.employee_id == employee_id and (status is None or row.status == status)
        )
        return sorted(rows, key=lambda row: row.created_at)

    async def list_for_business(
        self,
        business_id: UUID,
        status: Optional[InvitationStatus] = None,
    ) -> List[EmployeeInvitation]:
        rows = self._select(
            lambda row: row.business_id == business_id and (status is None or row.status == status)
        )
        return sorted(rows, key=lambda row: row.created_at)


# =============================================================================
# TICKETS
# =============================================================================

class TicketRepository(_MemoryRepository):
    entity_name = "Ticket"

    async def add(self, ticket: Ticket) -> Ticket:
        async with self._lock:
            self._rows[ticket.id] = _copy(ticket)
        return _copy(ticket)

    async def claim_if_unclaimed(
        self,
        ticket_id: UUID,
        claimant_id: UUID,
        at: datetime,
    ) -> Optional[Ticket]:
        """
        Compare-and-set claim.

        Equivalent to
        UPDATE tickets SET claimed_by_id = :claimant, status = 'in_progress'
        WHERE id = :id AND status = 'open' AND claimed_by_id IS NULL.
        Returns None when the row no longer matches.
        """
        async with self._lock:
            row = self._rows.get(ticket_id)
            if row is None:
                raise NotFoundError(f"Ticket {ticket_id} not found")
            if row.status != TicketStatus.OPEN or row.claimed_by_id is not None:
                return None
            claimed = row.model_copy(update={
                "claimed_by_id": claimant_id,
                "claimed_at": at,
                "status": TicketStatus.IN_PROGRESS,
                "updated_at": at,
                "version": row.version + 1,
            })
            claimed.check_invariants()
            self._rows[ticket_id] = claimed
            return _copy(claimed)

    async def update(self, ticket: Ticket, expected_version: int) -> Ticket:
        """
        Optimistic write: succeeds only if nobody wrote since `expected_version`.

        Bumps the version on success.
        """
        ticket.check_invariants()
        async with self._lock:
            row = self._rows.get(ticket.id)
            if row is None:
                raise NotFoundError(f"Ticket {ticket.id} not found")
            if row.version != expected_version:
                raise ConflictError(
                    f"Ticket {ticket.id} was modified concurrently "
                    f"(expected version {expected_version}, found {row.version})"
                )
            if row.customer_id != ticket.customer_id or row.business_id != ticket.business_id:
                raise ConflictError("Ticket customer and business cannot change")
            stored = ticket.model_copy(update={"version": expected_version + 1})
            self._rows[ticket.id] = stored
            return _copy(stored)

    async def list(
        self,
        customer_id: Optional[UUID] = None,
        business_ids: Optional[Iterable[UUID]] = None,
        status: Optional[TicketStatus] = None,
        category: Optional[TicketCategory] = None,
        priority: Optional[Priority] = None,
        claimed_by_id: Optional[UUID] = None,
        unclaimed: bool = False,
        search: Optional[str] = None,
    ) -> List[Ticket]:
        """
        Tickets matching every given filter, oldest first.

        `search` is a case-insensitive substring of title or description.
        """
        business_ids = set(business_ids) if business_ids is not None else None
        needle = search.lower() if search else None

        def matches(row: Ticket) -> bool:
            if customer_id is not None and row.customer_id != customer_id:
                return False
            if business_ids is not None and row.business_id not in business_ids:
                return False
            if status is not None and row.status != status:
                return False
            if category is not None and row.category != category:
                return False
            if priority is not None and row.priority != priority:
                return False
            if claimed_by_id is not None and row.claimed_by_id != claimed_by_id:
                return False
            if unclaimed and row.claimed_by_id is not None:
                return False
            if needle and needle not in row.title.lower() and needle not in row.description.lower():
                return False
            return True

        return sorted(self._select(matches), key=lambda row: row.created_at)


class NoteRepository(_MemoryRepository):
    """Append-only: rows are never rewritten or deleted."""
    entity_name = "Note"

    async def add(self, note: TicketNote) -> TicketNote:
        async with self._lock:
            self._rows[note.id] = note
        return note

    async def list_for_ticket(self, ticket_id: UUID) -> List[TicketNote]:
        rows = [row for row in self._rows.values() if row.ticket_id == ticket_id]
        return sorted(rows, key=lambda row: row.created_at)


class FeedbackRepository(_MemoryRepository):
    entity_name = "Feedback"

    async def add_if_absent(self, feedback: TicketFeedback) -> Optional[TicketFeedback]:
        """Insert unless the ticket already has feedback. None on clash."""
        async with self._lock:
            if any(row.ticket_id == feedback.ticket_id for row in self._rows.values()):
                return None
            self._rows[feedback.id] = feedback
        return feedback

    async def find_for_ticket(self, ticket_id: UUID) -> Optional[TicketFeedback]:
        for row in self._rows.values():
            if row.ticket_id == ticket_id:
                return row
        return None

    async def list_for_tickets(self, ticket_ids: Iterable[UUID]) -> List[TicketFeedback]:
        wanted = set(ticket_ids)
        rows = [row for row in self._rows.values() if row.ticket_id in wanted]
        return sorted(rows, key=lambda row: row.created_at)


# =============================================================================
# MESSAGES
# =============================================================================

def _conversation_key(a: UUID, b: UUID, ticket_id: Optional[UUID]) -> Tuple:
    return (frozenset((a, b)), ticket_id)


class MessageRepository(_MemoryRepository):
    entity_name = "Message"

    async def add(self, message: Message) -> Message:
        """
        Insert a new message.

        Marks it as the chat initiator when it is the first message of its
        conversation, decided under the same lock as the insert.
        """
        key = _conversation_key(message.sender_id, message.receiver_id, message.ticket_id)
        async with self._lock:
            started = any(
                _conversation_key(row.sender_id, row.receiver_id, row.ticket_id) == key
                for row in self._rows.values()
            )
            if not started:
                message = message.model_copy(update={
                    "chat_initiator": True,
                    "initiated_at": message.sent_at,
                })
            self._rows[message.id] = _copy(message)
        return _copy(message)

    async def advance_status(
        self,
        message_id: UUID,
        to_status: MessageStatus,
        at: datetime,
    ) -> Tuple[Message, bool]:
        """
        Move status forward, never back.

        Returns (message, changed). Asking for a status at or below the
        current one leaves the row untouched.
        """
        async with self._lock:
            row = self._rows.get(message_id)
            if row is None:
                raise NotFoundError(f"Message {message_id} not found")
            if to_status.rank <= row.status.rank:
                return _copy(row), False
            row.status = to_status
            if row.delivered_at is None:
                row.delivered_at = at
            if to_status == MessageStatus.READ:
                row.read_at = at
            return _copy(row), True

    async def deliver_pending(self, receiver_id: UUID, at: datetime) -> List[Message]:
        """Move every `sent` message addressed to receiver to `delivered`."""
        delivered = []
        async with self._lock:
            for row in self._rows.values():
                if row.receiver_id == receiver_id and row.status == MessageStatus.SENT:
                    row.status = MessageStatus.DELIVERED
                    row.delivered_at = at
                    delivered.append(_copy(row))
        return sorted(delivered, key=lambda row: row.sent_at)

    async def list_conversation(
        self,
        account_id: UUID,
        other_id: UUID,
        ticket_id: Optional[UUID] = None,
    ) -> List[Message]:
        pair = frozenset((account_id, other_id))
        rows = self._select(
            lambda row: frozenset((row.sender_id, row.receiver_id)) == pair
            and (ticket_id is None or row.ticket_id == ticket_id)
        )
        return sorted(rows, key=lambda row: row.sent_at)


class UnreadRepository:
    """Unread counters keyed by (account, ticket)."""

    def __init__(self):
        self._counters: Dict[Tuple[UUID, Optional[UUID]], UnreadCounter] = {}
        self._lock = asyncio.Lock()

    async def increment(self, account_id: UUID, ticket_id: Optional[UUID]) -> UnreadCounter:
        async with self._lock:
            counter = self._counters.setdefault(
                (account_id, ticket_id),
                UnreadCounter(account_id=account_id, ticket_id=ticket_id),
            )
            counter.count += 1
            counter.updated_at = utcnow()
            return _copy(counter)

    async def decrement(self, account_id: UUID, ticket_id: Optional[UUID]) -> Optional[UnreadCounter]:
        async with self._lock:
            counter = self._counters.get((account_id, ticket_id))
            if counter is None:
                return None
            counter.count = max(0, counter.count - 1)
            counter.updated_at = utcnow()
            return _copy(counter)

    async def list_for_account(self, account_id: UUID) -> List[UnreadCounter]:
        return [
            _copy(counter)
            for (owner, _), counter in self._counters.items()
            if owner == account_id and counter.count > 0
        ]


# =============================================================================
# STORE
# =============================================================================

class MemoryStore:
    """All repositories for one process."""

    def __init__(self):
        self.accounts = AccountRepository()
        self.businesses = BusinessProfileRepository()
        self.memberships = MembershipRepository()
        self.invitations = InvitationRepository()
        self.tickets = TicketRepository()
        self.notes = NoteRepository()
        self.feedback = FeedbackRepository()
        self.messages = MessageRepository()
        self.unread = UnreadRepository()
