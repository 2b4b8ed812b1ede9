"""
SupportDesk Ticket Model

Core principles:
1. Ticket = Customer request for help, addressed to one business
2. Customer and business are fixed at creation (IMMUTABLE)
3. Claim is first-come: exactly one claimant wins an open ticket
4. Escalation raises urgency, it does not hand the ticket off
5. Notes are append-only, feedback is one-per-ticket after resolution
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from .common import utcnow


# =============================================================================
# ENUMS
# =============================================================================

class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"  # Terminal


class TicketCategory(str, Enum):
    TECHNICAL = "technical"
    BILLING = "billing"
    FEATURE_REQUEST = "feature_request"
    GENERAL_INQUIRY = "general_inquiry"
    BUG_REPORT = "bug_report"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class EscalationLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return ESCALATION_RANK[self]


ESCALATION_RANK = {
    EscalationLevel.NONE: 0,
    EscalationLevel.LOW: 1,
    EscalationLevel.MEDIUM: 2,
    EscalationLevel.HIGH: 3,
}


class TicketInvariantError(ValueError):
    """Raised when a ticket's fields contradict its lifecycle state."""


# =============================================================================
# CORE MODELS
# =============================================================================

class Ticket(BaseModel):
    """
    The core ticket entity.

    Status and escalation are independent dimensions:
    status open -> in_progress -> resolved, escalation none < low < medium < high.
    `version` increments on every stored transition.
    """
    id: UUID = Field(default_factory=uuid4)

    # Core properties
    title: str
    description: str
    status: TicketStatus = TicketStatus.OPEN
    category: TicketCategory = TicketCategory.GENERAL_INQUIRY
    priority: Priority = Priority.MEDIUM

    # Participants (set at creation, never reassigned)
    customer_id: UUID = Field(..., frozen=True)
    business_id: UUID = Field(..., frozen=True)

    # Claim
    claimed_by_id: Optional[UUID] = None
    claimed_at: Optional[datetime] = None
    previous_assignee_id: Optional[UUID] = None

    # Escalation
    escalation_level: EscalationLevel = EscalationLevel.NONE
    escalation_reason: Optional[str] = None
    escalated_by_id: Optional[UUID] = None
    escalated_at: Optional[datetime] = None

    # Resolution
    resolved_by_id: Optional[UUID] = None
    resolved_at: Optional[datetime] = None

    version: int = 0

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, value: str, info) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{info.field_name.capitalize()} is required")
        return value

    @model_validator(mode="after")
    def _lifecycle_consistent(self) -> "Ticket":
        self.check_invariants()
        return self

    def check_invariants(self) -> None:
        if self.status == TicketStatus.OPEN:
            if self.claimed_by_id is not None:
                raise TicketInvariantError("Open ticket cannot have a claimant")
            if self.escalation_level != EscalationLevel.NONE:
                raise TicketInvariantError("Open ticket cannot be escalated")
        elif self.claimed_by_id is None:
            raise TicketInvariantError(f"Ticket in {self.status.value} needs a claimant")

        escalated = self.escalation_level != EscalationLevel.NONE
        if escalated != (self.escalated_at is not None):
            raise TicketInvariantError(
                "escalated_at must be set exactly when escalation_level is not none"
            )

        if (self.status == TicketStatus.RESOLVED) != (self.resolved_at is not None):
            raise TicketInvariantError(
                "resolved_at must be set exactly when status is resolved"
            )

    @property
    def is_open(self) -> bool:
        return self.status == TicketStatus.OPEN

    @property
    def is_resolved(self) -> bool:
        return self.status == TicketStatus.RESOLVED

    @property
    def is_escalated(self) -> bool:
        return self.escalation_level != EscalationLevel.NONE


class TicketNote(BaseModel):
    """
    Internal note left by a business on a ticket.

    Append-only: notes are never edited or deleted.
    """
    id: UUID = Field(default_factory=uuid4)
    ticket_id: UUID
    business_id: UUID
    author_id: Optional[UUID] = None  # Owner or employee, None when unknown

    content: str = Field(..., min_length=1)

    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}


class TicketFeedback(BaseModel):
    """Customer rating of a resolved ticket. At most one per ticket."""
    id: UUID = Field(default_factory=uuid4)
    ticket_id: UUID
    customer_id: Optional[UUID] = None

    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}
