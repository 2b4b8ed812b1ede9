"""
SupportDesk Feedback Service

Customers rate a ticket (1-5) once it is resolved. One rating per ticket.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from uuid import UUID

import structlog

from ..errors import AuthorizationError, ConflictError, ValidationError
from ..models import TicketFeedback

logger = structlog.get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class FeedbackSummary:
    """Feedback statistics for one business."""
    business_id: UUID
    total: int
    average_rating: Optional[float]
    rating_counts: Dict[int, int]
    entries: List[TicketFeedback] = field(default_factory=list)


class FeedbackService:

    def __init__(self, feedback_repo, ticket_repo, directory):
        self.feedback_repo = feedback_repo
        self.ticket_repo = ticket_repo
        self.directory = directory

    async def submit_feedback(
        self,
        ticket_id: UUID,
        rating: int,
        comment: Optional[str] = None,
        customer_id: Optional[UUID] = None
    ) -> TicketFeedback:
        """
        Record the customer's rating.

        Rejected unless the ticket is resolved and has no feedback yet.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(f"Rating must be a number between {MIN_RATING} and {MAX_RATING}")

        ticket = await self.ticket_repo.get(ticket_id)
        if customer_id is not None:
            await self.directory.get_account(customer_id)
        if customer_id is not None and customer_id != ticket.customer_id:
            raise AuthorizationError("Only the ticket's customer can leave feedback.")
        if not ticket.is_resolved:
            raise ConflictError("Feedback can only be submitted for resolved tickets.")

        comment = (comment or "").strip() or None
        feedback = await self.feedback_repo.add_if_absent(TicketFeedback(
            ticket_id=ticket_id,
            customer_id=ticket.customer_id,
            rating=rating,
            comment=comment,
        ))
        if feedback is None:
            raise ConflictError("Feedback already submitted for this ticket.")

        logger.info("feedback_submitted", ticket_id=str(ticket_id), rating=rating)
        return feedback

    async def get_feedback(self, ticket_id: UUID) -> Optional[TicketFeedback]:
        await self.ticket_repo.get(ticket_id)
        return await self.feedback_repo.find_for_ticket(ticket_id)

    async def feedback_analytics(self, business_id: UUID) -> FeedbackSummary:
        await self.directory.get_business(business_id)
        tickets = await self.ticket_repo.list(business_ids=[business_id])
        entries = await self.feedback_repo.list_for_tickets(t.id for t in tickets)

        counts = {rating: 0 for rating in range(MIN_RATING, MAX_RATING + 1)}
        for entry in entries:
            counts[entry.rating] += 1

        average = None
        if entries:
            average = round(sum(e.rating for e in entries) / len(entries), 2)

        return FeedbackSummary(
            business_id=business_id,
            total=len(entries),
            average_rating=average,
            rating_counts=counts,
            entries=entries,
        )
