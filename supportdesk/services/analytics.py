"""
SupportDesk Analytics Service

Per-business ticket breakdowns for the owner's dashboard.

Resolution time = resolved_at - created_at, in hours.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from ..models import (
    Priority,
    TicketCategory,
    TicketStatus,
    utcnow,
)


@dataclass
class TicketAnalytics:
    """Breakdown of one business's tickets."""
    business_id: UUID
    total: int
    by_status: Dict[str, int]
    by_category: Dict[str, int]
    by_priority: Dict[str, int]
    escalated: int
    average_resolution_hours: Dict[str, Optional[float]]
    resolved_by: Dict[UUID, int]
    calculated_at: datetime


class AnalyticsService:

    def __init__(self, ticket_repo, directory):
        self.ticket_repo = ticket_repo
        self.directory = directory

    async def ticket_analytics(self, business_id: UUID) -> TicketAnalytics:
        await self.directory.get_business(business_id)
        tickets = await self.ticket_repo.list(business_ids=[business_id])

        by_status = {s.value: 0 for s in TicketStatus}
        by_category = {c.value: 0 for c in TicketCategory}
        by_priority = {p.value: 0 for p in Priority}
        hours = defaultdict(list)
        resolved_by = Counter()

        for ticket in tickets:
            by_status[ticket.status.value] += 1
            by_category[ticket.category.value] += 1
            by_priority[ticket.priority.value] += 1
            if ticket.is_resolved:
                elapsed = ticket.resolved_at - ticket.created_at
                hours[ticket.category.value].append(elapsed.total_seconds() / 3600)
                resolved_by[ticket.resolved_by_id] += 1

        average_resolution_hours = {
            category: (round(sum(hours[category]) / len(hours[category]), 2) if hours[category] else None)
            for category in by_category
        }

        return TicketAnalytics(
            business_id=business_id,
            total=len(tickets),
            by_status=by_status,
            by_category=by_category,
            by_priority=by_priority,
            escalated=sum(1 for t in tickets if t.is_escalated),
            average_resolution_hours=average_resolution_hours,
            resolved_by=dict(resolved_by),
            calculated_at=utcnow(),
        )
