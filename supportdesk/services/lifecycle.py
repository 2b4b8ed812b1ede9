"""
SupportDesk Ticket Lifecycle Service

open --claim--> in_progress --resolve--> resolved (terminal)
                  |    ^
                  +----+  escalate / reassign

Claim is first-come: the store's compare-and-set picks exactly one winner.
Every later write is versioned, so two actors racing on the same ticket
cannot silently overwrite each other.
"""

from typing import List, Optional
from uuid import UUID

import pydantic
import structlog

from ..errors import (
    AuthorizationError,
    ConflictError,
    ValidationError,
    validation_error_from,
)
from ..models import (
    EscalationLevel,
    Priority,
    Ticket,
    TicketCategory,
    TicketStatus,
    utcnow,
)

logger = structlog.get_logger(__name__)


class LifecycleGuard:
    """
    Permission checks shared by every ticket transition.

    Failures are logged with their detail and raised as AuthorizationError.
    """

    def __init__(self, directory):
        self.directory = directory

    async def require_worker(self, ticket: Ticket, account_id: UUID, action: str) -> None:
        """Owner or active employee of the ticket's business."""
        if not await self.directory.can_work_on(ticket.business_id, account_id):
            logger.warning(
                "ticket_action_denied",
                ticket_id=str(ticket.id),
                account_id=str(account_id),
                action=action,
                reason="not_a_business_worker",
            )
            raise AuthorizationError(
                f"Only the business owner or its active employees can {action}."
            )

    async def require_claimant_or_owner(self, ticket: Ticket, account_id: UUID, action: str) -> None:
        """Current claimant, or the owner of the ticket's business."""
        if ticket.claimed_by_id == account_id:
            return
        if await self.directory.is_owner(ticket.business_id, account_id):
            return
        logger.warning(
            "ticket_action_denied",
            ticket_id=str(ticket.id),
            account_id=str(account_id),
            action=action,
            reason="not_claimant_or_owner",
        )
        raise AuthorizationError(
            f"Only the current claimant or the business owner can {action}."
        )


class TicketLifecycleService:
    """
    Drives a ticket through its states.

    Rules:
    1. Only customers create tickets; they start open and unescalated
    2. A ticket is claimed once, by an owner or active employee
    3. Escalation only goes up and remembers who held the ticket
    4. Only the claimant or the business owner resolves
    5. Resolved is terminal
    """

    def __init__(self, ticket_repo, directory):
        self.ticket_repo = ticket_repo
        self.directory = directory
        self.guard = LifecycleGuard(directory)

    async def create_ticket(
        self,
        customer_id: UUID,
        business_id: UUID,
        title: str,
        description: str,
        category: TicketCategory = TicketCategory.GENERAL_INQUIRY,
        priority: Priority = Priority.MEDIUM
    ) -> Ticket:
        """Customer opens a ticket against a business."""
        await self.directory.require_customer(customer_id)
        await self.directory.get_business(business_id)

        try:
            ticket = Ticket(
                customer_id=customer_id,
                business_id=business_id,
                title=title,
                description=description,
                category=category,
                priority=priority,
            )
        except pydantic.ValidationError as exc:
            raise validation_error_from(exc)

        ticket = await self.ticket_repo.add(ticket)
        logger.info(
            "ticket_created",
            ticket_id=str(ticket.id),
            business_id=str(business_id),
            customer_id=str(customer_id),
        )
        return ticket

    async def get_ticket(self, ticket_id: UUID) -> Ticket:
        return await self.ticket_repo.get(ticket_id)

    async def claim_ticket(self, ticket_id: UUID, employee_id: UUID) -> Ticket:
        """
        Take an open ticket.

        The status check here gives a clear error; the store's
        compare-and-set is what actually decides a race.
        """
        ticket = await self.ticket_repo.get(ticket_id)
        await self.directory.get_account(employee_id)
        await self.guard.require_worker(ticket, employee_id, "claim tickets")

        if not ticket.is_open:
            raise ConflictError(f"Ticket is {ticket.status.value}, it can no longer be claimed.")

        claimed = await self.ticket_repo.claim_if_unclaimed(ticket_id, employee_id, utcnow())
        if claimed is None:
            raise ConflictError("Ticket was claimed by someone else.")

        logger.info("ticket_claimed", ticket_id=str(ticket_id), claimed_by=str(employee_id))
        return claimed

    async def reassign_ticket(
        self,
        ticket_id: UUID,
        new_assignee_id: UUID,
        by_id: UUID
    ) -> Ticket:
        """Hand an in-progress ticket to another owner/employee."""
        ticket = await self.ticket_repo.get(ticket_id)
        self._require_in_progress(ticket, "reassigned")
        await self.directory.get_account(new_assignee_id)
        await self.directory.get_account(by_id)
        await self.guard.require_claimant_or_owner(ticket, by_id, "reassign this ticket")

        if not await self.directory.can_work_on(ticket.business_id, new_assignee_id):
            raise AuthorizationError(
                "Tickets can only be assigned to the business owner or its active employees."
            )
        if ticket.claimed_by_id == new_assignee_id:
            raise ConflictError("Ticket is already assigned to this account.")

        expected = ticket.version
        now = utcnow()
        ticket.previous_assignee_id = ticket.claimed_by_id
        ticket.claimed_by_id = new_assignee_id
        ticket.claimed_at = now
        ticket.updated_at = now

        ticket = await self.ticket_repo.update(ticket, expected)
        logger.info(
            "ticket_reassigned",
            ticket_id=str(ticket_id),
            from_id=str(ticket.previous_assignee_id),
            to_id=str(new_assignee_id),
        )
        return ticket

    async def escalate_ticket(
        self,
        ticket_id: UUID,
        level,
        reason: str,
        by_id: UUID
    ) -> Ticket:
        """
        Raise a ticket's escalation level.

        The claimant stays on the ticket; previous_assignee_id records who
        held it at the moment of escalation.
        """
        level = _parse_level(level)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Escalation reason is required")

        ticket = await self.ticket_repo.get(ticket_id)
        self._require_in_progress(ticket, "escalated")
        await self.directory.get_account(by_id)
        if ticket.claimed_by_id != by_id:
            await self.guard.require_worker(ticket, by_id, "escalate tickets")

        if level.rank <= ticket.escalation_level.rank:
            raise ConflictError(
                f"Ticket is already escalated to {ticket.escalation_level.value}; "
                f"cannot escalate to {level.value}."
            )

        expected = ticket.version
        now = utcnow()
        ticket.previous_assignee_id = ticket.claimed_by_id
        ticket.escalation_level = level
        ticket.escalation_reason = reason
        ticket.escalated_by_id = by_id
        ticket.escalated_at = now
        ticket.updated_at = now

        ticket = await self.ticket_repo.update(ticket, expected)
        logger.info(
            "ticket_escalated",
            ticket_id=str(ticket_id),
            level=level.value,
            escalated_by=str(by_id),
        )
        return ticket

    async def resolve_ticket(self, ticket_id: UUID, by_id: UUID) -> Ticket:
        ticket = await self.ticket_repo.get(ticket_id)
        await self.directory.get_account(by_id)
        self._require_in_progress(ticket, "resolved")
        await self.guard.require_claimant_or_owner(ticket, by_id, "resolve this ticket")

        expected = ticket.version
        now = utcnow()
        ticket.status = TicketStatus.RESOLVED
        ticket.resolved_by_id = by_id
        ticket.resolved_at = now
        ticket.updated_at = now

        ticket = await self.ticket_repo.update(ticket, expected)
        logger.info("ticket_resolved", ticket_id=str(ticket_id), resolved_by=str(by_id))
        return ticket

    async def list_tickets_for(
        self,
        account_id: UUID,
        status: Optional[TicketStatus] = None,
        **filters
    ) -> List[Ticket]:
        """
        Tickets visible to an account.

        Customers see their own; owners and employees see their businesses'.
        Extra filters: category, priority, claimed_by_id, unclaimed, search.
        """
        filters = _ticket_filters(status=status, **filters)
        account = await self.directory.get_account(account_id)
        if account.can_open_tickets:
            return await self.ticket_repo.list(customer_id=account.id, **filters)

        business_ids = await self.directory.business_ids_for(account)
        if not business_ids:
            return []
        return await self.ticket_repo.list(business_ids=business_ids, **filters)

    async def list_tickets_for_business(
        self,
        business_id: UUID,
        status: Optional[TicketStatus] = None,
        **filters
    ) -> List[Ticket]:
        filters = _ticket_filters(status=status, **filters)
        await self.directory.get_business(business_id)
        return await self.ticket_repo.list(business_ids=[business_id], **filters)

    def _require_in_progress(self, ticket: Ticket, verb: str) -> None:
        if ticket.status == TicketStatus.IN_PROGRESS:
            return
        if ticket.is_open:
            raise ConflictError(f"Ticket must be claimed before it can be {verb}.")
        raise ConflictError(f"Ticket is resolved and cannot be {verb}.")


def _parse_level(level) -> EscalationLevel:
    try:
        level = EscalationLevel(level)
    except ValueError:
        raise ValidationError(f"Unknown escalation level: {level}")
    if level == EscalationLevel.NONE:
        raise ValidationError("Escalation level must be low, medium or high")
    return level


TICKET_FILTERS = ("status", "category", "priority", "claimed_by_id", "unclaimed", "search")


def _ticket_filters(**filters) -> dict:
    """Drop unset filters and reject combinations that can never match."""
    unknown = set(filters) - set(TICKET_FILTERS)
    if unknown:
        raise ValidationError(f"Unknown ticket filters: {', '.join(sorted(unknown))}")

    search = (filters.get("search") or "").strip()
    filters["search"] = search or None
    if filters.get("unclaimed") and filters.get("claimed_by_id") is not None:
        raise ValidationError("Cannot filter by claimant and unclaimed at the same time")
    return {name: value for name, value in filters.items() if value not in (None, False)}
