"""
SupportDesk Invitation Service

Business owner invites an employee account. The employee accepts (and
becomes an active member) or rejects. Either answer is final.
"""

from typing import List, Optional, Union
from uuid import UUID

import structlog

from ..errors import AuthorizationError, ConflictError
from ..models import (
    BusinessEmployee,
    EmployeeInvitation,
    InvitationStatus,
    utcnow,
)

logger = structlog.get_logger(__name__)


class InvitationService:
    """
    pending -> accepted | rejected

    At most one pending invitation per (business, employee) pair.
    """

    def __init__(self, invitation_repo, directory):
        self.invitation_repo = invitation_repo
        self.directory = directory

    async def create_invitation(
        self,
        business_id: UUID,
        employee_id: UUID,
        invited_by_id: UUID
    ) -> EmployeeInvitation:
        await self.directory.get_account(invited_by_id)
        if not await self.directory.is_owner(business_id, invited_by_id):
            logger.warning(
                "invitation_denied",
                business_id=str(business_id),
                invited_by=str(invited_by_id),
            )
            raise AuthorizationError("Only the business owner can invite employees.")

        await self.directory.require_employee(employee_id)

        if await self.directory.is_active_member(business_id, employee_id):
            raise ConflictError("Employee is already an active member of this business.")

        invitation = await self.invitation_repo.add_if_no_pending(EmployeeInvitation(
            business_id=business_id,
            employee_id=employee_id,
            invited_by_id=invited_by_id,
        ))
        if invitation is None:
            raise ConflictError("A pending invitation already exists for this employee.")

        logger.info(
            "invitation_created",
            invitation_id=str(invitation.id),
            business_id=str(business_id),
            employee_id=str(employee_id),
        )
        return invitation

    async def get_invitation(self, invitation_id: UUID) -> EmployeeInvitation:
        return await self.invitation_repo.get(invitation_id)

    async def resolve_invitation(
        self,
        invitation_id: UUID,
        accept: bool,
        by_id: Optional[UUID] = None
    ) -> Union[BusinessEmployee, EmployeeInvitation]:
        """
        Answer a pending invitation.

        Returns the new membership on accept, the rejected invitation otherwise.
        """
        invitation = await self.invitation_repo.get(invitation_id)
        if by_id is not None:
            await self.directory.get_account(by_id)
        if by_id is not None and by_id != invitation.employee_id:
            raise AuthorizationError("Only the invited employee can answer this invitation.")
        if invitation.is_terminal:
            raise ConflictError(f"Invitation was already {invitation.status.value}.")

        status = InvitationStatus.ACCEPTED if accept else InvitationStatus.REJECTED
        resolved = await self.invitation_repo.resolve_if_pending(invitation_id, status, utcnow())
        if resolved is None:
            raise ConflictError("Invitation was answered concurrently.")

        logger.info(
            "invitation_resolved",
            invitation_id=str(invitation_id),
            status=status.value,
        )

        if not accept:
            return resolved
        return await self.directory.add_employee(resolved.business_id, resolved.employee_id)

    async def list_invitations_for_employee(
        self,
        employee_id: UUID,
        status: Optional[InvitationStatus] = None
    ) -> List[EmployeeInvitation]:
        await self.directory.get_account(employee_id)
        return await self.invitation_repo.list_for_employee(employee_id, status=status)

    async def list_invitations_for_business(
        self,
        business_id: UUID,
        status: Optional[InvitationStatus] = None
    ) -> List[EmployeeInvitation]:
        await self.directory.get_business(business_id)
        return await self.invitation_repo.list_for_business(business_id, status=status)
