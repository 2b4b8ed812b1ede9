"""
SupportDesk Directory Service

Accounts, business profiles and employee memberships.

Every other service asks the directory two questions:
- Who is this account? (role variant)
- May this account work on this business? (owner or active employee)
"""

from typing import List
from uuid import UUID

import pydantic
import structlog

from ..errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    validation_error_from,
)
from ..models import (
    ACCOUNT_CLASSES,
    PROFILE_FIELDS,
    AccountBase,
    AccountRole,
    BusinessAccount,
    BusinessEmployee,
    BusinessProfile,
    CustomerAccount,
    EmployeeAccount,
    utcnow,
)

logger = structlog.get_logger(__name__)

BUSINESS_PROFILE_FIELDS = ("name", "description", "website", "phone", "address")


class DirectoryService:
    """
    Registry of who exists and who works where.

    Rules:
    1. Usernames are unique across all roles
    2. Role is chosen at registration and never changes
    3. A business account has at most one BusinessProfile
    4. Only employee accounts can be members of a business
    """

    def __init__(self, account_repo, business_repo, membership_repo):
        self.account_repo = account_repo
        self.business_repo = business_repo
        self.membership_repo = membership_repo

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def register_account(
        self,
        username: str,
        role,
        password_hash: str = "",
        **profile
    ) -> AccountBase:
        """Create an account of the given role."""
        try:
            role = AccountRole(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")

        unknown = set(profile) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

        try:
            account = ACCOUNT_CLASSES[role](
                username=username,
                password_hash=password_hash,
                **profile
            )
        except pydantic.ValidationError as exc:
            raise validation_error_from(exc)

        account = await self.account_repo.add(account)
        logger.info("account_registered", account_id=str(account.id), role=role.value)
        return account

    async def get_account(self, account_id: UUID) -> AccountBase:
        return await self.account_repo.get(account_id)

    async def update_account_profile(self, account_id: UUID, **fields) -> AccountBase:
        """
        Update public profile fields.

        Username and role are not profile fields and cannot be changed here.
        """
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        account = await self.account_repo.get(account_id)
        for name, value in fields.items():
            setattr(account, name, value)
        account.updated_at = utcnow()
        return await self.account_repo.save(account)

    async def require_customer(self, account_id: UUID) -> CustomerAccount:
        account = await self.account_repo.get(account_id)
        if not account.can_open_tickets:
            raise AuthorizationError("Only customers can open tickets")
        return account

    async def require_employee(self, account_id: UUID) -> EmployeeAccount:
        account = await self.account_repo.get(account_id)
        if not account.can_join_business:
            raise ValidationError(f"Account {account.username} is not an employee account")
        return account

    async def list_customers(self) -> List[CustomerAccount]:
        return await self.account_repo.list_by_role(AccountRole.CUSTOMER)

    # -------------------------------------------------------------------------
    # Business profiles
    # -------------------------------------------------------------------------

    async def create_business_profile(self, owner_id: UUID, name: str, **details) -> BusinessProfile:
        owner = await self.account_repo.get(owner_id)
        if not owner.can_own_business:
            raise ValidationError("Only business accounts can create a business profile")

        unknown = set(details) - set(BUSINESS_PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown business fields: {', '.join(sorted(unknown))}")

        try:
            profile = BusinessProfile(owner_id=owner_id, name=name, **details)
        except pydantic.ValidationError as exc:
            raise validation_error_from(exc)

        profile = await self.business_repo.add(profile)
        logger.info("business_created", business_id=str(profile.id), owner_id=str(owner_id))
        return profile

    async def get_business(self, business_id: UUID) -> BusinessProfile:
        return await self.business_repo.get(business_id)

    async def get_business_for_owner(self, owner_id: UUID) -> BusinessProfile:
        profile = await self.business_repo.find_by_owner(owner_id)
        if profile is None:
            raise NotFoundError(f"No business profile for account {owner_id}")
        return profile

    async def update_business_profile(
        self,
        business_id: UUID,
        actor_id: UUID,
        **fields
    ) -> BusinessProfile:
        unknown = set(fields) - set(BUSINESS_PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        profile = await self.business_repo.get(business_id)
        await self.account_repo.get(actor_id)
        if profile.owner_id != actor_id:
            raise AuthorizationError("Only the business owner can edit the profile")

        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Business name is required")

        for name, value in fields.items():
            setattr(profile, name, value)
        profile.updated_at = utcnow()
        return await self.business_repo.save(profile)

    async def list_businesses(self) -> List[BusinessProfile]:
        return await self.business_repo.list_all()

    async def search_businesses(self, query: str) -> List[BusinessProfile]:
        """Case-insensitive substring match on the business name."""
        needle = (query or "").strip().lower()
        businesses = await self.business_repo.list_all()
        if not needle:
            return businesses
        return [b for b in businesses if needle in b.name.lower()]

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    async def is_owner(self, business_id: UUID, account_id: UUID) -> bool:
        profile = await self.business_repo.get(business_id)
        return profile.owner_id == account_id

    async def is_active_member(self, business_id: UUID, account_id: UUID) -> bool:
        membership = await self.membership_repo.find_pair(business_id, account_id)
        return membership is not None and membership.is_active

    async def can_work_on(self, business_id: UUID, account_id: UUID) -> bool:
        """Owner or active employee of the business."""
        if await self.is_owner(business_id, account_id):
            return True
        return await self.is_active_member(business_id, account_id)

    async def add_employee(self, business_id: UUID, employee_id: UUID) -> BusinessEmployee:
        """Create or reactivate a membership. Used when an invitation is accepted."""
        await self.business_repo.get(business_id)
        await self.require_employee(employee_id)
        membership = await self.membership_repo.activate(business_id, employee_id)
        logger.info(
            "employee_added",
            business_id=str(business_id),
            employee_id=str(employee_id),
        )
        return membership

    async def deactivate_employee(
        self,
        business_id: UUID,
        employee_id: UUID,
        actor_id: UUID
    ) -> BusinessEmployee:
        await self.account_repo.get(actor_id)
        if not await self.is_owner(business_id, actor_id):
            raise AuthorizationError("Only the business owner can manage employees")

        membership = await self.membership_repo.find_pair(business_id, employee_id)
        if membership is None:
            raise NotFoundError(f"Employee {employee_id} does not belong to business {business_id}")

        membership.is_active = False
        membership = await self.membership_repo.save(membership)
        logger.info(
            "employee_deactivated",
            business_id=str(business_id),
            employee_id=str(employee_id),
        )
        return membership

    async def list_employees(self, business_id: UUID, active_only: bool = False) -> List[BusinessEmployee]:
        await self.business_repo.get(business_id)
        return await self.membership_repo.list_for_business(business_id, active_only=active_only)

    async def business_ids_for(self, account: AccountBase) -> List[UUID]:
        """Businesses whose tickets this account works on."""
        if isinstance(account, BusinessAccount):
            profile = await self.business_repo.find_by_owner(account.id)
            return [profile.id] if profile else []
        if isinstance(account, EmployeeAccount):
            memberships = await self.membership_repo.list_for_employee(account.id, active_only=True)
            return [m.business_id for m in memberships]
        return []
