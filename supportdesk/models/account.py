"""
SupportDesk Account Models

Three roles share one login surface but never share capabilities:
1. Business = owns exactly one BusinessProfile, employs people
2. Employee = joins businesses by invitation, claims their tickets
3. Customer = opens tickets against a business

Accounts are a closed variant discriminated on `role`, so code that holds an
Account always knows which capability set it has.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, ClassVar, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from .common import utcnow


# =============================================================================
# ENUMS
# =============================================================================

class AccountRole(str, Enum):
    BUSINESS = "business"
    CUSTOMER = "customer"
    EMPLOYEE = "employee"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"  # Terminal
    REJECTED = "rejected"  # Terminal


# =============================================================================
# ACCOUNTS
# =============================================================================

PROFILE_FIELDS = ("display_name", "bio", "job_title", "location", "phone_number")


class AccountBase(BaseModel):
    """
    Fields every role carries.

    `username` and `role` are frozen: a handle is claimed once and a role
    never changes after registration.
    """
    id: UUID = Field(default_factory=uuid4)
    username: str = Field(..., min_length=1, frozen=True)
    password_hash: str = Field(default="", exclude=True, repr=False)

    # Public profile
    display_name: Optional[str] = None
    bio: Optional[str] = None
    job_title: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Capability flags, overridden per variant
    can_open_tickets: ClassVar[bool] = False
    can_own_business: ClassVar[bool] = False
    can_join_business: ClassVar[bool] = False

    @field_validator("username")
    @classmethod
    def _strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value


class BusinessAccount(AccountBase):
    """Business owner. Administers one BusinessProfile."""
    role: Literal["business"] = Field(default="business", frozen=True)

    can_own_business: ClassVar[bool] = True


class CustomerAccount(AccountBase):
    """Customer. Opens tickets and leaves feedback."""
    role: Literal["customer"] = Field(default="customer", frozen=True)

    can_open_tickets: ClassVar[bool] = True


class EmployeeAccount(AccountBase):
    """Employee. Works tickets for the businesses that employ them."""
    role: Literal["employee"] = Field(default="employee", frozen=True)

    can_join_business: ClassVar[bool] = True


Account = Annotated[
    Union[BusinessAccount, CustomerAccount, EmployeeAccount],
    Field(discriminator="role"),
]

ACCOUNT_CLASSES = {
    AccountRole.BUSINESS: BusinessAccount,
    AccountRole.CUSTOMER: CustomerAccount,
    AccountRole.EMPLOYEE: EmployeeAccount,
}


# =============================================================================
# BUSINESSES
# =============================================================================

class BusinessProfile(BaseModel):
    """Public face of a business. One-to-one with its BusinessAccount."""
    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID = Field(..., frozen=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BusinessEmployee(BaseModel):
    """Membership of an employee in a business. Unique per pair."""
    id: UUID = Field(default_factory=uuid4)
    business_id: UUID = Field(..., frozen=True)
    employee_id: UUID = Field(..., frozen=True)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class EmployeeInvitation(BaseModel):
    """
    Pending request for an employee to join a business.

    pending -> accepted | rejected, both terminal.
    """
    id: UUID = Field(default_factory=uuid4)
    business_id: UUID = Field(..., frozen=True)
    employee_id: UUID = Field(..., frozen=True)
    invited_by_id: Optional[UUID] = None

    status: InvitationStatus = InvitationStatus.PENDING

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    responded_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != InvitationStatus.PENDING
