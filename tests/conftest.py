"""
Test configuration and fixtures.

Provides:
- A fresh ServiceContainer (in-memory store) per test
- A seeded world: one business with owner and employees, plus customers
- HTTPX AsyncClient bound to an app sharing the same container
"""
from dataclasses import dataclass
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from supportdesk.api.app import create_app
from supportdesk.models import (
    AccountBase,
    BusinessProfile,
    Ticket,
    TicketCategory,
    Priority,
)
from supportdesk.services import ServiceContainer


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def services() -> ServiceContainer:
    return ServiceContainer()


@dataclass
class World:
    """Accounts and a business wired together the way production data is."""
    owner: AccountBase
    business: BusinessProfile
    employee: AccountBase
    second_employee: AccountBase
    outsider: AccountBase
    customer: AccountBase
    other_customer: AccountBase


async def hire(services: ServiceContainer, business: BusinessProfile, employee: AccountBase):
    """Invite and accept, the only way an employee joins a business."""
    invitation = await services.invitations.create_invitation(
        business.id, employee.id, business.owner_id
    )
    return await services.invitations.resolve_invitation(invitation.id, accept=True, by_id=employee.id)


@pytest.fixture(scope="function")
async def world(services: ServiceContainer) -> World:
    directory = services.directory

    owner = await directory.register_account("acme-owner", "business")
    business = await directory.create_business_profile(owner.id, "Acme Support")

    employee = await directory.register_account("erin", "employee", display_name="Erin")
    second_employee = await directory.register_account("sam", "employee")
    outsider = await directory.register_account("olga", "employee")

    customer = await directory.register_account("carla", "customer")
    other_customer = await directory.register_account("chris", "customer")

    await hire(services, business, employee)
    await hire(services, business, second_employee)

    return World(
        owner=owner,
        business=business,
        employee=employee,
        second_employee=second_employee,
        outsider=outsider,
        customer=customer,
        other_customer=other_customer,
    )


@pytest.fixture(scope="function")
async def ticket(services: ServiceContainer, world: World) -> Ticket:
    return await services.tickets.create_ticket(
        world.customer.id,
        world.business.id,
        "Cannot log in",
        "Password reset email never arrives",
        category=TicketCategory.TECHNICAL,
        priority=Priority.HIGH,
    )


@pytest.fixture(scope="function")
async def claimed_ticket(services: ServiceContainer, world: World, ticket: Ticket) -> Ticket:
    return await services.tickets.claim_ticket(ticket.id, world.employee.id)


@pytest.fixture(scope="function")
async def resolved_ticket(services: ServiceContainer, world: World, claimed_ticket: Ticket) -> Ticket:
    return await services.tickets.resolve_ticket(claimed_ticket.id, world.employee.id)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(services: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against an app that shares the test's container."""
    app = create_app(container=services)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c
