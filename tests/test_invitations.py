"""Tests for the employee invitation workflow."""

import uuid

import pytest

from supportdesk.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from supportdesk.models import BusinessEmployee, EmployeeInvitation, InvitationStatus


@pytest.mark.asyncio
async def test_invite_and_accept_creates_active_membership(services, world):
    invitation = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )
    assert invitation.status == InvitationStatus.PENDING

    membership = await services.invitations.resolve_invitation(
        invitation.id, accept=True, by_id=world.outsider.id
    )

    assert isinstance(membership, BusinessEmployee)
    assert membership.is_active
    assert membership.employee_id == world.outsider.id
    assert await services.directory.is_active_member(world.business.id, world.outsider.id)

    stored = await services.invitations.get_invitation(invitation.id)
    assert stored.status == InvitationStatus.ACCEPTED
    assert stored.responded_at is not None


@pytest.mark.asyncio
async def test_reject_creates_no_membership(services, world):
    invitation = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )

    rejected = await services.invitations.resolve_invitation(invitation.id, accept=False)

    assert isinstance(rejected, EmployeeInvitation)
    assert rejected.status == InvitationStatus.REJECTED
    assert not await services.directory.is_active_member(world.business.id, world.outsider.id)


@pytest.mark.asyncio
async def test_answered_invitation_is_terminal(services, world):
    invitation = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )
    await services.invitations.resolve_invitation(invitation.id, accept=False)

    with pytest.raises(ConflictError):
        await services.invitations.resolve_invitation(invitation.id, accept=True)
    with pytest.raises(ConflictError):
        await services.invitations.resolve_invitation(invitation.id, accept=False)


@pytest.mark.asyncio
async def test_duplicate_pending_invitation_conflicts(services, world):
    await services.invitations.create_invitation(world.business.id, world.outsider.id, world.owner.id)

    with pytest.raises(ConflictError):
        await services.invitations.create_invitation(world.business.id, world.outsider.id, world.owner.id)


@pytest.mark.asyncio
async def test_reinvite_after_rejection_is_allowed(services, world):
    first = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )
    await services.invitations.resolve_invitation(first.id, accept=False)

    second = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )
    assert second.id != first.id
    assert second.status == InvitationStatus.PENDING


@pytest.mark.asyncio
async def test_existing_member_cannot_be_invited(services, world):
    with pytest.raises(ConflictError):
        await services.invitations.create_invitation(world.business.id, world.employee.id, world.owner.id)


@pytest.mark.asyncio
async def test_only_owner_invites(services, world):
    with pytest.raises(AuthorizationError):
        await services.invitations.create_invitation(
            world.business.id, world.outsider.id, world.employee.id
        )


@pytest.mark.asyncio
async def test_only_employee_accounts_can_be_invited(services, world):
    with pytest.raises(ValidationError):
        await services.invitations.create_invitation(
            world.business.id, world.customer.id, world.owner.id
        )


@pytest.mark.asyncio
async def test_only_invitee_answers(services, world):
    invitation = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )

    with pytest.raises(AuthorizationError):
        await services.invitations.resolve_invitation(invitation.id, accept=True, by_id=world.owner.id)

    stored = await services.invitations.get_invitation(invitation.id)
    assert stored.status == InvitationStatus.PENDING


@pytest.mark.asyncio
async def test_reinvited_former_employee_is_reactivated(services, world):
    await services.directory.deactivate_employee(world.business.id, world.employee.id, world.owner.id)
    assert not await services.directory.is_active_member(world.business.id, world.employee.id)

    invitation = await services.invitations.create_invitation(
        world.business.id, world.employee.id, world.owner.id
    )
    membership = await services.invitations.resolve_invitation(invitation.id, accept=True)

    assert membership.is_active
    employees = await services.directory.list_employees(world.business.id)
    assert [m.employee_id for m in employees].count(world.employee.id) == 1


@pytest.mark.asyncio
async def test_list_invitations_by_status(services, world):
    pending = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )

    for_employee = await services.invitations.list_invitations_for_employee(
        world.outsider.id, status=InvitationStatus.PENDING
    )
    assert [i.id for i in for_employee] == [pending.id]

    accepted = await services.invitations.list_invitations_for_business(
        world.business.id, status=InvitationStatus.ACCEPTED
    )
    assert {i.employee_id for i in accepted} == {world.employee.id, world.second_employee.id}


@pytest.mark.asyncio
async def test_unknown_inviter_or_responder_is_not_found(services, world):
    with pytest.raises(NotFoundError):
        await services.invitations.create_invitation(world.business.id, world.outsider.id, uuid.uuid4())

    invitation = await services.invitations.create_invitation(
        world.business.id, world.outsider.id, world.owner.id
    )
    with pytest.raises(NotFoundError):
        await services.invitations.resolve_invitation(invitation.id, accept=True, by_id=uuid.uuid4())

    stored = await services.invitations.get_invitation(invitation.id)
    assert stored.status == InvitationStatus.PENDING
