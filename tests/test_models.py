"""Tests for model-level invariants."""

import uuid
from datetime import datetime, timezone

import pydantic
import pytest
from pydantic import TypeAdapter

from supportdesk.models import (
    Account,
    BusinessAccount,
    CustomerAccount,
    EmployeeAccount,
    EscalationLevel,
    Message,
    MessageStatus,
    Ticket,
    TicketFeedback,
    TicketNote,
    TicketStatus,
)


def _ticket(**overrides) -> Ticket:
    fields = dict(
        title="Broken invoice",
        description="Invoice total is wrong",
        customer_id=uuid.uuid4(),
        business_id=uuid.uuid4(),
    )
    fields.update(overrides)
    return Ticket(**fields)


def test_new_ticket_is_open_and_unescalated():
    ticket = _ticket()

    assert ticket.status == TicketStatus.OPEN
    assert ticket.claimed_by_id is None
    assert ticket.escalation_level == EscalationLevel.NONE
    assert ticket.escalated_at is None
    assert ticket.version == 0


def test_open_ticket_cannot_have_claimant():
    with pytest.raises(pydantic.ValidationError, match="Open ticket cannot have a claimant"):
        _ticket(claimed_by_id=uuid.uuid4())


def test_escalated_at_required_exactly_when_escalated():
    now = datetime.now(timezone.utc)
    claimant = uuid.uuid4()

    with pytest.raises(pydantic.ValidationError, match="escalated_at"):
        _ticket(
            status=TicketStatus.IN_PROGRESS,
            claimed_by_id=claimant,
            escalation_level=EscalationLevel.HIGH,
        )

    with pytest.raises(pydantic.ValidationError, match="escalated_at"):
        _ticket(status=TicketStatus.IN_PROGRESS, claimed_by_id=claimant, escalated_at=now)

    escalated = _ticket(
        status=TicketStatus.IN_PROGRESS,
        claimed_by_id=claimant,
        escalation_level=EscalationLevel.LOW,
        escalated_at=now,
    )
    assert escalated.is_escalated


def test_blank_title_is_rejected():
    with pytest.raises(pydantic.ValidationError, match="Title is required"):
        _ticket(title="   ")


def test_customer_and_business_are_frozen():
    ticket = _ticket()

    with pytest.raises(pydantic.ValidationError):
        ticket.customer_id = uuid.uuid4()
    with pytest.raises(pydantic.ValidationError):
        ticket.business_id = uuid.uuid4()


def test_escalation_levels_are_ordered():
    ranks = [level.rank for level in (
        EscalationLevel.NONE, EscalationLevel.LOW, EscalationLevel.MEDIUM, EscalationLevel.HIGH
    )]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 4


def test_account_union_picks_variant_by_role():
    adapter = TypeAdapter(Account)

    business = adapter.validate_python({"username": "acme", "role": "business"})
    customer = adapter.validate_python({"username": "carla", "role": "customer"})
    employee = adapter.validate_python({"username": "erin", "role": "employee"})

    assert isinstance(business, BusinessAccount) and business.can_own_business
    assert isinstance(customer, CustomerAccount) and customer.can_open_tickets
    assert isinstance(employee, EmployeeAccount) and employee.can_join_business
    assert not employee.can_open_tickets

    with pytest.raises(pydantic.ValidationError):
        adapter.validate_python({"username": "x", "role": "admin"})


def test_account_role_and_username_are_immutable():
    account = CustomerAccount(username="carla")

    with pytest.raises(pydantic.ValidationError):
        account.role = "business"
    with pytest.raises(pydantic.ValidationError):
        account.username = "someone-else"


def test_password_hash_is_never_serialized():
    account = EmployeeAccount(username="erin", password_hash="scrypt$abc")

    assert "password_hash" not in account.model_dump()
    assert "scrypt" not in account.model_dump_json()


def test_notes_are_immutable():
    note = TicketNote(ticket_id=uuid.uuid4(), business_id=uuid.uuid4(), content="Called customer")

    with pytest.raises(pydantic.ValidationError):
        note.content = "Rewritten"


@pytest.mark.parametrize("rating", [0, 6])
def test_feedback_rating_is_bounded(rating):
    with pytest.raises(pydantic.ValidationError):
        TicketFeedback(ticket_id=uuid.uuid4(), rating=rating)


def test_message_starts_sent():
    message = Message(content="hi", sender_id=uuid.uuid4(), receiver_id=uuid.uuid4())

    assert message.status == MessageStatus.SENT
    assert message.delivered_at is None
    assert message.read_at is None
    assert not message.chat_initiator
