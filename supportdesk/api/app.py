"""
SupportDesk API

FastAPI application with:
- Accounts, business profiles and employee management
- Employee invitations
- Ticket lifecycle (create, claim, escalate, reassign, resolve)
- Notes, feedback and analytics
- Messaging with delivery acknowledgements

Actors are identified by id in the request; authentication happens upstream.
"""

from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import errors
from ..config import settings
from ..logging import RequestIdMiddleware, setup_logging
from ..models import (
    AccountRole,
    BusinessEmployee,
    EmployeeInvitation,
    EscalationLevel,
    InvitationStatus,
    Message,
    MessageStatus,
    Priority,
    Ticket,
    TicketCategory,
    TicketFeedback,
    TicketNote,
    TicketStatus,
)
from ..services import ServiceContainer

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


# =============================================================================
# REQUEST MODELS
# =============================================================================

class RegisterAccountRequest(BaseModel):
    username: str
    role: AccountRole
    password_hash: str = ""
    display_name: Optional[str] = None
    bio: Optional[str] = None
    job_title: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = None


class UpdateAccountRequest(BaseModel):
    display_name: Optional[str] = None
    bio: Optional[str] = None
    job_title: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = None


class CreateBusinessRequest(BaseModel):
    owner_id: UUID
    name: str
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class UpdateBusinessRequest(BaseModel):
    actor_id: UUID
    name: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ActorRequest(BaseModel):
    actor_id: UUID


class CreateInvitationRequest(BaseModel):
    employee_id: UUID
    invited_by_id: UUID


class ResolveInvitationRequest(BaseModel):
    accept: bool
    by_id: Optional[UUID] = None


class CreateTicketRequest(BaseModel):
    customer_id: UUID
    business_id: UUID
    title: str
    description: str
    category: TicketCategory = TicketCategory.GENERAL_INQUIRY
    priority: Priority = Priority.MEDIUM


class TicketFilterParams(BaseModel):
    """Query-string filters shared by the ticket listings."""
    status: Optional[TicketStatus] = None
    category: Optional[TicketCategory] = None
    priority: Optional[Priority] = None
    claimed_by_id: Optional[UUID] = None
    unclaimed: bool = False
    search: Optional[str] = None


class ClaimTicketRequest(BaseModel):
    employee_id: UUID


class EscalateTicketRequest(BaseModel):
    level: EscalationLevel
    reason: str
    by_id: UUID


class ReassignTicketRequest(BaseModel):
    new_assignee_id: UUID
    by_id: UUID


class ResolveTicketRequest(BaseModel):
    by_id: UUID


class AddNoteRequest(BaseModel):
    business_id: UUID
    content: str
    author_id: Optional[UUID] = None


class SubmitFeedbackRequest(BaseModel):
    rating: int  # Range checked by the service so the message reaches the caller
    comment: Optional[str] = None
    customer_id: Optional[UUID] = None


class SendMessageRequest(BaseModel):
    sender_id: UUID
    receiver_id: UUID
    content: str
    ticket_id: Optional[UUID] = None


class AcknowledgeMessageRequest(BaseModel):
    status: MessageStatus
    by_id: Optional[UUID] = None


# =============================================================================
# HEALTH CHECK
# =============================================================================

@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "supportdesk-engine",
        "version": settings.version
    }


# =============================================================================
# ACCOUNT ENDPOINTS
# =============================================================================

@router.post("/accounts", status_code=status.HTTP_201_CREATED)
async def register_account(
    request: RegisterAccountRequest,
    services: ServiceContainer = Depends(get_container)
):
    profile = request.model_dump(exclude={"username", "role", "password_hash"}, exclude_none=True)
    return await services.directory.register_account(
        request.username,
        request.role,
        password_hash=request.password_hash,
        **profile
    )


@router.get("/accounts/{account_id}")
async def get_account(account_id: UUID, services: ServiceContainer = Depends(get_container)):
    return await services.directory.get_account(account_id)


@router.patch("/accounts/{account_id}")
async def update_account(
    account_id: UUID,
    request: UpdateAccountRequest,
    services: ServiceContainer = Depends(get_container)
):
    fields = request.model_dump(exclude_unset=True)
    return await services.directory.update_account_profile(account_id, **fields)


@router.get("/customers")
async def list_customers(services: ServiceContainer = Depends(get_container)):
    return await services.directory.list_customers()


# =============================================================================
# BUSINESS ENDPOINTS
# =============================================================================

@router.post("/businesses", status_code=status.HTTP_201_CREATED)
async def create_business(
    request: CreateBusinessRequest,
    services: ServiceContainer = Depends(get_container)
):
    details = request.model_dump(exclude={"owner_id", "name"}, exclude_none=True)
    return await services.directory.create_business_profile(request.owner_id, request.name, **details)


@router.get("/businesses")
async def list_businesses(q: Optional[str] = None, services: ServiceContainer = Depends(get_container)):
    """All businesses, or those whose name contains `q`."""
    if q:
        return await services.directory.search_businesses(q)
    return await services.directory.list_businesses()


@router.get("/businesses/{business_id}")
async def get_business(business_id: UUID, services: ServiceContainer = Depends(get_container)):
    return await services.directory.get_business(business_id)


@router.patch("/businesses/{business_id}")
async def update_business(
    business_id: UUID,
    request: UpdateBusinessRequest,
    services: ServiceContainer = Depends(get_container)
):
    fields = request.model_dump(exclude={"actor_id"}, exclude_unset=True)
    return await services.directory.update_business_profile(business_id, request.actor_id, **fields)


@router.get("/businesses/{business_id}/employees")
async def list_employees(
    business_id: UUID,
    active_only: bool = False,
    services: ServiceContainer = Depends(get_container)
) -> List[BusinessEmployee]:
    return await services.directory.list_employees(business_id, active_only=active_only)


@router.post("/businesses/{business_id}/employees/{employee_id}/deactivate")
async def deactivate_employee(
    business_id: UUID,
    employee_id: UUID,
    request: ActorRequest,
    services: ServiceContainer = Depends(get_container)
) -> BusinessEmployee:
    return await services.directory.deactivate_employee(business_id, employee_id, request.actor_id)


# =============================================================================
# INVITATION ENDPOINTS
# =============================================================================

@router.post("/businesses/{business_id}/invitations", status_code=status.HTTP_201_CREATED)
async def create_invitation(
    business_id: UUID,
    request: CreateInvitationRequest,
    services: ServiceContainer = Depends(get_container)
) -> EmployeeInvitation:
    return await services.invitations.create_invitation(
        business_id,
        request.employee_id,
        request.invited_by_id
    )


@router.get("/businesses/{business_id}/invitations")
async def list_business_invitations(
    business_id: UUID,
    status: Optional[InvitationStatus] = None,
    services: ServiceContainer = Depends(get_container)
) -> List[EmployeeInvitation]:
    return await services.invitations.list_invitations_for_business(business_id, status=status)


@router.get("/accounts/{account_id}/invitations")
async def list_employee_invitations(
    account_id: UUID,
    status: Optional[InvitationStatus] = None,
    services: ServiceContainer = Depends(get_container)
) -> List[EmployeeInvitation]:
    return await services.invitations.list_invitations_for_employee(account_id, status=status)


@router.post("/invitations/{invitation_id}/resolve")
async def resolve_invitation(
    invitation_id: UUID,
    request: ResolveInvitationRequest,
    services: ServiceContainer = Depends(get_container)
):
    """
    Accept or reject an invitation.

    Accepting returns the new membership; rejecting returns the invitation.
    """
    return await services.invitations.resolve_invitation(
        invitation_id,
        request.accept,
        by_id=request.by_id
    )


# =============================================================================
# TICKET ENDPOINTS
# =============================================================================

@router.post("/tickets", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: CreateTicketRequest,
    services: ServiceContainer = Depends(get_container)
) -> Ticket:
    """
    Create a new ticket.

    Ticket starts open with no claimant. An employee must claim() it.
    """
    return await services.tickets.create_ticket(
        request.customer_id,
        request.business_id,
        request.title,
        request.description,
        category=request.category,
        priority=request.priority
    )


@router.get("/tickets")
async def list_tickets(
    account_id: UUID,
    filters: TicketFilterParams = Depends(),
    services: ServiceContainer = Depends(get_container)
) -> List[Ticket]:
    """Tickets visible to the account, by role."""
    return await services.tickets.list_tickets_for(account_id, **filters.model_dump())


@router.get("/businesses/{business_id}/tickets")
async def list_business_tickets(
    business_id: UUID,
    filters: TicketFilterParams = Depends(),
    services: ServiceContainer = Depends(get_container)
) -> List[Ticket]:
    """The business's queue, e.g. `?unclaimed=true` or `?claimed_by_id=...&status=resolved`."""
    return await services.tickets.list_tickets_for_business(business_id, **filters.model_dump())


@router.get("/tickets/{ticket_id}")
async def get_ticket(ticket_id: UUID, services: ServiceContainer = Depends(get_container)) -> Ticket:
    return await services.tickets.get_ticket(ticket_id)


@router.post("/tickets/{ticket_id}/claim")
async def claim_ticket(
    ticket_id: UUID,
    request: ClaimTicketRequest,
    services: ServiceContainer = Depends(get_container)
) -> Ticket:
    """
    Claim an open ticket.

    Exactly one concurrent claim wins; the rest get 409.
    """
    return await services.tickets.claim_ticket(ticket_id, request.employee_id)


@router.post("/tickets/{ticket_id}/escalate")
async def escalate_ticket(
    ticket_id: UUID,
    request: EscalateTicketRequest,
    services: ServiceContainer = Depends(get_container)
) -> Ticket:
    return await services.tickets.escalate_ticket(
        ticket_id,
        request.level,
        request.reason,
        request.by_id
    )


@router.post("/tickets/{ticket_id}/reassign")
async def reassign_ticket(
    ticket_id: UUID,
    request: ReassignTicketRequest,
    services: ServiceContainer = Depends(get_container)
) -> Ticket:
    return await services.tickets.reassign_ticket(ticket_id, request.new_assignee_id, request.by_id)


@router.post("/tickets/{ticket_id}/resolve")
async def resolve_ticket(
    ticket_id: UUID,
    request: ResolveTicketRequest,
    services: ServiceContainer = Depends(get_container)
) -> Ticket:
    return await services.tickets.resolve_ticket(ticket_id, request.by_id)


# =============================================================================
# NOTE & FEEDBACK ENDPOINTS
# =============================================================================

@router.post("/tickets/{ticket_id}/notes", status_code=status.HTTP_201_CREATED)
async def add_note(
    ticket_id: UUID,
    request: AddNoteRequest,
    services: ServiceContainer = Depends(get_container)
) -> TicketNote:
    return await services.notes.append_note(
        ticket_id,
        request.business_id,
        request.content,
        author_id=request.author_id
    )


@router.get("/tickets/{ticket_id}/notes")
async def list_notes(
    ticket_id: UUID,
    business_id: UUID,
    services: ServiceContainer = Depends(get_container)
) -> List[TicketNote]:
    return await services.notes.list_notes(ticket_id, business_id)


@router.post("/tickets/{ticket_id}/feedback", status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    ticket_id: UUID,
    request: SubmitFeedbackRequest,
    services: ServiceContainer = Depends(get_container)
) -> TicketFeedback:
    return await services.feedback.submit_feedback(
        ticket_id,
        request.rating,
        comment=request.comment,
        customer_id=request.customer_id
    )


@router.get("/tickets/{ticket_id}/feedback")
async def get_feedback(
    ticket_id: UUID,
    services: ServiceContainer = Depends(get_container)
) -> Optional[TicketFeedback]:
    return await services.feedback.get_feedback(ticket_id)


@router.get("/businesses/{business_id}/analytics/feedback")
async def feedback_analytics(business_id: UUID, services: ServiceContainer = Depends(get_container)):
    return await services.feedback.feedback_analytics(business_id)


@router.get("/businesses/{business_id}/analytics/tickets")
async def ticket_analytics(business_id: UUID, services: ServiceContainer = Depends(get_container)):
    return await services.analytics.ticket_analytics(business_id)


# =============================================================================
# MESSAGE ENDPOINTS
# =============================================================================

@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    services: ServiceContainer = Depends(get_container)
) -> Message:
    return await services.messaging.send_message(
        request.sender_id,
        request.receiver_id,
        request.content,
        ticket_id=request.ticket_id
    )


@router.post("/messages/{message_id}/ack")
async def acknowledge_message(
    message_id: UUID,
    request: AcknowledgeMessageRequest,
    services: ServiceContainer = Depends(get_container)
) -> Message:
    return await services.messaging.acknowledge_message(
        message_id,
        request.status,
        by_id=request.by_id
    )


@router.post("/accounts/{account_id}/messages/deliver")
async def deliver_pending_messages(
    account_id: UUID,
    services: ServiceContainer = Depends(get_container)
) -> List[Message]:
    """Called when the receiver's client connects."""
    return await services.messaging.mark_all_delivered(account_id)


@router.get("/accounts/{account_id}/messages/{other_id}")
async def get_conversation(
    account_id: UUID,
    other_id: UUID,
    ticket_id: Optional[UUID] = None,
    services: ServiceContainer = Depends(get_container)
) -> List[Message]:
    return await services.messaging.get_conversation(account_id, other_id, ticket_id=ticket_id)


@router.get("/accounts/{account_id}/unread")
async def unread_counts(account_id: UUID, services: ServiceContainer = Depends(get_container)):
    return await services.messaging.unread_counts(account_id)


# =============================================================================
# ERROR MAPPING
# =============================================================================

ERROR_STATUS = {
    errors.ValidationError: status.HTTP_400_BAD_REQUEST,
    errors.AuthorizationError: status.HTTP_403_FORBIDDEN,
    errors.NotFoundError: status.HTTP_404_NOT_FOUND,
    errors.ConflictError: status.HTTP_409_CONFLICT,
}


async def handle_domain_error(request: Request, exc: errors.SupportDeskError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, errors.AuthorizationError):
        logger.warning("request_denied", path=request.url.path, detail=exc.message)
        return JSONResponse(status_code=status_code, content={"detail": "Not authorized"})
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# =============================================================================
# APP SETUP
# =============================================================================

def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        description="Support ticketing with first-come claims and monotonic escalation",
        version=settings.version
    )
    app.state.container = container or ServiceContainer()

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(errors.SupportDeskError, handle_domain_error)
    app.include_router(router)
    return app


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
