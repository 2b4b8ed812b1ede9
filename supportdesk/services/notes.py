"""
SupportDesk Notes Service

Internal notes a business keeps on its tickets. Append-only.
"""

from typing import List, Optional
from uuid import UUID

import structlog

from ..errors import AuthorizationError, ValidationError
from ..models import TicketNote

logger = structlog.get_logger(__name__)


class NoteService:

    def __init__(self, note_repo, ticket_repo, directory):
        self.note_repo = note_repo
        self.ticket_repo = ticket_repo
        self.directory = directory

    async def append_note(
        self,
        ticket_id: UUID,
        business_id: UUID,
        content: str,
        author_id: Optional[UUID] = None
    ) -> TicketNote:
        """
        Add a note to the ticket.

        Only the business the ticket is addressed to can write notes on it.
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("Note content is required")

        ticket = await self.ticket_repo.get(ticket_id)
        await self.directory.get_business(business_id)
        if ticket.business_id != business_id:
            raise AuthorizationError("Ticket is not assigned to this business.")

        if author_id is not None:
            await self.directory.get_account(author_id)
        if author_id is not None and not await self.directory.can_work_on(business_id, author_id):
            raise AuthorizationError("Only the business owner or its active employees can add notes.")

        note = await self.note_repo.add(TicketNote(
            ticket_id=ticket_id,
            business_id=business_id,
            author_id=author_id,
            content=content,
        ))
        logger.info("note_added", ticket_id=str(ticket_id), note_id=str(note.id))
        return note

    async def list_notes(self, ticket_id: UUID, business_id: UUID) -> List[TicketNote]:
        ticket = await self.ticket_repo.get(ticket_id)
        if ticket.business_id != business_id:
            raise AuthorizationError("Ticket is not assigned to this business.")
        return await self.note_repo.list_for_ticket(ticket_id)
