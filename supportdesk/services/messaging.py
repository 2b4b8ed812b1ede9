"""
SupportDesk Messaging Service

Chat between customers and the people working their tickets.

Delivery status is driven by the receiver's client:
sent (on create) -> delivered (received) -> read (viewed)
Acknowledgements never move a message backwards; repeating one is a no-op.
"""

from typing import List, Optional
from uuid import UUID

import structlog

from ..errors import AuthorizationError, ValidationError
from ..models import (
    Message,
    MessageStatus,
    Ticket,
    UnreadCounter,
    utcnow,
)

logger = structlog.get_logger(__name__)


class MessagingService:

    def __init__(self, message_repo, unread_repo, ticket_repo, directory):
        self.message_repo = message_repo
        self.unread_repo = unread_repo
        self.ticket_repo = ticket_repo
        self.directory = directory

    async def send_message(
        self,
        sender_id: UUID,
        receiver_id: UUID,
        content: str,
        ticket_id: Optional[UUID] = None
    ) -> Message:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content is required")
        if sender_id == receiver_id:
            raise ValidationError("Cannot send a message to yourself")

        await self.directory.get_account(sender_id)
        await self.directory.get_account(receiver_id)

        if ticket_id is not None:
            ticket = await self.ticket_repo.get(ticket_id)
            for account_id in (sender_id, receiver_id):
                if not await self._participates(ticket, account_id):
                    raise AuthorizationError("Both parties must be participants of the ticket.")

        message = await self.message_repo.add(Message(
            content=content,
            sender_id=sender_id,
            receiver_id=receiver_id,
            ticket_id=ticket_id,
        ))
        await self.unread_repo.increment(receiver_id, ticket_id)

        logger.info(
            "message_sent",
            message_id=str(message.id),
            ticket_id=str(ticket_id) if ticket_id else None,
            chat_initiator=message.chat_initiator,
        )
        return message

    async def acknowledge_message(
        self,
        message_id: UUID,
        to_status,
        by_id: Optional[UUID] = None
    ) -> Message:
        """
        Receiver reports delivery or reading.

        Idempotent: acknowledging a status the message already reached
        (or passed) returns it unchanged.
        """
        to_status = _parse_ack_status(to_status)

        message = await self.message_repo.get(message_id)
        if by_id is not None:
            await self.directory.get_account(by_id)
        if by_id is not None and by_id != message.receiver_id:
            raise AuthorizationError("Only the receiver can acknowledge a message.")

        message, changed = await self.message_repo.advance_status(message_id, to_status, utcnow())
        if changed and to_status == MessageStatus.READ:
            await self.unread_repo.decrement(message.receiver_id, message.ticket_id)
        if changed:
            logger.info("message_status_changed", message_id=str(message_id), status=to_status.value)
        return message

    async def mark_all_delivered(self, receiver_id: UUID) -> List[Message]:
        """Deliver everything still waiting for the receiver, e.g. when they connect."""
        await self.directory.get_account(receiver_id)
        delivered = await self.message_repo.deliver_pending(receiver_id, utcnow())
        if delivered:
            logger.info("messages_delivered", receiver_id=str(receiver_id), count=len(delivered))
        return delivered

    async def get_message(self, message_id: UUID) -> Message:
        return await self.message_repo.get(message_id)

    async def get_conversation(
        self,
        account_id: UUID,
        other_id: UUID,
        ticket_id: Optional[UUID] = None
    ) -> List[Message]:
        await self.directory.get_account(account_id)
        await self.directory.get_account(other_id)
        return await self.message_repo.list_conversation(account_id, other_id, ticket_id)

    async def unread_counts(self, account_id: UUID) -> List[UnreadCounter]:
        await self.directory.get_account(account_id)
        return await self.unread_repo.list_for_account(account_id)

    async def _participates(self, ticket: Ticket, account_id: UUID) -> bool:
        if ticket.customer_id == account_id:
            return True
        return await self.directory.can_work_on(ticket.business_id, account_id)


def _parse_ack_status(status) -> MessageStatus:
    try:
        status = MessageStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown message status: {status}")
    if status == MessageStatus.SENT:
        raise ValidationError("Messages can only be acknowledged as delivered or read")
    return status
