"""
SupportDesk Message Models

Direct messages between two accounts, optionally scoped to a ticket.
Delivery status only moves forward: sent -> delivered -> read.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .common import utcnow


class MessageStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return MESSAGE_STATUS_RANK[self]


MESSAGE_STATUS_RANK = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


class Message(BaseModel):
    """
    A single chat message.

    `chat_initiator` marks the message that opened the conversation
    (first message between the pair on that ticket).
    """
    id: UUID = Field(default_factory=uuid4)
    content: str = Field(..., min_length=1)

    ticket_id: Optional[UUID] = None
    sender_id: UUID
    receiver_id: UUID

    status: MessageStatus = MessageStatus.SENT

    chat_initiator: bool = False
    initiated_at: Optional[datetime] = None

    sent_at: datetime = Field(default_factory=utcnow)
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    def involves(self, account_id: UUID) -> bool:
        return account_id in (self.sender_id, self.receiver_id)


class UnreadCounter(BaseModel):
    """Unread messages for one account, bucketed by ticket."""
    account_id: UUID
    ticket_id: Optional[UUID] = None
    count: int = Field(default=0, ge=0)
    updated_at: datetime = Field(default_factory=utcnow)
