"""
schemas/message.py
------------------
Pydantic models for chat messages.

Outbound messages use the wire names clients already speak:
user / message / sent / tag, with `sent` formatted like Last-Modified.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from chatserver.core.clock import format_timestamp
from chatserver.models.message import Message


class MessageCreate(BaseModel):
    message: str = Field(
        ...,
        min_length=1,
        max_length=8000,
        examples=["Hello everyone"],
    )
    sent: Optional[datetime] = Field(
        default=None,
        description="Client send time (ISO-8601). Display hint unless the "
        "server trusts client timestamps.",
    )


class MessageEdit(BaseModel):
    message: str = Field(..., min_length=1, max_length=8000)


class MessageRead(BaseModel):
    id: int
    channel: str
    user: str
    message: str
    sent: str
    tag: str

    @classmethod
    def from_model(cls, message: Message) -> "MessageRead":
        return cls(
            id=message.id,
            channel=message.channel,
            user=message.username,
            message=message.body,
            sent=format_timestamp(message.timestamp),
            tag=message.tag.value,
        )
