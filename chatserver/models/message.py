"""
models/message.py
-----------------
Chat message ORM model.

A message row is never removed. Edits and deletes rewrite body, tag and
timestamp in place so polling clients see them as new events:

    tag      body        meaning
    ""       original    posted
    <edited> new text    edited at `timestamp`
    <deleted> ""         tombstone written at `timestamp`

`username` references the author by value only; there is no foreign key so
tombstones and history outlive user deletion.

The (channel, timestamp, id) index serves both sync queries: the newest-N
initial load and the "timestamp > watermark" delta.
"""

from enum import Enum as PyEnum

from sqlalchemy import BigInteger, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chatserver.db.base import Base


class MessageTag(str, PyEnum):
    none = ""
    edited = "<edited>"
    deleted = "<deleted>"


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_channel_timestamp_id", "channel", "timestamp", "id"),
        # Ids are never reused, even after the highest row changes
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Epoch milliseconds, UTC
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tag: Mapped[MessageTag] = mapped_column(
        Enum(
            MessageTag,
            name="message_tag",
            native_enum=False,
            length=16,
            values_callable=lambda tags: [t.value for t in tags],
            validate_strings=True,
        ),
        nullable=False,
        default=MessageTag.none,
    )

    @property
    def is_deleted(self) -> bool:
        return self.tag is MessageTag.deleted

    def __repr__(self) -> str:
        return f"<Message id={self.id} channel={self.channel} tag={self.tag.value!r}>"
