"""
services/message_store.py
-------------------------
Channel message persistence: post, edit, soft delete, channel listing.

Critical invariants:
  - Rows are never removed; delete writes a tombstone (empty body, tag
    <deleted>) so polling clients receive the removal as a change.
  - Edit and delete are single conditional UPDATE statements. The ownership
    check and the tag check live in the WHERE clause and the affected-row
    count is the only success signal, so two racing edits cannot both win
    against a state one of them invalidated.
  - A tombstone can never be edited.
  - Edit and delete re-stamp the timestamp with server time, which moves the
    row past every client's watermark.
"""

from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chatserver.core.clock import now_ms
from chatserver.core.exceptions import ForbiddenError, NotFoundError
from chatserver.core.logging import get_logger
from chatserver.db.session import Database
from chatserver.models.message import Message, MessageTag

logger = get_logger(__name__)

# Client "sent" times further than this from receipt time are logged
CLOCK_DRIFT_LOG_MS = 60_000


class MessageStore:

    def __init__(
        self,
        database: Database,
        clock: Callable[[], int] = now_ms,
        trust_client_timestamps: bool = False,
    ) -> None:
        self._db = database
        self._clock = clock
        self._trust_client_timestamps = trust_client_timestamps

    async def append(
        self,
        channel: str,
        author: str,
        body: str,
        sent_at: Optional[int] = None,
    ) -> Message:
        """
        Store a new message and return it with its assigned id.

        ``sent_at`` is the client's own timestamp (epoch ms). It orders the
        message only when client timestamps are trusted; otherwise server
        receipt time is used.
        """
        received_at = self._clock()
        timestamp = received_at
        if sent_at is not None:
            if self._trust_client_timestamps:
                timestamp = sent_at
            elif abs(sent_at - received_at) > CLOCK_DRIFT_LOG_MS:
                logger.info(
                    "Client clock drift",
                    author=author,
                    drift_ms=sent_at - received_at,
                )

        message = Message(
            channel=channel,
            username=author,
            body=body,
            timestamp=timestamp,
            tag=MessageTag.none,
        )
        async with self._db.transaction() as session:
            session.add(message)
            await session.flush()

        logger.info("Message inserted", message_id=message.id, channel=channel, author=author)
        return message

    async def get(self, message_id: int) -> Optional[Message]:
        async with self._db.transaction() as session:
            return await session.get(Message, message_id)

    async def edit(self, message_id: int, requester: str, new_body: str) -> Message:
        """
        Replace the body of a live message owned by ``requester``.

        Raises:
            NotFoundError: no such message, or it is a tombstone.
            ForbiddenError: the message belongs to someone else.
        """
        stamped = self._clock()
        async with self._db.transaction() as session:
            result = await session.execute(
                update(Message)
                .where(
                    Message.id == message_id,
                    Message.username == requester,
                    Message.tag != MessageTag.deleted,
                )
                .values(body=new_body, tag=MessageTag.edited, timestamp=stamped)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self._explain_refusal(session, message_id, requester, "edit")
            message = await session.get(Message, message_id)

        logger.info("Message edited", message_id=message_id, author=requester)
        return message

    async def soft_delete(self, message_id: int, requester: str) -> Message:
        """
        Turn a message owned by ``requester`` into a tombstone.

        Deleting a tombstone again succeeds and only refreshes its timestamp.

        Raises:
            NotFoundError: no such message.
            ForbiddenError: the message belongs to someone else.
        """
        stamped = self._clock()
        async with self._db.transaction() as session:
            result = await session.execute(
                update(Message)
                .where(Message.id == message_id, Message.username == requester)
                .values(body="", tag=MessageTag.deleted, timestamp=stamped)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self._explain_refusal(session, message_id, requester, "delete")
            message = await session.get(Message, message_id)

        logger.info("Message deleted", message_id=message_id, author=requester)
        return message

    @staticmethod
    async def _explain_refusal(
        session: AsyncSession, message_id: int, requester: str, action: str
    ) -> None:
        """Classify a zero-row UPDATE. Always raises."""
        message = await session.get(Message, message_id)
        if message is None:
            reason = "no such id"
        elif message.username != requester:
            logger.info(
                "Could not change message",
                action=action,
                reason="not the author",
                message_id=message_id,
                requester=requester,
            )
            raise ForbiddenError(f"Message {message_id} belongs to another user")
        elif message.is_deleted:
            reason = "deleted"
        else:
            # Row changed between the UPDATE and this read
            reason = "concurrent change"

        logger.info(
            "Could not change message",
            action=action,
            reason=reason,
            message_id=message_id,
        )
        raise NotFoundError(f"Message {message_id} not found")

    async def list_channels(self) -> set[str]:
        """Every channel that has ever held a message, tombstones included."""
        async with self._db.transaction() as session:
            result = await session.execute(select(Message.channel).distinct())
            return set(result.scalars().all())
