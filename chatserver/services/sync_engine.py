"""
services/sync_engine.py
-----------------------
The polling protocol: which messages a client should see next.

A client keeps one watermark per channel, the largest timestamp it has
received. Each poll is one of two queries:

  - no watermark  → the newest `initial_limit` messages, by (timestamp, id)
                    descending, handed back oldest first.
  - watermark W   → every message with timestamp > W, oldest first, no cap.

The new watermark is the largest timestamp returned. An empty result leaves
the watermark untouched so the client keeps polling from where it was.

Tombstones and edited rows are ordinary rows here; their refreshed
timestamps are what pushes them past old watermarks.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select

from chatserver.core.logging import get_logger
from chatserver.db.session import Database
from chatserver.models.message import Message

logger = get_logger(__name__)

DEFAULT_INITIAL_LIMIT = 100


@dataclass
class SyncResult:
    messages: List[Message] = field(default_factory=list)
    watermark: Optional[int] = None

    @property
    def has_messages(self) -> bool:
        return bool(self.messages)


class SyncQueryEngine:

    def __init__(self, database: Database, initial_limit: int = DEFAULT_INITIAL_LIMIT) -> None:
        self._db = database
        self._initial_limit = initial_limit

    async def query(self, channel: str, watermark: Optional[int] = None) -> SyncResult:
        """
        Return messages in ``channel`` newer than ``watermark`` (epoch ms).

        Results are always ascending by (timestamp, id).
        """
        if watermark is None:
            stmt = (
                select(Message)
                .where(Message.channel == channel)
                .order_by(Message.timestamp.desc(), Message.id.desc())
                .limit(self._initial_limit)
            )
        else:
            stmt = (
                select(Message)
                .where(Message.channel == channel, Message.timestamp > watermark)
                .order_by(Message.timestamp, Message.id)
            )

        async with self._db.transaction() as session:
            result = await session.execute(stmt)
            messages = list(result.scalars().all())

        if watermark is None:
            messages.reverse()

        new_watermark = max((m.timestamp for m in messages), default=watermark)
        logger.debug(
            "Sync query",
            channel=channel,
            watermark=watermark,
            returned=len(messages),
            new_watermark=new_watermark,
        )
        return SyncResult(messages=messages, watermark=new_watermark)
