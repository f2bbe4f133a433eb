"""
api/routes/messages.py
----------------------
Chat endpoints.

GET    /channels                      — Every channel that has messages
POST   /channels/{channel}/messages   — Post a message as the caller
GET    /channels/{channel}/messages   — Poll for messages (watermark protocol)
PATCH  /messages/{message_id}         — Edit own message
DELETE /messages/{message_id}         — Tombstone own message

Polling:
    first call:   GET /channels/general/messages
                  → 200, newest 100 messages oldest-first,
                    Last-Modified: 2024-03-01T12:30:05.123Z
    next calls:   GET /channels/general/messages
                  If-Modified-Since: 2024-03-01T12:30:05.123Z
                  → 200 + new Last-Modified, or 204 with no body and no
                    header (keep polling with the same value)
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Header, Path, Response, status

from chatserver.core.clock import format_timestamp, parse_timestamp, to_epoch_ms
from chatserver.dependencies import (
    get_current_user,
    get_message_store,
    get_sync_engine,
)
from chatserver.models.user import User
from chatserver.schemas.message import MessageCreate, MessageEdit, MessageRead
from chatserver.services.message_store import MessageStore
from chatserver.services.sync_engine import SyncQueryEngine

router = APIRouter(tags=["Messages"])

ChannelName = Annotated[str, Path(min_length=1, max_length=255)]


@router.get(
    "/channels",
    response_model=List[str],
    summary="List all channels",
)
async def list_channels(
    store: Annotated[MessageStore, Depends(get_message_store)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> List[str]:
    return sorted(await store.list_channels())


@router.post(
    "/channels/{channel}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Post a message to a channel",
)
async def post_message(
    channel: ChannelName,
    body: MessageCreate,
    store: Annotated[MessageStore, Depends(get_message_store)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageRead:
    """The author is always the authenticated caller."""
    message = await store.append(
        channel=channel,
        author=current_user.username,
        body=body.message,
        sent_at=to_epoch_ms(body.sent) if body.sent is not None else None,
    )
    return MessageRead.from_model(message)


@router.get(
    "/channels/{channel}/messages",
    response_model=List[MessageRead],
    summary="Poll a channel for new messages",
    responses={204: {"description": "Nothing newer than If-Modified-Since"}},
)
async def poll_messages(
    channel: ChannelName,
    response: Response,
    engine: Annotated[SyncQueryEngine, Depends(get_sync_engine)],
    current_user: Annotated[User, Depends(get_current_user)],
    if_modified_since: Annotated[Optional[str], Header()] = None,
):
    """
    Without If-Modified-Since: the newest messages of the channel.
    With it: every message stamped strictly after it, edits and tombstones
    included. A malformed header is a 400.
    """
    watermark = parse_timestamp(if_modified_since) if if_modified_since else None

    result = await engine.query(channel, watermark)
    if not result.has_messages:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    response.headers["Last-Modified"] = format_timestamp(result.watermark)
    return [MessageRead.from_model(m) for m in result.messages]


@router.patch(
    "/messages/{message_id}",
    response_model=MessageRead,
    summary="Edit one of your messages",
)
async def edit_message(
    message_id: int,
    body: MessageEdit,
    store: Annotated[MessageStore, Depends(get_message_store)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageRead:
    """404 if the message does not exist or was deleted, 403 if it is not yours."""
    message = await store.edit(message_id, current_user.username, body.message)
    return MessageRead.from_model(message)


@router.delete(
    "/messages/{message_id}",
    response_model=MessageRead,
    summary="Delete one of your messages",
)
async def delete_message(
    message_id: int,
    store: Annotated[MessageStore, Depends(get_message_store)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageRead:
    """The message stays in the channel as a tombstone: empty body, tag <deleted>."""
    message = await store.soft_delete(message_id, current_user.username)
    return MessageRead.from_model(message)
