# app/routers/matches.py

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.deps import get_current_user, get_db, get_publisher
from app.errors import NotFound
from app.models import Match, User
from app.policies import Action, authorize, authorize_message_send
from app.repositories.matching_repository import get_match_by_id, list_matches_for_user
from app.repositories.message_repository import (
    list_messages,
    mark_messages_read,
    send_message,
)
from app.schemas import (
    MarkReadResponse,
    MatchListItem,
    MatchOut,
    MessageCreateRequest,
    MessageOut,
    UserPublic,
)
from app.services.events import ChangePublisher
from app.services.retry import run_in_transaction

router = APIRouter(tags=["matches"])
settings = get_settings()


async def _get_member_match_or_404(
    db: AsyncSession,
    *,
    match_id: uuid.UUID,
    current_user: User,
    resource: str = "match",
    action: Action = Action.READ,
) -> Match:
    match = await get_match_by_id(db, match_id=match_id)
    if match is None:
        raise NotFound("Match not found")
    authorize(current_user.id, resource, action, match.member_ids)
    return match


def _build_match_item(match: Match, user_id: uuid.UUID) -> MatchListItem:
    # user1/user2 are loaded eagerly (lazy="selectin")
    counterpart = match.user2 if match.user1_id == user_id else match.user1
    return MatchListItem(
        **MatchOut.model_validate(match).model_dump(),
        counterpart=UserPublic.model_validate(counterpart),
    )


@router.get("/matches", response_model=List[MatchListItem])
async def list_my_matches(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[MatchListItem]:
    matches = await list_matches_for_user(
        db,
        user_id=current_user.id,
        limit=limit,
        offset=offset,
    )
    return [_build_match_item(m, current_user.id) for m in matches]


@router.get("/users/{user_id}/matches", response_model=List[MatchListItem])
async def list_user_matches(
    user_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[MatchListItem]:
    # every match of user_id has user_id as a member
    authorize(current_user.id, "match", Action.READ, (user_id,))

    matches = await list_matches_for_user(
        db,
        user_id=user_id,
        limit=limit,
        offset=offset,
    )
    return [_build_match_item(m, user_id) for m in matches]


@router.get("/matches/{match_id}", response_model=MatchListItem)
async def get_match(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MatchListItem:
    match = await _get_member_match_or_404(
        db,
        match_id=match_id,
        current_user=current_user,
    )
    return _build_match_item(match, current_user.id)


# ---------- MESSAGES ----------

@router.get("/matches/{match_id}/messages", response_model=List[MessageOut])
async def get_match_messages(
    match_id: uuid.UUID,
    limit: int = Query(settings.messages_page_size, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[MessageOut]:
    await _get_member_match_or_404(
        db,
        match_id=match_id,
        current_user=current_user,
        resource="message",
    )
    messages = await list_messages(
        db,
        match_id=match_id,
        limit=limit,
        offset=offset,
    )
    return [MessageOut.model_validate(m) for m in messages]


@router.post(
    "/matches/{match_id}/messages",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
)
async def post_match_message(
    match_id: uuid.UUID,
    payload: MessageCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> MessageOut:
    match = await get_match_by_id(db, match_id=match_id)
    if match is None:
        raise NotFound("Match not found")

    sender_id = payload.sender_id or current_user.id
    authorize_message_send(current_user.id, match, sender_id)

    message = await run_in_transaction(
        db,
        send_message,
        publisher=publisher,
        match_id=match.id,
        sender_id=sender_id,
        content=payload.content,
        image_url=payload.image_url,
    )
    return MessageOut.model_validate(message)


@router.post(
    "/matches/{match_id}/messages/read",
    response_model=MarkReadResponse,
)
async def read_match_messages(
    match_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> MarkReadResponse:
    await _get_member_match_or_404(
        db,
        match_id=match_id,
        current_user=current_user,
        resource="message",
        action=Action.UPDATE,
    )
    updated = await run_in_transaction(
        db,
        mark_messages_read,
        publisher=publisher,
        match_id=match_id,
        reader_id=current_user.id,
    )
    return MarkReadResponse(updated=updated)
