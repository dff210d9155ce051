# app/routers/safety.py

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user, get_db, get_publisher
from app.models import User
from app.policies import Action, authorize
from app.repositories.safety_repository import (
    block_user,
    create_report,
    list_blocks,
    list_reports,
    unblock_user,
)
from app.schemas import BlockCreateRequest, BlockOut, ReportCreateRequest, ReportOut
from app.services.events import ChangePublisher
from app.services.retry import run_in_transaction

router = APIRouter(tags=["safety"])


# ---------- BLOCKS ----------

@router.post(
    "/blocks",
    response_model=BlockOut,
    status_code=status.HTTP_201_CREATED,
)
async def block(
    payload: BlockCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> BlockOut:
    authorize(current_user.id, "block", Action.CREATE, (current_user.id,))

    user_block = await run_in_transaction(
        db,
        block_user,
        publisher=publisher,
        blocker_id=current_user.id,
        blocked_id=payload.blocked_id,
    )
    return BlockOut.model_validate(user_block)


@router.delete("/blocks/{blocked_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock(
    blocked_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> None:
    authorize(current_user.id, "block", Action.DELETE, (current_user.id,))

    await run_in_transaction(
        db,
        unblock_user,
        publisher=publisher,
        blocker_id=current_user.id,
        blocked_id=blocked_id,
    )


@router.get("/users/{user_id}/blocks", response_model=List[BlockOut])
async def get_user_blocks(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[BlockOut]:
    authorize(current_user.id, "block", Action.READ, (user_id,))

    blocks = await list_blocks(db, blocker_id=user_id)
    return [BlockOut.model_validate(b) for b in blocks]


# ---------- REPORTS ----------

@router.post(
    "/reports",
    response_model=ReportOut,
    status_code=status.HTTP_201_CREATED,
)
async def report(
    payload: ReportCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> ReportOut:
    authorize(current_user.id, "report", Action.CREATE, (current_user.id,))

    user_report = await run_in_transaction(
        db,
        create_report,
        publisher=publisher,
        reporter_id=current_user.id,
        reason=payload.reason,
        details=payload.details,
        reported_user_id=payload.reported_user_id,
        reported_post_id=payload.reported_post_id,
    )
    return ReportOut.model_validate(user_report)


@router.get("/users/{user_id}/reports", response_model=List[ReportOut])
async def get_user_reports(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[ReportOut]:
    authorize(current_user.id, "report", Action.READ, (user_id,))

    reports = await list_reports(db, reporter_id=user_id)
    return [ReportOut.model_validate(r) for r in reports]
