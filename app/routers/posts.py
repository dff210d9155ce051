# app/routers/posts.py

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.deps import get_current_user, get_db, get_publisher
from app.errors import NotFound
from app.models import Post, User
from app.policies import Action, authorize
from app.repositories.post_repository import (
    add_comment,
    create_post,
    delete_comment,
    delete_post,
    get_comment_by_id,
    get_post_by_id,
    is_post_liked,
    like_post,
    liked_post_ids,
    list_comments,
    list_posts,
    unlike_post,
    update_post,
)
from app.schemas import (
    CommentCreateRequest,
    CommentOut,
    PostCreateRequest,
    PostLikeOut,
    PostOut,
    PostUpdateRequest,
)
from app.services.events import ChangePublisher
from app.services.retry import run_in_transaction

router = APIRouter(tags=["posts"])
settings = get_settings()


async def _get_post_or_404(db: AsyncSession, *, post_id: uuid.UUID) -> Post:
    post = await get_post_by_id(db, post_id=post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


def _post_out(post: Post, *, liked: bool) -> PostOut:
    return PostOut(
        **PostOut.model_validate(post).model_dump(exclude={"is_liked_by_current_user"}),
        is_liked_by_current_user=liked,
    )


@router.get("/posts", response_model=List[PostOut])
async def get_feed(
    author_id: uuid.UUID | None = None,
    limit: int = Query(settings.posts_page_size, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[PostOut]:
    authorize(current_user.id, "post", Action.READ)

    posts = await list_posts(
        db,
        author_id=author_id,
        limit=limit,
        offset=offset,
    )
    liked = await liked_post_ids(
        db,
        user_id=current_user.id,
        post_ids=[p.id for p in posts],
    )
    return [_post_out(p, liked=p.id in liked) for p in posts]


@router.post(
    "/posts",
    response_model=PostOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_my_post(
    payload: PostCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> PostOut:
    author_id = payload.author_id or current_user.id
    authorize(current_user.id, "post", Action.CREATE, (author_id,))

    post = await run_in_transaction(
        db,
        create_post,
        publisher=publisher,
        author_id=author_id,
        content=payload.content,
        image_url=payload.image_url,
    )
    return _post_out(post, liked=False)


@router.get("/posts/{post_id}", response_model=PostOut)
async def get_post(
    post_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    authorize(current_user.id, "post", Action.READ)

    post = await _get_post_or_404(db, post_id=post_id)
    liked = await is_post_liked(db, post_id=post.id, user_id=current_user.id)
    return _post_out(post, liked=liked)


@router.patch("/posts/{post_id}", response_model=PostOut)
async def update_my_post(
    post_id: uuid.UUID,
    payload: PostUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> PostOut:
    post = await _get_post_or_404(db, post_id=post_id)
    authorize(current_user.id, "post", Action.UPDATE, (post.author_id,))

    post = await run_in_transaction(
        db,
        update_post,
        publisher=publisher,
        post_id=post.id,
        **payload.model_dump(exclude_unset=True),
    )
    await db.refresh(post)
    liked = await is_post_liked(db, post_id=post.id, user_id=current_user.id)
    return _post_out(post, liked=liked)


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_post(
    post_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> None:
    post = await _get_post_or_404(db, post_id=post_id)
    authorize(current_user.id, "post", Action.DELETE, (post.author_id,))

    await run_in_transaction(db, delete_post, publisher=publisher, post_id=post.id)


# ---------- LIKES ----------

@router.post(
    "/posts/{post_id}/likes",
    response_model=PostLikeOut,
    status_code=status.HTTP_201_CREATED,
)
async def like(
    post_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> PostLikeOut:
    authorize(current_user.id, "like", Action.CREATE, (current_user.id,))

    post_like = await run_in_transaction(
        db,
        like_post,
        publisher=publisher,
        post_id=post_id,
        user_id=current_user.id,
    )
    return PostLikeOut.model_validate(post_like)


@router.delete("/posts/{post_id}/likes", status_code=status.HTTP_204_NO_CONTENT)
async def unlike(
    post_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> None:
    authorize(current_user.id, "like", Action.DELETE, (current_user.id,))

    await run_in_transaction(
        db,
        unlike_post,
        publisher=publisher,
        post_id=post_id,
        user_id=current_user.id,
    )


# ---------- COMMENTS ----------

@router.get("/posts/{post_id}/comments", response_model=List[CommentOut])
async def get_post_comments(
    post_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[CommentOut]:
    authorize(current_user.id, "comment", Action.READ)

    await _get_post_or_404(db, post_id=post_id)
    comments = await list_comments(db, post_id=post_id, limit=limit, offset=offset)
    return [CommentOut.model_validate(c) for c in comments]


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def comment_on_post(
    post_id: uuid.UUID,
    payload: CommentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> CommentOut:
    author_id = payload.author_id or current_user.id
    authorize(current_user.id, "comment", Action.CREATE, (author_id,))

    comment = await run_in_transaction(
        db,
        add_comment,
        publisher=publisher,
        post_id=post_id,
        author_id=author_id,
        content=payload.content,
    )
    return CommentOut.model_validate(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_comment(
    comment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> None:
    comment = await get_comment_by_id(db, comment_id=comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    authorize(current_user.id, "comment", Action.DELETE, (comment.author_id,))

    await run_in_transaction(
        db,
        delete_comment,
        publisher=publisher,
        comment_id=comment.id,
    )
