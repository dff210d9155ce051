# app/repositories/post_repository.py

from __future__ import annotations

import uuid
from typing import Any, List, Optional

from sqlalchemy import delete, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import upsert_insert
from app.errors import AlreadyExists, InvalidArgument, NotFound
from app.models import Post, PostComment, PostLike
from app.services.events import record_change


# ---------- ENGAGEMENT COUNTERS ----------
# The only code paths that touch likes_count / comments_count.
# Each is a single UPDATE with the arithmetic done by the database.

async def _shift_counter(
    db: AsyncSession,
    *,
    post_id: uuid.UUID,
    column,
    delta: int,
) -> None:
    stmt = (
        update(Post)
        .where(Post.id == post_id)
        .values({column: column + delta})
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        raise NotFound("Post not found")

    record_change(
        db,
        table="posts",
        operation="update",
        record_id=post_id,
        counter=column.key,
        delta=delta,
    )


async def on_like_created(db: AsyncSession, *, post_id: uuid.UUID) -> None:
    await _shift_counter(db, post_id=post_id, column=Post.likes_count, delta=1)


async def on_like_deleted(db: AsyncSession, *, post_id: uuid.UUID) -> None:
    await _shift_counter(db, post_id=post_id, column=Post.likes_count, delta=-1)


async def on_comment_created(db: AsyncSession, *, post_id: uuid.UUID) -> None:
    await _shift_counter(db, post_id=post_id, column=Post.comments_count, delta=1)


async def on_comment_deleted(db: AsyncSession, *, post_id: uuid.UUID) -> None:
    await _shift_counter(db, post_id=post_id, column=Post.comments_count, delta=-1)


# ---------- POSTS ----------

async def create_post(
    db: AsyncSession,
    *,
    author_id: uuid.UUID,
    content: str,
    image_url: Optional[str] = None,
) -> Post:
    content = content.strip()
    if not content:
        raise InvalidArgument("Post content must not be empty")

    post = Post(author_id=author_id, content=content, image_url=image_url)
    db.add(post)
    await db.flush()

    record_change(db, table="posts", operation="insert", record_id=post.id)
    return post


async def get_post_by_id(db: AsyncSession, *, post_id: uuid.UUID) -> Optional[Post]:
    return await db.get(Post, post_id)


async def update_post(
    db: AsyncSession,
    *,
    post_id: uuid.UUID,
    **fields: Any,
) -> Post:
    """
    Updates author-editable fields. Counters are not accepted here.
    """
    post = await get_post_by_id(db, post_id=post_id)
    if post is None:
        raise NotFound("Post not found")

    for field in ("likes_count", "comments_count"):
        if field in fields:
            raise InvalidArgument(f"{field} cannot be set directly")

    if "content" in fields:
        content = (fields["content"] or "").strip()
        if not content:
            raise InvalidArgument("Post content must not be empty")
        fields["content"] = content

    for field, value in fields.items():
        setattr(post, field, value)
    await db.flush()

    record_change(db, table="posts", operation="update", record_id=post.id)
    return post


async def delete_post(db: AsyncSession, *, post_id: uuid.UUID) -> None:
    post = await get_post_by_id(db, post_id=post_id)
    if post is None:
        raise NotFound("Post not found")
    await db.delete(post)
    await db.flush()
    record_change(db, table="posts", operation="delete", record_id=post_id)


async def list_posts(
    db: AsyncSession,
    *,
    limit: int = 20,
    offset: int = 0,
    author_id: Optional[uuid.UUID] = None,
) -> List[Post]:
    stmt = select(Post)
    if author_id is not None:
        stmt = stmt.where(Post.author_id == author_id)
    stmt = stmt.order_by(Post.created_at.desc(), Post.id).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def liked_post_ids(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    post_ids: List[uuid.UUID],
) -> set[uuid.UUID]:
    if not post_ids:
        return set()
    stmt = select(PostLike.post_id).where(
        PostLike.user_id == user_id,
        PostLike.post_id.in_(post_ids),
    )
    result = await db.execute(stmt)
    return set(result.scalars().all())


# ---------- LIKES ----------

async def like_post(
    db: AsyncSession,
    *,
    post_id: uuid.UUID,
    user_id: uuid.UUID,
) -> PostLike:
    """
    Inserts the like and bumps likes_count in the same transaction.
    A second like by the same user hits the (post_id, user_id) constraint.
    """
    if await get_post_by_id(db, post_id=post_id) is None:
        raise NotFound("Post not found")

    stmt = (
        upsert_insert(db, PostLike)
        .values(id=uuid.uuid4(), post_id=post_id, user_id=user_id)
        .on_conflict_do_nothing(index_elements=["post_id", "user_id"])
        .returning(PostLike.id)
    )
    like_id = (await db.execute(stmt)).scalar_one_or_none()
    if like_id is None:
        raise AlreadyExists("Post is already liked")

    record_change(
        db,
        table="post_likes",
        operation="insert",
        record_id=like_id,
        post_id=str(post_id),
        user_id=str(user_id),
    )
    await on_like_created(db, post_id=post_id)
    return await db.get(PostLike, like_id)


async def unlike_post(
    db: AsyncSession,
    *,
    post_id: uuid.UUID,
    user_id: uuid.UUID,
) -> None:
    stmt = (
        delete(PostLike)
        .where(
            PostLike.post_id == post_id,
            PostLike.user_id == user_id,
        )
        .returning(PostLike.id)
        .execution_options(synchronize_session=False)
    )
    like_id = (await db.execute(stmt)).scalar_one_or_none()
    if like_id is None:
        raise NotFound("Like not found")

    record_change(
        db,
        table="post_likes",
        operation="delete",
        record_id=like_id,
        post_id=str(post_id),
        user_id=str(user_id),
    )
    await on_like_deleted(db, post_id=post_id)


async def is_post_liked(
    db: AsyncSession,
    *,
    post_id: uuid.UUID,
    user_id: uuid.UUID,
) -> bool:
    stmt = select(
        exists().where(
            PostLike.post_id == post_id,
            PostLike.user_id == user_id,
        )
    )
    return bool((await db.execute(stmt)).scalar_one())


# ---------- COMMENTS ----------

async def add_comment(
    db: AsyncSession,
    *,
    post_id: uuid.UUID,
    author_id: uuid.UUID,
    content: str,
) -> PostComment:
    content = content.strip()
    if not content:
        raise InvalidArgument("Comment content must not be empty")
    if await get_post_by_id(db, post_id=post_id) is None:
        raise NotFound("Post not found")

    comment = PostComment(post_id=post_id, author_id=author_id, content=content)
    db.add(comment)
    await db.flush()

    record_change(
        db,
        table="post_comments",
        operation="insert",
        record_id=comment.id,
        post_id=str(post_id),
    )
    await on_comment_created(db, post_id=post_id)
    return comment


async def get_comment_by_id(
    db: AsyncSession,
    *,
    comment_id: uuid.UUID,
) -> Optional[PostComment]:
    return await db.get(PostComment, comment_id)


async def delete_comment(db: AsyncSession, *, comment_id: uuid.UUID) -> None:
    stmt = (
        delete(PostComment)
        .where(PostComment.id == comment_id)
        .returning(PostComment.post_id)
        .execution_options(synchronize_session=False)
    )
    post_id = (await db.execute(stmt)).scalar_one_or_none()
    if post_id is None:
        raise NotFound("Comment not found")

    record_change(
        db,
        table="post_comments",
        operation="delete",
        record_id=comment_id,
        post_id=str(post_id),
    )
    await on_comment_deleted(db, post_id=post_id)


async def list_comments(
    db: AsyncSession,
    *,
    post_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> List[PostComment]:
    stmt = (
        select(PostComment)
        .where(PostComment.post_id == post_id)
        .order_by(PostComment.created_at, PostComment.id)
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
