import logging
import uuid
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import AlreadyExists, InvalidArgument, NotFound
from ..models import User
from ..services.events import record_change

logger = logging.getLogger(__name__)

# profile fields a user may change on their own record
EDITABLE_FIELDS = frozenset({
    "display_name", "phone", "bio", "gender", "gender_preference",
    "latitude", "longitude", "city", "country",
    "height_cm", "job_title", "company", "education",
    "lifestyle", "photo_urls", "interests", "prompts",
})
# NOT NULL columns among them
REQUIRED_FIELDS = frozenset({
    "display_name", "gender", "gender_preference",
    "lifestyle", "photo_urls", "interests", "prompts",
})


async def get_user_by_id(db: AsyncSession, *, user_id: uuid.UUID) -> Optional[User]:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    stmt = select(User).where(User.email == email)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password_hash: Optional[str],
    display_name: str,
    birth_date,
    gender: str,
    gender_preference: list[str],
) -> User:
    """
    Creates the identity record. Does not commit.
    """
    if await get_user_by_email(db, email) is not None:
        raise AlreadyExists("User with this email already registered")

    user = User(
        email=email,
        hashed_password=password_hash,
        display_name=display_name,
        birth_date=birth_date,
        gender=gender,
        gender_preference=list(gender_preference),
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        # a concurrent registration took the email after the check above
        raise AlreadyExists("User with this email already registered") from exc

    record_change(db, table="users", operation="insert", record_id=user.id)
    logger.info("Registered user %s", user.id)
    return user


async def update_user(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    **fields: Any,
) -> User:
    user = await get_user_by_id(db, user_id=user_id)
    if user is None or not user.is_active:
        raise NotFound("User not found")

    for field, value in fields.items():
        if field not in EDITABLE_FIELDS:
            raise InvalidArgument(f"{field} cannot be changed")
        if value is None and field in REQUIRED_FIELDS:
            raise InvalidArgument(f"{field} must not be null")

    for field, value in fields.items():
        setattr(user, field, value)
    await db.flush()

    record_change(
        db,
        table="users",
        operation="update",
        record_id=user.id,
        fields=sorted(fields),
    )
    return user
