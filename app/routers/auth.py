from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_publisher
from ..schemas import LoginRequest, RegisterRequest, TokenResponse
from ..security import create_access_token, hash_password, verify_password
from ..repositories.user_repository import create_user, get_user_by_email
from ..services.events import ChangePublisher
from ..services.retry import run_in_transaction

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> TokenResponse:
    # hashing is slow, keep it outside the transaction
    hashed_pwd = hash_password(payload.password)

    user = await run_in_transaction(
        db,
        create_user,
        publisher=publisher,
        email=payload.email,
        password_hash=hashed_pwd,
        display_name=payload.display_name,
        birth_date=payload.birth_date,
        gender=payload.gender,
        gender_preference=payload.gender_preference,
    )

    return TokenResponse(
        access_token=create_access_token(user.id),
        user_id=user.id,
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    user = await get_user_by_email(db, payload.email)
    if user is None or not user.is_active or not user.hashed_password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    if not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    return TokenResponse(
        access_token=create_access_token(user.id),
        user_id=user.id,
    )
