import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.db import engine
from app.errors import CoreError, core_error_handler, validation_error_handler
from app.models import Base
from app.routers import auth, matches, posts, safety, swipes, users

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(CoreError, core_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)


@app.on_event("startup")
async def on_startup() -> None:
    # production schemas are managed by alembic
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.get("/health", tags=["health"])
async def health() -> dict:
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(swipes.router)
app.include_router(matches.router)
app.include_router(posts.router)
app.include_router(safety.router)
