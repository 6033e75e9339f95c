"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator

from fastapi import HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from vatreport.db.session import SessionLocal
from vatreport.models import USER_ID_MAX_LENGTH


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def require_user_id(request: Request, user_id: str | None = Query(default=None)) -> str:
    """Resolve the caller-supplied ``user_id`` scope key, or answer 400."""

    if user_id is None or not user_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="user_id is required")
    if len(user_id) > USER_ID_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"user_id exceeds {USER_ID_MAX_LENGTH} characters",
        )
    request.state.user_id = user_id
    return user_id


__all__ = ["get_db_session", "require_user_id"]
