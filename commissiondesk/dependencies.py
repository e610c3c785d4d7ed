"""Shared FastAPI dependencies."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from commissiondesk import config
from commissiondesk.auth import User
from commissiondesk.database import get_session

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def sort_order_param(sort_order: str = Query("desc", pattern="^(asc|desc)$")) -> str:
    return sort_order


def get_current_user(request: Request, db: Session = Depends(get_session)) -> User:
    """Dependency to get current authenticated user."""
    user_id = request.cookies.get(config.SESSION_COOKIE_NAME)

    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        user_id = int(user_id)
    except (ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.get(User, user_id)

    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return user
