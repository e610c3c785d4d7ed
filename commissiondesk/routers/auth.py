"""Authentication routes and session management."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from commissiondesk import config, crud
from commissiondesk.auth import User
from commissiondesk.core.logging import get_logger
from commissiondesk.database import get_session
from commissiondesk.dependencies import get_current_user
from commissiondesk.schemas import LoginRequest, UserRead
from commissiondesk.security import client_ip

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login", response_model=UserRead)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_session),
):
    """Check credentials and set the session cookie."""
    user = crud.get_user_by_username(db, payload.username)

    if not user or not user.verify_password(payload.password):
        logger.warning("login_failed", username=User.normalize_username(payload.username), ip=client_ip(request))
        raise HTTPException(status_code=401, detail="Invalid username or password")

    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=str(user.id),
        httponly=True,
        path="/",
        secure=config.is_production(),
        samesite="lax",
        max_age=config.SESSION_MAX_AGE,
    )
    crud.log_activity(
        db,
        user.id,
        "login",
        target_type="User",
        target_id=user.id,
        target_name=user.username,
        ip_address=client_ip(request),
    )
    logger.info("login_succeeded", user_id=user.id)
    return user


@router.get("/me", response_model=UserRead)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Clear the session cookie."""
    crud.log_activity(
        db,
        user.id,
        "logout",
        target_type="User",
        target_id=user.id,
        target_name=user.username,
        ip_address=client_ip(request),
    )
    response.delete_cookie(config.SESSION_COOKIE_NAME, path="/")
    return {"message": "Logged out"}
