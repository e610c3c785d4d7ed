"""User profile routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from commissiondesk import crud
from commissiondesk.auth import User
from commissiondesk.core.logging import get_logger
from commissiondesk.database import get_session
from commissiondesk.dependencies import get_current_user
from commissiondesk.schemas import PasswordChange, UserDetailRead
from commissiondesk.security import PasswordValidator, client_ip

logger = get_logger(__name__)

router = APIRouter(prefix="/api/profile", tags=["Profile"])


@router.get("", response_model=UserDetailRead)
def view_profile(user: User = Depends(get_current_user)):
    """Current user with their commission rate history."""
    return user


@router.post("/change-password")
def change_password(
    payload: PasswordChange,
    request: Request,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Change current user's password."""
    if not user.verify_password(payload.current_password):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    if payload.new_password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="New passwords do not match")

    is_valid, error_msg = PasswordValidator.validate(payload.new_password)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_msg)

    user.password_hash = User.hash_password(payload.new_password)
    db.add(user)
    db.commit()
    logger.info("password_changed", user_id=user.id)

    crud.log_activity(
        db,
        user.id,
        "password_change",
        target_type="User",
        target_id=user.id,
        target_name=user.username,
        ip_address=client_ip(request),
    )
    return {"message": "Password changed successfully"}
