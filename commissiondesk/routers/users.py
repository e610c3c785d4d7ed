"""User management routes (admin only)."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from commissiondesk import crud
from commissiondesk.auth import ROLE_ENUM, User
from commissiondesk.database import get_session
from commissiondesk.dependencies import PageParams, page_params, sort_order_param
from commissiondesk.errors import NotFound
from commissiondesk.permissions import require_permission
from commissiondesk.schemas import CommissionRateChangeRead, UserCreate, UserDetailRead, UserRead, UserUpdate
from commissiondesk.security import client_ip

router = APIRouter(prefix="/api/users", tags=["Users"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    return user


@router.get("")
def list_users(
    search: str | None = Query(None),
    role: str | None = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Depends(sort_order_param),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("users", "view_all")),
):
    if role and role not in ROLE_ENUM:
        raise HTTPException(status_code=400, detail="Role must be admin or sales_person.")

    users, pagination = crud.list_users(
        db,
        search=search,
        role=role,
        sort_by=sort_by,
        sort_order=sort_order,
        page=paging.page,
        limit=paging.limit,
    )
    metrics = crud.sales_person_metrics(db, [user.id for user in users if user.is_sales_person()])

    rows = []
    for user in users:
        row = UserRead.model_validate(user).model_dump(mode="json")
        stats = metrics.get(user.id)
        row["stats"] = (
            {
                "total_sales": float(stats.total_sales),
                "total_commission": float(stats.total_commission),
                "order_count": stats.order_count,
                "campaign_count": stats.campaign_count,
            }
            if stats
            else None
        )
        rows.append(row)
    return {"users": rows, "pagination": pagination}


@router.post("", response_model=UserRead, status_code=201)
def create_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("users", "create")),
):
    try:
        user = crud.create_user(db, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    crud.log_activity(
        db,
        admin.id,
        "user_create",
        target_type="User",
        target_id=user.id,
        target_name=user.username,
        details={"role": user.role, "commission_rate": user.commission_rate},
        ip_address=client_ip(request),
    )
    return user


@router.get("/{user_id}", response_model=UserDetailRead)
def get_user(
    user_id: int,
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("users", "view_all")),
):
    return _get_user_or_404(db, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("users", "edit")),
):
    user = _get_user_or_404(db, user_id)
    previous_rate = user.commission_rate
    previous_role = user.role

    try:
        user = crud.update_user(db, user, payload, admin)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    changes = {}
    if user.role != previous_role:
        changes["role"] = {"from": previous_role, "to": user.role}
    if payload.password:
        changes["password"] = "changed"
    crud.log_activity(
        db,
        admin.id,
        "user_update",
        target_type="User",
        target_id=user.id,
        target_name=user.username,
        details=changes or None,
        ip_address=client_ip(request),
    )
    if user.commission_rate != previous_rate:
        crud.log_activity(
            db,
            admin.id,
            "commission_change",
            target_type="User",
            target_id=user.id,
            target_name=user.username,
            details={"previous_rate": previous_rate, "new_rate": user.commission_rate},
            ip_address=client_ip(request),
        )
    return user


@router.get("/{user_id}/commission-history", response_model=list[CommissionRateChangeRead])
def commission_history(
    user_id: int,
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("users", "view_all")),
):
    _get_user_or_404(db, user_id)
    return crud.list_commission_history(db, user_id)


@router.get("/{user_id}/impact")
def delete_impact(
    user_id: int,
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("users", "delete")),
):
    """Preview what the user still owns before deleting them."""
    return crud.get_user_delete_impact(db, _get_user_or_404(db, user_id))


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("users", "delete")),
):
    user = _get_user_or_404(db, user_id)
    username = user.username
    try:
        crud.delete_user(db, user, admin)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    crud.log_activity(
        db,
        admin.id,
        "user_delete",
        target_type="User",
        target_id=user_id,
        target_name=username,
        ip_address=client_ip(request),
    )
    return {"message": "User deleted"}
