"""Order routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from commissiondesk import crud
from commissiondesk.auth import User
from commissiondesk.core.commission import replay_commission
from commissiondesk.database import get_session
from commissiondesk.dependencies import PageParams, page_params, sort_order_param
from commissiondesk.errors import NotFound
from commissiondesk.models import Order
from commissiondesk.permissions import ensure_owner, require_permission, require_view, sees_all
from commissiondesk.schemas import OrderCreate, OrderRead, OrderUpdate
from commissiondesk.security import client_ip

router = APIRouter(prefix="/api/orders", tags=["Orders"])


def _get_order_or_404(db: Session, order_id: int) -> Order:
    order = crud.get_order(db, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


def _order_label(order: Order) -> str:
    title = order.campaign.title if order.campaign else "campaign"
    return f"Order #{order.id} ({title})"


@router.get("")
def list_orders(
    search: str | None = Query(None, description="Matches item names"),
    campaign_id: int | None = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Depends(sort_order_param),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: User = Depends(require_view("orders")),
):
    """Live orders; sales persons are limited to their own active campaigns."""
    if sort_by not in crud.ORDER_SORT_FIELDS:
        raise HTTPException(
            status_code=400,
            detail=f"sort_by must be one of {', '.join(crud.ORDER_SORT_FIELDS)}.",
        )

    restrict_to = None if sees_all(user, "orders") else user.id
    if campaign_id is not None and restrict_to is not None:
        campaign = crud.get_campaign(db, campaign_id)
        ensure_owner(user, "orders", campaign.sales_person_id if campaign else None)

    orders, pagination = crud.list_orders(
        db,
        sales_person_id=restrict_to,
        campaign_id=campaign_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=paging.page,
        limit=paging.limit,
    )
    return {
        "orders": [OrderRead.model_validate(order).model_dump(mode="json") for order in orders],
        "pagination": pagination,
    }


@router.post("", response_model=OrderRead, status_code=201)
def create_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_session),
    user: User = Depends(require_permission("orders", "create")),
):
    """Create an order; the owner's current rate is frozen onto it."""
    campaign = crud.get_campaign(db, payload.campaign_id, include_deleted=True)
    if campaign is not None:
        ensure_owner(user, "orders", campaign.sales_person_id)

    try:
        order = crud.create_order(db, campaign, payload.items)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    crud.log_activity(
        db,
        user.id,
        "order_create",
        target_type="Order",
        target_id=order.id,
        target_name=_order_label(order),
        details={
            "campaign_id": order.campaign_id,
            "order_total": order.order_total,
            "commission_amount": order.commission_amount,
            "rate_snapshot": order.commission_rate_snapshot,
        },
        ip_address=client_ip(request),
    )
    return order


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    db: Session = Depends(get_session),
    user: User = Depends(require_view("orders")),
):
    order = _get_order_or_404(db, order_id)
    ensure_owner(user, "orders", order.sales_person_id)
    return order


@router.put("/{order_id}", response_model=OrderRead)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("orders", "edit")),
):
    """Replace the items; the commission is recomputed with the frozen rate."""
    order = _get_order_or_404(db, order_id)
    previous_amount = order.commission_amount
    try:
        order = crud.update_order(db, order, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    crud.log_activity(
        db,
        admin.id,
        "order_update",
        target_type="Order",
        target_id=order.id,
        target_name=_order_label(order),
        details={
            "previous_commission": previous_amount,
            "commission_amount": order.commission_amount,
            "item_count": len(order.items),
        },
        ip_address=client_ip(request),
    )
    return order


@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("orders", "delete")),
):
    order = _get_order_or_404(db, order_id)
    label = _order_label(order)
    crud.soft_delete_order(db, order)

    crud.log_activity(
        db,
        admin.id,
        "order_delete",
        target_type="Order",
        target_id=order_id,
        target_name=label,
        ip_address=client_ip(request),
    )
    return {"message": "Order deleted"}


@router.get("/{order_id}/audit")
def audit_order(
    order_id: int,
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("orders", "view_all")),
):
    """Replay items x frozen rate and compare with the stored commission."""
    order = _get_order_or_404(db, order_id)
    replayed = replay_commission(order.items, order.commission_rate_snapshot)
    return {
        "order_id": order.id,
        "rate_snapshot": float(order.commission_rate_snapshot),
        "order_total": float(order.order_total),
        "stored_commission": float(order.commission_amount),
        "replayed_commission": float(replayed),
        "matches": replayed == order.commission_amount,
    }
