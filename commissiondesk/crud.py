"""Database access helpers."""
from __future__ import annotations

import json
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import Select

from commissiondesk.auth import CommissionRateChange, User
from commissiondesk.core.aggregation import (
    SalesPersonMetrics,
    aggregate_by_campaign,
    aggregate_by_sales_person,
    group_by_campaign,
    group_by_sales_person,
)
from commissiondesk.core.commission import (
    build_line_items,
    compute_order_total,
    create_commission_snapshot,
    recompute_commission_on_edit,
    record_rate_change,
)
from commissiondesk.core.logging import get_logger
from commissiondesk.errors import AuthorizationDenied, InvalidCampaign, InvalidRole
from commissiondesk.models import ActivityLog, Campaign, Order, OrderItem
from commissiondesk.schemas import CampaignCreate, CampaignUpdate, OrderUpdate, UserCreate, UserUpdate

logger = get_logger(__name__)

ZERO = Decimal("0")

USER_SORT_FIELDS = {
    "name": User.name,
    "username": User.username,
    "role": User.role,
    "commission_rate": User.commission_rate,
    "created_at": User.created_at,
}
CAMPAIGN_SORT_FIELDS = {
    "title": Campaign.title,
    "platform": Campaign.platform,
    "type": Campaign.type,
    "start_date": Campaign.start_date,
    "created_at": Campaign.created_at,
}
ORDER_SORT_FIELDS = ("created_at", "total", "commission")


# --- Pagination -------------------------------------------------------------

def paginate(db: Session, stmt: Select, page: int, limit: int) -> tuple[list[Any], dict[str, int]]:
    """Run ``stmt`` for one page and return rows plus the pagination envelope."""
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    rows = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()
    return list(rows), {
        "page": page,
        "limit": limit,
        "total": int(total),
        "pages": math.ceil(total / limit) if total else 0,
    }


def _ordered(column, sort_order: str):
    return column.asc() if sort_order == "asc" else column.desc()


# --- Live orders ------------------------------------------------------------

def live_orders_stmt() -> Select:
    """Orders that count for reporting: not deleted, campaign still active."""
    return (
        select(Order)
        .join(Order.campaign)
        .where(Order.deleted_at.is_(None), Campaign.status == "active")
    )


def _with_order_loading(stmt: Select) -> Select:
    return stmt.options(
        selectinload(Order.items),
        selectinload(Order.campaign).selectinload(Campaign.sales_person),
    )


def live_orders(
    db: Session,
    *,
    sales_person_id: int | None = None,
    campaign_ids: Iterable[int] | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[Order]:
    stmt = live_orders_stmt()
    if sales_person_id is not None:
        stmt = stmt.where(Campaign.sales_person_id == sales_person_id)
    if campaign_ids is not None:
        stmt = stmt.where(Order.campaign_id.in_(list(campaign_ids)))
    if since is not None:
        stmt = stmt.where(Order.created_at >= since)
    if until is not None:
        stmt = stmt.where(Order.created_at < until)
    stmt = _with_order_loading(stmt.order_by(Order.created_at, Order.id))
    return list(db.execute(stmt).scalars().all())


def _order_total_expr():
    return (
        select(func.coalesce(func.sum(OrderItem.total_price), 0))
        .where(OrderItem.order_id == Order.id)
        .correlate(Order)
        .scalar_subquery()
    )


# --- Users ------------------------------------------------------------------

def list_users(
    db: Session,
    *,
    search: str | None = None,
    role: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[User], dict[str, int]]:
    stmt = select(User)

    if search:
        like_value = f"%{search.strip()}%"
        stmt = stmt.where(User.name.ilike(like_value) | User.username.ilike(like_value))

    if role:
        stmt = stmt.where(User.role == role)

    column = USER_SORT_FIELDS.get(sort_by, User.created_at)
    stmt = stmt.order_by(_ordered(column, sort_order), User.id)
    return paginate(db, stmt, page, limit)


def sales_person_metrics(db: Session, user_ids: Sequence[int]) -> dict[int, SalesPersonMetrics]:
    """Live-order metrics keyed by sales person id; users without orders map to zeros."""
    if not user_ids:
        return {}
    wanted = set(user_ids)
    grouped = group_by_sales_person(
        order for order in live_orders(db) if order.campaign.sales_person_id in wanted
    )
    campaign_counts = active_campaign_counts(db, user_ids)
    return {
        user_id: aggregate_by_sales_person(grouped.get(user_id, []), campaign_counts.get(user_id, 0))
        for user_id in user_ids
    }


def active_campaign_counts(db: Session, user_ids: Sequence[int]) -> dict[int, int]:
    stmt = (
        select(Campaign.sales_person_id, func.count(Campaign.id))
        .where(Campaign.status == "active", Campaign.sales_person_id.in_(list(user_ids)))
        .group_by(Campaign.sales_person_id)
    )
    return {int(user_id): int(count) for user_id, count in db.execute(stmt).all()}


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> User | None:
    stmt = select(User).where(User.username == User.normalize_username(username))
    return db.execute(stmt).scalars().first()


def create_user(db: Session, payload: UserCreate) -> User:
    if get_user_by_username(db, payload.username):
        raise ValueError("Username already exists.")
    if payload.role != "sales_person" and payload.commission_rate != 0:
        raise InvalidRole("Only sales persons can have a commission rate.")
    user = User.create_user(
        payload.username,
        payload.password,
        name=payload.name,
        role=payload.role,
        commission_rate=payload.commission_rate,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_created", user_id=user.id, role=user.role)
    return user


def _owned_campaign_count(db: Session, user_id: int) -> int:
    # soft-deleted campaigns still reference their owner
    return db.execute(select(func.count()).where(Campaign.sales_person_id == user_id)).scalar_one() or 0


def update_user(db: Session, user: User, payload: UserUpdate, acting_user: User) -> User:
    """Apply profile, role and rate changes; rate changes append to history."""
    if user.id == acting_user.id and payload.role != user.role:
        raise AuthorizationDenied("You cannot change your own role.")
    if user.role == "sales_person" and payload.role != "sales_person":
        owned = _owned_campaign_count(db, user.id)
        if owned:
            raise ValueError(f"User still owns {owned} campaign(s) and must stay a sales person.")

    previous_rate = user.commission_rate
    user.name = payload.name
    user.role = payload.role

    if payload.role == "admin":
        new_rate = payload.commission_rate if payload.commission_rate is not None else ZERO
    else:
        new_rate = payload.commission_rate if payload.commission_rate is not None else user.commission_rate
    record_rate_change(user, new_rate, acting_user.id)

    if payload.password:
        user.password_hash = User.hash_password(payload.password)

    user.updated_at = datetime.now()
    db.add(user)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(user)
    if user.commission_rate != previous_rate:
        logger.info(
            "commission_rate_changed",
            user_id=user.id,
            previous_rate=str(previous_rate),
            new_rate=str(user.commission_rate),
            changed_by=acting_user.id,
        )
    return user


def list_commission_history(db: Session, user_id: int) -> Sequence[CommissionRateChange]:
    stmt = (
        select(CommissionRateChange)
        .where(CommissionRateChange.user_id == user_id)
        .order_by(CommissionRateChange.changed_at, CommissionRateChange.id)
    )
    return db.execute(stmt).scalars().all()


def get_user_delete_impact(db: Session, user: User) -> dict[str, Any]:
    """Summarise what a user owns before it is deleted."""
    campaigns_total = db.execute(
        select(func.count()).where(Campaign.sales_person_id == user.id)
    ).scalar_one() or 0
    campaigns_active = db.execute(
        select(func.count()).where(Campaign.sales_person_id == user.id, Campaign.status == "active")
    ).scalar_one() or 0
    metrics = aggregate_by_sales_person(live_orders(db, sales_person_id=user.id), int(campaigns_active))
    return {
        "user_id": user.id,
        "username": user.username,
        "campaigns_total": int(campaigns_total),
        "campaigns_active": int(campaigns_active),
        "live_orders": metrics.order_count,
        "total_sales": float(metrics.total_sales),
        "total_commission": float(metrics.total_commission),
        "can_delete": int(campaigns_total) == 0,
    }


def delete_user(db: Session, user: User, acting_user: User) -> None:
    if user.id == acting_user.id:
        raise AuthorizationDenied("You cannot delete your own account.")
    owned = _owned_campaign_count(db, user.id)
    if owned:
        raise ValueError(f"User still owns {owned} campaign(s) and cannot be deleted.")
    user_id = user.id
    db.delete(user)
    db.commit()
    logger.info("user_deleted", user_id=user_id, deleted_by=acting_user.id)


# --- Campaigns --------------------------------------------------------------

def list_campaigns(
    db: Session,
    *,
    sales_person_id: int | None = None,
    search: str | None = None,
    platform: str | None = None,
    campaign_type: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Campaign], dict[str, int]]:
    stmt = select(Campaign).where(Campaign.status == "active").options(selectinload(Campaign.sales_person))

    if sales_person_id is not None:
        stmt = stmt.where(Campaign.sales_person_id == sales_person_id)

    if search:
        stmt = stmt.where(Campaign.title.ilike(f"%{search.strip()}%"))

    if platform:
        stmt = stmt.where(Campaign.platform == platform)

    if campaign_type:
        stmt = stmt.where(Campaign.type == campaign_type)

    if created_from:
        stmt = stmt.where(Campaign.created_at >= created_from)

    if created_to:
        stmt = stmt.where(Campaign.created_at <= created_to)

    column = CAMPAIGN_SORT_FIELDS.get(sort_by, Campaign.created_at)
    stmt = stmt.order_by(_ordered(column, sort_order), Campaign.id)
    return paginate(db, stmt, page, limit)


def active_campaigns(db: Session, sales_person_id: int | None = None) -> list[Campaign]:
    stmt = select(Campaign).where(Campaign.status == "active").options(selectinload(Campaign.sales_person))
    if sales_person_id is not None:
        stmt = stmt.where(Campaign.sales_person_id == sales_person_id)
    return list(db.execute(stmt.order_by(Campaign.id)).scalars().all())


def campaign_order_stats(db: Session, campaign_ids: Sequence[int]) -> dict[int, dict[str, Any]]:
    grouped = group_by_campaign(live_orders(db, campaign_ids=campaign_ids)) if campaign_ids else {}
    stats: dict[int, dict[str, Any]] = {}
    for campaign_id in campaign_ids:
        metrics = aggregate_by_campaign(grouped.get(campaign_id, []))
        stats[campaign_id] = {
            "order_count": metrics.order_count,
            "total_sales": float(metrics.total_sales),
            "total_commission": float(metrics.total_commission),
        }
    return stats


def get_campaign(db: Session, campaign_id: int, include_deleted: bool = False) -> Campaign | None:
    campaign = db.get(Campaign, campaign_id)
    if campaign is None or (campaign.status == "deleted" and not include_deleted):
        return None
    return campaign


def create_campaign(db: Session, payload: CampaignCreate) -> Campaign:
    owner = get_user(db, payload.sales_person_id)
    if owner is None or not owner.is_sales_person():
        raise ValueError("Campaigns must be assigned to an existing sales person.")

    data = payload.model_dump()
    data["start_date"] = data["start_date"] or datetime.now()
    data["effective_date"] = data["effective_date"] or data["start_date"]
    campaign = Campaign(**data, status="active")
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    logger.info("campaign_created", campaign_id=campaign.id, sales_person_id=owner.id)
    return campaign


def update_campaign(db: Session, campaign: Campaign, payload: CampaignUpdate) -> Campaign:
    changes = payload.model_dump(exclude_unset=True)
    requested_owner = changes.pop("sales_person_id", None)
    if requested_owner is not None and requested_owner != campaign.sales_person_id:
        raise ValueError("The campaign's sales person cannot be changed.")

    for key, value in changes.items():
        if value is None and key in ("title", "platform", "type", "url", "start_date"):
            continue
        setattr(campaign, key, value)

    if campaign.end_date and campaign.start_date and campaign.end_date < campaign.start_date:
        db.rollback()
        raise ValueError("End date must be on or after start date.")

    campaign.updated_at = datetime.now()
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return campaign


def soft_delete_campaign(db: Session, campaign: Campaign) -> int:
    """Mark the campaign and all of its live orders deleted in one commit.

    Returns the number of orders that were cascaded.
    """
    now = datetime.now()
    campaign.status = "deleted"
    campaign.updated_at = now
    cascaded = 0
    for order in campaign.orders:
        if order.deleted_at is None:
            order.deleted_at = now
            cascaded += 1
    db.add(campaign)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("campaign_soft_deleted", campaign_id=campaign.id, orders_cascaded=cascaded)
    return cascaded


# --- Orders -----------------------------------------------------------------

def list_orders(
    db: Session,
    *,
    sales_person_id: int | None = None,
    campaign_id: int | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Order], dict[str, int]]:
    stmt = live_orders_stmt()

    if sales_person_id is not None:
        stmt = stmt.where(Campaign.sales_person_id == sales_person_id)

    if campaign_id is not None:
        stmt = stmt.where(Order.campaign_id == campaign_id)

    if search:
        stmt = stmt.where(Order.items.any(OrderItem.name.ilike(f"%{search.strip()}%")))

    if sort_by == "total":
        column = _order_total_expr()
    elif sort_by == "commission":
        column = Order.commission_amount
    else:
        column = Order.created_at
    stmt = _with_order_loading(stmt.order_by(_ordered(column, sort_order), Order.id))
    return paginate(db, stmt, page, limit)


def get_order(db: Session, order_id: int) -> Order | None:
    """Return a live order; soft-deleted orders read as missing."""
    stmt = _with_order_loading(select(Order).where(Order.id == order_id, Order.deleted_at.is_(None)))
    return db.execute(stmt).scalars().first()


def _order_items(lines) -> list[OrderItem]:
    return [
        OrderItem(
            position=index,
            name=line.name,
            quantity=line.quantity,
            base_price=line.base_price,
            total_price=line.total_price,
        )
        for index, line in enumerate(lines)
    ]


def create_order(db: Session, campaign: Campaign | None, items: Iterable[Any]) -> Order:
    """Create an order and freeze the owner's current commission rate onto it."""
    if campaign is None:
        raise InvalidCampaign("Invalid or inactive campaign.")
    lines = build_line_items(items)
    snapshot = create_commission_snapshot(
        compute_order_total(lines),
        campaign.sales_person.commission_rate,
        campaign_status=campaign.status,
    )
    order = Order(
        campaign_id=campaign.id,
        commission_amount=snapshot.amount,
        commission_rate_snapshot=snapshot.rate_snapshot,
        items=_order_items(lines),
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info(
        "order_created",
        order_id=order.id,
        campaign_id=campaign.id,
        commission_amount=str(order.commission_amount),
        rate_snapshot=str(order.commission_rate_snapshot),
    )
    return order


def update_order(db: Session, order: Order, payload: OrderUpdate) -> Order:
    """Replace the items and recompute the amount with the frozen rate."""
    lines = build_line_items(payload.items)
    snapshot = recompute_commission_on_edit(
        lines,
        order.commission_rate_snapshot,
        rate_override=payload.rate_snapshot,
    )
    order.items = _order_items(lines)
    order.commission_amount = snapshot.amount
    order.updated_at = datetime.now()
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("order_updated", order_id=order.id, commission_amount=str(order.commission_amount))
    return order


def soft_delete_order(db: Session, order: Order) -> None:
    order.deleted_at = datetime.now()
    db.add(order)
    db.commit()
    logger.info("order_soft_deleted", order_id=order.id)


# --- Dashboards -------------------------------------------------------------

def admin_dashboard_stats(db: Session) -> dict[str, Any]:
    total_users = db.execute(select(func.count(User.id))).scalar_one() or 0
    sales_people = db.execute(
        select(func.count(User.id)).where(User.role == "sales_person")
    ).scalar_one() or 0
    campaigns = active_campaigns(db)
    metrics = aggregate_by_campaign(live_orders(db))
    return {
        "total_users": int(total_users),
        "total_sales_persons": int(sales_people),
        "active_campaigns": len(campaigns),
        "running_campaigns": sum(1 for campaign in campaigns if campaign.is_active),
        "total_orders": metrics.order_count,
        "total_sales": float(metrics.total_sales),
        "total_commission": float(metrics.total_commission),
        "net_revenue": float(metrics.net_revenue),
    }


def sales_dashboard_stats(db: Session, user: User) -> dict[str, Any]:
    campaigns = active_campaigns(db, sales_person_id=user.id)
    metrics = aggregate_by_sales_person(live_orders(db, sales_person_id=user.id), len(campaigns))
    return {
        "my_campaigns": len(campaigns),
        "running_campaigns": sum(1 for campaign in campaigns if campaign.is_active),
        "total_orders": metrics.order_count,
        "total_sales": float(metrics.total_sales),
        "total_commission": float(metrics.total_commission),
        "current_commission_rate": float(user.commission_rate or 0),
    }


# --- Activity log -----------------------------------------------------------

def log_activity(
    db: Session,
    user_id: int | None,
    action: str,
    *,
    target_type: str | None = None,
    target_id: int | None = None,
    target_name: str | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
) -> None:
    """Append an activity entry; a failed write never fails the caller's request."""
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        target_name=target_name,
        details=json.dumps(details, default=str) if details is not None else None,
        ip_address=ip_address,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("activity_log_write_failed", action=action, user_id=user_id, error=str(exc))


def list_activities(
    db: Session,
    *,
    action: str | None = None,
    user_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ActivityLog], dict[str, int]]:
    stmt = select(ActivityLog).options(selectinload(ActivityLog.user))
    if action:
        stmt = stmt.where(ActivityLog.action == action)
    if user_id is not None:
        stmt = stmt.where(ActivityLog.user_id == user_id)
    stmt = stmt.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    return paginate(db, stmt, page, limit)


# --- Maintenance ------------------------------------------------------------

def reset_application_data(db: Session, keep_usernames: Iterable[str] = ()) -> dict[str, int]:
    """Delete all domain rows, keeping only the listed user accounts."""
    keep = [User.normalize_username(name) for name in keep_usernames]
    counts: dict[str, int] = {}
    try:
        counts["activity_logs"] = db.execute(delete(ActivityLog)).rowcount or 0
        counts["order_items"] = db.execute(delete(OrderItem)).rowcount or 0
        counts["orders"] = db.execute(delete(Order)).rowcount or 0
        counts["campaigns"] = db.execute(delete(Campaign)).rowcount or 0
        counts["commission_rate_changes"] = db.execute(delete(CommissionRateChange)).rowcount or 0
        user_delete = delete(User)
        if keep:
            user_delete = user_delete.where(User.username.not_in(keep))
        counts["users"] = db.execute(user_delete).rowcount or 0
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return counts
