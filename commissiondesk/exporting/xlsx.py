from __future__ import annotations

from io import BytesIO
from typing import Iterable, Mapping

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from commissiondesk import crud
from commissiondesk.auth import CommissionRateChange, User
from commissiondesk.core.aggregation import SalesPersonMetrics
from commissiondesk.core.formatting import format_display_date, format_display_datetime
from commissiondesk.models import Campaign, Order

CAMPAIGN_COLUMNS = [
    "campaign_id", "title", "sales_person", "platform", "type", "status", "display_status",
    "start_date", "end_date", "order_count", "total_sales", "total_commission", "created_at",
]
SALES_PERSON_COLUMNS = [
    "user_id", "username", "name", "commission_rate", "campaign_count", "order_count",
    "total_sales", "total_commission", "efficiency_ratio",
]
ORDER_COLUMNS = [
    "order_id", "campaign_id", "campaign_title", "sales_person", "items", "order_total",
    "rate_snapshot", "commission_amount", "created_at",
]
HISTORY_COLUMNS = ["change_id", "user_id", "username", "rate", "changed_at", "changed_by"]


def _campaigns_df(campaigns: Iterable[Campaign], stats: Mapping[int, dict]) -> pd.DataFrame:
    rows = []
    for item in campaigns:
        item_stats = stats.get(item.id, {})
        rows.append(
            {
                "campaign_id": item.id,
                "title": item.title,
                "sales_person": item.sales_person.name if item.sales_person else None,
                "platform": item.platform,
                "type": item.type,
                "status": item.status,
                "display_status": item.display_status,
                "start_date": format_display_date(item.start_date),
                "end_date": format_display_date(item.end_date),
                "order_count": item_stats.get("order_count", 0),
                "total_sales": item_stats.get("total_sales", 0.0),
                "total_commission": item_stats.get("total_commission", 0.0),
                "created_at": format_display_datetime(item.created_at),
            }
        )
    return pd.DataFrame(rows, columns=CAMPAIGN_COLUMNS)


def _sales_people_df(users: Iterable[User], metrics: Mapping[int, SalesPersonMetrics]) -> pd.DataFrame:
    rows = []
    for item in users:
        item_metrics = metrics[item.id]
        rows.append(
            {
                "user_id": item.id,
                "username": item.username,
                "name": item.name,
                "commission_rate": float(item.commission_rate),
                "campaign_count": item_metrics.campaign_count,
                "order_count": item_metrics.order_count,
                "total_sales": float(item_metrics.total_sales),
                "total_commission": float(item_metrics.total_commission),
                "efficiency_ratio": float(item_metrics.efficiency_ratio),
            }
        )
    return pd.DataFrame(rows, columns=SALES_PERSON_COLUMNS)


def _orders_df(orders: Iterable[Order]) -> pd.DataFrame:
    rows = []
    for item in orders:
        rows.append(
            {
                "order_id": item.id,
                "campaign_id": item.campaign_id,
                "campaign_title": item.campaign.title,
                "sales_person": item.campaign.sales_person.name if item.campaign.sales_person else None,
                "items": "; ".join(f"{line.quantity} x {line.name}" for line in item.items),
                "order_total": float(item.order_total),
                "rate_snapshot": float(item.commission_rate_snapshot),
                "commission_amount": float(item.commission_amount),
                "created_at": format_display_datetime(item.created_at),
            }
        )
    return pd.DataFrame(rows, columns=ORDER_COLUMNS)


def _history_df(changes: Iterable[CommissionRateChange]) -> pd.DataFrame:
    rows = []
    for item in changes:
        rows.append(
            {
                "change_id": item.id,
                "user_id": item.user_id,
                "username": item.user.username if item.user else None,
                "rate": float(item.rate),
                "changed_at": format_display_datetime(item.changed_at),
                "changed_by": item.changed_by.username if item.changed_by else None,
            }
        )
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def export_commission_workbook(db: Session) -> bytes:
    """Return an XLSX workbook (bytes) with campaigns, sales persons, orders and rate history.

    Figures only cover live orders of active campaigns.
    """
    campaigns = crud.active_campaigns(db)
    campaign_stats = crud.campaign_order_stats(db, [campaign.id for campaign in campaigns])

    sales_people = db.execute(
        select(User).where(User.role == "sales_person").order_by(User.name, User.id)
    ).scalars().all()
    metrics = crud.sales_person_metrics(db, [user.id for user in sales_people])

    orders = crud.live_orders(db)
    changes = db.execute(
        select(CommissionRateChange)
        .options(selectinload(CommissionRateChange.user), selectinload(CommissionRateChange.changed_by))
        .order_by(CommissionRateChange.user_id, CommissionRateChange.id)
    ).scalars().all()

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _campaigns_df(campaigns, campaign_stats).to_excel(writer, sheet_name="Campaigns", index=False)
        _sales_people_df(sales_people, metrics).to_excel(writer, sheet_name="SalesPersons", index=False)
        _orders_df(orders).to_excel(writer, sheet_name="Orders", index=False)
        _history_df(changes).to_excel(writer, sheet_name="CommissionHistory", index=False)

    buffer.seek(0)
    return buffer.getvalue()
