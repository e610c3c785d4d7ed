"""Analytics routes: campaign and sales person performance, trends, insights."""
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from commissiondesk import crud
from commissiondesk.auth import User
from commissiondesk.core.aggregation import (
    BUCKETINGS,
    CampaignMetrics,
    aggregate_by_campaign,
    aggregate_by_time_bucket,
    group_by_campaign,
    rank,
)
from commissiondesk.core.insights import CampaignPerformance, SalesPersonPerformance, build_insights
from commissiondesk.database import get_session
from commissiondesk.models import Campaign
from commissiondesk.permissions import require_permission, sees_all

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

DEFAULT_TREND_MONTHS = 6


def _campaign_metrics(db: Session, campaigns: Sequence[Campaign]) -> list[tuple[Campaign, CampaignMetrics]]:
    grouped = group_by_campaign(crud.live_orders(db, campaign_ids=[campaign.id for campaign in campaigns]))
    return [(campaign, aggregate_by_campaign(grouped.get(campaign.id, []))) for campaign in campaigns]


def _campaign_rows(db: Session, campaigns: Sequence[Campaign]) -> list[dict]:
    rows = []
    for campaign, metrics in _campaign_metrics(db, campaigns):
        rows.append(
            {
                "id": campaign.id,
                "title": campaign.title,
                "platform": campaign.platform,
                "type": campaign.type,
                "sales_person": (
                    {
                        "id": campaign.sales_person.id,
                        "name": campaign.sales_person.name,
                        "commission_rate": float(campaign.sales_person.commission_rate),
                    }
                    if campaign.sales_person
                    else None
                ),
                "metrics": metrics.as_dict(),
            }
        )
    return rows


def _sum(rows: Sequence[dict], field: str) -> float:
    return round(sum(row["metrics"][field] for row in rows), 2)


def _sales_person_rows(db: Session) -> list[dict]:
    sales_people = db.execute(select(User).where(User.role == "sales_person")).scalars().all()
    metrics = crud.sales_person_metrics(db, [person.id for person in sales_people])
    rows = [
        {
            "id": person.id,
            "name": person.name,
            "username": person.username,
            "commission_rate": float(person.commission_rate),
            "metrics": metrics[person.id].as_dict(),
        }
        for person in sales_people
    ]
    return rank(rows, key=lambda row: row["metrics"]["total_sales"])


@router.get("/campaigns")
def campaign_analytics(
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("analytics", "view_all")),
):
    """Every active campaign, best net revenue first."""
    rows = rank(_campaign_rows(db, crud.active_campaigns(db)), key=lambda row: row["metrics"]["net_revenue"])
    return {
        "campaigns": rows,
        "summary": {
            "total_campaigns": len(rows),
            "total_sales": _sum(rows, "total_sales"),
            "total_commission": _sum(rows, "total_commission"),
            "total_net_revenue": _sum(rows, "net_revenue"),
        },
    }


@router.get("/my-campaigns")
def my_campaign_analytics(
    db: Session = Depends(get_session),
    user: User = Depends(require_permission("analytics", "view_own")),
):
    rows = rank(
        _campaign_rows(db, crud.active_campaigns(db, sales_person_id=user.id)),
        key=lambda row: row["metrics"]["total_sales"],
    )
    return {
        "campaigns": rows,
        "summary": {
            "total_campaigns": len(rows),
            "total_sales": _sum(rows, "total_sales"),
            "total_commission": _sum(rows, "total_commission"),
        },
    }


@router.get("/sales-persons")
def sales_person_analytics(
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("analytics", "view_all")),
):
    rows = _sales_person_rows(db)
    return {
        "sales_persons": rows,
        "summary": {
            "total_sales_persons": len(rows),
            "total_sales": _sum(rows, "total_sales"),
            "total_commission": _sum(rows, "total_commission"),
        },
    }


@router.get("/summary")
def summary(
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("analytics", "view_all")),
):
    campaigns = crud.active_campaigns(db)
    rows = rank(_campaign_rows(db, campaigns), key=lambda row: row["metrics"]["total_sales"])
    totals = aggregate_by_campaign(crud.live_orders(db))
    top = rows[0] if rows and rows[0]["metrics"]["total_sales"] > 0 else None
    return {
        "total_sales": float(totals.total_sales),
        "total_commission": float(totals.total_commission),
        "total_net_revenue": float(totals.net_revenue),
        "total_orders": totals.order_count,
        "total_campaigns": len(campaigns),
        "top_campaign": (
            {"id": top["id"], "title": top["title"], "sales": top["metrics"]["total_sales"]} if top else None
        ),
    }


@router.get("/insights")
def insights(
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("analytics", "view_all")),
):
    """Plain-language observations derived from the current figures."""
    campaigns = [
        CampaignPerformance(
            title=campaign.title,
            total_sales=metrics.total_sales,
            commission_rate=metrics.commission_rate,
        )
        for campaign, metrics in _campaign_metrics(db, crud.active_campaigns(db))
    ]
    sales_people = db.execute(
        select(User).where(User.role == "sales_person").order_by(User.id)
    ).scalars().all()
    person_metrics = crud.sales_person_metrics(db, [person.id for person in sales_people])
    performers = [
        SalesPersonPerformance(
            name=person.name,
            total_sales=person_metrics[person.id].total_sales,
            current_rate=person.commission_rate,
        )
        for person in sales_people
    ]
    return {"insights": build_insights(campaigns, performers), "generated_at": datetime.now().isoformat()}


@router.get("/trends")
def trends(
    period: str = Query("weekly", pattern="^(weekly|monthly)$"),
    months: int = Query(DEFAULT_TREND_MONTHS, ge=1, le=36),
    db: Session = Depends(get_session),
    user: User = Depends(require_permission("analytics", "view_own")),
):
    """Sales and commission per week or month over the last ``months`` months."""
    end_date = datetime.now()
    start_date = end_date - relativedelta(months=months)
    orders = crud.live_orders(
        db,
        sales_person_id=None if sees_all(user, "analytics") else user.id,
        since=start_date,
    )
    return {
        "trends": [bucket.as_dict() for bucket in aggregate_by_time_bucket(orders, period)],
        "period": period,
        "available_periods": list(BUCKETINGS),
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
    }
