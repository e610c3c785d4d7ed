"""Dashboard routes for admins and sales persons."""
from __future__ import annotations

from datetime import date, datetime

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from commissiondesk import crud
from commissiondesk.auth import User
from commissiondesk.core.aggregation import aggregate_by_campaign, aggregate_by_time_bucket, group_by_campaign, rank
from commissiondesk.core.formatting import format_display_date, parse_year_month
from commissiondesk.database import get_session
from commissiondesk.exporting.xlsx import export_commission_workbook
from commissiondesk.permissions import require_permission

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/admin/stats")
def admin_stats(
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("dashboard", "view_all")),
):
    return crud.admin_dashboard_stats(db)


@router.get("/sales/stats")
def sales_stats(
    db: Session = Depends(get_session),
    user: User = Depends(require_permission("dashboard", "view_own")),
):
    return crud.sales_dashboard_stats(db, user)


@router.get("/sales/commissions")
def sales_commissions(
    db: Session = Depends(get_session),
    user: User = Depends(require_permission("dashboard", "view_own")),
):
    """Commission earned per calendar month, newest first."""
    periods = aggregate_by_time_bucket(crud.live_orders(db, sales_person_id=user.id), "monthly")
    months = []
    for period in reversed(periods):
        year, month = parse_year_month(period.period)
        months.append(
            {
                "year_month": period.period,
                "year": year,
                "month": month,
                "period_display": format_display_date(date(year, month, 1)),
                "total_sales": float(period.total_sales),
                "total_commission": float(period.total_commission),
                "order_count": period.order_count,
            }
        )
    return {"months": months}


@router.get("/sales/commissions/{year_month}")
def sales_commission_month(
    year_month: str,
    db: Session = Depends(get_session),
    user: User = Depends(require_permission("dashboard", "view_own")),
):
    """One month's commission broken down by campaign, largest first."""
    try:
        year, month = parse_year_month(year_month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    month_start = datetime(year, month, 1)
    orders = crud.live_orders(
        db,
        sales_person_id=user.id,
        since=month_start,
        until=month_start + relativedelta(months=1),
    )

    campaigns = []
    for campaign_id, campaign_orders in group_by_campaign(orders).items():
        campaign = campaign_orders[0].campaign
        metrics = aggregate_by_campaign(campaign_orders)
        campaigns.append(
            {
                "id": campaign_id,
                "title": campaign.title,
                "platform": campaign.platform,
                "type": campaign.type,
                "commission": float(metrics.total_commission),
                "total_sales": float(metrics.total_sales),
                "order_count": metrics.order_count,
            }
        )

    total = aggregate_by_campaign(orders)
    return {
        "year_month": f"{year:04d}-{month:02d}",
        "year": year,
        "month": month,
        "total_commission": float(total.total_commission),
        "total_sales": float(total.total_sales),
        "campaigns": rank(campaigns, key=lambda entry: entry["commission"]),
    }


@router.get("/export-xlsx")
def export_xlsx(
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("exports", "view_all")),
):
    """Download campaigns, sales persons, orders and rate history as one workbook."""
    content = export_commission_workbook(db)
    filename = f"commission_export_{datetime.now():%Y%m%d_%H%M%S}.xlsx"
    return Response(
        content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
