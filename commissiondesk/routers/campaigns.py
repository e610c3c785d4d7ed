"""Campaign routes."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from commissiondesk import crud
from commissiondesk.auth import User
from commissiondesk.database import get_session
from commissiondesk.dependencies import PageParams, page_params, sort_order_param
from commissiondesk.errors import NotFound
from commissiondesk.models import CAMPAIGN_TYPE_ENUM, PLATFORM_ENUM, Campaign
from commissiondesk.permissions import ensure_owner, require_permission, require_view, sees_all
from commissiondesk.schemas import CampaignCreate, CampaignRead, CampaignUpdate, OrderRead
from commissiondesk.security import client_ip

router = APIRouter(prefix="/api/campaigns", tags=["Campaigns"])


def _get_campaign_or_404(db: Session, campaign_id: int) -> Campaign:
    campaign = crud.get_campaign(db, campaign_id)
    if not campaign:
        raise NotFound("Campaign not found")
    return campaign


def _serialize(campaign: Campaign, stats: dict | None) -> dict:
    row = CampaignRead.model_validate(campaign).model_dump(mode="json")
    row["stats"] = stats or {"order_count": 0, "total_sales": 0.0, "total_commission": 0.0}
    return row


@router.get("")
def list_campaigns(
    search: str | None = Query(None),
    platform: str | None = Query(None),
    type: str | None = Query(None),
    start_date: datetime | None = Query(None, description="Created on or after"),
    end_date: datetime | None = Query(None, description="Created on or before"),
    sort_by: str = Query("created_at"),
    sort_order: str = Depends(sort_order_param),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    user: User = Depends(require_view("campaigns")),
):
    """Active campaigns; sales persons only see their own."""
    if platform and platform not in PLATFORM_ENUM:
        raise HTTPException(status_code=400, detail="Platform must be facebook or instagram.")
    if type and type not in CAMPAIGN_TYPE_ENUM:
        raise HTTPException(status_code=400, detail="Type must be post, event, or live_post.")

    campaigns, pagination = crud.list_campaigns(
        db,
        sales_person_id=None if sees_all(user, "campaigns") else user.id,
        search=search,
        platform=platform,
        campaign_type=type,
        created_from=start_date,
        created_to=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
        page=paging.page,
        limit=paging.limit,
    )
    stats = crud.campaign_order_stats(db, [campaign.id for campaign in campaigns])
    return {
        "campaigns": [_serialize(campaign, stats.get(campaign.id)) for campaign in campaigns],
        "pagination": pagination,
    }


@router.post("", status_code=201)
def create_campaign(
    payload: CampaignCreate,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("campaigns", "create")),
):
    try:
        campaign = crud.create_campaign(db, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    crud.log_activity(
        db,
        admin.id,
        "campaign_create",
        target_type="Campaign",
        target_id=campaign.id,
        target_name=campaign.title,
        details={"sales_person_id": campaign.sales_person_id, "platform": campaign.platform},
        ip_address=client_ip(request),
    )
    return _serialize(campaign, None)


@router.get("/{campaign_id}")
def get_campaign(
    campaign_id: int,
    db: Session = Depends(get_session),
    user: User = Depends(require_view("campaigns")),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    ensure_owner(user, "campaigns", campaign.sales_person_id)
    stats = crud.campaign_order_stats(db, [campaign.id])
    return _serialize(campaign, stats.get(campaign.id))


@router.put("/{campaign_id}")
def update_campaign(
    campaign_id: int,
    payload: CampaignUpdate,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("campaigns", "edit")),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        campaign = crud.update_campaign(db, campaign, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    crud.log_activity(
        db,
        admin.id,
        "campaign_update",
        target_type="Campaign",
        target_id=campaign.id,
        target_name=campaign.title,
        details={"fields": sorted(payload.model_dump(exclude_unset=True))},
        ip_address=client_ip(request),
    )
    stats = crud.campaign_order_stats(db, [campaign.id])
    return _serialize(campaign, stats.get(campaign.id))


@router.delete("/{campaign_id}")
def delete_campaign(
    campaign_id: int,
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(require_permission("campaigns", "delete")),
):
    """Soft-delete the campaign together with all of its orders."""
    campaign = _get_campaign_or_404(db, campaign_id)
    cascaded = crud.soft_delete_campaign(db, campaign)

    crud.log_activity(
        db,
        admin.id,
        "campaign_delete",
        target_type="Campaign",
        target_id=campaign_id,
        target_name=campaign.title,
        details={"orders_deleted": cascaded},
        ip_address=client_ip(request),
    )
    return {"message": "Campaign deleted", "orders_deleted": cascaded}


@router.get("/{campaign_id}/orders", response_model=list[OrderRead])
def campaign_orders(
    campaign_id: int,
    db: Session = Depends(get_session),
    user: User = Depends(require_view("orders")),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    ensure_owner(user, "campaigns", campaign.sales_person_id)
    return crud.live_orders(db, campaign_ids=[campaign.id])
