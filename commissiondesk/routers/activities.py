"""Activity log routes (admin only)."""
from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from commissiondesk import crud
from commissiondesk.auth import User
from commissiondesk.database import get_session
from commissiondesk.dependencies import PageParams, page_params
from commissiondesk.models import ACTIVITY_ACTION_ENUM, ActivityLog
from commissiondesk.permissions import require_permission
from commissiondesk.schemas import ActivityRead

router = APIRouter(prefix="/api/activities", tags=["Activities"])


def _serialize(entry: ActivityLog) -> dict:
    row = ActivityRead.model_validate(entry).model_dump(mode="json")
    if entry.details:
        try:
            row["details"] = json.loads(entry.details)
        except ValueError:
            row["details"] = entry.details
    return row


@router.get("")
def list_activities(
    action: str | None = Query(None),
    user_id: int | None = Query(None),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_session),
    _: User = Depends(require_permission("activities", "view_all")),
):
    if action and action not in ACTIVITY_ACTION_ENUM:
        raise HTTPException(status_code=400, detail=f"Unknown action '{action}'.")

    entries, pagination = crud.list_activities(
        db,
        action=action,
        user_id=user_id,
        page=paging.page,
        limit=paging.limit,
    )
    return {"activities": [_serialize(entry) for entry in entries], "pagination": pagination}
