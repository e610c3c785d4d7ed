"""Pydantic schemas for API requests and responses."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, ValidationInfo, field_validator, model_validator

from commissiondesk.auth import ROLE_ENUM
from commissiondesk.models import CAMPAIGN_TYPE_ENUM, PLATFORM_ENUM

# Decimals leave the API as plain JSON numbers.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def _strip_required(value: Any, info: ValidationInfo) -> str:
    label = info.field_name.replace("_", " ").capitalize()
    if value is None:
        raise ValueError(f"{label} is required.")
    value_str = str(value).strip()
    if not value_str:
        raise ValueError(f"{label} cannot be empty.")
    return value_str


# --- Auth & users -------------------------------------------------------------


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str


class UserSummary(BaseModel):
    id: int
    username: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    role: str
    commission_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)

    @field_validator("username", "name", mode="before")
    def strip_required_strings(cls, value: Any, info: ValidationInfo) -> str:
        return _strip_required(value, info)

    @field_validator("role")
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ROLE_ENUM:
            raise ValueError("Role must be admin or sales_person.")
        return normalized


class UserUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    role: str
    commission_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    password: Optional[str] = None

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any, info: ValidationInfo) -> str:
        return _strip_required(value, info)

    @field_validator("role")
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ROLE_ENUM:
            raise ValueError("Role must be admin or sales_person.")
        return normalized


class CommissionRateChangeRead(BaseModel):
    id: int
    rate: Money
    changed_at: datetime
    changed_by_id: Optional[int]

    model_config = ConfigDict(from_attributes=True)


class UserRead(BaseModel):
    id: int
    username: str
    name: str
    role: str
    commission_rate: Money
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserDetailRead(UserRead):
    commission_history: List[CommissionRateChangeRead] = []


# --- Campaigns ----------------------------------------------------------------


class CampaignCreate(BaseModel):
    title: str = Field(..., max_length=200)
    sales_person_id: int
    platform: str
    type: str
    url: str = Field(..., max_length=500)
    image_url: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    effective_date: Optional[datetime] = None
    target_roi: Optional[Decimal] = Field(None, ge=0)

    @field_validator("title", "url", mode="before")
    def strip_required_strings(cls, value: Any, info: ValidationInfo) -> str:
        return _strip_required(value, info)

    @field_validator("platform")
    def validate_platform(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in PLATFORM_ENUM:
            raise ValueError("Platform must be facebook or instagram.")
        return normalized

    @field_validator("type")
    def validate_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in CAMPAIGN_TYPE_ENUM:
            raise ValueError("Type must be post, event, or live_post.")
        return normalized

    @field_validator("image_url", mode="before")
    def blank_image_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def check_date_window(self) -> "CampaignCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date.")
        return self


class CampaignUpdate(BaseModel):
    """Partial update; the owning sales person is not editable."""

    title: Optional[str] = Field(None, max_length=200)
    platform: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    target_roi: Optional[Decimal] = Field(None, ge=0)
    sales_person_id: Optional[int] = None

    @field_validator("title", "url")
    def strip_optional_strings(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return None
        return _strip_required(value, info)

    @field_validator("platform")
    def validate_platform(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in PLATFORM_ENUM:
            raise ValueError("Platform must be facebook or instagram.")
        return normalized

    @field_validator("type")
    def validate_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in CAMPAIGN_TYPE_ENUM:
            raise ValueError("Type must be post, event, or live_post.")
        return normalized


class CampaignStats(BaseModel):
    order_count: int = 0
    total_sales: float = 0.0
    total_commission: float = 0.0


class CampaignRead(BaseModel):
    id: int
    title: str
    sales_person_id: int
    sales_person: Optional[UserSummary]
    platform: str
    type: str
    url: str
    image_url: Optional[str]
    status: str
    start_date: datetime
    end_date: Optional[datetime]
    effective_date: datetime
    target_roi: Optional[Money]
    is_active: bool
    display_status: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Orders -------------------------------------------------------------------


class OrderItemIn(BaseModel):
    name: str = Field(..., max_length=200)
    quantity: int = Field(..., ge=1)
    base_price: Decimal = Field(..., ge=0)

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any, info: ValidationInfo) -> str:
        return _strip_required(value, info)

    @field_validator("base_price")
    def quantize_price(cls, value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class OrderCreate(BaseModel):
    campaign_id: int
    items: List[OrderItemIn] = Field(..., min_length=1)


class OrderUpdate(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    # Present only so an attempted change can be rejected explicitly.
    rate_snapshot: Optional[Decimal] = None


class OrderItemRead(BaseModel):
    name: str
    quantity: int
    base_price: Money
    total_price: Money

    model_config = ConfigDict(from_attributes=True)


class OrderCampaignRead(BaseModel):
    id: int
    title: str
    sales_person: Optional[UserSummary]

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    campaign_id: int
    campaign: Optional[OrderCampaignRead]
    items: List[OrderItemRead]
    order_total: Money
    commission_amount: Money
    commission_rate_snapshot: Money
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Activity log -------------------------------------------------------------


class ActivityRead(BaseModel):
    id: int
    user_id: Optional[int]
    user: Optional[UserSummary]
    action: str
    target_type: Optional[str]
    target_id: Optional[int]
    target_name: Optional[str]
    details: Optional[Any]
    ip_address: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
