"""SQLAlchemy models for campaigns, orders and the activity log."""
from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commissiondesk.auth import User
from commissiondesk.database import Base

PLATFORM_ENUM = ("facebook", "instagram")
CAMPAIGN_TYPE_ENUM = ("post", "event", "live_post")
CAMPAIGN_STATUS_ENUM = ("active", "deleted")
TARGET_TYPE_ENUM = ("User", "Campaign", "Order")
ACTIVITY_ACTION_ENUM = (
    "login",
    "logout",
    "user_create",
    "user_update",
    "user_delete",
    "campaign_create",
    "campaign_update",
    "campaign_delete",
    "order_create",
    "order_update",
    "order_delete",
    "commission_change",
    "password_change",
)


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sales_person_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    effective_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    target_roi: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    sales_person: Mapped[User] = relationship()
    orders: Mapped[list["Order"]] = relationship(back_populates="campaign", order_by="Order.id")

    __table_args__ = (
        CheckConstraint("platform IN ('facebook', 'instagram')", name="ck_campaigns_platform_valid"),
        CheckConstraint("type IN ('post', 'event', 'live_post')", name="ck_campaigns_type_valid"),
        CheckConstraint("status IN ('active', 'deleted')", name="ck_campaigns_status_valid"),
        CheckConstraint("target_roi IS NULL OR target_roi >= 0", name="ck_campaigns_target_roi_nonnegative"),
    )

    def is_active_at(self, moment: datetime) -> bool:
        if self.status != "active":
            return False
        if self.start_date and moment < self.start_date:
            return False
        if self.end_date and moment > self.end_date:
            return False
        return True

    @property
    def is_active(self) -> bool:
        """Live status and ``now`` inside the start/end window (open end = no bound)."""
        return self.is_active_at(datetime.now())

    @property
    def effective_end(self) -> datetime:
        """End of day of ``end_date``, or of ``start_date`` when no end is set."""
        anchor = self.end_date or self.start_date
        return datetime.combine(anchor.date(), time.max)

    def display_status_at(self, moment: datetime) -> str:
        if self.status == "deleted":
            return "deleted"
        if self.start_date and moment < self.start_date:
            return "scheduled"
        if moment > self.effective_end:
            return "ended"
        return "running"

    @property
    def display_status(self) -> str:
        return self.display_status_at(datetime.now())


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False, index=True)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate_snapshot: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    campaign: Mapped[Campaign] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    __table_args__ = (
        CheckConstraint("commission_amount >= 0", name="ck_orders_commission_nonnegative"),
        CheckConstraint(
            "commission_rate_snapshot >= 0 AND commission_rate_snapshot <= 100",
            name="ck_orders_rate_snapshot_range",
        ),
    )

    @property
    def order_total(self) -> Decimal:
        return sum((item.total_price for item in self.items), Decimal("0"))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def sales_person_id(self) -> int | None:
        return self.campaign.sales_person_id if self.campaign else None


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        CheckConstraint("base_price >= 0", name="ck_order_items_base_price_nonnegative"),
        CheckConstraint("total_price >= 0", name="ck_order_items_total_nonnegative"),
    )


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    target_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    target_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    user: Mapped[User | None] = relationship()

    __table_args__ = (
        Index("idx_activity_created_at", "created_at"),
        Index("idx_activity_user", "user_id"),
        Index("idx_activity_action", "action"),
    )
