"""User accounts and commission rate history."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import bcrypt
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commissiondesk import config
from commissiondesk.database import Base

ROLE_ENUM = ("admin", "sales_person")


class User(Base):
    """User account for application access."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    commission_history: Mapped[list["CommissionRateChange"]] = relationship(
        back_populates="user",
        foreign_keys="CommissionRateChange.user_id",
        cascade="all, delete-orphan",
        order_by="CommissionRateChange.id",
    )

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'sales_person')", name="ck_users_role_valid"),
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100", name="ck_users_commission_rate_range"
        ),
        CheckConstraint(
            "role = 'sales_person' OR commission_rate = 0", name="ck_users_admin_rate_zero"
        ),
    )

    @staticmethod
    def normalize_username(username: str) -> str:
        return username.strip().lower()

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    @classmethod
    def create_user(
        cls,
        username: str,
        password: str,
        name: str,
        role: str = "sales_person",
        commission_rate: Decimal | int | str = 0,
    ) -> User:
        """Create a new user with hashed password.

        Admin accounts never carry a commission rate.
        """
        rate = Decimal(str(commission_rate)) if role == "sales_person" else Decimal("0")
        return cls(
            username=cls.normalize_username(username),
            password_hash=cls.hash_password(password),
            name=name.strip(),
            role=role,
            commission_rate=rate,
        )

    def is_admin(self) -> bool:
        """Check if user is an admin."""
        return self.role == "admin"

    def is_sales_person(self) -> bool:
        return self.role == "sales_person"


class CommissionRateChange(Base):
    """One append-only entry in a user's commission rate history."""

    __tablename__ = "commission_rate_changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    changed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    user: Mapped[User] = relationship(back_populates="commission_history", foreign_keys=[user_id])
    changed_by: Mapped[User | None] = relationship(foreign_keys=[changed_by_id])

    __table_args__ = (
        CheckConstraint("rate >= 0 AND rate <= 100", name="ck_rate_changes_rate_range"),
    )
