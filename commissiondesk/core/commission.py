"""Commission calculation and rate snapshot rules.

An order's commission rate is copied from the owning sales person when the
order is created and is frozen from then on. Editing the items recomputes the
amount with the frozen rate; changing a sales person's rate only appends to
their history and affects orders created afterwards.

All money is ``Decimal`` quantized to cents with ``ROUND_HALF_UP``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping

from commissiondesk.auth import CommissionRateChange, User
from commissiondesk.errors import InvalidCampaign, InvalidRate, InvalidRole, RateOverrideRejected

MONEY_QUANT = Decimal("0.01")
RATE_QUANT = Decimal("0.01")
MIN_RATE = Decimal("0")
MAX_RATE = Decimal("100")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineItem:
    """Normalized order line with its computed total."""

    name: str
    quantity: int
    base_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class CommissionSnapshot:
    amount: Decimal
    rate_snapshot: Decimal


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def coerce_rate(value: Any) -> Decimal:
    """Return ``value`` as a two-place Decimal percentage or raise ``InvalidRate``."""
    if value is None or isinstance(value, bool):
        raise InvalidRate("Commission rate is required.")
    try:
        rate = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidRate(f"Commission rate {value!r} is not a number.") from exc
    if not rate.is_finite() or rate < MIN_RATE or rate > MAX_RATE:
        raise InvalidRate("Commission rate must be between 0 and 100.")
    return rate.quantize(RATE_QUANT, rounding=ROUND_HALF_UP)


def build_line_items(items: Iterable[Any]) -> List[LineItem]:
    """Validate raw item payloads and compute ``total_price`` for each line.

    Accepts mappings or objects exposing ``name``, ``quantity`` and
    ``base_price``. Raises ``ValueError`` for an empty list or a bad line.
    """
    lines: List[LineItem] = []
    for index, item in enumerate(items, start=1):
        name = str(_field(item, "name") or "").strip()
        if not name:
            raise ValueError(f"Item {index}: name is required.")
        quantity = _field(item, "quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValueError(f"Item {index}: quantity must be a positive whole number.")
        try:
            base_price = _to_decimal(_field(item, "base_price"))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise ValueError(f"Item {index}: base price is not a number.") from exc
        if not base_price.is_finite() or base_price < 0:
            raise ValueError(f"Item {index}: base price cannot be negative.")
        base_price = quantize_money(base_price)
        lines.append(
            LineItem(
                name=name,
                quantity=quantity,
                base_price=base_price,
                total_price=quantize_money(base_price * quantity),
            )
        )
    if not lines:
        raise ValueError("Order must have at least one item.")
    return lines


def compute_order_total(items: Iterable[Any]) -> Decimal:
    """Sum of quantity x base price over all lines, in cents."""
    total = Decimal("0")
    for item in items:
        total += _to_decimal(_field(item, "base_price")) * int(_field(item, "quantity"))
    return quantize_money(total)


def _amount_for(order_total: Decimal, rate: Decimal) -> Decimal:
    return quantize_money(_to_decimal(order_total) * rate / HUNDRED)


def create_commission_snapshot(
    order_total: Decimal,
    sales_person_rate: Any,
    *,
    campaign_status: str = "active",
) -> CommissionSnapshot:
    """Freeze the sales person's current rate onto a new order.

    Called exactly once per order, at creation time.
    """
    if campaign_status != "active":
        raise InvalidCampaign("Invalid or inactive campaign.")
    rate = coerce_rate(sales_person_rate)
    return CommissionSnapshot(amount=_amount_for(order_total, rate), rate_snapshot=rate)


def recompute_commission_on_edit(
    new_items: Iterable[Any],
    existing_rate_snapshot: Any,
    *,
    rate_override: Any = None,
) -> CommissionSnapshot:
    """Recalculate the amount for edited items using the order's frozen rate.

    A caller-supplied ``rate_override`` that differs from the snapshot is a
    forbidden operation, not a hint.
    """
    snapshot = coerce_rate(existing_rate_snapshot)
    if rate_override is not None:
        try:
            requested = _to_decimal(rate_override)
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise RateOverrideRejected("Commission rate snapshot cannot be changed.") from exc
        if requested != snapshot:
            raise RateOverrideRejected("Commission rate snapshot cannot be changed.")
    total = compute_order_total(new_items)
    return CommissionSnapshot(amount=_amount_for(total, snapshot), rate_snapshot=snapshot)


def replay_commission(items: Iterable[Any], rate_snapshot: Any) -> Decimal:
    """Recompute ``items x rate_snapshot / 100`` for auditing stored amounts."""
    return _amount_for(compute_order_total(items), coerce_rate(rate_snapshot))


def record_rate_change(
    user: User,
    new_rate: Any,
    acting_admin_id: int | None,
    *,
    changed_at: datetime | None = None,
) -> User:
    """Set ``user.commission_rate``, appending a history entry when it changes.

    Existing orders are never touched: their snapshots stay as created.
    """
    rate = coerce_rate(new_rate)
    if user.role != "sales_person" and rate != 0:
        raise InvalidRole("Only sales persons can have a commission rate.")

    current = _to_decimal(user.commission_rate if user.commission_rate is not None else 0)
    if rate == current:
        return user

    user.commission_history.append(
        CommissionRateChange(
            rate=rate,
            changed_at=changed_at or datetime.now(),
            changed_by_id=acting_admin_id,
        )
    )
    user.commission_rate = rate
    return user


__all__ = [
    "CommissionSnapshot",
    "LineItem",
    "build_line_items",
    "coerce_rate",
    "compute_order_total",
    "create_commission_snapshot",
    "quantize_money",
    "recompute_commission_on_edit",
    "record_rate_change",
    "replay_commission",
]
