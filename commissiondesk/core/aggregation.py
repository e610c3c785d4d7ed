"""Reporting figures derived from live orders.

Callers pass orders that are already filtered (``deleted_at`` is null and the
owning campaign is active, see ``crud.live_orders_stmt``); nothing here
re-checks soft-deletion.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from commissiondesk.core.commission import quantize_money

BUCKETINGS = ("weekly", "monthly")
RATIO_QUANT = Decimal("0.01")
ZERO = Decimal("0")

T = TypeVar("T")


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if not denominator:
        return ZERO
    return (numerator / denominator).quantize(RATIO_QUANT, rounding=ROUND_HALF_UP)


def _as_float_dict(metrics: Any) -> Dict[str, Any]:
    return {key: float(value) if isinstance(value, Decimal) else value for key, value in asdict(metrics).items()}


@dataclass(frozen=True)
class CampaignMetrics:
    total_sales: Decimal
    total_commission: Decimal
    order_count: int
    avg_order_value: Decimal
    commission_rate: Decimal
    net_revenue: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return _as_float_dict(self)


@dataclass(frozen=True)
class SalesPersonMetrics:
    total_sales: Decimal
    total_commission: Decimal
    order_count: int
    avg_order_value: Decimal
    commission_rate: Decimal
    net_revenue: Decimal
    campaign_count: int
    avg_sale_per_campaign: Decimal
    efficiency_ratio: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return _as_float_dict(self)


@dataclass(frozen=True)
class PeriodMetrics:
    period: str
    total_sales: Decimal
    total_commission: Decimal
    order_count: int
    net_revenue: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return _as_float_dict(self)


def _totals(orders: Iterable[Any]) -> tuple[Decimal, Decimal, int]:
    total_sales = ZERO
    total_commission = ZERO
    count = 0
    for order in orders:
        total_sales += order.order_total
        total_commission += order.commission_amount or ZERO
        count += 1
    return quantize_money(total_sales), quantize_money(total_commission), count


def aggregate_by_campaign(orders: Iterable[Any]) -> CampaignMetrics:
    """Totals, average order value, effective commission % and net revenue."""
    total_sales, total_commission, count = _totals(orders)
    return CampaignMetrics(
        total_sales=total_sales,
        total_commission=total_commission,
        order_count=count,
        avg_order_value=quantize_money(total_sales / count) if count else ZERO,
        commission_rate=_ratio(total_commission * 100, total_sales),
        net_revenue=total_sales - total_commission,
    )


def aggregate_by_sales_person(
    orders: Iterable[Any],
    campaign_count: Optional[int] = None,
) -> SalesPersonMetrics:
    """Campaign metrics for one sales person plus campaign count and efficiency.

    ``campaign_count`` defaults to the number of distinct campaigns among
    ``orders``; pass the owner's active campaign count to include campaigns
    without orders.
    """
    orders = list(orders)
    base = aggregate_by_campaign(orders)
    if campaign_count is None:
        campaign_count = len({order.campaign_id for order in orders})
    return SalesPersonMetrics(
        **asdict(base),
        campaign_count=campaign_count,
        avg_sale_per_campaign=quantize_money(base.total_sales / campaign_count) if campaign_count else ZERO,
        efficiency_ratio=_ratio(base.total_sales, base.total_commission),
    )


def bucket_key(moment: datetime, bucketing: str) -> str:
    """``YYYY-MM`` for monthly buckets, ISO ``YYYY-Www`` for weekly ones."""
    if bucketing == "monthly":
        return f"{moment.year:04d}-{moment.month:02d}"
    if bucketing == "weekly":
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"
    raise ValueError(f"Unknown bucketing {bucketing!r}; expected one of {', '.join(BUCKETINGS)}.")


def aggregate_by_time_bucket(orders: Iterable[Any], bucketing: str = "weekly") -> List[PeriodMetrics]:
    """Sparse, ascending per-period totals keyed on order creation time."""
    if bucketing not in BUCKETINGS:
        raise ValueError(f"Unknown bucketing {bucketing!r}; expected one of {', '.join(BUCKETINGS)}.")
    buckets: Dict[str, list] = defaultdict(list)
    for order in orders:
        buckets[bucket_key(order.created_at, bucketing)].append(order)

    results: List[PeriodMetrics] = []
    for period in sorted(buckets):
        total_sales, total_commission, count = _totals(buckets[period])
        results.append(
            PeriodMetrics(
                period=period,
                total_sales=total_sales,
                total_commission=total_commission,
                order_count=count,
                net_revenue=total_sales - total_commission,
            )
        )
    return results


def group_by_campaign(orders: Iterable[T]) -> Dict[int, List[T]]:
    grouped: Dict[int, List[T]] = defaultdict(list)
    for order in orders:
        grouped[order.campaign_id].append(order)
    return dict(grouped)


def group_by_sales_person(orders: Iterable[T]) -> Dict[int, List[T]]:
    grouped: Dict[int, List[T]] = defaultdict(list)
    for order in orders:
        grouped[order.campaign.sales_person_id].append(order)
    return dict(grouped)


def rank(
    entries: Sequence[T],
    key: Callable[[T], Decimal],
    tie_key: Callable[[T], Any] = lambda entry: entry["id"],
) -> List[T]:
    """Sort descending by ``key``; equal keys keep ascending ``tie_key`` order."""
    by_tie = sorted(entries, key=tie_key)
    return sorted(by_tie, key=key, reverse=True)


__all__ = [
    "BUCKETINGS",
    "CampaignMetrics",
    "PeriodMetrics",
    "SalesPersonMetrics",
    "aggregate_by_campaign",
    "aggregate_by_sales_person",
    "aggregate_by_time_bucket",
    "bucket_key",
    "group_by_campaign",
    "group_by_sales_person",
    "rank",
]
