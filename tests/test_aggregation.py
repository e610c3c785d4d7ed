from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from commissiondesk.core.aggregation import (
    aggregate_by_campaign,
    aggregate_by_sales_person,
    aggregate_by_time_bucket,
    bucket_key,
    group_by_campaign,
    group_by_sales_person,
    rank,
)


def _order(total, commission, campaign_id=1, owner_id=7, created_at=datetime(2025, 3, 3, 10, 0)):
    return SimpleNamespace(
        order_total=Decimal(total),
        commission_amount=Decimal(commission),
        campaign_id=campaign_id,
        campaign=SimpleNamespace(sales_person_id=owner_id),
        created_at=created_at,
    )


def test_campaign_metrics():
    metrics = aggregate_by_campaign([_order("100", "10"), _order("300", "30")])

    assert metrics.total_sales == Decimal("400.00")
    assert metrics.total_commission == Decimal("40.00")
    assert metrics.order_count == 2
    assert metrics.avg_order_value == Decimal("200.00")
    assert metrics.commission_rate == Decimal("10.00")
    assert metrics.net_revenue == Decimal("360.00")


def test_zero_sales_gives_zero_ratios():
    empty = aggregate_by_campaign([])
    free = aggregate_by_sales_person([_order("0", "0")])

    assert empty.commission_rate == 0
    assert empty.avg_order_value == 0
    assert free.commission_rate == 0
    assert free.efficiency_ratio == 0
    assert empty.as_dict()["commission_rate"] == 0.0


def test_zero_commission_gives_zero_efficiency():
    metrics = aggregate_by_sales_person([_order("250", "0")])

    assert metrics.total_sales == Decimal("250.00")
    assert metrics.efficiency_ratio == 0


def test_sales_person_metrics():
    orders = [_order("100", "10", campaign_id=1), _order("200", "20", campaign_id=2), _order("300", "30", campaign_id=2)]

    metrics = aggregate_by_sales_person(orders)
    assert metrics.campaign_count == 2
    assert metrics.avg_sale_per_campaign == Decimal("300.00")
    assert metrics.efficiency_ratio == Decimal("10.00")

    with_idle_campaign = aggregate_by_sales_person(orders, campaign_count=3)
    assert with_idle_campaign.avg_sale_per_campaign == Decimal("200.00")


def test_bucket_keys():
    moment = datetime(2025, 1, 1, 9, 30)

    assert bucket_key(moment, "monthly") == "2025-01"
    # 1 Jan 2025 falls in ISO week 1 of 2025
    assert bucket_key(moment, "weekly") == "2025-W01"
    # 29 Dec 2025 is in ISO week 1 of 2026
    assert bucket_key(datetime(2025, 12, 29), "weekly") == "2026-W01"


def test_time_buckets_are_sparse_and_ascending():
    orders = [
        _order("50", "5", created_at=datetime(2025, 3, 15)),
        _order("100", "10", created_at=datetime(2025, 1, 10)),
        _order("20", "2", created_at=datetime(2025, 1, 20)),
    ]

    buckets = aggregate_by_time_bucket(orders, "monthly")

    assert [bucket.period for bucket in buckets] == ["2025-01", "2025-03"]
    assert buckets[0].total_sales == Decimal("120.00")
    assert buckets[0].order_count == 2
    assert buckets[0].net_revenue == Decimal("108.00")
    assert buckets[1].total_commission == Decimal("5.00")


def test_unknown_bucketing_is_rejected():
    with pytest.raises(ValueError):
        aggregate_by_time_bucket([], "daily")


def test_grouping_helpers():
    orders = [_order("1", "0", campaign_id=1, owner_id=7), _order("2", "0", campaign_id=2, owner_id=8)]

    assert set(group_by_campaign(orders)) == {1, 2}
    assert [len(group) for group in group_by_sales_person(orders).values()] == [1, 1]


def test_rank_breaks_ties_by_ascending_id():
    entries = [
        {"id": 3, "total": 50},
        {"id": 1, "total": 80},
        {"id": 4, "total": 80},
        {"id": 2, "total": 50},
    ]

    ranked = rank(entries, key=lambda entry: entry["total"])

    assert [entry["id"] for entry in ranked] == [1, 4, 2, 3]
