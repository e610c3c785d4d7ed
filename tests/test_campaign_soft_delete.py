from decimal import Decimal

from commissiondesk import crud
from commissiondesk.core.aggregation import aggregate_by_campaign, aggregate_by_sales_person, aggregate_by_time_bucket


def test_soft_delete_cascades_to_every_live_order(db_session, make_user, make_campaign, make_order):
    seller = make_user("alice", commission_rate=10)
    campaign = make_campaign(seller)
    orders = [make_order(campaign) for _ in range(3)]

    cascaded = crud.soft_delete_campaign(db_session, campaign)

    assert cascaded == 3
    assert campaign.status == "deleted"
    for order in orders:
        db_session.refresh(order)
        assert order.deleted_at is not None
    assert crud.get_campaign(db_session, campaign.id) is None
    assert crud.get_campaign(db_session, campaign.id, include_deleted=True) is campaign


def test_already_deleted_orders_keep_their_timestamp(db_session, make_user, make_campaign, make_order):
    seller = make_user("alice", commission_rate=10)
    campaign = make_campaign(seller)
    early = make_order(campaign)
    make_order(campaign)
    crud.soft_delete_order(db_session, early)
    db_session.refresh(early)
    first_deleted_at = early.deleted_at

    assert crud.soft_delete_campaign(db_session, campaign) == 1
    db_session.refresh(early)
    assert early.deleted_at == first_deleted_at


def test_deleted_orders_and_campaigns_are_excluded_from_aggregates(
    db_session, make_user, make_campaign, make_order
):
    seller = make_user("alice", commission_rate=10)
    kept = make_campaign(seller, title="Kept")
    dropped = make_campaign(seller, title="Dropped")
    make_order(kept, [{"name": "A", "quantity": 1, "base_price": "100"}])
    removed = make_order(kept, [{"name": "B", "quantity": 1, "base_price": "500"}])
    make_order(dropped, [{"name": "C", "quantity": 2, "base_price": "250"}])

    crud.soft_delete_order(db_session, removed)
    crud.soft_delete_campaign(db_session, dropped)

    live = crud.live_orders(db_session)
    assert [order.campaign_id for order in live] == [kept.id]

    assert aggregate_by_campaign(live).total_sales == Decimal("100.00")
    assert aggregate_by_sales_person(live).total_commission == Decimal("10.00")
    assert sum(bucket.order_count for bucket in aggregate_by_time_bucket(live, "monthly")) == 1

    stats = crud.sales_dashboard_stats(db_session, seller)
    assert stats["total_orders"] == 1
    assert stats["total_sales"] == 100.0
    assert stats["my_campaigns"] == 1


def test_deleted_order_reads_as_missing(db_session, make_user, make_campaign, make_order):
    seller = make_user("alice", commission_rate=10)
    order = make_order(make_campaign(seller))

    crud.soft_delete_order(db_session, order)

    assert crud.get_order(db_session, order.id) is None
