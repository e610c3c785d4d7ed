from decimal import Decimal

import pytest

from commissiondesk import crud
from commissiondesk.core.commission import record_rate_change, replay_commission
from commissiondesk.errors import InvalidRate, InvalidRole
from commissiondesk.schemas import OrderItemIn, OrderUpdate, UserUpdate


def test_same_rate_appends_nothing(db_session, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)

    record_rate_change(seller, Decimal("10"), admin.id)
    db_session.commit()

    assert seller.commission_history == []
    assert seller.commission_rate == Decimal("10.00")


def test_changed_rate_appends_one_entry(db_session, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)

    record_rate_change(seller, Decimal("12"), admin.id)
    db_session.commit()
    db_session.refresh(seller)

    assert len(seller.commission_history) == 1
    entry = seller.commission_history[0]
    assert entry.rate == Decimal("12.00")
    assert entry.changed_by_id == admin.id
    assert seller.commission_rate == Decimal("12.00")


def test_history_is_append_only_across_changes(db_session, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)

    for rate in ("12", "12", "8", "15"):
        record_rate_change(seller, rate, admin.id)
    db_session.commit()

    history = crud.list_commission_history(db_session, seller.id)
    assert [entry.rate for entry in history] == [Decimal("12.00"), Decimal("8.00"), Decimal("15.00")]


def test_admin_cannot_hold_a_rate(make_user):
    admin = make_user("boss", role="admin")

    with pytest.raises(InvalidRole):
        record_rate_change(admin, 5, admin.id)
    # InvalidRole is a kind of InvalidRate
    with pytest.raises(InvalidRate):
        record_rate_change(admin, 5, admin.id)


def test_out_of_range_rate_is_rejected(make_user):
    seller = make_user("alice", commission_rate=10)

    with pytest.raises(InvalidRate):
        record_rate_change(seller, 101, None)
    assert seller.commission_history == []


def test_snapshot_survives_rate_change_and_edit(db_session, make_user, make_campaign, make_order):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)
    campaign = make_campaign(seller)
    order = make_order(campaign, [{"name": "Serum", "quantity": 2, "base_price": "50"}])
    assert order.commission_rate_snapshot == Decimal("10.00")

    crud.update_user(
        db_session,
        seller,
        UserUpdate(name=seller.name, role="sales_person", commission_rate=Decimal("20")),
        admin,
    )
    db_session.refresh(order)
    assert order.commission_rate_snapshot == Decimal("10.00")

    edited = crud.update_order(
        db_session,
        order,
        OrderUpdate(items=[OrderItemIn(name="Serum", quantity=5, base_price=Decimal("40"))]),
    )

    assert edited.commission_rate_snapshot == Decimal("10.00")
    assert edited.commission_amount == Decimal("20.00")
    assert replay_commission(edited.items, edited.commission_rate_snapshot) == edited.commission_amount

    newer = make_order(campaign, [{"name": "Serum", "quantity": 1, "base_price": "100"}])
    assert newer.commission_rate_snapshot == Decimal("20.00")
    assert newer.commission_amount == Decimal("20.00")


def test_demoting_sales_person_without_campaigns_zeroes_rate(db_session, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)

    updated = crud.update_user(db_session, seller, UserUpdate(name="Alice", role="admin"), admin)

    assert updated.role == "admin"
    assert updated.commission_rate == Decimal("0.00")
    assert [entry.rate for entry in updated.commission_history] == [Decimal("0.00")]


def test_campaign_owner_cannot_be_demoted(db_session, make_user, make_campaign, make_order):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)
    make_order(make_campaign(seller))

    with pytest.raises(ValueError):
        crud.update_user(db_session, seller, UserUpdate(name="Alice", role="admin"), admin)

    db_session.refresh(seller)
    assert seller.role == "sales_person"
    assert seller.commission_rate == Decimal("10.00")
    assert seller.commission_history == []
