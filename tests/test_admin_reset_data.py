from decimal import Decimal

from sqlalchemy import func, select

from commissiondesk import crud
from commissiondesk.auth import CommissionRateChange, User
from commissiondesk.core.commission import record_rate_change
from commissiondesk.models import ActivityLog, Campaign, Order, OrderItem


def test_reset_application_data_clears_domain_tables_and_keeps_listed_users(
    db_session, make_user, make_campaign, make_order
):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)
    make_order(make_campaign(seller))
    record_rate_change(seller, Decimal("12"), admin.id)
    db_session.commit()
    crud.log_activity(db_session, admin.id, "login", target_type="User", target_id=admin.id)

    counts = crud.reset_application_data(db_session, keep_usernames=["BOSS"])

    assert counts["orders"] == 1
    assert counts["users"] == 1
    for model in (ActivityLog, OrderItem, Order, Campaign, CommissionRateChange):
        assert db_session.execute(select(func.count()).select_from(model)).scalar_one() == 0
    assert [user.username for user in db_session.execute(select(User)).scalars()] == ["boss"]
