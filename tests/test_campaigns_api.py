from datetime import datetime, time, timedelta


def _payload(owner_id, **overrides):
    payload = {
        "title": "Ramadan Bundle",
        "sales_person_id": owner_id,
        "platform": "instagram",
        "type": "live_post",
        "url": "https://instagram.com/p/abc",
    }
    payload.update(overrides)
    return payload


def test_admin_creates_campaign_for_sales_person(client_as, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)

    resp = client_as(admin).post("/api/campaigns", json=_payload(seller.id, image_url="  "))

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "active"
    assert body["display_status"] == "running"
    assert body["is_active"] is True
    assert body["image_url"] is None
    assert body["sales_person"]["username"] == "alice"
    assert body["stats"]["order_count"] == 0


def test_campaign_owner_must_be_sales_person(client_as, make_user):
    admin = make_user("boss", role="admin")

    resp = client_as(admin).post("/api/campaigns", json=_payload(admin.id))

    assert resp.status_code == 400


def test_invalid_platform_and_dates_are_rejected(client_as, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)
    client = client_as(admin)

    assert client.post("/api/campaigns", json=_payload(seller.id, platform="tiktok")).status_code == 422
    start = datetime(2025, 5, 10)
    resp = client.post(
        "/api/campaigns",
        json=_payload(seller.id, start_date=start.isoformat(), end_date=(start - timedelta(days=1)).isoformat()),
    )
    assert resp.status_code == 422


def test_owner_cannot_be_changed(client_as, make_user, make_campaign):
    admin = make_user("boss", role="admin")
    alice = make_user("alice", commission_rate=10)
    bob = make_user("bob", commission_rate=10)
    campaign = make_campaign(alice)
    client = client_as(admin)

    resp = client.put(f"/api/campaigns/{campaign.id}", json={"sales_person_id": bob.id})
    assert resp.status_code == 400

    resp = client.put(f"/api/campaigns/{campaign.id}", json={"title": "Renamed", "sales_person_id": alice.id})
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["sales_person_id"] == alice.id


def test_sales_person_sees_only_own_campaigns(client_as, make_user, make_campaign):
    alice = make_user("alice", commission_rate=10)
    bob = make_user("bob", commission_rate=10)
    make_campaign(alice, title="Alice One")
    bobs = make_campaign(bob, title="Bob One")
    client = client_as(alice)

    body = client.get("/api/campaigns").json()
    assert [campaign["title"] for campaign in body["campaigns"]] == ["Alice One"]
    assert client.get(f"/api/campaigns/{bobs.id}").status_code == 403
    assert client.post("/api/campaigns", json=_payload(alice.id)).status_code == 403


def test_list_filters_and_stats(client_as, make_user, make_campaign, make_order):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)
    fb = make_campaign(seller, title="Facebook Deal", platform="facebook")
    make_campaign(seller, title="Insta Deal", platform="instagram")
    make_order(fb, [{"name": "A", "quantity": 3, "base_price": "20"}])

    body = client_as(admin).get("/api/campaigns", params={"platform": "facebook"}).json()

    assert [campaign["title"] for campaign in body["campaigns"]] == ["Facebook Deal"]
    assert body["campaigns"][0]["stats"] == {"order_count": 1, "total_sales": 60.0, "total_commission": 6.0}
    searched = client_as(admin).get("/api/campaigns", params={"search": "insta"}).json()
    assert [campaign["title"] for campaign in searched["campaigns"]] == ["Insta Deal"]


def test_delete_cascades_through_api(client_as, make_user, make_campaign, make_order):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)
    campaign = make_campaign(seller)
    orders = [make_order(campaign) for _ in range(2)]
    client = client_as(admin)

    resp = client.delete(f"/api/campaigns/{campaign.id}")

    assert resp.status_code == 200
    assert resp.json()["orders_deleted"] == 2
    assert client.get(f"/api/campaigns/{campaign.id}").status_code == 404
    for order in orders:
        assert client.get(f"/api/orders/{order.id}").status_code == 404
    assert client.get("/api/orders").json()["pagination"]["total"] == 0


def test_campaign_orders_listing(client_as, make_user, make_campaign, make_order):
    seller = make_user("alice", commission_rate=10)
    campaign = make_campaign(seller)
    make_order(campaign)

    resp = client_as(seller).get(f"/api/campaigns/{campaign.id}/orders")

    assert resp.status_code == 200
    assert len(resp.json()) == 1


def test_display_status_for_scheduled_and_ended(make_user, make_campaign):
    seller = make_user("alice", commission_rate=10)
    now = datetime.now()
    scheduled = make_campaign(seller, title="Later", start_date=now + timedelta(days=3))
    ended = make_campaign(
        seller,
        title="Done",
        start_date=now - timedelta(days=10),
        end_date=now - timedelta(days=2),
    )
    single_day = make_campaign(seller, title="Today", start_date=datetime.combine(now.date(), time.min))

    assert scheduled.display_status == "scheduled"
    assert scheduled.is_active is False
    assert ended.display_status == "ended"
    assert ended.is_active is False
    # no end date: open for activity, shown as running until the end of its start day
    assert single_day.is_active is True
    assert single_day.display_status == "running"
