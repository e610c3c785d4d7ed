def test_user_changes_are_logged_and_filterable(client_as, make_user):
    admin = make_user("boss", role="admin")
    client = client_as(admin)
    created = client.post(
        "/api/users",
        json={"username": "dana", "password": "secret123", "name": "Dana", "role": "sales_person", "commission_rate": 8},
    ).json()
    client.put(f"/api/users/{created['id']}", json={"name": "Dana", "role": "sales_person", "commission_rate": 9})

    body = client.get("/api/activities").json()
    assert [entry["action"] for entry in body["activities"]] == ["commission_change", "user_update", "user_create"]
    assert body["pagination"]["total"] == 3

    creates = client.get("/api/activities", params={"action": "user_create"}).json()["activities"]
    assert len(creates) == 1
    assert creates[0]["target_name"] == "dana"
    assert creates[0]["details"]["role"] == "sales_person"
    assert creates[0]["user"]["username"] == "boss"

    by_other = client.get("/api/activities", params={"user_id": created["id"]}).json()
    assert by_other["activities"] == []


def test_unknown_action_filter_is_rejected(client_as, make_user):
    admin = make_user("boss", role="admin")

    assert client_as(admin).get("/api/activities", params={"action": "explode"}).status_code == 400


def test_sales_person_cannot_read_activity_log(client_as, make_user):
    seller = make_user("alice", commission_rate=10)

    assert client_as(seller).get("/api/activities").status_code == 403


def test_password_change_is_logged(client_as, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)

    resp = client_as(seller).post(
        "/api/profile/change-password",
        json={"current_password": "secret123", "new_password": "better123", "confirm_password": "better123"},
    )
    assert resp.status_code == 200

    entries = client_as(admin).get("/api/activities", params={"action": "password_change"}).json()["activities"]
    assert [(entry["user_id"], entry["target_name"]) for entry in entries] == [(seller.id, "alice")]
