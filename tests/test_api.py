from datetime import datetime, timedelta, timezone

from eventfood.config import ADMIN_BOOTSTRAP_EMAIL, ADMIN_BOOTSTRAP_PASSWORD
from eventfood.utils import now_utc


def create_event(admin_client, starts_in=timedelta(hours=-1), ends_in=timedelta(hours=3), name="Hack Night"):
    now = now_utc()
    r = admin_client.post("/api/events.create", json={
        "name": name,
        "description": "Overnight build",
        "start_date": (now + starts_in).isoformat(),
        "end_date": (now + ends_in).isoformat(),
    })
    assert r.status_code == 200, r.text
    return r.json()


def create_food(admin_client, qty=5, price=10.0, name="Pizza slice"):
    r = admin_client.post("/api/food.createFoodItem", json={
        "name": name,
        "price": price,
        "available_qty": qty,
        "restrictions": ["vegetarian", " "],
    })
    assert r.status_code == 200, r.text
    return r.json()


def add_team(admin_client, event_id, username):
    r = admin_client.post("/api/teams.addToEvent", json={
        "event_id": event_id, "name": username.title(), "username": username, "password": "team-secret",
    })
    assert r.status_code == 200, r.text
    return r.json()


def allocate(admin_client, event_id, food_item_id, cap=None):
    r = admin_client.post("/api/events.addFoodToEvent", json={
        "event_id": event_id, "food_item_id": food_item_id, "max_order_per_team": cap,
    })
    assert r.status_code == 200, r.text
    return r.json()


def order_body(team_id, event_id, food_item_id, quantity, price=10.0):
    return {
        "team_id": team_id,
        "event_id": event_id,
        "items": [{"food_item_id": food_item_id, "quantity": quantity, "price_at_order": price}],
    }


def test_health(client):
    assert client.get("/").json()["status"] == "ok"


def test_admin_login_rejects_bad_password(client):
    r = client.post("/api/auth.adminLogin", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["error"] == "NOT_AUTHENTICATED"


def test_session_round_trip_and_logout(admin_client):
    r = admin_client.get("/api/auth.getSession")
    assert r.status_code == 200
    assert r.json()["role"] == "ADMIN"

    admin_client.post("/api/auth.logout")
    assert admin_client.get("/api/auth.getSession").status_code == 401


def test_mutations_require_admin(client, admin_client, team_login):
    r = client.post("/api/food.createFoodItem", json={"name": "Tea", "price": 1.0})
    assert r.status_code == 401

    event = create_event(admin_client)
    add_team(admin_client, event["id"], "owls")
    owls = team_login("owls")
    r = owls.post("/api/food.createFoodItem", json={"name": "Tea", "price": 1.0})
    assert r.status_code == 403
    assert r.json()["error"] == "FORBIDDEN"


def test_event_window_must_be_ordered(admin_client):
    now = now_utc()
    r = admin_client.post("/api/events.create", json={
        "name": "Backwards",
        "start_date": now.isoformat(),
        "end_date": (now - timedelta(hours=1)).isoformat(),
    })
    assert r.status_code == 422
    assert r.json()["error"] == "INVALID_EVENT_WINDOW"


def test_team_orders_through_the_api(admin_client, team_login):
    event = create_event(admin_client)
    food = create_food(admin_client, qty=5, price=10.0)
    assert food["restrictions"] == ["vegetarian"]
    allocate(admin_client, event["id"], food["id"])
    team = add_team(admin_client, event["id"], "owls")
    owls = team_login("owls")

    r = owls.post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 3))
    assert r.status_code == 200, r.text
    order = r.json()
    assert order["order_status"] == "PENDING"
    assert order["payment_status"] == "pending"
    assert order["total_amount"] == 30.0
    assert order["items"][0]["food_item"]["name"] == "Pizza slice"
    assert order["team"]["username"] == "owls"

    r = owls.post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 3))
    assert r.status_code == 409
    body = r.json()
    assert body["error"] == "INSUFFICIENT_STOCK"
    assert (body["available"], body["requested"]) == (2, 3)

    assert admin_client.get("/api/food.getFoodItemById", params={"id": food["id"]}).json()["available_qty"] == 2

    history = owls.get("/api/teams.getTeamOrderHistory", params={"team_id": team["id"]}).json()
    assert [o["id"] for o in history] == [order["id"]]


def test_team_cannot_order_for_another_team(admin_client, team_login):
    event = create_event(admin_client)
    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    add_team(admin_client, event["id"], "owls")
    foxes = add_team(admin_client, event["id"], "foxes")
    owls = team_login("owls")

    r = owls.post("/api/orders.createOrder", json=order_body(foxes["id"], event["id"], food["id"], 1))
    assert r.status_code == 403

    r = owls.get("/api/orders.getTeamOrders", params={"team_id": foxes["id"]})
    assert r.status_code == 403

    assert owls.get("/api/orders.getAllOrders").status_code == 403


def test_stale_team_session_is_caught_by_membership_check(admin_client, team_login):
    event = create_event(admin_client)
    other = create_event(admin_client, name="Other")
    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    team = add_team(admin_client, event["id"], "owls")
    owls = team_login("owls")

    r = admin_client.post("/api/teams.assignToEvent", json={"team_id": team["id"], "event_id": other["id"]})
    assert r.status_code == 200

    r = owls.post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 1))
    assert r.status_code == 409
    assert r.json()["error"] == "NOT_ENROLLED"


def test_future_event_rejects_orders(admin_client, team_login):
    event = create_event(admin_client, starts_in=timedelta(days=1), ends_in=timedelta(days=2))
    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    team = add_team(admin_client, event["id"], "owls")
    owls = team_login("owls")

    r = owls.post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 1))
    assert r.status_code == 409
    assert r.json()["error"] == "EVENT_NOT_ACTIVE"
    assert admin_client.get("/api/orders.getEventOrders", params={"event_id": event["id"]}).json() == []


def test_team_cancels_own_order(admin_client, team_login):
    event = create_event(admin_client)
    food = create_food(admin_client, qty=5)
    allocate(admin_client, event["id"], food["id"], cap=4)
    team = add_team(admin_client, event["id"], "owls")
    owls = team_login("owls")

    order = owls.post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 3)).json()
    r = owls.post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 2))
    assert r.json()["error"] == "TEAM_CAP_EXCEEDED"
    assert (r.json()["cap"], r.json()["already_ordered"]) == (4, 3)

    r = owls.post("/api/orders.cancelOrder", json={"order_id": order["id"]})
    assert r.status_code == 200
    assert r.json()["order_status"] == "CANCELLED"
    assert r.json()["items"][0]["food_item"]["available_qty"] == 5

    r = owls.post("/api/orders.cancelOrder", json={"order_id": order["id"]})
    assert r.status_code == 409
    assert r.json()["error"] == "CANNOT_CANCEL"


def test_admin_moves_order_through_statuses(admin_client, team_login):
    event = create_event(admin_client)
    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    team = add_team(admin_client, event["id"], "owls")
    owls = team_login("owls")
    order = owls.post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 1)).json()

    r = admin_client.post("/api/orders.updateOrderStatus", json={"order_id": order["id"], "order_status": "COMPLETED"})
    assert r.status_code == 409
    assert r.json()["error"] == "INVALID_STATUS_TRANSITION"

    for status in ("CONFIRMED", "COMPLETED"):
        r = admin_client.post("/api/orders.updateOrderStatus", json={"order_id": order["id"], "order_status": status})
        assert r.status_code == 200, r.text

    r = admin_client.post("/api/orders.updateOrderStatus", json={
        "order_id": order["id"], "order_status": "COMPLETED", "payment_status": "paid",
    })
    assert r.json()["payment_status"] == "paid"
    assert owls.post("/api/orders.updateOrderStatus", json={"order_id": order["id"], "order_status": "PENDING"}).status_code == 403


def test_allocation_surface(admin_client):
    event = create_event(admin_client)
    pizza = create_food(admin_client, name="Pizza")
    soup = create_food(admin_client, name="Soup")

    item = allocate(admin_client, event["id"], pizza["id"], cap=2)
    assert item["food_item"]["name"] == "Pizza"

    r = admin_client.post("/api/events.addFoodToEvent", json={"event_id": event["id"], "food_item_id": pizza["id"]})
    assert r.status_code == 409
    assert r.json()["error"] == "ALREADY_ALLOCATED"

    available = admin_client.get("/api/events.getAvailableFoodItems", params={"event_id": event["id"]}).json()
    assert [f["name"] for f in available] == ["Soup"]

    r = admin_client.post("/api/events.updateInventoryItem", json={"inventory_item_id": item["id"], "max_order_per_team": None})
    assert r.json()["max_order_per_team"] is None

    items = admin_client.get("/api/events.getEventFoodItems", params={"event_id": event["id"]}).json()
    assert [i["food_item_id"] for i in items] == [pizza["id"]]

    r = admin_client.post("/api/events.removeFoodFromEvent", json={"inventory_item_id": item["id"]})
    assert r.status_code == 200
    assert admin_client.get("/api/events.getEventFoodItems", params={"event_id": event["id"]}).json() == []

    summary = admin_client.get("/api/events.getAllEvents").json()[0]
    assert summary["food_item_count"] == 0
    assert soup["id"] in [f["id"] for f in admin_client.get("/api/food.getAllFoodItems").json()]


def test_bulk_add_rejects_duplicate_usernames(admin_client):
    event = create_event(admin_client)
    add_team(admin_client, event["id"], "owls")

    r = admin_client.post("/api/teams.bulkAddToEvent", json={"event_id": event["id"], "teams": [
        {"name": "Foxes", "username": "foxes", "password": "pw"},
        {"name": "Owls again", "username": "owls", "password": "pw"},
    ]})
    assert r.status_code == 409
    assert r.json()["usernames"] == ["owls"]

    r = admin_client.post("/api/teams.bulkAddToEvent", json={"event_id": event["id"], "teams": [
        {"name": "Foxes", "username": "foxes", "password": "pw"},
        {"name": "Bears", "username": "bears", "password": "pw"},
    ]})
    assert r.json() == {"count": 2}

    names = [t["username"] for t in admin_client.get("/api/teams.getTeamsByEvent", params={"event_id": event["id"]}).json()]
    assert sorted(names) == ["bears", "foxes", "owls"]


def test_delete_team_only_detaches_it(admin_client):
    event = create_event(admin_client)
    team = add_team(admin_client, event["id"], "owls")

    r = admin_client.post("/api/teams.deleteTeam", json={"id": team["id"]})
    assert r.json()["event_id"] is None
    assert [t["username"] for t in admin_client.get("/api/teams.getAll").json()] == ["owls"]


def test_event_with_orders_cannot_be_deleted(admin_client, team_login):
    event = create_event(admin_client)
    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    team = add_team(admin_client, event["id"], "owls")
    team_login("owls").post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 1))

    r = admin_client.post("/api/events.delete", json={"id": event["id"]})
    assert r.status_code == 409
    assert r.json()["error"] == "RECORD_IN_USE"

    empty = create_event(admin_client, name="Empty")
    allocate(admin_client, empty["id"], food["id"])
    assert admin_client.post("/api/events.delete", json={"id": empty["id"]}).status_code == 200
    assert admin_client.get("/api/events.getById", params={"id": empty["id"]}).status_code == 404


def test_ordered_food_is_deactivated_not_deleted(admin_client, team_login):
    event = create_event(admin_client)
    ordered = create_food(admin_client, name="Ordered")
    spare = create_food(admin_client, name="Spare")
    allocate(admin_client, event["id"], ordered["id"])
    allocate(admin_client, event["id"], spare["id"])
    team = add_team(admin_client, event["id"], "owls")
    team_login("owls").post("/api/orders.createOrder", json=order_body(team["id"], event["id"], ordered["id"], 1))

    r = admin_client.post("/api/food.deleteFoodItem", json={"id": ordered["id"]})
    assert r.json() == {"id": ordered["id"], "deleted": False, "deactivated": True}
    assert admin_client.get("/api/food.getFoodItemById", params={"id": ordered["id"]}).json()["is_active"] is False

    r = admin_client.post("/api/food.deleteFoodItem", json={"id": spare["id"]})
    assert r.json()["deleted"] is True
    assert admin_client.get("/api/food.getFoodItemById", params={"id": spare["id"]}).status_code == 404


def test_stock_adjustment(admin_client):
    food = create_food(admin_client, qty=5)
    r = admin_client.post("/api/food.updateFoodItemStock", json={"id": food["id"], "available_qty": 12})
    assert r.json()["available_qty"] == 12

    r = admin_client.post("/api/food.updateFoodItemStock", json={"id": food["id"], "available_qty": -1})
    assert r.status_code == 422


def test_team_credentials(admin_client):
    event = create_event(admin_client)
    team = add_team(admin_client, event["id"], "owls")

    cred = admin_client.post("/api/teamCredentials.create", json={
        "team_id": team["id"], "email": "owls@platform.test", "password": "p4ss",
    }).json()
    r = admin_client.post("/api/teamCredentials.update", json={"id": cred["id"], "email": "owls@new.test", "password": None})
    assert r.json()["email"] == "owls@new.test"

    creds = admin_client.get("/api/teamCredentials.getByTeamId", params={"team_id": team["id"]}).json()
    assert [c["id"] for c in creds] == [cred["id"]]

    admin_client.post("/api/teamCredentials.delete", json={"id": cred["id"]})
    assert admin_client.get("/api/teamCredentials.getByTeamId", params={"team_id": team["id"]}).json() == []


def test_team_and_event_views(admin_client, team_login):
    event = create_event(admin_client)
    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    owls = add_team(admin_client, event["id"], "owls")
    add_team(admin_client, event["id"], "foxes")
    team_login("owls").post("/api/orders.createOrder", json=order_body(owls["id"], event["id"], food["id"], 2))

    detail = admin_client.get("/api/teams.getTeamById", params={"id": owls["id"]}).json()
    assert detail["event"]["name"] == "Hack Night"
    assert [i["quantity"] for i in detail["orders"][0]["items"]] == [2]

    counts = {t["username"]: t["order_count"] for t in admin_client.get(
        "/api/events.getEventTeams", params={"event_id": event["id"]}).json()}
    assert counts == {"foxes": 0, "owls": 1}

    event_view = admin_client.get("/api/events.getById", params={"id": event["id"]}).json()
    assert len(event_view["teams"]) == 2
    assert event_view["inventory_items"][0]["food_item_id"] == food["id"]

    summary = admin_client.get("/api/events.getAllEvents").json()[0]
    assert (summary["order_count"], summary["team_count"], summary["food_item_count"]) == (1, 2, 1)


def test_event_dates_with_offset_are_stored_as_utc(admin_client, team_login):
    plus_five = timezone(timedelta(hours=5))
    local_now = datetime.now(plus_five)
    r = admin_client.post("/api/events.create", json={
        "name": "Remote Hack",
        "start_date": (local_now - timedelta(hours=1)).isoformat(),
        "end_date": (local_now + timedelta(hours=1)).isoformat(),
    })
    assert r.status_code == 200, r.text
    event = r.json()
    stored_start = datetime.fromisoformat(event["start_date"])
    assert stored_start.tzinfo is None
    assert abs(stored_start - (now_utc() - timedelta(hours=1))) < timedelta(minutes=1)

    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    team = add_team(admin_client, event["id"], "owls")
    r = team_login("owls").post("/api/orders.createOrder", json=order_body(team["id"], event["id"], food["id"], 1))
    assert r.status_code == 200, r.text


def test_event_dates_may_mix_offset_and_naive_utc(admin_client):
    now = now_utc()
    r = admin_client.post("/api/events.create", json={
        "name": "Mixed",
        "start_date": datetime.now(timezone(timedelta(hours=-3))).isoformat(),
        "end_date": (now + timedelta(hours=2)).isoformat(),
    })
    assert r.status_code == 200, r.text

    r = admin_client.post("/api/events.create", json={
        "name": "Mixed backwards",
        "start_date": (datetime.now(timezone(timedelta(hours=-3))) + timedelta(hours=2)).isoformat(),
        "end_date": now.isoformat(),
    })
    assert r.status_code == 422
    assert r.json()["error"] == "INVALID_EVENT_WINDOW"


def test_admin_login_is_by_email_only(client):
    r = client.post("/api/auth.adminLogin", json={"email": "Event admin (bootstrap)", "password": ADMIN_BOOTSTRAP_PASSWORD})
    assert r.status_code == 401

    r = client.post("/api/auth.adminLogin", json={"email": f" {ADMIN_BOOTSTRAP_EMAIL.upper()} ", "password": ADMIN_BOOTSTRAP_PASSWORD})
    assert r.status_code == 200
    assert r.json()["role"] == "ADMIN"


def test_team_stats(admin_client, team_login):
    event = create_event(admin_client)
    food = create_food(admin_client)
    allocate(admin_client, event["id"], food["id"])
    owls = add_team(admin_client, event["id"], "owls")
    add_team(admin_client, event["id"], "foxes")
    owls_client = team_login("owls")
    for qty in (1, 2):
        owls_client.post("/api/orders.createOrder", json=order_body(owls["id"], event["id"], food["id"], qty))

    stats = admin_client.get("/api/teams.getTeamStats").json()
    assert stats == {"total_teams": 2, "teams_with_orders": 1}


def test_quick_links(client, admin_client):
    assert client.get("/api/quickLinks.getAll").status_code == 401
    assert client.post("/api/quickLinks.add", json={"title": "Wifi", "description": "Guest network", "url": "x"}).status_code == 401

    wifi = admin_client.post("/api/quickLinks.add", json={
        "title": "Wifi", "description": "Guest network details", "url": "https://example.test/wifi",
    }).json()
    menu = admin_client.post("/api/quickLinks.add", json={
        "title": "Menu", "description": "Tonight's menu", "url": "https://example.test/menu",
    }).json()
    assert wifi["active"] is True

    r = admin_client.post("/api/quickLinks.add", json={"title": "", "description": "d", "url": "u"})
    assert r.status_code == 422

    r = admin_client.post("/api/quickLinks.toggleActive", json={"id": wifi["id"], "active": False})
    assert r.json()["active"] is False

    assert [link["id"] for link in client.get("/api/quickLinks.getActive").json()] == [menu["id"]]
    assert [link["id"] for link in admin_client.get("/api/quickLinks.getAll").json()] == [menu["id"], wifi["id"]]

    admin_client.post("/api/quickLinks.delete", json={"id": menu["id"]})
    assert client.get("/api/quickLinks.getActive").json() == []
    r = admin_client.post("/api/quickLinks.delete", json={"id": menu["id"]})
    assert r.status_code == 404
    assert r.json()["error"] == "NOT_FOUND"
