from sqlalchemy import select

from helpers import auth_headers, create_item, create_location, register, register_admin_and_staff
from stockledger.models.audit_log import AuditLog


def _request(client, headers, *, item_id, location_id, quantity, note=None):
    res = client.post(
        "/requisitions",
        json={"item_id": item_id, "location_id": location_id, "quantity": quantity, "note": note},
        headers=headers,
    )
    assert res.status_code == 200, res.text
    return res.json()


def _review(client, headers, requisition_id, decision, admin_note=None):
    return client.post(
        f"/requisitions/{requisition_id}/review",
        json={"decision": decision, "admin_note": admin_note},
        headers=headers,
    )


def test_fulfillment_scenario_keeps_quantity_and_ledger_consistent(test_context):
    client, session_local = test_context
    admin, staff = register_admin_and_staff(client)
    warehouse = create_location(session_local, name="Warehouse", code="WH")
    branch = create_location(session_local, name="Branch Office", code="BR")

    item = create_item(client, admin, sku="LAPTOP-15", quantity=10, reorder_level=5, location_id=warehouse)

    first = _request(client, staff, item_id=item["id"], location_id=branch, quantity=4, note="New hires")
    assert first["status"] == "pending"
    assert first["reference_number"] == "REQ-" + first["id"].replace("-", "")[:6].upper()
    assert client.get(f"/inventory/items/{item['id']}", headers=staff).json()["quantity"] == 10

    approved = _review(client, admin, first["id"], "approve", admin_note="Collect Monday")
    assert approved.status_code == 200, approved.text
    body = approved.json()
    assert body["status"] == "approved"
    assert body["admin_note"] == "Collect Monday"
    assert body["reviewed_by"]
    assert body["reviewed_at"]
    assert body["new_quantity"] == 6
    assert body["ledger_entry_id"]

    second = _request(client, staff, item_id=item["id"], location_id=branch, quantity=8)
    short = _review(client, admin, second["id"], "approve")
    assert short.status_code == 409
    error = short.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert error["message"] == "Cannot approve: insufficient stock"
    assert error["details"]["available"] == 6
    assert error["details"]["requested"] == 8

    still_pending = client.get(f"/requisitions/{second['id']}", headers=staff).json()
    assert still_pending["status"] == "pending"
    assert still_pending["reviewed_by"] is None

    transfer = client.post(
        "/stock-transfers",
        json={"item_id": item["id"], "from_location_id": warehouse, "to_location_id": branch, "quantity": 3},
        headers=admin,
    )
    assert transfer.status_code == 200, transfer.text
    assert transfer.json()["new_quantity"] == 6

    item_now = client.get(f"/inventory/items/{item['id']}", headers=staff).json()
    assert item_now["quantity"] == 6
    assert item_now["is_low_stock"] is False

    history = client.get(f"/inventory/items/{item['id']}/transactions", headers=staff).json()["items"]
    chain = list(reversed(history))
    assert [entry["kind"] for entry in chain] == ["add", "remove", "out", "in"]
    assert [entry["quantity_after"] for entry in chain] == [10, 6, 3, 6]
    assert [entry["item_version"] for entry in chain] == [1, 2, 3, 4]
    assert chain[1]["reference_type"] == "requisition"
    assert chain[1]["reference_id"] == first["id"]
    assert chain[1]["note"] == f"Requisition approval: #{first['reference_number']}"
    assert chain[1]["location_id"] == branch
    assert chain[2]["reference_id"] == chain[3]["reference_id"]


def test_review_twice_reports_already_reviewed(test_context):
    client, session_local = test_context
    admin, staff = register_admin_and_staff(client)
    store = create_location(session_local, name="Store", code="ST")
    item = create_item(client, admin, sku="PHONE-1", quantity=5)

    requisition = _request(client, staff, item_id=item["id"], location_id=store, quantity=2)
    assert _review(client, admin, requisition["id"], "approve").status_code == 200

    again = _review(client, admin, requisition["id"], "approve")
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "already_reviewed"
    assert again.json()["error"]["message"] == "This requisition has already been processed"

    flip = _review(client, admin, requisition["id"], "decline")
    assert flip.status_code == 409
    assert flip.json()["error"]["code"] == "already_reviewed"

    assert client.get(f"/inventory/items/{item['id']}", headers=admin).json()["quantity"] == 3


def test_decline_leaves_stock_untouched_and_is_audited(test_context):
    client, session_local = test_context
    admin, staff = register_admin_and_staff(client)
    store = create_location(session_local, name="Store", code="ST")
    item = create_item(client, admin, sku="CHAIR-1", quantity=5)

    requisition = _request(client, staff, item_id=item["id"], location_id=store, quantity=50)
    declined = _review(client, admin, requisition["id"], "decline", admin_note="Too many")
    assert declined.status_code == 200, declined.text
    body = declined.json()
    assert body["status"] == "declined"
    assert body["new_quantity"] is None
    assert body["ledger_entry_id"] is None

    assert client.get(f"/inventory/items/{item['id']}", headers=admin).json()["quantity"] == 5
    ledger = client.get(f"/inventory/ledger?item_id={item['id']}", headers=admin).json()
    assert ledger["pagination"]["total"] == 1

    db = session_local()
    try:
        actions = db.execute(
            select(AuditLog.action).where(AuditLog.target_id == requisition["id"]).order_by(AuditLog.created_at)
        ).scalars().all()
    finally:
        db.close()
    assert set(actions) == {"requisition.create", "requisition.decline"}


def test_only_admins_review_and_staff_see_their_own_requisitions(test_context):
    client, session_local = test_context
    admin, staff = register_admin_and_staff(client)
    other_res = register(client, email="other@example.com", full_name="Olu Other")
    other = auth_headers(other_res.json()["access_token"])
    store = create_location(session_local, name="Store", code="ST")
    item = create_item(client, admin, sku="DESK-1", quantity=5)

    mine = _request(client, staff, item_id=item["id"], location_id=store, quantity=1)
    theirs = _request(client, other, item_id=item["id"], location_id=store, quantity=2)

    forbidden = _review(client, staff, mine["id"], "approve")
    assert forbidden.status_code == 403

    own_list = client.get("/requisitions", headers=staff).json()
    assert [row["id"] for row in own_list["items"]] == [mine["id"]]

    hidden = client.get(f"/requisitions/{theirs['id']}", headers=staff)
    assert hidden.status_code == 404

    admin_list = client.get("/requisitions?status=pending", headers=admin).json()
    assert admin_list["pagination"]["total"] == 2


def test_create_requisition_validation(test_context):
    client, session_local = test_context
    admin, staff = register_admin_and_staff(client)
    store = create_location(session_local, name="Store", code="ST")
    item = create_item(client, admin, sku="LAMP-1", quantity=5)

    zero = client.post(
        "/requisitions",
        json={"item_id": item["id"], "location_id": store, "quantity": 0},
        headers=staff,
    )
    assert zero.status_code == 422

    fractional = client.post(
        "/requisitions",
        json={"item_id": item["id"], "location_id": store, "quantity": 1.5},
        headers=staff,
    )
    assert fractional.status_code == 422

    missing_item = client.post(
        "/requisitions",
        json={"item_id": "no-such-item", "location_id": store, "quantity": 1},
        headers=staff,
    )
    assert missing_item.status_code == 404

    missing_location = client.post(
        "/requisitions",
        json={"item_id": item["id"], "location_id": "no-such-location", "quantity": 1},
        headers=staff,
    )
    assert missing_location.status_code == 404
    assert missing_location.json()["error"]["message"] == "Location not found"

    # Requesting more than is on hand is allowed; the check happens at approval.
    large = client.post(
        "/requisitions",
        json={"item_id": item["id"], "location_id": store, "quantity": 500},
        headers=staff,
    )
    assert large.status_code == 200, large.text
