from helpers import create_location, register_admin_and_staff
from stockledger.models.location import Location


def test_locations_list_search_and_pagination(test_context):
    client, session_local = test_context
    _, staff_headers = register_admin_and_staff(client)
    create_location(session_local, name="Main Store", code="MAIN")
    create_location(session_local, name="Branch Office", code="BR-01")
    create_location(session_local, name="Branch Depot", code="BR-02")

    res = client.get("/locations", headers=staff_headers)
    assert res.status_code == 200, res.text
    assert [row["name"] for row in res.json()["items"]] == ["Branch Depot", "Branch Office", "Main Store"]

    res = client.get("/locations", params={"q": "br-", "limit": 1}, headers=staff_headers)
    body = res.json()
    assert [row["code"] for row in body["items"]] == ["BR-02"]
    assert body["pagination"]["total"] == 2
    assert body["pagination"]["has_next"] is True


def test_inactive_locations_hidden_by_default(test_context):
    client, session_local = test_context
    admin_headers, _ = register_admin_and_staff(client)
    location_id = create_location(session_local, name="Old Yard", code="OLD")
    db = session_local()
    try:
        db.get(Location, location_id).is_active = False
        db.commit()
    finally:
        db.close()

    assert client.get("/locations", headers=admin_headers).json()["items"] == []
    res = client.get("/locations", params={"include_inactive": "true"}, headers=admin_headers)
    assert [row["is_active"] for row in res.json()["items"]] == [False]


def test_locations_require_authentication(test_context):
    client, _ = test_context
    res = client.get("/locations")
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "unauthorized"
