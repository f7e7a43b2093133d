from datetime import timedelta

from marketplace.models import UserRole
from marketplace.services.clock import utcnow
from marketplace.services.integrity import DUPLICATE_BID


def _requirement_body(**fields) -> dict:
    now = utcnow()
    return {
        "title": "Cold rolled steel coils",
        "category": "metals",
        "quantity": 20,
        "unit": "tons",
        "target_price": 600.0,
        "currency": "USD",
        "delivery_location": "Hamburg",
        "bid_deadline": (now + timedelta(days=5)).isoformat(),
        "delivery_deadline": (now + timedelta(days=45)).isoformat(),
        **fields,
    }


def _bid_body(requirement_id: str, **fields) -> dict:
    return {
        "requirement_id": requirement_id,
        "price": 580.0,
        "currency": "USD",
        "delivery_time": 3,
        "delivery_time_unit": "weeks",
        "payment_terms": "LC at sight",
        **fields,
    }


def _post_requirement(client, auth, importer) -> dict:
    response = client.post("/requirements", json=_requirement_body(), headers=auth(importer))
    assert response.status_code == 201, response.text
    return response.json()


def _post_bid(client, auth, exporter, requirement_id, **fields) -> dict:
    response = client.post("/bids", json=_bid_body(requirement_id, **fields), headers=auth(exporter))
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"


def test_register_and_fetch_profile(client) -> None:
    response = client.post("/users", json={
        "email": "buyer@nordicimports.com",
        "role": "importer",
        "company_name": "Nordic Imports",
    })
    assert response.status_code == 201
    user = response.json()

    me = client.get("/users/me", headers={"X-User-Id": user["id"], "X-User-Role": "importer"})
    assert me.status_code == 200
    assert me.json()["company_name"] == "Nordic Imports"

    duplicate = client.post("/users", json={"email": "buyer@nordicimports.com", "role": "exporter", "company_name": "X"})
    assert duplicate.status_code == 400


def test_missing_or_unknown_identity_is_unauthenticated(client) -> None:
    assert client.get("/users/me").status_code == 401
    response = client.get("/users/me", headers={"X-User-Id": "nobody", "X-User-Role": "importer"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"


def test_role_checks(client, auth, exporter) -> None:
    spoofed = {"X-User-Id": exporter.id, "X-User-Role": UserRole.IMPORTER}
    assert client.get("/users/me", headers=spoofed).status_code == 403

    response = client.post("/requirements", json=_requirement_body(), headers=auth(exporter))
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_requirement_validation(client, auth, importer) -> None:
    now = utcnow()
    body = _requirement_body(
        bid_deadline=(now + timedelta(days=10)).isoformat(),
        delivery_deadline=(now + timedelta(days=5)).isoformat(),
    )
    assert client.post("/requirements", json=body, headers=auth(importer)).status_code == 422
    assert client.post("/requirements", json=_requirement_body(currency="AUD"), headers=auth(importer)).status_code == 422


def test_public_requirement_listing(client, auth, importer) -> None:
    created = _post_requirement(client, auth, importer)
    listing = client.get("/requirements", params={"category": "METAL"}).json()
    assert [r["id"] for r in listing["requirements"]] == [created["id"]]
    assert listing["pagination"]["total"] == 1
    assert client.get(f"/requirements/{created['id']}").json()["status"] == "active"
    assert client.get("/requirements/missing").status_code == 404


def test_duplicate_bid_maps_to_integrity_error(client, auth, importer, exporter) -> None:
    requirement = _post_requirement(client, auth, importer)
    _post_bid(client, auth, exporter, requirement["id"])

    response = client.post("/bids", json=_bid_body(requirement["id"], price=570.0), headers=auth(exporter))
    assert response.status_code == 400
    assert response.json() == {"detail": DUPLICATE_BID, "error": "integrity_violation"}


def test_ranked_bids_visibility(client, auth, importer, exporter, make_user) -> None:
    requirement = _post_requirement(client, auth, importer)
    rival = make_user()
    _post_bid(client, auth, exporter, requirement["id"], price=590.0)
    _post_bid(client, auth, rival, requirement["id"], price=550.0)
    path = f"/requirements/{requirement['id']}/bids"

    owner_view = client.get(path, headers=auth(importer)).json()
    assert owner_view["total"] == 2
    assert [b["exporter_id"] for b in owner_view["bids"]] == [rival.id, exporter.id]
    assert [b["rank"] for b in owner_view["bids"]] == [1, 2]
    assert all(b["payment_terms"] == "LC at sight" for b in owner_view["bids"])

    exporter_view = client.get(path, headers=auth(exporter)).json()
    own, competitor = (
        next(b for b in exporter_view["bids"] if b["exporter_id"] == exporter.id),
        next(b for b in exporter_view["bids"] if b["exporter_id"] == rival.id),
    )
    assert own["payment_terms"] == "LC at sight"
    assert competitor["payment_terms"] is None
    assert competitor["price"] == 550.0

    unranked = client.get(path, params={"include_ranking": False}, headers=auth(importer)).json()
    assert unranked["bids"][0]["rank"] is None

    outsider = make_user()
    assert client.get(path, headers=auth(outsider)).status_code == 403


def test_accept_opens_order_and_tracks_phases(client, auth, importer, exporter, make_user) -> None:
    requirement = _post_requirement(client, auth, importer)
    bid = _post_bid(client, auth, exporter, requirement["id"])
    other = _post_bid(client, auth, make_user(), requirement["id"], price=620.0)

    accepted = client.put(f"/bids/{bid['id']}/accept", headers=auth(importer))
    assert accepted.status_code == 200, accepted.text
    body = accepted.json()
    assert body["bid"]["status"] == "accepted"
    assert [b["id"] for b in body["rejected_bids"]] == [other["id"]]
    assert body["requirement"]["status"] == "awarded"
    order = body["order"]
    assert order["current_phase"] == "confirmation"
    assert order["total_value"] == 580.0 * 20

    detail = client.get(f"/orders/{order['id']}", headers=auth(exporter)).json()
    assert detail["user_role"] == "exporter"

    skipped = client.put(f"/orders/{order['id']}/phase", json={"phase": "production"}, headers=auth(exporter))
    assert skipped.status_code == 400
    assert skipped.json()["error"] == "state_conflict"

    advanced = client.put(
        f"/orders/{order['id']}/phase",
        json={"phase": "payment", "notes": "Advance paid", "documents": [{"name": "swift.pdf"}]},
        headers=auth(importer),
    )
    assert advanced.status_code == 200
    phases = {p["name"]: p for p in advanced.json()["phases"]}
    assert phases["confirmation"]["status"] == "completed"
    assert phases["payment"]["documents"][0]["name"] == "swift.pdf"

    again = client.post(f"/orders/from-bid/{bid['id']}", headers=auth(importer))
    assert again.status_code == 400

    listing = client.get("/orders", headers=auth(importer)).json()
    assert [o["id"] for o in listing["orders"]] == [order["id"]]


def test_accept_without_order_then_create(client, auth, importer, exporter) -> None:
    requirement = _post_requirement(client, auth, importer)
    bid = _post_bid(client, auth, exporter, requirement["id"])

    accepted = client.put(f"/bids/{bid['id']}/accept", params={"create_order": False}, headers=auth(importer))
    assert accepted.json()["order"] is None

    created = client.post(f"/orders/from-bid/{bid['id']}", headers=auth(importer))
    assert created.status_code == 201
    assert created.json()["bid_id"] == bid["id"]


def test_bid_audit_and_withdraw(client, auth, importer, exporter, make_user) -> None:
    requirement = _post_requirement(client, auth, importer)
    bid = _post_bid(client, auth, exporter, requirement["id"])

    updated = client.put(f"/bids/{bid['id']}", json={"price": 575.0}, headers=auth(exporter))
    assert updated.json()["price"] == 575.0
    withdrawn = client.delete(f"/bids/{bid['id']}", headers=auth(exporter))
    assert withdrawn.json()["status"] == "withdrawn"

    trail = client.get(f"/bids/{bid['id']}/audit", headers=auth(importer)).json()
    assert [e["action"] for e in trail] == ["created", "updated", "withdrawn"]
    assert client.get(f"/bids/{bid['id']}", headers=auth(make_user())).status_code == 403
    assert client.get("/bids/missing", headers=auth(exporter)).status_code == 404

    mine = client.get("/bids/my", headers=auth(exporter)).json()
    assert mine["bids"][0]["requirement"]["id"] == requirement["id"]


def test_mixed_naive_and_aware_deadlines_are_compared(client, auth, importer) -> None:
    now = utcnow()
    naive_delivery = (now + timedelta(days=45)).replace(tzinfo=None).isoformat()
    response = client.post(
        "/requirements", json=_requirement_body(delivery_deadline=naive_delivery), headers=auth(importer),
    )
    assert response.status_code == 201, response.text

    naive_early = (now + timedelta(days=2)).replace(tzinfo=None).isoformat()
    response = client.post(
        "/requirements", json=_requirement_body(delivery_deadline=naive_early), headers=auth(importer),
    )
    assert response.status_code == 422


def test_update_and_delete_requirement(client, auth, importer, exporter) -> None:
    requirement = _post_requirement(client, auth, importer)
    path = f"/requirements/{requirement['id']}"

    updated = client.put(path, json={"quantity": 25, "delivery_location": "Antwerp"}, headers=auth(importer))
    assert updated.status_code == 200, updated.text
    assert updated.json()["quantity"] == 25
    assert updated.json()["delivery_location"] == "Antwerp"
    assert updated.json()["title"] == requirement["title"]

    _post_bid(client, auth, exporter, requirement["id"])
    refused = client.delete(path, headers=auth(importer))
    assert refused.status_code == 400
    assert refused.json()["error"] == "state_conflict"

    empty = _post_requirement(client, auth, importer)
    assert client.delete(f"/requirements/{empty['id']}", headers=auth(exporter)).status_code == 403
    deleted = client.delete(f"/requirements/{empty['id']}", headers=auth(importer))
    assert deleted.status_code == 200
    assert client.get(f"/requirements/{empty['id']}").status_code == 404
