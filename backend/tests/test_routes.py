"""
HTTP API tests: payload validation, status codes and error shapes.
"""

from aquadist.extensions import db
from aquadist.models import Customer, Product

from conftest import ACTOR


def _create_customer(client, **overrides):
    body = {"name": "Shop", "phone": "0901", "address": "1 Street"}
    body.update(overrides)
    return client.post("/api/customers", json=body, headers=ACTOR)


def _create_product(client, name="Water 20L", price_cents=1000, is_returnable=True):
    return client.post(
        "/api/products",
        json={"name": name, "unit": "bottle", "price_cents": price_cents, "is_returnable": is_returnable},
        headers=ACTOR,
    )


def _stock(client, product_id, quantity):
    return client.post(
        "/api/inventory",
        json={"product_id": product_id, "movement_type": "import", "quantity": quantity},
        headers=ACTOR,
    )


def test_mutating_route_requires_actor(client, db_session):
    response = client.post("/api/customers", json={"name": "x", "phone": "1", "address": "y"})
    assert response.status_code == 401

    response = client.post(
        "/api/customers", json={"name": "x", "phone": "1", "address": "y"}, headers={"X-User-Id": "abc"}
    )
    assert response.status_code == 401


def test_unknown_field_rejected(client, db_session):
    response = _create_customer(client, debt_cents=-100)

    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"


def test_agency_requires_level(client, db_session):
    response = _create_customer(client, customer_type="agency")
    assert response.status_code == 400

    response = _create_customer(client, customer_type="agency", agency_level=2)
    assert response.status_code == 201
    assert response.get_json()["agency_level"] == 2


def test_order_flow_over_http(client, db_session):
    customer_id = _create_customer(client).get_json()["id"]
    product_id = _create_product(client).get_json()["id"]
    assert _stock(client, product_id, 10).status_code == 201

    response = client.post(
        "/api/orders",
        json={"customer_id": customer_id, "items": [{"product_id": product_id, "quantity": 3}]},
        headers=ACTOR,
    )
    assert response.status_code == 201
    order = response.get_json()
    assert order["total_amount_cents"] == 3000
    assert order["returnable_out"] == 3
    assert order["created_by_user_id"] == 7
    assert len(order["items"]) == 1

    response = client.put(f"/api/orders/{order['id']}/payment", json={"amount_cents": 1000}, headers=ACTOR)
    assert response.status_code == 200
    assert response.get_json()["debt_remaining_cents"] == 2000

    response = client.put(f"/api/orders/{order['id']}/returnable", json={"returned_quantity": 4}, headers=ACTOR)
    assert response.status_code == 400
    body = response.get_json()
    assert body["code"] == "RETURN_EXCEEDS_OUTSTANDING"
    assert body["details"]["outstanding"] == 3

    response = client.put(f"/api/orders/{order['id']}/status", json={"status": "completed"}, headers=ACTOR)
    assert response.status_code == 200
    response = client.put(f"/api/orders/{order['id']}/status", json={"status": "canceled"}, headers=ACTOR)
    assert response.status_code == 409
    assert response.get_json()["code"] == "INVALID_TRANSITION"

    customer = client.get(f"/api/customers/{customer_id}").get_json()
    assert customer["debt_cents"] == 2000
    assert customer["empty_debt"] == 3


def test_insufficient_stock_returns_details(client, db_session):
    customer_id = _create_customer(client).get_json()["id"]
    product_id = _create_product(client).get_json()["id"]
    _stock(client, product_id, 2)

    response = client.post(
        "/api/orders",
        json={"customer_id": customer_id, "items": [{"product_id": product_id, "quantity": 5}]},
        headers=ACTOR,
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"]["items"][0]["available_stock"] == 2
    assert db.session.get(Product, product_id).stock == 2


def test_float_money_rejected(client, db_session):
    customer_id = _create_customer(client).get_json()["id"]

    response = client.post(
        "/api/transactions",
        json={"customer_id": customer_id, "amount_cents": 10.5},
        headers=ACTOR,
    )

    assert response.status_code == 400
    assert db.session.get(Customer, customer_id).debt_cents == 0


def test_not_found_shape(client, db_session):
    response = client.get("/api/orders/424242")

    assert response.status_code == 404
    assert response.get_json() == {
        "error": "Order 424242 not found",
        "code": "NOT_FOUND",
        "details": {"order_id": 424242},
    }


def test_import_delete_conflict_over_http(client, db_session):
    supplier_id = client.post(
        "/api/suppliers",
        json={"name": "Spring", "contact_person": "Lan", "phone": "0902", "address": "Park"},
        headers=ACTOR,
    ).get_json()["id"]
    customer_id = _create_customer(client).get_json()["id"]
    product_id = _create_product(client).get_json()["id"]

    record = client.post(
        "/api/imports",
        json={"supplier_id": supplier_id, "items": [{"product_id": product_id, "quantity": 3, "unit_cost_cents": 200}]},
        headers=ACTOR,
    ).get_json()
    client.post(
        "/api/orders",
        json={"customer_id": customer_id, "items": [{"product_id": product_id, "quantity": 2}]},
        headers=ACTOR,
    )

    response = client.delete(f"/api/imports/{record['id']}", headers=ACTOR)
    assert response.status_code == 409
    assert response.get_json()["code"] == "IMPORT_IN_USE"
    assert client.get(f"/api/imports/{record['id']}").status_code == 200


def test_purchase_and_supplier_debt_over_http(client, db_session):
    supplier_id = client.post(
        "/api/suppliers",
        json={"name": "Spring", "contact_person": "Lan", "phone": "0902", "address": "Park"},
        headers=ACTOR,
    ).get_json()["id"]
    product_id = _create_product(client).get_json()["id"]

    purchase = client.post(
        "/api/purchases",
        json={"supplier_id": supplier_id, "items": [{"product_id": product_id, "quantity": 10, "unit_cost_cents": 400}]},
        headers=ACTOR,
    ).get_json()
    client.put(f"/api/purchases/{purchase['id']}/pay", json={"amount_cents": 1000}, headers=ACTOR)

    supplier = client.get(f"/api/suppliers/{supplier_id}").get_json()
    assert supplier["debt_cents"] == 3000

    report = client.get("/api/reports/supplier-debt").get_json()
    assert report["total_debt_cents"] == 3000


def test_inventory_report_route(client, db_session):
    product_id = _create_product(client).get_json()["id"]
    _stock(client, product_id, 4)

    report = client.get("/api/inventory/report").get_json()
    assert report["products"][0]["imported"] == 4

    product_report = client.get(f"/api/inventory/product/{product_id}?end=2000-01-01").get_json()
    assert product_report["imported"] == 0
    assert product_report["movements"] == []

    response = client.get("/api/inventory/report?start=not-a-date")
    assert response.status_code == 400


def test_inventory_movement_product_id_must_be_integer(client, db_session):
    product_id = _create_product(client).get_json()["id"]

    for bad in ([product_id], True, 1.5):
        response = client.post(
            "/api/inventory",
            json={"product_id": bad, "movement_type": "import", "quantity": 1},
            headers=ACTOR,
        )
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    assert db.session.get(Product, product_id).stock == 0


def test_reclassify_customer_over_http(client, db_session):
    customer_id = _create_customer(client).get_json()["id"]
    product_id = _create_product(client).get_json()["id"]
    _stock(client, product_id, 10)

    response = client.put(
        f"/api/customers/{customer_id}",
        json={"customer_type": "agency", "agency_level": 2},
        headers=ACTOR,
    )
    assert response.status_code == 200
    assert response.get_json()["agency_level"] == 2

    order = client.post(
        "/api/orders",
        json={"customer_id": customer_id, "items": [{"product_id": product_id, "quantity": 3}]},
        headers=ACTOR,
    ).get_json()
    assert order["total_amount_cents"] == 2700

    response = client.put(f"/api/customers/{customer_id}", json={"debt_cents": 0}, headers=ACTOR)
    assert response.status_code == 400

    response = client.delete(f"/api/customers/{customer_id}", headers=ACTOR)
    assert response.status_code == 409
    assert response.get_json()["code"] == "ACCOUNT_IN_USE"


def test_update_and_delete_supplier_over_http(client, db_session):
    supplier_id = client.post(
        "/api/suppliers",
        json={"name": "Spring", "contact_person": "Lan", "phone": "0902", "address": "Park"},
        headers=ACTOR,
    ).get_json()["id"]

    response = client.put(f"/api/suppliers/{supplier_id}", json={"contact_person": "Hoa"})
    assert response.status_code == 401

    response = client.put(f"/api/suppliers/{supplier_id}", json={"contact_person": "Hoa"}, headers=ACTOR)
    assert response.status_code == 200
    assert response.get_json()["contact_person"] == "Hoa"

    assert client.delete(f"/api/suppliers/{supplier_id}", headers=ACTOR).status_code == 200
    assert client.get(f"/api/suppliers/{supplier_id}").status_code == 404
    assert client.delete(f"/api/suppliers/{supplier_id}", headers=ACTOR).status_code == 404


def test_revenue_and_best_selling_routes(client, db_session):
    customer_id = _create_customer(client).get_json()["id"]
    product_id = _create_product(client).get_json()["id"]
    _stock(client, product_id, 10)
    order = client.post(
        "/api/orders",
        json={"customer_id": customer_id, "items": [{"product_id": product_id, "quantity": 4}]},
        headers=ACTOR,
    ).get_json()
    client.put(f"/api/orders/{order['id']}/status", json={"status": "completed"}, headers=ACTOR)
    day = order["order_date"][:10]

    daily = client.get(f"/api/reports/revenue/daily?date={day}").get_json()
    assert daily["total_revenue_cents"] == 4000

    monthly = client.get(f"/api/reports/revenue/monthly?year={day[:4]}&month={int(day[5:7])}").get_json()
    assert monthly["total_revenue_cents"] == 4000

    best = client.get("/api/reports/products/best-selling?limit=5").get_json()
    assert best["items"][0]["total_quantity"] == 4

    assert client.get("/api/reports/revenue/daily?date=yesterday").status_code == 400
    assert client.get("/api/reports/revenue/monthly?month=13").status_code == 400
    assert client.get("/api/reports/products/best-selling?limit=abc").status_code == 400
