"""
Admin order management and reporting.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from order_engine.application.lifecycle import OrderLifecycle
from order_engine.domain.models import Order


@pytest.fixture
def admin(auth_headers):
    return auth_headers("admin-1", admin=True)


class TestAdminAccess:

    @pytest.mark.parametrize("method,path", [
        ("get", "/admin/orders"),
        ("get", "/admin/orders/statistics"),
        ("get", "/admin/orders/1"),
        ("patch", "/admin/orders/1/status"),
        ("delete", "/admin/orders/1"),
    ])
    def test_customers_are_forbidden(self, client, auth_headers, method, path):
        kwargs = {"json": {"deliveryStatus": "processing"}} if method == "patch" else {}
        response = getattr(client, method)(path, headers=auth_headers("user-1"), **kwargs)
        assert response.status_code == 403

    def test_token_required(self, client):
        assert client.get("/admin/orders").status_code == 401


class TestAdminListing:

    def test_lists_every_users_orders_with_revenue(self, client, place_order, make_product, admin, auth_headers, verification):
        product = make_product(price="100.00", discount="10", stock=20)
        paid = place_order([(product, 2)], user_id="user-1").json()["id"]
        unpaid = place_order([(product, 1)], user_id="user-2").json()["id"]
        client.post("/cart/verifypayment", json=verification(paid), headers=auth_headers("user-1"))

        response = client.get("/admin/orders", headers=admin)

        assert response.status_code == 200
        body = response.json()
        assert {o["id"] for o in body["data"]} == {paid, unpaid}
        assert body["pagination"]["totalItems"] == 2
        # Only completed payments count
        assert body["statistics"] == {"totalRevenue": 180.0, "totalDiscount": 20.0}

    def test_filters(self, client, place_order, make_product, admin, auth_headers, verification):
        product = make_product(stock=20)
        paid = place_order([(product, 1)], user_id="user-1").json()["id"]
        pending = place_order([(product, 1)], user_id="user-1").json()["id"]
        other = place_order([(product, 1)], user_id="user-2").json()["id"]
        client.post("/cart/verifypayment", json=verification(paid), headers=auth_headers("user-1"))

        def ids(query):
            return {o["id"] for o in client.get(f"/admin/orders?{query}", headers=admin).json()["data"]}

        assert ids("userId=user-1") == {paid, pending}
        assert ids("paymentStatus=completed") == {paid}
        assert ids("deliveryStatus=pending") == {pending, other}
        assert ids("userId=user-2&deliveryStatus=pending") == {other}

    def test_date_window(self, client, place_order, make_product, admin):
        product = make_product(stock=5)
        order_id = place_order([(product, 1)]).json()["id"]
        yesterday = (datetime.utcnow() - timedelta(days=1)).isoformat()
        tomorrow = (datetime.utcnow() + timedelta(days=1)).isoformat()

        inside = client.get("/admin/orders", params={"startDate": yesterday, "endDate": tomorrow}, headers=admin).json()
        after = client.get("/admin/orders", params={"startDate": tomorrow}, headers=admin).json()

        assert [o["id"] for o in inside["data"]] == [order_id]
        assert after["data"] == []
        assert after["statistics"] == {"totalRevenue": 0.0, "totalDiscount": 0.0}

    def test_get_any_order(self, client, place_order, make_product, admin):
        product = make_product()
        order_id = place_order([(product, 1)], user_id="user-7").json()["id"]

        response = client.get(f"/admin/orders/{order_id}", headers=admin)

        assert response.status_code == 200
        assert response.json()["userId"] == "user-7"
        assert client.get("/admin/orders/999", headers=admin).status_code == 404


class TestAdminStatusUpdates:

    def test_delivery_progression(self, client, place_order, make_product, admin):
        product = make_product()
        order_id = place_order([(product, 1)]).json()["id"]

        for status in ("processing", "shipped", "delivered"):
            response = client.patch(f"/admin/orders/{order_id}/status", json={"deliveryStatus": status}, headers=admin)
            assert response.status_code == 200
            assert response.json()["deliveryStatus"] == status

    @pytest.mark.parametrize("path,target", [
        ([], "shipped"),
        ([], "delivered"),
        ([], "pending"),
        (["processing"], "cancelled"),
        (["processing"], "pending"),
        (["processing", "shipped", "delivered"], "shipped"),
    ])
    def test_illegal_delivery_transitions(self, client, place_order, make_product, admin, path, target):
        product = make_product()
        order_id = place_order([(product, 1)]).json()["id"]
        for status in path:
            client.patch(f"/admin/orders/{order_id}/status", json={"deliveryStatus": status}, headers=admin)

        response = client.patch(f"/admin/orders/{order_id}/status", json={"deliveryStatus": target}, headers=admin)

        assert response.status_code == 400
        body = response.json()
        assert body["reason"] == "INVALID_STATE_TRANSITION"
        assert body["field"] == "deliveryStatus"
        assert body["requestedState"] == target

    def test_payment_transitions(self, client, place_order, make_product, admin):
        product = make_product()
        order_id = place_order([(product, 1)]).json()["id"]

        response = client.patch(
            f"/admin/orders/{order_id}/status",
            json={"paymentStatus": "completed", "transactionId": "manual-42"},
            headers=admin,
        )
        assert response.status_code == 200
        assert response.json()["paymentStatus"] == "completed"
        assert response.json()["transactionId"] == "manual-42"

        response = client.patch(f"/admin/orders/{order_id}/status", json={"paymentStatus": "refunded"}, headers=admin)
        assert response.status_code == 200

        response = client.patch(f"/admin/orders/{order_id}/status", json={"paymentStatus": "pending"}, headers=admin)
        assert response.status_code == 400
        assert response.json()["currentState"] == "refunded"

    def test_invalid_pair_changes_nothing(self, client, place_order, make_product, admin):
        product = make_product()
        order_id = place_order([(product, 1)]).json()["id"]

        response = client.patch(
            f"/admin/orders/{order_id}/status",
            json={"deliveryStatus": "processing", "paymentStatus": "refunded"},
            headers=admin,
        )

        assert response.status_code == 400
        order = client.get(f"/admin/orders/{order_id}", headers=admin).json()
        assert order["deliveryStatus"] == "pending"
        assert order["paymentStatus"] == "pending"

    def test_admin_cancel_restores_stock(self, client, place_order, make_product, stock_of, admin):
        product = make_product(stock=10)
        order_id = place_order([(product, 4)]).json()["id"]

        response = client.patch(f"/admin/orders/{order_id}/status", json={"deliveryStatus": "cancelled"}, headers=admin)

        assert response.status_code == 200
        assert response.json()["deliveryStatus"] == "cancelled"
        assert response.json()["cancelledAt"] is not None
        assert stock_of(product) == 10

    def test_cancel_with_payment_change(self, client, place_order, make_product, stock_of, admin):
        product = make_product(stock=10)
        order_id = place_order([(product, 3)]).json()["id"]

        response = client.patch(
            f"/admin/orders/{order_id}/status",
            json={"deliveryStatus": "cancelled", "paymentStatus": "failed"},
            headers=admin,
        )

        assert response.status_code == 200
        assert response.json()["deliveryStatus"] == "cancelled"
        assert response.json()["paymentStatus"] == "failed"
        assert stock_of(product) == 10

    def test_cancel_misses_when_payment_moved_underneath(self, client, database, place_order, make_product, stock_of, admin, monkeypatch):
        product = make_product(stock=10)
        order_id = place_order([(product, 3)]).json()["id"]
        original_load = OrderLifecycle._load
        raced = []

        def load_then_change_payment(self, order_id, user_id=None):
            order = original_load(self, order_id, user_id)
            if not raced:
                raced.append(order_id)
                with database.session() as session:
                    session.execute(update(Order).where(Order.id == order_id).values(payment_status="failed"))
                    session.commit()
            return order

        monkeypatch.setattr(OrderLifecycle, "_load", load_then_change_payment)

        response = client.patch(
            f"/admin/orders/{order_id}/status",
            json={"deliveryStatus": "cancelled", "paymentStatus": "completed"},
            headers=admin,
        )

        assert response.status_code == 400
        assert "changed concurrently" in response.json()["detail"]
        monkeypatch.undo()
        order = client.get(f"/admin/orders/{order_id}", headers=admin).json()
        assert order["deliveryStatus"] == "pending"
        assert order["paymentStatus"] == "failed"
        assert stock_of(product) == 7

    def test_empty_update(self, client, place_order, make_product, admin):
        product = make_product()
        order_id = place_order([(product, 1)]).json()["id"]

        response = client.patch(f"/admin/orders/{order_id}/status", json={}, headers=admin)

        assert response.status_code == 400
        assert response.json()["reason"] == "VALIDATION_ERROR"

    def test_unknown_status_value(self, client, place_order, make_product, admin):
        product = make_product()
        order_id = place_order([(product, 1)]).json()["id"]

        response = client.patch(f"/admin/orders/{order_id}/status", json={"deliveryStatus": "teleported"}, headers=admin)

        assert response.status_code == 400

    def test_missing_order(self, client, admin):
        response = client.patch("/admin/orders/999/status", json={"deliveryStatus": "processing"}, headers=admin)
        assert response.status_code == 404


class TestAdminDelete:

    def test_delete(self, client, place_order, make_product, admin, auth_headers):
        product = make_product()
        order_id = place_order([(product, 2)]).json()["id"]

        response = client.delete(f"/admin/orders/{order_id}", headers=admin)

        assert response.status_code == 200
        assert response.json() == {"detail": "Order deleted successfully", "orderId": order_id}
        assert client.get(f"/user/orders/{order_id}", headers=auth_headers()).status_code == 404
        assert client.delete(f"/admin/orders/{order_id}", headers=admin).status_code == 404


class TestStatistics:

    def test_statistics(self, client, place_order, make_product, admin, auth_headers):
        popular = make_product(price="100.00", discount="10", stock=20, name="Popular")
        niche = make_product(price="30.00", stock=20, name="Niche")
        place_order([(popular, 2), (niche, 1)], user_id="user-1")
        cancelled = place_order([(popular, 3)], user_id="user-2").json()["id"]
        client.patch(f"/user/orders/{cancelled}/cancel", headers=auth_headers("user-2"))

        response = client.get("/admin/orders/statistics", headers=admin)

        assert response.status_code == 200
        body = response.json()
        by_status = {b["status"]: b for b in body["ordersByStatus"]}
        assert by_status["pending"]["count"] == 1
        assert by_status["pending"]["revenue"] == 210.0
        assert by_status["cancelled"]["count"] == 1

        assert len(body["ordersByDay"]) == 1
        assert body["ordersByDay"][0]["count"] == 2
        assert body["ordersByDay"][0]["date"] == datetime.utcnow().date().isoformat()

        top = body["topProducts"]
        assert top[0] == {"productId": popular, "name": "Popular", "totalQuantity": 5, "totalRevenue": 500.0}
        assert top[1]["productId"] == niche

    def test_statistics_window(self, client, place_order, make_product, admin):
        product = make_product()
        place_order([(product, 1)])
        tomorrow = (datetime.utcnow() + timedelta(days=1)).isoformat()

        body = client.get("/admin/orders/statistics", params={"startDate": tomorrow}, headers=admin).json()

        assert body == {"ordersByStatus": [], "ordersByDay": [], "topProducts": []}
