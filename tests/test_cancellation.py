"""
Customer cancellation and stock restoration.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from order_engine.domain.models import Product
from order_engine.infrastructure.catalog import CatalogRepository


class TestCancelOrder:

    def test_cancel_restores_every_line(self, client, place_order, make_product, stock_of, auth_headers):
        first = make_product(stock=10)
        second = make_product(stock=5)
        order_id = place_order([(first, 2), (second, 3)]).json()["id"]
        assert stock_of(first) == 8
        assert stock_of(second) == 2

        response = client.patch(f"/user/orders/{order_id}/cancel", headers=auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["order"]["deliveryStatus"] == "cancelled"
        assert body["order"]["cancelledAt"] is not None
        assert body["stockUpdates"]["successful"] == 2
        assert body["stockUpdates"]["failed"] == 0
        assert body["stockUpdates"]["details"] == [
            {"productId": first, "quantityRestored": 2, "newStock": 10},
            {"productId": second, "quantityRestored": 3, "newStock": 5},
        ]
        assert stock_of(first) == 10
        assert stock_of(second) == 5

    def test_second_cancel_is_rejected_without_touching_stock(self, client, place_order, make_product, stock_of, auth_headers):
        product = make_product(stock=10)
        order_id = place_order([(product, 4)]).json()["id"]
        client.patch(f"/user/orders/{order_id}/cancel", headers=auth_headers())

        response = client.patch(f"/user/orders/{order_id}/cancel", headers=auth_headers())

        assert response.status_code == 400
        body = response.json()
        assert body["reason"] == "INVALID_STATE_TRANSITION"
        assert body["detail"] == "Cannot cancel order in 'cancelled' status"
        assert body["currentState"] == "cancelled"
        assert stock_of(product) == 10

    def test_cancel_after_payment_is_rejected(self, client, place_order, make_product, stock_of, auth_headers, verification):
        product = make_product(stock=10)
        order_id = place_order([(product, 1)]).json()["id"]
        client.post("/cart/verifypayment", json=verification(order_id), headers=auth_headers())

        response = client.patch(f"/user/orders/{order_id}/cancel", headers=auth_headers())

        assert response.status_code == 400
        assert response.json()["currentState"] == "processing"
        assert stock_of(product) == 9

    def test_cannot_cancel_someone_elses_order(self, client, place_order, make_product, stock_of, auth_headers):
        product = make_product(stock=10)
        order_id = place_order([(product, 1)], user_id="user-1").json()["id"]

        response = client.patch(f"/user/orders/{order_id}/cancel", headers=auth_headers("user-2"))

        assert response.status_code == 404
        assert stock_of(product) == 9
        order = client.get(f"/user/orders/{order_id}", headers=auth_headers("user-1")).json()
        assert order["deliveryStatus"] == "pending"

    def test_cancel_missing_order(self, client, auth_headers):
        response = client.patch("/user/orders/4242/cancel", headers=auth_headers())
        assert response.status_code == 404

    def test_failed_restore_keeps_cancellation(self, monkeypatch, caplog, client, place_order, make_product, stock_of, auth_headers):
        healthy = make_product(stock=10)
        broken = make_product(stock=10)
        order_id = place_order([(healthy, 1), (broken, 2)]).json()["id"]

        original = CatalogRepository.increment_stock

        def flaky_increment(self, product_id, quantity):
            if product_id == broken:
                raise SQLAlchemyError("lock wait timeout")
            return original(self, product_id, quantity)

        monkeypatch.setattr(CatalogRepository, "increment_stock", flaky_increment)

        with caplog.at_level(logging.WARNING):
            response = client.patch(f"/user/orders/{order_id}/cancel", headers=auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["order"]["deliveryStatus"] == "cancelled"
        assert body["stockUpdates"]["successful"] == 1
        assert body["stockUpdates"]["failed"] == 1
        assert body["stockUpdates"]["errors"] == [
            {"productId": broken, "quantity": 2, "error": "lock wait timeout"},
        ]
        assert stock_of(healthy) == 10
        assert stock_of(broken) == 8
        assert any(r.levelno == logging.CRITICAL for r in caplog.records)

    def test_product_removed_from_catalog(self, client, database, place_order, make_product, auth_headers):
        product = make_product(stock=10)
        order_id = place_order([(product, 1)]).json()["id"]
        with database.session() as session:
            session.delete(session.get(Product, product))
            session.commit()

        response = client.patch(f"/user/orders/{order_id}/cancel", headers=auth_headers())

        assert response.status_code == 200
        updates = response.json()["stockUpdates"]
        assert updates["failed"] == 1
        assert updates["errors"][0]["error"] == "Product not found"
