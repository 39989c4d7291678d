"""
Service surface: health probes, root info, request ids and the seed loader.
"""

import logging

from order_engine.domain.models import Product
from order_engine.seed import load_products


class TestHealth:

    def test_liveness(self, client):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "pass"
        assert body["service"] == "orders-service"

    def test_readiness_checks_database(self, client):
        body = client.get("/health/ready").json()
        assert body["checks"]["database:connectivity"]["status"] == "pass"

    def test_startup_sees_schema(self, client):
        response = client.get("/health/startup")
        assert response.status_code == 200
        assert response.json()["status"] == "started"

    def test_metrics(self, client):
        body = client.get("/metrics").json()
        assert body["service"] == "orders-service"
        assert "memory_rss_bytes" in body["system"]


class TestServiceInfo:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "running"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health/live", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self, client):
        response = client.get("/health/live")
        assert response.headers["X-Request-ID"]

    def test_requests_are_logged_except_probes(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="shared.core.logging_config"):
            client.get("/health/live")
            client.get("/")

        messages = [r.getMessage() for r in caplog.records if r.name == "shared.core.logging_config"]
        assert messages == ["GET / -> 200"]


class TestSeed:

    def test_loads_products(self, database, tmp_path):
        csv_file = tmp_path / "products.csv"
        csv_file.write_text(
            "product_id,name,description,category,price,discount,images,stock,is_active\n"
            "101,Bottle,Steel bottle,accessories,32.50,15,https://a/1.jpg|https://a/2.jpg,100,true\n"
            "102,Old Tent,,camping,210.00,0,,3,false\n"
            "103,Broken Row,,camping,not-a-price,0,,3,true\n"
        )

        with database.session() as session:
            assert load_products(session, csv_file) == 2

        with database.session() as session:
            bottle = session.get(Product, 101)
            assert bottle.images == ["https://a/1.jpg", "https://a/2.jpg"]
            assert float(bottle.discount) == 15.0
            assert session.get(Product, 102).is_active is False
            assert session.get(Product, 103) is None

    def test_reload_updates_in_place(self, database, tmp_path, stock_of):
        csv_file = tmp_path / "products.csv"
        header = "product_id,name,description,category,price,discount,images,stock,is_active\n"
        csv_file.write_text(header + "201,Lamp,,accessories,10.00,0,,5,true\n")
        with database.session() as session:
            load_products(session, csv_file)

        csv_file.write_text(header + "201,Lamp,,accessories,10.00,0,,9,true\n")
        with database.session() as session:
            load_products(session, csv_file)

        assert stock_of(201) == 9
