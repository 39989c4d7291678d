import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from order_engine.api.auth import create_access_token
from order_engine.application.payments import sign
from order_engine.core_settings import Settings
from order_engine.domain.models import Cart, Product
from order_engine.main import create_app

GATEWAY_SECRET = "gateway-test-secret"

SHIPPING_ADDRESS = {
    "name": "Ada Lovelace",
    "phone": "+44 20 7946 0000",
    "street": "12 St James's Square",
    "city": "London",
    "state": "London",
    "zip": "SW1Y 4JH",
}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'orders.db'}",
        RUN_MIGRATIONS=False,
        JWT_SECRET="jwt-test-secret",
        PAYMENT_GATEWAY_SECRET=GATEWAY_SECRET,
        RESERVATION_WORKERS=4,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def database(app, client):
    return app.state.database


@pytest.fixture
def auth_headers(settings):
    """Build bearer headers for a user id; ``admin=True`` issues an admin token."""
    def _headers(user_id="user-1", admin=False):
        token = create_access_token(user_id, settings, role="admin" if admin else "user")
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_product(database):
    counter = {"next": 1}

    def _make(price="100.00", discount="0", stock=10, name=None, is_active=True, images=None):
        product_id = counter["next"]
        counter["next"] += 1
        with database.session() as session:
            session.add(Product(
                id=product_id,
                name=name or f"Product {product_id}",
                category="general",
                price=Decimal(price),
                discount=Decimal(discount),
                images=images if images is not None else [f"https://cdn.example.com/p/{product_id}.jpg"],
                stock=stock,
                is_active=is_active,
            ))
            session.commit()
        return product_id
    return _make


@pytest.fixture
def stock_of(database):
    def _stock(product_id):
        with database.session() as session:
            return session.get(Product, product_id).stock
    return _stock


@pytest.fixture
def make_cart(database):
    def _make(user_id, items):
        with database.session() as session:
            session.add(Cart(user_id=user_id, items=items, total_price=Decimal("50.00")))
            session.commit()
    return _make


@pytest.fixture
def cart_of(database):
    def _cart(user_id):
        with database.session() as session:
            return session.query(Cart).filter(Cart.user_id == user_id).one()
    return _cart


def order_payload(items, payment_method="card", **overrides):
    payload = {
        "items": [{"product": product, "quantity": quantity} for product, quantity in items],
        "paymentMethod": payment_method,
        "shippingAddress": SHIPPING_ADDRESS,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def place_order(client, auth_headers):
    def _place(items, user_id="user-1", **overrides):
        return client.post("/orders", json=order_payload(items, **overrides), headers=auth_headers(user_id))
    return _place


@pytest.fixture
def verification(settings):
    """Build a verifypayment body signed with the configured gateway secret."""
    def _body(order_id, gateway_order_id="gw_order_1", gateway_payment_id="pay_1", signature=None):
        return {
            "orderId": order_id,
            "gatewayOrderId": gateway_order_id,
            "gatewayPaymentId": gateway_payment_id,
            "gatewaySignature": signature or sign(settings.PAYMENT_GATEWAY_SECRET, gateway_order_id, gateway_payment_id),
        }
    return _body
