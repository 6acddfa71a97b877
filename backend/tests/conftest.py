# -*- coding: utf-8 -*-
"""
Pytest Configuration for Backend Tests

Environment is fixed before the application is imported: in-memory sqlite,
rate limiting off, no webhook secret and no Drive credentials unless a test
injects its own collaborators.
"""

import os
import sys
import time
from decimal import Decimal
from pathlib import Path

# Add backend root to path
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

os.environ.setdefault("ENVIRONMENT", "development")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-storefront-tests-0123456789")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["MERCADO_PAGO_WEBHOOK_SECRET"] = ""
os.environ["GOOGLE_SERVICE_ACCOUNT_JSON"] = ""
os.environ.setdefault("SITE_URL", "https://store.example.com")
os.environ.setdefault("PUBLIC_API_BASE_URL", "https://api.example.com")

import pytest
from fastapi.testclient import TestClient

from storefront.configuration import get_settings

get_settings.cache_clear()

from storefront.database import Base, SessionLocal, engine, get_db
import storefront.models  # noqa: F401  (registers tables)
from storefront.models.catalog import Bundle, BundleProduct, Product
from storefront.models.coupon import Coupon
from storefront.models.purchase import Purchase, PurchaseStatus
from storefront.models.user import User, UserRole
from storefront.providers.base import CheckoutIntent, PaymentProvider
from storefront.utils.jwt_handler import create_access_token


class FakeProvider(PaymentProvider):
    """
    In-memory PaymentProvider.

    create_intent records each IntentRequest; confirm answers from
    `confirmations` (a Confirmation or an exception to raise) per identifier.
    """

    def __init__(self, name="fake", currency="BRL", conversion_rate=Decimal("1")):
        super().__init__(currency, conversion_rate)
        self.name = name
        self.url = f"https://pay.example.com/{name}/checkout"
        self.provider_reference = f"{name}-ref-1"
        self.intents = []
        self.confirm_calls = []
        self.confirmations = {}
        self.create_error = None
        # Seconds each processor call stalls for
        self.delay = 0

    def create_intent(self, request):
        time.sleep(self.delay)
        if self.create_error is not None:
            raise self.create_error
        self.intents.append(request)
        return CheckoutIntent(url=self.url, provider_reference=self.provider_reference)

    def confirm(self, identifier):
        time.sleep(self.delay)
        self.confirm_calls.append(identifier)
        result = self.confirmations[identifier]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def db_session():
    """Fresh schema per test on the shared in-memory connection"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app(db_session):
    from storefront.main import app as fastapi_app

    def _get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = _get_db
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def fake_provider_factory():
    return FakeProvider


@pytest.fixture
def make_user(db_session):
    def _make_user(email="buyer@example.com", admin=False):
        user = User(email=email)
        db_session.add(user)
        db_session.commit()
        if admin:
            db_session.add(UserRole(user_id=user.id, role="admin"))
            db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_product(db_session):
    def _make_product(name="Neon Glow", price="100.00", **kwargs):
        product = Product(name=name, price=Decimal(price), **kwargs)
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make_product


@pytest.fixture
def make_bundle(db_session):
    def _make_bundle(products, name="Creator Pack", price="150.00"):
        bundle = Bundle(name=name, price=Decimal(price))
        db_session.add(bundle)
        db_session.commit()
        for position, product in enumerate(products):
            db_session.add(BundleProduct(bundle_id=bundle.id, product_id=product.id, position=position))
        db_session.commit()
        db_session.refresh(bundle)
        return bundle

    return _make_bundle


@pytest.fixture
def make_purchase(db_session):
    def _make_purchase(user, product, status=PurchaseStatus.COMPLETED, external_reference=None):
        purchase = Purchase(
            user_id=user.id,
            product_id=product.id,
            status=status.value if isinstance(status, PurchaseStatus) else status,
            external_reference=external_reference,
        )
        db_session.add(purchase)
        db_session.commit()
        db_session.refresh(purchase)
        return purchase

    return _make_purchase


@pytest.fixture
def make_coupon(db_session):
    def _make_coupon(code="SAVE20", discount_percent=20, used=False):
        coupon = Coupon(code=code, discount_percent=discount_percent, used=used)
        db_session.add(coupon)
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _make_coupon


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token(user.id, email=user.email)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
