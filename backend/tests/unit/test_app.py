# -*- coding: utf-8 -*-
"""
Application wiring: health routes, security headers, bearer auth, /purchases
"""

from datetime import timedelta

import jwt
import pytest

from storefront.configuration import get_settings
from storefront.models.purchase import PurchaseStatus
from storefront.utils.jwt_handler import create_access_token, decode_access_token


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


def test_security_headers(client):
    response = client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "no-store" in response.headers["Cache-Control"]


class TestBearerAuth:
    def test_missing_header(self, client):
        response = client.get("/purchases")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_ERROR"

    def test_wrong_scheme(self, client, make_user):
        user = make_user()
        token = create_access_token(user.id)

        assert client.get("/purchases", headers={"Authorization": f"Token {token}"}).status_code == 401

    def test_expired_token(self, client, make_user):
        user = make_user()
        token = create_access_token(user.id, expires_in=timedelta(seconds=-10))

        assert client.get("/purchases", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_foreign_signature(self, client, make_user):
        user = make_user()
        token = jwt.encode({"sub": user.id, "exp": 9999999999}, "x" * 40, algorithm="HS256")

        assert client.get("/purchases", headers={"Authorization": f"Bearer {token}"}).status_code == 401


class TestTokens:
    def test_round_trip_claims(self):
        token = create_access_token("user-1", email="a@example.com", role="user")

        payload = decode_access_token(token)

        assert payload["sub"] == "user-1"
        assert payload["email"] == "a@example.com"

    def test_subject_required(self):
        settings = get_settings()
        token = jwt.encode({"exp": 9999999999}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(ValueError):
            decode_access_token(token)


class TestMyPurchases:
    def test_only_own_rows(self, client, make_user, make_product, make_purchase, auth_headers):
        me, other = make_user("me@example.com"), make_user("other@example.com")
        mine = make_purchase(me, make_product("A"), PurchaseStatus.COMPLETED)
        make_purchase(me, make_product("B"), PurchaseStatus.PENDING)
        make_purchase(other, make_product("C"), PurchaseStatus.COMPLETED)

        response = client.get("/purchases", headers=auth_headers(me))

        assert response.status_code == 200
        rows = response.json()["purchases"]
        assert len(rows) == 2
        assert mine.id in {row["id"] for row in rows}
        assert {row["status"] for row in rows} == {"completed", "pending"}

    def test_empty(self, client, make_user, auth_headers):
        user = make_user()

        assert client.get("/purchases", headers=auth_headers(user)).json() == {"purchases": []}


class TestMalformedInput:
    def test_non_json_body_is_400(self, client, make_user, auth_headers):
        user = make_user()

        response = client.post(
            "/create-checkout",
            content=b"productId=abc",
            headers={**auth_headers(user), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_overlong_query_param_is_400(self, client, make_user, auth_headers):
        user = make_user()

        response = client.get(f"/secure-download?productId={'x' * 65}", headers=auth_headers(user))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_rejected_coupon_value_is_not_echoed(self, client, make_user, auth_headers):
        user = make_user()

        response = client.post(
            "/create-checkout",
            json={"productId": "p1", "couponCode": "SECRET-" + "X" * 60},
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert "SECRET-" not in response.text
