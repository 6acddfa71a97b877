# -*- coding: utf-8 -*-
"""
Synchronous capture reconciler (/paypal-webhook) tests
"""

import pytest
from storefront.dependencies import get_paypal_provider
from storefront.models.purchase import Purchase, PurchaseStatus
from storefront.providers.base import Confirmation, ProviderError
from storefront.references import PurchaseReference


@pytest.fixture
def paypal_provider(app, fake_provider_factory):
    provider = fake_provider_factory(name="paypal", currency="USD")
    app.dependency_overrides[get_paypal_provider] = lambda: provider
    return provider


def _statuses(db_session):
    db_session.expire_all()
    return {row.id: row.status for row in db_session.query(Purchase).all()}


class TestCapture:
    def test_completed_capture_marks_every_reference_id(
        self, client, db_session, paypal_provider, make_user, make_product, make_purchase
    ):
        user = make_user()
        first = make_purchase(user, make_product(name="A"), PurchaseStatus.PENDING)
        second = make_purchase(user, make_product(name="B"), PurchaseStatus.PENDING)
        untouched = make_purchase(user, make_product(name="C"), PurchaseStatus.PENDING)
        paypal_provider.confirmations["ORDER-1"] = Confirmation(
            status=PurchaseStatus.COMPLETED,
            reference=PurchaseReference.parse(f"{first.id},{second.id}"),
            transaction_id="ORDER-1",
            raw_status="COMPLETED",
        )

        response = client.post("/paypal-webhook", json={"orderId": "ORDER-1"})

        assert response.status_code == 200
        assert response.json() == {"status": "completed", "purchase_ids": [first.id, second.id]}
        statuses = _statuses(db_session)
        assert statuses[first.id] == PurchaseStatus.COMPLETED.value
        assert statuses[second.id] == PurchaseStatus.COMPLETED.value
        assert statuses[untouched.id] == PurchaseStatus.PENDING.value

    def test_non_completed_capture_leaves_rows_alone(
        self, client, db_session, paypal_provider, make_user, make_product, make_purchase
    ):
        purchase = make_purchase(make_user(), make_product(), PurchaseStatus.PENDING)
        paypal_provider.confirmations["ORDER-2"] = Confirmation(
            status=PurchaseStatus.PENDING,
            reference=PurchaseReference.of([purchase.id]),
            raw_status="PAYER_ACTION_REQUIRED",
        )

        response = client.post("/paypal-webhook", json={"orderId": "ORDER-2"})

        assert response.status_code == 200
        assert response.json() == {"status": "PAYER_ACTION_REQUIRED"}
        assert _statuses(db_session)[purchase.id] == PurchaseStatus.PENDING.value

    def test_second_capture_of_same_order_still_completes(
        self, client, db_session, paypal_provider, make_user, make_product, make_purchase
    ):
        purchase = make_purchase(make_user(), make_product(), PurchaseStatus.PENDING)
        reference = PurchaseReference.of([purchase.id])
        paypal_provider.confirmations["ORDER-3"] = Confirmation(
            status=PurchaseStatus.COMPLETED, reference=reference, raw_status="COMPLETED"
        )
        first = client.post("/paypal-webhook", json={"orderId": "ORDER-3"})

        paypal_provider.confirmations["ORDER-3"] = Confirmation(
            status=PurchaseStatus.COMPLETED, reference=reference, raw_status="COMPLETED", already_captured=True
        )
        second = client.post("/paypal-webhook", json={"orderId": "ORDER-3"})

        assert first.status_code == second.status_code == 200
        assert first.json()["status"] == second.json()["status"] == "completed"
        assert second.json()["already_captured"] is True
        assert _statuses(db_session)[purchase.id] == PurchaseStatus.COMPLETED.value

    def test_processor_failure_is_500(self, client, paypal_provider):
        paypal_provider.confirmations["ORDER-4"] = ProviderError("paypal", 422, {"name": "UNPROCESSABLE_ENTITY"})

        response = client.post("/paypal-webhook", json={"orderId": "ORDER-4"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "UPSTREAM_ERROR"
        assert "UNPROCESSABLE_ENTITY" not in response.text

    def test_completed_without_reference_is_500(self, client, paypal_provider):
        paypal_provider.confirmations["ORDER-5"] = Confirmation(
            status=PurchaseStatus.COMPLETED, reference=None, raw_status="COMPLETED"
        )

        response = client.post("/paypal-webhook", json={"orderId": "ORDER-5"})

        assert response.status_code == 500

    def test_order_id_required(self, client, paypal_provider):
        response = client.post("/paypal-webhook", json={})

        assert response.status_code == 400
