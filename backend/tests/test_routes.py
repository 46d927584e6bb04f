"""
HTTP route tests for SchoolBites.

Verifies:
- Unauthenticated requests return 401, non-admins get 403 on admin routes
- Access fee checkout + confirmation end to end (Stripe faked)
- Order checkout requires active access and rolls back on provider failure
- Signed webhooks settle payments; bad signatures are rejected
"""

from datetime import date

import pytest
import stripe

from conftest import auth_headers, checkout_event, signed_webhook
from schoolbites.models import Order, Payment
from schoolbites.services.access_service import next_annual_expiration
from schoolbites.time_utils import utcnow


def _grant_access(db_session, user):
    user.access_expires_at = next_annual_expiration(utcnow())
    db_session.commit()


# =============================================================================
# AUTHENTICATION / AUTHORIZATION
# =============================================================================


class TestAuth:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/access/"),
            ("POST", "/api/access/checkout"),
            ("POST", "/api/access/confirm"),
            ("POST", "/api/orders/quote"),
            ("POST", "/api/orders/"),
            ("GET", "/api/orders/"),
            ("GET", "/api/orders/1"),
            ("POST", "/api/orders/confirm"),
            ("GET", "/api/children/1/off-days"),
            ("GET", "/api/admin/off-days/"),
            ("POST", "/api/admin/off-days/"),
            ("DELETE", "/api/admin/off-days/1"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_subject_rejected(self, client, db_session):
        resp = client.get("/api/orders/", headers={"Authorization": "Bearer auth0|nobody"})
        assert resp.status_code == 401

    def test_parent_cannot_manage_off_days(self, client, parent):
        resp = client.get("/api/admin/off-days/", headers=auth_headers(parent))
        assert resp.status_code == 403


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# ACCESS FEE
# =============================================================================


class TestAccessFee:

    def test_checkout_then_confirm_grants_access(self, client, db_session, parent, fake_stripe):
        resp = client.post("/api/access/checkout", headers=auth_headers(parent))
        assert resp.status_code == 201
        session_id = resp.json["session_id"]
        assert resp.json["url"].startswith("https://checkout.stripe.com/")

        assert fake_stripe.sessions[0]["line_items"][0]["price_data"]["unit_amount"] == 1000
        assert "{CHECKOUT_SESSION_ID}" in fake_stripe.sessions[0]["success_url"]
        assert parent.stripe_customer_id == "cus_test_1"

        resp = client.post("/api/access/confirm", json={"session_id": session_id}, headers=auth_headers(parent))
        assert resp.status_code == 200
        assert resp.json["payment"]["status"] == "paid"
        assert resp.json["active"] is True
        assert resp.json["access_expires_at"] == next_annual_expiration(utcnow()).isoformat()

    def test_customer_created_once(self, client, db_session, parent, fake_stripe):
        client.post("/api/access/checkout", headers=auth_headers(parent))
        client.post("/api/access/checkout", headers=auth_headers(parent))
        assert len(fake_stripe.customers) == 1
        assert len(fake_stripe.sessions) == 2

    def test_confirm_other_parents_session_denied(self, client, db_session, parent, other_parent, fake_stripe):
        session_id = client.post("/api/access/checkout", headers=auth_headers(parent)).json["session_id"]
        resp = client.post("/api/access/confirm", json={"session_id": session_id}, headers=auth_headers(other_parent))
        assert resp.status_code == 403

    def test_confirm_unknown_session(self, client, parent):
        resp = client.post("/api/access/confirm", json={"session_id": "cs_missing"}, headers=auth_headers(parent))
        assert resp.status_code == 404

    def test_status(self, client, parent):
        resp = client.get("/api/access/", headers=auth_headers(parent))
        assert resp.status_code == 200
        assert resp.json == {"access_expires_at": None, "active": False}


# =============================================================================
# ORDERS
# =============================================================================


ORDER_BODY = {"order_type": "week-order", "start_date": "2024-07-01"}


class TestOrders:

    def test_quote(self, client, parent, child):
        resp = client.post("/api/orders/quote", json={**ORDER_BODY, "child_id": child.id}, headers=auth_headers(parent))
        assert resp.status_code == 200
        assert resp.json["billable_days"] == 4
        assert resp.json["total_price"] == "11.60"
        assert resp.json["end_date"] == "2024-07-07"

    def test_quote_rejects_bad_date(self, client, parent, child):
        body = {"child_id": child.id, "order_type": "week-order", "start_date": "2024-7-1"}
        resp = client.post("/api/orders/quote", json=body, headers=auth_headers(parent))
        assert resp.status_code == 400

    def test_order_requires_active_access(self, client, db_session, parent, child, fake_stripe):
        resp = client.post("/api/orders/", json={**ORDER_BODY, "child_id": child.id}, headers=auth_headers(parent))
        assert resp.status_code == 403
        assert fake_stripe.sessions == []

    def test_create_order_and_settle_by_webhook(self, client, db_session, parent, child, fake_stripe):
        _grant_access(db_session, parent)

        resp = client.post("/api/orders/", json={**ORDER_BODY, "child_id": child.id}, headers=auth_headers(parent))
        assert resp.status_code == 201
        order_id = resp.json["order"]["id"]
        assert resp.json["order"]["price"] == 1160
        assert resp.json["order"]["payment_status"] == "pending"
        session_id = resp.json["checkout"]["session_id"]
        assert fake_stripe.sessions[0]["metadata"]["order_id"] == str(order_id)

        payload, signature = signed_webhook(checkout_event("checkout.session.completed", session_id, "pi_42"))
        resp = client.post(
            "/api/webhooks/stripe",
            data=payload,
            headers={"Stripe-Signature": signature},
            content_type="application/json",
        )
        assert resp.status_code == 200
        assert resp.json["processed"] is True

        db_session.expire_all()
        assert db_session.get(Order, order_id).payment_status == "paid"
        payment = db_session.query(Payment).filter_by(checkout_session_id=session_id).one()
        assert payment.webhook_processed is True
        assert payment.payment_intent_id == "pi_42"

        resp = client.get(f"/api/orders/{order_id}", headers=auth_headers(parent))
        assert resp.json["order"]["payment_status"] == "paid"

    def test_cancel_page_marks_order_cancelled(self, client, db_session, parent, child, fake_stripe):
        _grant_access(db_session, parent)
        created = client.post("/api/orders/", json={**ORDER_BODY, "child_id": child.id}, headers=auth_headers(parent))
        session_id = created.json["checkout"]["session_id"]

        resp = client.post(
            "/api/orders/confirm",
            json={"session_id": session_id, "outcome": "cancelled"},
            headers=auth_headers(parent),
        )
        assert resp.status_code == 200
        assert resp.json["payment"]["status"] == "cancelled"
        assert resp.json["order"]["payment_status"] == "cancelled"

    def test_confirm_rejects_unknown_outcome(self, client, parent):
        resp = client.post(
            "/api/orders/confirm",
            json={"session_id": "cs_x", "outcome": "refunded"},
            headers=auth_headers(parent),
        )
        assert resp.status_code == 400

    def test_provider_failure_leaves_no_order(self, client, db_session, parent, child, fake_stripe, monkeypatch):
        _grant_access(db_session, parent)

        def failing_session(**kwargs):
            raise stripe.StripeError("card network down")

        monkeypatch.setattr(stripe.checkout.Session, "create", failing_session)

        resp = client.post("/api/orders/", json={**ORDER_BODY, "child_id": child.id}, headers=auth_headers(parent))
        assert resp.status_code == 502
        assert db_session.query(Order).count() == 0
        assert db_session.query(Payment).count() == 0

    def test_other_parents_order_hidden(self, client, db_session, parent, other_parent, child, fake_stripe):
        _grant_access(db_session, parent)
        created = client.post("/api/orders/", json={**ORDER_BODY, "child_id": child.id}, headers=auth_headers(parent))
        order_id = created.json["order"]["id"]

        resp = client.get(f"/api/orders/{order_id}", headers=auth_headers(other_parent))
        assert resp.status_code == 403
        resp = client.get("/api/orders/", headers=auth_headers(other_parent))
        assert resp.json["orders"] == []


# =============================================================================
# OFF-DAYS
# =============================================================================


class TestOffDays:

    def test_child_off_days(self, client, parent, child, add_off_day):
        add_off_day(child.school, date(2024, 7, 2))
        resp = client.get(
            f"/api/children/{child.id}/off-days?start_date=2024-07-01&end_date=2024-07-07",
            headers=auth_headers(parent),
        )
        assert resp.status_code == 200
        assert resp.json["dates"] == ["2024-07-02", "2024-07-03", "2024-07-06", "2024-07-07"]

    def test_admin_create_list_delete(self, client, admin, school):
        resp = client.post(
            "/api/admin/off-days/",
            json={"start_date": "2024-12-23", "end_date": "2024-12-24", "school_ids": [school.id], "reason": "Winter"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 201
        assert resp.json == {"created": 2, "skipped": 0}

        resp = client.get(f"/api/admin/off-days/?school_id={school.id}", headers=auth_headers(admin))
        off_days = resp.json["off_days"]
        assert [o["date"] for o in off_days] == ["2024-12-23", "2024-12-24"]

        resp = client.delete(f"/api/admin/off-days/{off_days[0]['id']}", headers=auth_headers(admin))
        assert resp.status_code == 204
        resp = client.delete(f"/api/admin/off-days/{off_days[0]['id']}", headers=auth_headers(admin))
        assert resp.status_code == 404

    def test_admin_create_validates_school_ids(self, client, admin):
        resp = client.post(
            "/api/admin/off-days/",
            json={"start_date": "2024-12-23", "end_date": "2024-12-24", "school_ids": "1"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400


# =============================================================================
# WEBHOOK
# =============================================================================


class TestWebhook:

    def test_bad_signature_rejected(self, client, db_session):
        payload, _ = signed_webhook(checkout_event("checkout.session.completed", "cs_1"))
        resp = client.post(
            "/api/webhooks/stripe",
            data=payload,
            headers={"Stripe-Signature": "t=1,v1=deadbeef"},
            content_type="application/json",
        )
        assert resp.status_code == 400

    def test_missing_signature_rejected(self, client, db_session):
        resp = client.post("/api/webhooks/stripe", data="{}", content_type="application/json")
        assert resp.status_code == 400

    def test_unknown_session_acknowledged(self, client, db_session):
        payload, signature = signed_webhook(checkout_event("checkout.session.completed", "cs_missing"))
        resp = client.post(
            "/api/webhooks/stripe",
            data=payload,
            headers={"Stripe-Signature": signature},
            content_type="application/json",
        )
        assert resp.status_code == 200
        assert resp.json["received"] is True
        assert resp.json["processed"] is False

    def test_unrelated_event_without_session_acknowledged(self, client, db_session):
        payload, signature = signed_webhook({
            "id": "evt_balance",
            "object": "event",
            "type": "balance.available",
            "data": {"object": {"object": "balance"}},
        })
        resp = client.post(
            "/api/webhooks/stripe",
            data=payload,
            headers={"Stripe-Signature": signature},
            content_type="application/json",
        )
        assert resp.status_code == 200
        assert resp.json["received"] is True
        assert resp.json["processed"] is True
        assert db_session.query(Payment).count() == 0
