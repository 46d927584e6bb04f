"""
Pytest fixtures for SchoolBites backend tests.

Provides test database setup, account/school factories, Stripe fakes, and test client.
"""

import hashlib
import hmac
import json
import time
from datetime import date, datetime
from types import SimpleNamespace

import pytest
import stripe

from schoolbites import create_app
from schoolbites.extensions import db
from schoolbites.models import Child, OffDay, Order, Payment, School, User


WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STRIPE_SECRET_KEY': 'sk_test_dummy',
        'STRIPE_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'APP_BASE_URL': 'http://localhost:3000',
        'ACCESS_FEE_CENTS': 1000,
        'PAYMENT_CURRENCY': 'eur',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# FACTORIES
# =============================================================================


def make_user(session, auth_id="auth0|parent", email="parent@example.com", is_admin=False, access_expires_at=None):
    user = User(
        external_auth_id=auth_id,
        email=email,
        first_name="Jan",
        last_name="Peeters",
        is_admin=is_admin,
        access_expires_at=access_expires_at,
    )
    session.add(user)
    session.commit()
    return user


def make_payment(
    session,
    user,
    session_id,
    payment_type="access-fee",
    status="pending",
    order=None,
    created_at=None,
    webhook_processed=False,
    amount=1000,
):
    payment = Payment(
        user_id=user.id,
        order_id=order.id if order is not None else None,
        checkout_session_id=session_id,
        amount=amount,
        currency="eur",
        type=payment_type,
        status=status,
        webhook_processed=webhook_processed,
        created_at=created_at or datetime(2024, 8, 1, 10, 0, 0),
    )
    session.add(payment)
    session.commit()
    return payment


def make_order(session, user, child, start=date(2024, 7, 1), end=date(2024, 7, 7), order_type="week-order"):
    order = Order(
        parent_id=user.id,
        child_id=child.id,
        order_type=order_type,
        start_date=start,
        end_date=end,
        price=1160,
        billable_days=4,
    )
    session.add(order)
    session.commit()
    return order


def auth_headers(user) -> dict:
    """Helper to create Authorization headers (bearer value is the IdP subject)."""
    return {'Authorization': f'Bearer {user.external_auth_id}'}


def signed_webhook(event: dict, secret: str = WEBHOOK_SECRET) -> tuple:
    """Serialize a Stripe event and build a valid Stripe-Signature header for it."""
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return payload, f"t={timestamp},v1={signature}"


def checkout_event(event_type: str, session_id: str, payment_intent=None) -> dict:
    return {
        "id": "evt_test",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": session_id, "object": "checkout.session", "payment_intent": payment_intent}},
    }


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(scope='function')
def school(db_session):
    school = School(name="Sint-Jozef")
    db_session.add(school)
    db_session.commit()
    return school


@pytest.fixture(scope='function')
def other_school(db_session):
    school = School(name="De Regenboog")
    db_session.add(school)
    db_session.commit()
    return school


@pytest.fixture(scope='function')
def parent(db_session):
    return make_user(db_session)


@pytest.fixture(scope='function')
def other_parent(db_session):
    return make_user(db_session, auth_id="auth0|other", email="other@example.com")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user(db_session, auth_id="auth0|admin", email="admin@example.com", is_admin=True)


@pytest.fixture(scope='function')
def child(db_session, parent, school):
    child = Child(
        parent_id=parent.id,
        school_id=school.id,
        first_name="Lotte",
        last_name="Peeters",
        allergies="nuts",
        bread_type="brown",
        crust=True,
        butter=False,
    )
    db_session.add(child)
    db_session.commit()
    return child


@pytest.fixture(scope='function')
def add_off_day(db_session):
    def _add(school, day, reason=None):
        off_day = OffDay(school_id=school.id, date=day, reason=reason)
        db_session.add(off_day)
        db_session.commit()
        return off_day
    return _add


@pytest.fixture(scope='function')
def fake_stripe(monkeypatch):
    """
    Replace the Stripe API calls with in-memory fakes.

    Returns a namespace recording every customer/session created.
    """
    calls = SimpleNamespace(customers=[], sessions=[])

    def create_customer(**kwargs):
        calls.customers.append(kwargs)
        return SimpleNamespace(id=f"cus_test_{len(calls.customers)}")

    def create_session(**kwargs):
        calls.sessions.append(kwargs)
        session_id = f"cs_test_{len(calls.sessions)}"
        return SimpleNamespace(
            id=session_id,
            url=f"https://checkout.stripe.com/c/pay/{session_id}",
            payment_intent=None,
        )

    monkeypatch.setattr(stripe.Customer, "create", create_customer)
    monkeypatch.setattr(stripe.checkout.Session, "create", create_session)
    return calls
