# Overview: Row locks and conflict retries shared by the payment and order services.

"""
Concurrency Helpers

The redirect page and the Stripe webhook can settle the same Payment at the
same moment, and both then write the parent's User row (access window) or
the linked Order row (payment status). The daily delivery scan rewrites
Order rows while parents may be paying for them.

- lock_row / lock_for_update: SELECT ... FOR UPDATE on the rows a
  reconciliation reads before it writes them
- run_with_retry: re-runs the whole read-decide-write unit when the
  database reports a lock timeout or a version_id mismatch on
  payments/orders/users; every unit recomputes target states, so a rerun
  lands on the same record
"""

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Lock the rows a query selects until the current transaction ends.

    NOTE: SQLite ignores FOR UPDATE; there the version_id columns on
    payments, orders and users catch the conflict at flush time instead.
    """
    return query.with_for_update()


def lock_row(model, record_id: int):
    """Load one row by id under FOR UPDATE; None when it does not exist."""
    return lock_for_update(db.session.query(model).filter_by(id=record_id)).first()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a settle/scan unit, retrying it on lock or version conflicts.

    The session is rolled back before every retry and on any other error,
    which propagates unchanged.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error("Giving up after %s conflicting attempts: %s", attempts, exc)
                raise
            current_app.logger.warning("Row conflict on attempt %s of %s, retrying: %s", attempt, attempts, exc)
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise
