# backend/schoolbites/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/schoolbites.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///schoolbites.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Stripe checkout + webhook signing
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")

    # Public URL of the parent-facing frontend (checkout redirects land there)
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000")

    # Annual access fee, in cents
    ACCESS_FEE_CENTS = int(os.environ.get("ACCESS_FEE_CENTS", "1000"))
    PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", "eur")

    # How far ahead the order form may look for off-days
    OFF_DAY_LOOKAHEAD_MONTHS = int(os.environ.get("OFF_DAY_LOOKAHEAD_MONTHS", "3"))
