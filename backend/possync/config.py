# backend/possync/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # On-device store: SQLite file in the working directory
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///possync.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Remote backend (PostgREST / Supabase REST). Empty URL disables sync.
    SYNC_REMOTE_URL = os.environ.get("SYNC_REMOTE_URL", "")
    SYNC_REMOTE_API_KEY = os.environ.get("SYNC_REMOTE_API_KEY", "")
    # Session token of the signed-in cashier; anon key is used when unset
    SYNC_ACCESS_TOKEN = os.environ.get("SYNC_ACCESS_TOKEN", "")

    # Tenant: every synced row is scoped to one restaurant
    SYNC_RESTAURANT_ID = os.environ.get("SYNC_RESTAURANT_ID", "")

    SYNC_PUSH_BATCH_SIZE = int(os.environ.get("SYNC_PUSH_BATCH_SIZE", "50"))
    SYNC_PULL_PAGE_SIZE = int(os.environ.get("SYNC_PULL_PAGE_SIZE", "200"))
    SYNC_MAX_ATTEMPTS = int(os.environ.get("SYNC_MAX_ATTEMPTS", "3"))
    SYNC_REQUEST_TIMEOUT = float(os.environ.get("SYNC_REQUEST_TIMEOUT", "15"))

    # Periodic trigger, 15 minutes by default
    SYNC_INTERVAL_SECONDS = int(os.environ.get("SYNC_INTERVAL_SECONDS", "900"))
    SYNC_SCHEDULER_ENABLED = os.environ.get("SYNC_SCHEDULER_ENABLED", "false").lower() == "true"
