"""
Pytest fixtures for possync backend tests.

Provides an app on a throwaway SQLite file, a clean session per test, and an
in-memory stand-in for the remote backend.
"""

import threading

import pytest

from possync import create_app
from possync.extensions import db
from possync.models import Category, Product, User
from possync.services.sync_errors import AuthError, TransportError
from possync.services.sync_runtime import configure_sync
from possync.services.sync_types import RecordOutcome, RemoteChange, RemotePage


RESTAURANT_ID = "resto-1"


class FakeRemote:
    """
    In-memory remote backend implementing the gateway contract.

    Toggles:
    - offline: every call raises TransportError
    - offline_types: calls for these entity types raise TransportError
    - auth_failure: every call raises AuthError
    - reject_ids: ids refused by batch_upsert / batch_delete
    - on_upsert: callable(entity_type, records) run before an upsert is stored
    """

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.offline = False
        self.offline_types = set()
        self.auth_failure = False
        self.reject_ids = set()
        self.on_upsert = None

    def _check(self, entity_type):
        if self.auth_failure:
            raise AuthError("HTTP 401: JWT expired")
        if self.offline or entity_type in self.offline_types:
            raise TransportError("connection refused")

    def put(self, entity_type, row, *, deleted=False):
        """Seed a row as if another device had pushed it."""
        stored = dict(row)
        stored.setdefault("restaurant_id", RESTAURANT_ID)
        stored["deleted"] = deleted
        self.tables.setdefault(entity_type, {})[stored["id"]] = stored
        return stored

    def rows(self, entity_type):
        return self.tables.get(entity_type, {})

    def batch_upsert(self, entity_type, records):
        self.calls.append(("upsert", entity_type, [r["id"] for r in records]))
        self._check(entity_type)
        if self.on_upsert is not None:
            self.on_upsert(entity_type, records)
        outcomes = []
        for record in records:
            if record["id"] in self.reject_ids:
                outcomes.append(RecordOutcome(record["id"], False, "HTTP 409: duplicate key"))
                continue
            self.put(entity_type, record)
            outcomes.append(RecordOutcome(record["id"], True))
        return outcomes

    def batch_delete(self, entity_type, tombstones):
        self.calls.append(("delete", entity_type, [t["id"] for t in tombstones]))
        self._check(entity_type)
        outcomes = []
        for tombstone in tombstones:
            entity_id = tombstone["id"]
            if entity_id in self.reject_ids:
                outcomes.append(RecordOutcome(entity_id, False, "HTTP 409: still referenced"))
                continue
            # Soft delete; rows edited after the delete keep their newer version
            row = self.rows(entity_type).get(entity_id)
            if row is not None and row["updated_at"] < tombstone["updated_at"]:
                row["deleted"] = True
                row["updated_at"] = tombstone["updated_at"]
            outcomes.append(RecordOutcome(entity_id, True))
        return outcomes

    def fetch_changed_since(self, entity_type, watermark, page_size):
        self.calls.append(("fetch", entity_type, watermark))
        self._check(entity_type)
        rows = sorted(self.rows(entity_type).values(), key=lambda r: (r["updated_at"], r["id"]))
        if watermark.last_id:
            rows = [
                r for r in rows
                if r["updated_at"] > watermark.updated_at
                or (r["updated_at"] == watermark.updated_at and r["id"] > watermark.last_id)
            ]
        else:
            rows = [r for r in rows if r["updated_at"] >= watermark.updated_at]
        page = rows[:page_size]
        changes = [
            RemoteChange(r["id"], r["updated_at"], dict(r), bool(r.get("deleted")))
            for r in page
        ]
        return RemotePage(changes=changes, has_more=len(page) >= page_size)

    def calls_of(self, kind):
        return [(entity_type, ids) for op, entity_type, ids in self.calls if op == kind]


class BlockingRemote(FakeRemote):
    """FakeRemote whose first upsert waits until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()
        self._blocked_once = False

    def batch_upsert(self, entity_type, records):
        if not self._blocked_once:
            self._blocked_once = True
            self.entered.set()
            self.release.wait(timeout=5)
        return super().batch_upsert(entity_type, records)


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing on a file database (shared across threads)."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'possync-test.sqlite3'}",
        'SYNC_RESTAURANT_ID': RESTAURANT_ID,
        'SYNC_REMOTE_URL': '',
        'SYNC_MAX_ATTEMPTS': 3,
        'SYNC_PUSH_BATCH_SIZE': 50,
        'SYNC_PULL_PAGE_SIZE': 200,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def remote():
    return FakeRemote()


@pytest.fixture(scope='function')
def coordinator(app, db_session, remote):
    """Coordinator wired to the in-memory remote."""
    return configure_sync(app, gateway=remote)


@pytest.fixture(scope='function')
def cashier(db_session):
    """A synced cashier, as if pulled earlier."""
    user = User(
        id="user-1",
        restaurant_id=RESTAURANT_ID,
        name="Ayu",
        pin_hash="hash",
        pin_salt="salt",
        role="CASHIER",
        created_at=1_000,
        updated_at=1_000,
        synced=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def synced_product(db_session):
    """Category + product already in sync with the remote."""
    category = Category(id="cat-1", restaurant_id=RESTAURANT_ID, name="Drinks", updated_at=1_000, synced=True)
    product = Product(
        id="prod-1",
        restaurant_id=RESTAURANT_ID,
        category_id="cat-1",
        name="Es Teh",
        price=5_000,
        updated_at=1_000,
        synced=True,
    )
    db_session.add_all([category, product])
    db_session.commit()
    return product
