"""Tests for the push phase."""

from possync.extensions import db
from possync.models import Category, Product
from possync.services import outbox_service, record_service
from possync.services.push_service import push_pending


def _create_menu():
    record_service.save_record("categories", {"name": "Drinks"}, record_id="cat-1")
    record_service.save_record(
        "products",
        {"name": "Es Teh", "category_id": "cat-1", "price": 5_000},
        record_id="prod-1",
    )


class TestPushOrdering:
    def test_parent_pushed_before_child(self, db_session, remote):
        # Child written first locally; order still follows the dependency table
        record_service.save_record("products", {"name": "Es Teh", "category_id": "cat-1"}, record_id="prod-1")
        record_service.save_record("categories", {"name": "Drinks"}, record_id="cat-1")

        report = push_pending(remote)

        assert [t for t, _ in remote.calls_of("upsert")] == ["categories", "products"]
        assert report.types["categories"].pushed == 1
        assert report.types["products"].pushed == 1
        assert not report.has_failures

    def test_deletes_children_before_parents(self, db_session, remote):
        _create_menu()
        push_pending(remote)
        remote.calls.clear()

        record_service.delete_record("products", "prod-1")
        record_service.delete_record("categories", "cat-1")
        report = push_pending(remote)

        assert remote.calls_of("delete") == [("products", ["prod-1"]), ("categories", ["cat-1"])]
        assert report.types["products"].deleted == 1
        assert remote.rows("products")["prod-1"]["deleted"] is True
        assert remote.rows("categories")["cat-1"]["deleted"] is True

    def test_delete_leaves_newer_remote_edit(self, db_session, remote):
        _create_menu()
        push_pending(remote)
        newer = remote.rows("categories")["cat-1"]["updated_at"] + 60_000
        remote.put("categories", {"id": "cat-1", "name": "Minuman", "updated_at": newer})

        record_service.delete_record("products", "prod-1")
        record_service.delete_record("categories", "cat-1")
        push_pending(remote)

        assert outbox_service.pending_count() == 0
        assert remote.rows("categories")["cat-1"]["deleted"] is False
        assert remote.rows("categories")["cat-1"]["updated_at"] == newer


class TestAcknowledgment:
    def test_ack_clears_outbox_and_marks_synced(self, db_session, remote):
        _create_menu()
        push_pending(remote)

        assert outbox_service.pending_count() == 0
        assert db.session.get(Category, "cat-1").synced is True
        assert remote.rows("products")["prod-1"]["restaurant_id"] == "resto-1"
        assert "synced" not in remote.rows("products")["prod-1"]

    def test_push_is_idempotent(self, db_session, remote):
        _create_menu()
        push_pending(remote)
        remote.calls.clear()

        report = push_pending(remote)

        assert remote.calls_of("upsert") == []
        assert report.types["categories"].pushed == 0

    def test_edit_during_push_stays_pending(self, db_session, remote):
        record_service.save_record("categories", {"name": "Drinks"}, record_id="cat-1")

        def edit_while_in_flight(entity_type, records):
            if entity_type == "categories" and records[0]["name"] == "Drinks":
                record_service.update_record("categories", "cat-1", {"name": "Cold Drinks"})

        remote.on_upsert = edit_while_in_flight
        push_pending(remote)

        entry = outbox_service.get_entry("categories", "cat-1")
        assert entry is not None
        assert db.session.get(Category, "cat-1").synced is False

        remote.on_upsert = None
        push_pending(remote)
        assert outbox_service.pending_count() == 0
        assert remote.rows("categories")["cat-1"]["name"] == "Cold Drinks"


class TestFailures:
    def test_rejection_isolated_to_one_record(self, db_session, remote):
        record_service.save_record("categories", {"name": "Drinks"}, record_id="cat-1")
        record_service.save_record("categories", {"name": "Food"}, record_id="cat-2")
        remote.reject_ids = {"cat-2"}

        report = push_pending(remote)

        assert report.types["categories"].pushed == 1
        assert report.types["categories"].rejected == 1
        assert report.has_failures
        entry = outbox_service.get_entry("categories", "cat-2")
        assert entry.attempt_count == 1
        assert "409" in entry.last_error
        assert outbox_service.get_entry("categories", "cat-1") is None

    def test_transport_error_aborts_remaining_types(self, db_session, remote):
        _create_menu()
        remote.offline_types = {"categories"}

        report = push_pending(remote)

        assert report.aborted
        assert report.types["categories"].failed
        assert [t for t, _ in remote.calls_of("upsert")] == ["categories"]
        entry = outbox_service.get_entry("categories", "cat-1")
        assert entry.attempt_count == 0
        assert entry.last_error == "connection refused"
        assert outbox_service.pending_count() == 2

    def test_recovers_after_connectivity_returns(self, db_session, remote):
        _create_menu()
        remote.offline = True
        push_pending(remote)

        remote.offline = False
        report = push_pending(remote)

        assert not report.has_failures
        assert outbox_service.pending_count() == 0
        assert set(remote.rows("products")) == {"prod-1"}

    def test_parked_entry_reported_and_skipped(self, db_session, remote):
        record_service.save_record("categories", {"name": "Drinks"}, record_id="cat-1")
        remote.reject_ids = {"cat-1"}

        push_pending(remote, max_attempts=1)
        remote.calls.clear()
        report = push_pending(remote, max_attempts=1)

        assert remote.calls_of("upsert") == []
        assert len(report.warnings) == 1
        assert "categories:cat-1" in report.warnings[0]
        assert outbox_service.get_entry("categories", "cat-1") is not None

    def test_entry_for_vanished_record_dropped(self, db_session, remote):
        outbox_service.enqueue("products", "ghost", "UPDATE")
        db_session.commit()

        push_pending(remote)

        assert remote.calls_of("upsert") == []
        assert outbox_service.get_entry("products", "ghost") is None

    def test_cancel_stops_between_types(self, db_session, remote):
        _create_menu()
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 2

        report = push_pending(remote, should_cancel=should_cancel)

        assert report.cancelled
        assert report.types["categories"].pushed == 1
        assert outbox_service.get_entry("products", "prod-1") is not None


class TestBatching:
    def test_batches_respect_size(self, db_session, remote):
        for i in range(5):
            record_service.save_record("categories", {"name": f"C{i}"}, record_id=f"cat-{i}")

        report = push_pending(remote, batch_size=2)

        assert [len(ids) for _, ids in remote.calls_of("upsert")] == [2, 2, 1]
        assert report.types["categories"].pushed == 5
        assert db.session.query(Product).count() == 0
