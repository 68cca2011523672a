"""Tests for the pull phase: watermarks, merging and dependency skipping."""

from possync.extensions import db
from possync.models import Category, Product
from possync.services import local_store, outbox_service, record_service
from possync.services.pull_service import pull_changes
from possync.services.sync_types import Watermark


def _category(id, updated_at, name="Drinks"):
    return {"id": id, "name": name, "sort_order": 0, "category_type": "MENU", "updated_at": updated_at}


class TestWatermark:
    def test_new_records_applied_and_watermark_advanced(self, db_session, remote):
        remote.put("categories", _category("cat-1", 100))
        remote.put("categories", _category("cat-2", 200, "Food"))

        report = pull_changes(remote)

        assert report.types["categories"].applied == 2
        category = db.session.get(Category, "cat-2")
        assert category.name == "Food"
        assert category.synced is True
        assert local_store.get_watermark("categories") == Watermark(200, "cat-2")

    def test_shared_timestamp_across_page_boundary(self, db_session, remote):
        for i in range(5):
            remote.put("categories", _category(f"cat-{i}", 100))

        report = pull_changes(remote, page_size=2)

        assert report.types["categories"].applied == 5
        assert db.session.query(Category).count() == 5
        assert local_store.get_watermark("categories") == Watermark(100, "cat-4")

    def test_second_pull_fetches_only_newer_rows(self, db_session, remote):
        remote.put("categories", _category("cat-1", 100))
        pull_changes(remote)

        remote.put("categories", _category("cat-2", 150))
        report = pull_changes(remote)

        assert report.types["categories"].applied == 1

    def test_watermark_never_regresses(self, db_session):
        local_store.advance_watermark("categories", Watermark(500, "b"))
        local_store.advance_watermark("categories", Watermark(400, "z"))
        assert local_store.get_watermark("categories") == Watermark(500, "b")

    def test_failed_fetch_keeps_watermark(self, db_session, remote):
        remote.put("categories", _category("cat-1", 100))
        pull_changes(remote)
        remote.offline_types = {"categories"}
        remote.put("categories", _category("cat-2", 300))

        report = pull_changes(remote)

        assert report.types["categories"].failed
        assert local_store.get_watermark("categories") == Watermark(100, "cat-1")


class TestMerge:
    def test_newer_local_edit_survives_older_remote(self, db_session, remote, synced_product):
        record_service.update_record("products", "prod-1", {"price": 6_000})
        local_updated = db.session.get(Product, "prod-1").updated_at
        remote.put("products", {"id": "prod-1", "name": "Es Teh", "price": 4_000, "updated_at": local_updated - 1})

        report = pull_changes(remote)

        product = db.session.get(Product, "prod-1")
        assert product.price == 6_000
        assert product.synced is False
        assert report.types["products"].skipped == 1
        assert outbox_service.get_entry("products", "prod-1") is not None

    def test_newer_remote_edit_overwrites_pending_local(self, db_session, remote, synced_product):
        record_service.update_record("products", "prod-1", {"price": 6_000})
        local_updated = db.session.get(Product, "prod-1").updated_at
        remote.put("products", {"id": "prod-1", "name": "Es Teh", "price": 7_000, "updated_at": local_updated + 10})

        pull_changes(remote)

        product = db.session.get(Product, "prod-1")
        assert product.price == 7_000
        assert product.synced is True
        assert product.updated_at == local_updated + 10
        assert outbox_service.get_entry("products", "prod-1") is None

    def test_remote_soft_delete_removes_synced_record(self, db_session, remote, synced_product):
        remote.put("products", {"id": "prod-1", "name": "Es Teh", "updated_at": 2_000}, deleted=True)

        report = pull_changes(remote)

        assert db.session.get(Product, "prod-1") is None
        assert report.types["products"].applied == 1

    def test_reapplying_old_page_does_not_regress(self, db_session, remote, synced_product):
        remote.put("products", {"id": "prod-1", "name": "Es Teh Manis", "price": 5_500, "updated_at": 3_000})
        pull_changes(remote)
        local_store.reset_watermark("products")
        db_session.commit()
        remote.put("products", {"id": "prod-1", "name": "Es Teh", "price": 5_000, "updated_at": 2_000})

        pull_changes(remote)

        product = db.session.get(Product, "prod-1")
        assert product.name == "Es Teh Manis"
        assert product.updated_at == 3_000

    def test_pending_local_delete_beats_older_remote_edit(self, db_session, remote, synced_product):
        record_service.delete_record("products", "prod-1")
        remote.put("products", {"id": "prod-1", "name": "Es Teh", "updated_at": 1_500})

        pull_changes(remote)

        assert db.session.get(Product, "prod-1") is None
        assert outbox_service.pending_delete_at("products", "prod-1") is not None


class TestDependencies:
    def test_children_skipped_when_parent_type_fails(self, db_session, remote):
        remote.put("categories", _category("cat-1", 100))
        remote.put("products", {"id": "prod-1", "name": "Es Teh", "category_id": "cat-1", "updated_at": 100})
        remote.put("users", {
            "id": "user-1", "name": "Ayu", "pin_hash": "h", "pin_salt": "s",
            "role": "CASHIER", "created_at": 1, "updated_at": 100,
        })
        remote.offline_types = {"categories"}

        report = pull_changes(remote)

        assert report.types["categories"].failed
        assert report.types["products"].failed
        assert "Skipped" in report.types["products"].error
        assert ("fetch", "products") not in [(op, t) for op, t, _ in remote.calls]
        assert db.session.get(Product, "prod-1") is None
        # Unrelated types still pulled
        assert report.types["users"].applied == 1

    def test_cancel_between_types(self, db_session, remote):
        remote.put("categories", _category("cat-1", 100))

        report = pull_changes(remote, should_cancel=lambda: True)

        assert report.cancelled
        assert db.session.query(Category).count() == 0
