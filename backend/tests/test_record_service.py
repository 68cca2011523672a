"""Tests for local writes and their outbox entries."""

import pytest

from possync.extensions import db
from possync.models import Category, Inventory, OutboxEntry
from possync.models.sync import OP_DELETE, OP_INSERT
from possync.services import outbox_service, record_service
from possync.services.record_service import RecordNotFoundError, RecordValidationError
from possync.services.sync_errors import LocalStoreError


class TestSaveRecord:
    def test_insert_stamps_and_enqueues(self, db_session):
        category = record_service.save_record("categories", {"name": "Drinks"}, at=1_000)

        assert category.updated_at == 1_000
        assert category.synced is False
        assert category.restaurant_id == "resto-1"
        entry = outbox_service.get_entry("categories", category.id)
        assert entry.operation == OP_INSERT

    def test_update_moves_updated_at_forward(self, db_session):
        record_service.save_record("categories", {"name": "Drinks"}, record_id="cat-1", at=5_000)
        # Device clock stepped backwards
        category = record_service.save_record("categories", {"name": "Cold Drinks"}, record_id="cat-1", at=4_000)

        assert category.updated_at == 5_001
        assert outbox_service.get_entry("categories", "cat-1").operation == OP_INSERT

    def test_protected_fields_ignored(self, db_session):
        category = record_service.save_record(
            "categories", {"name": "Drinks", "synced": True, "updated_at": 1}, record_id="cat-1", at=2_000,
        )
        assert category.synced is False
        assert category.updated_at == 2_000

    def test_unknown_field_rejected(self, db_session):
        with pytest.raises(RecordValidationError):
            record_service.save_record("categories", {"name": "Drinks", "colour": "blue"})
        assert db_session.query(OutboxEntry).count() == 0

    def test_inventory_id_is_deterministic(self, db_session):
        stock = record_service.save_record("inventory", {"product_id": "prod-1", "current_qty": 4})
        assert stock.id == "prod-1:"
        stock = record_service.save_record("inventory", {"product_id": "prod-1", "variant_id": "v-2", "current_qty": 1})
        assert stock.id == "prod-1:v-2"
        assert db_session.query(Inventory).count() == 2

    def test_failed_write_leaves_no_entry(self, db_session):
        # name is NOT NULL
        with pytest.raises(LocalStoreError):
            record_service.save_record("categories", {"name": None})
        assert db_session.query(Category).count() == 0
        assert db_session.query(OutboxEntry).count() == 0


class TestUpdateAndDelete:
    def test_update_missing_record(self, db_session):
        with pytest.raises(RecordNotFoundError):
            record_service.update_record("categories", "nope", {"name": "X"})

    def test_update_synced_record_enqueues_update(self, db_session, synced_product):
        product = record_service.update_record("products", "prod-1", {"price": 6_000})

        assert product.synced is False
        assert product.updated_at > 1_000
        assert outbox_service.get_entry("products", "prod-1").operation == "UPDATE"

    def test_delete_enqueues_delete(self, db_session, synced_product):
        record_service.delete_record("products", "prod-1")

        assert db.session.get(type(synced_product), "prod-1") is None
        assert outbox_service.get_entry("products", "prod-1").operation == OP_DELETE

    def test_delete_missing_record(self, db_session):
        with pytest.raises(RecordNotFoundError):
            record_service.delete_record("products", "nope")

    def test_delete_outranks_future_stamped_record(self, db_session):
        # Pulled from a device whose clock runs ahead
        future = 9_000_000_000_000
        db_session.add(Category(id="cat-1", restaurant_id="resto-1", name="Drinks", updated_at=future, synced=True))
        db_session.commit()

        record_service.delete_record("categories", "cat-1")

        assert outbox_service.pending_delete_at("categories", "cat-1") == future + 1


class TestInventoryUpdates:
    def test_update_by_id_alone(self, db_session):
        record_service.save_record("inventory", {"product_id": "prod-1", "current_qty": 4})

        stock = record_service.update_record("inventory", "prod-1:", {"min_qty": 5})

        assert stock.id == "prod-1:"
        assert stock.min_qty == 5
        assert stock.current_qty == 4

    def test_update_with_variant_id(self, db_session):
        record_service.save_record("inventory", {"product_id": "prod-1", "variant_id": "v-2", "current_qty": 1})

        stock = record_service.update_record("inventory", "prod-1:v-2", {"current_qty": 3})

        assert stock.current_qty == 3
        assert db_session.query(Inventory).count() == 1

    def test_conflicting_product_rejected(self, db_session):
        record_service.save_record("inventory", {"product_id": "prod-1", "current_qty": 4})

        with pytest.raises(RecordValidationError):
            record_service.update_record("inventory", "prod-1:", {"product_id": "prod-2"})
        with pytest.raises(RecordValidationError):
            record_service.update_record("inventory", "prod-1:", {"variant_id": "v-9"})
        assert db.session.get(Inventory, "prod-1:").product_id == "prod-1"
