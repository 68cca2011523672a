"""Tests for the dependency ordering table."""

import pytest

from possync.services import entity_registry
from possync.services.entity_registry import (
    UnknownEntityTypeError,
    delete_order,
    descendants,
    entity_types,
    get_spec,
    pull_order,
    push_order,
    validate_ordering,
)


def _positions(specs):
    return {spec.entity_type: index for index, spec in enumerate(specs)}


class TestOrdering:
    def test_table_is_topological(self):
        validate_ordering()

    def test_parents_pushed_before_children(self):
        pos = _positions(push_order())
        for spec in push_order():
            for parent in spec.parents:
                assert pos[parent] < pos[spec.entity_type]

    def test_deletes_children_before_parents(self):
        pos = _positions(delete_order())
        assert pos["transaction_items"] < pos["transactions"] < pos["users"]
        assert pos["variants"] < pos["products"] < pos["categories"]

    def test_pull_matches_push_order(self):
        assert [s.entity_type for s in pull_order()] == [s.entity_type for s in push_order()]

    def test_every_type_registered_once(self):
        types = entity_types()
        assert len(types) == len(set(types)) == 12

    def test_validate_rejects_child_before_parent(self, monkeypatch):
        specs = entity_registry.ENTITY_SPECS
        swapped = (specs[3], specs[1]) + tuple(s for i, s in enumerate(specs) if i not in (1, 3))
        monkeypatch.setattr(entity_registry, "ENTITY_SPECS", swapped)
        with pytest.raises(ValueError):
            validate_ordering()


class TestLookup:
    def test_get_spec(self):
        spec = get_spec("inventory")
        assert spec.table == "inventory"
        assert spec.parents == ("products", "variants")

    def test_unknown_type(self):
        with pytest.raises(UnknownEntityTypeError):
            get_spec("loyalty_points")

    def test_descendants_are_transitive(self):
        found = descendants("categories")
        assert {"products", "variants", "inventory", "transaction_items"} <= found
        assert "users" not in found
        assert descendants("transaction_items") == set()
