from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stocksync.domain.errors import (
    PersistenceError,
    ResolutionConsistencyError,
    ResolutionError,
)
from stocksync.domain.model import EntityCategory
from stocksync.domain.reconciliation import EntityResolver, ResolvedEntitySet, collect_keys
from tests.helpers.imports import FakeReferenceEntityRepository, FakeStore, make_record

if TYPE_CHECKING:
    from collections.abc import Collection


def test_collect_keys_skips_blank_values() -> None:
    records = [
        make_record(2, contract_code="C-1"),
        make_record(3, order_code="PO-2", contract_code=""),
    ]

    keys = collect_keys(records)

    assert keys[EntityCategory.ORDER] == {"PO-1", "PO-2"}
    assert keys[EntityCategory.CONTRACT] == {"C-1"}
    assert keys[EntityCategory.PROJECT] == set()
    assert keys[EntityCategory.BILL_REFERENCE] == {"BILL-1"}


def test_resolve_issues_one_lookup_per_category() -> None:
    store = FakeStore()
    order_id = store.seed_reference(EntityCategory.ORDER, "PO-1")
    repo = FakeReferenceEntityRepository(store)
    records = [make_record(row, line_item_id=str(row)) for row in range(2, 50)]

    resolved = EntityResolver(repo).resolve(collect_keys(records))

    assert resolved.require(EntityCategory.ORDER, "PO-1") == order_id
    assert [category for category, _ in repo.find_calls] == [
        EntityCategory.ORDER,
        EntityCategory.BILL_REFERENCE,
    ]
    assert repo.create_calls == []


def test_create_missing_creates_absent_keys_only() -> None:
    store = FakeStore()
    existing = store.seed_reference(EntityCategory.PRODUCER, "Acme")
    repo = FakeReferenceEntityRepository(store)
    keys = collect_keys(
        [make_record(2, producer_name="Acme"), make_record(3, producer_name="Globex")]
    )
    resolver = EntityResolver(repo, created_by="tester")

    resolved = resolver.resolve_all(keys)

    assert resolved.require(EntityCategory.PRODUCER, "Acme") == existing
    assert resolved.require(EntityCategory.PRODUCER, "Globex") != existing
    created = dict(repo.create_calls)
    assert created[EntityCategory.PRODUCER] == ("Globex",)
    assert created[EntityCategory.ORDER] == ("PO-1",)


def test_resolution_is_idempotent() -> None:
    store = FakeStore()
    repo = FakeReferenceEntityRepository(store)
    keys = collect_keys([make_record(2, project_code="P-1", sub_department_name="Ops")])
    resolver = EntityResolver(repo)

    first = resolver.resolve_all(keys)
    calls_after_first = len(repo.create_calls)
    second = resolver.resolve_all(keys)

    assert second.ids == first.ids
    assert len(repo.create_calls) == calls_after_first


def test_uniqueness_race_is_treated_as_existing() -> None:
    store = FakeStore()
    repo = FakeReferenceEntityRepository(store, race={EntityCategory.ORDER: {"PO-1"}})
    keys = collect_keys([make_record(2), make_record(3, order_code="PO-2")])

    resolved = EntityResolver(repo).resolve_all(keys)

    racing_id = repo.ids[EntityCategory.ORDER]["PO-1"]
    assert resolved.require(EntityCategory.ORDER, "PO-1") == racing_id
    new_id = repo.ids[EntityCategory.ORDER]["PO-2"]
    assert resolved.require(EntityCategory.ORDER, "PO-2") == new_id
    order_creates = [
        created for category, created in repo.create_calls if category is EntityCategory.ORDER
    ]
    assert order_creates == [("PO-1", "PO-2"), ("PO-2",)]


def test_missing_mapping_is_a_consistency_error() -> None:
    resolved = ResolvedEntitySet()

    assert resolved.optional(EntityCategory.CONTRACT, "") is None
    with pytest.raises(ResolutionConsistencyError) as exc:
        resolved.optional(EntityCategory.CONTRACT, "C-404")

    assert exc.value.category is EntityCategory.CONTRACT
    assert exc.value.key == "C-404"


class _BrokenRepository(FakeReferenceEntityRepository):
    def find_ids(self, category: EntityCategory, keys: Collection[str]) -> dict[str, int]:
        raise PersistenceError("connection lost")


def test_store_failures_become_resolution_errors() -> None:
    resolver = EntityResolver(_BrokenRepository(FakeStore()))

    with pytest.raises(ResolutionError, match="connection lost"):
        resolver.resolve(collect_keys([make_record()]))
