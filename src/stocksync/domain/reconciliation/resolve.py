"""Entity resolution: bulk lookup and idempotent creation of reference entities.

Responsibilities of this stage:
- collect the business keys a batch references, per category
- look every category up with one bulk query
- create missing keys, treating a uniqueness race as "already exists"
- re-resolve after creation so new identifiers are visible before use

Out of scope for this stage:
- inventory records
- commit/rollback (owned by the caller's unit of work)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stocksync.config import SYSTEM_USER
from stocksync.domain.errors import (
    DuplicateKeyError,
    PersistenceError,
    ResolutionConsistencyError,
    ResolutionError,
)
from stocksync.domain.model import EntityCategory

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from stocksync.domain.model import InputRecord
    from stocksync.domain.ports import ReferenceEntityRepository

log = logging.getLogger(__name__)

type KeysByCategory = dict[EntityCategory, set[str]]

_CREATE_ATTEMPTS = 3

# Serialises creation per category for every resolver in this process.
_CATEGORY_LOCKS: dict[EntityCategory, threading.Lock] = {
    category: threading.Lock() for category in EntityCategory
}


def collect_keys(records: Iterable[InputRecord]) -> KeysByCategory:
    """Return the non-blank business keys referenced by ``records``, per category."""

    keys: KeysByCategory = {category: set() for category in EntityCategory}
    for record in records:
        for category in EntityCategory:
            key = record.business_key(category)
            if key:
                keys[category].add(key)
    return keys


@dataclass(slots=True)
class ResolvedEntitySet:
    """category -> (business key -> identifier), owned by one batch attempt."""

    ids: dict[EntityCategory, dict[str, int]] = field(
        default_factory=lambda: {category: {} for category in EntityCategory}
    )

    def update(self, category: EntityCategory, found: Mapping[str, int]) -> None:
        self.ids[category].update(found)

    def require(self, category: EntityCategory, key: str) -> int:
        try:
            return self.ids[category][key]
        except KeyError:
            raise ResolutionConsistencyError(category, key) from None

    def optional(self, category: EntityCategory, key: str) -> int | None:
        """Identifier for ``key``, ``None`` for a blank key; a missing non-blank key is fatal."""

        if not key:
            return None
        return self.require(category, key)

    def missing(self, keys: KeysByCategory) -> KeysByCategory:
        return {
            category: {key for key in wanted if key not in self.ids[category]}
            for category, wanted in keys.items()
        }


class EntityResolver:
    """Resolve and lazily create reference entities through a repository."""

    def __init__(
        self, repository: ReferenceEntityRepository, *, created_by: str = SYSTEM_USER
    ) -> None:
        self._repository = repository
        self._created_by = created_by

    def resolve(self, keys: KeysByCategory) -> ResolvedEntitySet:
        """One bulk lookup per category; creates nothing."""

        resolved = ResolvedEntitySet()
        for category, wanted in keys.items():
            if wanted:
                resolved.update(category, self._find(category, wanted))
        return resolved

    def create_missing(self, keys: KeysByCategory, resolved: ResolvedEntitySet) -> None:
        """Create keys absent from ``resolved`` and fold their new ids back into it.

        Running this again with the same keys against a store that already has
        them creates nothing.
        """

        for category, absent in resolved.missing(keys).items():
            if not absent:
                continue
            with _CATEGORY_LOCKS[category]:
                for _ in range(_CREATE_ATTEMPTS):
                    # another batch may have created some of them since the lookup
                    absent.difference_update(self._find(category, absent))
                    if not absent or self._create(category, absent):
                        break
                resolved.update(category, self._find(category, keys[category]))
            still_missing = keys[category].difference(resolved.ids[category])
            if still_missing:
                raise ResolutionConsistencyError(category, sorted(still_missing)[0])

    def resolve_all(self, keys: KeysByCategory) -> ResolvedEntitySet:
        resolved = self.resolve(keys)
        self.create_missing(keys, resolved)
        return resolved

    def _find(self, category: EntityCategory, keys: set[str]) -> dict[str, int]:
        try:
            return self._repository.find_ids(category, keys)
        except PersistenceError as exc:
            raise ResolutionError(f"Looking up {category} keys failed: {exc}") from exc

    def _create(self, category: EntityCategory, keys: set[str]) -> bool:
        ordered = sorted(keys)
        try:
            self._repository.create(category, ordered, created_by=self._created_by)
        except DuplicateKeyError:
            log.info("Concurrent creation of %s keys detected; re-resolving", category)
            return False
        except PersistenceError as exc:
            raise ResolutionError(f"Creating {category} keys failed: {exc}") from exc
        else:
            log.debug("Created %s %s entities", len(ordered), category)
            return True
