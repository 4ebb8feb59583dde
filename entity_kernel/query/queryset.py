"""
QuerySet: an ordered, immutable selection of entity ids bound to a manager.

Narrowing returns a new QuerySet and preserves the order of the ids it was
built from. Writes are not applied; they are appended to the manager's
mutation log scoped to the ids selected at the time of the call.
"""

from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping, Tuple

from entity_kernel.entity.proxy import Entity
from entity_kernel.errors import IndexOutOfRangeError
from entity_kernel.models.mutations import DeleteMutation, UpdateMutation, Updater

if TYPE_CHECKING:
    from entity_kernel.manager.entity_manager import EntityManager


class QuerySet:
    """Chainable view over a subset of a manager's ids."""

    def __init__(self, manager: "EntityManager", ids: Iterable[int]):
        self.manager = manager
        self._ids: Tuple[int, ...] = tuple(ids)

    @property
    def ids(self) -> Tuple[int, ...]:
        return self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __bool__(self) -> bool:
        return self.exists()

    def __iter__(self) -> Iterator[Entity]:
        for entity_id in self._ids:
            yield self._entity(entity_id)

    def __repr__(self) -> str:
        return f"QuerySet(ids={list(self._ids)!r})"

    def _new(self, ids: Iterable[int]) -> "QuerySet":
        return QuerySet(self.manager, ids)

    def _entity(self, entity_id: int) -> Entity:
        return Entity(self.manager, self.manager.full_entity(entity_id))

    # --- Narrowing ---

    def all(self) -> "QuerySet":
        """A new QuerySet over the same ids."""
        return self._new(self._ids)

    def filter(self, lookup: Mapping[str, Any]) -> "QuerySet":
        """Keep ids whose full entity matches ``lookup``."""
        matches = self.manager.matcher
        return self._new(
            entity_id for entity_id in self._ids
            if matches(lookup, self.manager.full_entity(entity_id))
        )

    def exclude(self, lookup: Mapping[str, Any]) -> "QuerySet":
        """Keep ids whose full entity does not match ``lookup``."""
        matches = self.manager.matcher
        return self._new(
            entity_id for entity_id in self._ids
            if not matches(lookup, self.manager.full_entity(entity_id))
        )

    # --- Positional access ---

    def at(self, index: int) -> Entity:
        """The Entity at ``index`` (0-based, negative indexes are rejected)."""
        if index < 0 or index >= len(self._ids):
            raise IndexOutOfRangeError(
                f"Index {index} out of range for QuerySet of {len(self._ids)} entities"
            )
        return self._entity(self._ids[index])

    def first(self) -> Entity:
        return self.at(0)

    def last(self) -> Entity:
        return self.at(len(self._ids) - 1)

    def exists(self) -> bool:
        return len(self._ids) > 0

    def count(self) -> int:
        return len(self._ids)

    # --- Deferred writes ---

    def update(self, updater: Updater) -> None:
        """Queue ``updater`` for every id currently selected."""
        self.manager.enqueue(UpdateMutation(ids=self._ids, updater=updater))

    def delete(self) -> None:
        """Queue deletion of every id currently selected."""
        self.manager.enqueue(DeleteMutation(ids=self._ids))
