"""
Entity Manager: owns one branch of the state tree and its mutation log.

Behavioral Contract:
- Reads always see the branch state the manager was built with.
- Writes (create, update, delete, set_order) are appended to the log, never applied.
- reduce() folds the log, in append order, over the original state and returns
  the next BranchState. It is pure and has no failure path.
- Ids for queued creates are allocated against the running fold state, so N
  creates in one session get N distinct sequential ids.
"""

from functools import cmp_to_key
from logging import getLogger
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from entity_kernel.entity.proxy import Entity
from entity_kernel.errors import EmptyStoreError, EntityNotFoundError
from entity_kernel.matching.predicate import Matcher, match
from entity_kernel.models.branch import BranchState, EntitySchema
from entity_kernel.models.config import ManagerConfig
from entity_kernel.models.mutations import (
    CreateMutation,
    Mutation,
    ReorderMutation,
    Updater,
)
from entity_kernel.query.queryset import QuerySet

log = getLogger(__name__)

IdSequence = Tuple[int, ...]
AttributesMap = Dict[int, dict]


class EntityManager:
    """
    Manages one entity tree branch.

    Shares the read and bulk write surface of QuerySet (all, filter, exclude,
    exists, count, first, last, at, update, delete), each applied to every
    entity in the branch.
    """

    def __init__(
        self,
        tree: Union[BranchState, Mapping[str, Any]],
        schema: Optional[EntitySchema] = None,
        config: Optional[ManagerConfig] = None,
        matcher: Optional[Matcher] = None,
    ):
        self.schema = schema or EntitySchema()
        self.config = config or ManagerConfig()
        self.matcher: Matcher = matcher or match
        self._state = self._coerce_state(tree)
        self._mutations: List[Mutation] = []

    def _coerce_state(self, tree: Union[BranchState, Mapping[str, Any]]) -> BranchState:
        if isinstance(tree, BranchState):
            return tree
        return self.schema.load_branch(tree)

    # --- Branch accessors (pre-session state) ---

    @property
    def tree(self) -> BranchState:
        """The branch state this manager was built with."""
        return self._state

    @property
    def id_attribute(self) -> str:
        return self.schema.id_attribute_name

    def default_state(self) -> BranchState:
        return self.schema.default_state()

    def current_id_sequence(self) -> IdSequence:
        return self._state.id_sequence

    def current_attributes_map(self) -> Mapping[int, Mapping[str, Any]]:
        """Read-only view of the original attributes map."""
        return MappingProxyType({
            entity_id: MappingProxyType(attributes)
            for entity_id, attributes in self._state.attributes_by_id.items()
        })

    def full_entity(self, entity_id: int) -> Optional[dict]:
        """Attributes of ``entity_id`` merged with the id, or None if absent."""
        return self._full_entity(self._state.attributes_by_id, entity_id)

    def all_full_entities(self) -> List[dict]:
        return [self.full_entity(entity_id) for entity_id in self._state.id_sequence]

    def allocate_next_id(self) -> int:
        """The id the next create would receive if it were the only one queued."""
        return self._allocate_id(self._state.id_sequence)

    def _full_entity(self, attributes_by_id: AttributesMap, entity_id: int) -> Optional[dict]:
        attributes = attributes_by_id.get(entity_id)
        if attributes is None:
            return None
        return {self.id_attribute: entity_id, **attributes}

    def _allocate_id(self, id_sequence: IdSequence) -> int:
        if not id_sequence:
            return self.config.id_origin
        return max(id_sequence) + 1

    def _strip_id(self, attributes: Mapping[str, Any]) -> dict:
        return {key: value for key, value in attributes.items() if key != self.id_attribute}

    # --- Mutation log ---

    @property
    def mutations(self) -> Tuple[Mutation, ...]:
        """The queued mutations, oldest first."""
        return tuple(self._mutations)

    def has_pending_mutations(self) -> bool:
        return bool(self._mutations)

    def enqueue(self, mutation: Mutation) -> None:
        """Append ``mutation`` to the log."""
        self._mutations.append(mutation)
        log.debug("Queued %s mutation (%d pending)", mutation.kind, len(self._mutations))

    def reset(self, tree: Union[BranchState, Mapping[str, Any], None] = None) -> None:
        """Start a new session: drop the log and optionally adopt a new branch state."""
        if tree is not None:
            self._state = self._coerce_state(tree)
        self._mutations = []

    def commit(self) -> BranchState:
        """Reduce, then start a new session on the reduced state."""
        next_state = self.reduce()
        self.reset(next_state)
        return next_state

    # --- Queries ---

    def _get_queryset(self) -> QuerySet:
        return QuerySet(self, self._state.id_sequence)

    def all(self) -> QuerySet:
        return self._get_queryset()

    def filter(self, lookup: Mapping[str, Any]) -> QuerySet:
        return self._get_queryset().filter(lookup)

    def exclude(self, lookup: Mapping[str, Any]) -> QuerySet:
        return self._get_queryset().exclude(lookup)

    def at(self, index: int) -> Entity:
        return self._get_queryset().at(index)

    def first(self) -> Entity:
        return self._get_queryset().first()

    def last(self) -> Entity:
        return self._get_queryset().last()

    def exists(self) -> bool:
        return self._get_queryset().exists()

    def count(self) -> int:
        return self._get_queryset().count()

    def get(self, lookup: Mapping[str, Any]) -> Entity:
        """
        The Entity matching ``lookup``.

        The id attribute is treated as unique: if ``lookup`` names it, the
        entity with that id is returned without checking the other keys.
        Otherwise the first entity in sequence order that matches wins,
        even when several would.
        """
        if not self.exists():
            raise EmptyStoreError("Tried getting from an empty branch")

        if self.id_attribute in lookup:
            entity_id = lookup[self.id_attribute]
            found = self.full_entity(entity_id)
            if found is None:
                raise EntityNotFoundError(f"No entity with {self.id_attribute}={entity_id!r}")
            return Entity(self, found)

        for candidate in self.all_full_entities():
            if self.matcher(lookup, candidate):
                return Entity(self, candidate)

        raise EntityNotFoundError(f"No entity matches lookup {dict(lookup)!r}")

    # --- Deferred writes ---

    def create(self, attributes: Mapping[str, Any]) -> Entity:
        """
        Queue creation of an entity and return a provisional Entity for it.

        The returned Entity has no id: ids are allocated during reduce().
        """
        self.enqueue(CreateMutation(attributes=dict(attributes)))
        return Entity(self, self._strip_id(attributes))

    def update(self, updater: Updater) -> None:
        self._get_queryset().update(updater)

    def delete(self) -> None:
        self._get_queryset().delete()

    def set_order(self, sort_keys: Union[str, Sequence[str]]) -> None:
        """Queue a stable ascending re-sort of the id sequence by ``sort_keys``."""
        if isinstance(sort_keys, str):
            sort_keys = (sort_keys,)
        self.enqueue(ReorderMutation(sort_keys=tuple(sort_keys)))

    # --- Reduction ---

    def reduce(self) -> BranchState:
        """
        Apply the queued mutations to the original state and return the result.

        Each record produces a new (id sequence, attributes map) pair from the
        previous one; both halves are computed from the same prior pair. The
        log is left in place; call reset() or commit() to start a new session.
        """
        id_sequence = self._state.id_sequence
        attributes_by_id = self._state.attributes_by_id

        for mutation in self._mutations:
            id_sequence, attributes_by_id = (
                self._reduce_id_sequence(id_sequence, attributes_by_id, mutation),
                self._reduce_attributes(id_sequence, attributes_by_id, mutation),
            )

        log.debug(
            "Reduced %d mutations: %d -> %d entities",
            len(self._mutations),
            len(self._state.id_sequence),
            len(id_sequence),
        )
        return BranchState(id_sequence=id_sequence, attributes_by_id=attributes_by_id)

    def _reduce_id_sequence(
        self,
        id_sequence: IdSequence,
        attributes_by_id: AttributesMap,
        mutation: Mutation,
    ) -> IdSequence:
        if mutation.kind == "create":
            return id_sequence + (self._allocate_id(id_sequence),)
        if mutation.kind == "delete":
            doomed = set(mutation.ids)
            return tuple(entity_id for entity_id in id_sequence if entity_id not in doomed)
        if mutation.kind == "reorder":
            return self._sorted_ids(id_sequence, attributes_by_id, mutation.sort_keys)
        return id_sequence

    def _reduce_attributes(
        self,
        id_sequence: IdSequence,
        attributes_by_id: AttributesMap,
        mutation: Mutation,
    ) -> AttributesMap:
        if mutation.kind == "create":
            entity_id = self._allocate_id(id_sequence)
            return {**attributes_by_id, entity_id: self._strip_id(mutation.attributes)}
        if mutation.kind == "update":
            updated = {}
            for entity_id in mutation.ids:
                if entity_id not in attributes_by_id:
                    log.debug("Skipping update of absent id %r", entity_id)
                    continue
                current = updated.get(entity_id, attributes_by_id[entity_id])
                updated[entity_id] = self._apply_updater(entity_id, current, mutation.updater)
            return {**attributes_by_id, **updated}
        if mutation.kind == "delete":
            doomed = set(mutation.ids)
            return {
                entity_id: attributes
                for entity_id, attributes in attributes_by_id.items()
                if entity_id not in doomed
            }
        return attributes_by_id

    def _apply_updater(self, entity_id: int, attributes: dict, updater: Updater) -> dict:
        if updater.kind == "merge":
            return self._strip_id({**attributes, **updater.attributes})
        if updater.kind == "replace":
            full = {self.id_attribute: entity_id, **attributes}
            return self._strip_id(updater.fn(full))
        return attributes

    def _sorted_ids(
        self,
        id_sequence: IdSequence,
        attributes_by_id: AttributesMap,
        sort_keys: Sequence[str],
    ) -> IdSequence:
        entities = [self._full_entity(attributes_by_id, entity_id) for entity_id in id_sequence]

        def compare(left: dict, right: dict) -> int:
            for key in sort_keys:
                order = _compare_values(left.get(key), right.get(key))
                if order:
                    return order
            return 0

        ordered = sorted(entities, key=cmp_to_key(compare))
        return tuple(entity[self.id_attribute] for entity in ordered)


def _compare_values(left: Any, right: Any) -> int:
    """
    Total ordering for one sort key: missing and None values go last, and
    values that cannot be compared with ``<`` are ranked by type name, then repr.
    """
    if left is None or right is None:
        return (left is None) - (right is None)
    try:
        if left < right:
            return -1
        if right < left:
            return 1
        return 0
    except TypeError:
        left_rank = (type(left).__name__, repr(left))
        right_rank = (type(right).__name__, repr(right))
        return (left_rank > right_rank) - (left_rank < right_rank)
