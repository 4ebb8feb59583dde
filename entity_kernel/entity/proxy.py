"""
Entity: a point-in-time view of one record bound to its manager.

The attributes are captured when the Entity is built and are never
re-read. Writes go through the manager's mutation log, so an Entity keeps
showing the old values until the caller reduces and queries again.
"""

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional

from entity_kernel.errors import ProvisionalEntityError
from entity_kernel.models.mutations import DeleteMutation, UpdateMutation, Updater

if TYPE_CHECKING:
    from entity_kernel.manager.entity_manager import EntityManager


class Entity:
    """Snapshot of a single entity with delegated update and delete."""

    def __init__(self, manager: "EntityManager", full_entity: Mapping[str, Any]):
        id_attribute = manager.id_attribute
        self.manager = manager
        self.id: Optional[int] = full_entity.get(id_attribute)
        self._attributes = {
            key: value for key, value in full_entity.items() if key != id_attribute
        }

    @property
    def attributes(self) -> Mapping[str, Any]:
        """Attributes without the id, as captured at construction."""
        return MappingProxyType(self._attributes)

    @property
    def is_provisional(self) -> bool:
        """True for entities returned by create() before reduction."""
        return self.id is None

    def to_dict(self) -> dict:
        """The full entity: attributes merged with the id."""
        full = dict(self._attributes)
        if self.id is not None:
            full[self.manager.id_attribute] = self.id
        return full

    def get(self, key: str, default: Any = None) -> Any:
        return self.to_dict().get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.to_dict()[key]

    def __contains__(self, key: object) -> bool:
        return key in self.to_dict()

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    def __repr__(self) -> str:
        return f"Entity(id={self.id!r}, attributes={self._attributes!r})"

    def update(self, updater: Updater) -> None:
        """Queue an update of this entity alone."""
        entity_id = self._require_id("update")
        self.manager.enqueue(UpdateMutation(ids=(entity_id,), updater=updater))

    def delete(self) -> None:
        """Queue deletion of this entity alone."""
        entity_id = self._require_id("delete")
        self.manager.enqueue(DeleteMutation(ids=(entity_id,)))

    def _require_id(self, operation: str) -> int:
        if self.id is None:
            raise ProvisionalEntityError(
                f"Cannot {operation} an entity created in the current session: "
                f"its id is allocated only when the manager reduces."
            )
        return self.id
