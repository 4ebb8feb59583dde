"""Branch state: the normalized id sequence plus attributes map of one tree branch."""

from typing import Any, Dict, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, model_validator


class BranchState(BaseModel):
    """
    Immutable value holding one branch of the state tree.

    Order of ``id_sequence`` is meaningful. Attributes never carry the id
    attribute itself; the full entity is derived on demand.
    """

    model_config = ConfigDict(frozen=True)

    id_sequence: Tuple[int, ...] = ()
    attributes_by_id: Dict[int, dict] = {}

    @model_validator(mode="after")
    def check_normalized(self) -> "BranchState":
        if len(set(self.id_sequence)) != len(self.id_sequence):
            raise ValueError("id_sequence contains duplicate ids")
        if set(self.id_sequence) != set(self.attributes_by_id):
            raise ValueError(
                "attributes_by_id keys do not match the ids in id_sequence"
            )
        return self

    @classmethod
    def empty(cls) -> "BranchState":
        return cls(id_sequence=(), attributes_by_id={})

    def __len__(self) -> int:
        return len(self.id_sequence)


class EntitySchema(BaseModel):
    """Layout of a branch: where ids and attributes live and how ids are named."""

    model_config = ConfigDict(frozen=True)

    id_attribute_name: str = "id"
    array_field_name: str = "items"
    map_field_name: str = "itemsById"

    def default_state(self) -> BranchState:
        """The state a branch starts from before anything is created."""
        return BranchState.empty()

    def load_branch(self, tree: Mapping[str, Any]) -> BranchState:
        """Locate the id array and entity map inside ``tree``."""
        default = self.default_state()
        return BranchState(
            id_sequence=tree.get(self.array_field_name, default.id_sequence),
            attributes_by_id=tree.get(self.map_field_name, default.attributes_by_id),
        )

    def dump_branch(self, state: BranchState) -> dict:
        """Lay ``state`` back out under this schema's field names."""
        return {
            self.array_field_name: list(state.id_sequence),
            self.map_field_name: {
                entity_id: dict(attributes)
                for entity_id, attributes in state.attributes_by_id.items()
            },
        }
