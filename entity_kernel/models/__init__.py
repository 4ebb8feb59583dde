"""Entity kernel data models."""

from entity_kernel.models.branch import BranchState, EntitySchema
from entity_kernel.models.config import ManagerConfig
from entity_kernel.models.mutations import (
    CreateMutation,
    DeleteMutation,
    MergePatch,
    Mutation,
    ReorderMutation,
    ReplaceFunction,
    UpdateMutation,
    Updater,
)

__all__ = [
    "BranchState",
    "CreateMutation",
    "DeleteMutation",
    "EntitySchema",
    "ManagerConfig",
    "MergePatch",
    "Mutation",
    "ReorderMutation",
    "ReplaceFunction",
    "UpdateMutation",
    "Updater",
]
