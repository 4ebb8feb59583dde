"""
Mutation records appended to a manager's log and folded by its reduction.

Every record and updater carries a ``kind`` tag; consumers dispatch on the
tag rather than inspecting the payload.
"""

from typing import Annotated, Callable, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class MergePatch(BaseModel):
    """Shallow merge: patch keys overwrite, the rest are untouched."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["merge"] = "merge"
    attributes: dict


class ReplaceFunction(BaseModel):
    """Replace attributes with ``fn(full_entity)``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["replace"] = "replace"
    fn: Callable[[dict], dict]


Updater = Annotated[Union[MergePatch, ReplaceFunction], Field(discriminator="kind")]


class CreateMutation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["create"] = "create"
    attributes: dict


class UpdateMutation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["update"] = "update"
    ids: Tuple[int, ...]
    updater: Updater


class DeleteMutation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["delete"] = "delete"
    ids: Tuple[int, ...]


class ReorderMutation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["reorder"] = "reorder"
    sort_keys: Tuple[str, ...]


Mutation = Annotated[
    Union[CreateMutation, UpdateMutation, DeleteMutation, ReorderMutation],
    Field(discriminator="kind"),
]
