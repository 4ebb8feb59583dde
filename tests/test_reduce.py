"""Tests for folding the mutation log into the next branch state."""

from entity_kernel.manager.entity_manager import EntityManager
from entity_kernel.models.branch import BranchState, EntitySchema
from entity_kernel.models.config import ManagerConfig
from entity_kernel.models.mutations import (
    DeleteMutation,
    MergePatch,
    ReplaceFunction,
    UpdateMutation,
)


def _make_state() -> BranchState:
    return BranchState(
        id_sequence=[1, 2, 3],
        attributes_by_id={
            1: {"a": 1, "b": 2, "name": "carol"},
            2: {"a": 5, "b": 2, "name": "alice"},
            3: {"a": 3, "b": 1, "name": "bob"},
        },
    )


class TestCreate:
    def test_create_on_empty_branch(self):
        manager = EntityManager(BranchState.empty())
        manager.create({"a": 1})
        state = manager.reduce()
        assert state.id_sequence == (1,)
        assert state.attributes_by_id == {1: {"a": 1}}

    def test_create_uses_configured_origin(self):
        manager = EntityManager(BranchState.empty(), config=ManagerConfig(id_origin=100))
        manager.create({"a": 1})
        assert manager.reduce().id_sequence == (100,)

    def test_sequential_creates_get_distinct_ids(self):
        manager = EntityManager(BranchState.empty())
        manager.create({"a": 1})
        manager.create({"a": 2})
        state = manager.reduce()

        first, second = state.id_sequence
        assert second - first == 1
        assert state.attributes_by_id == {first: {"a": 1}, second: {"a": 2}}

    def test_creates_follow_max_id(self):
        manager = EntityManager(_make_state())
        manager.create({"a": 7})
        manager.create({"a": 8})
        manager.create({"a": 9})
        state = manager.reduce()
        assert state.id_sequence == (1, 2, 3, 4, 5, 6)
        assert state.attributes_by_id[6] == {"a": 9}

    def test_create_after_delete_reuses_running_max(self):
        manager = EntityManager(_make_state())
        manager.filter({"name": "bob"}).delete()
        manager.create({"a": 0})
        state = manager.reduce()
        assert state.id_sequence == (1, 2, 3)
        assert state.attributes_by_id[3] == {"a": 0}

    def test_create_copies_attributes(self):
        attributes = {"a": 1}
        manager = EntityManager(BranchState.empty())
        manager.create(attributes)
        attributes["a"] = 2
        assert manager.reduce().attributes_by_id[1] == {"a": 1}

    def test_create_drops_id_attribute(self):
        manager = EntityManager(BranchState.empty())
        manager.create({"id": 50, "a": 1})
        state = manager.reduce()
        assert state.id_sequence == (1,)
        assert state.attributes_by_id[1] == {"a": 1}


class TestUpdate:
    def test_merge_patch_preserves_untouched_fields(self):
        manager = EntityManager(_make_state())
        manager.filter({"name": "carol"}).update(MergePatch(attributes={"a": 9}))
        state = manager.reduce()
        assert state.attributes_by_id[1] == {"a": 9, "b": 2, "name": "carol"}
        assert state.attributes_by_id[2] == _make_state().attributes_by_id[2]
        assert state.attributes_by_id[3] == _make_state().attributes_by_id[3]

    def test_replace_function_receives_full_entity(self):
        seen = []

        def replace(entity):
            seen.append(dict(entity))
            return {"label": f"{entity['id']}:{entity['name']}"}

        manager = EntityManager(_make_state())
        manager.all().update(ReplaceFunction(fn=replace))
        state = manager.reduce()

        assert seen[0] == {"id": 1, "a": 1, "b": 2, "name": "carol"}
        assert state.attributes_by_id == {
            1: {"label": "1:carol"},
            2: {"label": "2:alice"},
            3: {"label": "3:bob"},
        }

    def test_replace_function_result_drops_id(self):
        manager = EntityManager(_make_state())
        manager.filter({"id": 2}).update(ReplaceFunction(fn=lambda entity: dict(entity, a=0)))
        assert manager.reduce().attributes_by_id[2] == {"a": 0, "b": 2, "name": "alice"}

    def test_update_of_absent_id_is_skipped(self):
        manager = EntityManager(_make_state())
        manager.enqueue(UpdateMutation(ids=[2, 99], updater=MergePatch(attributes={"a": 0})))
        state = manager.reduce()
        assert 99 not in state.attributes_by_id
        assert state.attributes_by_id[2]["a"] == 0

    def test_update_sees_earlier_update(self):
        manager = EntityManager(_make_state())
        manager.update(MergePatch(attributes={"a": 10}))
        manager.update(ReplaceFunction(fn=lambda entity: {"a": entity["a"] + 1}))
        state = manager.reduce()
        assert [state.attributes_by_id[i]["a"] for i in state.id_sequence] == [11, 11, 11]

    def test_update_of_entity_created_earlier_in_session(self):
        manager = EntityManager(BranchState.empty())
        manager.create({"a": 1})
        manager.enqueue(UpdateMutation(ids=[1], updater=MergePatch(attributes={"b": 2})))
        assert manager.reduce().attributes_by_id == {1: {"a": 1, "b": 2}}


class TestDelete:
    def test_delete_all_empties_branch(self):
        manager = EntityManager(_make_state())
        manager.all().delete()
        state = manager.reduce()
        assert state.id_sequence == ()
        assert state.attributes_by_id == {}

    def test_delete_subset_preserves_order(self):
        manager = EntityManager(_make_state())
        manager.filter({"b": 2}).delete()
        state = manager.reduce()
        assert state.id_sequence == (3,)
        assert list(state.attributes_by_id) == [3]

    def test_delete_of_absent_id_is_ignored(self):
        manager = EntityManager(_make_state())
        manager.enqueue(DeleteMutation(ids=[42]))
        assert manager.reduce() == _make_state()

    def test_update_after_delete_is_skipped(self):
        manager = EntityManager(_make_state())
        entity = manager.get({"id": 1})
        entity.delete()
        entity.update(MergePatch(attributes={"a": 0}))
        state = manager.reduce()
        assert state.id_sequence == (2, 3)
        assert 1 not in state.attributes_by_id


class TestReorder:
    def test_reorder_is_a_permutation(self):
        original = _make_state()
        manager = EntityManager(original)
        manager.set_order(["a"])
        state = manager.reduce()
        assert state.id_sequence == (1, 3, 2)
        assert state.attributes_by_id == original.attributes_by_id

    def test_multi_key_sort_breaks_ties_left_to_right(self):
        manager = EntityManager(_make_state())
        manager.set_order(["b", "name"])
        assert manager.reduce().id_sequence == (3, 2, 1)

    def test_sort_is_stable(self):
        manager = EntityManager(_make_state())
        manager.set_order("b")
        assert manager.reduce().id_sequence == (3, 1, 2)

    def test_sort_by_id_attribute(self):
        manager = EntityManager(
            BranchState(id_sequence=[3, 1, 2], attributes_by_id={1: {}, 2: {}, 3: {}})
        )
        manager.set_order("id")
        assert manager.reduce().id_sequence == (1, 2, 3)

    def test_mixed_value_types_do_not_fail(self):
        manager = EntityManager(
            BranchState(
                id_sequence=[1, 2, 3, 4],
                attributes_by_id={1: {"a": "x"}, 2: {"a": 2}, 3: {}, 4: {"a": 1.5}},
            )
        )
        manager.set_order("a")
        state = manager.reduce()
        assert set(state.id_sequence) == {1, 2, 3, 4}
        assert state.id_sequence[-1] == 3
        assert state.id_sequence.index(4) < state.id_sequence.index(2)

    def test_unorderable_values_do_not_fail(self):
        manager = EntityManager(
            BranchState(
                id_sequence=[1, 2],
                attributes_by_id={1: {"tags": {"b": 1}}, 2: {"tags": {"a": 1}}},
            )
        )
        manager.set_order("tags")
        assert manager.reduce().id_sequence == (2, 1)

    def test_missing_values_sort_last(self):
        manager = EntityManager(
            BranchState(
                id_sequence=[1, 2, 3],
                attributes_by_id={1: {}, 2: {"rank": 2}, 3: {"rank": 1}},
            )
        )
        manager.set_order("rank")
        assert manager.reduce().id_sequence == (3, 2, 1)

    def test_reorder_includes_entities_created_earlier(self):
        manager = EntityManager(_make_state())
        manager.create({"a": 0, "name": "zed"})
        manager.set_order("a")
        state = manager.reduce()
        assert state.id_sequence == (4, 1, 3, 2)

    def test_reorder_then_create_appends(self):
        manager = EntityManager(_make_state())
        manager.set_order("name")
        manager.create({"name": "aaron"})
        assert manager.reduce().id_sequence == (2, 3, 1, 4)


class TestFold:
    def test_mutations_apply_in_append_order(self):
        manager = EntityManager(_make_state())
        manager.filter({"name": "alice"}).update(MergePatch(attributes={"a": 0}))
        manager.set_order("a")
        manager.filter({"name": "carol"}).delete()
        manager.create({"a": -1, "name": "dave"})
        state = manager.reduce()

        assert state.id_sequence == (2, 3, 4)
        assert state.attributes_by_id == {
            2: {"a": 0, "b": 2, "name": "alice"},
            3: {"a": 3, "b": 1, "name": "bob"},
            4: {"a": -1, "name": "dave"},
        }

    def test_reduce_does_not_touch_original_state(self):
        original = _make_state()
        manager = EntityManager(original)
        manager.update(MergePatch(attributes={"a": 0}))
        manager.all().delete()
        manager.reduce()
        assert manager.tree == _make_state()
        assert original.attributes_by_id[1] == {"a": 1, "b": 2, "name": "carol"}

    def test_empty_log_returns_equal_state(self):
        assert EntityManager(_make_state()).reduce() == _make_state()

    def test_reduced_state_round_trips_through_schema(self):
        schema = EntitySchema(array_field_name="rows", map_field_name="rowsById")
        manager = EntityManager({"rows": [], "rowsById": {}}, schema=schema)
        manager.create({"a": 1})
        tree = schema.dump_branch(manager.reduce())
        assert tree == {"rows": [1], "rowsById": {1: {"a": 1}}}
        assert EntityManager(tree, schema=schema).get({"a": 1}).id == 1
