"""Unit tests for OptimisticCollection and its pending-mutation records.

This module tests:
- Transforms: SetFields, ToggleFlag, REMOVE
- apply_optimistic: immediate local update, exclusive flag enforcement
- insert_optimistic / clear_optimistic: placeholders and bulk removal
- reconcile: commit, canonical replacement, full rollback, closed collections
- Interleaving: rollback of one mutation leaves another item's change intact
"""

import pytest

from ezclient.models import Card, Project
from ezstate.collection import (
    REMOVE,
    ItemSnapshot,
    OptimisticCollection,
    PendingMutation,
    RemoteResult,
    SetFields,
    ToggleFlag,
)
from tests.fixtures.state import make_cards, make_message, make_projects


# =============================================================================
# Transforms
# =============================================================================


class TestTransforms:
    """Tests for the built-in transforms."""

    def test_set_fields_returns_new_item(self) -> None:
        """SetFields copies the item instead of mutating it."""
        project = Project(id=1, title="A")
        updated = SetFields(is_saved=True)(project)

        assert updated.is_saved is True
        assert project.is_saved is False
        assert updated is not project

    def test_toggle_flag_flips_value(self) -> None:
        """ToggleFlag inverts a boolean field."""
        project = Project(id=1, is_saved=True)

        assert ToggleFlag("is_saved")(project).is_saved is False

    def test_transforms_report_touched_fields(self) -> None:
        """Transforms expose the fields they change for lock keys."""
        assert SetFields(is_default=True, name="x").fields == {"is_default", "name"}
        assert ToggleFlag("is_saved").fields == {"is_saved"}

    def test_remove_is_a_transform_returning_itself(self) -> None:
        """REMOVE can be used directly as a transform."""
        assert REMOVE(Project(id=1)) is REMOVE


# =============================================================================
# apply_optimistic
# =============================================================================


class TestApplyOptimistic:
    """Tests for synchronous optimistic application."""

    def test_updates_target_immediately(self, projects: OptimisticCollection) -> None:
        """The returned items already reflect the change."""
        items, pending = projects.apply_optimistic(1, SetFields(is_saved=True))

        assert items[0].is_saved is True
        assert projects.get(1).is_saved is True
        assert pending in projects.pending

    def test_records_before_and_after(self, projects: OptimisticCollection) -> None:
        """The pending mutation captures both sides of the target."""
        _, pending = projects.apply_optimistic(1, SetFields(is_saved=True))

        assert isinstance(pending, PendingMutation)
        assert pending.item_id == 1
        assert pending.before[0].item.is_saved is False
        assert pending.after[0].item.is_saved is True
        assert pending.before[0].index == 0

    def test_unknown_id_raises_key_error(self, projects: OptimisticCollection) -> None:
        """Targeting a missing item is a programming error."""
        with pytest.raises(KeyError):
            projects.apply_optimistic(99, SetFields(is_saved=True))

    def test_remove_deletes_item(self, projects: OptimisticCollection) -> None:
        """REMOVE drops the item and records it as absent afterwards."""
        items, pending = projects.apply_optimistic(2, REMOVE)

        assert [p.id for p in items] == [1, 3]
        assert pending.after[0].present is False

    def test_transform_may_not_change_id(self, projects: OptimisticCollection) -> None:
        """A transform that rewrites the id is rejected."""
        with pytest.raises(ValueError):
            projects.apply_optimistic(1, SetFields(id=50))

    def test_exclusive_flag_reverts_previous_holder(self, cards: OptimisticCollection) -> None:
        """Setting an exclusive flag clears it on the old holder in one update."""
        items, pending = cards.apply_optimistic("b", SetFields(is_default=True))

        assert [c.id for c in items if c.is_default] == ["b"]
        assert set(pending.affected_ids) == {"a", "b"}

    def test_exclusive_flag_with_no_previous_holder(self) -> None:
        """Only the target changes when nobody held the flag."""
        collection = OptimisticCollection(make_cards(default=None), exclusive_flags=("is_default",))

        _, pending = collection.apply_optimistic("c", SetFields(is_default=True))

        assert pending.affected_ids == ["c"]

    def test_shared_flag_does_not_touch_others(self, projects: OptimisticCollection) -> None:
        """Shared flags may be held by many items."""
        items, _ = projects.apply_optimistic(1, SetFields(is_saved=True))

        assert [p.id for p in items if p.is_saved] == [1, 2]


class TestLockKeys:
    """Tests for serialization key selection."""

    def test_item_key_for_shared_flag(self, projects: OptimisticCollection) -> None:
        assert projects.lock_key_for(1, ToggleFlag("is_saved")) == "item:1"

    def test_flag_key_for_exclusive_flag(self, cards: OptimisticCollection) -> None:
        assert cards.lock_key_for("b", SetFields(is_default=True)) == "flag:is_default"

    def test_flag_key_when_target_holds_flag(self, cards: OptimisticCollection) -> None:
        """Removing the default card competes with set-default requests."""
        assert cards.lock_key_for("a", REMOVE) == "flag:is_default"
        assert cards.lock_key_for("c", REMOVE) == "item:c"


# =============================================================================
# insert_optimistic / clear_optimistic
# =============================================================================


class TestInsertOptimistic:
    """Tests for placeholder insertion."""

    def test_appends_by_default(self) -> None:
        collection = OptimisticCollection([make_message(1)])
        placeholder = make_message("tmp-abc", minutes=1)

        items, pending = collection.insert_optimistic(placeholder)

        assert [m.id for m in items] == [1, "tmp-abc"]
        assert pending.before[0].present is False

    def test_inserts_at_index(self) -> None:
        collection = OptimisticCollection([make_message(1), make_message(2)])

        items, _ = collection.insert_optimistic(make_message("tmp-x"), index=1)

        assert [m.id for m in items] == [1, "tmp-x", 2]

    def test_duplicate_id_rejected(self) -> None:
        collection = OptimisticCollection([make_message(1)])

        with pytest.raises(ValueError):
            collection.insert_optimistic(make_message(1))


class TestClearOptimistic:
    """Tests for bulk removal."""

    def test_clear_and_rollback(self, projects: OptimisticCollection) -> None:
        """A failed clear restores every item in order."""
        original = list(projects.items)

        items, pending = projects.clear_optimistic()
        assert items == []

        restored = projects.reconcile(pending, RemoteResult.failure("nope"))
        assert restored == original


# =============================================================================
# reconcile
# =============================================================================


class TestReconcileSuccess:
    """Tests for committing a mutation."""

    def test_commit_keeps_optimistic_state(self, projects: OptimisticCollection) -> None:
        _, pending = projects.apply_optimistic(1, SetFields(is_saved=True))

        items = projects.reconcile(pending, RemoteResult.success())

        assert items[0].is_saved is True
        assert projects.pending == []

    def test_canonical_record_replaces_placeholder_in_place(self) -> None:
        """The server record takes the placeholder's position."""
        collection = OptimisticCollection([make_message(1), make_message(2, minutes=2)])
        _, pending = collection.insert_optimistic(make_message("tmp-1", minutes=1), index=1)

        items = collection.reconcile(pending, RemoteResult.success(make_message(500, minutes=1)))

        assert [m.id for m in items] == [1, 500, 2]

    def test_canonical_record_matched_by_id_not_position(self) -> None:
        """Items inserted ahead of the placeholder do not confuse matching."""
        collection = OptimisticCollection([make_message(1)])
        _, pending = collection.insert_optimistic(make_message("tmp-1", minutes=5))
        collection.insert(make_message(2, minutes=1), index=0)
        collection.insert(make_message(3, minutes=2), index=0)

        items = collection.reconcile(pending, RemoteResult.success(make_message(500, minutes=5)))

        assert [m.id for m in items] == [3, 2, 1, 500]

    def test_existing_canonical_id_drops_placeholder(self) -> None:
        """If the canonical record already arrived, no duplicate is created."""
        collection = OptimisticCollection([make_message(1)])
        _, pending = collection.insert_optimistic(make_message("tmp-1", minutes=1))
        collection.insert(make_message(500, minutes=1))

        items = collection.reconcile(pending, RemoteResult.success(make_message(500, minutes=1)))

        assert [m.id for m in items] == [1, 500]

    def test_second_reconcile_is_noop(self, projects: OptimisticCollection) -> None:
        """A mutation resolves exactly once."""
        _, pending = projects.apply_optimistic(1, SetFields(is_saved=True))
        projects.reconcile(pending, RemoteResult.success())

        items = projects.reconcile(pending, RemoteResult.failure("late"))

        assert items[0].is_saved is True


class TestReconcileFailure:
    """Tests for rolling a mutation back."""

    def test_rollback_restores_exact_list(self, projects: OptimisticCollection) -> None:
        """A single rolled back mutation leaves the list as it was."""
        original = list(projects.items)
        _, pending = projects.apply_optimistic(1, ToggleFlag("is_saved"))

        assert projects.reconcile(pending, RemoteResult.failure("boom")) == original

    def test_rollback_reinserts_removed_item_at_index(self, projects: OptimisticCollection) -> None:
        original = list(projects.items)
        _, pending = projects.apply_optimistic(2, REMOVE)

        assert projects.reconcile(pending, RemoteResult.failure("boom")) == original

    def test_rollback_removes_placeholder(self) -> None:
        collection = OptimisticCollection([make_message(1)])
        _, pending = collection.insert_optimistic(make_message("tmp-1"))

        items = collection.reconcile(pending, RemoteResult.failure("boom"))

        assert [m.id for m in items] == [1]

    def test_rollback_restores_exclusive_holder(self, cards: OptimisticCollection) -> None:
        """A failed set-default leaves the old default in place."""
        original = list(cards.items)
        _, pending = cards.apply_optimistic("b", SetFields(is_default=True))

        items = cards.reconcile(pending, RemoteResult.failure("declined"))

        assert items == original
        assert [c.id for c in items if c.is_default] == ["a"]

    def test_rollback_keeps_unrelated_change(self, projects: OptimisticCollection) -> None:
        """Rolling back one item leaves a concurrent change to another."""
        _, first = projects.apply_optimistic(1, SetFields(is_saved=True))
        _, second = projects.apply_optimistic(3, SetFields(is_saved=True))
        projects.reconcile(second, RemoteResult.success())

        items = projects.reconcile(first, RemoteResult.failure("boom"))

        assert [p.is_saved for p in items] == [False, True, True]

    def test_rollback_after_other_item_removed(self, projects: OptimisticCollection) -> None:
        """Restoring by id still works when positions shifted."""
        _, save = projects.apply_optimistic(3, SetFields(is_saved=True))
        _, delete = projects.apply_optimistic(1, REMOVE)
        projects.reconcile(delete, RemoteResult.success())

        items = projects.reconcile(save, RemoteResult.failure("boom"))

        assert [(p.id, p.is_saved) for p in items] == [(2, True), (3, False)]


class TestClosedCollection:
    """Tests for reconciling after teardown."""

    def test_reconcile_after_close_is_noop(self, projects: OptimisticCollection) -> None:
        _, pending = projects.apply_optimistic(1, SetFields(is_saved=True))
        projects.close()

        items = projects.reconcile(pending, RemoteResult.failure("boom"))

        assert items[0].is_saved is True
        assert projects.closed is True

    def test_reset_drops_pending(self, projects: OptimisticCollection) -> None:
        """Fresh data supersedes pending mutations."""
        _, pending = projects.apply_optimistic(1, SetFields(is_saved=True))
        projects.reset(make_projects())

        items = projects.reconcile(pending, RemoteResult.failure("boom"))

        assert [p.is_saved for p in items] == [False, False, False]


# =============================================================================
# Accessors
# =============================================================================


class TestAccessors:
    """Tests for read helpers."""

    def test_contains_and_ids(self, projects: OptimisticCollection) -> None:
        assert 2 in projects
        assert 9 not in projects
        assert projects.ids == [1, 2, 3]
        assert len(projects) == 3

    def test_holder_of(self, cards: OptimisticCollection) -> None:
        assert cards.holder_of("is_default").id == "a"

    def test_snapshot_present(self) -> None:
        assert ItemSnapshot(item_id=1, index=0, item=Card(id="x")).present is True
        assert ItemSnapshot(item_id=1, index=0).present is False
