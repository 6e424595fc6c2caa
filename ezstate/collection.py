"""Optimistic working-set collections.

This module provides the local half of the optimistic mutation pattern:
- ItemSnapshot / PendingMutation: before/after record of one optimistic change
- RemoteResult: the outcome of the remote call backing a change
- Transforms (SetFields, ToggleFlag, REMOVE): pure item transitions
- OptimisticCollection: the ordered items plus apply/reconcile/rollback

The pattern is a targeted memento: each pending mutation captures only the
items it touched, keyed by id, so rollback restores those items without
disturbing changes made to other items in the meantime.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Iterable, Iterator, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from ezclient.models import ItemId

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class _Remove:
    """Sentinel returned by a transform to delete the target item."""

    _instance: Optional["_Remove"] = None

    def __new__(cls) -> "_Remove":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "REMOVE"

    def __call__(self, item: Any) -> "_Remove":
        return self


# Usable both as the transform itself and as a transform's return value.
REMOVE = _Remove()

Transform = Callable[[Any], Union[Any, _Remove]]


class SetFields:
    """Transform that sets fields to fixed values.

    Example:
        collection.apply_optimistic("card_b", SetFields(is_default=True))
    """

    def __init__(self, **updates: Any) -> None:
        self.updates = updates

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(self.updates)

    def __call__(self, item: BaseModel) -> BaseModel:
        return item.model_copy(update=self.updates)

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.updates.items())
        return f"SetFields({args})"


class ToggleFlag:
    """Transform that flips a boolean field."""

    def __init__(self, flag: str) -> None:
        self.flag = flag

    @property
    def fields(self) -> frozenset[str]:
        return frozenset({self.flag})

    def __call__(self, item: BaseModel) -> BaseModel:
        return item.model_copy(update={self.flag: not getattr(item, self.flag)})

    def __repr__(self) -> str:
        return f"ToggleFlag({self.flag!r})"


class ItemSnapshot(BaseModel):
    """One item's state on one side of a mutation.

    Attributes:
        item_id: Id of the item.
        index: Position of the item in the collection at capture time.
        item: The item, or None when absent on this side (insert/remove).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    item_id: Any
    index: int
    item: Any = None

    @property
    def present(self) -> bool:
        return self.item is not None


class PendingMutation(BaseModel):
    """An in-flight optimistic change.

    Created when the change is applied locally, resolved by
    OptimisticCollection.reconcile() either by committing (discarding this
    record) or by rolling back to the ``before`` snapshots.

    Attributes:
        mutation_id: Unique id of this mutation.
        item_id: Target id; for inserts, the client-generated correlation id.
        lock_key: Serialization key used by the controller.
        before: Snapshots of every affected item before the change.
        after: Snapshots of every affected item after the change.
        description: Human-readable label for logs.
        created_at: When the change was applied.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    mutation_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    item_id: Any
    lock_key: str
    before: list[ItemSnapshot]
    after: list[ItemSnapshot]
    description: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def affected_ids(self) -> list[Any]:
        """Ids of every item this mutation touched, target first."""
        ids = []
        for snapshot in (*self.before, *self.after):
            if snapshot.item_id not in ids:
                ids.append(snapshot.item_id)
        return ids


class RemoteResult(BaseModel):
    """Outcome of the remote call backing a pending mutation.

    Attributes:
        ok: True if the backend confirmed the change.
        record: Canonical record from the backend, if it sent one.
        error: The failure, when ``ok`` is False.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool
    record: Any = None
    error: Any = None

    @classmethod
    def success(cls, record: Any = None) -> "RemoteResult":
        return cls(ok=True, record=record)

    @classmethod
    def failure(cls, error: Any = None) -> "RemoteResult":
        return cls(ok=False, error=error)


class OptimisticCollection(Generic[T]):
    """Ordered working set of items with unique ids.

    Items are immutable pydantic models; every change produces new item
    objects, so snapshots stay valid after later changes.

    Attributes:
        items: Current items in display order.
        exclusive_flags: Boolean fields at most one item may hold at a time.
        closed: True once the owning view was torn down.
    """

    def __init__(
        self,
        items: Iterable[T] = (),
        exclusive_flags: Iterable[str] = (),
    ) -> None:
        self.items: list[T] = list(items)
        self.exclusive_flags: tuple[str, ...] = tuple(exclusive_flags)
        self.closed = False
        self._pending: dict[str, PendingMutation] = {}

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self.items))

    def __contains__(self, item_id: object) -> bool:
        return self.index_of(item_id) is not None

    @property
    def ids(self) -> list[ItemId]:
        return [item.id for item in self.items]

    @property
    def pending(self) -> list[PendingMutation]:
        """Unresolved mutations, oldest first."""
        return list(self._pending.values())

    def index_of(self, item_id: object) -> Optional[int]:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return None

    def get(self, item_id: object) -> Optional[T]:
        index = self.index_of(item_id)
        return None if index is None else self.items[index]

    def holder_of(self, flag: str) -> Optional[T]:
        """Return the item currently holding ``flag``, if any."""
        for item in self.items:
            if getattr(item, flag, False):
                return item
        return None

    # Non-optimistic updates (server-originated data)

    def reset(self, items: Iterable[T]) -> list[T]:
        """Replace the working set with freshly loaded items.

        Pending mutations are dropped; their late responses reconcile as
        no-ops against the new data.
        """
        self.items = list(items)
        if self._pending:
            logger.debug(f"Reset dropped {len(self._pending)} pending mutation(s)")
        self._pending.clear()
        return list(self.items)

    def insert(self, item: T, index: Optional[int] = None) -> list[T]:
        """Insert a confirmed item. Appends when ``index`` is None."""
        if self.index_of(item.id) is not None:
            raise ValueError(f"Duplicate item id {item.id!r}")
        items = list(self.items)
        items.insert(len(items) if index is None else index, item)
        self.items = items
        return list(self.items)

    def remove(self, item_id: object) -> Optional[T]:
        """Remove an item without recording a mutation."""
        index = self.index_of(item_id)
        if index is None:
            return None
        items = list(self.items)
        removed = items.pop(index)
        self.items = items
        return removed

    def close(self) -> None:
        """Mark the collection as torn down; later reconciles are no-ops."""
        self.closed = True
        self._pending.clear()

    # Optimistic updates

    def lock_key_for(self, item_id: object, transform: Optional[Transform] = None) -> str:
        """Return the key mutations on ``item_id`` must be serialized under.

        Changes touching an exclusive flag, or targeting the item that
        currently holds one, share a single key per flag. Any other change
        is serialized per item.
        """
        fields = getattr(transform, "fields", frozenset())
        for flag in self.exclusive_flags:
            if flag in fields:
                return f"flag:{flag}"
            item = self.get(item_id)
            if item is not None and getattr(item, flag, False):
                return f"flag:{flag}"
        return f"item:{item_id}"

    def apply_optimistic(
        self,
        item_id: object,
        transform: Transform,
        description: str = "",
    ) -> tuple[list[T], PendingMutation]:
        """Apply ``transform`` to one item immediately and record the change.

        If the transformed item holds an exclusive flag, every other holder
        of that flag is reverted in the same update.

        Args:
            item_id: Id of the target item.
            transform: Pure function from item to new item, or REMOVE.
            description: Label for logs.

        Returns:
            The updated items and the recorded pending mutation.

        Raises:
            KeyError: If no item has ``item_id``.
        """
        index = self.index_of(item_id)
        if index is None:
            raise KeyError(item_id)

        current = self.items[index]
        new = transform(current)
        items = list(self.items)
        before = {item_id: ItemSnapshot(item_id=item_id, index=index, item=current)}

        if new is REMOVE:
            del items[index]
            after = {item_id: ItemSnapshot(item_id=item_id, index=index, item=None)}
        else:
            if new.id != item_id:
                raise ValueError("A transform must not change the item id")
            items[index] = new
            after = {item_id: ItemSnapshot(item_id=item_id, index=index, item=new)}
            self._enforce_exclusive(items, index, before, after)

        return self._record(items, item_id, transform, before, after, description)

    def insert_optimistic(
        self,
        item: T,
        index: Optional[int] = None,
        description: str = "",
    ) -> tuple[list[T], PendingMutation]:
        """Insert a placeholder immediately and record the change.

        Args:
            item: The placeholder; its id is the correlation id used to
                match the canonical record later.
            index: Position; appends when None.
            description: Label for logs.

        Returns:
            The updated items and the recorded pending mutation.
        """
        if self.index_of(item.id) is not None:
            raise ValueError(f"Duplicate item id {item.id!r}")

        items = list(self.items)
        index = len(items) if index is None else index
        items.insert(index, item)
        before = {item.id: ItemSnapshot(item_id=item.id, index=index, item=None)}
        after = {item.id: ItemSnapshot(item_id=item.id, index=index, item=item)}
        self._enforce_exclusive(items, index, before, after)
        return self._record(items, item.id, None, before, after, description)

    def clear_optimistic(self, description: str = "") -> tuple[list[T], PendingMutation]:
        """Remove every item immediately and record the change."""
        before = {
            item.id: ItemSnapshot(item_id=item.id, index=i, item=item)
            for i, item in enumerate(self.items)
        }
        after = {
            item.id: ItemSnapshot(item_id=item.id, index=i, item=None)
            for i, item in enumerate(self.items)
        }
        pending = PendingMutation(
            item_id="*",
            lock_key="collection",
            before=list(before.values()),
            after=list(after.values()),
            description=description,
        )
        self.items = []
        self._pending[pending.mutation_id] = pending
        return [], pending

    def reconcile(self, pending: PendingMutation, result: RemoteResult) -> list[T]:
        """Resolve a pending mutation with the remote outcome.

        On success the optimistic state is committed. If ``result.record``
        carries a canonical record, it replaces the entry whose id is the
        pending correlation id, in place. If an entry with the canonical id
        already exists elsewhere, the placeholder is dropped instead.

        On failure every affected item is restored to its ``before`` state.

        Args:
            pending: The mutation returned by an apply/insert call.
            result: The remote outcome.

        Returns:
            The items after reconciliation.
        """
        if self.closed:
            logger.debug(f"Ignoring reconcile of {pending.mutation_id} on a closed collection")
            return list(self.items)
        if self._pending.pop(pending.mutation_id, None) is None:
            logger.debug(f"Mutation {pending.mutation_id} already resolved")
            return list(self.items)

        if result.ok:
            if result.record is not None and pending.item_id != "*":
                self._commit_record(pending.item_id, result.record)
            logger.debug(f"Committed {pending.description or pending.item_id}")
        else:
            self._rollback(pending)
            logger.warning(
                f"Rolled back {pending.description or pending.item_id}: {result.error}"
            )
        return list(self.items)

    # Internals

    def _enforce_exclusive(
        self,
        items: list[T],
        index: int,
        before: dict[Any, ItemSnapshot],
        after: dict[Any, ItemSnapshot],
    ) -> None:
        new = items[index]
        for flag in self.exclusive_flags:
            if not getattr(new, flag, False):
                continue
            for j, other in enumerate(items):
                if j == index or not getattr(other, flag, False):
                    continue
                reverted = other.model_copy(update={flag: False})
                before.setdefault(other.id, ItemSnapshot(item_id=other.id, index=j, item=other))
                after[other.id] = ItemSnapshot(item_id=other.id, index=j, item=reverted)
                items[j] = reverted

    def _record(
        self,
        items: list[T],
        item_id: object,
        transform: Optional[Transform],
        before: dict[Any, ItemSnapshot],
        after: dict[Any, ItemSnapshot],
        description: str,
    ) -> tuple[list[T], PendingMutation]:
        pending = PendingMutation(
            item_id=item_id,
            lock_key=self.lock_key_for(item_id, transform),
            before=list(before.values()),
            after=list(after.values()),
            description=description,
        )
        self.items = items
        self._pending[pending.mutation_id] = pending
        logger.debug(f"Applied {description or repr(transform)} to {item_id!r}")
        return list(self.items), pending

    def _commit_record(self, correlation_id: object, record: T) -> None:
        index = self.index_of(correlation_id)
        if index is None:
            logger.debug(f"Placeholder {correlation_id!r} is gone; canonical record not applied")
            return
        items = list(self.items)
        existing = self.index_of(record.id) if record.id != correlation_id else None
        if existing is not None:
            # Already delivered through another path (e.g. a realtime echo).
            del items[index]
        else:
            items[index] = record
        self.items = items

    def _rollback(self, pending: PendingMutation) -> None:
        items = list(self.items)
        before = {s.item_id: s for s in pending.before}

        def position(item_id: object) -> Optional[int]:
            for i, item in enumerate(items):
                if item.id == item_id:
                    return i
            return None

        # Drop items this mutation inserted.
        for snapshot in pending.after:
            if snapshot.present and not before[snapshot.item_id].present:
                i = position(snapshot.item_id)
                if i is not None:
                    del items[i]

        # Restore items this mutation changed.
        for snapshot in pending.before:
            if snapshot.present:
                i = position(snapshot.item_id)
                if i is not None:
                    items[i] = snapshot.item

        # Re-insert items this mutation removed, at their original positions.
        for snapshot in sorted(pending.before, key=lambda s: s.index):
            if snapshot.present and position(snapshot.item_id) is None:
                items.insert(min(snapshot.index, len(items)), snapshot.item)

        self.items = items
