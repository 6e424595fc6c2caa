"""Optimistic mutation controller.

Runs the full optimistic flow for one user action:

    apply locally -> call backend -> reconcile (commit or roll back) -> feedback

Mutations sharing a serialization key run one at a time in trigger order.
Every remote failure is normalized into MutationFailed; the caller receives
a MutationOutcome rather than an exception.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict

from ezclient.config import Settings, settings as default_settings
from ezclient.exceptions import AuthError
from ezclient.session import Session
from ezstate.collection import (
    OptimisticCollection,
    PendingMutation,
    RemoteResult,
    Transform,
)
from ezstate.effects import EffectBus
from ezstate.errors import GENERIC_MUTATION_MESSAGE, OperationFailed, as_mutation_failed, describe_error

logger = logging.getLogger(__name__)

Policy = Literal["queue", "ignore"]
RemoteCall = Callable[[], Awaitable[Any]]


class MutationOutcome(BaseModel):
    """Result of running one optimistic mutation.

    Attributes:
        committed: The backend confirmed the change.
        rolled_back: The change was reverted locally.
        skipped: The mutation never ran (policy "ignore" or target gone).
        error: The normalized failure, when rolled back.
        record: Canonical record returned by the backend, if any.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    committed: bool = False
    rolled_back: bool = False
    skipped: bool = False
    error: Optional[OperationFailed] = None
    record: Any = None


class MutationController:
    """Serializes and executes optimistic mutations.

    Attributes:
        effects: Bus receiving toasts and login redirects.
        session: Session cleared when the backend rejects the credential.
        timeout: Seconds before a remote call counts as failed.
        policy: Default behavior for a trigger on a key that is busy.
    """

    def __init__(
        self,
        effects: EffectBus,
        session: Session | None = None,
        timeout: float = 15.0,
        policy: Policy = "queue",
    ) -> None:
        self.effects = effects
        self.session = session
        self.timeout = timeout
        self.policy = policy
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: defaultdict[str, int] = defaultdict(int)

    @classmethod
    def from_settings(
        cls,
        effects: EffectBus,
        session: Session | None = None,
        config: Settings | None = None,
        policy: Policy = "queue",
    ) -> "MutationController":
        """Build a controller whose deadline is ``MUTATION_TIMEOUT``."""
        config = config or default_settings
        return cls(effects, session=session, timeout=config.MUTATION_TIMEOUT, policy=policy)

    def is_busy(self, key: str) -> bool:
        """Return True if a mutation is running or queued under ``key``."""
        return self._users.get(key, 0) > 0

    async def run(
        self,
        collection: OptimisticCollection,
        item_id: object,
        transform: Transform,
        remote: RemoteCall,
        *,
        success_message: str | None = None,
        failure_message: str = GENERIC_MUTATION_MESSAGE,
        policy: Policy | None = None,
        description: str = "",
    ) -> MutationOutcome:
        """Apply ``transform`` to one item optimistically and confirm remotely.

        Args:
            collection: Working set holding the item.
            item_id: Target item id.
            transform: Local state transition (SetFields, ToggleFlag, REMOVE...).
            remote: Zero-argument coroutine function performing the backend call.
                A returned model with an ``id`` replaces the item on success.
            success_message: Toast shown on commit, if any.
            failure_message: Toast shown on rollback when the backend sent none.
            policy: Overrides the controller default for this call.
            description: Label for logs.

        Returns:
            The outcome. Never raises for remote failures.
        """
        key = collection.lock_key_for(item_id, transform)
        return await self._serialized(
            key,
            policy or self.policy,
            collection,
            lambda: collection.apply_optimistic(item_id, transform, description),
            remote,
            success_message,
            failure_message,
        )

    async def run_insert(
        self,
        collection: OptimisticCollection,
        item: Any,
        remote: RemoteCall,
        *,
        index: int | None = None,
        success_message: str | None = None,
        failure_message: str = GENERIC_MUTATION_MESSAGE,
        description: str = "",
    ) -> MutationOutcome:
        """Insert a placeholder optimistically and confirm remotely.

        The placeholder's id is the correlation id; the canonical record
        returned by ``remote`` replaces it in place.
        """
        return await self._serialized(
            f"item:{item.id}",
            "queue",
            collection,
            lambda: collection.insert_optimistic(item, index, description),
            remote,
            success_message,
            failure_message,
        )

    async def run_clear(
        self,
        collection: OptimisticCollection,
        remote: RemoteCall,
        *,
        success_message: str | None = None,
        failure_message: str = GENERIC_MUTATION_MESSAGE,
        policy: Policy | None = None,
        description: str = "",
    ) -> MutationOutcome:
        """Empty the collection optimistically and confirm remotely."""
        return await self._serialized(
            "collection",
            policy or self.policy,
            collection,
            lambda: collection.clear_optimistic(description),
            remote,
            success_message,
            failure_message,
        )

    async def _serialized(
        self,
        key: str,
        policy: Policy,
        collection: OptimisticCollection,
        apply: Callable[[], tuple[list[Any], PendingMutation]],
        remote: RemoteCall,
        success_message: str | None,
        failure_message: str,
    ) -> MutationOutcome:
        if policy == "ignore" and self.is_busy(key):
            logger.debug(f"Ignoring trigger on busy key {key}")
            return MutationOutcome(skipped=True)

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                try:
                    _, pending = apply()
                except KeyError:
                    logger.warning(f"Mutation target for {key} no longer exists, skipping")
                    return MutationOutcome(skipped=True)
                return await self._execute(collection, pending, remote, success_message, failure_message)
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    async def _execute(
        self,
        collection: OptimisticCollection,
        pending: PendingMutation,
        remote: RemoteCall,
        success_message: str | None,
        failure_message: str,
    ) -> MutationOutcome:
        label = pending.description or pending.lock_key
        try:
            record = await asyncio.wait_for(remote(), timeout=self.timeout)
        except asyncio.CancelledError:
            collection.reconcile(pending, RemoteResult.failure("cancelled"))
            raise
        except AuthError as e:
            collection.reconcile(pending, RemoteResult.failure(e))
            self.effects.auth_expired(self.session, e)
            return MutationOutcome(
                rolled_back=True,
                error=OperationFailed(describe_error(e, failure_message), cause=e),
            )
        except Exception as e:
            failure = as_mutation_failed(e, failure_message)
            logger.warning(f"Mutation {label} failed: {e!r}")
            collection.reconcile(pending, RemoteResult.failure(failure))
            if not collection.closed:
                self.effects.error(failure.message)
            return MutationOutcome(rolled_back=True, error=failure)

        canonical = record if hasattr(record, "id") else None
        collection.reconcile(pending, RemoteResult.success(canonical))
        if success_message and not collection.closed:
            self.effects.success(success_message)
        return MutationOutcome(committed=True, record=canonical)
