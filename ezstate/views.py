"""List views: load a collection, then mutate it optimistically.

A ListView owns one OptimisticCollection, fills it from a loader and
exposes phase/error for rendering. Loads are generation-counted so an older
response that arrives after a newer load, or after close(), is dropped.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from ezclient.session import Session
from ezstate.collection import OptimisticCollection
from ezstate.effects import EffectBus
from ezstate.errors import GENERIC_LOAD_MESSAGE, OperationFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ViewPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class ListView(Generic[T]):
    """A loaded, optimistically mutable list.

    Attributes:
        collection: The working set.
        phase: Current load phase.
        error: Failure of the last load, if it failed.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[list[T]]],
        effects: EffectBus,
        session: Session | None = None,
        exclusive_flags: Iterable[str] = (),
        failure_message: str = GENERIC_LOAD_MESSAGE,
        name: str = "list",
    ) -> None:
        self._loader = loader
        self.effects = effects
        self.session = session
        self.failure_message = failure_message
        self.name = name
        self.collection: OptimisticCollection = OptimisticCollection(exclusive_flags=exclusive_flags)
        self.phase = ViewPhase.IDLE
        self.error: Optional[OperationFailed] = None
        self._generation = 0

    @property
    def items(self) -> list[Any]:
        return list(self.collection.items)

    @property
    def closed(self) -> bool:
        return self.phase == ViewPhase.CLOSED

    async def load(self) -> list[Any]:
        """Fetch the items and replace the working set.

        Failures are reported through the effect bus and leave the view
        empty in phase FAILED. Returns the items after the load.
        """
        if self.closed:
            return []
        self._generation += 1
        generation = self._generation
        self.phase = ViewPhase.LOADING
        self.error = None

        try:
            items = await self._loader()
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Dropping stale failure for {self.name}: {e!r}")
                return self.items
            logger.warning(f"Loading {self.name} failed: {e!r}")
            self.error = self.effects.report_failure(
                e, self.failure_message, session=self.session, reading=True
            )
            self.collection.reset([])
            self.phase = ViewPhase.FAILED
            return self.items

        if not self._is_current(generation):
            logger.debug(f"Dropping stale response for {self.name}")
            return self.items
        self.collection.reset(items)
        self.phase = ViewPhase.READY
        logger.debug(f"Loaded {len(items)} item(s) into {self.name}")
        return self.items

    async def reload(self) -> list[Any]:
        return await self.load()

    def close(self) -> None:
        """Tear down the view; in-flight loads and mutations become no-ops."""
        self._generation += 1
        self.collection.close()
        self.phase = ViewPhase.CLOSED

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self.closed
