"""Entity-changed events and the subscriber that turns them into syncs."""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from .reconcile import ReconciliationEngine
    from .store import LocalStore

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    OPPORTUNITY = "opportunity"
    COMPANY = "company"


class EntityChanged(BaseModel):
    kind: EntityKind
    entity_id: str


class SyncBootstrapper:
    """
    Subscribes to local entity changes and syncs each changed entity.

    publish() never blocks the caller; a single task drains the queue so
    events are handled in arrival order. A failed sync is logged and the
    loop moves on to the next event.
    """

    def __init__(
        self,
        engine: "ReconciliationEngine",
        store: "LocalStore",
        maxsize: int = 0,
    ):
        self._engine = engine
        self._store = store
        self._queue: asyncio.Queue[EntityChanged] = asyncio.Queue(maxsize=maxsize)
        self._processor_task: asyncio.Task | None = None

    @property
    def qsize(self) -> int:
        return self._queue.qsize()

    async def start(self, sync_on_startup: bool = True) -> None:
        """Start the subscriber task."""
        self._processor_task = asyncio.create_task(self._process_queue())
        logger.info("Sync subscriber started")
        if sync_on_startup:
            await self._engine.sync_all_on_startup()

    async def stop(self) -> None:
        """Stop the subscriber task. Queued events are dropped."""
        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None
        logger.info("Sync subscriber stopped")

    def publish(self, event: EntityChanged) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Sync queue full, dropping %s %s", event.kind.value, event.entity_id
            )

    async def join(self) -> None:
        """Wait until every published event has been handled."""
        await self._queue.join()

    async def _process_queue(self) -> None:
        while True:
            try:
                event = await self._queue.get()
            except asyncio.CancelledError:
                logger.info("Sync subscriber task cancelled")
                break

            try:
                await self._handle(event)
            except Exception as e:
                logger.warning(
                    "Sync of %s %s failed: %s", event.kind.value, event.entity_id, e
                )
            finally:
                self._queue.task_done()

    async def _handle(self, event: EntityChanged) -> None:
        if not self._engine.is_connected:
            return

        if event.kind == EntityKind.OPPORTUNITY:
            opportunity = self._store.get_opportunity(event.entity_id)
            if opportunity is None:
                logger.debug("Opportunity %s vanished before sync", event.entity_id)
                return
            await self._engine.sync_opportunity(opportunity)
        elif event.kind == EntityKind.COMPANY:
            company = self._store.get_company(event.entity_id)
            if company is None:
                return
            await self._engine.sync_company(company)
