"""Last-write-wins reconciliation between local records and HubSpot.

Per call, one entity moves in one direction. The newer side wins; missing
timestamps are biased toward HubSpot (a missing remote timestamp counts as
+infinity, a missing local one as -infinity).

Only the pull direction is implemented. When the local copy is newer the
engine reports ``SyncOutcome.PUSH_PENDING`` and sends nothing upstream:
``build_deal_update_payload`` exists but no conflict policy for pushing has
been settled.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from .client import HubSpotClient
from .mappers import apply_remote_deal, as_utc, extract_field, parse_last_modified
from .models import LocalCompany, LocalOpportunity, SyncDirection, SyncOutcome
from .oauth import OAuthSession
from .store import LocalStore

logger = logging.getLogger(__name__)


def resolve_direction(
    local_last_modified: datetime | None,
    remote_last_modified: datetime | None,
) -> SyncDirection:
    """Pull iff remote is newer; missing remote = +inf, missing local = -inf."""
    if remote_last_modified is None or local_last_modified is None:
        return SyncDirection.PULL
    if as_utc(remote_last_modified) > as_utc(local_last_modified):
        return SyncDirection.PULL
    return SyncDirection.PUSH


class ReconciliationEngine:
    """Syncs single local entities against their HubSpot counterparts."""

    def __init__(self, auth: OAuthSession, client: HubSpotClient, store: LocalStore):
        self._auth = auth
        self._client = client
        self._store = store
        # Locks live only while a sync of that entity runs or waits
        self._entity_locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}
        self.last_sync_at: datetime | None = None

    @property
    def is_connected(self) -> bool:
        return self._auth.is_connected

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str):
        lock = self._entity_locks.setdefault(entity_id, asyncio.Lock())
        self._lock_holders[entity_id] = self._lock_holders.get(entity_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[entity_id] -= 1
            if not self._lock_holders[entity_id]:
                del self._lock_holders[entity_id]
                del self._entity_locks[entity_id]

    async def sync_all_on_startup(self) -> None:
        """Bulk reconciliation on startup. Intentionally inert."""
        return None

    async def sync_company(self, company: LocalCompany) -> SyncOutcome:
        """Company reconciliation. Intentionally inert."""
        return SyncOutcome.SKIPPED

    async def sync_opportunity(self, opportunity: LocalOpportunity) -> SyncOutcome:
        """
        Reconcile one opportunity with its HubSpot deal.

        Entities never linked to HubSpot (no remote id) are skipped, as is
        everything while disconnected. Syncs of the same entity are serialized.
        The local record is read from the store again once the deal has
        arrived, and the decision and the save happen with no await in
        between, so a local save made while the fetch was in flight is never
        overwritten by older remote data.

        OAuth and API errors propagate to the caller. They never change the
        connection state.
        """
        if not self.is_connected or not opportunity.remote_id:
            return SyncOutcome.SKIPPED

        async with self._entity_lock(opportunity.id):
            local = self._store.get_opportunity(opportunity.id) or opportunity
            remote_id = local.remote_id
            if not remote_id:
                return SyncOutcome.SKIPPED

            remote = await self._client.get_deal(remote_id)
            if remote is None:
                logger.info("No HubSpot deal %s for opportunity %s", remote_id, local.id)
                return SyncOutcome.SKIPPED

            # No awaits from here on
            local = self._store.get_opportunity(opportunity.id) or local
            if local.remote_id != remote_id:
                logger.info(
                    "Opportunity %s was relinked during sync, skipping", local.id
                )
                return SyncOutcome.SKIPPED

            remote_last_modified = parse_last_modified(
                extract_field(remote, "hs_lastmodifieddate")
            )
            direction = resolve_direction(local.last_modified, remote_last_modified)

            if direction == SyncDirection.PULL:
                applied = apply_remote_deal(remote, local)
                local.last_modified = remote_last_modified
                self._store.save_opportunity(local, notify=False)
                if local is not opportunity:
                    for field_name in LocalOpportunity.model_fields:
                        setattr(opportunity, field_name, getattr(local, field_name))
                self.last_sync_at = datetime.now(timezone.utc)
                logger.info(
                    "Pulled HubSpot deal %s into opportunity %s (%s)",
                    remote_id,
                    local.id,
                    ", ".join(applied) or "no fields",
                )
                return SyncOutcome.PULLED

            logger.info(
                "Opportunity %s is newer than HubSpot deal %s; push not implemented",
                local.id,
                remote_id,
            )
            return SyncOutcome.PUSH_PENDING
