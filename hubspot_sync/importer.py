"""Selective import of HubSpot deals into the local store."""

import logging

import httpx
from pydantic import BaseModel, Field

from .client import HubSpotClient
from .exceptions import HubSpotSyncError
from .mappers import apply_remote_company, derive_company_name
from .models import DealSummary, LocalCompany, LocalOpportunity, RemoteCompanyDetails
from .store import LocalStore

logger = logging.getLogger(__name__)


class ImportResult(BaseModel):
    imported: int = 0
    failed: int = 0
    opportunity_ids: list[str] = Field(default_factory=list)


class DealImporter:
    """
    Imports picked deals, creating or reusing the local company for each.

    Company resolution, first hit wins:
    1. the company associated with the deal in HubSpot
    2. a HubSpot company search on the name derived from the deal name
    3. an existing local company matching the deal name, see
       _match_local_company()
    4. a new local company named after the derived name
    """

    def __init__(self, client: HubSpotClient, store: LocalStore):
        self._client = client
        self._store = store

    async def import_deals(self, deals: list[DealSummary]) -> ImportResult:
        result = ImportResult()

        for deal in deals:
            try:
                company = await self._resolve_company(deal)
                opportunity = self._upsert_opportunity(deal, company)
            except (HubSpotSyncError, httpx.HTTPError) as e:
                logger.warning("Import of deal %s failed: %s", deal.id, e)
                result.failed += 1
                continue

            result.imported += 1
            result.opportunity_ids.append(opportunity.id)

        logger.info(
            "Imported %d deals with %d failures", result.imported, result.failed
        )
        return result

    async def _remote_company(self, deal: DealSummary) -> RemoteCompanyDetails | None:
        derived_name = derive_company_name(deal.name)
        try:
            details = await self._client.fetch_company_details_for_deal(deal.id)
            if details is not None:
                return details
            logger.info(
                "Deal %s has no associated company, searching for %r",
                deal.id,
                derived_name,
            )
        except HubSpotSyncError as e:
            logger.warning(
                "Company lookup for deal %s failed (%s), searching for %r",
                deal.id,
                e,
                derived_name,
            )
        return await self._client.search_company_by_name(derived_name)

    def _match_local_company(self, deal_name: str, derived_name: str) -> LocalCompany:
        """
        Local company for a deal HubSpot could not place.

        An exact (case-insensitive) match on the derived name wins. Otherwise
        the longest existing company name contained in the deal name is used,
        so "Acme Corp Renewal" lands on "Acme Corp" rather than on a shorter
        accidental match. Failing both, a company named after the derived name
        is created.
        """
        exact = self._store.find_company_by_name(derived_name)
        if exact is not None:
            return exact

        deal_key = deal_name.casefold()
        contained = [
            company
            for company in self._store.list_companies()
            if company.name.strip() and company.name.strip().casefold() in deal_key
        ]
        if contained:
            return max(contained, key=lambda company: len(company.name.strip()))
        return LocalCompany(name=derived_name)

    async def _resolve_company(self, deal: DealSummary) -> LocalCompany:
        derived_name = derive_company_name(deal.name)
        try:
            details = await self._remote_company(deal)
        except HubSpotSyncError as e:
            logger.warning("Company search for %r failed: %s", derived_name, e)
            details = None

        if details is None:
            company = self._match_local_company(deal.name, derived_name)
            self._store.save_company(company, notify=False)
            return company

        name = details.name.strip() or derived_name
        company = self._store.find_company_by_name(name) or LocalCompany(name=name)
        apply_remote_company(details, company)
        self._store.save_company(company, notify=False)
        return company

    def _upsert_opportunity(
        self, deal: DealSummary, company: LocalCompany
    ) -> LocalOpportunity:
        opportunity = self._store.find_opportunity_by_name(
            deal.name, company.id
        ) or LocalOpportunity(name=deal.name, company_id=company.id)
        opportunity.remote_id = deal.id
        # The next sync pulls the full deal since no local edit is recorded
        opportunity.last_modified = None
        self._store.save_opportunity(opportunity)
        return opportunity
