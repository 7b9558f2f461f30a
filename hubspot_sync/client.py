"""Thin async HubSpot CRM REST client."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .config import (
    COMPANY_PROPERTIES,
    CONNECT_TIMEOUT,
    DEAL_PROPERTIES,
    DEAL_SEARCH_PROPERTIES,
    HUBSPOT_API_BASE,
    REQUEST_TIMEOUT,
    UNNAMED_COMPANY,
    UNNAMED_DEAL,
)
from .exceptions import DecodeError, HttpError
from .models import DealSummary, RemoteCompanyDetails

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]


def normalize_object_id(value: Any) -> str:
    """HubSpot ids may arrive as JSON integers or strings."""
    if isinstance(value, bool):
        raise DecodeError(f"Expected string or integer id, got {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value:
        return value
    raise DecodeError(f"Expected string or integer id, got {value!r}")


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _deal_summary(deal: dict[str, Any]) -> DealSummary:
    properties = deal.get("properties") or {}
    name = _text(properties.get("dealname"))
    return DealSummary(id=normalize_object_id(deal.get("id")), name=name or UNNAMED_DEAL)


def _company_details(
    obj: dict[str, Any], include_lifecycle: bool = True
) -> RemoteCompanyDetails:
    properties = obj.get("properties")
    if not isinstance(properties, dict):
        raise DecodeError("Company response has no properties object")
    name = _text(properties.get("name"))
    try:
        return RemoteCompanyDetails(
            id=normalize_object_id(obj.get("id")),
            name=name or UNNAMED_COMPANY,
            address1=properties.get("address"),
            address2=properties.get("address2"),
            city=properties.get("city"),
            state=properties.get("state"),
            postal_code=properties.get("zip"),
            lifecycle_stage=(
                properties.get("lifecyclestage") if include_lifecycle else None
            ),
        )
    except ValueError as e:
        raise DecodeError(f"Malformed company properties: {e}") from e


def _results(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise DecodeError("Expected an object with a results list")
    results = data["results"]
    if not all(isinstance(item, dict) for item in results):
        raise DecodeError("Expected results to be objects")
    return results


class HubSpotClient:
    """
    Authenticated calls against the HubSpot CRM API.

    A bearer token is fetched from ``token_provider`` before every request, so
    expiry and refresh stay the OAuth session's concern. Any non-2xx status
    raises HttpError carrying the raw body; nothing is retried here.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = HUBSPOT_API_BASE,
    ):
        self._token_provider = token_provider
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT),
        )

    async def __aenter__(self) -> "HubSpotClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        access_token = await self._token_provider()
        response = await self._client.request(
            method,
            path,
            params=params,
            json=json,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not response.is_success:
            logger.warning(
                "HubSpot %s %s failed with %d", method, path, response.status_code
            )
            raise HttpError(response.content, response.status_code)
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Response is not JSON: {e}") from e

    async def list_deals(self, limit: int = 50) -> list[dict[str, Any]]:
        response = await self._request(
            "GET", "/crm/v3/objects/deals", params={"limit": limit}
        )
        return _results(self._decode(response))

    async def search_deals(self, query: str, limit: int = 50) -> list[dict[str, Any]]:
        response = await self._request(
            "POST",
            "/crm/v3/objects/deals/search",
            json={
                "query": query,
                "limit": limit,
                "properties": DEAL_SEARCH_PROPERTIES,
            },
        )
        return _results(self._decode(response))

    async def fetch_deal_summaries(self, limit: int = 50) -> list[DealSummary]:
        return [_deal_summary(deal) for deal in await self.list_deals(limit)]

    async def search_deal_summaries(self, query: str, limit: int = 50) -> list[DealSummary]:
        return [_deal_summary(deal) for deal in await self.search_deals(query, limit)]

    async def get_deal(self, deal_id: str) -> dict[str, Any] | None:
        """Fetch a single deal payload; None when HubSpot has no such deal."""
        try:
            response = await self._request(
                "GET",
                f"/crm/v3/objects/deals/{deal_id}",
                params={"properties": ",".join(DEAL_PROPERTIES)},
            )
        except HttpError as e:
            if e.status_code == 404:
                logger.info("HubSpot deal %s not found", deal_id)
                return None
            raise

        data = self._decode(response)
        if not isinstance(data, dict):
            raise DecodeError("Expected deal object")
        return data

    async def get_deal_company_id(self, deal_id: str) -> str | None:
        """First company associated with a deal, or None."""
        response = await self._request(
            "GET", f"/crm/v4/objects/deals/{deal_id}/associations/companies"
        )
        results = _results(self._decode(response))
        if not results:
            return None
        company_id = normalize_object_id(results[0].get("toObjectId"))
        logger.info("HubSpot deal %s is associated with company %s", deal_id, company_id)
        return company_id

    async def get_company(self, company_id: str) -> RemoteCompanyDetails:
        response = await self._request(
            "GET",
            f"/crm/v3/objects/companies/{company_id}",
            params={"properties": ",".join(COMPANY_PROPERTIES)},
        )
        data = self._decode(response)
        if not isinstance(data, dict):
            raise DecodeError("Expected company object")
        return _company_details(data)

    async def search_company_by_name(self, name: str) -> RemoteCompanyDetails | None:
        """First company whose name contains ``name``; HubSpot matches case-insensitively."""
        response = await self._request(
            "POST",
            "/crm/v3/objects/companies/search",
            json={
                "filterGroups": [
                    {
                        "filters": [
                            {
                                "propertyName": "name",
                                "operator": "CONTAINS_TOKEN",
                                "value": name,
                            }
                        ]
                    }
                ],
                "properties": [p for p in COMPANY_PROPERTIES if p != "lifecyclestage"],
                "limit": 1,
            },
        )
        results = _results(self._decode(response))
        if not results:
            logger.info("HubSpot company search for %r: no match", name)
            return None
        return _company_details(results[0], include_lifecycle=False)

    async def fetch_company_details_for_deal(
        self, deal_id: str
    ) -> RemoteCompanyDetails | None:
        company_id = await self.get_deal_company_id(deal_id)
        if company_id is None:
            return None
        return await self.get_company(company_id)
