"""Tests for the HubSpot CRM REST client."""

import json

import pytest
from httpx import Response

from hubspot_sync.client import HubSpotClient, normalize_object_id
from hubspot_sync.exceptions import DecodeError, HttpError, NotConnectedError

API_BASE = "https://api.hubapi.com"
ASSOCIATIONS_URL = f"{API_BASE}/crm/v4/objects/deals/9001/associations/companies"


class TestNormalizeObjectId:
    def test_integer(self):
        assert normalize_object_id(501) == "501"

    def test_string(self):
        assert normalize_object_id("501") == "501"

    @pytest.mark.parametrize("value", [None, "", True, 5.0, {"id": 1}])
    def test_invalid(self, value):
        with pytest.raises(DecodeError):
            normalize_object_id(value)


class TestDeals:
    """Tests for deal list, search and fetch."""

    async def test_list_deals_sends_bearer_token(self, api_client, mock_hubspot):
        route = mock_hubspot.get(f"{API_BASE}/crm/v3/objects/deals").mock(
            return_value=Response(
                200, json={"results": [{"id": "1", "properties": {"dealname": "A"}}]}
            )
        )

        deals = await api_client.list_deals(limit=10)

        assert deals == [{"id": "1", "properties": {"dealname": "A"}}]
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer access-abc"
        assert request.url.params["limit"] == "10"

    async def test_search_deal_summaries(self, api_client, mock_hubspot):
        route = mock_hubspot.post(f"{API_BASE}/crm/v3/objects/deals/search").mock(
            return_value=Response(
                200,
                json={
                    "results": [
                        {"id": 1, "properties": {"dealname": " Acme - Renewal "}},
                        {"id": "2", "properties": {"dealname": "  "}},
                    ]
                },
            )
        )

        summaries = await api_client.search_deal_summaries("acme", limit=5)

        assert [(s.id, s.name) for s in summaries] == [
            ("1", "Acme - Renewal"),
            ("2", "(Unnamed deal)"),
        ]
        body = json.loads(route.calls.last.request.content)
        assert body["query"] == "acme"
        assert body["limit"] == 5

    async def test_get_deal(self, api_client, mock_hubspot, mock_hubspot_deal):
        route = mock_hubspot.get(f"{API_BASE}/crm/v3/objects/deals/9001").mock(
            return_value=Response(200, json=mock_hubspot_deal)
        )

        deal = await api_client.get_deal("9001")

        assert deal == mock_hubspot_deal
        properties = route.calls.last.request.url.params["properties"].split(",")
        assert "hs_lastmodifieddate" in properties

    async def test_get_deal_not_found(self, api_client, mock_hubspot):
        mock_hubspot.get(f"{API_BASE}/crm/v3/objects/deals/404").mock(
            return_value=Response(404, json={"status": "error"})
        )

        assert await api_client.get_deal("404") is None

    async def test_http_error_carries_body(self, api_client, mock_hubspot):
        mock_hubspot.get(f"{API_BASE}/crm/v3/objects/deals").mock(
            return_value=Response(500, content=b"boom")
        )

        with pytest.raises(HttpError) as exc_info:
            await api_client.list_deals()

        assert exc_info.value.body == b"boom"
        assert exc_info.value.status_code == 500

    async def test_non_json_body(self, api_client, mock_hubspot):
        mock_hubspot.get(f"{API_BASE}/crm/v3/objects/deals").mock(
            return_value=Response(200, content=b"<html>")
        )

        with pytest.raises(DecodeError):
            await api_client.list_deals()

    async def test_unexpected_shape(self, api_client, mock_hubspot):
        mock_hubspot.get(f"{API_BASE}/crm/v3/objects/deals").mock(
            return_value=Response(200, json={"results": "nope"})
        )

        with pytest.raises(DecodeError):
            await api_client.list_deals()


class TestAssociations:
    """Tests for deal to company association lookup."""

    @pytest.mark.parametrize("to_object_id", [501, "501"])
    async def test_company_id_normalized(self, api_client, mock_hubspot, to_object_id):
        mock_hubspot.get(ASSOCIATIONS_URL).mock(
            return_value=Response(200, json={"results": [{"toObjectId": to_object_id}]})
        )

        assert await api_client.get_deal_company_id("9001") == "501"

    async def test_missing_company_id(self, api_client, mock_hubspot):
        mock_hubspot.get(ASSOCIATIONS_URL).mock(
            return_value=Response(200, json={"results": [{"associationTypes": []}]})
        )

        with pytest.raises(DecodeError):
            await api_client.get_deal_company_id("9001")

    async def test_no_association(self, api_client, mock_hubspot):
        mock_hubspot.get(ASSOCIATIONS_URL).mock(
            return_value=Response(200, json={"results": []})
        )

        assert await api_client.get_deal_company_id("9001") is None
        assert await api_client.fetch_company_details_for_deal("9001") is None


class TestCompanies:
    """Tests for company fetch and search."""

    async def test_fetch_company_details_for_deal(
        self, api_client, mock_hubspot, mock_hubspot_company
    ):
        mock_hubspot.get(ASSOCIATIONS_URL).mock(
            return_value=Response(200, json={"results": [{"toObjectId": 501}]})
        )
        mock_hubspot.get(f"{API_BASE}/crm/v3/objects/companies/501").mock(
            return_value=Response(200, json=mock_hubspot_company)
        )

        details = await api_client.fetch_company_details_for_deal("9001")

        assert details.id == "501"
        assert details.name == "Acme Corporation"
        assert details.address1 == "1 Main St"
        assert details.address2 == "Suite 200"
        assert details.city == "Springfield"
        assert details.state == "IL"
        assert details.postal_code == "62701"
        assert details.lifecycle_stage == "customer"

    async def test_blank_company_name(self, api_client, mock_hubspot):
        mock_hubspot.get(f"{API_BASE}/crm/v3/objects/companies/7").mock(
            return_value=Response(200, json={"id": "7", "properties": {"name": ""}})
        )

        details = await api_client.get_company("7")

        assert details.name == "(Unnamed company)"
        assert details.address1 is None

    async def test_search_company_by_name(
        self, api_client, mock_hubspot, mock_hubspot_company
    ):
        route = mock_hubspot.post(f"{API_BASE}/crm/v3/objects/companies/search").mock(
            return_value=Response(200, json={"results": [mock_hubspot_company]})
        )

        details = await api_client.search_company_by_name("Acme")

        assert details.id == "501"
        assert details.lifecycle_stage is None
        body = json.loads(route.calls.last.request.content)
        assert body["limit"] == 1
        assert body["filterGroups"][0]["filters"][0] == {
            "propertyName": "name",
            "operator": "CONTAINS_TOKEN",
            "value": "Acme",
        }

    async def test_search_company_no_match(self, api_client, mock_hubspot):
        mock_hubspot.post(f"{API_BASE}/crm/v3/objects/companies/search").mock(
            return_value=Response(200, json={"results": []})
        )

        assert await api_client.search_company_by_name("Nobody") is None


class TestTokenProvider:
    async def test_provider_errors_propagate(self, mock_hubspot):
        route = mock_hubspot.get(f"{API_BASE}/crm/v3/objects/deals")

        async def token_provider() -> str:
            raise NotConnectedError("No refresh token stored")

        async with HubSpotClient(token_provider) as client:
            with pytest.raises(NotConnectedError):
                await client.list_deals()

        assert not route.called
