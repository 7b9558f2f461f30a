"""Test fixtures for HubSpot sync tests."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from hubspot_sync import (
    HubSpotClient,
    InMemoryLocalStore,
    MemorySecretStore,
    OAuthConfig,
    OAuthSession,
    TokenStore,
)

NOW = datetime(2026, 1, 25, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock injected into the OAuth session."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def oauth_config():
    return OAuthConfig(
        client_id="client-123",
        client_secret="secret-456",
        redirect_uri="salesdiver://hubspot/callback",
    )


@pytest.fixture
def secrets():
    return MemorySecretStore()


@pytest.fixture
def token_store(secrets):
    return TokenStore(secrets)


@pytest.fixture
def connected_token_store(secrets, token_store):
    """Token store holding an access token valid for one hour."""
    secrets.write("hubspot.access_token", "access-abc")
    secrets.write("hubspot.refresh_token", "refresh-xyz")
    secrets.write(
        "hubspot.access_expires_at", str((NOW + timedelta(hours=1)).timestamp())
    )
    return token_store


@pytest.fixture
def mock_hubspot():
    """Mock HubSpot API and token endpoint."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
async def oauth_session(oauth_config, token_store, http_client, clock):
    return OAuthSession(oauth_config, token_store, http_client=http_client, clock=clock)


@pytest.fixture
async def connected_session(oauth_config, connected_token_store, http_client, clock):
    return OAuthSession(
        oauth_config, connected_token_store, http_client=http_client, clock=clock
    )


@pytest.fixture
async def api_client():
    async def token_provider() -> str:
        return "access-abc"

    async with HubSpotClient(token_provider) as client:
        yield client


@pytest.fixture
def local_store():
    return InMemoryLocalStore()


@pytest.fixture
def mock_hubspot_deal():
    """Create a mock HubSpot deal object."""
    return {
        "id": "9001",
        "properties": {
            "dealname": "Acme Corp - Q3 Renewal",
            "amount": "12500.50",
            "closedate": "2026-03-31T00:00:00.000Z",
            "dealstage": "contractsent",
            "hs_forecast_category": "BEST_CASE",
            "hs_lastmodifieddate": "1769342400000",
        },
    }


@pytest.fixture
def mock_hubspot_company():
    """Create a mock HubSpot company object."""
    return {
        "id": "501",
        "properties": {
            "name": "Acme Corporation",
            "address": "1 Main St",
            "address2": "Suite 200",
            "city": "Springfield",
            "state": "IL",
            "zip": "62701",
            "lifecyclestage": "customer",
        },
    }
