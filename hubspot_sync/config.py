"""Configuration constants and OAuth settings for the HubSpot sync core."""

import os

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

HUBSPOT_API_BASE = "https://api.hubapi.com"
HUBSPOT_AUTHORIZE_URL = "https://app.hubspot.com/oauth/authorize"
HUBSPOT_TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"

# httpx timeouts (seconds)
REQUEST_TIMEOUT = 30.0
CONNECT_TIMEOUT = 10.0

HUBSPOT_SCOPES = [
    "crm.objects.deals.read",
    "crm.objects.deals.write",
    "crm.objects.companies.read",
    "crm.objects.contacts.read",
]

# A cached access token is reused only while it outlives this margin (seconds)
TOKEN_EXPIRY_SKEW = 60

# Epoch values above this are milliseconds, otherwise seconds
EPOCH_MILLISECONDS_THRESHOLD = 1_000_000_000_000

PKCE_VERIFIER_LENGTH = 64
OAUTH_STATE_LENGTH = 32

# Secret store namespace for token keys
TOKEN_NAMESPACE = "hubspot"

DEAL_PROPERTIES = [
    "dealname",
    "amount",
    "closedate",
    "dealstage",
    "forecast_category",
    "hs_forecast_category",
    "hs_lastmodifieddate",
]

DEAL_SEARCH_PROPERTIES = ["dealname", "amount", "closedate", "dealstage"]

COMPANY_PROPERTIES = [
    "name",
    "address",
    "address2",
    "city",
    "state",
    "zip",
    "lifecyclestage",
]

UNNAMED_DEAL = "(Unnamed deal)"
UNNAMED_COMPANY = "(Unnamed company)"


def get_required_env(key: str) -> str:
    """Get required environment variable with validation"""
    value = os.getenv(key)
    if not value:
        raise ConfigurationError(
            f"Required environment variable '{key}' is not set"
        )
    return value


def get_optional_env(key: str, default: str) -> str:
    """Get optional environment variable with default"""
    return os.getenv(key, default)


class OAuthConfig(BaseModel):
    """OAuth client registration and app callback target."""

    client_id: str
    client_secret: str
    redirect_uri: str
    callback_scheme: str = "salesdiver"
    callback_host: str = "hubspot"
    scopes: list[str] = Field(default_factory=lambda: list(HUBSPOT_SCOPES))
    authorize_url: str = HUBSPOT_AUTHORIZE_URL
    token_url: str = HUBSPOT_TOKEN_URL

    @classmethod
    def from_env(cls) -> "OAuthConfig":
        return cls(
            client_id=get_required_env("HUBSPOT_CLIENT_ID"),
            client_secret=get_required_env("HUBSPOT_CLIENT_SECRET"),
            redirect_uri=get_required_env("HUBSPOT_REDIRECT_URI"),
            callback_scheme=get_optional_env("HUBSPOT_CALLBACK_SCHEME", "salesdiver"),
            callback_host=get_optional_env("HUBSPOT_CALLBACK_HOST", "hubspot"),
        )
