from .client import HubSpotClient
from .config import OAuthConfig
from .events import EntityChanged, EntityKind, SyncBootstrapper
from .exceptions import (
    AuthError,
    ConfigurationError,
    DecodeError,
    HttpError,
    HubSpotSyncError,
    MissingVerifierError,
    NotConnectedError,
    StateMismatchError,
    TokenRequestError,
)
from .importer import DealImporter, ImportResult
from .logger import setup_logging
from .models import (
    AuthorizationRequest,
    CompanyType,
    DealSummary,
    ForecastCategory,
    LocalCompany,
    LocalOpportunity,
    OAuthTokenRecord,
    PKCESession,
    RemoteCompanyDetails,
    SyncDirection,
    SyncOutcome,
    TokenResponse,
)
from .oauth import OAuthSession
from .reconcile import ReconciliationEngine, resolve_direction
from .store import InMemoryLocalStore, LocalStore
from .token_store import FileSecretStore, MemorySecretStore, SecretStore, TokenStore

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "OAuthSession",
    "HubSpotClient",
    "ReconciliationEngine",
    "SyncBootstrapper",
    "DealImporter",
    "resolve_direction",
    "setup_logging",
    # Storage
    "SecretStore",
    "MemorySecretStore",
    "FileSecretStore",
    "TokenStore",
    "LocalStore",
    "InMemoryLocalStore",
    # Models
    "OAuthConfig",
    "AuthorizationRequest",
    "PKCESession",
    "OAuthTokenRecord",
    "TokenResponse",
    "LocalOpportunity",
    "LocalCompany",
    "RemoteCompanyDetails",
    "DealSummary",
    "ForecastCategory",
    "CompanyType",
    "SyncDirection",
    "SyncOutcome",
    "EntityChanged",
    "EntityKind",
    "ImportResult",
    # Exceptions
    "HubSpotSyncError",
    "ConfigurationError",
    "AuthError",
    "NotConnectedError",
    "StateMismatchError",
    "MissingVerifierError",
    "TokenRequestError",
    "HttpError",
    "DecodeError",
]
