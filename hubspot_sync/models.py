import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum

from pydantic import BaseModel, Field


class ForecastCategory(str, Enum):
    OMITTED = "omitted"
    PIPELINE = "pipeline"
    BEST_CASE = "bestcase"
    COMMIT = "commit"
    CLOSED = "closed"


class CompanyType(IntEnum):
    UNKNOWN = 0
    CUSTOMER = 1
    PROSPECT = 3


class SyncDirection(str, Enum):
    PULL = "pull"
    PUSH = "push"


class SyncOutcome(str, Enum):
    SKIPPED = "skipped"
    PULLED = "pulled"
    PUSH_PENDING = "push_pending"


def _new_id() -> str:
    return str(uuid.uuid4())


class LocalOpportunity(BaseModel):
    """Opportunity as held by the local store."""

    model_config = {"validate_assignment": True}

    id: str = Field(default_factory=_new_id)
    remote_id: str | None = None
    name: str = ""
    estimated_value: Decimal = Decimal("0")
    close_date: datetime | None = None
    forecast_category: ForecastCategory = ForecastCategory.OMITTED
    last_modified: datetime | None = None
    company_id: str | None = None


class LocalCompany(BaseModel):
    """Company as held by the local store."""

    model_config = {"validate_assignment": True}

    id: str = Field(default_factory=_new_id)
    remote_id: str | None = None
    name: str = ""
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    company_type: CompanyType = CompanyType.UNKNOWN
    last_modified: datetime | None = None


class RemoteCompanyDetails(BaseModel):
    id: str
    name: str
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    lifecycle_stage: str | None = None


class DealSummary(BaseModel):
    id: str
    name: str


class TokenResponse(BaseModel):
    """Token endpoint response body."""

    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int


class OAuthTokenRecord(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None


class AuthorizationRequest(BaseModel):
    url: str
    state: str


@dataclass(frozen=True)
class PKCESession:
    """In-flight authorization attempt. Consumed by exactly one callback."""

    code_verifier: str
    expected_state: str
