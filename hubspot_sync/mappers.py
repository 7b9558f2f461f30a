"""Field mapping between HubSpot payloads and local records.

HubSpot payloads are loosely typed: a field may sit at the top level or under
``properties``, and either place may hold a bare scalar or a ``{"value": ...}``
wrapper. Everything here is pure and total: malformed values degrade to
``0`` / ``None`` / ``ForecastCategory.OMITTED`` instead of raising.
"""

import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from .config import EPOCH_MILLISECONDS_THRESHOLD
from .models import (
    CompanyType,
    ForecastCategory,
    LocalCompany,
    LocalOpportunity,
    RemoteCompanyDetails,
)

COMPANY_NAME_SEPARATORS = [" - ", " – ", " — ", ":", "|"]

_FORECAST_TOKENS: dict[str, ForecastCategory] = {
    "pipeline": ForecastCategory.PIPELINE,
    "bestcase": ForecastCategory.BEST_CASE,
    "mostlikely": ForecastCategory.BEST_CASE,
    "commit": ForecastCategory.COMMIT,
    "closed": ForecastCategory.CLOSED,
    "closedwon": ForecastCategory.CLOSED,
}

_LIFECYCLE_COMPANY_TYPES: dict[str, CompanyType] = {
    "opportunity": CompanyType.PROSPECT,
    "customer": CompanyType.CUSTOMER,
}


def extract_field(payload: Mapping[str, Any], key: str) -> Any | None:
    """
    Look up a field wherever HubSpot put it.

    Lookup order, first match wins:
    1. ``payload[key]`` as a scalar
    2. ``payload[key]["value"]``
    3. ``payload["properties"][key]`` as a scalar
    4. ``payload["properties"][key]["value"]``
    """
    containers: list[Mapping[str, Any]] = [payload]
    properties = payload.get("properties")
    if isinstance(properties, Mapping):
        containers.append(properties)

    for container in containers:
        value = container.get(key)
        if isinstance(value, Mapping):
            value = value.get("value")
        if value is not None:
            return value
    return None


def extract_string(payload: Mapping[str, Any], key: str) -> str | None:
    """extract_field() narrowed to strings; integer values are stringified."""
    value = extract_field(payload, key)
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def parse_amount(value: str | int | float | Decimal | None) -> Decimal:
    """Parse a HubSpot amount. Empty, missing or unparsable yields 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    text = str(value).strip()
    if not text:
        return Decimal(0)
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return Decimal(0)
    if not amount.is_finite():
        return Decimal(0)
    return amount


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Time of day, fraction of any length and a Z, +HHMM or +HH:MM offset
_ISO_TIME = re.compile(
    r"(\d{2}:\d{2}(?::\d{2})?)(?:[.,](\d+))?([Zz]|[+-]\d{2}(?::?\d{2})?)?$"
)


def _normalize_iso(text: str) -> str:
    """Rewrite the time part into the form datetime.fromisoformat() takes on 3.10."""
    match = _ISO_TIME.search(text)
    if match is None:
        return text
    clock, fraction, offset = match.groups()
    normalized = clock
    if fraction:
        normalized += "." + fraction[:6].ljust(6, "0")
    if offset in ("Z", "z"):
        normalized += "+00:00"
    elif offset:
        normalized += offset[:3] + ":" + (offset[3:].lstrip(":") or "00")
    return text[: match.start()] + normalized


def _parse_iso(text: str) -> datetime | None:
    try:
        return as_utc(datetime.fromisoformat(_normalize_iso(text)))
    except ValueError:
        return None


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(Decimal(value.strip()))
        except InvalidOperation:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _from_epoch_seconds(seconds: float) -> datetime | None:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def epoch_to_datetime(raw: float) -> datetime | None:
    """
    Convert an epoch number of unknown unit.

    Values above 10^12 are taken as milliseconds, everything else as seconds.
    This misreads genuine second timestamps past roughly year 33658.
    """
    if raw > EPOCH_MILLISECONDS_THRESHOLD:
        return _from_epoch_seconds(raw / 1000.0)
    return _from_epoch_seconds(raw)


def parse_date_flexible(value: Any) -> datetime | None:
    """
    Parse a HubSpot date: ISO 8601 first, then an epoch number.

    ISO strings may carry fractional seconds, a trailing ``Z`` or a numeric
    offset; naive values are read as UTC. Epoch values may be numbers or
    numeric strings in seconds or milliseconds, see epoch_to_datetime().
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # Bare digit strings are epochs, not compact ISO dates
        if not text.lstrip("+-").replace(".", "", 1).isdigit():
            parsed = _parse_iso(text)
            if parsed is not None:
                return parsed
        value = text

    number = _to_number(value)
    if number is None:
        return None
    return epoch_to_datetime(number)


def parse_last_modified(value: Any) -> datetime | None:
    """Parse ``hs_lastmodifieddate``: epoch milliseconds, or ISO 8601."""
    if value is None or isinstance(value, bool):
        return None
    number = _to_number(value)
    if number is not None:
        return _from_epoch_seconds(number / 1000.0)
    if isinstance(value, str) and value.strip():
        return _parse_iso(value.strip())
    return None


def normalize_forecast_token(value: str | None) -> str | None:
    """Lowercase and drop spaces/underscores: "Best Case" -> "bestcase"."""
    if not isinstance(value, str):
        return None
    token = value.strip().lower().replace(" ", "").replace("_", "")
    return token or None


def map_forecast_category(token: str | None) -> ForecastCategory:
    if not token:
        return ForecastCategory.OMITTED
    return _FORECAST_TOKENS.get(token.lower(), ForecastCategory.OMITTED)


def reverse_map_forecast_category(category: ForecastCategory) -> str:
    return ForecastCategory(category).value


def map_deal_stage_to_forecast(stage: str) -> ForecastCategory:
    """Fallback forecast derived from a pipeline stage name."""
    s = stage.lower()
    if "closedwon" in s:
        return ForecastCategory.CLOSED
    if "contract" in s or "decision" in s:
        return ForecastCategory.COMMIT
    if "qualified" in s or "proposal" in s:
        return ForecastCategory.BEST_CASE
    return ForecastCategory.PIPELINE


def resolve_forecast_category(payload: Mapping[str, Any]) -> ForecastCategory | None:
    """
    Pick the forecast of a deal from a single source.

    ``forecast_category`` wins over ``hs_forecast_category``, which wins over
    a value derived from ``dealstage``. None when no source is present.
    """
    for key in ("forecast_category", "hs_forecast_category"):
        token = normalize_forecast_token(extract_string(payload, key))
        if token:
            return map_forecast_category(token)

    stage = extract_string(payload, "dealstage")
    if stage and stage.strip():
        return map_deal_stage_to_forecast(stage)
    return None


def map_lifecycle_stage(stage: str | None) -> CompanyType | None:
    """Company type for a lifecycle stage, or None to leave it unchanged."""
    if not stage:
        return None
    return _LIFECYCLE_COMPANY_TYPES.get(stage.strip().lower())


def derive_company_name(deal_name: str) -> str:
    """Guess a company name from a deal name like "Acme Corp - Q3 Renewal"."""
    for separator in COMPANY_NAME_SEPARATORS:
        if separator not in deal_name:
            continue
        for component in deal_name.split(separator):
            trimmed = component.strip()
            if trimmed:
                return trimmed
    return deal_name.strip()


def apply_remote_deal(
    remote: Mapping[str, Any], opportunity: LocalOpportunity
) -> list[str]:
    """
    Overwrite local opportunity fields with values from a deal payload.

    Fields absent from the payload keep their local value. Returns the names
    of the fields that were written.
    """
    applied: list[str] = []

    remote_id = extract_string(remote, "id")
    if remote_id:
        opportunity.remote_id = remote_id
        applied.append("remote_id")

    name = extract_string(remote, "dealname") or extract_string(remote, "name")
    if name and name.strip():
        opportunity.name = name.strip()
        applied.append("name")

    amount = extract_field(remote, "amount")
    if amount is not None:
        opportunity.estimated_value = parse_amount(amount)
        applied.append("estimated_value")

    close_date = parse_date_flexible(extract_field(remote, "closedate"))
    if close_date is not None:
        opportunity.close_date = close_date
        applied.append("close_date")

    forecast = resolve_forecast_category(remote)
    if forecast is not None:
        opportunity.forecast_category = forecast
        applied.append("forecast_category")

    return applied


def apply_remote_company(details: RemoteCompanyDetails, company: LocalCompany) -> None:
    if details.name.strip():
        company.name = details.name.strip()
    if details.address1 is not None:
        company.address1 = details.address1
    if details.address2 is not None:
        company.address2 = details.address2
    if details.city is not None:
        company.city = details.city
    if details.state is not None:
        company.state = details.state
    if details.postal_code is not None:
        company.postal_code = details.postal_code

    company_type = map_lifecycle_stage(details.lifecycle_stage)
    if company_type is not None:
        company.company_type = company_type
    company.remote_id = details.id


# Push direction builders. Reconciliation does not send these upstream yet.


def build_deal_update_payload(opportunity: LocalOpportunity) -> dict[str, str]:
    payload: dict[str, str] = {}
    if opportunity.name:
        payload["dealname"] = opportunity.name
    payload["amount"] = str(opportunity.estimated_value)
    if opportunity.close_date is not None:
        millis = int(as_utc(opportunity.close_date).timestamp() * 1000)
        payload["closedate"] = str(millis)
    payload["hs_forecast_category"] = reverse_map_forecast_category(
        opportunity.forecast_category
    )
    return payload


def build_company_update_payload(company: LocalCompany) -> dict[str, str]:
    payload: dict[str, str] = {}
    if company.name:
        payload["name"] = company.name
    if company.address1 is not None:
        payload["address"] = company.address1
    if company.address2 is not None:
        payload["address2"] = company.address2
    if company.city is not None:
        payload["city"] = company.city
    if company.state is not None:
        payload["state"] = company.state
    if company.postal_code is not None:
        payload["zip"] = company.postal_code
    return payload
