"""Pydantic-based validation helpers for inbound IO payloads.

Rows from the company database and the weights state file are untrusted;
they are validated into loose TypedDict shapes and then projected onto
domain records with explicit coercion.
"""

from __future__ import annotations

from typing import TypedDict

from pydantic import TypeAdapter, ValidationError

from ..domain.companies import CompanyRecord
from ..normalization import parse_optional_amount


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


class CompanyRowInput(TypedDict, total=False):
    id: str | int | None
    legal_name: str | None
    display_name: str | None
    website: str | None
    country: str | None
    industry: str | None
    ownership_type: str | None
    latest_revenue_eur: str | float | int | None


class CompanyMetricRowInput(TypedDict, total=False):
    company_id: str | int | None
    revenue_eur: str | float | int | None


class StoredWeightsEntryInput(TypedDict, total=False):
    version: int
    weights: dict[str, float]
    updated_at: str | None


class WeightsFileInput(TypedDict, total=False):
    schema_version: int
    mandates: dict[str, StoredWeightsEntryInput]


def validate_as[SchemaT](schema: type[SchemaT], payload: object) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        message = f"Invalid payload for {schema}."
        raise IncomingDataError(message) from exc


def _as_str(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_company_row(row: CompanyRowInput) -> CompanyRecord | None:
    """Project a raw company row onto a record; rows without an id return None."""
    company_id = _as_str(row.get("id"))
    if not company_id:
        return None
    return CompanyRecord(
        id=company_id,
        legal_name=_as_str(row.get("legal_name")),
        display_name=_as_str(row.get("display_name")),
        website=_as_str(row.get("website")),
        country=_as_str(row.get("country")),
        industry=_as_str(row.get("industry")),
        ownership_type=_as_str(row.get("ownership_type")),
        latest_revenue_eur=parse_optional_amount(row.get("latest_revenue_eur")),
    )
