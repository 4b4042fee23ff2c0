"""Validated request payloads shared by the HTTP surface, CLI and mandate catalogue.

Criteria arrive in two shapes. The flat shape mirrors a DNA segment row::

    {"geo_allow": ["NL"], "industry_allow": ["SaaS"], "revenue_min": 1000000}

The nested shape is what the search endpoint historically accepted::

    {"geography": {"countries": ["NL"]}, "industry": {"group": ["SaaS"], "keywords": ["cloud"]},
     "size": {"revenue_eur_min": 1000000, "revenue_eur_max": 50000000},
     "ownership": ["founder-led"]}

Both are lifted into the same flat model before field validation.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from ..domain.criteria import CriteriaModel, build_criteria
from ..domain.pricing import Plan, PricingInputs

# nested section -> (nested key, flat field)
_NESTED_KEYS: dict[str, tuple[tuple[str, str], ...]] = {
    "geography": (
        ("countries", "geography_allow"),
        ("block", "geography_block"),
        ("exclude", "geography_block"),
    ),
    "industry": (
        ("group", "industry_allow"),
        ("keywords", "included_keywords"),
        ("excluded_keywords", "excluded_keywords"),
    ),
    "size": (
        ("revenue_eur_min", "revenue_min"),
        ("revenue_eur_max", "revenue_max"),
        ("employees_min", "size_employees_min"),
        ("employees_max", "size_employees_max"),
    ),
}


def _lift_section(flat: dict[str, object], section: str, nested: object) -> None:
    if nested is None:
        return
    if not isinstance(nested, dict):
        raise ValueError(f"{section} must be an object")
    for key, value in nested.items():
        target = next((flat_key for name, flat_key in _NESTED_KEYS[section] if name == key), None)
        if target is None:
            raise ValueError(f"unknown field {section}.{key}")
        existing = flat.get(target)
        if isinstance(existing, list) and isinstance(value, list):
            flat[target] = [*existing, *value]
        else:
            flat[target] = value


class CriteriaPayload(BaseModel):
    """Targeting criteria as received from a client or a catalogue file."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    geography_allow: tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("geography_allow", "geo_allow")
    )
    geography_block: tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("geography_block", "geo_block")
    )
    industry_allow: tuple[str, ...] = ()
    size_employees_min: int | None = None
    size_employees_max: int | None = None
    revenue_min: float | None = None
    revenue_max: float | None = None
    ownership_allow: tuple[str, ...] = ()
    included_keywords: tuple[str, ...] = ()
    excluded_keywords: tuple[str, ...] = ()
    contact_roles: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_shape(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        flat: dict[str, object] = dict(data)
        for section in _NESTED_KEYS:
            _lift_section(flat, section, flat.pop(section, None))
        ownership = flat.pop("ownership", None)
        if ownership is not None:
            flat["ownership_allow"] = ownership
        return flat

    def to_criteria(self) -> CriteriaModel:
        """Normalise into a domain criteria model.

        Raises:
            InvalidCriteriaError: When ranges are inverted or bounds are negative.
        """
        return build_criteria(
            geography_allow=self.geography_allow,
            geography_block=self.geography_block,
            industry_allow=self.industry_allow,
            size_employees_min=self.size_employees_min,
            size_employees_max=self.size_employees_max,
            revenue_min=self.revenue_min,
            revenue_max=self.revenue_max,
            ownership_allow=self.ownership_allow,
            included_keywords=self.included_keywords,
            excluded_keywords=self.excluded_keywords,
            contact_roles=self.contact_roles,
        )


def _strip_optional_id(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    mandate_id: str | None = None
    criteria: CriteriaPayload | None = None
    query: str = ""
    limit: int | None = Field(default=None, ge=1, le=1000)

    @field_validator("mandate_id")
    @classmethod
    def _validate_mandate_id(cls, value: str | None) -> str | None:
        return _strip_optional_id(value)


class RetrainRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    mandate_id: str | None = None

    @field_validator("mandate_id")
    @classmethod
    def _validate_mandate_id(cls, value: str | None) -> str | None:
        return _strip_optional_id(value)


class SignalRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    mandate_id: str
    company_id: str
    signal: str
    weight: int | None = None

    @field_validator("mandate_id", "company_id", "signal")
    @classmethod
    def _validate_non_empty(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be blank")
        return text


class PricingRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    org_id: str
    plan: Plan = "free"
    usage: dict[str, float] = Field(default_factory=dict)
    revenue_eur: float = Field(default=0.0, ge=0.0)
    cost_eur: float = Field(default=0.0, ge=0.0)
    tenure_months: float = Field(default=0.0, ge=0.0)
    activity_score: float = Field(default=0.0, ge=0.0)

    @field_validator("usage")
    @classmethod
    def _validate_usage(cls, value: dict[str, float]) -> dict[str, float]:
        for metric, quantity in value.items():
            if not metric.strip():
                raise ValueError("usage metric names must not be blank")
            if quantity < 0:
                raise ValueError("usage quantities must not be negative")
        return value

    def to_inputs(self) -> PricingInputs:
        return PricingInputs(
            org_id=self.org_id,
            plan=self.plan,
            usage=dict(self.usage),
            revenue_eur=self.revenue_eur,
            cost_eur=self.cost_eur,
            tenure_months=self.tenure_months,
            activity_score=self.activity_score,
        )
