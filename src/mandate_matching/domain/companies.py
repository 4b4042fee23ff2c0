"""Read-only company records used by the scoring function."""

from __future__ import annotations

from dataclasses import dataclass

from ..normalization import normalise_country, normalise_label


@dataclass(frozen=True)
class CompanyRecord:
    """Projection of a candidate company; immutable for the duration of a scoring pass.

    Missing attributes are empty strings (or ``None`` for revenue) so that an
    incomplete record only fails the factors that depend on the missing field.
    """

    id: str
    legal_name: str = ""
    display_name: str = ""
    website: str = ""
    country: str = ""
    industry: str = ""
    ownership_type: str = ""
    latest_revenue_eur: float | None = None

    @property
    def country_code(self) -> str:
        return normalise_country(self.country)

    @property
    def industry_label(self) -> str:
        return normalise_label(self.industry)

    @property
    def ownership_label(self) -> str:
        return normalise_label(self.ownership_type)

    def name_haystacks(self) -> tuple[str, ...]:
        """Lower-cased display and legal names, as searched by keyword rules."""
        names = (normalise_label(name) for name in (self.display_name, self.legal_name))
        return tuple(name for name in names if name)


@dataclass(frozen=True)
class CandidateQuery:
    """Coarse candidate filters plus free text, passed to a candidate source.

    Empty ``countries``/``industries`` mean no pre-filter on that field.
    """

    text: str = ""
    countries: tuple[str, ...] = ()
    industries: tuple[str, ...] = ()
    page_size: int = 100


@dataclass(frozen=True)
class CandidateBatch:
    """A finite batch of candidates and whether more were available."""

    records: tuple[CompanyRecord, ...]
    has_more: bool = False
