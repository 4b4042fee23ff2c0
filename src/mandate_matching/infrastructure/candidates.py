"""Candidate sources: a local CSV export and the PostgREST company database.

Usage example:
    from pathlib import Path

    from mandate_matching.domain.companies import CandidateQuery
    from mandate_matching.infrastructure.candidates import CsvCandidateSource
    from mandate_matching.infrastructure.filesystem import LocalFileSystem

    source = CsvCandidateSource(fs=LocalFileSystem(), path=Path("data/companies.csv"))
    batch = source.fetch(CandidateQuery(countries=("NL",), page_size=50))
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from pathlib import Path
from typing import cast, override

import pandas as pd
import requests

from ..domain.companies import CandidateBatch, CandidateQuery, CompanyRecord
from ..exceptions import AuthenticationError, CircuitBreakerOpen, DataUnavailableError
from ..normalization import normalise_country_set, normalise_label, normalise_label_set
from ..observability import get_logger
from ..protocols import CandidateSource, FileSystem, HttpClient
from .validation import (
    CompanyMetricRowInput,
    CompanyRowInput,
    IncomingDataError,
    parse_company_row,
    validate_as,
)

logger = get_logger("mandate_matching.infrastructure.candidates")

COMPANY_COLUMNS = (
    "id",
    "legal_name",
    "display_name",
    "website",
    "country",
    "industry",
    "ownership_type",
)


def _records_from_rows(rows: Iterable[CompanyRowInput], *, source: str) -> list[CompanyRecord]:
    records: list[CompanyRecord] = []
    skipped = 0
    for row in rows:
        record = parse_company_row(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.warning("Skipped %d %s rows without a company id", skipped, source)
    return records


def _matches_query(record: CompanyRecord, query: CandidateQuery) -> bool:
    countries = normalise_country_set(query.countries)
    if countries and record.country_code not in countries:
        return False
    industries = normalise_label_set(query.industries)
    if industries and record.industry_label not in industries:
        return False
    text = normalise_label(query.text)
    if text and not any(text in name for name in record.name_haystacks()):
        return False
    return True


class CsvCandidateSource(CandidateSource):
    """Candidates from a CSV export of the ``companies`` table.

    The file is read on every call so edits are picked up without a restart.
    A ``latest_revenue_eur`` column, when present, supplies the size factor.
    """

    def __init__(self, *, fs: FileSystem, path: Path) -> None:
        self._fs = fs
        self._path = path

    def _load(self) -> list[CompanyRecord]:
        if not self._fs.exists(self._path):
            raise DataUnavailableError("companies", f"file not found: {self._path}")
        try:
            df = self._fs.read_csv(self._path)
        except (OSError, ValueError, pd.errors.ParserError) as exc:
            raise DataUnavailableError("companies", str(exc)) from exc
        if "id" not in df.columns:
            raise DataUnavailableError("companies", f"missing id column in {self._path}")
        rows = cast(list[CompanyRowInput], df.to_dict(orient="records"))
        return _records_from_rows(rows, source="CSV")

    @override
    def fetch(self, query: CandidateQuery) -> CandidateBatch:
        matched = [record for record in self._load() if _matches_query(record, query)]
        return CandidateBatch(
            records=tuple(matched[: query.page_size]),
            has_more=len(matched) > query.page_size,
        )

    @override
    def lookup(self, company_ids: Collection[str]) -> tuple[CompanyRecord, ...]:
        wanted = set(company_ids)
        return tuple(record for record in self._load() if record.id in wanted)


def _quote(value: str) -> str:
    """Quote a PostgREST filter value so commas and parentheses survive."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _in_filter(values: Iterable[str]) -> str:
    return "in.(" + ",".join(_quote(value) for value in values) + ")"


def build_company_params(query: CandidateQuery) -> dict[str, str]:
    """Translate a candidate query into PostgREST query-string parameters.

    Industries are matched with ``ilike`` so stored labels need not share the
    normalised casing. One extra row is requested to detect truncation.
    """
    params: dict[str, str] = {
        "select": ",".join(COMPANY_COLUMNS),
        "limit": str(query.page_size + 1),
    }
    countries = sorted(normalise_country_set(query.countries))
    if countries:
        params["country"] = _in_filter(countries)

    groups: list[str] = []
    industries = sorted(normalise_label_set(query.industries))
    if industries:
        groups.append(",".join(f"industry.ilike.{_quote(label)}" for label in industries))
    text = query.text.strip()
    if text:
        pattern = _quote(f"*{text}*")
        groups.append(f"display_name.ilike.{pattern},legal_name.ilike.{pattern}")
    if len(groups) == 1:
        params["or"] = f"({groups[0]})"
    elif groups:
        params["and"] = "(" + ",".join(f"or({group})" for group in groups) + ")"
    return params


class RestCandidateSource(CandidateSource):
    """Candidates from the ``companies`` table joined with ``company_metrics_latest``."""

    def __init__(self, *, http_client: HttpClient, base_url: str) -> None:
        self._http = http_client
        self._rest_url = f"{base_url.rstrip('/')}/rest/v1"

    def _get_rows[RowT](self, table: str, params: Mapping[str, str], schema: type[RowT]) -> RowT:
        try:
            payload = self._http.get_json(f"{self._rest_url}/{table}", params=params)
            return validate_as(schema, payload)
        except (
            requests.RequestException,
            AuthenticationError,
            CircuitBreakerOpen,
            IncomingDataError,
        ) as exc:
            raise DataUnavailableError(table, str(exc)) from exc

    def _revenue_by_company(self, company_ids: Collection[str]) -> dict[str, object]:
        if not company_ids:
            return {}
        rows = self._get_rows(
            "company_metrics_latest",
            {"select": "company_id,revenue_eur", "company_id": _in_filter(sorted(company_ids))},
            list[CompanyMetricRowInput],
        )
        revenue: dict[str, object] = {}
        for row in rows:
            company_id = str(row.get("company_id") or "").strip()
            if company_id:
                revenue[company_id] = row.get("revenue_eur")
        return revenue

    def _with_revenue(self, rows: list[CompanyRowInput]) -> list[CompanyRecord]:
        ids = {str(row.get("id") or "").strip() for row in rows} - {""}
        revenue = self._revenue_by_company(ids)
        merged: list[CompanyRowInput] = []
        for row in rows:
            company_id = str(row.get("id") or "").strip()
            merged.append(
                cast(CompanyRowInput, {**row, "latest_revenue_eur": revenue.get(company_id)})
            )
        return _records_from_rows(merged, source="companies table")

    @override
    def fetch(self, query: CandidateQuery) -> CandidateBatch:
        rows = self._get_rows("companies", build_company_params(query), list[CompanyRowInput])
        has_more = len(rows) > query.page_size
        records = self._with_revenue(rows[: query.page_size])
        logger.info("Fetched %d candidates (has_more=%s)", len(records), has_more)
        return CandidateBatch(records=tuple(records), has_more=has_more)

    @override
    def lookup(self, company_ids: Collection[str]) -> tuple[CompanyRecord, ...]:
        if not company_ids:
            return ()
        params = {"select": ",".join(COMPANY_COLUMNS), "id": _in_filter(sorted(company_ids))}
        rows = self._get_rows("companies", params, list[CompanyRowInput])
        return tuple(self._with_revenue(rows))
