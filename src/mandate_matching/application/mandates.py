"""Loading and strict validation for the mandate catalogue.

The catalogue holds each mandate's own criteria plus the DNA segments
attached to it. Only ``active`` segments contribute to the resolved criteria.

Usage example (``data/reference/mandates.json``)::

    {
      "schema_version": 1,
      "mandates": [
        {"id": "m-1", "name": "Benelux SaaS", "criteria": {"geo_allow": ["NL", "BE"]}}
      ],
      "segments": [
        {"id": "s-1", "mandate_id": "m-1", "name": "Founder-led", "status": "active",
         "criteria": {"ownership_allow": ["founder-led"], "excluded_keywords": ["holding"]}}
      ]
    }
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, override

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from ..config_file import format_validation_error
from ..domain.criteria import CriteriaModel, merge_criteria
from ..exceptions import (
    InvalidCriteriaError,
    MandateCatalogFileNotFoundError,
    MandateCatalogValidationError,
    MandateNotFoundError,
)
from ..observability import get_logger
from ..protocols import CriteriaRepository, FileSystem
from .payloads import CriteriaPayload

logger = get_logger("mandate_matching.application.mandates")

_SCHEMA_VERSION = 1

SegmentStatus = Literal["draft", "active", "paused"]


class _MandateModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    name: str = ""
    criteria: CriteriaPayload = CriteriaPayload()

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError
        return text


class _SegmentModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    mandate_id: str
    name: str = ""
    status: SegmentStatus = "draft"
    criteria: CriteriaPayload = CriteriaPayload()

    @field_validator("id", "mandate_id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError
        return text


class _MandateCatalogModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    mandates: tuple[_MandateModel, ...]
    segments: tuple[_SegmentModel, ...] = ()

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value

    @model_validator(mode="after")
    def _validate_references(self) -> _MandateCatalogModel:
        mandate_ids = [mandate.id for mandate in self.mandates]
        if len(set(mandate_ids)) != len(mandate_ids):
            raise ValueError("duplicate mandate id")
        segment_ids = [segment.id for segment in self.segments]
        if len(set(segment_ids)) != len(segment_ids):
            raise ValueError("duplicate segment id")
        known = set(mandate_ids)
        for segment in self.segments:
            if segment.mandate_id not in known:
                raise ValueError(f"segment {segment.id} references unknown mandate")
        return self


@dataclass(frozen=True)
class MandateCatalog:
    """Resolved criteria per mandate id."""

    criteria_by_mandate: dict[str, CriteriaModel]
    names: dict[str, str]

    def resolve(self, mandate_id: str) -> CriteriaModel:
        criteria = self.criteria_by_mandate.get(mandate_id)
        if criteria is None:
            raise MandateNotFoundError(mandate_id)
        return criteria


def _resolve_mandate(
    mandate: _MandateModel,
    segments: tuple[_SegmentModel, ...],
    path: Path,
) -> CriteriaModel:
    active = [segment for segment in segments if segment.status == "active"]
    try:
        return merge_criteria(
            mandate.criteria.to_criteria(),
            *(segment.criteria.to_criteria() for segment in active),
        )
    except InvalidCriteriaError as exc:
        detail = f"mandate {mandate.id}: {exc.reason}"
        raise MandateCatalogValidationError(str(path), detail) from exc


def load_mandate_catalog(*, path: Path, fs: FileSystem) -> MandateCatalog:
    """Load, validate and resolve a mandate catalogue from JSON."""
    if not fs.exists(path):
        raise MandateCatalogFileNotFoundError(str(path))

    payload = fs.read_text(path)
    try:
        model = _MandateCatalogModel.model_validate_json(payload)
    except ValidationError as exc:
        raise MandateCatalogValidationError(str(path), format_validation_error(exc)) from exc

    criteria_by_mandate: dict[str, CriteriaModel] = {}
    for mandate in model.mandates:
        attached = tuple(segment for segment in model.segments if segment.mandate_id == mandate.id)
        criteria_by_mandate[mandate.id] = _resolve_mandate(mandate, attached, path)
    return MandateCatalog(
        criteria_by_mandate=criteria_by_mandate,
        names={mandate.id: mandate.name for mandate in model.mandates},
    )


class JsonMandateCatalog(CriteriaRepository):
    """Criteria repository backed by the catalogue file, loaded on first use."""

    def __init__(self, *, fs: FileSystem, path: Path) -> None:
        self._fs = fs
        self._path = path
        self._catalog: MandateCatalog | None = None
        self._lock = threading.Lock()

    def catalog(self) -> MandateCatalog:
        with self._lock:
            if self._catalog is None:
                self._catalog = load_mandate_catalog(path=self._path, fs=self._fs)
                logger.info(
                    "Loaded %d mandates from %s",
                    len(self._catalog.criteria_by_mandate),
                    self._path,
                )
            return self._catalog

    @override
    def load(self, mandate_id: str) -> CriteriaModel:
        return self.catalog().resolve(mandate_id)
