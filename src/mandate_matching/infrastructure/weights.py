"""JSON-file weight store with per-mandate compare-and-swap versions.

File layout::

    {
      "schema_version": 1,
      "mandates": {
        "m-123": {"version": 3, "weights": {"sector": 0.4, ...}, "updated_at": "..."}
      }
    }
"""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import override

from ..domain.weights import StoredWeights, WeightVector, build_weights
from ..exceptions import DataUnavailableError, InvalidWeightsError, WeightConflictError
from ..observability import get_logger
from ..protocols import FileSystem, WeightStore
from .validation import IncomingDataError, StoredWeightsEntryInput, WeightsFileInput, validate_as

logger = get_logger("mandate_matching.infrastructure.weights")

_SCHEMA_VERSION = 1
_SOURCE = "scoring_weights"


class JsonWeightStore(WeightStore):
    """Weights persisted in a single JSON document.

    Writes are serialised with a lock and replace the file atomically; reads
    take no lock and may observe the previous snapshot.
    """

    def __init__(self, *, fs: FileSystem, path: Path) -> None:
        self._fs = fs
        self._path = path
        self._write_lock = threading.Lock()

    def _read_document(self) -> dict[str, StoredWeightsEntryInput]:
        if not self._fs.exists(self._path):
            return {}
        try:
            payload = self._fs.read_json(self._path)
            document = validate_as(WeightsFileInput, payload)
        except (OSError, json.JSONDecodeError, IncomingDataError) as exc:
            raise DataUnavailableError(_SOURCE, f"{self._path}: {exc}") from exc
        return dict(document.get("mandates", {}))

    @staticmethod
    def _entry_to_stored(mandate_id: str, entry: StoredWeightsEntryInput) -> StoredWeights:
        try:
            weights = build_weights(entry.get("weights", {}))
        except InvalidWeightsError as exc:
            raise DataUnavailableError(_SOURCE, f"{mandate_id}: {exc.reason}") from exc
        return StoredWeights(
            mandate_id=mandate_id,
            weights=weights,
            version=int(entry.get("version", 0)),
        )

    @override
    def get(self, mandate_id: str) -> StoredWeights | None:
        entry = self._read_document().get(mandate_id)
        if entry is None:
            return None
        return self._entry_to_stored(mandate_id, entry)

    @override
    def set(
        self,
        mandate_id: str,
        weights: WeightVector,
        *,
        expected_version: int,
    ) -> StoredWeights:
        with self._write_lock:
            mandates = self._read_document()
            current = mandates.get(mandate_id)
            actual_version = 0 if current is None else int(current.get("version", 0))
            if actual_version != expected_version:
                raise WeightConflictError(mandate_id, expected_version, actual_version)

            new_version = actual_version + 1
            mandates[mandate_id] = {
                "version": new_version,
                "weights": weights.as_dict(),
                "updated_at": datetime.now(UTC).isoformat(),
            }
            document = {"schema_version": _SCHEMA_VERSION, "mandates": mandates}
            try:
                self._fs.write_json(document, self._path)
            except OSError as exc:
                raise DataUnavailableError(_SOURCE, f"{self._path}: {exc}") from exc
            logger.info("Stored weights for %s (version %d)", mandate_id, new_version)
            return StoredWeights(mandate_id=mandate_id, weights=weights, version=new_version)
