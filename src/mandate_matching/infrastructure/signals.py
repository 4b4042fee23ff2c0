"""Append-only CSV learning signal log."""

from __future__ import annotations

import threading
from collections.abc import Collection
from datetime import datetime
from pathlib import Path
from typing import override

import pandas as pd

from ..domain.signals import LearningSignal, SignalBatch, SignalType, parse_signal, signal_to_row
from ..exceptions import DataUnavailableError, MalformedSignalError
from ..observability import get_logger
from ..protocols import FileSystem, SignalLog

logger = get_logger("mandate_matching.infrastructure.signals")

SIGNAL_COLUMNS = ("mandate_id", "company_id", "signal", "weight", "recorded_at")
_SOURCE = "learning_signals"


class CsvSignalLog(SignalLog):
    """Learning signals appended to a CSV file, one row per user action."""

    def __init__(self, *, fs: FileSystem, path: Path) -> None:
        self._fs = fs
        self._path = path
        self._append_lock = threading.Lock()

    @override
    def append(self, signal: LearningSignal) -> None:
        df = pd.DataFrame([signal_to_row(signal)], columns=list(SIGNAL_COLUMNS))
        with self._append_lock:
            try:
                self._fs.append_csv(df, self._path)
            except OSError as exc:
                raise DataUnavailableError(_SOURCE, f"{self._path}: {exc}") from exc

    def _rows(self) -> list[dict[str, object]]:
        if not self._fs.exists(self._path):
            return []
        try:
            df = self._fs.read_csv(self._path)
        except (OSError, ValueError, pd.errors.ParserError) as exc:
            raise DataUnavailableError(_SOURCE, f"{self._path}: {exc}") from exc
        return [{str(key): value for key, value in row.items()} for row in df.to_dict("records")]

    @override
    def fetch(
        self,
        mandate_id: str,
        *,
        signal_types: Collection[SignalType] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> SignalBatch:
        signals: list[LearningSignal] = []
        malformed = 0
        for row in self._rows():
            if str(row.get("mandate_id") or "").strip() != mandate_id:
                continue
            try:
                signal = parse_signal(row)
            except MalformedSignalError as exc:
                malformed += 1
                logger.warning("Skipping signal row for %s: %s", mandate_id, exc.reason)
                continue
            if signal_types is not None and signal.signal not in signal_types:
                continue
            if since is not None and signal.recorded_at < since:
                continue
            if until is not None and signal.recorded_at >= until:
                continue
            signals.append(signal)
        return SignalBatch(signals=tuple(signals), malformed=malformed)

    @override
    def mandate_ids(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for row in self._rows():
            mandate_id = str(row.get("mandate_id") or "").strip()
            if mandate_id:
                seen.setdefault(mandate_id, None)
        return tuple(seen)
