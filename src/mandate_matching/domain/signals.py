"""Learning signals: user actions recorded against a mandate's companies.

Usage example:
    from mandate_matching.domain.signals import parse_signal

    signal = parse_signal({"mandate_id": "m1", "company_id": "c1", "signal": "favorite"})
    assert signal.weight == 1
    assert signal.is_positive
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Literal, cast

from ..exceptions import MalformedSignalError

SignalType = Literal["favorite", "reject", "request_match", "reply", "meeting", "bounce"]

SIGNAL_TYPES: tuple[SignalType, ...] = (
    "favorite",
    "reject",
    "request_match",
    "reply",
    "meeting",
    "bounce",
)

# Signed default strength recorded with each action.
DEFAULT_SIGNAL_WEIGHTS: Mapping[SignalType, int] = MappingProxyType(
    {
        "favorite": 1,
        "request_match": 2,
        "reply": 3,
        "meeting": 4,
        "reject": -1,
        "bounce": -2,
    }
)


@dataclass(frozen=True)
class LearningSignal:
    """Immutable log entry; appended at action time and aggregated later."""

    mandate_id: str
    company_id: str
    signal: SignalType
    weight: int
    recorded_at: datetime

    @property
    def is_positive(self) -> bool:
        return self.weight > 0

    @property
    def is_negative(self) -> bool:
        return self.weight < 0


def build_signal(
    *,
    mandate_id: str,
    company_id: str,
    signal: str,
    weight: int | None = None,
    recorded_at: datetime | None = None,
) -> LearningSignal:
    """Create a signal for recording, defaulting the weight from its type."""
    signal_type = _parse_signal_type(signal)
    mandate = mandate_id.strip()
    company = company_id.strip()
    if not mandate:
        raise MalformedSignalError("mandate_id is required")
    if not company:
        raise MalformedSignalError("company_id is required")
    return LearningSignal(
        mandate_id=mandate,
        company_id=company,
        signal=signal_type,
        weight=DEFAULT_SIGNAL_WEIGHTS[signal_type] if weight is None else weight,
        recorded_at=recorded_at or datetime.now(UTC),
    )


def _parse_signal_type(value: object) -> SignalType:
    text = str(value or "").strip().lower()
    if text not in SIGNAL_TYPES:
        raise MalformedSignalError(f"unrecognised signal type {value!r}")
    return cast(SignalType, text)


def _parse_weight(value: object, signal_type: SignalType) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_SIGNAL_WEIGHTS[signal_type]
    if isinstance(value, bool):
        raise MalformedSignalError(f"non-numeric weight {value!r}")
    try:
        number = float(str(value).strip())
    except ValueError as exc:
        raise MalformedSignalError(f"non-numeric weight {value!r}") from exc
    if math.isnan(number) or math.isinf(number) or not number.is_integer():
        raise MalformedSignalError(f"weight must be a signed integer, got {value!r}")
    return int(number)


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    text = str(value or "").strip()
    if not text:
        return datetime.fromtimestamp(0, tz=UTC)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise MalformedSignalError(f"invalid recorded_at {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_signal(row: Mapping[str, object]) -> LearningSignal:
    """Parse a stored signal row.

    Raises:
        MalformedSignalError: Unknown signal type, non-numeric weight, missing ids
            or an unreadable timestamp.
    """
    signal_type = _parse_signal_type(row.get("signal"))
    mandate_id = str(row.get("mandate_id") or "").strip()
    company_id = str(row.get("company_id") or "").strip()
    if not mandate_id:
        raise MalformedSignalError("mandate_id is required")
    if not company_id:
        raise MalformedSignalError("company_id is required")
    return LearningSignal(
        mandate_id=mandate_id,
        company_id=company_id,
        signal=signal_type,
        weight=_parse_weight(row.get("weight"), signal_type),
        recorded_at=_parse_timestamp(row.get("recorded_at")),
    )


def signal_to_row(signal: LearningSignal) -> dict[str, str]:
    """Serialise a signal for an append-only log."""
    return {
        "mandate_id": signal.mandate_id,
        "company_id": signal.company_id,
        "signal": signal.signal,
        "weight": str(signal.weight),
        "recorded_at": signal.recorded_at.isoformat(),
    }


@dataclass(frozen=True)
class SignalBatch:
    """Signals read from the log, plus the count of rows that failed to parse."""

    signals: tuple[LearningSignal, ...]
    malformed: int = 0
