"""Signal Value Index: a timing signal from recent press and RFP activity."""

from __future__ import annotations

PRESS_WEIGHT = 0.4
RFP_WEIGHT = 0.6
SVI_DECIMALS = 2


def compute_svi(press_60d: int = 0, rfp_60d: int = 0) -> float:
    """Weighted count of press mentions and RFPs over the last 60 days.

    >>> compute_svi(press_60d=10, rfp_60d=5)
    7.0
    """
    if press_60d < 0 or rfp_60d < 0:
        raise ValueError("press_60d and rfp_60d must not be negative")
    return round(press_60d * PRESS_WEIGHT + rfp_60d * RFP_WEIGHT, SVI_DECIMALS)
