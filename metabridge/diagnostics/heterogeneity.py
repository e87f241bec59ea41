"""
Heterogeneity interpretation for metabridge.

Maps the engine's I-squared statistic onto the conventional bands of
the Cochrane Handbook (section 10.10.2), each with a fixed advisory
sentence. Band upper bounds are inclusive.
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, Any

from metabridge.core.results import Heterogeneity


class HeterogeneityBand(Enum):
    """I-squared band with its inclusive upper bound (percent)."""
    LOW = "low"
    MODERATE = "moderate"
    SUBSTANTIAL = "substantial"
    CONSIDERABLE = "considerable"

    @property
    def upper_bound(self) -> float:
        return _UPPER_BOUNDS[self]

    @property
    def advice(self) -> str:
        return _ADVICE[self]


_UPPER_BOUNDS = {
    HeterogeneityBand.LOW: 40.0,
    HeterogeneityBand.MODERATE: 60.0,
    HeterogeneityBand.SUBSTANTIAL: 75.0,
    HeterogeneityBand.CONSIDERABLE: 100.0,
}

_ADVICE = {
    HeterogeneityBand.LOW:
        "Low heterogeneity (I² ≤ 40%). Heterogeneity might not be important.",
    HeterogeneityBand.MODERATE:
        "Moderate heterogeneity (40% < I² ≤ 60%). May represent moderate heterogeneity.",
    HeterogeneityBand.SUBSTANTIAL:
        "Substantial heterogeneity (60% < I² ≤ 75%). May represent substantial heterogeneity.",
    HeterogeneityBand.CONSIDERABLE:
        "Considerable heterogeneity (I² > 75%). Represents considerable heterogeneity. "
        "Consider not pooling studies or using a random-effects model.",
}


def heterogeneity_band(i2: float) -> HeterogeneityBand:
    """
    Classify I-squared (in percent).

    Args:
        i2: I-squared between 0 and 100

    Returns:
        HeterogeneityBand
    """
    for band in (HeterogeneityBand.LOW, HeterogeneityBand.MODERATE, HeterogeneityBand.SUBSTANTIAL):
        if i2 <= band.upper_bound:
            return band
    return HeterogeneityBand.CONSIDERABLE


def interpret_heterogeneity(i2: float) -> str:
    """Advisory sentence for an I-squared value (percent)."""
    return heterogeneity_band(i2).advice


def describe_heterogeneity(heterogeneity: Heterogeneity) -> Dict[str, Any]:
    """Heterogeneity statistics together with their band and advice."""
    band = heterogeneity_band(heterogeneity.I2)
    return {
        **heterogeneity.to_dict(),
        "band": band.value,
        "interpretation": band.advice,
    }
