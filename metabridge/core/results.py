"""
Result containers for metabridge.

This module defines the shapes the statistical engine's output is
checked against and converted into: pooled and per-study effect sizes,
heterogeneity statistics and publication-bias assessments. Results are
created fresh for each request and never shared between calls.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, Tuple, Union


class EffectMeasure(Enum):
    """Effect measures supported by the engine procedures."""

    # Ratio measures (analyzed on log scale)
    ODDS_RATIO = "OR"
    RISK_RATIO = "RR"
    HAZARD_RATIO = "HR"

    # Difference measures (analyzed on natural scale)
    MEAN_DIFFERENCE = "MD"
    STANDARDIZED_MEAN_DIFFERENCE = "SMD"

    @classmethod
    def from_string(cls, s: str) -> EffectMeasure:
        """Convert string to EffectMeasure enum."""
        s_upper = str(s).upper().strip()
        aliases = {
            "ODDS RATIO": "OR",
            "RISK RATIO": "RR",
            "RELATIVE RISK": "RR",
            "HAZARD RATIO": "HR",
            "MEAN DIFFERENCE": "MD",
            "STANDARDIZED MEAN DIFFERENCE": "SMD",
            "HEDGES G": "SMD",
            "HEDGES' G": "SMD",
        }
        if s_upper in aliases:
            s_upper = aliases[s_upper]

        for member in cls:
            if member.value == s_upper or member.name == s_upper:
                return member
        raise ValueError(f"Unknown effect measure: {s}")

    def is_ratio_measure(self) -> bool:
        """Check if this is a ratio measure (analyzed on log scale)."""
        return self in {
            EffectMeasure.ODDS_RATIO,
            EffectMeasure.RISK_RATIO,
            EffectMeasure.HAZARD_RATIO,
        }

    def null_value(self) -> float:
        """Return the null value (no effect) for this measure."""
        if self.is_ratio_measure():
            return 1.0
        return 0.0


class PoolingModel(Enum):
    """Assumption used to combine study-level effects."""
    FIXED = "fixed"
    RANDOM = "random"

    @classmethod
    def from_string(cls, s: str) -> PoolingModel:
        value = str(s).lower().strip()
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown pooling model: {s}")


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class EffectSize:
    """
    Point estimate with confidence interval.

    Attributes:
        estimate: Point estimate on the display scale
        lower_ci: Lower confidence bound
        upper_ci: Upper confidence bound
        p_value: Optional p-value in [0, 1]
        weight: Optional weight in percent [0, 100]
    """

    estimate: float
    lower_ci: float
    upper_ci: float
    p_value: Optional[float] = None
    weight: Optional[float] = None

    def crosses(self, value: float) -> bool:
        """Whether the interval strictly contains ``value``."""
        return self.lower_ci < value < self.upper_ci

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "estimate": self.estimate,
            "lower_ci": self.lower_ci,
            "upper_ci": self.upper_ci,
            "p_value": self.p_value,
            "weight": self.weight,
        })

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> EffectSize:
        return cls(
            estimate=d["estimate"],
            lower_ci=d["lower_ci"],
            upper_ci=d["upper_ci"],
            p_value=d.get("p_value"),
            weight=d.get("weight"),
        )


@dataclass(frozen=True)
class Heterogeneity:
    """Between-study heterogeneity statistics (I2 in percent)."""

    I2: float
    Q: float
    df: int
    p_value: float
    tau2: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "I2": self.I2,
            "Q": self.Q,
            "df": self.df,
            "p_value": self.p_value,
            "tau2": self.tau2,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Heterogeneity:
        return cls(I2=d["I2"], Q=d["Q"], df=d["df"], p_value=d["p_value"], tau2=d["tau2"])


@dataclass(frozen=True)
class StudyEffect:
    """Effect size of one study."""

    study_id: str
    effect_size: EffectSize

    def to_dict(self) -> Dict[str, Any]:
        return {"study_id": self.study_id, "effect_size": self.effect_size.to_dict()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> StudyEffect:
        return cls(study_id=d["study_id"], effect_size=EffectSize.from_dict(d["effect_size"]))


@dataclass(frozen=True)
class AnalysisResult:
    """
    Pooled meta-analysis result as returned by the engine.

    Attributes:
        effect_measure: OR, RR, MD, SMD or HR
        model: Fixed or random effects
        pooled_effect: Pooled estimate with interval
        heterogeneity: Heterogeneity statistics
        study_effects: Per-study effects in input order
        n_studies: Number of pooled studies (>= 1)
        n_participants: Total participants (>= 1)
    """

    effect_measure: EffectMeasure
    model: PoolingModel
    pooled_effect: EffectSize
    heterogeneity: Heterogeneity
    study_effects: Tuple[StudyEffect, ...]
    n_studies: int
    n_participants: int

    def __post_init__(self):
        object.__setattr__(self, "study_effects", tuple(self.study_effects))

    @property
    def null_value(self) -> float:
        return self.effect_measure.null_value()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the canonical JSON shape."""
        return {
            "effect_measure": self.effect_measure.value,
            "model": self.model.value,
            "pooled_effect": self.pooled_effect.to_dict(),
            "heterogeneity": self.heterogeneity.to_dict(),
            "study_effects": [se.to_dict() for se in self.study_effects],
            "n_studies": self.n_studies,
            "n_participants": self.n_participants,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> AnalysisResult:
        """Create from dictionary (no validation; see io.schema)."""
        return cls(
            effect_measure=EffectMeasure.from_string(d["effect_measure"]),
            model=PoolingModel.from_string(d["model"]),
            pooled_effect=EffectSize.from_dict(d["pooled_effect"]),
            heterogeneity=Heterogeneity.from_dict(d["heterogeneity"]),
            study_effects=tuple(StudyEffect.from_dict(x) for x in d["study_effects"]),
            n_studies=d["n_studies"],
            n_participants=d["n_participants"],
        )


# ============================================================================
# Publication bias
# ============================================================================

@dataclass(frozen=True)
class InsufficientData:
    """Marker for a bias method the engine could not run."""

    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"insufficient_data": True, "message": self.message}


@dataclass(frozen=True)
class EggerTest:
    """Egger's regression test for funnel plot asymmetry."""

    intercept: float
    p_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"intercept": self.intercept, "p_value": self.p_value}


@dataclass(frozen=True)
class BeggTest:
    """Begg's rank correlation test."""

    tau: float
    p_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"tau": self.tau, "p_value": self.p_value}


@dataclass(frozen=True)
class TrimFill:
    """Trim-and-fill estimate of missing studies."""

    n_missing: int
    adjusted_effect: EffectSize

    def to_dict(self) -> Dict[str, Any]:
        return {"n_missing": self.n_missing, "adjusted_effect": self.adjusted_effect.to_dict()}


@dataclass(frozen=True)
class FunnelPlot:
    """Location of a rendered funnel plot."""

    path: str
    generated: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"generated": self.generated, "path": self.path}


@dataclass(frozen=True)
class BiasAssessment:
    """
    Publication-bias assessment.

    Each test is either absent (not requested), a computed result, or an
    InsufficientData marker.
    """

    egger_test: Optional[Union[EggerTest, InsufficientData]] = None
    begg_test: Optional[Union[BeggTest, InsufficientData]] = None
    trim_fill: Optional[Union[TrimFill, InsufficientData]] = None
    funnel_plot: Optional[FunnelPlot] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name).to_dict()
            for name in ("egger_test", "begg_test", "trim_fill", "funnel_plot")
            if getattr(self, name) is not None
        }
