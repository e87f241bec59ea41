"""Core data model for metabridge."""

from metabridge.core.dataset import (
    Study,
    BinaryOutcome,
    ContinuousOutcome,
    Outcome,
    Dataset,
    OutcomeType,
    classify_outcome_type,
)
from metabridge.core.results import (
    EffectMeasure,
    PoolingModel,
    EffectSize,
    Heterogeneity,
    StudyEffect,
    AnalysisResult,
    InsufficientData,
    EggerTest,
    BeggTest,
    TrimFill,
    FunnelPlot,
    BiasAssessment,
)
from metabridge.core import exceptions

__all__ = [
    "Study",
    "BinaryOutcome",
    "ContinuousOutcome",
    "Outcome",
    "Dataset",
    "OutcomeType",
    "classify_outcome_type",
    "EffectMeasure",
    "PoolingModel",
    "EffectSize",
    "Heterogeneity",
    "StudyEffect",
    "AnalysisResult",
    "InsufficientData",
    "EggerTest",
    "BeggTest",
    "TrimFill",
    "FunnelPlot",
    "BiasAssessment",
    "exceptions",
]
