"""
Engine-backed pooled meta-analysis.

The pooling itself (inverse-variance weighting, tau-squared estimation,
back-transformation of ratio measures) is done by the engine's
``meta_analysis`` procedure; this module checks that the requested
effect measure suits the data, builds the request and validates what
comes back.
"""

from __future__ import annotations
from typing import Dict, Any, Tuple, Union
import logging

from metabridge.core.dataset import Dataset, OutcomeType
from metabridge.core.exceptions import UnsupportedEffectMeasureError
from metabridge.core.results import AnalysisResult, EffectMeasure, PoolingModel
from metabridge.engine.bridge import AnalysisBridge
from metabridge.io.schema import analysis_result_from_dict

logger = logging.getLogger(__name__)

PROCEDURE = "meta_analysis"

# HR needs pre-computed log hazard ratios, which trial-level data cannot supply
COMPATIBLE_MEASURES: Dict[OutcomeType, Tuple[EffectMeasure, ...]] = {
    OutcomeType.BINARY: (EffectMeasure.ODDS_RATIO, EffectMeasure.RISK_RATIO),
    OutcomeType.CONTINUOUS: (
        EffectMeasure.MEAN_DIFFERENCE,
        EffectMeasure.STANDARDIZED_MEAN_DIFFERENCE,
    ),
}


def check_effect_measure(dataset: Dataset, measure: EffectMeasure) -> None:
    """
    Raise if ``measure`` cannot be computed from the dataset's outcomes.

    Raises:
        UnsupportedEffectMeasureError: For incompatible combinations
    """
    allowed = COMPATIBLE_MEASURES[dataset.outcome_type]
    if measure not in allowed:
        names = ", ".join(m.value for m in allowed)
        raise UnsupportedEffectMeasureError(
            f"{measure.value} cannot be computed from {dataset.outcome_type.value} "
            f"outcome data (supported: {names})"
        )


def build_request(
    dataset: Dataset,
    measure: EffectMeasure,
    model: PoolingModel
) -> Dict[str, Any]:
    """Request payload for the meta-analysis procedure."""
    return {
        "effect_measure": measure.value,
        "model": model.value,
        "data": dataset.to_dict(),
    }


async def run_meta_analysis(
    bridge: AnalysisBridge,
    dataset: Dataset,
    effect_measure: Union[str, EffectMeasure],
    model: Union[str, PoolingModel] = PoolingModel.RANDOM,
) -> AnalysisResult:
    """
    Pool a dataset in the engine.

    Args:
        bridge: Engine bridge
        dataset: Imported dataset
        effect_measure: OR/RR for binary data, MD/SMD for continuous data
        model: 'fixed' or 'random'

    Returns:
        Validated AnalysisResult

    Raises:
        UnsupportedEffectMeasureError: Before any engine call, if the
            measure does not suit the outcome type
        SchemaError: If the engine result has the wrong shape
    """
    if isinstance(effect_measure, str):
        effect_measure = EffectMeasure.from_string(effect_measure)
    if isinstance(model, str):
        model = PoolingModel.from_string(model)

    check_effect_measure(dataset, effect_measure)

    logger.info(
        "Performing meta-analysis (effect: %s, model: %s, studies: %d)",
        effect_measure.value, model.value, dataset.n_studies,
    )
    raw = await bridge.run(PROCEDURE, build_request(dataset, effect_measure, model))
    return analysis_result_from_dict(raw)
