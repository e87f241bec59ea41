"""
Engine-backed publication-bias assessment.

Per-study effects are converted to the analysis scale here (log scale
for ratio measures, standard errors recovered from the 95% intervals)
so the engine procedure works on plain ``yi``/``sei`` pairs.
"""

from __future__ import annotations
from pathlib import Path
from typing import Optional, Dict, Any, List, Sequence, Union
import logging

from metabridge.core.results import AnalysisResult, BiasAssessment
from metabridge.diagnostics.publication_bias import BIAS_METHODS
from metabridge.engine.bridge import AnalysisBridge
from metabridge.io.schema import bias_assessment_from_dict
from metabridge.utils import analysis_scale

logger = logging.getLogger(__name__)

PROCEDURE = "publication_bias"
DEFAULT_METHODS = ("funnel_plot", "egger_test")


def bias_inputs(result: AnalysisResult) -> List[Dict[str, Any]]:
    """Per-study (study_id, yi, sei) on the analysis scale."""
    rows = []
    for study_effect in result.study_effects:
        yi, sei = analysis_scale(study_effect.effect_size, result.effect_measure)
        rows.append({"study_id": study_effect.study_id, "yi": yi, "sei": sei})
    return rows


async def run_bias_assessment(
    bridge: AnalysisBridge,
    result: AnalysisResult,
    methods: Sequence[str] = DEFAULT_METHODS,
    funnel_plot_path: Optional[Union[str, Path]] = None,
) -> BiasAssessment:
    """
    Run the requested bias methods in the engine.

    Each test needs at least three studies; with fewer the engine
    returns an insufficient-data marker for it. The funnel plot is only
    rendered when a path is given.

    Args:
        bridge: Engine bridge
        result: Validated meta-analysis result
        methods: Any of 'funnel_plot', 'egger_test', 'begg_test', 'trim_fill'
        funnel_plot_path: Where to write the funnel plot PNG

    Returns:
        BiasAssessment
    """
    methods = list(methods)
    unknown = [m for m in methods if m not in BIAS_METHODS]
    if unknown:
        raise ValueError(f"Unknown publication bias method(s): {', '.join(unknown)}")

    request = {
        "effect_measure": result.effect_measure.value,
        "methods": methods,
        "funnel_plot_path": str(funnel_plot_path) if funnel_plot_path is not None else None,
        "studies": bias_inputs(result),
    }

    logger.info("Assessing publication bias using: %s", ", ".join(methods))
    raw = await bridge.run(PROCEDURE, request)
    return bias_assessment_from_dict(raw)
