"""
Forest plots for metabridge.

Rendering is done by the engine's ``forest_plot`` procedure
(3000x2000 px PNG at 300 DPI). This module prepares the plot data:
intervals rescaled to the requested confidence level, study labels and
the reference line at the measure's null value.
"""

from __future__ import annotations
from pathlib import Path
from typing import Optional, Dict, Any, Union
import logging

from metabridge.core.results import AnalysisResult, EffectSize
from metabridge.engine.bridge import AnalysisBridge
from metabridge.utils import rescale_interval

logger = logging.getLogger(__name__)

PROCEDURE = "forest_plot"
PLOT_STYLES = ("classic", "modern")


def _interval(effect: EffectSize) -> Dict[str, Any]:
    row = {
        "estimate": effect.estimate,
        "lower_ci": effect.lower_ci,
        "upper_ci": effect.upper_ci,
    }
    if effect.weight is not None:
        row["weight"] = effect.weight
    return row


def forest_plot_data(
    result: AnalysisResult,
    confidence_level: float = 0.95,
    labels: Optional[Dict[str, str]] = None,
    plot_style: str = "classic",
) -> Dict[str, Any]:
    """
    Build the forest plot request for a result.

    Args:
        result: Validated meta-analysis result (95% intervals)
        confidence_level: Interval level to display
        labels: Optional study_id -> display label mapping
        plot_style: 'classic' or 'modern'

    Returns:
        Plot data dictionary
    """
    if plot_style not in PLOT_STYLES:
        raise ValueError(f"plot_style must be one of {PLOT_STYLES}, got {plot_style!r}")

    labels = labels or {}
    measure = result.effect_measure
    studies = []
    for study_effect in result.study_effects:
        effect = rescale_interval(study_effect.effect_size, measure, confidence_level)
        studies.append({
            "label": labels.get(study_effect.study_id, study_effect.study_id),
            **_interval(effect),
        })

    pooled = rescale_interval(result.pooled_effect, measure, confidence_level)

    return {
        "effect_measure": measure.value,
        "model": result.model.value,
        "plot_style": plot_style,
        "confidence_level": confidence_level,
        "reference_line": result.null_value,
        "studies": studies,
        "pooled": _interval(pooled),
    }


async def generate_forest_plot(
    bridge: AnalysisBridge,
    result: AnalysisResult,
    output_path: Union[str, Path],
    plot_style: str = "classic",
    confidence_level: float = 0.95,
    labels: Optional[Dict[str, str]] = None,
) -> Path:
    """
    Render a forest plot PNG through the engine.

    Args:
        bridge: Engine bridge
        result: Validated meta-analysis result
        output_path: Destination PNG path
        plot_style: 'classic' or 'modern'
        confidence_level: Interval level to display
        labels: Optional study_id -> display label mapping

    Returns:
        Path of the rendered plot
    """
    output_path = Path(output_path)
    request = forest_plot_data(result, confidence_level, labels=labels, plot_style=plot_style)
    request["plot_path"] = str(output_path)

    logger.info("Generating forest plot: %s", output_path)
    await bridge.run(PROCEDURE, request)
    return output_path
