"""
Publication-bias interpretation.

Turns a BiasAssessment into plain sentences, one method at a time in a
fixed order (Egger, Begg, trim-and-fill, funnel plot). Only requested
methods are described. Tests use p < 0.10 as the significance threshold.
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Union

from metabridge.core.results import (
    BiasAssessment,
    BeggTest,
    EggerTest,
    InsufficientData,
    TrimFill,
)
from metabridge.utils import format_estimate


BIAS_ALPHA = 0.10
LOW_POWER_STUDIES = 10

BIAS_METHODS = ("funnel_plot", "egger_test", "begg_test", "trim_fill")


def _describe_test(
    name: str,
    test: Union[EggerTest, BeggTest, InsufficientData]
) -> str:
    if isinstance(test, InsufficientData):
        return f"{name}: {test.message}"
    if test.p_value < BIAS_ALPHA:
        return f"{name} suggests potential publication bias (p={test.p_value:.3f}, p<{BIAS_ALPHA:.2f})"
    return f"{name} does not suggest publication bias (p={test.p_value:.3f})"


def _describe_trim_fill(trim_fill: Union[TrimFill, InsufficientData]) -> List[str]:
    if isinstance(trim_fill, InsufficientData):
        return [f"Trim-and-fill: {trim_fill.message}"]
    if trim_fill.n_missing == 0:
        return ["Trim-and-fill does not suggest missing studies"]
    adjusted = trim_fill.adjusted_effect
    return [
        f"Trim-and-fill suggests {trim_fill.n_missing} potentially missing studies "
        "due to publication bias",
        "Adjusted pooled estimate: "
        + format_estimate(adjusted.estimate, (adjusted.lower_ci, adjusted.upper_ci)),
    ]


def interpret_publication_bias(
    assessment: BiasAssessment,
    methods: Sequence[str] = BIAS_METHODS
) -> List[str]:
    """
    Describe each requested bias method's result.

    Args:
        assessment: Engine bias assessment
        methods: Requested method names

    Returns:
        Interpretation lines
    """
    lines: List[str] = []

    if "egger_test" in methods and assessment.egger_test is not None:
        lines.append(_describe_test("Egger's test", assessment.egger_test))

    if "begg_test" in methods and assessment.begg_test is not None:
        lines.append(_describe_test("Begg's test", assessment.begg_test))

    if "trim_fill" in methods and assessment.trim_fill is not None:
        lines.extend(_describe_trim_fill(assessment.trim_fill))

    funnel = assessment.funnel_plot
    if "funnel_plot" in methods and funnel is not None and funnel.generated:
        lines.append(f"Funnel plot generated at {funnel.path}. Visual inspection recommended.")

    return lines


def low_power_warning(n_studies: int) -> Optional[str]:
    """Caveat for bias tests on few studies, or None when not needed."""
    if n_studies < LOW_POWER_STUDIES:
        return f"Publication bias tests have limited power with fewer than {LOW_POWER_STUDIES} studies"
    return None
