"""Advisory recommendations derived from a pooled meta-analysis result."""

from __future__ import annotations
from typing import List

from metabridge.core.results import AnalysisResult


HIGH_I2 = 75.0
HETEROGENEITY_ALPHA = 0.10
FEW_STUDIES = 5
SMALL_TOTAL = 100


def get_recommendations(result: AnalysisResult, include_heterogeneity: bool = True) -> List[str]:
    """
    Build the ordered list of recommendations for a result.

    Each rule is checked independently and appends its lines in a fixed
    order: heterogeneity, study count, interval, sample size.

    Args:
        result: Validated analysis result
        include_heterogeneity: Whether heterogeneity rules apply

    Returns:
        Recommendation lines (possibly empty)
    """
    recommendations: List[str] = []
    heterogeneity = result.heterogeneity

    if include_heterogeneity:
        if heterogeneity.I2 > HIGH_I2:
            recommendations.extend([
                "High heterogeneity detected. Consider:",
                "  - Investigating sources of heterogeneity through subgroup analysis",
                "  - Using meta-regression to explore covariates",
                "  - Examining whether pooling is appropriate",
            ])

        if heterogeneity.p_value < HETEROGENEITY_ALPHA:
            recommendations.append(
                f"Significant heterogeneity (Q-test p={heterogeneity.p_value:.3f}). "
                "Random-effects model is recommended."
            )

    if result.n_studies < FEW_STUDIES:
        recommendations.append(
            f"Small number of studies (n<{FEW_STUDIES}). Interpret results with caution."
        )
        recommendations.append(
            "Publication bias assessment may not be reliable with few studies."
        )

    null_value = result.null_value
    if result.pooled_effect.crosses(null_value):
        label = "1.0" if result.effect_measure.is_ratio_measure() else "0"
        recommendations.append(
            f"Confidence interval crosses {label}, suggesting no statistically significant effect."
        )

    if result.n_participants < SMALL_TOTAL:
        recommendations.append(
            "Small total sample size. Meta-analysis may be underpowered to detect meaningful effects."
        )

    return recommendations
