"""
Utility functions for metabridge.

This module provides the small amount of numerical work done on the
Python side of the engine boundary: moving between confidence intervals
and standard errors, and formatting numbers for reports.
"""

from __future__ import annotations
from typing import Optional, Tuple
import numpy as np
from scipy import stats

from metabridge.core.results import EffectSize, EffectMeasure


# ============================================================================
# Statistical Utilities
# ============================================================================

def z_score(level: float = 0.95) -> float:
    """
    Get z-score for a confidence level.

    Args:
        level: Confidence level (0 to 1)

    Returns:
        z-score for two-tailed confidence interval
    """
    if not 0 < level < 1:
        raise ValueError(f"confidence level must be in (0, 1), got {level}")
    return float(stats.norm.ppf((1 + level) / 2))


def se_from_ci(
    ci_lower: float,
    ci_upper: float,
    level: float = 0.95,
    log_scale: bool = False
) -> float:
    """
    Compute standard error from confidence interval.

    Args:
        ci_lower: Lower CI bound
        ci_upper: Upper CI bound
        level: Confidence level
        log_scale: Whether to use log scale

    Returns:
        Standard error
    """
    z = z_score(level)

    if log_scale:
        return float((np.log(ci_upper) - np.log(ci_lower)) / (2 * z))
    else:
        return float((ci_upper - ci_lower) / (2 * z))


def ci_from_se(
    estimate: float,
    se: float,
    level: float = 0.95,
    log_scale: bool = False
) -> Tuple[float, float]:
    """
    Compute confidence interval from standard error.

    Args:
        estimate: Point estimate (on the display scale)
        se: Standard error (log scale for ratio measures)
        level: Confidence level
        log_scale: Whether the SE is on log scale

    Returns:
        Tuple of (ci_lower, ci_upper)
    """
    z = z_score(level)

    if log_scale:
        log_estimate = np.log(estimate)
        return (
            float(np.exp(log_estimate - z * se)),
            float(np.exp(log_estimate + z * se))
        )
    else:
        return (
            float(estimate - z * se),
            float(estimate + z * se)
        )


def analysis_scale(
    effect: EffectSize,
    measure: EffectMeasure,
    level: float = 0.95
) -> Tuple[float, float]:
    """
    Express an effect size as (yi, sei) on the analysis scale.

    Ratio measures are log transformed; the SE is derived from the
    confidence interval.

    Args:
        effect: Effect size with interval on the display scale
        measure: Effect measure of the estimate
        level: Confidence level of the reported interval

    Returns:
        Tuple of (yi, sei)
    """
    log_scale = measure.is_ratio_measure()
    if log_scale and min(effect.estimate, effect.lower_ci) <= 0:
        raise ValueError(f"{measure.value} estimates must be positive, got {effect.estimate}")

    yi = float(np.log(effect.estimate)) if log_scale else float(effect.estimate)
    sei = se_from_ci(effect.lower_ci, effect.upper_ci, level=level, log_scale=log_scale)
    return yi, sei


def rescale_interval(
    effect: EffectSize,
    measure: EffectMeasure,
    level: float,
    source_level: float = 0.95
) -> EffectSize:
    """
    Recompute an effect's interval at a different confidence level.

    Args:
        effect: Effect size with interval at ``source_level``
        measure: Effect measure of the estimate
        level: Target confidence level
        source_level: Confidence level of the given interval

    Returns:
        New EffectSize (estimate, p-value and weight unchanged)
    """
    if level == source_level:
        return effect
    log_scale = measure.is_ratio_measure()
    _, se = analysis_scale(effect, measure, level=source_level)
    lower, upper = ci_from_se(effect.estimate, se, level=level, log_scale=log_scale)
    return EffectSize(
        estimate=effect.estimate,
        lower_ci=lower,
        upper_ci=upper,
        p_value=effect.p_value,
        weight=effect.weight,
    )


# ============================================================================
# Formatting Utilities
# ============================================================================

def format_estimate(
    estimate: float,
    ci: Optional[Tuple[float, float]] = None,
    decimals: int = 3,
    level: float = 0.95
) -> str:
    """
    Format estimate with optional CI.

    Args:
        estimate: Point estimate
        ci: Confidence interval (optional)
        decimals: Number of decimal places
        level: Confidence level shown in the label

    Returns:
        Formatted string, e.g. '0.812 (95% CI: 0.700 to 0.942)'
    """
    result = f"{estimate:.{decimals}f}"

    if ci is not None:
        result += (
            f" ({level * 100:g}% CI: {ci[0]:.{decimals}f} to {ci[1]:.{decimals}f})"
        )

    return result


def format_effect(effect: EffectSize, decimals: int = 3) -> str:
    """Format an EffectSize as estimate with its 95% interval."""
    return format_estimate(effect.estimate, (effect.lower_ci, effect.upper_ci), decimals=decimals)


def format_percentage(value: float, decimals: int = 1) -> str:
    """Format a value already expressed in percent."""
    return f"{value:.{decimals}f}%"


def format_p_value(p: float, threshold: float = 0.001) -> str:
    """Format p-value with appropriate precision."""
    if p < threshold:
        return f"p < {threshold}"
    return f"p = {p:.3f}"
