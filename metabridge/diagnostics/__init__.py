"""Validation and interpretation tools for metabridge."""

from metabridge.diagnostics.validation import (
    ValidationResult,
    ValidationLevel,
    validate_dataset,
)
from metabridge.diagnostics.heterogeneity import (
    HeterogeneityBand,
    heterogeneity_band,
    interpret_heterogeneity,
    describe_heterogeneity,
)
from metabridge.diagnostics.recommendations import get_recommendations
from metabridge.diagnostics.publication_bias import (
    interpret_publication_bias,
    low_power_warning,
)

__all__ = [
    "ValidationResult",
    "ValidationLevel",
    "validate_dataset",
    "HeterogeneityBand",
    "heterogeneity_band",
    "interpret_heterogeneity",
    "describe_heterogeneity",
    "get_recommendations",
    "interpret_publication_bias",
    "low_power_warning",
]
