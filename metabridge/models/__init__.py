"""
Engine-backed analyses for metabridge.

The statistics run in the external engine; these modules prepare the
requests and check the results.
"""

from metabridge.models.meta_analysis import (
    run_meta_analysis,
    check_effect_measure,
    COMPATIBLE_MEASURES,
)
from metabridge.models.publication_bias import (
    run_bias_assessment,
    bias_inputs,
)

__all__ = [
    "run_meta_analysis",
    "check_effect_measure",
    "COMPATIBLE_MEASURES",
    "run_bias_assessment",
    "bias_inputs",
]
