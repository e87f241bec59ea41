"""
Schema validation for metabridge.

This module provides field specifications for the canonical data shapes
and the functions that check raw dictionaries (imported files, request
payloads, engine output) before they are turned into metabridge objects.
Every problem found is reported, not just the first.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Tuple
import math

import numpy as np

from metabridge.core.dataset import (
    Dataset,
    Study,
    OutcomeType,
    OUTCOME_CLASSES,
    DEFAULT_OUTCOME_NAME,
    DEFAULT_INTERVENTION,
    DEFAULT_COMPARISON,
)
from metabridge.core.results import (
    AnalysisResult,
    EffectMeasure,
    BiasAssessment,
    EffectSize,
    EggerTest,
    BeggTest,
    TrimFill,
    FunnelPlot,
    InsufficientData,
)
from metabridge.core.exceptions import SchemaError


@dataclass
class FieldSpec:
    """Specification for a data field."""

    name: str
    dtype: str  # 'float', 'int', 'str', 'bool', 'list', 'dict'
    required: bool = True
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    allowed_values: Optional[List[Any]] = None
    description: str = ""

    def validate(self, value: Any) -> Tuple[bool, str]:
        """
        Validate a value against this field spec.

        Args:
            value: Value to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if self.required:
                return False, f"{self.name} is required"
            return True, ""

        if self.dtype in ("float", "int"):
            ok, error = self._validate_number(value)
            if not ok:
                return ok, error
        else:
            dtype_map = {
                'str': str,
                'bool': bool,
                'list': list,
                'dict': dict,
            }
            expected_types = dtype_map.get(self.dtype)
            if expected_types and not isinstance(value, expected_types):
                return False, f"{self.name} must be {self.dtype}, got {type(value).__name__}"

        if self.allowed_values is not None and value not in self.allowed_values:
            return False, f"{self.name} must be one of {self.allowed_values}"

        return True, ""

    def _validate_number(self, value: Any) -> Tuple[bool, str]:
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            return False, f"{self.name} must be {self.dtype}, got {type(value).__name__}"
        if not math.isfinite(float(value)):
            return False, f"{self.name} must be a finite number, got {value}"
        if self.dtype == "int" and float(value) != int(value):
            return False, f"{self.name} must be int, got {value}"

        if self.min_value is not None and value < self.min_value:
            return False, f"{self.name} must be >= {self.min_value}"
        if self.max_value is not None and value > self.max_value:
            return False, f"{self.name} must be <= {self.max_value}"
        return True, ""


def _check(fields: List[FieldSpec], data: Any, path: str) -> List[str]:
    """Run field specs over one mapping, prefixing errors with ``path``."""
    if not isinstance(data, dict):
        return [f"{path} must be an object, got {type(data).__name__}"]
    errors = []
    for field_spec in fields:
        is_valid, error = field_spec.validate(data.get(field_spec.name))
        if not is_valid:
            errors.append(f"{path}.{error}" if path else error)
    return errors


def _check_list(fields: List[FieldSpec], items: Any, path: str) -> List[str]:
    if not isinstance(items, list):
        return [f"{path} must be an array, got {type(items).__name__}"]
    errors = []
    for i, item in enumerate(items):
        errors.extend(_check(fields, item, f"{path}[{i}]"))
    return errors


# ============================================================================
# Field catalogues
# ============================================================================

EFFECT_MEASURES = [m.value for m in EffectMeasure]

STUDY_FIELDS: List[FieldSpec] = [
    FieldSpec("id", "str", description="Study identifier"),
    FieldSpec("authors", "str", description="Author list"),
    FieldSpec("year", "int", min_value=1900, max_value=2100, description="Publication year"),
    FieldSpec("title", "str", description="Study title"),
    FieldSpec("journal", "str", required=False, description="Journal"),
    FieldSpec("doi", "str", required=False, description="Digital object identifier"),
]

BINARY_OUTCOME_FIELDS: List[FieldSpec] = [
    FieldSpec("study_id", "str"),
    FieldSpec("events_treatment", "int", min_value=0),
    FieldSpec("n_treatment", "int", min_value=1),
    FieldSpec("events_control", "int", min_value=0),
    FieldSpec("n_control", "int", min_value=1),
]

# Zero SD is accepted here and reported by the validator instead
CONTINUOUS_OUTCOME_FIELDS: List[FieldSpec] = [
    FieldSpec("study_id", "str"),
    FieldSpec("mean_treatment", "float"),
    FieldSpec("sd_treatment", "float", min_value=0),
    FieldSpec("n_treatment", "int", min_value=1),
    FieldSpec("mean_control", "float"),
    FieldSpec("sd_control", "float", min_value=0),
    FieldSpec("n_control", "int", min_value=1),
]

OUTCOME_FIELDS = {
    OutcomeType.BINARY: BINARY_OUTCOME_FIELDS,
    OutcomeType.CONTINUOUS: CONTINUOUS_OUTCOME_FIELDS,
}

DATASET_FIELDS: List[FieldSpec] = [
    FieldSpec("studies", "list"),
    FieldSpec("outcomes", "list"),
    FieldSpec("outcome_type", "str", allowed_values=["binary", "continuous"]),
    FieldSpec("outcome_name", "str"),
    FieldSpec("intervention", "str"),
    FieldSpec("comparison", "str"),
]

EFFECT_SIZE_FIELDS: List[FieldSpec] = [
    FieldSpec("estimate", "float"),
    FieldSpec("lower_ci", "float"),
    FieldSpec("upper_ci", "float"),
    FieldSpec("p_value", "float", required=False, min_value=0, max_value=1),
    FieldSpec("weight", "float", required=False, min_value=0, max_value=100),
]

HETEROGENEITY_FIELDS: List[FieldSpec] = [
    FieldSpec("I2", "float", min_value=0, max_value=100),
    FieldSpec("Q", "float", min_value=0),
    FieldSpec("df", "int", min_value=0),
    FieldSpec("p_value", "float", min_value=0, max_value=1),
    FieldSpec("tau2", "float", min_value=0),
]

ANALYSIS_RESULT_FIELDS: List[FieldSpec] = [
    FieldSpec("effect_measure", "str", allowed_values=EFFECT_MEASURES),
    FieldSpec("model", "str", allowed_values=["fixed", "random"]),
    FieldSpec("pooled_effect", "dict"),
    FieldSpec("heterogeneity", "dict"),
    FieldSpec("study_effects", "list"),
    FieldSpec("n_studies", "int", min_value=1),
    FieldSpec("n_participants", "int", min_value=1),
]

STUDY_EFFECT_FIELDS: List[FieldSpec] = [
    FieldSpec("study_id", "str"),
    FieldSpec("effect_size", "dict"),
]

EGGER_FIELDS: List[FieldSpec] = [
    FieldSpec("intercept", "float"),
    FieldSpec("p_value", "float", min_value=0, max_value=1),
]

BEGG_FIELDS: List[FieldSpec] = [
    FieldSpec("tau", "float"),
    FieldSpec("p_value", "float", min_value=0, max_value=1),
]

TRIM_FILL_FIELDS: List[FieldSpec] = [
    FieldSpec("n_missing", "int", min_value=0),
    FieldSpec("adjusted_effect", "dict"),
]


# ============================================================================
# Validators
# ============================================================================

def _check_effect_size(data: Any, path: str) -> List[str]:
    errors = _check(EFFECT_SIZE_FIELDS, data, path)
    if not errors and data["lower_ci"] > data["upper_ci"]:
        errors.append(f"{path}.lower_ci must be <= upper_ci")
    return errors


def validate_dataset(data: Any) -> Tuple[bool, List[str]]:
    """
    Validate a canonical dataset dictionary.

    Args:
        data: Dictionary with studies, outcomes and PICO metadata

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = _check(DATASET_FIELDS, data, "")
    if errors:
        return False, errors

    errors.extend(_check_list(STUDY_FIELDS, data["studies"], "studies"))

    outcome_type = OutcomeType.from_string(data["outcome_type"])
    outcome_fields = OUTCOME_FIELDS[outcome_type]
    errors.extend(_check_list(outcome_fields, data["outcomes"], "outcomes"))

    known_ids = {s.get("id") for s in data["studies"] if isinstance(s, dict)}
    for i, outcome in enumerate(data["outcomes"]):
        if not isinstance(outcome, dict):
            continue
        study_id = outcome.get("study_id")
        if study_id is not None and study_id not in known_ids:
            errors.append(f"outcomes[{i}].study_id '{study_id}' does not reference a known study")
        if outcome_type is OutcomeType.BINARY:
            for arm in ("treatment", "control"):
                events = outcome.get(f"events_{arm}")
                n = outcome.get(f"n_{arm}")
                if _is_number(events) and _is_number(n) and events > n:
                    errors.append(f"outcomes[{i}].events_{arm} must be <= n_{arm}")

    return len(errors) == 0, errors


def validate_analysis_result(data: Any) -> Tuple[bool, List[str]]:
    """Validate an engine meta-analysis result dictionary."""
    errors = _check(ANALYSIS_RESULT_FIELDS, data, "")
    if not isinstance(data, dict):
        return False, errors

    if isinstance(data.get("pooled_effect"), dict):
        errors.extend(_check_effect_size(data["pooled_effect"], "pooled_effect"))
    if isinstance(data.get("heterogeneity"), dict):
        errors.extend(_check(HETEROGENEITY_FIELDS, data["heterogeneity"], "heterogeneity"))
    if isinstance(data.get("study_effects"), list):
        for i, item in enumerate(data["study_effects"]):
            path = f"study_effects[{i}]"
            item_errors = _check(STUDY_EFFECT_FIELDS, item, path)
            if not item_errors:
                item_errors = _check_effect_size(item["effect_size"], f"{path}.effect_size")
            errors.extend(item_errors)

    return len(errors) == 0, errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ============================================================================
# Constructors
# ============================================================================

def dataset_from_dict(data: Any) -> Dataset:
    """
    Check and convert a canonical dataset dictionary.

    Missing PICO metadata falls back to the placeholder strings before
    the check runs.

    Raises:
        SchemaError: If any field is missing or out of range
    """
    if isinstance(data, dict):
        data = dict(data)
        data.setdefault("outcome_name", DEFAULT_OUTCOME_NAME)
        data.setdefault("intervention", DEFAULT_INTERVENTION)
        data.setdefault("comparison", DEFAULT_COMPARISON)

    is_valid, errors = validate_dataset(data)
    if not is_valid:
        raise SchemaError(errors, context="dataset")

    outcome_type = OutcomeType.from_string(data["outcome_type"])
    outcome_cls = OUTCOME_CLASSES[outcome_type]
    return Dataset(
        studies=tuple(Study.from_dict(_coerce(s, STUDY_FIELDS)) for s in data["studies"]),
        outcomes=tuple(
            outcome_cls.from_dict(_coerce(o, OUTCOME_FIELDS[outcome_type]))
            for o in data["outcomes"]
        ),
        outcome_type=outcome_type,
        outcome_name=data["outcome_name"],
        intervention=data["intervention"],
        comparison=data["comparison"],
    )


def analysis_result_from_dict(data: Any) -> AnalysisResult:
    """
    Check and convert an engine meta-analysis result.

    Raises:
        SchemaError: If the result does not match the canonical shape
    """
    is_valid, errors = validate_analysis_result(data)
    if not is_valid:
        raise SchemaError(errors, context="analysis result")
    return AnalysisResult.from_dict(data)


def bias_assessment_from_dict(data: Any) -> BiasAssessment:
    """
    Check and convert an engine publication-bias result.

    Each test entry is either a computed result or an insufficient-data
    marker (``{"insufficient_data": true, "message": ...}``).

    Raises:
        SchemaError: If an entry matches neither shape
    """
    if not isinstance(data, dict):
        raise SchemaError([f"bias assessment must be an object, got {type(data).__name__}"],
                          context="bias assessment")

    errors: List[str] = []
    parsed: Dict[str, Any] = {}

    fields_by_test = {
        "egger_test": EGGER_FIELDS,
        "begg_test": BEGG_FIELDS,
        "trim_fill": TRIM_FILL_FIELDS,
    }
    for name, fields in fields_by_test.items():
        entry = data.get(name)
        if entry is None:
            continue
        if isinstance(entry, dict) and entry.get("insufficient_data"):
            parsed[name] = InsufficientData(message=str(entry.get("message", "Insufficient data")))
            continue

        entry_errors = _check(fields, entry, name)
        if name == "trim_fill" and not entry_errors:
            entry_errors = _check_effect_size(entry["adjusted_effect"], "trim_fill.adjusted_effect")
        if entry_errors:
            errors.extend(entry_errors)
            continue

        if name == "egger_test":
            parsed[name] = EggerTest(intercept=float(entry["intercept"]), p_value=float(entry["p_value"]))
        elif name == "begg_test":
            parsed[name] = BeggTest(tau=float(entry["tau"]), p_value=float(entry["p_value"]))
        else:
            parsed[name] = TrimFill(
                n_missing=int(entry["n_missing"]),
                adjusted_effect=EffectSize.from_dict(entry["adjusted_effect"]),
            )

    funnel = data.get("funnel_plot")
    if isinstance(funnel, dict) and funnel.get("generated") and isinstance(funnel.get("path"), str):
        parsed["funnel_plot"] = FunnelPlot(path=funnel["path"])

    if errors:
        raise SchemaError(errors, context="bias assessment")
    return BiasAssessment(**parsed)


def _coerce(data: Dict[str, Any], fields: List[FieldSpec]) -> Dict[str, Any]:
    """Normalise checked numbers to builtin int/float."""
    result = dict(data)
    for field_spec in fields:
        value = result.get(field_spec.name)
        if value is None:
            continue
        if field_spec.dtype == "int":
            result[field_spec.name] = int(value)
        elif field_spec.dtype == "float":
            result[field_spec.name] = float(value)
    return result
