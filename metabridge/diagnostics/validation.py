"""
Methodological validation of meta-analysis datasets.

Checks run in two tiers:

- basic (always): enough studies, outcome data for every study, unique
  study ids;
- comprehensive (opt-in): per-outcome quality checks, aggregate
  statistical requirements, and systematic-review reporting standards.

Validation never raises for methodological problems. Everything found
is returned as data in a ValidationResult; ``valid`` only reflects
whether any errors were recorded. Check order and message text are
stable for identical input.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Union

from metabridge.core.dataset import (
    Dataset,
    BinaryOutcome,
    ContinuousOutcome,
    OutcomeType,
    DEFAULT_INTERVENTION,
    DEFAULT_COMPARISON,
)


MIN_STUDIES = 2
SMALL_ARM_SIZE = 10
UNDERPOWERED_TOTAL = 100
SMALL_SD_FRACTION = 0.01
OLD_STUDY_YEARS = 10


class ValidationLevel(Enum):
    """Depth of validation."""
    BASIC = "basic"
    COMPREHENSIVE = "comprehensive"

    @classmethod
    def from_string(cls, s: str) -> ValidationLevel:
        value = str(s).lower().strip()
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown validation level: {s}")


@dataclass
class ValidationResult:
    """
    Outcome of validating a dataset.

    Attributes:
        valid: True when no errors were recorded
        warnings: Issues worth checking that do not block analysis
        errors: Issues that make the analysis invalid
        suggestions: Advisory notes
    """

    valid: bool = True
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "n_errors": len(self.errors),
            "n_warnings": len(self.warnings),
            "n_suggestions": len(self.suggestions),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "suggestions": list(self.suggestions),
        }


def validate_dataset(
    dataset: Dataset,
    level: Union[str, ValidationLevel] = ValidationLevel.COMPREHENSIVE
) -> ValidationResult:
    """
    Validate a dataset against meta-analysis requirements.

    Args:
        dataset: Dataset to validate
        level: 'basic' or 'comprehensive'

    Returns:
        ValidationResult with every finding
    """
    if isinstance(level, str):
        level = ValidationLevel.from_string(level)

    result = ValidationResult()
    check_basic_requirements(dataset, result)

    if level is ValidationLevel.COMPREHENSIVE:
        check_study_quality(dataset, result)
        check_statistical_requirements(dataset, result)
        check_reporting_standards(dataset, result)

    result.valid = len(result.errors) == 0
    return result


# ============================================================================
# Basic tier
# ============================================================================

def check_basic_requirements(dataset: Dataset, result: ValidationResult) -> None:
    """Minimum study count, outcome coverage and unique ids."""
    if dataset.n_studies < MIN_STUDIES:
        result.errors.append(
            f"Meta-analysis requires at least {MIN_STUDIES} studies. Current: {dataset.n_studies}"
        )

    outcome_ids = {o.study_id for o in dataset.outcomes}
    reported = set()
    for study_id in dataset.study_ids:
        if study_id not in outcome_ids and study_id not in reported:
            result.errors.append(f"Study {study_id} is missing outcome data")
            reported.add(study_id)

    duplicates = find_duplicates(dataset.study_ids)
    if duplicates:
        result.errors.append(f"Duplicate study IDs found: {', '.join(duplicates)}")


def find_duplicates(values: List[str]) -> List[str]:
    """Values occurring more than once, in order of first repeat."""
    seen = set()
    duplicates: List[str] = []
    for value in values:
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.add(value)
    return duplicates


# ============================================================================
# Comprehensive tier
# ============================================================================

def _study_label(dataset: Dataset, study_id: str) -> str:
    study = dataset.get_study(study_id)
    return study.label if study is not None else study_id


def check_study_quality(dataset: Dataset, result: ValidationResult) -> None:
    """Per-outcome sample size, zero-event and SD checks."""
    for outcome in dataset.outcomes:
        label = _study_label(dataset, outcome.study_id)

        if outcome.n_treatment < SMALL_ARM_SIZE:
            result.warnings.append(
                f"{label}: Small treatment group (n={outcome.n_treatment}). "
                "Consider sensitivity analysis."
            )
        if outcome.n_control < SMALL_ARM_SIZE:
            result.warnings.append(
                f"{label}: Small control group (n={outcome.n_control}). "
                "Consider sensitivity analysis."
            )

        if dataset.outcome_type is OutcomeType.BINARY:
            _check_binary(outcome, label, result)
        else:
            _check_continuous(outcome, label, result)


def _check_binary(outcome: BinaryOutcome, label: str, result: ValidationResult) -> None:
    if outcome.events_treatment == 0 or outcome.events_control == 0:
        result.warnings.append(
            f"{label}: Zero events detected. Continuity correction will be applied."
        )
    if outcome.events_treatment == 0 and outcome.events_control == 0:
        result.suggestions.append(
            f"{label}: Double-zero study. Consider excluding from analysis "
            "per Cochrane Handbook 10.4.4."
        )


def _check_continuous(outcome: ContinuousOutcome, label: str, result: ValidationResult) -> None:
    if outcome.sd_treatment == 0 or outcome.sd_control == 0:
        result.errors.append(f"{label}: Standard deviation cannot be zero")

    if outcome.sd_treatment < abs(outcome.mean_treatment) * SMALL_SD_FRACTION:
        result.warnings.append(
            f"{label}: Suspiciously small SD in treatment group. Please verify."
        )
    if outcome.sd_control < abs(outcome.mean_control) * SMALL_SD_FRACTION:
        result.warnings.append(
            f"{label}: Suspiciously small SD in control group. Please verify."
        )


def median_year(dataset: Dataset) -> int:
    """Upper median of study publication years (2000 if no studies)."""
    years = sorted(s.year for s in dataset.studies)
    if not years:
        return 2000
    return years[len(years) // 2]


def check_statistical_requirements(dataset: Dataset, result: ValidationResult) -> None:
    """Aggregate sample size and publication-year dispersion."""
    total = dataset.total_participants
    result.suggestions.append(f"Total participants across all studies: {total}")

    if total < UNDERPOWERED_TOTAL:
        result.warnings.append(
            f"Small total sample size (n<{UNDERPOWERED_TOTAL}). Meta-analysis may be underpowered."
        )

    cutoff = median_year(dataset) - OLD_STUDY_YEARS
    n_old = sum(1 for s in dataset.studies if s.year < cutoff)
    if n_old > 0:
        result.suggestions.append(
            f"{n_old} studies are >{OLD_STUDY_YEARS} years older than median. "
            "Consider subgroup analysis by publication year."
        )


def check_reporting_standards(dataset: Dataset, result: ValidationResult) -> None:
    """PICO completeness, DOIs, and standing assessment reminders."""
    if not dataset.intervention or dataset.intervention == DEFAULT_INTERVENTION:
        result.suggestions.append(
            "Provide detailed intervention description for PICO framework"
        )
    if not dataset.comparison or dataset.comparison == DEFAULT_COMPARISON:
        result.suggestions.append(
            "Provide detailed comparison/control description for PICO framework"
        )

    n_missing_doi = sum(1 for s in dataset.studies if not s.doi)
    if n_missing_doi > 0:
        result.suggestions.append(
            f"{n_missing_doi} studies missing DOI. Add DOIs for better traceability."
        )

    result.suggestions.append(
        "Perform risk of bias assessment using Cochrane RoB 2 tool for RCTs "
        "or ROBINS-I for non-randomized studies"
    )
    result.suggestions.append(
        "Consider GRADE assessment to evaluate certainty of evidence"
    )
