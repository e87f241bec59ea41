"""
Canonical dataset model for metabridge.

This module defines how studies, their trial-level outcome data and the
review question (PICO metadata) are represented once raw input has been
imported. Datasets are immutable; validators and the engine bridge only
read them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple, Union, Mapping


DEFAULT_OUTCOME_NAME = "Primary outcome"
DEFAULT_INTERVENTION = "Intervention"
DEFAULT_COMPARISON = "Control"

BINARY_KEYS = ("events_treatment", "events_control")
CONTINUOUS_KEYS = ("mean_treatment", "mean_control")


class OutcomeType(Enum):
    """Kind of trial-level outcome data carried by a dataset."""
    BINARY = "binary"
    CONTINUOUS = "continuous"
    AMBIGUOUS = "ambiguous"

    @classmethod
    def from_string(cls, s: str) -> OutcomeType:
        """Convert string to a concrete (non-ambiguous) OutcomeType."""
        value = str(s).lower().strip()
        for member in (cls.BINARY, cls.CONTINUOUS):
            if member.value == value:
                return member
        raise ValueError(f"Unknown outcome type: {s}")


def classify_outcome_type(record: Mapping[str, Any]) -> OutcomeType:
    """
    Classify a flat record by key presence.

    Binary data is recognised by event counts in both arms, continuous
    data by means in both arms. Binary wins when both sets are present.

    Args:
        record: First record of a record array

    Returns:
        OutcomeType.BINARY, OutcomeType.CONTINUOUS or OutcomeType.AMBIGUOUS
    """
    if all(key in record for key in BINARY_KEYS):
        return OutcomeType.BINARY
    if all(key in record for key in CONTINUOUS_KEYS):
        return OutcomeType.CONTINUOUS
    return OutcomeType.AMBIGUOUS


@dataclass(frozen=True)
class Study:
    """
    Bibliographic record of one included study.

    Attributes:
        id: Unique study identifier
        authors: Author list
        year: Publication year (1900-2100)
        title: Study title
        journal: Publication journal
        doi: Digital object identifier
    """

    id: str
    authors: str
    year: int
    title: str
    journal: Optional[str] = None
    doi: Optional[str] = None

    @property
    def label(self) -> str:
        """Short citation label, e.g. 'Smith et al. (2019)'."""
        return f"{self.authors} ({self.year})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting absent optional fields."""
        result = {
            "id": self.id,
            "authors": self.authors,
            "year": self.year,
            "title": self.title,
        }
        if self.journal is not None:
            result["journal"] = self.journal
        if self.doi is not None:
            result["doi"] = self.doi
        return result

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Study:
        """Create from dictionary."""
        return cls(
            id=d["id"],
            authors=d["authors"],
            year=d["year"],
            title=d["title"],
            journal=d.get("journal"),
            doi=d.get("doi"),
        )


@dataclass(frozen=True)
class BinaryOutcome:
    """Event counts per arm for one study."""

    study_id: str
    events_treatment: int
    n_treatment: int
    events_control: int
    n_control: int

    @property
    def n_total(self) -> int:
        return self.n_treatment + self.n_control

    def to_dict(self) -> Dict[str, Any]:
        return {
            "study_id": self.study_id,
            "events_treatment": self.events_treatment,
            "n_treatment": self.n_treatment,
            "events_control": self.events_control,
            "n_control": self.n_control,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> BinaryOutcome:
        return cls(
            study_id=d["study_id"],
            events_treatment=d["events_treatment"],
            n_treatment=d["n_treatment"],
            events_control=d["events_control"],
            n_control=d["n_control"],
        )


@dataclass(frozen=True)
class ContinuousOutcome:
    """Mean, SD and sample size per arm for one study."""

    study_id: str
    mean_treatment: float
    sd_treatment: float
    n_treatment: int
    mean_control: float
    sd_control: float
    n_control: int

    @property
    def n_total(self) -> int:
        return self.n_treatment + self.n_control

    def to_dict(self) -> Dict[str, Any]:
        return {
            "study_id": self.study_id,
            "mean_treatment": self.mean_treatment,
            "sd_treatment": self.sd_treatment,
            "n_treatment": self.n_treatment,
            "mean_control": self.mean_control,
            "sd_control": self.sd_control,
            "n_control": self.n_control,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ContinuousOutcome:
        return cls(
            study_id=d["study_id"],
            mean_treatment=d["mean_treatment"],
            sd_treatment=d["sd_treatment"],
            n_treatment=d["n_treatment"],
            mean_control=d["mean_control"],
            sd_control=d["sd_control"],
            n_control=d["n_control"],
        )


Outcome = Union[BinaryOutcome, ContinuousOutcome]

OUTCOME_CLASSES = {
    OutcomeType.BINARY: BinaryOutcome,
    OutcomeType.CONTINUOUS: ContinuousOutcome,
}


@dataclass(frozen=True)
class Dataset:
    """
    Canonical meta-analysis dataset.

    Studies keep their input order so duplicate ids coming from a
    structured import stay visible to the validator. Outcomes map 1:1
    to source rows; several outcomes may reference the same study.

    Attributes:
        studies: Included studies
        outcomes: Trial-level outcome rows
        outcome_type: Dataset-wide outcome type (never mixed)
        outcome_name: Name of the outcome being pooled
        intervention: Intervention description (PICO)
        comparison: Comparison/control description (PICO)
    """

    studies: Tuple[Study, ...]
    outcomes: Tuple[Outcome, ...]
    outcome_type: OutcomeType
    outcome_name: str = DEFAULT_OUTCOME_NAME
    intervention: str = DEFAULT_INTERVENTION
    comparison: str = DEFAULT_COMPARISON

    # Lookup table built once; excluded from equality and repr
    _index: Dict[str, Study] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        """Freeze sequences and check outcome type consistency."""
        if self.outcome_type is OutcomeType.AMBIGUOUS:
            raise ValueError("Dataset outcome_type must be binary or continuous")
        object.__setattr__(self, "studies", tuple(self.studies))
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

        expected = OUTCOME_CLASSES[self.outcome_type]
        for outcome in self.outcomes:
            if not isinstance(outcome, expected):
                raise ValueError(
                    f"Outcome for study '{outcome.study_id}' is not {self.outcome_type.value}"
                )

        index: Dict[str, Study] = {}
        for study in self.studies:
            index.setdefault(study.id, study)
        object.__setattr__(self, "_index", index)

    @property
    def n_studies(self) -> int:
        return len(self.studies)

    @property
    def study_ids(self) -> List[str]:
        """Study ids in input order (duplicates preserved)."""
        return [s.id for s in self.studies]

    @property
    def total_participants(self) -> int:
        """Participants summed over every outcome row."""
        return sum(o.n_treatment + o.n_control for o in self.outcomes)

    def get_study(self, study_id: str) -> Optional[Study]:
        """First study with the given id, or None."""
        return self._index.get(study_id)

    def outcomes_for(self, study_id: str) -> List[Outcome]:
        """All outcome rows referencing a study."""
        return [o for o in self.outcomes if o.study_id == study_id]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the canonical JSON shape."""
        return {
            "studies": [s.to_dict() for s in self.studies],
            "outcomes": [o.to_dict() for o in self.outcomes],
            "outcome_type": self.outcome_type.value,
            "outcome_name": self.outcome_name,
            "intervention": self.intervention,
            "comparison": self.comparison,
        }

    def summary(self) -> Dict[str, Any]:
        """Short description used in import payloads."""
        return {
            "n_studies": self.n_studies,
            "n_outcomes": len(self.outcomes),
            "outcome_type": self.outcome_type.value,
            "outcome_name": self.outcome_name,
            "intervention": self.intervention,
            "comparison": self.comparison,
        }
