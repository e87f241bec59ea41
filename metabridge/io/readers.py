"""
Data readers for metabridge.

This module provides functions for reading trial-level outcome data from
delimited text, spreadsheet workbooks and JSON, and normalising it into
a canonical Dataset.

Flat record inputs (one row per study arm pair) are classified as binary
or continuous from the keys of the first record. Studies are
deduplicated by ``study_id`` (first occurrence wins) while every row
becomes one outcome. Numeric cells that cannot be parsed become NaN and
are rejected by the schema check rather than silently dropped.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List, Union
from pathlib import Path
import json
import logging
import zipfile

import numpy as np
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from metabridge.core.dataset import (
    Dataset,
    OutcomeType,
    classify_outcome_type,
    DEFAULT_OUTCOME_NAME,
    DEFAULT_INTERVENTION,
    DEFAULT_COMPARISON,
)
from metabridge.core.exceptions import (
    UnsupportedFormatError,
    EmptyInputError,
    AmbiguousOutcomeTypeError,
    MalformedStructureError,
)
from metabridge.io.schema import dataset_from_dict

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("csv", "xlsx", "json")

_SUFFIX_FORMATS = {
    ".csv": "csv",
    ".tsv": "csv",
    ".txt": "csv",
    ".xlsx": "xlsx",
    ".xlsm": "xlsx",
    ".json": "json",
}

DEFAULT_AUTHORS = "Unknown"
DEFAULT_TITLE = "Unknown"
DEFAULT_YEAR = 2000


def import_dataset(
    filepath: Union[str, Path],
    format: Optional[str] = None,
    **kwargs
) -> Dataset:
    """
    Read a dataset from any supported file format.

    Args:
        filepath: Path to the input file
        format: 'csv', 'xlsx' or 'json'; inferred from the suffix if omitted
        **kwargs: Passed to the format-specific reader

    Returns:
        Dataset

    Raises:
        UnsupportedFormatError: If the format is not supported
    """
    filepath = Path(filepath)

    if format is None:
        format = _SUFFIX_FORMATS.get(filepath.suffix.lower())
        if format is None:
            raise UnsupportedFormatError(f"Cannot infer format from file suffix '{filepath.suffix}'")

    format = format.lower().strip()
    logger.info("Importing data from %s (format: %s)", filepath, format)

    if format == "csv":
        if filepath.suffix.lower() == ".tsv":
            kwargs.setdefault("delimiter", "\t")
        dataset = read_csv(filepath, **kwargs)
    elif format == "xlsx":
        dataset = read_excel(filepath, **kwargs)
    elif format == "json":
        dataset = read_json(filepath, **kwargs)
    else:
        raise UnsupportedFormatError(f"Unsupported format: {format}")

    logger.info(
        "Imported %d studies / %d outcomes (%s)",
        dataset.n_studies, len(dataset.outcomes), dataset.outcome_type.value,
    )
    return dataset


def read_csv(
    filepath: Union[str, Path],
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> Dataset:
    """
    Read a dataset from delimited text with a header row.

    Args:
        filepath: Path to CSV file
        delimiter: Field delimiter
        encoding: Text encoding

    Returns:
        Dataset
    """
    try:
        df = pd.read_csv(
            filepath,
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            skip_blank_lines=True,
            encoding=encoding,
        )
    except pd.errors.EmptyDataError as exc:
        raise EmptyInputError("No data records found") from exc
    except pd.errors.ParserError as exc:
        raise MalformedStructureError(f"Could not parse delimited text: {exc}") from exc

    return records_to_dataset(_frame_to_records(df))


def read_excel(
    filepath: Union[str, Path],
) -> Dataset:
    """
    Read a dataset from the first worksheet of a workbook.

    Requires openpyxl to be installed.

    Args:
        filepath: Path to Excel file

    Returns:
        Dataset

    Raises:
        MalformedStructureError: If the workbook has no sheets or no data rows
    """
    try:
        with pd.ExcelFile(filepath, engine="openpyxl") as workbook:
            if not workbook.sheet_names:
                raise MalformedStructureError("Excel file has no worksheets")
            df = workbook.parse(workbook.sheet_names[0], dtype=object)
    except (ValueError, zipfile.BadZipFile, InvalidFileException) as exc:
        raise MalformedStructureError(f"Could not read workbook: {exc}") from exc

    df = df.dropna(how="all")
    if df.empty:
        raise MalformedStructureError("Excel file has no data")

    return records_to_dataset(_frame_to_records(df))


def read_json(
    filepath: Union[str, Path],
    encoding: str = "utf-8",
) -> Dataset:
    """
    Read a dataset from a JSON file.

    Two shapes are accepted: a structured dataset
    (``{"studies": [...], "outcomes": [...], "outcome_type": ...}``) or a
    flat array of records like the rows of a CSV file.

    Args:
        filepath: Path to JSON file
        encoding: Text encoding

    Returns:
        Dataset
    """
    with open(filepath, 'r', encoding=encoding) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise MalformedStructureError(f"Invalid JSON: {exc}") from exc

    return dataset_from_json(data)


def dataset_from_json(data: Any) -> Dataset:
    """
    Convert parsed JSON (structured dataset or record array) to a Dataset.

    Raises:
        MalformedStructureError: If the JSON has neither shape
    """
    if isinstance(data, dict) and all(k in data for k in ("studies", "outcomes", "outcome_type")):
        return dataset_from_dict({
            "studies": data["studies"],
            "outcomes": data["outcomes"],
            "outcome_type": data["outcome_type"],
            "outcome_name": data.get("outcome_name") or DEFAULT_OUTCOME_NAME,
            "intervention": data.get("intervention") or DEFAULT_INTERVENTION,
            "comparison": data.get("comparison") or DEFAULT_COMPARISON,
        })

    if isinstance(data, list):
        return records_to_dataset(data)

    raise MalformedStructureError(
        "Invalid JSON structure. Expected either a structured dataset or an array of records."
    )


def records_to_dataset(records: List[Dict[str, Any]]) -> Dataset:
    """
    Normalise flat records into a Dataset.

    Args:
        records: One dictionary per outcome row

    Returns:
        Dataset

    Raises:
        EmptyInputError: If there are no records
        AmbiguousOutcomeTypeError: If the first record has neither event nor mean columns
        SchemaError: If any normalised value is out of range or unparseable
    """
    if not records:
        raise EmptyInputError("No data records found")
    if not all(isinstance(r, dict) for r in records):
        raise MalformedStructureError("Every record must be an object")

    first = records[0]
    outcome_type = classify_outcome_type(first)
    if outcome_type is OutcomeType.AMBIGUOUS:
        raise AmbiguousOutcomeTypeError(
            "Cannot determine outcome type from data. Expected binary "
            "(events_treatment/events_control) or continuous "
            "(mean_treatment/mean_control) columns."
        )

    studies: Dict[Any, Dict[str, Any]] = {}
    for record in records:
        study_id = _text(record.get("study_id"))
        if study_id in studies:
            continue
        year = _parse_int(record.get("year"))
        studies[study_id] = {
            "id": study_id,
            "authors": _text(record.get("authors")) or DEFAULT_AUTHORS,
            "year": DEFAULT_YEAR if _is_nan(year) or year == 0 else year,
            "title": _text(record.get("title")) or DEFAULT_TITLE,
            "journal": _text(record.get("journal")),
            "doi": _text(record.get("doi")),
        }

    outcomes = [_outcome_from_record(record, outcome_type) for record in records]

    return dataset_from_dict({
        "studies": list(studies.values()),
        "outcomes": outcomes,
        "outcome_type": outcome_type.value,
        "outcome_name": _text(first.get("outcome")) or DEFAULT_OUTCOME_NAME,
        "intervention": _text(first.get("intervention")) or DEFAULT_INTERVENTION,
        "comparison": _text(first.get("comparison")) or DEFAULT_COMPARISON,
    })


def _outcome_from_record(record: Dict[str, Any], outcome_type: OutcomeType) -> Dict[str, Any]:
    outcome = {"study_id": _text(record.get("study_id"))}
    if outcome_type is OutcomeType.BINARY:
        for key in ("events_treatment", "n_treatment", "events_control", "n_control"):
            outcome[key] = _parse_int(record.get(key))
    else:
        for key in ("mean_treatment", "sd_treatment", "mean_control", "sd_control"):
            outcome[key] = _parse_float(record.get(key))
        for key in ("n_treatment", "n_control"):
            outcome[key] = _parse_int(record.get(key))
    return outcome


def _frame_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a DataFrame to records with trimmed headers and text cells."""
    df = df.rename(columns=lambda c: str(c).strip())
    records = []
    for row in df.to_dict(orient="records"):
        records.append({
            key: value.strip() if isinstance(value, str) else value
            for key, value in row.items()
        })
    return records


# ============================================================================
# Cell parsing
# ============================================================================

def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and np.isnan(value)


def _text(value: Any) -> Optional[str]:
    """Optional text cell: empty strings and NaN become None."""
    if value is None or _is_nan(value):
        return None
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _parse_int(value: Any) -> Union[int, float]:
    """Parse an integer cell; failures become NaN."""
    if value is None or isinstance(value, (bool, np.bool_)):
        return np.nan
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        number = float(value)
    else:
        text = str(value).strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return np.nan
    if np.isfinite(number) and number.is_integer():
        return int(number)
    return np.nan


def _parse_float(value: Any) -> float:
    """Parse a floating point cell; failures become NaN."""
    if value is None or isinstance(value, (bool, np.bool_)):
        return np.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return np.nan
