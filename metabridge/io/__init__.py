"""I/O utilities for metabridge."""

from metabridge.io.readers import (
    import_dataset,
    read_csv,
    read_json,
    read_excel,
    records_to_dataset,
    dataset_from_json,
)
from metabridge.io.writers import (
    write_report,
    render_html_report,
    render_markdown_report,
)
from metabridge.io.schema import (
    FieldSpec,
    validate_dataset,
    validate_analysis_result,
    dataset_from_dict,
    analysis_result_from_dict,
    bias_assessment_from_dict,
)

__all__ = [
    "import_dataset",
    "read_csv",
    "read_json",
    "read_excel",
    "records_to_dataset",
    "dataset_from_json",
    "write_report",
    "render_html_report",
    "render_markdown_report",
    "FieldSpec",
    "validate_dataset",
    "validate_analysis_result",
    "dataset_from_dict",
    "analysis_result_from_dict",
    "bias_assessment_from_dict",
]
