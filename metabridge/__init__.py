"""
metabridge: systematic-review meta-analysis through an external statistical engine

Imports trial-level outcome data from delimited text, workbooks or JSON
into one canonical dataset, checks it against systematic-review
methodology, hands the numerical work (pooling, heterogeneity,
publication-bias tests, plots) to an external engine process, and turns
the engine's numbers back into plain-language guidance.

Key Features:
    - One canonical, immutable Dataset for binary and continuous outcomes
    - Layered methodological validation returned as data, never raised
    - Safe process bridge: unique temp files, streamed output, timeouts,
      classified failures
    - Deterministic heterogeneity, recommendation and bias interpretation

Example Usage:
    >>> import asyncio
    >>> from metabridge import import_dataset, validate_dataset, AnalysisBridge, run_meta_analysis, get_recommendations
    >>>
    >>> dataset = import_dataset("trials.csv")
    >>> report = validate_dataset(dataset, "comprehensive")
    >>> report.valid
    True
    >>> result = asyncio.run(run_meta_analysis(AnalysisBridge(), dataset, "OR"))
    >>> get_recommendations(result)
"""

__version__ = "1.0.0"

# Configuration
from metabridge.config import EngineConfig, ScriptDialect, R_DIALECT, PYTHON_DIALECT

# Core classes
from metabridge.core.dataset import (
    Study,
    BinaryOutcome,
    ContinuousOutcome,
    Dataset,
    OutcomeType,
    classify_outcome_type,
)
from metabridge.core.results import (
    EffectMeasure,
    PoolingModel,
    EffectSize,
    Heterogeneity,
    StudyEffect,
    AnalysisResult,
    BiasAssessment,
    InsufficientData,
)
from metabridge.core.exceptions import (
    MetaBridgeError,
    DataImportError,
    UnsupportedFormatError,
    EmptyInputError,
    AmbiguousOutcomeTypeError,
    MalformedStructureError,
    SchemaError,
    UnsupportedEffectMeasureError,
    EngineError,
    EngineNotFoundError,
    EngineRuntimeError,
    EngineTimeoutError,
    ResultParseError,
)

# I/O
from metabridge.io.readers import import_dataset, read_csv, read_excel, read_json
from metabridge.io.schema import dataset_from_dict, analysis_result_from_dict
from metabridge.io.writers import write_report

# Diagnostics
from metabridge.diagnostics.validation import ValidationResult, ValidationLevel, validate_dataset
from metabridge.diagnostics.heterogeneity import HeterogeneityBand, heterogeneity_band, interpret_heterogeneity
from metabridge.diagnostics.recommendations import get_recommendations
from metabridge.diagnostics.publication_bias import interpret_publication_bias

# Engine
from metabridge.engine.bridge import AnalysisBridge
from metabridge.engine.templates import ScriptTemplate, load_template

# Engine-backed analyses
from metabridge.models.meta_analysis import run_meta_analysis
from metabridge.models.publication_bias import run_bias_assessment
from metabridge.visualization.forest import generate_forest_plot

# Orchestrator
from metabridge.service import MetaAnalysisService

__all__ = [
    # Version
    "__version__",
    # Configuration
    "EngineConfig",
    "ScriptDialect",
    "R_DIALECT",
    "PYTHON_DIALECT",
    # Core
    "Study",
    "BinaryOutcome",
    "ContinuousOutcome",
    "Dataset",
    "OutcomeType",
    "classify_outcome_type",
    "EffectMeasure",
    "PoolingModel",
    "EffectSize",
    "Heterogeneity",
    "StudyEffect",
    "AnalysisResult",
    "BiasAssessment",
    "InsufficientData",
    # Errors
    "MetaBridgeError",
    "DataImportError",
    "UnsupportedFormatError",
    "EmptyInputError",
    "AmbiguousOutcomeTypeError",
    "MalformedStructureError",
    "SchemaError",
    "UnsupportedEffectMeasureError",
    "EngineError",
    "EngineNotFoundError",
    "EngineRuntimeError",
    "EngineTimeoutError",
    "ResultParseError",
    # I/O
    "import_dataset",
    "read_csv",
    "read_excel",
    "read_json",
    "dataset_from_dict",
    "analysis_result_from_dict",
    "write_report",
    # Diagnostics
    "ValidationResult",
    "ValidationLevel",
    "validate_dataset",
    "HeterogeneityBand",
    "heterogeneity_band",
    "interpret_heterogeneity",
    "get_recommendations",
    "interpret_publication_bias",
    # Engine
    "AnalysisBridge",
    "ScriptTemplate",
    "load_template",
    # Analyses
    "run_meta_analysis",
    "run_bias_assessment",
    "generate_forest_plot",
    # Orchestrator
    "MetaAnalysisService",
]
