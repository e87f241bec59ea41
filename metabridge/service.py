"""
Orchestrator operations for metabridge.

``MetaAnalysisService`` exposes each pipeline stage as a named async
operation taking and returning plain JSON-compatible dictionaries.
Operations never raise: any failure is logged and converted into
``{"isError": True, "message": "<ExceptionType>: <text>"}`` so a
long-lived host process survives a failing request.
"""

from __future__ import annotations
from pathlib import Path
from typing import Optional, Dict, Any, Awaitable, Callable, List, Sequence
import functools
import logging
import os
import tempfile

from metabridge.config import EngineConfig
from metabridge.core.dataset import Dataset
from metabridge.core.results import AnalysisResult
from metabridge.diagnostics.heterogeneity import interpret_heterogeneity
from metabridge.diagnostics.publication_bias import interpret_publication_bias, low_power_warning
from metabridge.diagnostics.recommendations import get_recommendations
from metabridge.diagnostics.validation import validate_dataset
from metabridge.engine.bridge import AnalysisBridge
from metabridge.io.readers import import_dataset
from metabridge.io.schema import analysis_result_from_dict, bias_assessment_from_dict, dataset_from_dict
from metabridge.io.writers import render_markdown_report, write_report
from metabridge.models.meta_analysis import PROCEDURE as META_ANALYSIS_PROCEDURE, run_meta_analysis
from metabridge.models.publication_bias import DEFAULT_METHODS, run_bias_assessment
from metabridge.visualization.forest import generate_forest_plot

logger = logging.getLogger(__name__)

REPORT_PROCEDURE = "render_report"


def error_payload(exc: BaseException) -> Dict[str, Any]:
    """Uniform failure payload for an exception."""
    return {"isError": True, "message": f"{type(exc).__name__}: {exc}"}


def guarded(operation: Callable[..., Awaitable[Dict[str, Any]]]):
    """Convert any exception raised by an operation into an error payload."""

    @functools.wraps(operation)
    async def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            return await operation(*args, **kwargs)
        except Exception as exc:
            logger.exception("Operation '%s' failed", operation.__name__)
            return error_payload(exc)

    return wrapper


class MetaAnalysisService:
    """
    The six pipeline operations: import, validate, analyze, forest plot,
    bias assessment and report.

    Args:
        bridge: Engine bridge (default: configured from the environment)
    """

    def __init__(self, bridge: Optional[AnalysisBridge] = None):
        self.bridge = bridge or AnalysisBridge(EngineConfig.from_env())

    @guarded
    async def import_data(self, file_path: str, format: Optional[str] = None) -> Dict[str, Any]:
        """Import a csv/xlsx/json file into a canonical dataset."""
        dataset = import_dataset(file_path, format=format)
        return {
            "success": True,
            "message": f"Successfully imported {dataset.n_studies} studies",
            "data": dataset.to_dict(),
            "summary": dataset.summary(),
        }

    @guarded
    async def validate_data(
        self,
        data: Dict[str, Any],
        validation_level: str = "comprehensive"
    ) -> Dict[str, Any]:
        """Run the methodological validator over a dataset dictionary."""
        logger.info("Validating data (level: %s)", validation_level)
        dataset = dataset_from_dict(data)
        result = validate_dataset(dataset, validation_level)
        return {
            "validation_result": result.to_dict(),
            "summary": result.summary(),
        }

    @guarded
    async def perform_meta_analysis(
        self,
        data: Dict[str, Any],
        effect_measure: str,
        model: str = "random",
        heterogeneity_test: bool = True,
    ) -> Dict[str, Any]:
        """Pool a dataset and interpret the result."""
        dataset = dataset_from_dict(data)
        result = await run_meta_analysis(self.bridge, dataset, effect_measure, model)
        return {
            "success": True,
            "results": result.to_dict(),
            "interpretation": {
                "heterogeneity": (
                    interpret_heterogeneity(result.heterogeneity.I2) if heterogeneity_test else None
                ),
                "recommendation": get_recommendations(result, include_heterogeneity=heterogeneity_test),
            },
        }

    @guarded
    async def generate_forest_plot(
        self,
        analysis_results: Dict[str, Any],
        output_path: str,
        plot_style: str = "classic",
        confidence_level: float = 0.95,
    ) -> Dict[str, Any]:
        """Render a forest plot PNG for an analysis result."""
        result = analysis_result_from_dict(analysis_results)
        path = await generate_forest_plot(
            self.bridge, result, output_path,
            plot_style=plot_style, confidence_level=confidence_level,
        )
        return {
            "success": True,
            "message": "Forest plot generated successfully",
            "output_path": str(path),
            "format": "PNG (300 DPI)",
        }

    @guarded
    async def assess_publication_bias(
        self,
        analysis_results: Dict[str, Any],
        methods: Sequence[str] = DEFAULT_METHODS,
        output_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run publication-bias methods and interpret them."""
        result = analysis_result_from_dict(analysis_results)
        assessment = await run_bias_assessment(self.bridge, result, methods, funnel_plot_path=output_path)
        return {
            "success": True,
            "bias_assessment": assessment.to_dict(),
            "interpretation": interpret_publication_bias(assessment, methods),
            "warning": low_power_warning(result.n_studies),
        }

    @guarded
    async def generate_report(
        self,
        analysis_results: Dict[str, Any],
        output_path: str,
        format: str = "html",
        include_code: bool = False,
        data: Optional[Dict[str, Any]] = None,
        bias_results: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Write an html, markdown or pdf report for an analysis result.

        ``data`` adds the review question header; ``bias_results`` (the
        ``bias_assessment`` of a publication-bias run) adds its interpretation.
        """
        result = analysis_result_from_dict(analysis_results)
        dataset = dataset_from_dict(data) if data is not None else None
        bias_lines = None
        if bias_results is not None:
            bias_lines = interpret_publication_bias(bias_assessment_from_dict(bias_results))
        source = self.bridge.template(META_ANALYSIS_PROCEDURE).body if include_code else None

        if format == "pdf":
            path = await self._render_pdf(result, Path(output_path), dataset, bias_lines, source)
        else:
            path = write_report(
                result, output_path, format=format,
                dataset=dataset, bias_lines=bias_lines, procedure_source=source,
            )

        logger.info("Report written to %s", path)
        return {
            "success": True,
            "message": "Report generated successfully",
            "output_path": str(path),
            "format": format,
        }

    async def _render_pdf(
        self,
        result: AnalysisResult,
        output_path: Path,
        dataset: Optional[Dataset],
        bias_lines: Optional[List[str]],
        source: Optional[str],
    ) -> Path:
        fd, markdown_path = tempfile.mkstemp(
            prefix="metabridge_report_", suffix=".md", dir=self.bridge.config.temp_dir
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(render_markdown_report(result, dataset, bias_lines, procedure_source=source))
            await self.bridge.run(
                REPORT_PROCEDURE,
                {"markdown_path": markdown_path, "report_path": str(output_path.resolve())},
            )
        finally:
            try:
                os.remove(markdown_path)
            except OSError as exc:
                logger.warning("Could not remove temp file %s: %s", markdown_path, exc)
        return output_path

    async def check_engine(self) -> Dict[str, Any]:
        """Engine availability and add-on package status (never raises)."""
        info = await self.bridge.engine_info()
        packages = await self.bridge.check_packages() if info is not None else {
            name: False for name in self.bridge.config.required_packages
        }
        return {
            "available": info is not None,
            "engine": info,
            "packages": packages,
        }
