"""
Data writers for metabridge.

This module renders analysis results as human-readable reports
in Markdown or HTML.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List, Union
from pathlib import Path
import html

from metabridge.core.dataset import Dataset
from metabridge.core.results import AnalysisResult
from metabridge.diagnostics.heterogeneity import interpret_heterogeneity
from metabridge.diagnostics.recommendations import get_recommendations
from metabridge.utils import format_estimate, format_p_value, format_percentage


REPORT_FORMATS = ("html", "markdown")


def _effect_rows(result: AnalysisResult, decimals: int) -> List[List[str]]:
    rows = []
    for study_effect in result.study_effects:
        es = study_effect.effect_size
        rows.append([
            study_effect.study_id,
            f"{es.estimate:.{decimals}f}",
            f"{es.lower_ci:.{decimals}f}",
            f"{es.upper_ci:.{decimals}f}",
            format_percentage(es.weight) if es.weight is not None else "",
        ])
    pooled = result.pooled_effect
    rows.append([
        "Pooled",
        f"{pooled.estimate:.{decimals}f}",
        f"{pooled.lower_ci:.{decimals}f}",
        f"{pooled.upper_ci:.{decimals}f}",
        "100.0%",
    ])
    return rows


# ============================================================================
# Reports
# ============================================================================

def _report_sections(
    result: AnalysisResult,
    dataset: Optional[Dataset],
    bias_lines: Optional[List[str]],
) -> Dict[str, Any]:
    """Format-independent report content."""
    pooled = result.pooled_effect
    heterogeneity = result.heterogeneity

    pico = None
    if dataset is not None:
        pico = [
            ("Outcome", dataset.outcome_name),
            ("Intervention", dataset.intervention),
            ("Comparison", dataset.comparison),
        ]

    summary = [
        ("Effect measure", result.effect_measure.value),
        ("Model", f"{result.model.value} effects"),
        ("Pooled estimate", format_estimate(pooled.estimate, (pooled.lower_ci, pooled.upper_ci))),
        ("Studies", str(result.n_studies)),
        ("Participants", str(result.n_participants)),
    ]
    if pooled.p_value is not None:
        summary.append(("P-value", format_p_value(pooled.p_value)))

    heterogeneity_rows = [
        ("I²", format_percentage(heterogeneity.I2)),
        ("Q", f"{heterogeneity.Q:.2f} (df = {heterogeneity.df}, {format_p_value(heterogeneity.p_value)})"),
        ("τ²", f"{heterogeneity.tau2:.4f}"),
    ]

    return {
        "pico": pico,
        "summary": summary,
        "heterogeneity": heterogeneity_rows,
        "heterogeneity_text": interpret_heterogeneity(heterogeneity.I2),
        "effects": _effect_rows(result, 3),
        "recommendations": get_recommendations(result),
        "bias": bias_lines or [],
    }


def render_markdown_report(
    result: AnalysisResult,
    dataset: Optional[Dataset] = None,
    bias_lines: Optional[List[str]] = None,
    procedure_source: Optional[str] = None,
) -> str:
    """Render an analysis report as Markdown text."""
    content = _report_sections(result, dataset, bias_lines)
    lines = ["# Meta-Analysis Report", ""]

    if content["pico"]:
        lines.extend(["## Review Question", ""])
        lines.extend(f"- **{label}**: {value}" for label, value in content["pico"])
        lines.append("")

    lines.extend(["## Pooled Result", ""])
    lines.extend(f"- **{label}**: {value}" for label, value in content["summary"])
    lines.append("")

    lines.extend(["## Heterogeneity", ""])
    lines.extend(f"- **{label}**: {value}" for label, value in content["heterogeneity"])
    lines.extend(["", content["heterogeneity_text"], ""])

    lines.extend([
        "## Study Effects",
        "",
        "| Study | Estimate | Lower CI | Upper CI | Weight |",
        "|-------|----------|----------|----------|--------|",
    ])
    lines.extend("| " + " | ".join(row) + " |" for row in content["effects"])
    lines.append("")

    if content["recommendations"]:
        lines.extend(["## Recommendations", ""])
        for rec in content["recommendations"]:
            # Indented continuation lines become nested bullets
            if rec.startswith("  - "):
                lines.append("  " + rec)
            else:
                lines.append(f"- {rec}")
        lines.append("")

    if content["bias"]:
        lines.extend(["## Publication Bias", ""])
        lines.extend(f"- {line}" for line in content["bias"])
        lines.append("")

    if procedure_source:
        lines.extend(["## Appendix: Analysis Code", "", "```r", procedure_source.rstrip(), "```", ""])

    return "\n".join(lines)


def render_html_report(
    result: AnalysisResult,
    dataset: Optional[Dataset] = None,
    bias_lines: Optional[List[str]] = None,
    procedure_source: Optional[str] = None,
) -> str:
    """Render an analysis report as a standalone HTML document."""
    content = _report_sections(result, dataset, bias_lines)
    esc = html.escape

    def definition_list(rows):
        items = "".join(f"<dt>{esc(label)}</dt><dd>{esc(value)}</dd>" for label, value in rows)
        return f"<dl>{items}</dl>"

    lines = [
        "<!DOCTYPE html>",
        "<html><head><meta charset='utf-8'><title>Meta-Analysis Report</title></head><body>",
        "<h1>Meta-Analysis Report</h1>",
    ]

    if content["pico"]:
        lines.append("<h2>Review Question</h2>")
        lines.append(definition_list(content["pico"]))

    lines.append("<h2>Pooled Result</h2>")
    lines.append(definition_list(content["summary"]))

    lines.append("<h2>Heterogeneity</h2>")
    lines.append(definition_list(content["heterogeneity"]))
    lines.append(f"<p>{esc(content['heterogeneity_text'])}</p>")

    lines.append("<h2>Study Effects</h2>")
    lines.append("<table border='1'>")
    lines.append("<tr><th>Study</th><th>Estimate</th><th>Lower CI</th><th>Upper CI</th><th>Weight</th></tr>")
    for row in content["effects"]:
        lines.append("<tr>" + "".join(f"<td>{esc(cell)}</td>" for cell in row) + "</tr>")
    lines.append("</table>")

    if content["recommendations"]:
        lines.append("<h2>Recommendations</h2>")
        lines.append("<ul>")
        lines.extend(f"<li>{esc(rec.strip().lstrip('- '))}</li>" for rec in content["recommendations"])
        lines.append("</ul>")

    if content["bias"]:
        lines.append("<h2>Publication Bias</h2>")
        lines.append("<ul>")
        lines.extend(f"<li>{esc(line)}</li>" for line in content["bias"])
        lines.append("</ul>")

    if procedure_source:
        lines.append("<h2>Appendix: Analysis Code</h2>")
        lines.append(f"<pre><code>{esc(procedure_source)}</code></pre>")

    lines.append("</body></html>")
    return "\n".join(lines)


def write_report(
    result: AnalysisResult,
    filepath: Union[str, Path],
    format: str = "html",
    dataset: Optional[Dataset] = None,
    bias_lines: Optional[List[str]] = None,
    procedure_source: Optional[str] = None,
) -> Path:
    """
    Write an analysis report.

    Args:
        result: Analysis result
        filepath: Output file path
        format: 'html' or 'markdown'
        dataset: Dataset for the review-question header (optional)
        bias_lines: Publication-bias interpretation lines (optional)
        procedure_source: Analysis code for the appendix (optional)

    Returns:
        Path of the written report
    """
    filepath = Path(filepath)
    if format == "html":
        text = render_html_report(result, dataset, bias_lines, procedure_source)
    elif format == "markdown":
        text = render_markdown_report(result, dataset, bias_lines, procedure_source)
    else:
        raise ValueError(f"Unknown report format: {format}")

    with open(filepath, 'w', encoding='utf-8') as f:
        f.write(text)
    return filepath
