"""
End-to-end tests of the pipeline operations, driven through the Python
stand-in engine procedures.
"""

import asyncio
import json

import pytest

from metabridge.cli import main
from metabridge.core.exceptions import EngineRuntimeError
from metabridge.engine.bridge import AnalysisBridge
from metabridge.io.schema import analysis_result_from_dict
from metabridge.service import MetaAnalysisService, error_payload
from metabridge.visualization.forest import forest_plot_data


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def service(bridge):
    return MetaAnalysisService(bridge)


@pytest.fixture
def binary_file(tmp_path, binary_data):
    path = tmp_path / "trials.json"
    path.write_text(json.dumps(binary_data), encoding="utf-8")
    return path


class TestImportAndValidate:

    def test_import(self, service, binary_file):
        payload = run(service.import_data(str(binary_file)))

        assert payload["success"] is True
        assert payload["message"] == "Successfully imported 3 studies"
        assert payload["summary"]["outcome_type"] == "binary"
        assert payload["data"]["studies"][0]["id"] == "S1"

    def test_import_failure_is_a_payload(self, service, tmp_path):
        payload = run(service.import_data(str(tmp_path / "missing.csv")))

        assert payload["isError"] is True
        assert payload["message"].startswith("FileNotFoundError: ")

    def test_validate(self, service, binary_data):
        payload = run(service.validate_data(binary_data, "comprehensive"))

        assert payload["validation_result"]["valid"] is True
        assert payload["summary"]["n_errors"] == 0

    def test_validate_rejects_malformed_data(self, service, binary_data):
        del binary_data["studies"]

        payload = run(service.validate_data(binary_data))

        assert payload["isError"] is True
        assert payload["message"].startswith("SchemaError: Invalid dataset:")


class TestMetaAnalysis:

    def test_binary_odds_ratio(self, service, binary_data):
        payload = run(service.perform_meta_analysis(binary_data, "OR", "random"))

        assert payload["success"] is True
        results = payload["results"]
        assert results["effect_measure"] == "OR"
        assert results["n_studies"] == 3
        assert results["n_participants"] == 660
        assert [s["study_id"] for s in results["study_effects"]] == ["S1", "S2", "S3"]
        assert sum(s["effect_size"]["weight"] for s in results["study_effects"]) == pytest.approx(100)
        assert results["pooled_effect"]["estimate"] < 1
        assert payload["interpretation"]["heterogeneity"].startswith("Low heterogeneity")
        assert "Small number of studies (n<5). Interpret results with caution." in (
            payload["interpretation"]["recommendation"]
        )

    def test_continuous_mean_difference(self, service, continuous_data):
        payload = run(service.perform_meta_analysis(continuous_data, "MD", "fixed"))

        assert payload["results"]["model"] == "fixed"
        assert payload["results"]["pooled_effect"]["estimate"] == pytest.approx(-1.0, abs=0.1)

    def test_without_heterogeneity_test(self, service, binary_data):
        payload = run(service.perform_meta_analysis(binary_data, "RR", heterogeneity_test=False))

        assert payload["interpretation"]["heterogeneity"] is None
        assert not any("heterogeneity" in line.lower() for line in payload["interpretation"]["recommendation"])

    def test_hazard_ratio_rejected_before_engine(self, service, binary_data, engine_temp_dir):
        payload = run(service.perform_meta_analysis(binary_data, "HR"))

        assert payload["isError"] is True
        assert payload["message"].startswith("UnsupportedEffectMeasureError: HR cannot be computed")
        assert list(engine_temp_dir.iterdir()) == []

    def test_mismatched_measure(self, service, continuous_data):
        payload = run(service.perform_meta_analysis(continuous_data, "OR"))
        assert "UnsupportedEffectMeasureError" in payload["message"]

    def test_engine_failure_is_a_payload(self, fake_config, fake_script_dir, binary_data):
        (fake_script_dir / "meta_analysis.py").write_text(
            "import sys\nsys.stderr.write('Error in metabin')\nsys.exit(1)\n", encoding="utf-8"
        )
        service = MetaAnalysisService(AnalysisBridge(fake_config))

        payload = run(service.perform_meta_analysis(binary_data, "OR"))

        assert payload["isError"] is True
        assert payload["message"].startswith("EngineRuntimeError: Engine script failed with exit code 1")
        assert "Error in metabin" in payload["message"]


class TestForestPlot:

    def test_png_written(self, service, analysis_data, tmp_path):
        output = tmp_path / "forest.png"

        payload = run(service.generate_forest_plot(analysis_data, str(output), "modern", 0.95))

        assert payload == {
            "success": True,
            "message": "Forest plot generated successfully",
            "output_path": str(output),
            "format": "PNG (300 DPI)",
        }
        assert output.exists()

    def test_unknown_style(self, service, analysis_data, tmp_path):
        payload = run(service.generate_forest_plot(analysis_data, str(tmp_path / "f.png"), "fancy"))
        assert payload["message"].startswith("ValueError: plot_style must be one of")

    def test_plot_data_at_other_level(self, analysis_data):
        result = analysis_result_from_dict(analysis_data)

        data = forest_plot_data(result, confidence_level=0.90, labels={"S1": "Smith (2015)"})

        assert data["reference_line"] == 1.0
        assert data["studies"][0]["label"] == "Smith (2015)"
        assert data["studies"][1]["label"] == "S2"
        assert 0.25 < data["studies"][0]["lower_ci"] < 0.55
        assert data["studies"][2]["weight"] == 50.0
        assert 0.45 < data["pooled"]["lower_ci"] < data["pooled"]["upper_ci"] < 0.85


class TestPublicationBias:

    def test_tests_and_funnel(self, service, analysis_data, tmp_path):
        funnel = tmp_path / "funnel.png"

        payload = run(service.assess_publication_bias(
            analysis_data, ["funnel_plot", "egger_test", "trim_fill"], str(funnel)
        ))

        assert payload["success"] is True
        assert funnel.exists()
        assert payload["bias_assessment"]["egger_test"] == {"intercept": 1.2, "p_value": 0.04}
        assert payload["interpretation"] == [
            "Egger's test suggests potential publication bias (p=0.040, p<0.10)",
            "Trim-and-fill suggests 2 potentially missing studies due to publication bias",
            "Adjusted pooled estimate: 0.900 (95% CI: 0.700 to 1.100)",
            f"Funnel plot generated at {funnel}. Visual inspection recommended.",
        ]
        assert payload["warning"] == "Publication bias tests have limited power with fewer than 10 studies"

    def test_funnel_skipped_without_path(self, service, analysis_data):
        payload = run(service.assess_publication_bias(analysis_data, ["funnel_plot"]))

        assert payload["bias_assessment"] == {}
        assert payload["interpretation"] == []

    def test_too_few_studies(self, service, analysis_data):
        analysis_data["study_effects"] = analysis_data["study_effects"][:2]
        analysis_data["n_studies"] = 2

        payload = run(service.assess_publication_bias(analysis_data, ["egger_test", "begg_test"]))

        assert payload["bias_assessment"]["egger_test"]["insufficient_data"] is True
        assert payload["interpretation"] == [
            "Egger's test: Insufficient studies for Egger's test (minimum 3 required)",
            "Begg's test: Insufficient studies for Begg's test (minimum 3 required)",
        ]

    def test_unknown_method(self, service, analysis_data):
        payload = run(service.assess_publication_bias(analysis_data, ["p_curve"]))
        assert payload["message"] == "ValueError: Unknown publication bias method(s): p_curve"


class TestReport:

    def test_html(self, service, analysis_data, binary_data, tmp_path):
        output = tmp_path / "report.html"

        payload = run(service.generate_report(analysis_data, str(output), "html", data=binary_data))

        assert payload["success"] is True
        assert payload["format"] == "html"
        text = output.read_text(encoding="utf-8")
        assert "<h1>Meta-Analysis Report</h1>" in text
        assert "Drug A 10 mg daily" in text
        assert "0.620 (95% CI: 0.450 to 0.850)" in text

    def test_markdown_with_code(self, service, analysis_data, tmp_path):
        output = tmp_path / "report.md"

        run(service.generate_report(analysis_data, str(output), "markdown", include_code=True))

        text = output.read_text(encoding="utf-8")
        assert text.startswith("# Meta-Analysis Report")
        assert "## Appendix: Analysis Code" in text
        assert "request = json.loads(input_json)" in text

    def test_markdown_with_bias_section(self, service, analysis_data, tmp_path):
        output = tmp_path / "report.md"
        bias = run(service.assess_publication_bias(analysis_data, ["egger_test", "trim_fill"]))

        run(service.generate_report(
            analysis_data, str(output), "markdown", bias_results=bias["bias_assessment"]
        ))

        text = output.read_text(encoding="utf-8")
        section = text.split("## Publication Bias\n\n", 1)[1]
        assert section.splitlines()[:3] == [
            "- Egger's test suggests potential publication bias (p=0.040, p<0.10)",
            "- Trim-and-fill suggests 2 potentially missing studies due to publication bias",
            "- Adjusted pooled estimate: 0.900 (95% CI: 0.700 to 1.100)",
        ]

    def test_html_with_bias_markers(self, service, analysis_data, tmp_path):
        output = tmp_path / "report.html"
        bias_results = {
            "begg_test": {
                "insufficient_data": True,
                "message": "Insufficient studies for Begg's test (minimum 3 required)",
            },
        }

        run(service.generate_report(analysis_data, str(output), "html", bias_results=bias_results))

        text = output.read_text(encoding="utf-8")
        assert "<h2>Publication Bias</h2>" in text
        assert "Begg&#x27;s test: Insufficient studies for Begg&#x27;s test (minimum 3 required)" in text

    def test_no_bias_section_without_bias_results(self, service, analysis_data, tmp_path):
        output = tmp_path / "report.md"
        run(service.generate_report(analysis_data, str(output), "markdown"))
        assert "## Publication Bias" not in output.read_text(encoding="utf-8")

    def test_malformed_bias_results(self, service, analysis_data, tmp_path):
        payload = run(service.generate_report(
            analysis_data, str(tmp_path / "r.md"), "markdown", bias_results={"egger_test": {"intercept": 1.0}}
        ))
        assert payload["message"].startswith("SchemaError: Invalid bias assessment:")

    def test_pdf_goes_through_the_engine(self, service, analysis_data, tmp_path, engine_temp_dir):
        output = tmp_path / "report.pdf"

        payload = run(service.generate_report(analysis_data, str(output), "pdf"))

        assert payload["output_path"] == str(output)
        assert output.read_text(encoding="utf-8").startswith("# Meta-Analysis Report")
        assert list(engine_temp_dir.iterdir()) == []

    def test_unknown_format(self, service, analysis_data, tmp_path):
        payload = run(service.generate_report(analysis_data, str(tmp_path / "r.docx"), "docx"))
        assert payload["message"] == "ValueError: Unknown report format: docx"


class TestCheckEngine:

    def test_available(self, service, fake_config):
        payload = run(service.check_engine())

        assert payload["available"] is True
        assert payload["engine"] == {"engine": "python"}
        assert payload["packages"]["meta"] is True
        assert set(payload["packages"]) == set(fake_config.required_packages)

    def test_missing_engine(self, fake_config):
        service = MetaAnalysisService(AnalysisBridge(fake_config.with_overrides(runner="/nonexistent/engine")))

        payload = run(service.check_engine())

        assert payload["available"] is False
        assert payload["engine"] is None
        assert not any(payload["packages"].values())


def test_error_payload():
    exc = EngineRuntimeError(2, "boom")
    assert error_payload(exc) == {"isError": True, "message": f"EngineRuntimeError: {exc}"}


class TestCli:

    def test_import(self, binary_file, capsys):
        assert main(["import", str(binary_file)]) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload["message"] == "Successfully imported 3 studies"

    def test_validate(self, binary_file, capsys):
        assert main(["validate", str(binary_file), "--level", "basic"]) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload["validation_result"]["valid"] is True

    def test_failure_exit_code(self, tmp_path, capsys):
        assert main(["import", str(tmp_path / "missing.json")]) == 1
        assert json.loads(capsys.readouterr().out)["isError"] is True
