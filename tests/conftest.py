"""Shared pytest fixtures for the metabridge test suite."""

import sys

import pytest

from metabridge.config import EngineConfig, PYTHON_DIALECT
from metabridge.engine.bridge import AnalysisBridge


# Stand-in engine procedures, run with the current Python interpreter.
# Each receives `input_json` and `output_path` exactly like the R procedures.
FAKE_PROCEDURES = {
    "echo": """
import json
with open(output_path, "w") as f:
    json.dump({"echo": json.loads(input_json)}, f)
""",
    "stdout_only": """
print("hello from engine")
""",
    "fail": """
import sys
sys.stderr.write("boom")
sys.exit(2)
""",
    "sleep": """
import time
time.sleep(30)
""",
    "bad_json": """
with open(output_path, "w") as f:
    f.write("this is not json")
""",
    "engine_info": """
import json
with open(output_path, "w") as f:
    json.dump({"engine": "python"}, f)
""",
    "check_packages": """
import json
request = json.loads(input_json)
with open(output_path, "w") as f:
    json.dump({name: name == "meta" for name in request["packages"]}, f)
""",
    "meta_analysis": """
import json
import math

request = json.loads(input_json)
data = request["data"]
measure = request["effect_measure"]
ratio = measure in ("OR", "RR")
z = 1.959963984540054

effects = []
for o in data["outcomes"]:
    if data["outcome_type"] == "binary":
        a, c = o["events_treatment"], o["events_control"]
        b, d = o["n_treatment"] - a, o["n_control"] - c
        if 0 in (a, b, c, d):
            a, b, c, d = a + 0.5, b + 0.5, c + 0.5, d + 0.5
        if measure == "OR":
            yi = math.log((a * d) / (b * c))
            vi = 1 / a + 1 / b + 1 / c + 1 / d
        else:
            yi = math.log((a / (a + b)) / (c / (c + d)))
            vi = 1 / a - 1 / (a + b) + 1 / c - 1 / (c + d)
    else:
        yi = o["mean_treatment"] - o["mean_control"]
        vi = o["sd_treatment"] ** 2 / o["n_treatment"] + o["sd_control"] ** 2 / o["n_control"]
    effects.append((o["study_id"], yi, vi))

weights = [1 / vi for _, _, vi in effects]
total = sum(weights)
pooled = sum(w * yi for w, (_, yi, _) in zip(weights, effects)) / total
se = math.sqrt(1 / total)
q = sum(w * (yi - pooled) ** 2 for w, (_, yi, _) in zip(weights, effects))
df = len(effects) - 1
i2 = max(0.0, (q - df) / q) * 100 if q > 0 else 0.0
back = math.exp if ratio else (lambda x: x)

result = {
    "effect_measure": measure,
    "model": request["model"],
    "pooled_effect": {
        "estimate": back(pooled),
        "lower_ci": back(pooled - z * se),
        "upper_ci": back(pooled + z * se),
        "p_value": math.erfc(abs(pooled / se) / math.sqrt(2)),
    },
    "heterogeneity": {
        "I2": i2, "Q": q, "df": df,
        "p_value": math.exp(-q / 2),
        "tau2": 0.0,
    },
    "study_effects": [
        {
            "study_id": sid,
            "effect_size": {
                "estimate": back(yi),
                "lower_ci": back(yi - z * math.sqrt(vi)),
                "upper_ci": back(yi + z * math.sqrt(vi)),
                "weight": 100 * w / total,
            },
        }
        for w, (sid, yi, vi) in zip(weights, effects)
    ],
    "n_studies": len(effects),
    "n_participants": sum(o["n_treatment"] + o["n_control"] for o in data["outcomes"]),
}
with open(output_path, "w") as f:
    json.dump(result, f)
""",
    "publication_bias": """
import json

request = json.loads(input_json)
methods = request["methods"]
enough = len(request["studies"]) >= 3
result = {}

def insufficient(label):
    return {"insufficient_data": True,
            "message": "Insufficient studies for %s (minimum 3 required)" % label}

if "funnel_plot" in methods and request["funnel_plot_path"]:
    with open(request["funnel_plot_path"], "wb") as f:
        f.write(b"PNG")
    result["funnel_plot"] = {"generated": True, "path": request["funnel_plot_path"]}
if "egger_test" in methods:
    result["egger_test"] = {"intercept": 1.2, "p_value": 0.04} if enough else insufficient("Egger's test")
if "begg_test" in methods:
    result["begg_test"] = {"tau": 0.1, "p_value": 0.5} if enough else insufficient("Begg's test")
if "trim_fill" in methods:
    result["trim_fill"] = {
        "n_missing": 2,
        "adjusted_effect": {"estimate": 0.9, "lower_ci": 0.7, "upper_ci": 1.1},
    } if enough else insufficient("trim-and-fill")

with open(output_path, "w") as f:
    json.dump(result, f)
""",
    "forest_plot": """
import json
request = json.loads(input_json)
with open(request["plot_path"], "wb") as f:
    f.write(b"PNG")
with open(output_path, "w") as f:
    json.dump({"success": True, "path": request["plot_path"], "request": request}, f)
""",
    "render_report": """
import json
import shutil
request = json.loads(input_json)
shutil.copyfile(request["markdown_path"], request["report_path"])
with open(output_path, "w") as f:
    json.dump({"success": True, "path": request["report_path"]}, f)
""",
}


@pytest.fixture(autouse=True)
def clear_engine_env(monkeypatch):
    """Keep the developer's METABRIDGE_* settings out of the tests."""
    for name in ("METABRIDGE_RSCRIPT", "METABRIDGE_TIMEOUT", "METABRIDGE_TEMP_DIR", "METABRIDGE_SCRIPT_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine_temp_dir(tmp_path):
    """Dedicated temp directory so leftover files can be detected."""
    d = tmp_path / "engine_tmp"
    d.mkdir()
    return d


@pytest.fixture
def fake_script_dir(tmp_path):
    d = tmp_path / "procedures"
    d.mkdir()
    for name, body in FAKE_PROCEDURES.items():
        (d / f"{name}.py").write_text(body.lstrip(), encoding="utf-8")
    return d


@pytest.fixture
def fake_config(fake_script_dir, engine_temp_dir):
    return EngineConfig(
        runner=sys.executable,
        timeout=30,
        temp_dir=str(engine_temp_dir),
        dialect=PYTHON_DIALECT,
        script_dir=fake_script_dir,
    )


@pytest.fixture
def bridge(fake_config):
    return AnalysisBridge(fake_config)


@pytest.fixture
def binary_data():
    """Three-study binary dataset in canonical form."""
    return {
        "studies": [
            {"id": "S1", "authors": "Smith et al.", "year": 2015, "title": "Trial one", "doi": "10.1/one"},
            {"id": "S2", "authors": "Jones et al.", "year": 2017, "title": "Trial two", "doi": "10.1/two"},
            {"id": "S3", "authors": "Lee et al.", "year": 2019, "title": "Trial three", "doi": "10.1/three"},
        ],
        "outcomes": [
            {"study_id": "S1", "events_treatment": 12, "n_treatment": 100, "events_control": 20, "n_control": 100},
            {"study_id": "S2", "events_treatment": 8, "n_treatment": 80, "events_control": 15, "n_control": 82},
            {"study_id": "S3", "events_treatment": 30, "n_treatment": 150, "events_control": 41, "n_control": 148},
        ],
        "outcome_type": "binary",
        "outcome_name": "Mortality",
        "intervention": "Drug A 10 mg daily",
        "comparison": "Placebo",
    }


@pytest.fixture
def continuous_data():
    """Two-study continuous dataset in canonical form."""
    return {
        "studies": [
            {"id": "C1", "authors": "Brown", "year": 2018, "title": "Pain trial", "doi": "10.2/c1"},
            {"id": "C2", "authors": "Green", "year": 2020, "title": "Pain trial II", "doi": "10.2/c2"},
        ],
        "outcomes": [
            {"study_id": "C1", "mean_treatment": 3.1, "sd_treatment": 1.2, "n_treatment": 60,
             "mean_control": 4.0, "sd_control": 1.3, "n_control": 58},
            {"study_id": "C2", "mean_treatment": 2.8, "sd_treatment": 1.1, "n_treatment": 75,
             "mean_control": 3.9, "sd_control": 1.4, "n_control": 77},
        ],
        "outcome_type": "continuous",
        "outcome_name": "Pain score",
        "intervention": "Physiotherapy",
        "comparison": "Usual care",
    }


@pytest.fixture
def analysis_data():
    """Engine meta-analysis result in canonical form."""
    return {
        "effect_measure": "OR",
        "model": "random",
        "pooled_effect": {"estimate": 0.62, "lower_ci": 0.45, "upper_ci": 0.85, "p_value": 0.003},
        "heterogeneity": {"I2": 12.5, "Q": 2.3, "df": 2, "p_value": 0.32, "tau2": 0.01},
        "study_effects": [
            {"study_id": "S1", "effect_size": {"estimate": 0.55, "lower_ci": 0.25, "upper_ci": 1.2, "weight": 30.0}},
            {"study_id": "S2", "effect_size": {"estimate": 0.5, "lower_ci": 0.2, "upper_ci": 1.25, "weight": 20.0}},
            {"study_id": "S3", "effect_size": {"estimate": 0.7, "lower_ci": 0.41, "upper_ci": 1.19, "weight": 50.0}},
        ],
        "n_studies": 3,
        "n_participants": 660,
    }
