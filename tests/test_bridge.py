"""
Tests for the engine process bridge, using the Python stand-in procedures
from conftest.py in place of Rscript.
"""

import asyncio
import sys

import pytest

from metabridge.config import EngineConfig
from metabridge.core.exceptions import (
    EngineNotFoundError,
    EngineRuntimeError,
    EngineTimeoutError,
    ResultParseError,
)
from metabridge.engine.bridge import AnalysisBridge
from metabridge.engine.templates import ScriptTemplate


def run(coro):
    return asyncio.run(coro)


class TestRun:

    def test_result_file_is_returned(self, bridge):
        result = run(bridge.run("echo", {"x": 1, "name": "trial"}))
        assert result == {"echo": {"x": 1, "name": "trial"}}

    def test_awkward_payload_text_survives_embedding(self, bridge):
        payload = {
            "quotes": 'He said "stop" and \'go\'',
            "backslash": "C:\\temp\\new",
            "newlines": "line1\nline2\r\n",
            "unicode": "Müller – 试验 😀",
            "code": '"); import os; os.remove("x"); ("',
        }
        assert run(bridge.run("echo", payload)) == {"echo": payload}

    def test_temp_files_removed_after_success(self, bridge, engine_temp_dir):
        run(bridge.run("echo", {"x": 1}))
        assert list(engine_temp_dir.iterdir()) == []

    def test_template_object_accepted(self, bridge, fake_config):
        template = ScriptTemplate(
            name="inline",
            body="open(output_path, 'w').write('[1, 2, 3]')",
            dialect=fake_config.dialect,
        )
        assert run(bridge.run(template, {})) == [1, 2, 3]


class TestFailures:

    def test_nonzero_exit_carries_code_and_stderr(self, bridge):
        with pytest.raises(EngineRuntimeError) as exc_info:
            run(bridge.run("fail", {}))

        assert exc_info.value.exit_code == 2
        assert "boom" in exc_info.value.stderr
        assert "2" in str(exc_info.value)
        assert "boom" in str(exc_info.value)

    def test_script_removed_after_runtime_failure(self, bridge, engine_temp_dir):
        with pytest.raises(EngineRuntimeError):
            run(bridge.run("fail", {}))
        assert list(engine_temp_dir.iterdir()) == []

    def test_missing_runner(self, fake_config, engine_temp_dir):
        bridge = AnalysisBridge(fake_config.with_overrides(runner="/nonexistent/engine-binary"))

        with pytest.raises(EngineNotFoundError) as exc_info:
            run(bridge.run("echo", {}))

        assert "/nonexistent/engine-binary" in str(exc_info.value)
        assert list(engine_temp_dir.iterdir()) == []

    def test_timeout_kills_the_script(self, fake_config, engine_temp_dir):
        bridge = AnalysisBridge(fake_config.with_overrides(timeout=0.5))

        with pytest.raises(EngineTimeoutError) as exc_info:
            run(bridge.run("sleep", {}))

        assert exc_info.value.timeout == 0.5
        assert list(engine_temp_dir.iterdir()) == []

    def test_missing_result_file_is_an_error_when_required(self, bridge):
        with pytest.raises(ResultParseError) as exc_info:
            run(bridge.run("stdout_only", {}))
        assert "hello from engine" in exc_info.value.output

    def test_invalid_result_file_is_an_error_when_required(self, bridge, engine_temp_dir):
        with pytest.raises(ResultParseError):
            run(bridge.run("bad_json", {}))
        assert list(engine_temp_dir.iterdir()) == []

    def test_stdout_fallback_when_result_optional(self, bridge):
        template = bridge.template("stdout_only", requires_output=False)
        result = run(bridge.run(template, {}))
        assert result == {"output": "hello from engine\n", "success": True}

    def test_unparseable_result_falls_back_when_optional(self, bridge):
        template = bridge.template("bad_json", requires_output=False)
        result = run(bridge.run(template, {}))
        assert result["success"] is True

    def test_unknown_procedure(self, bridge):
        with pytest.raises(FileNotFoundError):
            run(bridge.run("no_such_procedure", {}))


class TestConcurrency:

    def test_concurrent_runs_see_only_their_own_payload(self, bridge, engine_temp_dir):
        async def many():
            return await asyncio.gather(*[
                bridge.run("echo", {"call": i, "values": list(range(i))})
                for i in range(8)
            ])

        results = run(many())

        for i, result in enumerate(results):
            assert result == {"echo": {"call": i, "values": list(range(i))}}
        assert list(engine_temp_dir.iterdir()) == []


class TestProbes:

    def test_check_packages(self, bridge):
        result = run(bridge.check_packages(["meta", "metafor"]))
        assert result == {"meta": True, "metafor": False}

    def test_check_packages_defaults_to_configured_list(self, bridge, fake_config):
        result = run(bridge.check_packages())
        assert set(result) == set(fake_config.required_packages)

    def test_check_packages_degrades_when_engine_missing(self, fake_config):
        bridge = AnalysisBridge(fake_config.with_overrides(runner="/nonexistent/engine-binary"))
        result = run(bridge.check_packages(["meta", "metafor", "ggplot2"]))
        assert result == {"meta": False, "metafor": False, "ggplot2": False}

    def test_check_packages_degrades_when_probe_missing(self, fake_config, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        bridge = AnalysisBridge(fake_config.with_overrides(script_dir=empty))
        assert run(bridge.check_packages(["meta"])) == {"meta": False}

    def test_is_available(self, bridge):
        assert run(bridge.is_available()) is True

    def test_is_not_available_with_missing_runner(self, fake_config):
        bridge = AnalysisBridge(fake_config.with_overrides(runner="/nonexistent/engine-binary"))
        assert run(bridge.is_available()) is False


def test_default_configuration_uses_rscript():
    bridge = AnalysisBridge()
    assert bridge.config.runner == "Rscript"
    assert bridge.config.timeout == 300.0
    assert bridge.template("meta_analysis").body.startswith("#")


def test_runner_is_injected_not_global(fake_config):
    custom = AnalysisBridge(fake_config)
    default = AnalysisBridge(EngineConfig())
    assert custom.config.runner == sys.executable
    assert default.config.runner == "Rscript"
