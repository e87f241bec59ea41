"""
Procedure templates for the statistical engine.

A template pairs a fixed procedure body (read from ``<script_dir>/<name><suffix>``)
with a data segment generated per call. The data segment assigns two
string literals ahead of the body:

    input_json  <- "<serialized request>"
    output_path <- "<path the script writes its JSON result to>"

The request is serialized exactly once (``serialize_payload``) and
embedded as an escaped double-quoted literal, which both R and Python
parse identically. Procedure bodies never contain request data.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
import json

import numpy as np

from metabridge.config import EngineConfig, ScriptDialect, R_DIALECT


INPUT_VARIABLE = "input_json"
OUTPUT_VARIABLE = "output_path"


def _convert_for_json(obj: Any) -> Any:
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, Path):
        return str(obj)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialize_payload(payload: Any) -> str:
    """
    Serialize a request payload to JSON text.

    NaN and infinite values are rejected since the engine's JSON parser
    cannot represent them.
    """
    return json.dumps(payload, default=_convert_for_json, allow_nan=False)


def string_literal(text: str) -> str:
    """Double-quoted, fully escaped literal for R or Python source."""
    return json.dumps(text, ensure_ascii=True)


@dataclass(frozen=True)
class ScriptTemplate:
    """
    Fixed procedure body plus the rules for injecting request data.

    Attributes:
        name: Procedure name (used for logging and temp file prefixes)
        body: Procedure source, referencing ``input_json`` and ``output_path``
        dialect: Script dialect the body is written in
        requires_output: Whether the procedure always writes its result
            file; when False a missing file falls back to wrapping stdout
    """

    name: str
    body: str
    dialect: ScriptDialect = R_DIALECT
    requires_output: bool = True

    def data_segment(self, payload: Any, output_path: str) -> str:
        """Assignments that inject the request and result path."""
        return "\n".join([
            self.dialect.assign(INPUT_VARIABLE, string_literal(serialize_payload(payload))),
            self.dialect.assign(OUTPUT_VARIABLE, string_literal(str(output_path))),
        ])

    def render(self, payload: Any, output_path: str) -> str:
        """
        Build the complete script.

        Args:
            payload: JSON-serializable request
            output_path: Path the script should write its JSON result to

        Returns:
            Script source text
        """
        return "\n".join([
            f"# metabridge procedure: {self.name}",
            self.data_segment(payload, output_path),
            "",
            self.body,
            "",
        ])


def template_path(name: str, config: EngineConfig) -> Path:
    """Location of a procedure template for the configured dialect."""
    return config.script_dir / f"{name}{config.dialect.suffix}"


def load_template(
    name: str,
    config: Optional[EngineConfig] = None,
    requires_output: bool = True
) -> ScriptTemplate:
    """
    Load a named procedure template.

    Args:
        name: Procedure name, e.g. 'meta_analysis'
        config: Engine configuration (script_dir and dialect)
        requires_output: See ScriptTemplate.requires_output

    Returns:
        ScriptTemplate
    """
    config = config or EngineConfig()
    path = template_path(name, config)
    if not path.is_file():
        raise FileNotFoundError(f"No {config.dialect.name} procedure template '{name}' at {path}")

    return ScriptTemplate(
        name=name,
        body=path.read_text(encoding="utf-8"),
        dialect=config.dialect,
        requires_output=requires_output,
    )
