"""
Engine module for metabridge.

Contains the bridge that runs statistical procedures in an external
engine process, and the procedure templates it renders.
"""

from metabridge.engine.bridge import AnalysisBridge
from metabridge.engine.templates import (
    ScriptTemplate,
    load_template,
    serialize_payload,
)

__all__ = [
    "AnalysisBridge",
    "ScriptTemplate",
    "load_template",
    "serialize_payload",
]
