"""
Exception hierarchy for metabridge.

Library code raises these; the service layer converts them into
uniform failure payloads.
"""

from __future__ import annotations
from typing import List, Optional


class MetaBridgeError(Exception):
    """Base class for all metabridge errors."""


# ============================================================================
# Import errors
# ============================================================================

class DataImportError(MetaBridgeError):
    """Raw input could not be turned into a Dataset."""


class UnsupportedFormatError(DataImportError):
    """The requested input format is not one of csv, xlsx or json."""


class EmptyInputError(DataImportError):
    """The input contained zero data records."""


class AmbiguousOutcomeTypeError(DataImportError):
    """Outcome type could not be classified from the record keys."""


class MalformedStructureError(DataImportError):
    """The input is readable but does not have a usable structure."""


# ============================================================================
# Schema errors
# ============================================================================

class SchemaError(MetaBridgeError):
    """
    Structural or type mismatch against the canonical shapes.

    Attributes:
        problems: One message per offending field
    """

    def __init__(self, problems: List[str], context: str = "data"):
        self.problems = list(problems)
        self.context = context
        detail = "; ".join(self.problems)
        super().__init__(f"Invalid {context}: {detail}")


class UnsupportedEffectMeasureError(MetaBridgeError):
    """Effect measure cannot be computed for the dataset's outcome type."""


# ============================================================================
# Engine errors
# ============================================================================

class EngineError(MetaBridgeError):
    """Base class for failures at the engine process boundary."""


class EngineNotFoundError(EngineError):
    """The engine runner could not be started at all."""

    def __init__(self, runner: str, reason: str):
        self.runner = runner
        self.reason = reason
        super().__init__(f"Failed to start engine process '{runner}': {reason}")


class EngineRuntimeError(EngineError):
    """
    The engine script exited with a nonzero status.

    Attributes:
        exit_code: Process exit status
        stderr: Full captured standard error
    """

    def __init__(self, exit_code: int, stderr: str):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Engine script failed with exit code {exit_code}:\n{stderr}")


class EngineTimeoutError(EngineError):
    """The engine script did not finish within the configured timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Engine script did not finish within {timeout:g} seconds and was terminated")


class ResultParseError(EngineError):
    """The engine did not produce a readable JSON result."""

    def __init__(self, message: str, output: Optional[str] = None):
        self.output = output
        super().__init__(message)
