"""Engine configuration for metabridge."""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple, Union
import os
import tempfile

from dotenv import load_dotenv


@dataclass(frozen=True)
class ScriptDialect:
    """
    Syntax of the engine's script language.

    Attributes:
        name: Dialect name
        suffix: Script file suffix
        assignment: Format string assigning a literal to a variable
    """

    name: str
    suffix: str
    assignment: str

    def assign(self, variable: str, literal: str) -> str:
        return self.assignment.format(name=variable, value=literal)


R_DIALECT = ScriptDialect(name="R", suffix=".R", assignment="{name} <- {value}")
PYTHON_DIALECT = ScriptDialect(name="python", suffix=".py", assignment="{name} = {value}")

DEFAULT_SCRIPT_DIR = Path(__file__).parent / "engine" / "scripts"
DEFAULT_RUNNER = "Rscript"
DEFAULT_TIMEOUT = 300.0
DEFAULT_PACKAGES = ("meta", "metafor", "ggplot2", "jsonlite")


@dataclass(frozen=True)
class EngineConfig:
    """
    Immutable settings for the external statistical engine.

    Attributes:
        runner: Engine script runner, invoked as ``<runner> <script-path>``
        timeout: Seconds before a running script is killed (None disables)
        temp_dir: Directory for script and result temp files
        dialect: Script dialect the procedure templates are written in
        script_dir: Directory holding the procedure templates
        required_packages: Add-on packages checked by the capability probe
    """

    runner: str = DEFAULT_RUNNER
    timeout: Optional[float] = DEFAULT_TIMEOUT
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    dialect: ScriptDialect = R_DIALECT
    script_dir: Path = DEFAULT_SCRIPT_DIR
    required_packages: Tuple[str, ...] = DEFAULT_PACKAGES

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive or None, got {self.timeout}")
        object.__setattr__(self, "script_dir", Path(self.script_dir))
        object.__setattr__(self, "temp_dir", str(self.temp_dir))
        object.__setattr__(self, "required_packages", tuple(self.required_packages))

    def with_overrides(self, **changes) -> EngineConfig:
        """Copy with some fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, dotenv_path: Optional[Union[str, Path]] = None) -> EngineConfig:
        """
        Build a configuration from environment variables.

        Reads METABRIDGE_RSCRIPT, METABRIDGE_TIMEOUT, METABRIDGE_TEMP_DIR
        and METABRIDGE_SCRIPT_DIR after loading a .env file.
        """
        load_dotenv(dotenv_path)

        kwargs = {}
        runner = os.environ.get("METABRIDGE_RSCRIPT")
        if runner:
            kwargs["runner"] = runner

        timeout = os.environ.get("METABRIDGE_TIMEOUT")
        if timeout:
            if timeout.strip().lower() in ("0", "none", "off"):
                kwargs["timeout"] = None
            else:
                kwargs["timeout"] = float(timeout)

        temp_dir = os.environ.get("METABRIDGE_TEMP_DIR")
        if temp_dir:
            kwargs["temp_dir"] = temp_dir

        script_dir = os.environ.get("METABRIDGE_SCRIPT_DIR")
        if script_dir:
            kwargs["script_dir"] = Path(script_dir)

        return cls(**kwargs)
