"""
Process boundary to the external statistical engine.

Each call renders a procedure template into a uniquely named temporary
script, runs ``<runner> <script-path>`` as a child process with no
standard input, streams its stdout/stderr while it runs, and reads the
JSON result the script writes to a second uniquely named temporary file.
Both temp files are removed on every exit path.

Failure classification:
    runner cannot be started     -> EngineNotFoundError
    nonzero exit status          -> EngineRuntimeError (stderr attached)
    timeout exceeded             -> EngineTimeoutError (child killed)
    missing/unparseable result   -> ResultParseError, or the stdout
                                    fallback for procedures that do not
                                    always write a result file
"""

from __future__ import annotations
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Dict, Any, Iterator, Sequence, Tuple, Union
import asyncio
import json
import logging
import os
import tempfile
import time
import uuid

from metabridge.config import EngineConfig
from metabridge.core.exceptions import (
    MetaBridgeError,
    EngineNotFoundError,
    EngineRuntimeError,
    EngineTimeoutError,
    ResultParseError,
)
from metabridge.engine.templates import ScriptTemplate, load_template

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

PROBE_PROCEDURE = "check_packages"
ENGINE_INFO_PROCEDURE = "engine_info"


# ============================================================================
# Temp file handling
# ============================================================================

def _remove_quietly(path: Union[str, Path]) -> None:
    """Delete a file if it exists; failures are logged, never raised."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove temp file %s: %s", path, exc)


@contextmanager
def _temporary_script(source: str, template: ScriptTemplate, temp_dir: str) -> Iterator[Path]:
    """Write a script to a unique temp file and remove it on exit."""
    fd, name = tempfile.mkstemp(
        prefix=f"metabridge_{template.name}_",
        suffix=template.dialect.suffix,
        dir=temp_dir,
    )
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(source)
        logger.debug("Wrote engine script %s", path)
        yield path
    finally:
        _remove_quietly(path)


@contextmanager
def _temporary_output(template: ScriptTemplate, temp_dir: str) -> Iterator[Path]:
    """Reserve a unique result path (not created) and remove it on exit."""
    path = Path(temp_dir) / f"metabridge_{template.name}_{uuid.uuid4().hex}.json"
    try:
        yield path
    finally:
        _remove_quietly(path)


# ============================================================================
# Process handling
# ============================================================================

async def _drain(stream: Optional[asyncio.StreamReader], label: str) -> str:
    """Accumulate a child stream chunk by chunk until EOF."""
    if stream is None:
        return ""
    chunks = []
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
        logger.debug("Engine %s: %d bytes", label, len(chunk))
    return b"".join(chunks).decode("utf-8", errors="replace")


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass


class AnalysisBridge:
    """
    Runs named statistical procedures in an external engine.

    The bridge holds only immutable configuration, so one instance can
    serve any number of concurrent calls.

    Args:
        config: Engine configuration (runner, timeout, temp dir, templates)

    Example:
        >>> bridge = AnalysisBridge(EngineConfig(runner="Rscript"))
        >>> result = await bridge.run("meta_analysis", payload)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def __repr__(self) -> str:
        return f"AnalysisBridge(runner={self.config.runner!r}, timeout={self.config.timeout})"

    def template(self, name: str, requires_output: bool = True) -> ScriptTemplate:
        """Load a procedure template for the configured dialect."""
        return load_template(name, self.config, requires_output=requires_output)

    async def run(self, template: Union[str, ScriptTemplate], payload: Any) -> Any:
        """
        Execute a procedure and return its parsed JSON result.

        Args:
            template: Procedure template or template name
            payload: JSON-serializable request embedded in the script

        Returns:
            Parsed result, or ``{"output": <stdout>, "success": True}`` for
            procedures without a result file

        Raises:
            EngineNotFoundError: If the runner cannot be started
            EngineRuntimeError: If the script exits with a nonzero status
            EngineTimeoutError: If the configured timeout is exceeded
            ResultParseError: If a required result file is missing or invalid
        """
        if isinstance(template, str):
            template = self.template(template)

        temp_dir = self.config.temp_dir
        started = time.monotonic()
        logger.info("Running engine procedure '%s' with %s", template.name, self.config.runner)

        with _temporary_output(template, temp_dir) as output_path:
            source = template.render(payload, str(output_path))
            with _temporary_script(source, template, temp_dir) as script_path:
                exit_code, stdout, stderr = await self._execute(script_path)

            if exit_code != 0:
                logger.error("Engine procedure '%s' exited with code %d", template.name, exit_code)
                raise EngineRuntimeError(exit_code, stderr)

            result = self._read_result(template, output_path, stdout)

        logger.info(
            "Engine procedure '%s' finished in %.2fs", template.name, time.monotonic() - started
        )
        return result

    async def _execute(self, script_path: Path) -> Tuple[int, str, str]:
        """Run the script, returning (exit_code, stdout, stderr)."""
        runner = self.config.runner
        try:
            process = await asyncio.create_subprocess_exec(
                runner,
                str(script_path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise EngineNotFoundError(runner, str(exc)) from exc

        communicate = asyncio.gather(
            _drain(process.stdout, "stdout"),
            _drain(process.stderr, "stderr"),
            process.wait(),
        )
        try:
            stdout, stderr, exit_code = await asyncio.wait_for(communicate, timeout=self.config.timeout)
        except asyncio.TimeoutError:
            logger.error("Engine script %s timed out after %ss; killing", script_path, self.config.timeout)
            _kill(process)
            await process.wait()
            raise EngineTimeoutError(self.config.timeout)
        except asyncio.CancelledError:
            _kill(process)
            raise

        return exit_code, stdout, stderr

    def _read_result(self, template: ScriptTemplate, output_path: Path, stdout: str) -> Any:
        try:
            text = output_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            text = None

        if text is not None:
            try:
                return json.loads(text)
            except json.JSONDecodeError as exc:
                if template.requires_output:
                    raise ResultParseError(
                        f"Engine procedure '{template.name}' wrote an invalid JSON result: {exc}",
                        output=stdout,
                    ) from exc
                logger.warning("Unparseable result from '%s'; using stdout", template.name)
        elif template.requires_output:
            raise ResultParseError(
                f"Engine procedure '{template.name}' finished without writing its result",
                output=stdout,
            )
        else:
            logger.warning("No result file from '%s'; using stdout", template.name)

        return {"output": stdout, "success": True}

    # ========================================================================
    # Capability probes
    # ========================================================================

    async def check_packages(self, packages: Optional[Sequence[str]] = None) -> Dict[str, bool]:
        """
        Check which add-on packages the engine can load.

        Never raises: any failure (engine missing, probe error, odd
        output) is reported as every package unavailable.

        Args:
            packages: Package names (default: config.required_packages)

        Returns:
            Dictionary mapping package name to availability
        """
        packages = tuple(packages) if packages is not None else self.config.required_packages
        unavailable = {name: False for name in packages}

        try:
            result = await self.run(self.template(PROBE_PROCEDURE), {"packages": list(packages)})
        except (MetaBridgeError, OSError, ValueError) as exc:
            logger.warning("Package probe failed; reporting all packages unavailable: %s", exc)
            return unavailable

        if not isinstance(result, dict):
            logger.warning("Package probe returned %s; reporting all unavailable", type(result).__name__)
            return unavailable
        return {name: result.get(name) is True for name in packages}

    async def engine_info(self) -> Optional[Dict[str, Any]]:
        """Engine version information, or None if the engine cannot run."""
        try:
            result = await self.run(self.template(ENGINE_INFO_PROCEDURE), {})
        except (MetaBridgeError, OSError, ValueError) as exc:
            logger.warning("Engine is not available: %s", exc)
            return None
        return result if isinstance(result, dict) else None

    async def is_available(self) -> bool:
        """Whether the engine runner can execute a trivial procedure."""
        return await self.engine_info() is not None
