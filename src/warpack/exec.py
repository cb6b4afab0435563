"""Subprocess runner for external tools (gem, jar)."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str

    @property
    def diagnostic(self) -> str:
        return (self.stderr or self.stdout).strip()


class ExecError(RuntimeError):
    """Raised when a command returns non-zero in check mode."""

    def __init__(self, result: ExecResult):
        rendered = " ".join(result.argv)
        super().__init__(f"command failed ({result.returncode}): {rendered}\n{result.diagnostic}")
        self.result = result


def run_command(
    argv: list[str],
    *,
    cwd: Path,
    check: bool = True,
) -> ExecResult:
    """Run command and return structured result."""
    logger.debug("running %s (cwd=%s)", " ".join(argv), cwd)
    try:
        completed = subprocess.run(argv, cwd=cwd, capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        result = ExecResult(
            argv=tuple(argv),
            cwd=cwd.resolve(),
            returncode=127,
            stdout="",
            stderr=f"{argv[0]}: command not found ({exc})",
        )
    else:
        result = ExecResult(
            argv=tuple(argv),
            cwd=cwd.resolve(),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
    if check and result.returncode != 0:
        raise ExecError(result)
    return result
