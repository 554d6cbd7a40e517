from __future__ import annotations

import logging
import subprocess
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class RRuntime:
    """Runs R expressions through ``Rscript -e`` and reports the session's R build."""

    def __init__(self, rscript_cmd: str = "Rscript") -> None:
        self.rscript_cmd = rscript_cmd
        self._version: Optional[str] = None
        self._platform: Optional[str] = None

    def run(self, expression: str) -> str:
        return self._run_command([self.rscript_cmd, "--vanilla", "-e", expression])

    def version(self) -> str:
        if self._version is None:
            self._version = self._probe('cat(R.version$major, R.version$minor, sep = ".")')
        return self._version

    def platform(self) -> str:
        if self._platform is None:
            self._platform = self._probe("cat(R.version$platform)")
        return self._platform

    def _probe(self, expression: str) -> str:
        try:
            output = self.run(expression).strip()
        except RuntimeError as exc:
            logger.warning("Could not query R runtime: %s", exc)
            return UNKNOWN
        return output or UNKNOWN

    @staticmethod
    def _run_command(command: Sequence[str]) -> str:
        logger.debug("Running: %s", " ".join(command))
        try:
            completed = subprocess.run(
                list(command),
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise RuntimeError(f"Required binary not found: {command[0]}") from exc
        except OSError as exc:
            raise RuntimeError(f"Could not execute {command[0]}: {exc}") from exc
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.strip() if exc.stderr else ""
            stdout = exc.stdout.strip() if exc.stdout else ""
            raise RuntimeError(
                f"Command failed ({command[0]} exited with {exc.returncode}): {stderr or stdout}"
            ) from exc
        return completed.stdout


def join_expressions(lines: List[str]) -> str:
    return "; ".join(line for line in lines if line)


__all__ = ["RRuntime", "UNKNOWN", "join_expressions"]
