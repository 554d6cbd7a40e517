"""Fallback provenance from the raw R console history (``.Rhistory``).

Used only when the install log has no record for a package. The history is
free text, so matching is heuristic: a package counts as installed by a line
when the line is an install call and names the package as a quoted argument
(``"pkg"``) or as the repository part of a remote spec (``"user/pkg@ref"``).
Packages installed through a variable or a ``c()`` built elsewhere are missed,
and a line naming several packages credits all of them.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence

INSTALL_PATTERNS = (
    r"install\.packages\(",
    r"install_tracked\(",
    r"install_cran\(",
    r"install_bioc\(",
    r"install_github\(",
    r"BiocManager::install\(",
    r"biocLite\(",
    r"devtools::install_github\(",
    r"remotes::install_github\(",
    r"remotes::install_cran\(",
    r"remotes::install_bioc\(",
    r"remotes::install_gitlab\(",
    r"remotes::install_bitbucket\(",
    r"remotes::install_version\(",
)

# Tracking wrappers from the interactive R session; these do not exist in a clean R.
WRAPPER_PATTERNS = (
    r"(?<![\w.:])install_tracked\(",
    r"(?<![\w.:])install_cran\(",
    r"(?<![\w.:])install_bioc\(",
    r"(?<![\w.:])install_github\(",
)

_INSTALL_RE = re.compile("|".join(INSTALL_PATTERNS))
_WRAPPER_RE = re.compile("|".join(WRAPPER_PATTERNS))


def read_history(path: Path) -> List[str]:
    path = Path(path)
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8", errors="replace").splitlines()


def extract_install_lines(lines: Sequence[str]) -> List[str]:
    return [line.strip() for line in lines if _INSTALL_RE.search(line)]


def is_wrapper_call(line: str) -> bool:
    return bool(_WRAPPER_RE.search(line))


def _token_pattern(package: str) -> "re.Pattern[str]":
    name = re.escape(package)
    return re.compile(rf"""["'](?:[\w.\-]+/)?{name}(?:@[^"']*)?["']""")


def find_history_match(package: str, install_lines: Sequence[str]) -> Optional[str]:
    pattern = _token_pattern(package)
    for line in install_lines:
        if pattern.search(line):
            return line
    return None


__all__ = [
    "INSTALL_PATTERNS",
    "WRAPPER_PATTERNS",
    "extract_install_lines",
    "find_history_match",
    "is_wrapper_call",
    "read_history",
]
