"""Reader for R package DESCRIPTION files (Debian control format)."""

from __future__ import annotations

from pathlib import Path
from typing import Dict

DESCRIPTION_FILE = "DESCRIPTION"


def parse_dcf(text: str) -> Dict[str, str]:
    """Parse the first paragraph of a DCF document into a field mapping.

    Continuation lines start with whitespace and are folded into the previous
    field with a single space, the same way ``read.dcf`` reports them.
    """
    fields: Dict[str, str] = {}
    current = None
    for raw_line in text.splitlines():
        if not raw_line.strip():
            if fields:
                break
            continue
        if raw_line[0] in " \t":
            if current is None:
                raise ValueError(f"Continuation line before any field: {raw_line!r}")
            fields[current] = f"{fields[current]} {raw_line.strip()}".strip()
            continue
        key, sep, value = raw_line.partition(":")
        if not sep or not key.strip():
            raise ValueError(f"Malformed DESCRIPTION line: {raw_line!r}")
        current = key.strip()
        fields[current] = value.strip()
    return fields


def read_description(package_dir: Path) -> Dict[str, str]:
    path = Path(package_dir) / DESCRIPTION_FILE
    return parse_dcf(path.read_text(encoding="utf-8", errors="replace"))


__all__ = ["DESCRIPTION_FILE", "parse_dcf", "read_description"]
