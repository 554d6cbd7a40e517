from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List

from .records import InstallRecord, format_timestamp

logger = logging.getLogger(__name__)

SUCCESS_GLYPH = "✓"
FAILURE_GLYPH = "✗"


def status_glyph(success: bool) -> str:
    return SUCCESS_GLYPH if success else FAILURE_GLYPH


class LogStore:
    """Installation history kept as a JSON array plus an append-only text log.

    The JSON file is read, extended and rewritten in full on every append.
    There is no locking: two sessions appending at once can lose a record.
    """

    def __init__(self, json_path: Path, text_path: Path) -> None:
        self.json_path = Path(json_path)
        self.text_path = Path(text_path)

    def exists(self) -> bool:
        return self.json_path.exists()

    def read_all(self) -> List[InstallRecord]:
        records: List[InstallRecord] = []
        for index, entry in enumerate(self._load_entries()):
            try:
                records.append(InstallRecord.from_dict(entry))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed entry %d in %s: %s", index, self.json_path, exc)
        return records

    def append(self, record: InstallRecord) -> None:
        entries = self._load_entries()
        entries.append(record.to_dict())
        self.json_path.parent.mkdir(parents=True, exist_ok=True)
        self.json_path.write_text(
            json.dumps(entries, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        with self.text_path.open("a", encoding="utf-8") as handle:
            handle.write(self.render_text_entry(record))
        logger.info("Installation logged")

    @staticmethod
    def render_text_entry(record: InstallRecord) -> str:
        return (
            f"{status_glyph(record.success)} [{format_timestamp(record.timestamp)}]\n"
            f"  Method: {record.method_name}\n"
            f"  Packages: {', '.join(record.packages)}\n"
            f"  Command: {record.actual_command}\n"
            "\n"
        )

    def _load_entries(self) -> List[Any]:
        if not self.json_path.exists():
            return []
        try:
            with self.json_path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable install log %s: %s", self.json_path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring install log %s: expected a JSON array", self.json_path)
            return []
        return data


__all__ = ["FAILURE_GLYPH", "LogStore", "SUCCESS_GLYPH", "status_glyph"]
