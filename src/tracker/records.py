from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from src.common.methods import InstallMethod

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SUCCESS_MESSAGE = "Installation completed successfully"


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    for candidate in (text, text.replace("Z", "+00:00")):
        try:
            return datetime.fromisoformat(candidate)
        except ValueError:
            continue
    # R's default POSIXct rendering carries a trailing timezone abbreviation.
    head = " ".join(text.split()[:2])
    return datetime.strptime(head, TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class InstallRecord:
    timestamp: datetime
    packages: Tuple[str, ...]
    method: Union[InstallMethod, str]
    r_version: str
    platform: str
    command: str
    actual_command: str
    success: bool
    output: Optional[str] = None

    @property
    def method_name(self) -> str:
        if isinstance(self.method, InstallMethod):
            return self.method.value
        return str(self.method)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "packages": list(self.packages),
            "method": self.method_name,
            "r_version": self.r_version,
            "platform": self.platform,
            "command": self.command,
            "actual_command": self.actual_command,
            "success": self.success,
            "output": self.output,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstallRecord":
        if not isinstance(data, dict):
            raise ValueError("Install record must be a JSON object")
        packages = data.get("packages") or []
        if isinstance(packages, str):
            packages = [packages]
        if not isinstance(packages, list):
            raise ValueError("Install record packages must be a list of names")
        raw_method = str(data.get("method") or "")
        try:
            method: Union[InstallMethod, str] = InstallMethod.parse(raw_method)
        except ValueError:
            method = raw_method
        output = data.get("output")
        if isinstance(output, list):
            output = "\n".join(str(item) for item in output)
        command = data.get("command") or ""
        if isinstance(command, list):
            command = " ".join(str(part).strip() for part in command)
        return cls(
            timestamp=parse_timestamp(data.get("timestamp")),
            packages=tuple(str(name) for name in packages),
            method=method,
            r_version=str(data.get("r_version") or ""),
            platform=str(data.get("platform") or ""),
            command=str(command),
            actual_command=str(data.get("actual_command") or ""),
            success=bool(data.get("success", False)),
            output=None if output is None else str(output),
        )


__all__ = [
    "InstallRecord",
    "SUCCESS_MESSAGE",
    "TIMESTAMP_FORMAT",
    "format_timestamp",
    "parse_timestamp",
]
