"""Installation sources and the R call shapes each one produces."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union


class InstallMethod(str, Enum):
    CRAN = "cran"
    BIOC = "bioc"
    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"

    @classmethod
    def parse(cls, value: Union[str, "InstallMethod"]) -> "InstallMethod":
        if isinstance(value, cls):
            return value
        key = (value or "").strip().lower()
        for member in cls:
            if member.value == key:
                return member
        choices = ", ".join(repr(member.value) for member in cls)
        raise ValueError(f"Unknown method {value!r}. Use one of: {choices}")

    @property
    def function(self) -> str:
        return _FUNCTIONS[self]

    @property
    def helper_package(self) -> Optional[str]:
        """Package that must be present before the installer function can run."""
        return _HELPERS[self]

    @property
    def installer_defaults(self) -> Dict[str, Any]:
        if self is InstallMethod.BIOC:
            return {"update": False, "ask": False}
        return {}

    @property
    def is_remote(self) -> bool:
        return self in (InstallMethod.GITHUB, InstallMethod.GITLAB, InstallMethod.BITBUCKET)

    def actual_command(self, packages: Sequence[str]) -> str:
        """Plain R call that installs ``packages`` without the tracker."""
        return f"{self.function}({r_vector(packages)})"


_FUNCTIONS = {
    InstallMethod.CRAN: "install.packages",
    InstallMethod.BIOC: "BiocManager::install",
    InstallMethod.GITHUB: "remotes::install_github",
    InstallMethod.GITLAB: "remotes::install_gitlab",
    InstallMethod.BITBUCKET: "remotes::install_bitbucket",
}

_HELPERS = {
    InstallMethod.CRAN: None,
    InstallMethod.BIOC: "BiocManager",
    InstallMethod.GITHUB: "remotes",
    InstallMethod.GITLAB: "remotes",
    InstallMethod.BITBUCKET: "remotes",
}


def r_string(value: str) -> str:
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def r_vector(values: Sequence[str]) -> str:
    """Scalar literal for one value, ``c(...)`` for several."""
    items = [r_string(value) for value in values]
    if len(items) == 1:
        return items[0]
    return f"c({', '.join(items)})"


def r_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return f"c({', '.join(r_literal(item) for item in value)})"
    return r_string(str(value))


def r_arguments(options: Mapping[str, Any]) -> List[str]:
    return [f"{key} = {r_literal(value)}" for key, value in options.items()]


def r_call(function: str, positional: Iterable[str], options: Optional[Mapping[str, Any]] = None) -> str:
    args = list(positional)
    if options:
        args.extend(r_arguments(options))
    return f"{function}({', '.join(args)})"


def package_name_of(spec: str) -> str:
    """Package name for an install argument such as ``user/repo@ref`` or ``repo``."""
    name = spec.strip()
    if "/" in name:
        name = name.rsplit("/", 1)[1]
    for separator in ("@", "#"):
        name = name.split(separator, 1)[0]
    return name


__all__ = [
    "InstallMethod",
    "package_name_of",
    "r_arguments",
    "r_call",
    "r_literal",
    "r_string",
    "r_vector",
]
