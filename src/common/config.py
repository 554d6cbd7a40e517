"""Session configuration shared by the tracker, analyzer and generators."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

DEFAULT_CONFIG_PATH = Path("configs/tracker.yaml")


@dataclass(frozen=True)
class TrackerConfig:
    project_dir: Path = field(default_factory=Path.cwd)
    lib_dir: Path = Path("R_libs")
    history_json: Path = Path(".r_install_history.json")
    history_text: Path = Path(".r_install_history.txt")
    rhistory: Path = Path(".Rhistory")
    rscript_cmd: str = "Rscript"
    cran_mirror: str = "https://cloud.r-project.org"
    download_timeout: int = 300
    container_base_image: str = "rocker/r-ver"
    library_candidates: Tuple[str, ...] = ("R_libs", "renv", ".Rlibs")

    def resolve(self, path: Path) -> Path:
        path = Path(path).expanduser()
        if path.is_absolute():
            return path
        return self.project_dir / path

    @property
    def lib_path(self) -> Path:
        return self.resolve(self.lib_dir)

    @property
    def history_json_path(self) -> Path:
        return self.resolve(self.history_json)

    @property
    def history_text_path(self) -> Path:
        return self.resolve(self.history_text)

    @property
    def rhistory_path(self) -> Path:
        return self.resolve(self.rhistory)

    def script_lib_path(self) -> str:
        """Library path as written into generated scripts (project relative when possible)."""
        try:
            return self.lib_path.relative_to(self.project_dir).as_posix()
        except ValueError:
            return self.lib_path.as_posix()


_PATH_KEYS = {"project_dir", "lib_dir", "history_json", "history_text", "rhistory"}


def load_config(path: Optional[Path] = None, project_dir: Optional[Path] = None) -> TrackerConfig:
    data = _load_yaml(path) if path is not None else {}
    known = {f.name for f in fields(TrackerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if key in _PATH_KEYS:
            values[key] = Path(str(value)).expanduser()
        elif key == "library_candidates":
            if isinstance(value, str):
                value = [value]
            values[key] = tuple(str(item) for item in value)
        elif key == "download_timeout":
            values[key] = int(value)
        else:
            values[key] = str(value)

    config = TrackerConfig(**values)
    if project_dir is not None:
        config = replace(config, project_dir=Path(project_dir))
    return replace(config, project_dir=config.project_dir.resolve())


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Config file is not valid YAML: {path}") from exc
    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping")
    return data


__all__ = ["DEFAULT_CONFIG_PATH", "TrackerConfig", "load_config"]
