from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import typer

from src.common.config import TrackerConfig
from src.common.methods import InstallMethod, package_name_of, r_string
from src.common.r_runtime import RRuntime
from src.tracker.log_store import LogStore
from src.tracker.records import InstallRecord, format_timestamp

from .description import DESCRIPTION_FILE, read_description
from .legacy_history import extract_install_lines, find_history_match, is_wrapper_call, read_history

logger = logging.getLogger(__name__)

MANUAL = "manual"
DEPENDENCY = "dependency"
DEFAULT_REMOTE_REF = "HEAD"
UNKNOWN_SOURCE_PREFIX = "# Unknown source for "

_REMOTE_KINDS = {method.value for method in InstallMethod if method.is_remote}


@dataclass
class PackageMetadata:
    name: str
    version: Optional[str] = None
    repository: Optional[str] = None
    remote_type: Optional[str] = None
    remote_repo: Optional[str] = None
    remote_username: Optional[str] = None
    remote_ref: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)
    install_command_used: Optional[str] = None
    actual_install_command: Optional[str] = None
    install_timestamp: Optional[str] = None
    install_method: Optional[str] = None
    reproduce_install: Optional[str] = None
    classification: str = DEPENDENCY

    @property
    def is_manual(self) -> bool:
        return self.classification == MANUAL

    @property
    def pinned_command(self) -> Optional[str]:
        """Reproduce command, or ``None`` when it is only an unknown-source placeholder."""
        if not self.reproduce_install or self.reproduce_install.startswith("#"):
            return None
        return self.reproduce_install

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalysisSummary:
    total_packages: int
    manually_installed_count: int
    dependencies_count: int
    r_version: str
    lib_path: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PackageAnalysis:
    manually_installed: Dict[str, PackageMetadata]
    dependencies: Dict[str, PackageMetadata]
    summary: AnalysisSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "manually_installed": {name: pkg.to_dict() for name, pkg in self.manually_installed.items()},
            "dependencies": {name: pkg.to_dict() for name, pkg in self.dependencies.items()},
            "summary": self.summary.to_dict(),
        }


def find_log_match(package: str, records: Sequence[InstallRecord]) -> Optional[InstallRecord]:
    for record in records:
        if any(package_name_of(spec) == package for spec in record.packages):
            return record
    return None


def reproduce_command(
    name: str,
    version: Optional[str],
    repository: Optional[str],
    remote_type: Optional[str],
    remote_repo: Optional[str],
    remote_username: Optional[str],
    remote_ref: Optional[str],
) -> str:
    if remote_type in _REMOTE_KINDS and remote_repo and remote_username:
        ref = remote_ref or DEFAULT_REMOTE_REF
        function = InstallMethod.parse(remote_type).function
        return f"{function}({r_string(f'{remote_username}/{remote_repo}@{ref}')})"
    if repository and "bioc" in repository.lower():
        command = f"{InstallMethod.BIOC.function}({r_string(name)})"
        return f"{command} # version: {version}" if version else command
    # Repository: CRAN and unlabelled packages with a version both pin through CRAN archives.
    if version:
        return f"remotes::install_version({r_string(name)}, version = {r_string(version)})"
    return f"{UNKNOWN_SOURCE_PREFIX}{name}"


class PackageAnalyzer:
    """Classifies the packages in a library as manually installed or dependencies."""

    def __init__(
        self,
        config: TrackerConfig,
        store: Optional[LogStore] = None,
        runtime: Optional[RRuntime] = None,
    ) -> None:
        self.config = config
        self.store = store or LogStore(config.history_json_path, config.history_text_path)
        self.runtime = runtime or RRuntime(config.rscript_cmd)

    def analyze(self, lib_path: Optional[Path] = None, rhistory_path: Optional[Path] = None) -> PackageAnalysis:
        library = Path(lib_path) if lib_path is not None else self.config.lib_path
        history = Path(rhistory_path) if rhistory_path is not None else self.config.rhistory_path

        manually_installed: Dict[str, PackageMetadata] = {}
        dependencies: Dict[str, PackageMetadata] = {}

        if not library.is_dir():
            logger.info("R library directory not found: %s", library)
            return PackageAnalysis(manually_installed, dependencies, self._summary(library, {}, {}))

        install_lines = extract_install_lines(read_history(history))
        records = self.store.read_all()

        for package_dir in sorted(p for p in library.iterdir() if p.is_dir()):
            if not (package_dir / DESCRIPTION_FILE).is_file():
                continue
            try:
                fields = read_description(package_dir)
            except (OSError, ValueError) as exc:
                logger.warning("Skipping %s: %s", package_dir.name, exc)
                continue
            metadata = self.describe_package(package_dir.name, fields, records, install_lines)
            if metadata.is_manual:
                manually_installed[metadata.name] = metadata
            else:
                dependencies[metadata.name] = metadata

        return PackageAnalysis(
            manually_installed,
            dependencies,
            self._summary(library, manually_installed, dependencies),
        )

    def describe_package(
        self,
        name: str,
        fields: Dict[str, str],
        records: Sequence[InstallRecord],
        install_lines: Sequence[str],
    ) -> PackageMetadata:
        metadata = PackageMetadata(
            name=name,
            version=fields.get("Version"),
            repository=fields.get("Repository"),
            remote_type=fields.get("RemoteType"),
            remote_repo=fields.get("RemoteRepo"),
            remote_username=fields.get("RemoteUsername"),
            remote_ref=fields.get("RemoteRef"),
            fields=dict(fields),
        )

        log_match = find_log_match(name, records)
        history_match = None if log_match else find_history_match(name, install_lines)

        if log_match is not None:
            metadata.install_command_used = log_match.command or None
            metadata.actual_install_command = log_match.actual_command or None
            metadata.install_timestamp = format_timestamp(log_match.timestamp)
            metadata.install_method = log_match.method_name
        elif history_match is not None:
            metadata.install_command_used = history_match
            # A tracking-wrapper line names the package but is not a plain R install command.
            metadata.actual_install_command = None if is_wrapper_call(history_match) else history_match

        metadata.reproduce_install = reproduce_command(
            name,
            metadata.version,
            metadata.repository,
            metadata.remote_type,
            metadata.remote_repo,
            metadata.remote_username,
            metadata.remote_ref,
        )
        found = log_match is not None or history_match is not None
        metadata.classification = MANUAL if found else DEPENDENCY
        return metadata

    def _summary(
        self,
        library: Path,
        manually_installed: Dict[str, PackageMetadata],
        dependencies: Dict[str, PackageMetadata],
    ) -> AnalysisSummary:
        return AnalysisSummary(
            total_packages=len(manually_installed) + len(dependencies),
            manually_installed_count=len(manually_installed),
            dependencies_count=len(dependencies),
            r_version=self.runtime.version(),
            lib_path=str(library),
        )


def render_summary(analysis: PackageAnalysis) -> str:
    summary = analysis.summary
    lines = [
        "",
        "R Package Analysis Summary",
        "=" * 50,
        f"R version: {summary.r_version}",
        f"Library path: {summary.lib_path}",
        f"Total packages: {summary.total_packages}",
        f"Manually installed: {summary.manually_installed_count}",
        f"Dependencies: {summary.dependencies_count}",
    ]
    if analysis.dependencies:
        lines.append("")
        lines.append("Packages without install history:")
        for name, pkg in analysis.dependencies.items():
            lines.append(f"  - {name} ({pkg.version or 'unknown version'})")
    return "\n".join(lines)


def print_package_summary(analysis: PackageAnalysis, echo: Callable[[str], None] = typer.echo) -> PackageAnalysis:
    echo(render_summary(analysis))
    return analysis


@dataclass(frozen=True)
class LibraryLocation:
    path: Path
    package_count: int


def check_libraries(
    base: Path,
    candidates: Sequence[str] = ("R_libs", "renv", ".Rlibs"),
    echo: Callable[[str], None] = typer.echo,
) -> List[LibraryLocation]:
    """Report which R library directories exist under ``base`` and how many packages each holds."""
    found: List[LibraryLocation] = []
    for candidate in candidates:
        path = Path(base) / candidate
        if path.is_dir():
            count = sum(1 for child in path.iterdir() if child.is_dir())
            found.append(LibraryLocation(path=path, package_count=count))

    echo("Checking for R library installations")
    echo("=" * 50)
    if not found:
        echo("No R library directories found")
        echo(f"   Expected directories: {', '.join(f'{c}/' for c in candidates)}")
        return found
    for location in found:
        echo(f"{location.path.name}: {location.package_count} packages")
        echo(f"   Path: {location.path}")
    echo(f"Will analyze: {found[0].path}")
    return found


__all__ = [
    "AnalysisSummary",
    "DEPENDENCY",
    "LibraryLocation",
    "MANUAL",
    "PackageAnalysis",
    "PackageAnalyzer",
    "PackageMetadata",
    "check_libraries",
    "find_log_match",
    "print_package_summary",
    "render_summary",
    "reproduce_command",
]
