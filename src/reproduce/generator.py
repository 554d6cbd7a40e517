from __future__ import annotations

import json
import logging
import shlex
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import typer

from src.analyzer.analyzer import PackageAnalysis, PackageAnalyzer, PackageMetadata, print_package_summary
from src.common.config import TrackerConfig
from src.common.methods import r_string
from src.common.r_runtime import RRuntime
from src.tracker.log_store import LogStore
from src.tracker.records import format_timestamp

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_SCRIPT = Path("install_r_packages.R")
DEFAULT_CONTAINER_SCRIPT = Path("install_for_container.R")
DEFAULT_DEFINITION = Path("r-environment.def")
REPORT_PREFIX = "r_reproducibility_report_"
EXECUTABLE_MODE = 0o755


class ContainerFormat(str, Enum):
    SCRIPT = "script"
    CONTAINER_POST = "container_post"


@dataclass(frozen=True)
class ReproducibilityReport:
    generated_at: str
    r_version: str
    platform: str
    lib_path: str
    total_packages: int
    manually_installed_count: int
    dependencies_count: int
    install_history: List[Dict[str, Any]]
    manually_installed: Dict[str, Dict[str, Any]]
    dependencies: Dict[str, Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReproducibilityBundle:
    analysis: PackageAnalysis
    report_path: Path
    script_path: Path


def dedupe(commands: Iterable[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for command in commands:
        if command in seen:
            continue
        seen.add(command)
        unique.append(command)
    return unique


def _tracked_command(pkg: PackageMetadata, prefer_pinned: bool) -> Optional[str]:
    if prefer_pinned and pkg.pinned_command:
        return pkg.pinned_command
    if pkg.actual_install_command:
        return pkg.actual_install_command
    if pkg.install_command_used:
        return pkg.install_command_used
    return None


def _container_command(pkg: PackageMetadata) -> Optional[str]:
    return pkg.actual_install_command or pkg.pinned_command


def select_commands(
    analysis: PackageAnalysis,
    chooser: Callable[[PackageMetadata], Optional[str]],
    include_dependencies: bool,
) -> List[str]:
    commands = [chooser(pkg) for pkg in analysis.manually_installed.values()]
    if include_dependencies:
        commands.extend(pkg.pinned_command for pkg in analysis.dependencies.values())
    return dedupe(command for command in commands if command)


class ReproducibilityGenerator:
    """Turns the install log and library analysis into reports, scripts and container fragments."""

    def __init__(
        self,
        config: TrackerConfig,
        analyzer: Optional[PackageAnalyzer] = None,
        store: Optional[LogStore] = None,
        runtime: Optional[RRuntime] = None,
        clock: Callable[[], datetime] = datetime.now,
        echo: Callable[[str], None] = typer.echo,
    ) -> None:
        self.config = config
        self.runtime = runtime or RRuntime(config.rscript_cmd)
        self.store = store or LogStore(config.history_json_path, config.history_text_path)
        self.analyzer = analyzer or PackageAnalyzer(config, store=self.store, runtime=self.runtime)
        self.clock = clock
        self.echo = echo

    def generate_report(
        self,
        output_path: Optional[Path] = None,
        analysis: Optional[PackageAnalysis] = None,
    ) -> ReproducibilityReport:
        if analysis is None:
            analysis = self.analyzer.analyze()
        now = self.clock()
        summary = analysis.summary
        report = ReproducibilityReport(
            generated_at=format_timestamp(now),
            r_version=self.runtime.version(),
            platform=self.runtime.platform(),
            lib_path=summary.lib_path,
            total_packages=summary.total_packages,
            manually_installed_count=summary.manually_installed_count,
            dependencies_count=summary.dependencies_count,
            install_history=[record.to_dict() for record in self.store.read_all()],
            manually_installed={name: pkg.to_dict() for name, pkg in analysis.manually_installed.items()},
            dependencies={name: pkg.to_dict() for name, pkg in analysis.dependencies.items()},
        )

        if output_path is None:
            output_path = default_report_path(now)
        path = self._write(output_path, json.dumps(report.to_dict(), indent=2, ensure_ascii=False) + "\n", executable=False)

        self.echo(f"Reproducibility report saved: {path}")
        self.echo(f"   Total packages: {report.total_packages}")
        self.echo(f"   Manually installed: {report.manually_installed_count}")
        self.echo(f"   Dependencies: {report.dependencies_count}")
        return report

    def generate_install_script(
        self,
        analysis: Optional[PackageAnalysis] = None,
        prefer_pinned: bool = True,
        include_dependencies: bool = False,
        output_path: Optional[Path] = DEFAULT_INSTALL_SCRIPT,
    ) -> str:
        if analysis is None:
            analysis = self.analyzer.analyze()
        commands = select_commands(
            analysis,
            lambda pkg: _tracked_command(pkg, prefer_pinned),
            include_dependencies,
        )
        lib_path = self.config.script_lib_path()
        lines = [
            "#!/usr/bin/env Rscript",
            "# R Package Installation Script",
            f"# Generated: {format_timestamp(self.clock())}",
            f"# R version: {self.runtime.version()}",
            "",
            "# Set library path",
            f"lib_path <- {r_string(lib_path)}",
            "if (!dir.exists(lib_path)) dir.create(lib_path, recursive = TRUE)",
            ".libPaths(c(lib_path, .libPaths()))",
            "",
            "# Install packages",
            *commands,
        ]
        script = "\n".join(lines) + "\n"
        if output_path is not None:
            path = self._write(output_path, script, executable=True)
            self.echo(f"Install script saved: {path}")
            self.echo(f"   Commands: {len(commands)}")
        return script

    def generate_container_install_script(
        self,
        analysis: Optional[PackageAnalysis] = None,
        include_dependencies: bool = False,
        output_path: Optional[Path] = DEFAULT_CONTAINER_SCRIPT,
        format: ContainerFormat = ContainerFormat.SCRIPT,
    ) -> str:
        container_format = ContainerFormat(format)
        if analysis is None:
            analysis = self.analyzer.analyze()
        commands = select_commands(analysis, _container_command, include_dependencies)
        generated = format_timestamp(self.clock())
        r_version = self.runtime.version()

        if container_format is ContainerFormat.SCRIPT:
            lines = [
                "#!/usr/bin/env Rscript",
                "# R Package Installation Script for Container",
                f"# Generated: {generated}",
                f"# R version: {r_version}",
                "",
                "# Uses plain R install commands, no tracking wrapper",
                "# Suitable for a Singularity %post section",
                "",
                "cat('Installing packages...\\n')",
                "",
                *commands,
                "",
                "cat('Installation complete!\\n')",
            ]
        else:
            lines = [
                "# Add these lines to your Singularity definition %post section",
                f"# Generated: {generated}",
                f"# Based on R version: {r_version}",
                "",
                "# Package installations",
                *post_lines(commands),
            ]
        script = "\n".join(lines) + "\n"

        if output_path is not None:
            path = self._write(output_path, script, executable=container_format is ContainerFormat.SCRIPT)
            self.echo(f"Container install script saved: {path}")
            self.echo(f"   Format: {container_format.value}")
            self.echo(f"   Commands: {len(commands)}")
        return script

    def generate_container_definition(
        self,
        analysis: Optional[PackageAnalysis] = None,
        include_dependencies: bool = False,
        output_path: Optional[Path] = DEFAULT_DEFINITION,
    ) -> str:
        """Render a complete Singularity definition that rebuilds the library inside the image."""
        if analysis is None:
            analysis = self.analyzer.analyze()
        commands = select_commands(analysis, _container_command, include_dependencies)
        r_version = self.runtime.version()
        tag = r_version if r_version and r_version != "unknown" else "latest"
        lines = [
            "Bootstrap: docker",
            f"From: {self.config.container_base_image}:{tag}",
            "",
            "%labels",
            f"    Generated {format_timestamp(self.clock())}",
            f"    RVersion {r_version}",
            "",
            "%post",
            "    R -e 'install.packages(c(\"remotes\", \"BiocManager\"))'",
            *post_lines(commands),
            "",
            "%environment",
            "    export LC_ALL=C.UTF-8",
            "",
            "%runscript",
            '    exec R "$@"',
        ]
        definition = "\n".join(lines) + "\n"
        if output_path is not None:
            path = self._write(output_path, definition, executable=False)
            self.echo(f"Container definition saved: {path}")
            self.echo(f"   Commands: {len(commands)}")
        return definition

    def generate_full_reproducibility(self) -> ReproducibilityBundle:
        self.echo("Generating complete R reproducibility package...")
        self.echo("1. Analyzing packages...")
        analysis = self.analyzer.analyze()
        self.echo("2. Generating reproducibility report...")
        report_path = self.config.resolve(default_report_path(self.clock()))
        self.generate_report(report_path, analysis=analysis)
        self.echo("3. Generating install script...")
        script_path = self.config.resolve(DEFAULT_INSTALL_SCRIPT)
        self.generate_install_script(analysis, output_path=script_path)
        self.echo("4. Package summary:")
        print_package_summary(analysis, echo=self.echo)
        self.echo("")
        self.echo("Files created:")
        self.echo(f"  - {report_path}")
        self.echo(f"  - {script_path}")
        self.echo("To reproduce this environment:")
        self.echo(f"  Rscript {script_path}")
        return ReproducibilityBundle(analysis=analysis, report_path=report_path, script_path=script_path)

    def _write(self, output_path: Path, text: str, executable: bool) -> Path:
        path = self.config.resolve(Path(output_path))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        if executable:
            path.chmod(EXECUTABLE_MODE)
        logger.debug("Wrote %s", path)
        return path


def default_report_path(now: datetime) -> Path:
    return Path(f"{REPORT_PREFIX}{now.strftime('%Y%m%d_%H%M%S')}.json")


def post_lines(commands: Iterable[str]) -> List[str]:
    return [f"    R -e {shlex.quote(command)}" for command in commands]


__all__ = [
    "ContainerFormat",
    "ReproducibilityBundle",
    "ReproducibilityGenerator",
    "ReproducibilityReport",
    "dedupe",
    "post_lines",
    "select_commands",
]
