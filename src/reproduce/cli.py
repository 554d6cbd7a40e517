from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from src.common.config import DEFAULT_CONFIG_PATH, TrackerConfig, load_config

from .generator import (
    DEFAULT_CONTAINER_SCRIPT,
    DEFAULT_DEFINITION,
    DEFAULT_INSTALL_SCRIPT,
    ContainerFormat,
    ReproducibilityGenerator,
)

app = typer.Typer(help="Regenerate install scripts, reports and container fragments from the install log.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(levelname)s: %(message)s")


@app.command()
def report(
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Report path (defaults to r_reproducibility_report_<timestamp>.json).",
    ),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    ReproducibilityGenerator(_load_config(config)).generate_report(out)


@app.command()
def script(
    out: Path = typer.Option(DEFAULT_INSTALL_SCRIPT, "--out", "-o", help="Where to write the install script."),
    pinned: bool = typer.Option(
        True,
        "--pinned/--no-pinned",
        help="Prefer version-pinned commands over the commands originally run.",
    ),
    include_dependencies: bool = typer.Option(
        False,
        "--include-dependencies/--no-include-dependencies",
        help="Also pin packages that were only pulled in as dependencies.",
    ),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    ReproducibilityGenerator(_load_config(config)).generate_install_script(
        prefer_pinned=pinned,
        include_dependencies=include_dependencies,
        output_path=out,
    )


@app.command()
def container(
    out: Path = typer.Option(DEFAULT_CONTAINER_SCRIPT, "--out", "-o", help="Where to write the container script."),
    output_format: ContainerFormat = typer.Option(
        ContainerFormat.SCRIPT,
        "--format",
        "-f",
        help="script: runnable Rscript; container_post: lines for a Singularity %post section.",
    ),
    include_dependencies: bool = typer.Option(
        False,
        "--include-dependencies/--no-include-dependencies",
        help="Also pin packages that were only pulled in as dependencies.",
    ),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    ReproducibilityGenerator(_load_config(config)).generate_container_install_script(
        include_dependencies=include_dependencies,
        output_path=out,
        format=output_format,
    )


@app.command()
def definition(
    out: Path = typer.Option(DEFAULT_DEFINITION, "--out", "-o", help="Where to write the Singularity definition."),
    include_dependencies: bool = typer.Option(
        False,
        "--include-dependencies/--no-include-dependencies",
        help="Also pin packages that were only pulled in as dependencies.",
    ),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    ReproducibilityGenerator(_load_config(config)).generate_container_definition(
        include_dependencies=include_dependencies,
        output_path=out,
    )


@app.command()
def full(
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    ReproducibilityGenerator(_load_config(config)).generate_full_reproducibility()


def _load_config(path: Path) -> TrackerConfig:
    try:
        return load_config(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


if __name__ == "__main__":  # pragma: no cover
    app()
