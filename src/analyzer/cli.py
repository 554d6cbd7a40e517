from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from src.common.config import DEFAULT_CONFIG_PATH, TrackerConfig, load_config

from .analyzer import PackageAnalyzer, check_libraries, print_package_summary

app = typer.Typer(help="Analyse the project R library against the install history.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(levelname)s: %(message)s")


@app.command()
def summary(
    lib_path: Optional[Path] = typer.Option(None, "--lib", help="R library directory (defaults to the configured one)."),
    rhistory: Optional[Path] = typer.Option(None, "--rhistory", help="Raw R console history file."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Also write the full analysis as JSON."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    settings = _load_config(config)
    analysis = PackageAnalyzer(settings).analyze(lib_path, rhistory)
    print_package_summary(analysis)
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(analysis.to_dict(), indent=2), encoding="utf-8")
        typer.echo(f"Analysis written to {out.resolve()}")


@app.command()
def libraries(
    base: Optional[Path] = typer.Option(None, "--base", help="Directory to scan (defaults to the project directory)."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    settings = _load_config(config)
    check_libraries(base or settings.project_dir, settings.library_candidates)


def _load_config(path: Path) -> TrackerConfig:
    try:
        return load_config(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


if __name__ == "__main__":  # pragma: no cover
    app()
