from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml

from src.common.config import DEFAULT_CONFIG_PATH, TrackerConfig, load_config
from src.common.methods import InstallMethod

from .history import HistoryViewer
from .installer import Installer
from .log_store import LogStore

app = typer.Typer(help="Install R packages into the project library and track every attempt.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(levelname)s: %(message)s")


@app.command()
def install(
    packages: List[str] = typer.Argument(..., help="Package names (or user/repo[@ref] for remote installs)."),
    method: str = typer.Option(
        InstallMethod.CRAN.value,
        "--method",
        "-m",
        help="Installation source: cran, bioc, github, gitlab or bitbucket.",
    ),
    option: Optional[List[str]] = typer.Option(
        None,
        "--option",
        "-O",
        help="Extra installer argument as key=value (value parsed as YAML scalar).",
    ),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    try:
        install_method = InstallMethod.parse(method)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--method") from exc
    settings = _load_config(config)
    record = Installer(settings).install(packages, install_method, **_parse_options(option or []))
    status = "succeeded" if record.success else "failed"
    typer.echo(f"Install of {', '.join(record.packages)} via {record.method_name} {status}: {record.output}")
    typer.echo(f"Logged to {settings.history_json_path}")
    if not record.success:
        raise typer.Exit(code=1)


@app.command()
def history(
    recent: Optional[int] = typer.Option(None, "--recent", "-n", min=0, help="Show only the last N entries."),
    method: Optional[str] = typer.Option(None, "--method", "-m", help="Only show installs from this source."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Tracker configuration file."),
) -> None:
    settings = _load_config(config)
    store = LogStore(settings.history_json_path, settings.history_text_path)
    HistoryViewer(store).show(recent=recent, method=method)


def _parse_options(raw: List[str]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for item in raw:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {item!r}", param_hint="--option")
        try:
            options[key.strip()] = yaml.safe_load(value) if value else ""
        except yaml.YAMLError as exc:
            raise typer.BadParameter(f"Cannot parse value for {key!r}: {exc}", param_hint="--option") from exc
    return options


def _load_config(path: Path) -> TrackerConfig:
    try:
        return load_config(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


if __name__ == "__main__":  # pragma: no cover
    app()
