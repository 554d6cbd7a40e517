"""Tracked installation of R packages and the installation history log."""

from .history import HistoryViewer
from .installer import Installer
from .log_store import LogStore
from .records import InstallRecord

__all__ = [
    "HistoryViewer",
    "InstallRecord",
    "Installer",
    "LogStore",
]
