"""Analysis of an installed R package library against the install history."""

from .analyzer import (
    PackageAnalysis,
    PackageAnalyzer,
    PackageMetadata,
    check_libraries,
    print_package_summary,
    render_summary,
)

__all__ = [
    "PackageAnalysis",
    "PackageAnalyzer",
    "PackageMetadata",
    "check_libraries",
    "print_package_summary",
    "render_summary",
]
