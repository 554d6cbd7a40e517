"""Reports, install scripts and container fragments that rebuild an R library."""

from .generator import ContainerFormat, ReproducibilityGenerator, ReproducibilityReport

__all__ = ["ContainerFormat", "ReproducibilityGenerator", "ReproducibilityReport"]
