#!/usr/bin/env python3
"""
Exception types raised while building and evaluating sketches.

Every error is a ValueError: they all signal a request that cannot be
satisfied with the inputs given, and none of them is retried internally.
"""


class ShapeError(ValueError):
    """Malformed IR node (width mismatch in Concat/Extract/Choose, etc.)."""


class ArchitectureError(ValueError):
    """The architecture description cannot satisfy an interface request."""


class UnsupportedInterface(ArchitectureError):
    """Interface kind (or its parameters) not provided by the architecture."""


class PortMismatch(ArchitectureError):
    """Port map is missing required ports or supplies unexpected ones."""


class WidthMismatch(ArchitectureError):
    """A port expression does not have the width the interface expects."""


class InternalDataMismatch(ArchitectureError):
    """Internal data passed to an interface (or generator) of another kind."""


class ArityError(ValueError):
    """Wrong number of logical inputs for a sketch generator."""


class EvaluationError(ValueError):
    """Expression cannot be evaluated (missing value, unknown module, ...)."""


class SubstitutionError(ValueError):
    """Substitution left holes without a value."""
