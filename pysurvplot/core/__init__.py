"""
Core infrastructure for pysurvplot.

This module provides shared abstractions and utilities used by the
estimator (survival) and plotting subpackages.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing utilities
"""

from pysurvplot.core.result import Result
from pysurvplot.core.exceptions import (
    PySurvPlotError,
    ValidationError,
    DimensionError,
    NumericalError,
    EstimationError,
    ConfigurationError,
    LayoutError,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "PySurvPlotError",
    "ValidationError",
    "DimensionError",
    "NumericalError",
    "EstimationError",
    "ConfigurationError",
    "LayoutError",
]
