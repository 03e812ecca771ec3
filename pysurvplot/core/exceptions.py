"""
Exception hierarchy for pysurvplot.

All exceptions inherit from PySurvPlotError to allow catching any
library-specific error. Domain-specific exceptions should inherit from
the appropriate base class here.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class PySurvPlotError(Exception):
    """Base exception for all pysurvplot errors."""
    pass


class ValidationError(PySurvPlotError):
    """
    Input validation failed.

    Raised when user-provided arrays fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class NumericalError(PySurvPlotError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during estimation.
    """
    pass


class EstimationError(NumericalError):
    """
    A survival estimator could not produce a curve model.

    Raised for non-convergent or ill-specified models (e.g. a Cox fit whose
    Newton-Raphson iterations do not converge, or whose information matrix
    is singular). Plotting code never recovers from this; it propagates.

    Attributes:
        iterations: Number of iterations completed, if iterative
        reason: Why estimation failed (e.g. 'max_iterations', 'singular')
    """

    def __init__(
        self,
        message: str,
        iterations: int | None = None,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.reason = reason


class ConfigurationError(PySurvPlotError):
    """
    A plot recipe was configured inconsistently.

    Raised eagerly, when the offending request is added to the recipe:
    quantile guides with both or neither of y_value/x_value, risk-table
    statistics the curve model does not carry, or scale requests that
    cannot be honored together.

    Attributes:
        option: Name of the offending option, if any
    """

    def __init__(self, message: str, option: str | None = None):
        super().__init__(message)
        self.option = option


class LayoutError(PySurvPlotError):
    """
    Panels cannot be laid out as requested.

    Raised at build time when risk tables are requested on a faceted plot,
    and by the layout adapter when handed an unresolved recipe.
    """
    pass
