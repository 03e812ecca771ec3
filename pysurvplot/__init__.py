"""
pysurvplot: survival curves with aligned risk tables.

Submodules:
    survival: Kaplan-Meier, cumulative incidence, log-rank and Cox fits
    plotting: deferred curve figures, risk tables and layout composition
"""

__version__ = "0.1.0"

from pysurvplot import survival
from pysurvplot import plotting
from pysurvplot.survival import coxph, cuminc, survdiff, survfit
from pysurvplot.plotting import plot_curves

__all__ = [
    "__version__",
    "survival",
    "plotting",
    "survfit",
    "cuminc",
    "survdiff",
    "coxph",
    "plot_curves",
]
