"""
Survival estimation: the curve models the plotting layer draws.

Public API:
    survfit(...) -> CurveModel
    cuminc(...) -> CurveModel
    survdiff(...) -> LogRankSolution
    coxph(...) -> CoxModel
"""

from pysurvplot.survival.solvers import coxph, cuminc, survdiff, survfit
from pysurvplot.survival.solution import CoxModel, CurveModel, LogRankSolution
from pysurvplot.survival._common import StratumCurve

__all__ = [
    "survfit",
    "cuminc",
    "survdiff",
    "coxph",
    "CurveModel",
    "CoxModel",
    "LogRankSolution",
    "StratumCurve",
]
