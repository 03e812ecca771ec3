"""
Kaplan-Meier and cumulative incidence figures with aligned risk tables.

Public API:
    plot_curves(model) -> PlotAssembly
    PlotAssembly.build(...) -> ResolvedFigure
    place(resolved, ax), wrap(resolved) -> Panel
    set_option / reset_option / option_context
"""

from pysurvplot.plotting.design import PlotAssembly, plot_curves
from pysurvplot.plotting.solution import ResolvedFigure
from pysurvplot.plotting.layout import Composition, Panel, place, wrap
from pysurvplot.plotting.options import (
    PlotOptions,
    get_option,
    option_context,
    reset_option,
    set_option,
)
from pysurvplot.plotting._risktable import RiskTableData, RiskTableRow

__all__ = [
    "plot_curves",
    "PlotAssembly",
    "ResolvedFigure",
    "RiskTableData",
    "RiskTableRow",
    "place",
    "wrap",
    "Panel",
    "Composition",
    "PlotOptions",
    "get_option",
    "set_option",
    "reset_option",
    "option_context",
]
