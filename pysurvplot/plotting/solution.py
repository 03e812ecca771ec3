"""
ResolvedFigure: the output of PlotAssembly.build().

A resolved figure has its layout computed and frozen. Its panels keep
their relative proportions through saving, resizing and composition.
"""

from __future__ import annotations

from dataclasses import dataclass
from os import PathLike

import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from numpy.typing import NDArray

from pysurvplot.plotting._risktable import RiskTableData


@dataclass(frozen=True)
class ResolvedFigure:
    """A built figure: primary panel, aligned risk tables, frozen layout.

    Attributes:
        figure: Agg-backed matplotlib Figure with layout engine "none".
        primary: The primary (first) curve axes.
        panels: All curve axes; more than one only when faceted.
        table_axes: One axes per risk table, top to bottom.
        risk_tables: Resolved table contents, parallel to ``table_axes``.
        warnings: Non-fatal issues met while building.
        timing: Build timings in seconds by section.
    """
    figure: Figure
    primary: Axes
    panels: tuple[Axes, ...]
    table_axes: tuple[Axes, ...]
    risk_tables: tuple[RiskTableData, ...]
    warnings: tuple[str, ...] = ()
    timing: dict[str, float] | None = None

    @property
    def n_panels(self) -> int:
        return len(self.panels) + len(self.table_axes)

    @property
    def size_inches(self) -> tuple[float, float]:
        width, height = self.figure.get_size_inches()
        return float(width), float(height)

    def to_rgba(self, dpi: float | None = None) -> NDArray:
        """Rasterize to an (height, width, 4) uint8 array."""
        canvas = self.figure.canvas
        if dpi is None:
            canvas.draw()
            return np.asarray(canvas.buffer_rgba()).copy()
        saved = self.figure.get_dpi()
        self.figure.set_dpi(dpi)
        try:
            canvas.draw()
            return np.asarray(canvas.buffer_rgba()).copy()
        finally:
            self.figure.set_dpi(saved)

    def save(
        self,
        path: str | PathLike,
        *,
        dpi: float | None = None,
        format: str | None = None,
        size: tuple[float, float] | None = None,
    ) -> None:
        """Write the figure to a file.

        Parameters
        ----------
        path : str or PathLike
        dpi : float or None
            None keeps the figure's dpi.
        format : str or None
            Any format matplotlib's savefig supports; None infers it from
            the path.
        size : (float, float) or None
            Physical size in inches. The frozen layout scales with the
            figure, so panel proportions are kept.
        """
        saved = self.figure.get_size_inches().copy()
        if size is not None:
            self.figure.set_size_inches(size)
        try:
            self.figure.savefig(
                path,
                dpi=dpi if dpi is not None else "figure",
                format=format,
            )
        finally:
            self.figure.set_size_inches(saved)

    def __repr__(self) -> str:
        width, height = self.size_inches
        return (
            f"ResolvedFigure(panels={len(self.panels)}, "
            f"risk_tables={len(self.table_axes)}, "
            f"size=({width:.2f}, {height:.2f}))"
        )
