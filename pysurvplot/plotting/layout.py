"""
Handing resolved figures to other layouts.

Only a ResolvedFigure crosses this boundary, never a PlotAssembly: an
outside layout knows nothing of build() and would draw the primary panel
without its tables. A resolved figure goes out as one rasterized unit,
so its frozen proportions survive any host grid.

    place(resolved, ax)          # into an axes of any external grid
    wrap(a) | wrap(b)            # side by side
    (wrap(a) | wrap(b)) / wrap(c)  # stacked
"""

from __future__ import annotations

from dataclasses import dataclass
from os import PathLike

from matplotlib.axes import Axes
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.image import AxesImage

from pysurvplot.core.exceptions import LayoutError
from pysurvplot.plotting.solution import ResolvedFigure


def _check_resolved(obj) -> ResolvedFigure:
    if isinstance(obj, ResolvedFigure):
        return obj
    # Imported here; design imports solution, which this module also needs
    from pysurvplot.plotting.design import PlotAssembly
    if isinstance(obj, PlotAssembly):
        raise LayoutError(
            "an unresolved PlotAssembly cannot be placed; call build() first "
            "so risk tables are aligned and included"
        )
    raise LayoutError(
        f"expected a ResolvedFigure, got {type(obj).__name__}"
    )


def place(resolved: ResolvedFigure, ax: Axes, *, dpi: float | None = None) -> AxesImage:
    """Draw a resolved figure into a host axes, keeping its aspect ratio.

    The figure is rasterized first, so vector output formats (pdf, svg)
    written from the host carry it as a bitmap. Save the ResolvedFigure
    itself for vector output.

    Parameters
    ----------
    resolved : ResolvedFigure
    ax : Axes
        Any axes, e.g. one cell of ``plt.subplots(2, 2)``.
    dpi : float or None
        Rasterization resolution; None uses the figure's own dpi.

    Returns
    -------
    AxesImage
    """
    resolved = _check_resolved(resolved)
    image = ax.imshow(resolved.to_rgba(dpi), aspect="equal", interpolation="antialiased")
    ax.set_axis_off()
    return image


class _Node:
    """Shared operators of Panel and Composition."""

    def __or__(self, other) -> Composition:
        return Composition.join("row", self, _as_node(other))

    def __truediv__(self, other) -> Composition:
        return Composition.join("column", self, _as_node(other))

    def render(self, *, dpi: float | None = None) -> Figure:
        """Compose into a new Agg-backed Figure sized from the parts."""
        dpi = dpi if dpi is not None else self._max_dpi()
        width, height = self.size_inches
        figure = Figure(figsize=(width, height), dpi=dpi)
        FigureCanvasAgg(figure)
        self._draw(figure, (0.0, 0.0, width, height), (width, height), dpi)
        return figure

    def save(
        self,
        path: str | PathLike,
        *,
        dpi: float | None = None,
        format: str | None = None,
    ) -> None:
        """Write the composition; every panel is embedded as a bitmap."""
        figure = self.render(dpi=dpi)
        figure.savefig(path, dpi="figure", format=format)


@dataclass(frozen=True)
class Panel(_Node):
    """One resolved figure, ready for operator composition."""
    resolved: ResolvedFigure

    @property
    def size_inches(self) -> tuple[float, float]:
        return self.resolved.size_inches

    def _max_dpi(self) -> float:
        return float(self.resolved.figure.get_dpi())

    def _draw(self, figure: Figure, box, total, dpi: float) -> None:
        x, y, box_w, box_h = box
        total_w, total_h = total
        w, h = self.size_inches
        # Centered in its cell; never stretched
        left = x + (box_w - w) / 2.0
        bottom = y + (box_h - h) / 2.0
        ax = figure.add_axes((left / total_w, bottom / total_h, w / total_w, h / total_h))
        place(self.resolved, ax, dpi=dpi)


@dataclass(frozen=True)
class Composition(_Node):
    """Panels side by side ("row") or stacked ("column")."""
    direction: str
    items: tuple[_Node, ...]

    @classmethod
    def join(cls, direction: str, left: _Node, right: _Node) -> Composition:
        items = []
        for node in (left, right):
            # a | b | c is one row, not nested rows
            if isinstance(node, Composition) and node.direction == direction:
                items.extend(node.items)
            else:
                items.append(node)
        return cls(direction=direction, items=tuple(items))

    @property
    def size_inches(self) -> tuple[float, float]:
        sizes = [item.size_inches for item in self.items]
        if self.direction == "row":
            return sum(w for w, _ in sizes), max(h for _, h in sizes)
        return max(w for w, _ in sizes), sum(h for _, h in sizes)

    def _max_dpi(self) -> float:
        return max(item._max_dpi() for item in self.items)

    def _draw(self, figure: Figure, box, total, dpi: float) -> None:
        x, y, box_w, box_h = box
        if self.direction == "row":
            for item in self.items:
                w, _ = item.size_inches
                item._draw(figure, (x, y, w, box_h), total, dpi)
                x += w
        else:
            # First item on top
            top = y + box_h
            for item in self.items:
                _, h = item.size_inches
                top -= h
                item._draw(figure, (x, top, box_w, h), total, dpi)


def wrap(resolved: ResolvedFigure) -> Panel:
    """Wrap a resolved figure for ``|`` / ``/`` composition."""
    return Panel(resolved=_check_resolved(resolved))


def _as_node(obj) -> _Node:
    if isinstance(obj, _Node):
        return obj
    return wrap(obj)
