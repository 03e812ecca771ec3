"""
PlotAssembly: the immutable recipe for a curve figure.

Fluent calls append to the recipe and return a new assembly; nothing is
drawn until render() or build(). build() is the only place where the
primary panel and its risk tables meet, after the primary panel's x axis
is resolved, so tables always inherit the final x limits and ticks.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, replace
from typing import Any, Callable

import matplotlib as mpl
import numpy as np
from matplotlib.axes import Axes
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.ticker import FixedLocator

from pysurvplot.core.compute.timing import Timer
from pysurvplot.core.exceptions import ConfigurationError, LayoutError
from pysurvplot.plotting._common import (
    OVERLAY_NAMES,
    RISKTABLE_GROUPS,
    STAT_LABELS,
    CensorMark,
    ConfidenceInterval,
    FacetSpec,
    Labels,
    Overlay,
    PValue,
    QuantileGuide,
    RiskTableSpec,
    ScaleSpec,
)
from pysurvplot.plotting._render import LEGEND_POSITIONS, aesthetic_map, render_primary
from pysurvplot.plotting._risktable import (
    LINE_HEIGHT,
    RiskTableData,
    draw_risk_table,
    resolve_risk_table,
)
from pysurvplot.plotting.options import get_options
from pysurvplot.plotting.solution import ResolvedFigure
from pysurvplot.survival.solution import CurveModel


@dataclass(frozen=True, eq=False)
class PlotAssembly:
    """Deferred recipe: a CurveModel plus every requested decoration.

    Assemblies compare and hash by identity; they may hold callables and
    arbitrary rcParams values.

    Parameters
    ----------
    model : CurveModel
    overlays : tuple
        Ordered overlay values (confidence band, censor marks, guides, P value).
    x_scale, y_scale : ScaleSpec or None
        One slot per axis; a later scale call replaces the earlier one.
    axis_labels : Labels
    legend_position : str
    facet_spec : FacetSpec or None
    rc : tuple of (str, value)
        matplotlib rcParams applied while drawing.
    modifications : tuple of callables
        ``fn(ax)`` calls applied to the primary axes, in order, last.
    risk_tables : tuple of RiskTableSpec
    """

    model: CurveModel
    overlays: tuple[Overlay, ...] = ()
    x_scale: ScaleSpec | None = None
    y_scale: ScaleSpec | None = None
    axis_labels: Labels = Labels()
    legend_position: str = "inside"
    facet_spec: FacetSpec | None = None
    rc: tuple[tuple[str, Any], ...] = ()
    modifications: tuple[Callable[[Axes], Any], ...] = ()
    risk_tables: tuple[RiskTableSpec, ...] = ()

    # -- Overlays ------------------------------------------------------------

    def add_confidence_interval(self, alpha: float = 0.2) -> PlotAssembly:
        return self._add_overlay(ConfidenceInterval(alpha=alpha))

    def add_censor_mark(self, marker: str = "+", size: float = 6.0) -> PlotAssembly:
        return self._add_overlay(CensorMark(marker=marker, size=size))

    def add_quantile(
        self,
        y_value: float | None = None,
        x_value: float | None = None,
        *,
        linestyle: str = "--",
        color: str = "0.4",
        linewidth: float = 0.8,
    ) -> PlotAssembly:
        """Add one guide line at a y level or at an x position.

        Each call adds an independent guide. Exactly one of ``y_value`` and
        ``x_value`` must be given.
        """
        return self._add_overlay(QuantileGuide(
            y_value=y_value,
            x_value=x_value,
            linestyle=linestyle,
            color=color,
            linewidth=linewidth,
        ))

    def add_pvalue(
        self,
        location: str = "caption",
        *,
        x: float | None = None,
        y: float | None = None,
        template: str = "Log-rank {p.value}",
        digits: int = 3,
        size: float | None = None,
    ) -> PlotAssembly:
        """Show the group-comparison P value as a caption or in the panel.

        ``template`` is formatted with the key ``{p.value}``, which holds
        the text "p = 0.012" (or "p < 0.001").
        """
        if self.model.p_value is None:
            raise ConfigurationError(
                "the curve model has no group comparison; a P value needs "
                "at least two strata",
                option="pvalue",
            )
        return self._add_overlay(PValue(
            location=location, x=x, y=y, template=template,
            digits=digits, size=size,
        ))

    def without(self, name: str) -> PlotAssembly:
        """Drop every overlay with this name (e.g. ``"censor_mark"``)."""
        if name not in OVERLAY_NAMES:
            raise ConfigurationError(
                f"Unknown overlay '{name}'. Available: {sorted(OVERLAY_NAMES)}",
                option=name,
            )
        return replace(
            self, overlays=tuple(o for o in self.overlays if o.name != name),
        )

    def _add_overlay(self, overlay: Overlay) -> PlotAssembly:
        return replace(self, overlays=self.overlays + (overlay,))

    # -- Scales, labels, legend, theme, facets -------------------------------

    def scale_x(
        self,
        *,
        limits=None,
        breaks=None,
        labels=None,
        transform: str = "identity",
    ) -> PlotAssembly:
        """Set the x scale. Replaces any earlier x scale as a whole."""
        return replace(self, x_scale=ScaleSpec(
            axis="x",
            limits=_as_tuple(limits),
            breaks=_as_tuple(breaks),
            labels=_as_tuple(labels),
            transform=transform,
        ))

    def scale_y(
        self,
        *,
        limits=None,
        breaks=None,
        labels=None,
        percent: bool = False,
        transform: str = "identity",
    ) -> PlotAssembly:
        """Set the y scale. Replaces any earlier y scale as a whole.

        ``transform`` is applied to the estimate: "risk" (1 - S),
        "cumhaz" (-log S) or "cloglog" (log(-log S)).
        """
        return replace(self, y_scale=ScaleSpec(
            axis="y",
            limits=_as_tuple(limits),
            breaks=_as_tuple(breaks),
            labels=_as_tuple(labels),
            percent=percent,
            transform=transform,
        ))

    def labs(
        self,
        *,
        x: str | None = None,
        y: str | None = None,
        title: str | None = None,
    ) -> PlotAssembly:
        current = self.axis_labels
        return replace(self, axis_labels=Labels(
            x=x if x is not None else current.x,
            y=y if y is not None else current.y,
            title=title if title is not None else current.title,
        ))

    def legend(self, position: str) -> PlotAssembly:
        if position not in LEGEND_POSITIONS:
            raise ConfigurationError(
                f"legend position must be one of {LEGEND_POSITIONS}, "
                f"got '{position}'",
                option="legend",
            )
        return replace(self, legend_position=position)

    def theme(self, **rc: Any) -> PlotAssembly:
        """Pass matplotlib rcParams through, e.g. ``theme(**{"font.size": 9})``."""
        merged = dict(self.rc)
        merged.update(rc)
        try:
            mpl.RcParams(merged)
        except (KeyError, ValueError) as e:
            raise ConfigurationError(f"invalid theme setting: {e}") from e
        return replace(self, rc=tuple(merged.items()))

    def facet(self, ncol: int | None = None) -> PlotAssembly:
        """One panel per stratum."""
        if ncol is not None and ncol < 1:
            raise ConfigurationError(
                f"facet ncol must be positive, got {ncol}", option="ncol",
            )
        return replace(self, facet_spec=FacetSpec(ncol=ncol))

    def modify(self, fn: Callable[[Axes], Any]) -> PlotAssembly:
        """Queue an arbitrary call on the primary axes.

        Modifications run after everything else on the primary panel, and
        still apply when risk tables were requested earlier.
        """
        if not callable(fn):
            raise ConfigurationError(f"modify() needs a callable, got {fn!r}")
        return replace(self, modifications=self.modifications + (fn,))

    # -- Risk tables ---------------------------------------------------------

    def add_risktable(
        self,
        stats=("{n.risk}",),
        *,
        labels=None,
        times=None,
        group: str = "statistic",
        symbol=None,
        height: float | None = None,
        size: float | None = None,
    ) -> PlotAssembly:
        """Request a risk table below the primary panel.

        Parameters
        ----------
        stats : str or sequence of str
            Row templates over record keys, e.g. ``"{n.risk}"`` or
            ``"{n.risk} ({cum.event})"``. A bare key (``"n.risk"``) is
            treated as ``"{n.risk}"``.
        labels : sequence of str or None
            Display label per template.
        times : sequence of float or None
            Explicit times; None uses the primary panel's x breaks.
        group : str
            "statistic" or "strata".
        symbol : str, dict or None
            Glyph to show instead of the stratum label.
        height : float or None
            Height as a fraction of the primary panel height.
        size : float or None
            Cell font size.
        """
        if isinstance(stats, str):
            stats = (stats,)
        stats = tuple(s if "{" in s else "{" + s + "}" for s in stats)
        if len(stats) == 0:
            raise ConfigurationError("a risk table needs at least one statistic")

        if group not in RISKTABLE_GROUPS:
            raise ConfigurationError(
                f"risk table group must be one of {RISKTABLE_GROUPS}, "
                f"got '{group}'",
                option="group",
            )

        if labels is None:
            labels = tuple(
                STAT_LABELS.get(s, s.replace("{", "").replace("}", ""))
                for s in stats
            )
        else:
            labels = (labels,) if isinstance(labels, str) else tuple(labels)
            if len(labels) != len(stats):
                raise ConfigurationError(
                    f"{len(stats)} statistics but {len(labels)} labels",
                    option="labels",
                )

        if times is not None:
            times = tuple(float(t) for t in np.atleast_1d(times))
            if any(t < 0 for t in times):
                raise ConfigurationError(
                    f"risk table times must be non-negative, got {times}",
                    option="times",
                )

        if height is not None and height <= 0:
            raise ConfigurationError(
                f"risk table height must be positive, got {height}",
                option="height",
            )

        spec = RiskTableSpec(
            stats=stats, labels=labels, times=times, group=group,
            symbol=symbol, height=height, size=size,
        )
        unknown = [k for k in spec.keys if k not in self.model.available_keys]
        if unknown:
            raise ConfigurationError(
                f"risk table statistic(s) {unknown} not available on the "
                f"curve model; available: {sorted(self.model.available_keys)}",
                option="stats",
            )
        return replace(self, risk_tables=self.risk_tables + (spec,))

    # -- Resolution ----------------------------------------------------------

    def render(
        self,
        *,
        figsize: tuple[float, float] | None = None,
        dpi: float | None = None,
        switch_color_linetype: bool | None = None,
    ) -> Figure:
        """Draw the primary recipe alone and return its Figure.

        Risk-table requests are ignored here; use build() to get them.
        """
        primary_only = replace(self, risk_tables=())
        return primary_only.build(
            figsize=figsize, dpi=dpi, switch_color_linetype=switch_color_linetype,
        ).figure

    def build(
        self,
        *,
        figsize: tuple[float, float] | None = None,
        dpi: float | None = None,
        switch_color_linetype: bool | None = None,
    ) -> ResolvedFigure:
        """Materialize the recipe into an aligned, layout-frozen figure.

        Parameters
        ----------
        figsize : (float, float) or None
            Primary panel size in inches; tables add height below it.
            None uses the ``figsize`` option.
        dpi : float or None
            None uses the ``dpi`` option.
        switch_color_linetype : bool or None
            None uses the ``switch_color_linetype`` option.

        Returns
        -------
        ResolvedFigure

        Raises
        ------
        LayoutError
            If faceting and a risk table are both requested.
        """
        if self.facet_spec is not None and self.risk_tables:
            raise LayoutError(
                "risk tables cannot be aligned with faceted panels; request "
                "either facet() or add_risktable(), not both"
            )

        # Process defaults are read here and nowhere below
        options = get_options()
        if figsize is None:
            figsize = options.figsize
        if dpi is None:
            dpi = options.dpi
        if switch_color_linetype is None:
            switch_color_linetype = options.switch_color_linetype

        timer = Timer()
        timer.start()
        with mpl.rc_context(dict(self.rc)):
            aesthetics = aesthetic_map(self.model, bool(switch_color_linetype))
            if self.facet_spec is not None:
                resolved = self._build_facets(figsize, dpi, aesthetics, timer)
            else:
                resolved = self._build_stacked(figsize, dpi, aesthetics, timer)

            with timer.section('layout'):
                resolved.figure.draw_without_rendering()
                resolved.figure.set_layout_engine("none")
        timer.stop()

        return replace(resolved, timing=timer.result())

    def _build_stacked(self, figsize, dpi, aesthetics, timer: Timer) -> ResolvedFigure:
        width, height = figsize
        size = mpl.rcParams["font.size"] * 0.9

        # Line counts are known before drawing; times are not
        probe_rows = [self._probe_lines(spec) for spec in self.risk_tables]
        fractions = [
            spec.height if spec.height is not None else LINE_HEIGHT * n_lines
            for spec, n_lines in zip(self.risk_tables, probe_rows)
        ]

        figure = Figure(
            figsize=(width, height * (1.0 + sum(fractions))),
            dpi=dpi,
            layout="constrained",
        )
        FigureCanvasAgg(figure)
        grid = figure.add_gridspec(len(fractions) + 1, 1, height_ratios=[1.0, *fractions])

        with timer.section('primary_panel'):
            primary = figure.add_subplot(grid[0])
            render_primary(primary, self, aesthetics, self.model.curves)

        tables: list[RiskTableData] = []
        table_axes: list[Axes] = []
        messages: list[str] = []
        if self.risk_tables:
            with timer.section('risk_tables'):
                xlim, ticks = _freeze_x_axis(primary)
                for i, spec in enumerate(self.risk_tables, start=1):
                    times = ticks
                    if spec.times is not None:
                        times, message = _times_in_range(spec.times, xlim)
                        if message is not None:
                            warnings.warn(message, UserWarning, stacklevel=3)
                            messages.append(message)
                    data = resolve_risk_table(self.model, spec, times)
                    ax = figure.add_subplot(grid[i], sharex=primary)
                    draw_risk_table(
                        ax, data, spec, aesthetics,
                        spec.size if spec.size is not None else size,
                    )
                    tables.append(data)
                    table_axes.append(ax)

        return ResolvedFigure(
            figure=figure,
            primary=primary,
            panels=(primary,),
            table_axes=tuple(table_axes),
            risk_tables=tuple(tables),
            warnings=tuple(messages),
        )

    def _build_facets(self, figsize, dpi, aesthetics, timer: Timer) -> ResolvedFigure:
        strata = self.model.strata
        ncol = self.facet_spec.ncol or min(len(strata), 3)
        nrow = math.ceil(len(strata) / ncol)
        width, height = figsize

        figure = Figure(
            figsize=(0.6 * width * ncol, 0.6 * height * nrow),
            dpi=dpi,
            layout="constrained",
        )
        FigureCanvasAgg(figure)
        grid = figure.add_gridspec(nrow, ncol)

        panels: list[Axes] = []
        with timer.section('primary_panel'):
            for i, label in enumerate(strata):
                share = panels[0] if panels else None
                ax = figure.add_subplot(
                    grid[i // ncol, i % ncol], sharex=share, sharey=share,
                )
                recipe = replace(
                    self,
                    axis_labels=replace(self.axis_labels, title=label),
                )
                curves = tuple(c for c in self.model.curves if c.strata == label)
                render_primary(ax, recipe, aesthetics, curves, show_pvalue=(i == 0))
                panels.append(ax)
            if self.axis_labels.title is not None:
                figure.suptitle(self.axis_labels.title)

        return ResolvedFigure(
            figure=figure,
            primary=panels[0],
            panels=tuple(panels),
            table_axes=(),
            risk_tables=(),
            warnings=(),
        )

    def _probe_lines(self, spec: RiskTableSpec) -> int:
        # Row structure does not depend on the times
        return resolve_risk_table(self.model, spec, np.zeros(1)).n_lines

    def __repr__(self) -> str:
        names = [o.name for o in self.overlays]
        return (
            f"PlotAssembly(kind='{self.model.kind}', strata={len(self.model.strata)}, "
            f"overlays={names}, risk_tables={len(self.risk_tables)}, "
            f"modifications={len(self.modifications)})"
        )


def plot_curves(model: CurveModel) -> PlotAssembly:
    """Start a figure recipe for a fitted curve model.

    Usage:
        fig = (
            plot_curves(survfit(time, event, strata=group))
            .add_confidence_interval()
            .add_censor_mark()
            .add_risktable(("{n.risk}", "{cum.event}"))
            .build()
        )
        fig.save("km.png")
    """
    if not isinstance(model, CurveModel):
        raise TypeError(
            f"plot_curves() needs a CurveModel from survfit() or cuminc(), "
            f"got {type(model).__name__}"
        )
    return PlotAssembly(model=model)


def _as_tuple(values):
    if values is None:
        return None
    return tuple(np.atleast_1d(values).tolist())


def _freeze_x_axis(ax: Axes) -> tuple[tuple[float, float], np.ndarray]:
    """Pin the resolved x limits and in-range ticks onto the axis."""
    xlim = ax.get_xlim()
    low, high = min(xlim), max(xlim)
    ticks = np.asarray(ax.get_xticks(), dtype=np.float64)
    ticks = ticks[(ticks >= low) & (ticks <= high)]
    ax.set_xlim(xlim)
    if not isinstance(ax.xaxis.get_major_locator(), FixedLocator):
        ax.set_xticks(ticks)
    return xlim, ticks


def _times_in_range(times, xlim) -> tuple[np.ndarray, str | None]:
    times = np.asarray(times, dtype=np.float64)
    low, high = min(xlim), max(xlim)
    inside = (times >= low) & (times <= high)
    if inside.all():
        return times, None
    dropped = times[~inside].tolist()
    return times[inside], (
        f"risk table times {dropped} fall outside the x limits "
        f"({low:g}, {high:g}) and are dropped"
    )
