"""
Drawing a primary curve panel onto matplotlib axes.

Everything here takes resolved inputs (curves, aesthetic map, recipe) and
draws; no option registry or global state is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import matplotlib as mpl
import numpy as np
from matplotlib.axes import Axes
from matplotlib.ticker import PercentFormatter
from numpy.typing import NDArray

from pysurvplot.plotting._common import (
    CensorMark,
    ConfidenceInterval,
    PValue,
    QuantileGuide,
    ScaleSpec,
    format_pvalue,
    format_template,
)
from pysurvplot.survival._common import StratumCurve

if TYPE_CHECKING:
    from pysurvplot.plotting.design import PlotAssembly
    from pysurvplot.survival.solution import CurveModel


LINESTYLES = ("-", "--", ":", "-.", (0, (5, 1, 1, 1)), (0, (1, 3)))

Y_LABELS = {
    ("survival", "identity"): "Survival Probability",
    ("survival", "risk"): "Risk",
    ("survival", "cumhaz"): "Cumulative Hazard",
    ("survival", "cloglog"): "log(-log(Survival))",
    ("incidence", "identity"): "Cumulative Incidence",
    ("incidence", "risk"): "1 - Cumulative Incidence",
    ("incidence", "cumhaz"): "-log(1 - Cumulative Incidence)",
    ("incidence", "cloglog"): "log(-log(Cumulative Incidence))",
}

# Whether each plotted scale rises over time
RISING = {
    ("survival", "identity"): False,
    ("survival", "risk"): True,
    ("survival", "cumhaz"): True,
    ("survival", "cloglog"): True,
    ("incidence", "identity"): True,
    ("incidence", "risk"): False,
    ("incidence", "cumhaz"): True,
    ("incidence", "cloglog"): False,
}

LEGEND_POSITIONS = ("inside", "right", "top", "bottom", "none")


@dataclass(frozen=True)
class AestheticMap:
    """Which visual channel strata and outcomes map to.

    By default strata take colors and outcomes take line types; with
    ``switched`` the roles swap. Without outcomes, switching leaves every
    curve the first color and gives strata line types.
    """
    strata_colors: dict[str, str]
    outcome_colors: dict[str, str]
    strata_linestyles: dict[str, object]
    outcome_linestyles: dict[str, object]
    switched: bool
    base_color: str

    def style(self, curve: StratumCurve) -> dict:
        if self.switched:
            color = self.outcome_colors.get(curve.outcome, self.base_color)
            linestyle = self.strata_linestyles[curve.strata]
        else:
            color = self.strata_colors[curve.strata]
            linestyle = self.outcome_linestyles.get(curve.outcome, "-")
        return {"color": color, "linestyle": linestyle}

    def strata_color(self, strata: str) -> str | None:
        """The stratum's color, or None when strata are not on color."""
        if self.switched:
            return None
        return self.strata_colors.get(strata)


def aesthetic_map(model: CurveModel, switched: bool) -> AestheticMap:
    """Assign colors from the active property cycle and line types."""
    cycle = mpl.rcParams["axes.prop_cycle"].by_key().get("color", ["C0"])

    def colors(keys):
        return {k: cycle[i % len(cycle)] for i, k in enumerate(keys)}

    def linestyles(keys):
        return {k: LINESTYLES[i % len(LINESTYLES)] for i, k in enumerate(keys)}

    return AestheticMap(
        strata_colors=colors(model.strata),
        outcome_colors=colors(model.outcomes),
        strata_linestyles=linestyles(model.strata),
        outcome_linestyles=linestyles(model.outcomes),
        switched=switched,
        base_color=cycle[0],
    )


def transform_estimate(
    curve: StratumCurve,
    transform: str,
    kind: str = "survival",
) -> tuple[NDArray, NDArray, NDArray]:
    """(estimate, lower, upper) on the plotted scale.

    The non-identity transforms are decreasing in the estimate, so the
    bounds swap. Incidence ``cumhaz`` is taken on 1 - F, which keeps the
    bounds in order.
    """
    est, lo, hi = curve.estimate, curve.conf_low, curve.conf_high
    if transform == "identity":
        return est, lo, hi
    if transform == "risk":
        return 1.0 - est, 1.0 - hi, 1.0 - lo
    with np.errstate(divide='ignore', invalid='ignore'):
        if transform == "cumhaz" and kind == "incidence":
            values = -np.log1p(-est), -np.log1p(-lo), -np.log1p(-hi)
        elif transform == "cumhaz":
            values = -np.log(est), -np.log(hi), -np.log(lo)
        else:
            values = np.log(-np.log(est)), np.log(-np.log(hi)), np.log(-np.log(lo))
    # 0 and 1 have no finite image; leave gaps
    return tuple(np.where(np.isfinite(v), v, np.nan) for v in values)


def render_primary(
    ax: Axes,
    recipe: PlotAssembly,
    aesthetics: AestheticMap,
    curves: tuple[StratumCurve, ...],
    *,
    show_pvalue: bool = True,
) -> None:
    """Draw curves, overlays, scales, labels, legend and modifications."""
    y_scale = recipe.y_scale or ScaleSpec(axis="y")
    x_scale = recipe.x_scale or ScaleSpec(axis="x")
    model = recipe.model

    plotted = []
    for curve in curves:
        y, lo, hi = transform_estimate(curve, y_scale.transform, model.kind)
        style = aesthetics.style(curve)
        ax.step(
            curve.time, y, where="post", label=curve.label,
            linewidth=1.5, gid="curve", **style,
        )
        plotted.append((curve, y, lo, hi, style))

    for overlay in recipe.overlays:
        if isinstance(overlay, ConfidenceInterval):
            for curve, y, lo, hi, style in plotted:
                ax.fill_between(
                    curve.time, lo, hi, step="post", alpha=overlay.alpha,
                    color=style["color"], linewidth=0, gid="confidence-interval",
                )
        elif isinstance(overlay, CensorMark):
            for curve, y, lo, hi, style in plotted:
                mask = (curve.n_censor > 0) & (curve.time > 0)
                ax.plot(
                    curve.time[mask], y[mask], linestyle="none",
                    marker=overlay.marker, markersize=overlay.size,
                    color=style["color"], gid="censor-mark",
                )
        elif isinstance(overlay, QuantileGuide):
            _draw_quantile(
                ax, overlay, plotted, model.max_time,
                RISING[(model.kind, y_scale.transform)],
            )
        elif isinstance(overlay, PValue) and show_pvalue:
            _draw_pvalue(ax, overlay, model.p_value)

    _apply_scales(ax, x_scale, y_scale)

    labels = recipe.axis_labels
    ax.set_xlabel(labels.x if labels.x is not None else "Time")
    ax.set_ylabel(
        labels.y if labels.y is not None
        else Y_LABELS[(model.kind, y_scale.transform)]
    )
    if labels.title is not None:
        ax.set_title(labels.title)

    if len(curves) > 1:
        _draw_legend(ax, recipe.legend_position, model.kind, len(curves))

    for modify in recipe.modifications:
        modify(ax)


def _draw_quantile(
    ax: Axes,
    guide: QuantileGuide,
    plotted,
    max_time: float,
    rising: bool,
) -> None:
    line = {
        "linestyle": guide.linestyle, "color": guide.color,
        "linewidth": guide.linewidth, "gid": "quantile-guide",
    }
    if guide.x_value is not None:
        ax.axvline(guide.x_value, **line)
        return

    # Horizontal guide from 0 to the last curve reaching the level;
    # a curve that never reaches it extends the guide to the last time
    crossings = []
    for curve, y, _, _, _ in plotted:
        hit = y >= guide.y_value if rising else y <= guide.y_value
        crossings.append(curve.time[hit][0] if hit.any() else max_time)
    end = max(crossings) if crossings else max_time
    ax.plot([0.0, end], [guide.y_value, guide.y_value], **line)


def _draw_pvalue(ax: Axes, pvalue: PValue, p: float) -> None:
    text = format_template(pvalue.template, {"p.value": format_pvalue(p, pvalue.digits)})
    size = pvalue.size if pvalue.size is not None else mpl.rcParams["font.size"]
    if pvalue.location == "annotation":
        ax.text(pvalue.x, pvalue.y, text, fontsize=size, gid="pvalue")
        return
    ax.annotate(
        text, xy=(1.0, 0.0), xycoords="axes fraction",
        xytext=(0, -3.2 * size), textcoords="offset points",
        ha="right", va="top", fontsize=size, annotation_clip=False,
        gid="pvalue",
    )


def _apply_scales(ax: Axes, x_scale: ScaleSpec, y_scale: ScaleSpec) -> None:
    if x_scale.transform != "identity":
        ax.set_xscale(x_scale.transform)

    for scale, set_lim, set_ticks, axis in (
        (x_scale, ax.set_xlim, ax.set_xticks, ax.xaxis),
        (y_scale, ax.set_ylim, ax.set_yticks, ax.yaxis),
    ):
        if scale.limits is not None:
            set_lim(*scale.limits)
        if scale.breaks is not None:
            set_ticks(list(scale.breaks), labels=scale.labels)
        if scale.percent:
            axis.set_major_formatter(PercentFormatter(xmax=1.0, decimals=0))


def _draw_legend(ax: Axes, position: str, kind: str, n_curves: int) -> None:
    if position == "none":
        return
    if position == "inside":
        ax.legend(loc="upper right" if kind == "survival" else "upper left")
    elif position == "right":
        ax.legend(loc="center left", bbox_to_anchor=(1.02, 0.5), frameon=False)
    elif position == "top":
        ax.legend(
            loc="lower center", bbox_to_anchor=(0.5, 1.02),
            ncol=n_curves, frameon=False,
        )
    else:
        ax.legend(
            loc="upper center", bbox_to_anchor=(0.5, -0.2),
            ncol=n_curves, frameon=False,
        )
