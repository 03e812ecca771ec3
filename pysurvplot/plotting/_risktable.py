"""
Risk table resolution and drawing.

Resolution looks up right-continuous step values on the curve model at
the table times and formats them through each row template. Drawing puts
the formatted cells onto axes that share the primary panel's x axis.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from matplotlib.axes import Axes
from numpy.typing import NDArray

from pysurvplot.plotting._common import RiskTableSpec, format_template, template_keys
from pysurvplot.survival._common import COUNT_KEYS

if TYPE_CHECKING:
    from pysurvplot.plotting._render import AestheticMap
    from pysurvplot.survival.solution import CurveModel


# Keys that do not depend on the competing-risk outcome
SHARED_KEYS = frozenset({"time", "n.risk", "n.censor", "cum.censor"})

LINE_HEIGHT = 0.07


@dataclass(frozen=True)
class RiskTableRow:
    """One table row: a stratum (and outcome) under one template."""
    strata: str
    outcome: str | None
    statistic: str               # template, e.g. "{n.risk}"
    label: str                   # display label of the template
    values: dict[str, NDArray]   # raw looked-up values by key
    cells: tuple[str, ...]

    @property
    def name(self) -> str:
        if self.outcome is None:
            return self.strata
        return f"{self.strata}, {self.outcome}"


@dataclass(frozen=True)
class RiskTableData:
    """A resolved risk table."""
    times: NDArray
    rows: tuple[RiskTableRow, ...]
    group: str

    def row(
        self,
        strata: str,
        statistic: str | None = None,
        outcome: str | None = None,
    ) -> RiskTableRow:
        """Find a row by stratum, and by template or bare key.

        ``statistic`` may be a template (``"{n.risk}"``) or a key
        (``"n.risk"``); it may be omitted when the table has one template.
        """
        if statistic is not None and "{" not in statistic:
            statistic = "{" + statistic + "}"
        for r in self.rows:
            if r.strata != strata:
                continue
            if statistic is not None and r.statistic != statistic:
                continue
            if outcome is not None and r.outcome != outcome:
                continue
            return r
        raise KeyError(
            f"No risk table row for strata={strata!r}, statistic={statistic!r}"
        )

    def blocks(self) -> list[tuple[str, list[RiskTableRow]]]:
        """Rows grouped into titled blocks, in display order.

        Statistic grouping titles blocks by template label; strata
        grouping titles them by stratum.
        """
        blocks: dict[str, list[RiskTableRow]] = {}
        for r in self.rows:
            title = r.label if self.group == "statistic" else r.name
            blocks.setdefault(title, []).append(r)
        return list(blocks.items())

    @property
    def n_lines(self) -> int:
        return len(self.blocks()) + len(self.rows)


def resolve_risk_table(
    model: CurveModel,
    spec: RiskTableSpec,
    times: NDArray,
) -> RiskTableData:
    """Look up and format every row of a risk table at ``times``.

    Parameters
    ----------
    model : CurveModel
    spec : RiskTableSpec
    times : NDArray
        Table times, already chosen (explicit or resolved x breaks).

    Returns
    -------
    RiskTableData
    """
    times = np.asarray(times, dtype=np.float64)

    per_stratum = []
    for strata in model.strata:
        curves = [c for c in model.curves if c.strata == strata]
        for template, label in zip(spec.stats, spec.labels):
            keys = template_keys(template)
            # One row per outcome only when the template needs it
            if all(k in SHARED_KEYS for k in keys):
                targets = curves[:1]
            else:
                targets = curves
            for curve in targets:
                values = {k: curve.step_lookup(times, k) for k in keys}
                cells = tuple(
                    format_template(template, _cell_values(values, i))
                    for i in range(len(times))
                )
                outcome = curve.outcome if len(targets) > 1 else None
                per_stratum.append(RiskTableRow(
                    strata=strata,
                    outcome=outcome,
                    statistic=template,
                    label=label,
                    values=values,
                    cells=cells,
                ))

    if spec.group == "statistic":
        order = {t: i for i, t in enumerate(spec.stats)}
        rows = sorted(per_stratum, key=lambda r: order[r.statistic])
    else:
        rows = per_stratum

    return RiskTableData(times=times, rows=tuple(rows), group=spec.group)


def _cell_values(values: dict[str, NDArray], i: int) -> dict:
    cell = {}
    for key, column in values.items():
        value = column[i]
        cell[key] = int(round(value)) if key in COUNT_KEYS else float(value)
    return cell


def draw_risk_table(
    ax: Axes,
    data: RiskTableData,
    spec: RiskTableSpec,
    aesthetics: AestheticMap,
    size: float,
) -> None:
    """Draw a resolved table onto axes sharing the primary x axis.

    One line per block title and per row; cells sit at their table time
    in data coordinates, so they follow the shared x limits.
    """
    tick_labels = []
    y = 0
    for title, rows in data.blocks():
        tick_labels.append(_header(title, rows[0], spec, aesthetics, bold=True, data=data))
        y += 1
        for r in rows:
            tick_labels.append(_header(None, r, spec, aesthetics, bold=False, data=data))
            for t, cell in zip(data.times, r.cells):
                ax.text(
                    t, y, cell, ha="center", va="center", fontsize=size,
                    gid="risk-table-cell",
                )
            y += 1

    ax.set_ylim(y - 0.5, -0.5)
    ax.set_yticks(range(y))
    texts = ax.set_yticklabels([text for text, _, _ in tick_labels])
    for label, (_, color, bold) in zip(texts, tick_labels):
        if color is not None:
            label.set_color(color)
        if bold:
            label.set_fontweight("bold")
        label.set_fontsize(size)

    ax.tick_params(axis="y", length=0)
    ax.tick_params(axis="x", length=0, labelbottom=False)
    for spine in ax.spines.values():
        spine.set_visible(False)
    ax.grid(axis="x", color="0.9", linewidth=0.6)
    ax.set_gid("risk-table")


def _header(title, row, spec, aesthetics, *, bold, data):
    """(text, color, bold) for a block title or a row header."""
    names_stratum = (
        (bold and data.group == "strata") or (not bold and data.group == "statistic")
    )
    if not names_stratum:
        return (title if bold else row.label), None, bold

    symbol = spec.symbol_for(row.strata)
    color = aesthetics.strata_color(row.strata) if symbol is not None else None
    if symbol is None:
        return row.name, None, bold
    if row.outcome is not None:
        return f"{symbol} {row.outcome}", color, bold
    return symbol, color, bold
