"""
Frozen recipe values for the plotting layer.

Every request a PlotAssembly records (overlays, scale slots, risk tables)
is one of these immutable dataclasses, so recipes can be shared and
rebuilt freely.
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Any

from pysurvplot.core.exceptions import ConfigurationError


# -- Overlays ----------------------------------------------------------------


@dataclass(frozen=True)
class ConfidenceInterval:
    """Step ribbon between conf.low and conf.high."""
    alpha: float = 0.2
    name: str = "confidence_interval"


@dataclass(frozen=True)
class CensorMark:
    """Marker on the curve at every time with censoring."""
    marker: str = "+"
    size: float = 6.0
    name: str = "censor_mark"


@dataclass(frozen=True)
class QuantileGuide:
    """One guide line: horizontal at ``y_value`` or vertical at ``x_value``."""
    y_value: float | None = None
    x_value: float | None = None
    linestyle: str = "--"
    color: str = "0.4"
    linewidth: float = 0.8
    name: str = "quantile"

    def __post_init__(self) -> None:
        if (self.y_value is None) == (self.x_value is None):
            raise ConfigurationError(
                "quantile guide needs exactly one of y_value or x_value, got "
                f"y_value={self.y_value}, x_value={self.x_value}",
                option="quantile",
            )


@dataclass(frozen=True)
class PValue:
    """Group-comparison P value, as a caption or at (x, y) in the panel."""
    location: str = "caption"
    x: float | None = None
    y: float | None = None
    template: str = "Log-rank {p.value}"
    digits: int = 3
    size: float | None = None
    name: str = "pvalue"

    def __post_init__(self) -> None:
        if self.location not in ("caption", "annotation"):
            raise ConfigurationError(
                f"pvalue location must be 'caption' or 'annotation', "
                f"got '{self.location}'",
                option="location",
            )
        if self.location == "annotation" and (self.x is None or self.y is None):
            raise ConfigurationError(
                "an annotation P value needs both x and y coordinates",
                option="location",
            )


Overlay = ConfidenceInterval | CensorMark | QuantileGuide | PValue

OVERLAY_NAMES = frozenset({"confidence_interval", "censor_mark", "quantile", "pvalue"})


# -- Scales ------------------------------------------------------------------

# Estimate transforms; each is decreasing in S, so bounds swap
Y_TRANSFORMS = ("identity", "risk", "cumhaz", "cloglog")
X_TRANSFORMS = ("identity", "log", "symlog")
PROBABILITY_TRANSFORMS = ("identity", "risk")


@dataclass(frozen=True)
class ScaleSpec:
    """Everything one axis scale defines.

    A PlotAssembly holds one slot per axis; configuring the same axis again
    replaces the whole spec, breaks and limits included.
    """
    axis: str
    limits: tuple[float, float] | None = None
    breaks: tuple[float, ...] | None = None
    labels: tuple[str, ...] | None = None
    percent: bool = False
    transform: str = "identity"

    def __post_init__(self) -> None:
        allowed = Y_TRANSFORMS if self.axis == "y" else X_TRANSFORMS
        if self.transform not in allowed:
            raise ConfigurationError(
                f"{self.axis} transform must be one of {allowed}, "
                f"got '{self.transform}'",
                option="transform",
            )
        if self.percent and self.transform not in PROBABILITY_TRANSFORMS:
            raise ConfigurationError(
                f"percent labels need a probability scale; the "
                f"'{self.transform}' transform is not one",
                option="percent",
            )
        if self.labels is not None:
            if self.breaks is None:
                raise ConfigurationError(
                    f"{self.axis} labels need explicit breaks", option="labels",
                )
            if len(self.labels) != len(self.breaks):
                raise ConfigurationError(
                    f"{self.axis} scale has {len(self.breaks)} breaks but "
                    f"{len(self.labels)} labels",
                    option="labels",
                )
        if self.limits is not None and len(self.limits) != 2:
            raise ConfigurationError(
                f"{self.axis} limits must be (low, high), got {self.limits}",
                option="limits",
            )


# -- Labels, facets, risk tables ---------------------------------------------


@dataclass(frozen=True)
class Labels:
    x: str | None = None
    y: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class FacetSpec:
    """One panel per stratum."""
    ncol: int | None = None


STAT_LABELS = {
    "{n.risk}": "At Risk",
    "{n.event}": "Events",
    "{cum.event}": "Events",
    "{n.censor}": "Censored",
    "{cum.censor}": "Censored",
}

RISKTABLE_GROUPS = ("statistic", "strata")


@dataclass(frozen=True)
class RiskTableSpec:
    """A requested risk table.

    Parameters
    ----------
    stats : tuple of str
        Row templates, e.g. ``"{n.risk}"`` or ``"{n.risk} ({cum.event})"``.
    labels : tuple of str
        Display label of each template.
    times : tuple of float or None
        Explicit times; None uses the primary panel's resolved x breaks.
    group : str
        "statistic" (a block per statistic, a row per stratum) or
        "strata" (a block per stratum, a row per statistic).
    symbol : str, dict or None
        Glyph shown instead of the stratum label, in the stratum's color.
        A dict maps stratum labels to glyphs; it is stored as a tuple of
        (stratum, glyph) pairs.
    height : float or None
        Panel height as a fraction of the primary panel height; None sizes
        the panel by its number of lines.
    size : float or None
        Font size of the cells.
    """
    stats: tuple[str, ...]
    labels: tuple[str, ...]
    times: tuple[float, ...] | None = None
    group: str = "statistic"
    symbol: str | tuple[tuple[str, str], ...] | None = None
    height: float | None = None
    size: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.symbol, dict):
            pairs = tuple((str(k), str(v)) for k, v in self.symbol.items())
            object.__setattr__(self, "symbol", pairs)

    @property
    def keys(self) -> list[str]:
        """Record keys referenced by the templates, in first-use order."""
        found: list[str] = []
        for template in self.stats:
            for key in template_keys(template):
                if key not in found:
                    found.append(key)
        return found

    def symbol_for(self, strata: str) -> str | None:
        if self.symbol is None:
            return None
        if isinstance(self.symbol, tuple):
            return dict(self.symbol).get(strata)
        return str(self.symbol)


# -- Templates ---------------------------------------------------------------


class RecordFormatter(string.Formatter):
    """str.format over record dicts whose keys contain dots (``{n.risk}``)."""

    def get_field(self, field_name, args, kwargs):
        try:
            return kwargs[field_name], field_name
        except KeyError:
            raise ConfigurationError(
                f"template field '{field_name}' is not available; "
                f"available: {sorted(kwargs)}",
                option=field_name,
            ) from None


_FORMATTER = RecordFormatter()


def template_keys(template: str) -> list[str]:
    """Field names referenced by a template."""
    try:
        parsed = list(_FORMATTER.parse(template))
    except ValueError as e:
        raise ConfigurationError(f"malformed template '{template}': {e}") from e
    return [field for _, field, _, _ in parsed if field]


def format_template(template: str, values: dict[str, Any]) -> str:
    return _FORMATTER.vformat(template, (), values)


def format_pvalue(p: float, digits: int = 3) -> str:
    """'p = 0.012', or 'p < 0.001' below the display resolution."""
    floor = 10.0 ** -digits
    if p < floor:
        return f"p < {floor:.{digits}f}"
    return f"p = {p:.{digits}f}"
