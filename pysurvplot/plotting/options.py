"""
Process-level plotting defaults.

The registry holds one frozen PlotOptions value. It is read exactly once,
at the outermost entry point (PlotAssembly.build / render), and the
resulting values are threaded explicitly through rendering; nothing below
the entry point reads it.

The registry is process-wide and not thread-local. Set it before a
plotting session and reset it afterwards; concurrent sessions must not
overlap their set/reset windows.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Any, Iterator

from pysurvplot.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class PlotOptions:
    """Defaults for figure construction.

    Attributes:
        switch_color_linetype: Map strata to line type and outcomes to
            color, instead of strata to color and outcomes to line type.
        figsize: Primary panel size in inches (width, height).
        dpi: Figure resolution.
    """
    switch_color_linetype: bool = False
    figsize: tuple[float, float] = (6.4, 4.8)
    dpi: float = 100.0


DEFAULT_OPTIONS = PlotOptions()

_current = DEFAULT_OPTIONS


def _check_name(name: str) -> None:
    known = [f.name for f in fields(PlotOptions)]
    if name not in known:
        raise ConfigurationError(
            f"Unknown option '{name}'. Available: {known}", option=name,
        )


def get_options() -> PlotOptions:
    """The current option values."""
    return _current


def get_option(name: str) -> Any:
    _check_name(name)
    return getattr(_current, name)


def set_option(name: str, value: Any) -> None:
    """Set one option for the rest of the session."""
    global _current
    _check_name(name)
    _current = replace(_current, **{name: value})


def reset_option(name: str | None = None) -> None:
    """Restore one option (or all, with no name) to its default."""
    global _current
    if name is None:
        _current = DEFAULT_OPTIONS
        return
    _check_name(name)
    _current = replace(_current, **{name: getattr(DEFAULT_OPTIONS, name)})


@contextmanager
def option_context(**overrides: Any) -> Iterator[PlotOptions]:
    """Set options for the duration of a ``with`` block.

    Usage:
        with option_context(switch_color_linetype=True):
            figure = assembly.build()
    """
    global _current
    for name in overrides:
        _check_name(name)
    saved = _current
    _current = replace(_current, **overrides)
    try:
        yield _current
    finally:
        _current = saved
