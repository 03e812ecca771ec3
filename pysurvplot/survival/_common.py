"""
Parameter payloads for survival estimation results.

Each dataclass is a frozen payload carried inside a Result[P] envelope.
StratumCurve is also the unit the plotting layer consumes.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pysurvplot.core.exceptions import ValidationError
from pysurvplot.core.validation import (
    check_1d,
    check_array,
    check_consistent_length,
    check_finite,
    check_nondecreasing,
)


# Record keys exposed to risk tables and templates, mapped to the
# StratumCurve column that carries them. cum.* keys are derived.
RECORD_KEYS: dict[str, str] = {
    "time": "time",
    "estimate": "estimate",
    "conf.low": "conf_low",
    "conf.high": "conf_high",
    "std.error": "std_error",
    "n.risk": "n_risk",
    "n.event": "n_event",
    "n.censor": "n_censor",
    "cum.event": "n_event",
    "cum.censor": "n_censor",
}

COUNT_KEYS = frozenset({"n.risk", "n.event", "n.censor", "cum.event", "cum.censor"})


@dataclass(frozen=True)
class StratumCurve:
    """One estimated curve: a stratum, and for competing risks an outcome.

    Records are aligned arrays, one element per observed time, starting
    with the time-0 anchor. ``n_risk`` is the number at risk just before
    each time; ``n_event`` and ``n_censor`` count what happened at it.
    """

    strata: str
    time: NDArray                # (m,) non-decreasing record times
    estimate: NDArray            # (m,) S(t) or F_k(t)
    conf_low: NDArray            # (m,)
    conf_high: NDArray           # (m,)
    std_error: NDArray           # (m,)
    n_risk: NDArray              # (m,)
    n_event: NDArray             # (m,)
    n_censor: NDArray            # (m,)
    outcome: str | None = None   # competing-risk cause; None for KM / Cox

    def __post_init__(self) -> None:
        names = (
            "time", "estimate", "conf_low", "conf_high",
            "std_error", "n_risk", "n_event", "n_censor",
        )
        arrays = []
        for name in names:
            arr = check_array(getattr(self, name), name)
            check_1d(arr, name)
            object.__setattr__(self, name, arr)
            arrays.append(arr)
        check_consistent_length(*arrays, names=names)
        for name in ("time", "n_risk", "n_event", "n_censor"):
            check_finite(getattr(self, name), name)
        if len(self.time) == 0:
            raise ValidationError(
                f"curve '{self.strata}' must have at least one record"
            )
        check_nondecreasing(self.time, "time")

    @classmethod
    def from_arrays(
        cls,
        strata,
        time,
        estimate,
        *,
        n_risk,
        n_event=None,
        n_censor=None,
        conf_low=None,
        conf_high=None,
        std_error=None,
        outcome=None,
    ) -> StratumCurve:
        """Build a curve from partial columns, filling the rest.

        Missing confidence bounds collapse onto the estimate, missing
        counts and standard errors are zero.
        """
        estimate = check_array(estimate, "estimate")
        zeros = np.zeros_like(estimate)
        return cls(
            strata=str(strata),
            time=time,
            estimate=estimate,
            conf_low=estimate if conf_low is None else conf_low,
            conf_high=estimate if conf_high is None else conf_high,
            std_error=zeros if std_error is None else std_error,
            n_risk=n_risk,
            n_event=zeros if n_event is None else n_event,
            n_censor=zeros if n_censor is None else n_censor,
            outcome=None if outcome is None else str(outcome),
        )

    @property
    def label(self) -> str:
        """Legend label: stratum, plus the outcome when present."""
        if self.outcome is None:
            return self.strata
        return f"{self.strata}, {self.outcome}"

    def column(self, key: str) -> NDArray:
        """Record column for a record key such as ``"n.risk"``."""
        if key not in RECORD_KEYS:
            raise KeyError(
                f"'{key}' is not a curve record key. "
                f"Available: {sorted(RECORD_KEYS)}"
            )
        values = getattr(self, RECORD_KEYS[key])
        if key.startswith("cum."):
            return np.cumsum(values)
        return values

    def step_lookup(self, times, key: str) -> NDArray:
        """Right-continuous step value of ``key`` at each query time.

        Returns the value of the most recent record at or before each
        time. Queries before the first record get the first record.
        """
        times = np.atleast_1d(np.asarray(times, dtype=np.float64))
        idx = np.searchsorted(self.time, times, side="right") - 1
        idx = np.clip(idx, 0, len(self.time) - 1)
        return self.column(key)[idx]


@dataclass(frozen=True)
class LogRankParams:
    """Log-rank test parameters.

    Matches the output of R's survival::survdiff().
    """

    statistic: float             # chi-squared statistic
    df: int                      # degrees of freedom (n_groups - 1)
    p_value: float
    n_groups: int
    observed: NDArray            # (n_groups,) observed events per group
    expected: NDArray            # (n_groups,) expected events per group
    n_per_group: NDArray         # (n_groups,) subjects per group
    rho: float                   # weight parameter (0=log-rank, 1=Peto-Peto)
    group_labels: NDArray        # unique group labels


@dataclass(frozen=True)
class CurveParams:
    """A set of estimated curves ready for plotting.

    ``kind`` is ``"survival"`` for curves falling from 1 (KM, adjusted Cox)
    and ``"incidence"`` for curves rising from 0 (cumulative incidence).
    """

    curves: tuple[StratumCurve, ...]
    kind: str                    # "survival" or "incidence"
    conf_level: float
    conf_type: str
    n_observations: int
    n_events_total: int
    comparison: LogRankParams | None = None


@dataclass(frozen=True)
class BaselineHazard:
    """Breslow baseline cumulative hazard for one Cox stratum.

    Evaluated at the covariate means, on every observed time of the
    stratum (censoring-only times carry a zero increment).
    """

    strata: str
    time: NDArray                # (m,)
    cumhaz: NDArray              # (m,) H0(t)
    var_cumhaz: NDArray          # (m,) Var(H0(t)), beta treated as known
    n_risk: NDArray              # (m,)
    n_event: NDArray             # (m,)
    n_censor: NDArray            # (m,)


@dataclass(frozen=True)
class CoxParams:
    """Cox proportional hazards model parameters.

    Matches the output of R's survival::coxph().
    """

    coefficients: NDArray        # (p,) log hazard ratios
    hazard_ratios: NDArray       # (p,) exp(coef)
    standard_errors: NDArray     # (p,) from observed information matrix
    z_statistics: NDArray        # (p,) coef / se
    p_values: NDArray            # (p,) two-sided Wald test
    loglik: tuple[float, float]  # (null log-lik, model log-lik)
    n_events: int
    n_observations: int
    n_iter: int                  # Newton-Raphson iterations
    converged: bool
    ties: str                    # "efron" or "breslow"
    means: NDArray               # (p,) covariate means (centering point)
    baseline: tuple[BaselineHazard, ...]
