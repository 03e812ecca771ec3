"""
Solution wrappers for survival estimation results.

Each Solution wraps a Result[Params] and exposes user-friendly properties
with R-style summary() methods. CurveModel is the contract the plotting
layer consumes.
"""

from __future__ import annotations

from typing import Iterator

import numpy as np
from numpy.typing import NDArray

from pysurvplot.core.exceptions import ConfigurationError
from pysurvplot.core.result import Result
from pysurvplot.survival._common import (
    RECORD_KEYS,
    CoxParams,
    CurveParams,
    LogRankParams,
    StratumCurve,
)


class CurveModel:
    """Immutable set of estimated survival or incidence curves.

    Produced by survfit() and cuminc(); consumed by plot_curves().
    Properties mirror a tidied R survfit object.
    """

    __slots__ = ('_result',)

    def __init__(self, _result: Result[CurveParams]) -> None:
        self._result = _result

    @classmethod
    def from_curves(
        cls,
        curves,
        *,
        kind: str = "survival",
        conf_level: float = 0.95,
        conf_type: str = "log",
        comparison: LogRankParams | None = None,
    ) -> CurveModel:
        """Wrap curves computed elsewhere (another estimator, a paper).

        Parameters
        ----------
        curves : iterable of StratumCurve
        kind : str
            "survival" or "incidence".
        """
        curves = tuple(curves)
        if len(curves) == 0:
            raise ValueError("curves must contain at least one StratumCurve")
        if kind not in ("survival", "incidence"):
            raise ValueError(
                f"kind must be 'survival' or 'incidence', got '{kind}'"
            )
        params = CurveParams(
            curves=curves,
            kind=kind,
            conf_level=conf_level,
            conf_type=conf_type,
            n_observations=int(sum(c.n_risk[0] for c in curves)),
            n_events_total=int(sum(np.sum(c.n_event) for c in curves)),
            comparison=comparison,
        )
        result = Result(
            params=params,
            info={"method": "external"},
            timing=None,
            backend_name="external",
        )
        return cls(_result=result)

    # -- Properties delegating to CurveParams --

    @property
    def curves(self) -> tuple[StratumCurve, ...]:
        return self._result.params.curves

    @property
    def kind(self) -> str:
        """"survival" (falls from 1) or "incidence" (rises from 0)."""
        return self._result.params.kind

    @property
    def conf_level(self) -> float:
        return self._result.params.conf_level

    @property
    def conf_type(self) -> str:
        return self._result.params.conf_type

    @property
    def n_observations(self) -> int:
        return self._result.params.n_observations

    @property
    def n_events_total(self) -> int:
        return self._result.params.n_events_total

    @property
    def comparison(self) -> LogRankParams | None:
        """Log-rank comparison across strata, when one was computed."""
        return self._result.params.comparison

    @property
    def p_value(self) -> float | None:
        comparison = self.comparison
        return None if comparison is None else comparison.p_value

    @property
    def strata(self) -> list[str]:
        """Strata labels in curve order."""
        return list(dict.fromkeys(c.strata for c in self.curves))

    @property
    def outcomes(self) -> list[str]:
        """Competing-risk outcome labels; empty for survival curves."""
        return list(dict.fromkeys(
            c.outcome for c in self.curves if c.outcome is not None
        ))

    @property
    def available_keys(self) -> frozenset[str]:
        return frozenset(RECORD_KEYS)

    @property
    def info(self) -> dict:
        return self._result.info

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    @property
    def max_time(self) -> float:
        return float(max(c.time[-1] for c in self.curves))

    # -- Record access --

    def curve(self, strata: str, outcome: str | None = None) -> StratumCurve:
        """The curve of one stratum (and outcome, for competing risks)."""
        for c in self.curves:
            if c.strata == strata and (outcome is None or c.outcome == outcome):
                return c
        raise KeyError(
            f"No curve for strata={strata!r}, outcome={outcome!r}. "
            f"Strata: {self.strata}, outcomes: {self.outcomes}"
        )

    def records(
        self,
        strata: str | None = None,
        outcome: str | None = None,
    ) -> Iterator[dict]:
        """Lazily yield one record dict per curve and time.

        Keys are the record keys (``"time"``, ``"n.risk"``, ...) plus
        ``"strata"`` and ``"outcome"``.
        """
        for c in self.curves:
            if strata is not None and c.strata != strata:
                continue
            if outcome is not None and c.outcome != outcome:
                continue
            columns = {key: c.column(key) for key in RECORD_KEYS}
            for i in range(len(c.time)):
                record = {key: values[i].item() for key, values in columns.items()}
                record["strata"] = c.strata
                record["outcome"] = c.outcome
                yield record

    def lookup(
        self,
        times,
        key: str,
        strata: str,
        outcome: str | None = None,
    ) -> NDArray:
        """Right-continuous step value of ``key`` at each query time.

        Raises
        ------
        ConfigurationError
            If ``key`` is not a record key or a time is negative.
        """
        if key not in RECORD_KEYS:
            raise ConfigurationError(
                f"'{key}' is not available on the curve model. "
                f"Available: {sorted(RECORD_KEYS)}",
                option=key,
            )
        times = np.atleast_1d(np.asarray(times, dtype=np.float64))
        if np.any(times < 0):
            raise ConfigurationError(
                f"lookup times must be non-negative, got {times[times < 0]}"
            )
        return self.curve(strata, outcome).step_lookup(times, key)

    def median_survival(self) -> dict[str, float | None]:
        """Smallest time with S(t) <= 0.5 (F(t) >= 0.5 for incidence), per curve."""
        medians = {}
        for c in self.curves:
            hit = c.estimate <= 0.5 if self.kind == "survival" else c.estimate >= 0.5
            medians[c.label] = float(c.time[hit][0]) if hit.any() else None
        return medians

    def summary(self) -> str:
        """R-style summary of the curves."""
        lines = []
        lines.append(f"Call: {self.info.get('method', 'curves')}")
        lines.append("")
        lines.append(
            f"  n={self.n_observations}, "
            f"events={self.n_events_total}"
        )
        lines.append("")

        ci_pct = int(self.conf_level * 100)
        medians = self.median_survival()
        for c in self.curves:
            median = medians[c.label]
            median_str = f"{median:.4g}" if median is not None else "NA"
            lines.append(f"  {c.label}: median = {median_str}")
            lines.append(
                f"  {'time':>8s}  {'n.risk':>8s}  {'n.event':>8s}  "
                f"{'estimate':>10s}  {'std.err':>10s}  "
                f"{f'lower {ci_pct}%':>10s}  {f'upper {ci_pct}%':>10s}"
            )
            m = len(c.time)
            show = min(m, 20)
            for i in range(show):
                lines.append(
                    f"  {c.time[i]:8.4g}  {c.n_risk[i]:8.0f}  "
                    f"{c.n_event[i]:8.0f}  "
                    f"{c.estimate[i]:10.6f}  {c.std_error[i]:10.6f}  "
                    f"{c.conf_low[i]:10.6f}  {c.conf_high[i]:10.6f}"
                )
            if m > 20:
                lines.append(f"  ... ({m - 20} more rows)")
            lines.append("")

        if self.comparison is not None:
            lines.append(
                f"  Log-rank Chisq= {self.comparison.statistic:.4f} on "
                f"{self.comparison.df} degrees of freedom, "
                f"p= {self.comparison.p_value:.4g}"
            )

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CurveModel(kind={self.kind!r}, curves={len(self.curves)}, "
            f"n={self.n_observations}, events={self.n_events_total})"
        )


class LogRankSolution:
    """Log-rank test solution.

    Properties mirror R's survdiff() output.
    """

    __slots__ = ('_result',)

    def __init__(self, _result: Result[LogRankParams]) -> None:
        self._result = _result

    @property
    def params(self) -> LogRankParams:
        return self._result.params

    @property
    def statistic(self) -> float:
        return self._result.params.statistic

    @property
    def df(self) -> int:
        return self._result.params.df

    @property
    def p_value(self) -> float:
        return self._result.params.p_value

    @property
    def n_groups(self) -> int:
        return self._result.params.n_groups

    @property
    def observed(self):
        return self._result.params.observed

    @property
    def expected(self):
        return self._result.params.expected

    @property
    def n_per_group(self):
        return self._result.params.n_per_group

    @property
    def rho(self) -> float:
        return self._result.params.rho

    @property
    def group_labels(self):
        return self._result.params.group_labels

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    def summary(self) -> str:
        """R-style summary of log-rank test."""
        lines = []
        lines.append("Call: survdiff()")
        lines.append("")

        lines.append(f"  {'':>12s}  {'N':>6s}  {'Observed':>10s}  {'Expected':>10s}  {'(O-E)^2/E':>10s}")
        for i in range(self.n_groups):
            oe = ((self.observed[i] - self.expected[i]) ** 2
                  / self.expected[i]) if self.expected[i] > 0 else 0
            label = str(self.group_labels[i])
            lines.append(
                f"  {label:>12s}  {self.n_per_group[i]:6.0f}  "
                f"{self.observed[i]:10.1f}  {self.expected[i]:10.1f}  "
                f"{oe:10.3f}"
            )

        lines.append("")
        lines.append(
            f"  Chisq= {self.statistic:.4f} on {self.df} degrees of freedom, "
            f"p= {self.p_value:.4g}"
        )

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"LogRankSolution(chisq={self.statistic:.4f}, "
            f"df={self.df}, p={self.p_value:.4g})"
        )


class CoxModel:
    """Fitted (stratified) Cox proportional hazards model.

    Pass it to survfit() for covariate-adjusted survival curves.
    """

    __slots__ = ('_result',)

    def __init__(self, _result: Result[CoxParams]) -> None:
        self._result = _result

    @property
    def params(self) -> CoxParams:
        return self._result.params

    @property
    def coefficients(self):
        return self._result.params.coefficients

    @property
    def hazard_ratios(self):
        return self._result.params.hazard_ratios

    @property
    def standard_errors(self):
        return self._result.params.standard_errors

    @property
    def p_values(self):
        return self._result.params.p_values

    @property
    def loglik(self):
        return self._result.params.loglik

    @property
    def n_events(self) -> int:
        return self._result.params.n_events

    @property
    def n_observations(self) -> int:
        return self._result.params.n_observations

    @property
    def n_iter(self) -> int:
        return self._result.params.n_iter

    @property
    def ties(self) -> str:
        return self._result.params.ties

    @property
    def strata(self) -> list[str]:
        return [b.strata for b in self._result.params.baseline]

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    def summary(self) -> str:
        """R-style summary of Cox PH fit."""
        lines = []
        lines.append("Call: coxph()")
        lines.append("")
        lines.append(
            f"  n= {self.n_observations}, "
            f"number of events= {self.n_events}"
        )
        lines.append("")

        lines.append(
            f"  {'':>10s}  {'coef':>10s}  {'exp(coef)':>10s}  "
            f"{'se(coef)':>10s}  {'Pr(>|z|)':>12s}"
        )
        for i, coef in enumerate(self.coefficients):
            lines.append(
                f"  {f'x{i}':>10s}  {coef:10.6f}  "
                f"{self.hazard_ratios[i]:10.6f}  "
                f"{self.standard_errors[i]:10.6f}  "
                f"{self.p_values[i]:12.4g}"
            )

        lines.append("")
        lr_stat = 2 * (self.loglik[1] - self.loglik[0])
        lines.append(
            f"  Likelihood ratio test= {lr_stat:.4f} on {len(self.coefficients)} df"
        )
        if len(self.strata) > 1:
            lines.append(f"  Strata: {', '.join(self.strata)}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CoxModel(n={self.n_observations}, "
            f"events={self.n_events}, strata={len(self.strata)})"
        )
