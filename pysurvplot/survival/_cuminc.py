"""
Aalen-Johansen cumulative incidence for competing risks.

For cause k at distinct time t_j, with n_j at risk, d_j events of any
cause and d_kj events of cause k:

    F_k(t) = Σ_{t_j <= t} S(t_{j-1}) * d_kj / n_j

where S is the all-cause Kaplan-Meier survival. Variance follows the
delta-method expression of Marubini & Valsecchi:

    Var(F_k(t)) = Σ [F_k(t) - F_k(t_j)]^2 * d_j / (n_j (n_j - d_j))
                + Σ S(t_{j-1})^2 * d_kj (n_j - d_kj) / n_j^3
                - 2 Σ [F_k(t) - F_k(t_j)] * S(t_{j-1}) * d_kj / n_j^2

Confidence bounds use the log(-log) transformation, as cmprsk does.

References:
    Aalen, O. O. & Johansen, S. (1978). An empirical transition matrix
        for non-homogeneous Markov chains. Scand. J. Statist., 5, 141-150.
    Marubini, E. & Valsecchi, M. G. (1995). Analysing Survival Data from
        Clinical Trials and Observational Studies. Wiley.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pysurvplot.survival._common import StratumCurve
from pysurvplot.survival._km import risk_set_counts


def cumulative_incidence_fit(
    time: NDArray,
    status: NDArray,
    strata: str,
    causes: NDArray,
    conf_level: float,
) -> list[StratumCurve]:
    """Cumulative incidence curves of one stratum, one per cause.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    status : NDArray
        (n,) 0 for censored, otherwise the cause code.
    strata : str
        Label of the stratum.
    causes : NDArray
        Cause codes to report (every stratum reports the same causes).
    conf_level : float
        Confidence level for CI.

    Returns
    -------
    list[StratumCurve]
        One curve per cause, anchored at time 0 with F=0.
    """
    n = len(time)
    any_event = (status > 0).astype(np.float64)
    times, n_risk, d_all, n_censor = risk_set_counts(time, any_event)

    surv = np.cumprod(1.0 - d_all / n_risk)
    surv_before = np.concatenate([[1.0], surv[:-1]])

    z = stats.norm.ppf((1.0 + conf_level) / 2.0)

    curves = []
    for cause in causes:
        d_k = np.array(
            [np.sum((time == t) & (status == cause)) for t in times],
            dtype=np.float64,
        )
        cif = np.cumsum(surv_before * d_k / n_risk)
        se = np.sqrt(_aalen_johansen_variance(cif, surv_before, n_risk, d_all, d_k))
        ci_lower, ci_upper = _loglog_ci(cif, se, z)

        curves.append(StratumCurve(
            strata=strata,
            time=np.concatenate([[0.0], times]),
            estimate=np.concatenate([[0.0], cif]),
            conf_low=np.concatenate([[0.0], ci_lower]),
            conf_high=np.concatenate([[0.0], ci_upper]),
            std_error=np.concatenate([[0.0], se]),
            n_risk=np.concatenate([[float(n)], n_risk]),
            n_event=np.concatenate([[0.0], d_k]),
            n_censor=np.concatenate([[0.0], n_censor]),
            outcome=_cause_label(cause),
        ))

    return curves


def _aalen_johansen_variance(
    cif: NDArray,
    surv_before: NDArray,
    n_risk: NDArray,
    d_all: NDArray,
    d_k: NDArray,
) -> NDArray:
    """Delta-method variance of F_k at every distinct time."""
    with np.errstate(divide='ignore', invalid='ignore'):
        all_cause = np.where(n_risk > d_all, d_all / (n_risk * (n_risk - d_all)), 0.0)
    cause_term = surv_before ** 2 * d_k * (n_risk - d_k) / n_risk ** 3
    cross_term = surv_before * d_k / n_risk ** 2

    var = np.zeros_like(cif)
    for i in range(len(cif)):
        diff = cif[i] - cif[: i + 1]
        var[i] = (
            np.sum(diff ** 2 * all_cause[: i + 1])
            + np.sum(cause_term[: i + 1])
            - 2.0 * np.sum(diff * cross_term[: i + 1])
        )
    return np.maximum(var, 0.0)


def _loglog_ci(cif: NDArray, se: NDArray, z: float) -> tuple[NDArray, NDArray]:
    """F^exp(±z se / (F log F)), clipped to [0, 1]."""
    with np.errstate(divide='ignore', invalid='ignore'):
        scale = z * se / (cif * np.log(cif))
        a = cif ** np.exp(scale)
        b = cif ** np.exp(-scale)
    ci_lower = np.clip(np.fmin(a, b), 0.0, 1.0)
    ci_upper = np.clip(np.fmax(a, b), 0.0, 1.0)
    # F=0 (or F=1) has no spread on this scale
    ci_lower = np.where(np.isnan(ci_lower), cif, ci_lower)
    ci_upper = np.where(np.isnan(ci_upper), cif, ci_upper)
    return ci_lower, ci_upper


def _cause_label(cause) -> str:
    """Integer-valued codes print without a trailing '.0'."""
    value = float(cause)
    if value.is_integer():
        return str(int(value))
    return str(cause)
