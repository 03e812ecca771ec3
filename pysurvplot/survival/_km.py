"""
Kaplan-Meier product-limit estimator.

Matches R's survival::survfit(Surv(time, event) ~ 1), one curve per
stratum, reporting every observed time (event or censoring):
- Product-limit survival estimate: S(t) = ∏(1 - d_j / n_j)
- Greenwood variance: Var(S(t)) = S(t)^2 * Σ(d_j / (n_j * (n_j - d_j)))
- Confidence intervals via log, plain, or log-log transformation

References:
    Kaplan, E. L., & Meier, P. (1958). Nonparametric estimation from
        incomplete observations. JASA, 53(282), 457-481.
    R Core Team. survival::survfit.formula
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pysurvplot.survival._common import StratumCurve


def risk_set_counts(
    time: NDArray,
    indicator: NDArray,
) -> tuple[NDArray, NDArray, NDArray, NDArray]:
    """Tabulate a sample on its distinct times.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    indicator : NDArray
        (n,) 1 where the observation is an event, 0 where censored.

    Returns
    -------
    (times, n_risk, n_event, n_censor)
        n_risk is the number still under observation just before each time.
    """
    times, inverse = np.unique(time, return_inverse=True)
    n_event = np.bincount(inverse, weights=indicator, minlength=len(times))
    n_exit = np.bincount(inverse, minlength=len(times)).astype(np.float64)
    n_censor = n_exit - n_event
    exited_before = np.concatenate([[0.0], np.cumsum(n_exit)[:-1]])
    n_risk = len(time) - exited_before
    return times, n_risk, n_event, n_censor


def kaplan_meier_fit(
    time: NDArray,
    event: NDArray,
    strata: str,
    conf_level: float,
    conf_type: str,
) -> StratumCurve:
    """Compute the Kaplan-Meier curve of one stratum.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    strata : str
        Label of the stratum.
    conf_level : float
        Confidence level for CI (e.g. 0.95).
    conf_type : str
        CI type: "log" (default, matches R), "plain", "log-log".

    Returns
    -------
    StratumCurve
        Anchored at time 0 with S=1 and every subject at risk.
    """
    n = len(time)
    times, n_risk, n_event, n_censor = risk_set_counts(time, event)

    survival = np.cumprod(1.0 - n_event / n_risk)

    # Greenwood; a step where every subject at risk fails adds nothing
    denom = n_risk * (n_risk - n_event)
    denom = np.where(denom > 0, denom, np.inf)
    greenwood_sum = np.cumsum(n_event / denom)
    se = survival * np.sqrt(greenwood_sum)

    z = stats.norm.ppf((1.0 + conf_level) / 2.0)
    ci_lower, ci_upper = compute_ci(survival, se, z, conf_type)

    return StratumCurve(
        strata=strata,
        time=np.concatenate([[0.0], times]),
        estimate=np.concatenate([[1.0], survival]),
        conf_low=np.concatenate([[1.0], ci_lower]),
        conf_high=np.concatenate([[1.0], ci_upper]),
        std_error=np.concatenate([[0.0], se]),
        n_risk=np.concatenate([[float(n)], n_risk]),
        n_event=np.concatenate([[0.0], n_event]),
        n_censor=np.concatenate([[0.0], n_censor]),
    )


def compute_ci(
    survival: NDArray,
    se: NDArray,
    z: float,
    conf_type: str,
) -> tuple[NDArray, NDArray]:
    """Compute CI for a survival function.

    Parameters
    ----------
    survival : S(t) values
    se : standard errors of S(t)
    z : normal quantile (e.g. 1.96 for 95%)
    conf_type : "log", "plain", or "log-log"

    Returns
    -------
    (ci_lower, ci_upper) clipped to [0, 1]
    """
    if conf_type == "plain":
        ci_lower = survival - z * se
        ci_upper = survival + z * se

    elif conf_type == "log":
        # exp(log(S) ± z * se / S), R's default
        with np.errstate(divide='ignore', invalid='ignore'):
            log_s = np.log(survival)
            se_log = se / survival
            ci_lower = np.exp(log_s - z * se_log)
            ci_upper = np.exp(log_s + z * se_log)

    elif conf_type == "log-log":
        # exp(-exp(log(-log(S)) ± z * se / (S * |log(S)|)))
        with np.errstate(divide='ignore', invalid='ignore'):
            log_s = np.log(survival)
            log_neg_log_s = np.log(-log_s)
            se_loglog = se / (survival * np.abs(log_s))
            ci_lower = np.exp(-np.exp(log_neg_log_s + z * se_loglog))
            ci_upper = np.exp(-np.exp(log_neg_log_s - z * se_loglog))
    else:
        raise ValueError(
            f"Unknown conf_type '{conf_type}'. "
            f"Choose from 'log', 'plain', 'log-log'."
        )

    ci_lower = np.clip(ci_lower, 0.0, 1.0)
    ci_upper = np.clip(ci_upper, 0.0, 1.0)

    # NaN comes from S=0 or S=1
    ci_lower = np.where(np.isnan(ci_lower), np.where(survival >= 1.0, 1.0, 0.0), ci_lower)
    ci_upper = np.where(np.isnan(ci_upper), np.where(survival <= 0.0, 0.0, 1.0), ci_upper)

    return ci_lower, ci_upper
