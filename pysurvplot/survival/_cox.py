"""
Stratified Cox proportional hazards model via Newton-Raphson.

Implements Efron's and Breslow's methods for tied event times, matching
R's survival::coxph(Surv(time, event) ~ x + strata(s)). Each stratum has
its own risk sets and baseline hazard; coefficients are shared.

Algorithm:
    Initialize β = 0
    For iteration 1..max_iter:
        Sum over strata: partial log-likelihood L(β), score U(β),
        information I(β)
        β_new = β + I(β)^{-1} @ U(β)
        Check convergence: max|β_new - β| < tol

After fitting, the Breslow baseline cumulative hazard of every stratum is
evaluated at the covariate means:

    H0(t) = Σ_{t_j <= t} d_j / Σ_{l ∈ R_j} exp((x_l - x̄) @ β)

References:
    Cox, D. R. (1972). Regression models and life-tables. JRSS-B, 34(2), 187-220.
    Efron, B. (1977). The efficiency of Cox's likelihood function for
        censored data. JASA, 72(359), 557-565.
    Breslow, N. E. (1972). Discussion of Professor Cox's paper. JRSS-B, 34, 216-217.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pysurvplot.core.exceptions import EstimationError
from pysurvplot.survival._common import BaselineHazard, CoxParams
from pysurvplot.survival._km import risk_set_counts


def cox_fit(
    time: NDArray,
    event: NDArray,
    X: NDArray,
    strata: NDArray,
    ties: str = "efron",
    tol: float = 1e-9,
    max_iter: int = 20,
) -> CoxParams:
    """Fit a (stratified) Cox proportional hazards model.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    X : NDArray
        (n, p) covariate matrix (NO intercept).
    strata : NDArray
        (n,) stratum labels; a constant array fits an unstratified model.
    ties : str
        Method for handling tied event times: "efron" (default) or "breslow".
    tol : float
        Convergence tolerance (max absolute change in β).
    max_iter : int
        Maximum Newton-Raphson iterations.

    Returns
    -------
    CoxParams

    Raises
    ------
    EstimationError
        If there are no events, the information matrix is singular, or the
        iterations do not converge.
    """
    n, p = X.shape
    n_events_total = int(np.sum(event))

    if n_events_total == 0:
        raise EstimationError(
            "Cox model has no events to fit", iterations=0, reason="no_events",
        )

    means = X.mean(axis=0)
    Xc = X - means
    groups = _stratum_groups(time, event, Xc, strata)

    beta = np.zeros(p, dtype=np.float64)
    null_loglik, _, _ = _score_and_information(beta, groups, ties)

    converged = False
    n_iter = 0
    loglik_old = null_loglik

    for iteration in range(1, max_iter + 1):
        n_iter = iteration
        loglik, score, info_matrix = _score_and_information(beta, groups, ties)

        try:
            step = np.linalg.solve(info_matrix, score)
        except np.linalg.LinAlgError as e:
            raise EstimationError(
                "Cox information matrix is singular; covariates may be "
                "collinear or constant within strata",
                iterations=iteration,
                reason="singular",
            ) from e

        # Limit step size so exp(X @ beta) doesn't overflow
        max_step = np.max(np.abs(step))
        if max_step > 5.0:
            step = step * (5.0 / max_step)

        beta_new = beta + step
        loglik_new, _, _ = _score_and_information(beta_new, groups, ties)

        if np.max(np.abs(beta_new - beta)) < tol:
            beta = beta_new
            converged = True
            break

        if iteration > 1 and abs(loglik_new - loglik_old) / (abs(loglik_old) + 0.1) < tol:
            beta = beta_new
            converged = True
            break

        beta = beta_new
        loglik_old = loglik_new

    if not converged:
        raise EstimationError(
            f"Newton-Raphson did not converge in {max_iter} iterations",
            iterations=n_iter,
            reason="max_iterations",
        )

    model_loglik, _, info_final = _score_and_information(beta, groups, ties)

    try:
        var_matrix = np.linalg.inv(info_final)
        se = np.sqrt(np.maximum(np.diag(var_matrix), 0.0))
    except np.linalg.LinAlgError:
        se = np.full(p, np.inf)

    z = np.where(se > 0, beta / se, 0.0)
    p_values = 2.0 * stats.norm.sf(np.abs(z))

    baseline = tuple(
        _breslow_baseline(label, t, e, x_c, beta)
        for label, (t, e, x_c, _) in groups.items()
    )

    return CoxParams(
        coefficients=beta,
        hazard_ratios=np.exp(beta),
        standard_errors=se,
        z_statistics=z,
        p_values=p_values,
        loglik=(null_loglik, model_loglik),
        n_events=n_events_total,
        n_observations=n,
        n_iter=n_iter,
        converged=converged,
        ties=ties,
        means=means,
        baseline=baseline,
    )


def _stratum_groups(
    time: NDArray,
    event: NDArray,
    Xc: NDArray,
    strata: NDArray,
) -> dict[str, tuple[NDArray, NDArray, NDArray, NDArray]]:
    """Split the data by stratum: (time, event, centered X, event times)."""
    groups = {}
    for label in np.unique(strata):
        mask = strata == label
        t, e = time[mask], event[mask]
        groups[str(label)] = (t, e, Xc[mask], np.unique(t[e == 1]))
    return groups


def _score_and_information(
    beta: NDArray,
    groups: dict[str, tuple[NDArray, NDArray, NDArray, NDArray]],
    ties: str,
) -> tuple[float, NDArray, NDArray]:
    """Log-likelihood, score and observed information, summed over strata.

    Returns
    -------
    (loglik, score, info_matrix)
        loglik : float
        score : (p,) gradient of log-likelihood
        info_matrix : (p, p) negative Hessian (observed information)
    """
    p = len(beta)
    loglik = 0.0
    score = np.zeros(p, dtype=np.float64)
    info_matrix = np.zeros((p, p), dtype=np.float64)

    for time, event, X, event_times in groups.values():
        eta = X @ beta
        # Shift cancels within a stratum's partial likelihood
        eta_c = eta - np.max(eta)
        exp_eta = np.exp(eta_c)

        for t_j in event_times:
            risk_mask = time >= t_j
            risk_exp = exp_eta[risk_mask]
            risk_X = X[risk_mask]

            S0 = np.sum(risk_exp)
            S1 = risk_X.T @ risk_exp
            S2 = (risk_X * risk_exp[:, np.newaxis]).T @ risk_X

            event_at_tj = (time == t_j) & (event == 1)
            d_j = int(np.sum(event_at_tj))

            event_X = X[event_at_tj]
            event_exp = exp_eta[event_at_tj]

            loglik += np.sum(eta_c[event_at_tj])
            score += np.sum(event_X, axis=0)

            if ties == "breslow" or d_j == 1:
                loglik -= d_j * np.log(S0)
                score -= d_j * S1 / S0
                info_matrix += d_j * (S2 / S0 - np.outer(S1, S1) / S0**2)
                continue

            death_S0 = np.sum(event_exp)
            death_S1 = event_X.T @ event_exp
            death_S2 = (event_X * event_exp[:, np.newaxis]).T @ event_X

            for s in range(d_j):
                frac = s / d_j
                denom = S0 - frac * death_S0
                if denom <= 0:
                    continue
                mean = (S1 - frac * death_S1) / denom
                loglik -= np.log(denom)
                score -= mean
                info_matrix += (S2 - frac * death_S2) / denom - np.outer(mean, mean)

    return loglik, score, info_matrix


def _breslow_baseline(
    label: str,
    time: NDArray,
    event: NDArray,
    Xc: NDArray,
    beta: NDArray,
) -> BaselineHazard:
    """Breslow baseline cumulative hazard of one stratum at the means."""
    exp_eta = np.exp(Xc @ beta)
    times, n_risk, n_event, n_censor = risk_set_counts(time, event)

    order = np.argsort(time)
    t_sorted = time[order]
    # Σ exp(eta) over {l : time_l >= t_j}
    tail_sums = np.cumsum(exp_eta[order][::-1])[::-1]
    first = np.searchsorted(t_sorted, times, side="left")
    S0 = tail_sums[first]

    cumhaz = np.cumsum(n_event / S0)
    var_cumhaz = np.cumsum(n_event / S0 ** 2)

    return BaselineHazard(
        strata=label,
        time=times,
        cumhaz=cumhaz,
        var_cumhaz=var_cumhaz,
        n_risk=n_risk,
        n_event=n_event,
        n_censor=n_censor,
    )
