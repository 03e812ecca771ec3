"""
Log-rank test (G-rho family) for comparing survival curves across groups.

Matches R's survival::survdiff(Surv(time, event) ~ group, rho=0):
- Standard log-rank test (rho=0)
- G-rho family (rho>0): Fleming-Harrington weighted variant
  When rho=1, gives the Peto & Peto modification of the Gehan-Wilcoxon test.

At each distinct event time t_j, with n_kj at risk and d_kj events in
group k, N_j and D_j pooled:
    E_kj = n_kj * D_j / N_j
    w_j  = S_hat(t_j-)^rho, the pooled KM estimate just before t_j
    V_kl = Σ_j w_j^2 * D_j (N_j - D_j) / (N_j^2 (N_j - 1))
                  * n_kj (δ_kl N_j - n_lj)

References:
    Harrington, D. P. & Fleming, T. R. (1982). A class of rank test
        procedures for censored survival data. Biometrika, 69(3), 553-566.
    R Core Team. survival::survdiff
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pysurvplot.survival._common import LogRankParams


def logrank_test(
    time: NDArray,
    event: NDArray,
    group: NDArray,
    rho: float = 0.0,
) -> LogRankParams:
    """Compute log-rank test (G-rho family).

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    group : NDArray
        (n,) group labels.
    rho : float
        G-rho weight parameter: rho=0 is standard log-rank,
        rho=1 is Peto & Peto / Gehan-Wilcoxon.

    Returns
    -------
    LogRankParams
    """
    unique_groups, group_idx = np.unique(group, return_inverse=True)
    n_groups = len(unique_groups)

    if n_groups < 2:
        raise ValueError(
            f"Need at least 2 groups for log-rank test, got {n_groups}"
        )

    n_per_group = np.bincount(group_idx, minlength=n_groups).astype(np.float64)
    event_times = np.unique(time[event == 1])
    df = n_groups - 1

    if len(event_times) == 0:
        return LogRankParams(
            statistic=0.0,
            df=df,
            p_value=1.0,
            n_groups=n_groups,
            observed=np.zeros(n_groups, dtype=np.float64),
            expected=np.zeros(n_groups, dtype=np.float64),
            n_per_group=n_per_group,
            rho=rho,
            group_labels=unique_groups,
        )

    m = len(event_times)
    n_kg = np.zeros((m, n_groups), dtype=np.float64)  # at risk per group
    d_kg = np.zeros((m, n_groups), dtype=np.float64)  # events per group

    for k in range(n_groups):
        t_k = np.sort(time[group_idx == k])
        n_kg[:, k] = len(t_k) - np.searchsorted(t_k, event_times, side="left")
        ev_k = time[(group_idx == k) & (event == 1)]
        pos = np.searchsorted(event_times, ev_k)
        d_kg[:, k] = np.bincount(pos, minlength=m)

    D_j = d_kg.sum(axis=1)
    N_j = n_kg.sum(axis=1)

    if rho == 0.0:
        weights = np.ones(m, dtype=np.float64)
    else:
        cum_surv = np.cumprod(1.0 - D_j / np.maximum(N_j, 1.0))
        s_before = np.concatenate([[1.0], cum_surv[:-1]])
        weights = s_before ** rho

    observed = (weights[:, None] * d_kg).sum(axis=0)
    expected = (weights[:, None] * n_kg * (D_j / N_j)[:, None]).sum(axis=0)

    # Hypergeometric variance; times with a single subject at risk add nothing
    usable = N_j > 1
    factor = np.zeros(m, dtype=np.float64)
    factor[usable] = (
        weights[usable] ** 2 * D_j[usable] * (N_j[usable] - D_j[usable])
        / (N_j[usable] ** 2 * (N_j[usable] - 1))
    )
    V = np.einsum("j,jk,jl->kl", factor, n_kg, -n_kg)
    V[np.diag_indices(n_groups)] += np.einsum("j,jk->k", factor * N_j, n_kg)

    # Drop the last group: Σ(O_k - E_k) = 0 makes V singular
    oe_diff = (observed - expected)[:df]
    V_sub = V[:df, :df]
    try:
        statistic = float(oe_diff @ np.linalg.solve(V_sub, oe_diff))
    except np.linalg.LinAlgError:
        statistic = 0.0

    p_value = float(stats.chi2.sf(statistic, df))

    return LogRankParams(
        statistic=statistic,
        df=df,
        p_value=p_value,
        n_groups=n_groups,
        observed=observed,
        expected=expected,
        n_per_group=n_per_group,
        rho=rho,
        group_labels=unique_groups,
    )
