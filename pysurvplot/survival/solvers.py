"""
Public API for survival estimation.

    survfit(time, event, strata=...) → CurveModel       # Kaplan-Meier
    survfit(cox_model, newdata=...) → CurveModel       # adjusted curves
    cuminc(time, status, strata=...) → CurveModel      # competing risks
    survdiff(time, event, group) → LogRankSolution
    coxph(time, event, X, strata=...) → CoxModel

Each function validates inputs, creates a SurvivalDesign, dispatches to
the estimator routine, and wraps the Result in a Solution.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Literal

import numpy as np
from scipy import stats

from pysurvplot.core.result import Result
from pysurvplot.core.compute.timing import Timer
from pysurvplot.survival.design import SurvivalDesign
from pysurvplot.survival._common import CurveParams, StratumCurve
from pysurvplot.survival._km import kaplan_meier_fit, compute_ci
from pysurvplot.survival._cuminc import cumulative_incidence_fit
from pysurvplot.survival._logrank import logrank_test
from pysurvplot.survival._cox import cox_fit
from pysurvplot.survival.solution import CoxModel, CurveModel, LogRankSolution


def _check_conf(conf_level: float, conf_type: str) -> None:
    if conf_level <= 0 or conf_level >= 1:
        raise ValueError(
            f"conf_level must be in (0, 1), got {conf_level}"
        )

    if conf_type not in ("log", "plain", "log-log"):
        raise ValueError(
            f"conf_type must be 'log', 'plain', or 'log-log', "
            f"got '{conf_type}'"
        )


def survfit(
    time,
    event=None,
    *,
    strata=None,
    newdata=None,
    conf_level: float = 0.95,
    conf_type: Literal["log", "plain", "log-log"] = "log",
) -> CurveModel:
    """Survival curves: Kaplan-Meier, or adjusted curves from a Cox model.

    Matches R's survival::survfit(Surv(time, event) ~ strata) and, when
    given a fitted CoxModel, survfit(coxph_fit, newdata).

    Parameters
    ----------
    time : array-like or CoxModel
        Time to event or censoring, or a fitted Cox model.
    event : array-like
        Event indicator (1=event, 0=censored). Unused for a Cox model.
    strata : array-like or None
        Strata labels; one curve per stratum. With two or more strata the
        log-rank comparison is attached to the model.
    newdata : array-like or None
        Cox model only: covariate rows (n_new, p) to predict curves for.
        Defaults to the covariate means.
    conf_level : float
        Confidence level for CI (default 0.95).
    conf_type : str
        CI transformation: "log" (R default), "plain", "log-log".

    Returns
    -------
    CurveModel
    """
    _check_conf(conf_level, conf_type)

    if isinstance(time, CoxModel):
        return _adjusted_survfit(time, newdata, conf_level, conf_type)

    if event is None:
        raise ValueError("event is required for Kaplan-Meier estimation")

    design = SurvivalDesign.for_survival(time, event, strata=strata)

    timer = Timer()
    timer.start()

    with timer.section("kaplan_meier"):
        curves = tuple(
            kaplan_meier_fit(
                *design.subset(label),
                strata=label,
                conf_level=conf_level,
                conf_type=conf_type,
            )
            for label in design.strata_levels
        )

    comparison = None
    if len(curves) > 1:
        with timer.section("logrank"):
            comparison = logrank_test(design.time, design.event, design.strata)

    timer.stop()

    params = CurveParams(
        curves=curves,
        kind="survival",
        conf_level=conf_level,
        conf_type=conf_type,
        n_observations=design.n,
        n_events_total=design.n_events,
        comparison=comparison,
    )

    result = Result(
        params=params,
        info={"method": "Kaplan-Meier", "n_strata": len(curves)},
        timing=timer.result(),
        backend_name="cpu_km",
        warnings=(),
    )

    return CurveModel(_result=result)


def cuminc(
    time,
    status,
    *,
    strata=None,
    conf_level: float = 0.95,
    cause_labels: dict | None = None,
) -> CurveModel:
    """Cumulative incidence curves for competing risks (Aalen-Johansen).

    Matches tidycmprsk::cuminc(Surv(time, status) ~ strata).

    Parameters
    ----------
    time : array-like
        Time to first event or censoring.
    status : array-like
        0 for censored, a positive integer code for each cause.
    strata : array-like or None
        Strata labels; one curve per stratum and cause.
    conf_level : float
        Confidence level for CI (default 0.95).
    cause_labels : dict or None
        Display names keyed by cause code, e.g. {1: "Relapse"}.

    Returns
    -------
    CurveModel
        kind == "incidence"; each curve carries its cause as ``outcome``.
    """
    _check_conf(conf_level, "log-log")
    design = SurvivalDesign.for_competing_risks(time, status, strata=strata)

    causes = np.unique(design.event[design.event > 0])
    if len(causes) == 0:
        raise ValueError("status has no events; nothing to estimate")

    timer = Timer()
    timer.start()

    curves: list[StratumCurve] = []
    for label in design.strata_levels:
        curves.extend(cumulative_incidence_fit(
            *design.subset(label),
            strata=label,
            causes=causes,
            conf_level=conf_level,
        ))

    timer.stop()

    if cause_labels:
        labels = {str(k): str(v) for k, v in cause_labels.items()}
        curves = [
            replace(c, outcome=labels.get(c.outcome, c.outcome))
            for c in curves
        ]

    params = CurveParams(
        curves=tuple(curves),
        kind="incidence",
        conf_level=conf_level,
        conf_type="log-log",
        n_observations=design.n,
        n_events_total=design.n_events,
    )

    result = Result(
        params=params,
        info={
            "method": "Aalen-Johansen",
            "n_strata": len(design.strata_levels),
            "n_causes": len(causes),
        },
        timing=timer.result(),
        backend_name="cpu_cuminc",
        warnings=(),
    )

    return CurveModel(_result=result)


def survdiff(
    time,
    event,
    group,
    *,
    rho: float = 0.0,
) -> LogRankSolution:
    """Log-rank test (and G-rho family).

    Matches R's survival::survdiff().

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    group : array-like
        Group labels (e.g. treatment vs control).
    rho : float
        G-rho weight parameter. rho=0 (default) gives the standard
        log-rank test. rho=1 gives Peto & Peto / Gehan-Wilcoxon.

    Returns
    -------
    LogRankSolution
    """
    design = SurvivalDesign.for_survival(time, event, strata=group)

    timer = Timer()
    timer.start()

    params = logrank_test(
        design.time, design.event, design.strata,
        rho=rho,
    )

    timer.stop()

    result = Result(
        params=params,
        info={"method": "Log-rank test", "rho": rho},
        timing=timer.result(),
        backend_name="cpu_logrank",
        warnings=(),
    )

    return LogRankSolution(_result=result)


def coxph(
    time,
    event,
    X,
    *,
    strata=None,
    ties: Literal["efron", "breslow"] = "efron",
    tol: float = 1e-9,
    max_iter: int = 20,
) -> CoxModel:
    """Cox proportional hazards model, optionally stratified.

    Matches R's survival::coxph(Surv(time, event) ~ X + strata(s)).

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    X : array-like
        Covariate matrix (n, p). No intercept.
    strata : array-like or None
        Strata labels; each stratum gets its own baseline hazard.
    ties : str
        Method for handling tied event times: "efron" (default) or "breslow".
    tol : float
        Convergence tolerance for Newton-Raphson.
    max_iter : int
        Maximum Newton-Raphson iterations.

    Returns
    -------
    CoxModel

    Raises
    ------
    EstimationError
        If the fit does not converge or the information matrix is singular.
    """
    design = SurvivalDesign.for_survival(time, event, X, strata=strata)

    if design.X is None:
        raise ValueError("X (covariates) is required for coxph()")

    if ties not in ("efron", "breslow"):
        raise ValueError(
            f"ties must be 'efron' or 'breslow', got '{ties}'"
        )

    timer = Timer()
    timer.start()

    params = cox_fit(
        design.time, design.event, design.X, design.strata,
        ties=ties,
        tol=tol,
        max_iter=max_iter,
    )

    timer.stop()

    result = Result(
        params=params,
        info={
            "method": "Cox PH",
            "ties": ties,
            "n_iter": params.n_iter,
            "n_strata": len(params.baseline),
        },
        timing=timer.result(),
        backend_name="cpu_cox",
        warnings=(),
    )

    return CoxModel(_result=result)


def _adjusted_survfit(
    model: CoxModel,
    newdata,
    conf_level: float,
    conf_type: str,
) -> CurveModel:
    """S(t | x) = exp(-H0(t) * exp((x - x̄) @ β)) for each stratum and row."""
    params = model.params
    p = len(params.coefficients)

    if newdata is None:
        rows = params.means.reshape(1, -1)
    else:
        rows = np.asarray(newdata, dtype=np.float64)
        if rows.ndim == 1:
            rows = rows.reshape(1, -1)
        if rows.ndim != 2 or rows.shape[1] != p:
            raise ValueError(
                f"newdata must have {p} columns, got shape {rows.shape}"
            )

    risk = np.exp((rows - params.means) @ params.coefficients)
    z = stats.norm.ppf((1.0 + conf_level) / 2.0)

    timer = Timer()
    timer.start()

    curves = []
    for base in params.baseline:
        n = base.n_risk[0]
        for i, r in enumerate(risk):
            cumhaz = base.cumhaz * r
            survival = np.exp(-cumhaz)
            se = survival * np.sqrt(base.var_cumhaz) * r
            ci_lower, ci_upper = compute_ci(survival, se, z, conf_type)
            if len(risk) == 1:
                label = base.strata
            elif len(params.baseline) == 1:
                label = str(i + 1)
            else:
                label = f"{base.strata}: {i + 1}"
            curves.append(StratumCurve(
                strata=label,
                time=np.concatenate([[0.0], base.time]),
                estimate=np.concatenate([[1.0], survival]),
                conf_low=np.concatenate([[1.0], ci_lower]),
                conf_high=np.concatenate([[1.0], ci_upper]),
                std_error=np.concatenate([[0.0], se]),
                n_risk=np.concatenate([[n], base.n_risk]),
                n_event=np.concatenate([[0.0], base.n_event]),
                n_censor=np.concatenate([[0.0], base.n_censor]),
            ))

    timer.stop()

    curve_params = CurveParams(
        curves=tuple(curves),
        kind="survival",
        conf_level=conf_level,
        conf_type=conf_type,
        n_observations=params.n_observations,
        n_events_total=params.n_events,
    )

    result = Result(
        params=curve_params,
        info={"method": "Cox adjusted survival", "n_curves": len(curves)},
        timing=timer.result(),
        backend_name="cpu_cox_survfit",
        warnings=(),
    )

    return CurveModel(_result=result)
