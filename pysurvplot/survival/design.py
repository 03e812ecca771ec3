"""
SurvivalDesign: immutable container for time-to-event data.

Wraps time, event indicator (or competing-risk status codes), optional
covariates, and optional strata. Validates inputs at construction time;
all downstream estimators trust clean data.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


OVERALL_LABEL = "All"


@dataclass(frozen=True)
class SurvivalDesign:
    """Immutable survival data container.

    Parameters
    ----------
    time : NDArray
        Time to event or censoring. Must be non-negative.
    event : NDArray
        Event indicator: 1 = event observed, 0 = censored. For competing
        risks, the status code: 0 = censored, k > 0 = cause k.
    X : NDArray or None
        Covariate matrix (n, p). None for KM / log-rank / incidence.
    strata : NDArray
        Strata labels as strings; a single "All" stratum when not given.
    """

    time: NDArray
    event: NDArray
    X: NDArray | None
    strata: NDArray

    @classmethod
    def for_survival(
        cls,
        time,
        event,
        X=None,
        *,
        strata=None,
    ) -> SurvivalDesign:
        """Create and validate survival data.

        Parameters
        ----------
        time : array-like
            Time to event or censoring.
        event : array-like
            Event indicator (0/1 or False/True).
        X : array-like or None
            Optional covariate matrix.
        strata : array-like or None
            Optional strata labels.

        Returns
        -------
        SurvivalDesign

        Raises
        ------
        ValueError
            If inputs are invalid.
        """
        time, event = _time_and_codes(time, event, "event")

        unique_events = np.unique(event)
        if not np.all(np.isin(unique_events, [0.0, 1.0])):
            raise ValueError(
                f"event must contain only 0 and 1, "
                f"got unique values: {unique_events}"
            )

        n = len(time)
        X_arr = None
        if X is not None:
            X_arr = np.asarray(X, dtype=np.float64)
            if X_arr.ndim == 1:
                X_arr = X_arr.reshape(-1, 1)
            if X_arr.ndim != 2:
                raise ValueError(
                    f"X must be 1D or 2D, got {X_arr.ndim}D"
                )
            if X_arr.shape[0] != n:
                raise ValueError(
                    f"X must have {n} rows to match time, "
                    f"got {X_arr.shape[0]}"
                )
            if not np.all(np.isfinite(X_arr)):
                raise ValueError("X must not contain NaN or Inf")

        return cls(
            time=time,
            event=event,
            X=X_arr,
            strata=_strata_labels(strata, n),
        )

    @classmethod
    def for_competing_risks(
        cls,
        time,
        status,
        *,
        strata=None,
    ) -> SurvivalDesign:
        """Create and validate competing-risks data.

        Parameters
        ----------
        time : array-like
            Time to first event or censoring.
        status : array-like
            0 for censored, a positive integer code for the cause.
        strata : array-like or None
            Optional strata labels.

        Raises
        ------
        ValueError
            If inputs are invalid.
        """
        time, status = _time_and_codes(time, status, "status")

        if np.any(status < 0) or np.any(status != np.round(status)):
            raise ValueError(
                f"status must contain non-negative integer codes, "
                f"got unique values: {np.unique(status)}"
            )

        return cls(
            time=time,
            event=status,
            X=None,
            strata=_strata_labels(strata, len(time)),
        )

    @property
    def n(self) -> int:
        """Number of observations."""
        return len(self.time)

    @property
    def p(self) -> int | None:
        """Number of covariates (None if no covariates)."""
        return self.X.shape[1] if self.X is not None else None

    @property
    def n_events(self) -> int:
        """Number of observed events (of any cause)."""
        return int(np.sum(self.event > 0))

    @property
    def strata_levels(self) -> list[str]:
        """Distinct strata labels, sorted as R orders factor levels."""
        return [str(s) for s in np.unique(self.strata)]

    def subset(self, label: str) -> tuple[NDArray, NDArray]:
        """(time, event) of one stratum."""
        mask = self.strata == label
        return self.time[mask], self.event[mask]


def _time_and_codes(time, codes, name: str) -> tuple[NDArray, NDArray]:
    time = np.asarray(time, dtype=np.float64).ravel()
    codes = np.asarray(codes, dtype=np.float64).ravel()

    n = len(time)

    if n == 0:
        raise ValueError("time must have at least one observation")

    if len(codes) != n:
        raise ValueError(
            f"time and {name} must have the same length: "
            f"got {n} and {len(codes)}"
        )

    if not np.all(np.isfinite(time)):
        raise ValueError("time must not contain NaN or Inf")

    if np.any(time < 0):
        raise ValueError("time must be non-negative")

    if np.any(np.isnan(codes)):
        raise ValueError(f"{name} must not contain NaN")

    return time, codes


def _strata_labels(strata, n: int) -> NDArray:
    if strata is None:
        return np.full(n, OVERALL_LABEL, dtype=object)

    strata_arr = np.asarray(strata).ravel()
    if len(strata_arr) != n:
        raise ValueError(
            f"strata must have {n} elements to match time, "
            f"got {len(strata_arr)}"
        )
    return np.array([str(s) for s in strata_arr], dtype=object)
