"""
Maximum-likelihood fitting and bootstrap intervals for measured yield
strengths.

The Normal fit is closed-form.  Log-Normal and Weibull fits go through
``scipy.stats`` MLE with the location fixed at zero, which is the
physically meaningful choice for a strictly positive material property.
"""

import warnings
from typing import Callable, Dict, Mapping, Tuple, Union

import numpy as np
from scipy.stats import lognorm, shapiro, weibull_min

from .constants import DEFAULT_BOOTSTRAP_RESAMPLES, DEFAULT_CONFIDENCE_LEVEL
from .data_model import DistributionParams, SampleSummary
from .errors import InsufficientDataError, InvalidParameterError
from .random_stream import RandomStream

FAMILIES = ("normal", "lognormal", "weibull")

EstimatorResult = Union[DistributionParams, Mapping[str, float]]


def _as_sample(sample, stage: str, n_required: int = 2) -> np.ndarray:
    arr = np.asarray(sample, dtype=float).ravel()
    if arr.size and not np.all(np.isfinite(arr)):
        raise InvalidParameterError(f"{stage}: sample contains non-finite values")
    if arr.size < n_required:
        raise InsufficientDataError(stage, int(arr.size), n_required)
    return arr


def fit_mle(sample, family: str = "normal") -> DistributionParams:
    """Maximum-likelihood parameters of *family* for *sample*.

    Parameters
    ----------
    sample : array_like
        At least two finite values.
    family : str
        ``"normal"``, ``"lognormal"`` or ``"weibull"``.

    Returns
    -------
    DistributionParams
        For Normal: arithmetic mean and population (``ddof=0``) std.
        For the other families: mean and std of the fitted distribution,
        with the native shape/scale parameters in ``extra``.

    Raises
    ------
    InsufficientDataError
        Fewer than two values.
    InvalidParameterError
        Unknown family, zero spread, or non-positive values for a
        positive-support family.
    """
    family = family.lower()
    if family not in FAMILIES:
        raise InvalidParameterError(
            f"unknown family {family!r}; expected one of {FAMILIES}"
        )
    x = _as_sample(sample, "fit_mle")

    if family == "normal":
        std = float(np.std(x, ddof=0))
        if std == 0.0:
            raise InvalidParameterError(
                "fit_mle: sample has zero spread; std must be > 0"
            )
        return DistributionParams(mean=float(np.mean(x)), std=std)

    if np.any(x <= 0):
        raise InvalidParameterError(
            f"fit_mle: {family} requires strictly positive values"
        )
    if np.ptp(x) == 0.0:
        raise InvalidParameterError(
            "fit_mle: sample has zero spread; std must be > 0"
        )

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        if family == "lognormal":
            s, _, scale = lognorm.fit(x, floc=0)
            dist = lognorm(s, loc=0, scale=scale)
            extra = {'s': float(s), 'scale': float(scale)}
        else:
            k, _, lam = weibull_min.fit(x, floc=0)
            dist = weibull_min(k, loc=0, scale=lam)
            extra = {'k': float(k), 'lambda': float(lam)}

    return DistributionParams(
        mean=float(dist.mean()), std=float(dist.std()),
        family=family, extra=extra,
    )


def _estimate_to_dict(result: EstimatorResult) -> Dict[str, float]:
    if isinstance(result, DistributionParams):
        return result.as_dict()
    return {k: float(v) for k, v in result.items()}


def bootstrap_confidence_interval(
    sample,
    estimator_fn: Callable[[np.ndarray], EstimatorResult] = fit_mle,
    n_resamples: int = DEFAULT_BOOTSTRAP_RESAMPLES,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    seed: int = 0,
    skip_invalid: bool = False,
) -> Dict[str, Tuple[float, float]]:
    """Percentile bootstrap interval for every parameter of *estimator_fn*.

    Resamples *sample* with replacement ``n_resamples`` times, applies
    *estimator_fn* to each resample and returns, per parameter, the
    central ``confidence_level`` interval of the resampled estimates
    (2.5th / 97.5th percentiles for 0.95).

    Errors raised by *estimator_fn* propagate.  With ``skip_invalid``,
    a resample on which the estimator raises ``InvalidParameterError``
    (e.g. all values drawn identical, so the Normal std is zero) is
    discarded and redrawn instead; the number of discarded resamples is
    reported with ``warnings.warn`` because the interval then describes
    the non-degenerate resamples only.
    """
    x = _as_sample(sample, "bootstrap_confidence_interval")
    if int(n_resamples) < 1:
        raise InvalidParameterError(
            f"n_resamples must be >= 1, got {n_resamples}"
        )
    if not 0.0 < confidence_level < 1.0:
        raise InvalidParameterError(
            f"confidence_level must lie in (0, 1), got {confidence_level}"
        )

    rng = RandomStream(seed)
    n = len(x)
    estimates: Dict[str, list] = {}
    collected = 0
    discarded = 0
    max_discarded = 20 * int(n_resamples)
    while collected < n_resamples:
        resample = x[rng.integers(0, n, size=n)]
        try:
            est = _estimate_to_dict(estimator_fn(resample))
        except InvalidParameterError:
            if not skip_invalid:
                raise
            discarded += 1
            if discarded > max_discarded:
                raise InsufficientDataError(
                    "bootstrap_confidence_interval", n, 3,
                    f"{discarded} resamples were invalid for this estimator.",
                )
            continue
        for name, value in est.items():
            estimates.setdefault(name, []).append(value)
        collected += 1

    if discarded:
        warnings.warn(
            f"bootstrap_confidence_interval: discarded {discarded} of "
            f"{discarded + collected} resamples on which the estimator was "
            f"undefined; the interval covers the remaining {collected}.",
            stacklevel=2,
        )

    alpha = 1.0 - confidence_level
    lo_pct, hi_pct = 100.0 * alpha / 2.0, 100.0 * (1.0 - alpha / 2.0)
    intervals = {}
    for name, values in estimates.items():
        lo, hi = np.percentile(np.asarray(values), [lo_pct, hi_pct])
        intervals[name] = (float(lo), float(hi))
    return intervals


def summarize_sample(sample) -> SampleSummary:
    """Descriptive statistics of the measurements.

    The Shapiro-Wilk p-value is reported for 3 <= n <= 5000 and left as
    ``None`` otherwise.
    """
    x = _as_sample(sample, "summarize_sample", n_required=1)
    n = len(x)
    shapiro_p = None
    if 3 <= n <= 5000 and np.ptp(x) > 0:
        _, shapiro_p = shapiro(x)
        shapiro_p = float(shapiro_p)
    return SampleSummary(
        n=n,
        mean=float(np.mean(x)),
        std=float(np.std(x, ddof=1)) if n > 1 else 0.0,
        min_val=float(np.min(x)),
        max_val=float(np.max(x)),
        normality_shapiro_p=shapiro_p,
    )
