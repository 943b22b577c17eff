"""
MOTE (Minimum Of Three Equivalent) characteristic values.

A conservative order-statistic rule for small test series: the
characteristic strength is the lowest result of 3-5 tests, the
second-lowest of 6-10 and the third-lowest of 11-15.  Beyond 15 tests
the generic rank ``ceil(n / 5)`` continues the pattern.
"""

import math
from typing import Iterable, List

import numpy as np

from .constants import MOTE_N_RANGE, MOTE_N_REPLICATES, MOTE_RANK_TABLE
from .data_model import MoteSample
from .errors import InsufficientDataError, InvalidParameterError
from .random_stream import RandomStream


def mote_rank(n: int) -> int:
    """1-based ascending rank that the MOTE rule selects from *n* tests."""
    if n < 3:
        raise InsufficientDataError("mote", n, 3)
    if n in MOTE_RANK_TABLE:
        return MOTE_RANK_TABLE[n]
    return math.ceil(n / 5)


def mote(sample) -> float:
    """Characteristic value of *sample* under the MOTE rule."""
    x = np.asarray(sample, dtype=float).ravel()
    if x.size and not np.all(np.isfinite(x)):
        raise InvalidParameterError("mote: sample contains non-finite values")
    k = mote_rank(x.size)
    return float(np.sort(x)[k - 1])


def mote_vs_n_tests(
    strength_samples,
    n_values: Iterable[int] = MOTE_N_RANGE,
    n_replicates: int = MOTE_N_REPLICATES,
    seed: int = 0,
) -> List[MoteSample]:
    """Simulate MOTE values for test series of varying length.

    Each replicate draws ``n`` strengths with replacement from
    *strength_samples* (typically the posterior predictive) and applies
    the MOTE rule, giving the scatter of characteristic value against
    number of tests.
    """
    pool = np.asarray(strength_samples, dtype=float).ravel()
    if pool.size == 0:
        raise InsufficientDataError("mote_vs_n_tests", 0, 1)
    if n_replicates < 1:
        raise InvalidParameterError(
            f"n_replicates must be >= 1, got {n_replicates}"
        )
    out: List[MoteSample] = []
    for n in n_values:
        rng = RandomStream(seed).spawn("mote", int(n))
        k = mote_rank(int(n))
        draws = rng.choice(pool, size=(n_replicates, int(n)))
        values = np.sort(draws, axis=1)[:, k - 1]
        out.extend(MoteSample(n_tests=int(n), mote_value=float(v)) for v in values)
    return out
