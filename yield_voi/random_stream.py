"""
Seedable random sampling primitive.

Every stochastic stage of the analysis receives its own ``RandomStream``
built from a seed produced by :func:`derive_seed`.  Seeds are a pure
function of ``(master_seed, stage_name, index...)``, so chains and
value-of-information batches can run in any order, on any number of
workers, and still reproduce the same figures.
"""

import hashlib
import json
from typing import Optional, Sequence, Union

import numpy as np
from scipy.special import ndtr, ndtri

from .errors import InvalidParameterError

SizeLike = Optional[Union[int, Sequence[int]]]

_SEED_MASK = (1 << 63) - 1
_TAIL_FLOOR = 1e-300


def derive_seed(master_seed: int, stage_name: str, *index) -> int:
    """Derive an independent 63-bit seed for one stochastic stage.

    >>> derive_seed(1, "posterior_chain", 0) == derive_seed(1, "posterior_chain", 0)
    True
    >>> derive_seed(1, "posterior_chain", 0) == derive_seed(1, "posterior_chain", 1)
    False
    """
    if isinstance(master_seed, bool) or not isinstance(master_seed, (int, np.integer)):
        raise InvalidParameterError(
            f"master_seed must be an integer, got {master_seed!r}"
        )
    key = json.dumps(
        [int(master_seed), str(stage_name), [_canonical(i) for i in index]],
        separators=(',', ':'),
    )
    digest = hashlib.sha256(key.encode('utf-8')).digest()
    return int.from_bytes(digest[:8], 'big') & _SEED_MASK


def _canonical(value):
    if isinstance(value, (np.integer, int)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, (np.floating, float)):
        return repr(float(value))
    return str(value)


def _check_scale(name: str, value) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if not np.all(np.isfinite(arr)) or np.any(arr <= 0):
        raise InvalidParameterError(f"{name} must be finite and > 0, got {value!r}")
    return arr


def _check_finite(name: str, value) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if not np.all(np.isfinite(arr)):
        raise InvalidParameterError(f"{name} must be finite, got {value!r}")
    return arr


def _check_size(size: SizeLike) -> SizeLike:
    if size is None:
        return None
    dims = (size,) if np.isscalar(size) else tuple(size)
    if any(int(d) < 0 for d in dims):
        raise InvalidParameterError(f"size must be non-negative, got {size!r}")
    return size


class RandomStream:
    """Validated draws from a ``numpy.random.Generator``.

    Parameters
    ----------
    seed : int
        Seed of the underlying PCG64 bit generator.
    """

    def __init__(self, seed: int):
        if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
            raise InvalidParameterError(f"seed must be an integer, got {seed!r}")
        if seed < 0:
            raise InvalidParameterError(f"seed must be non-negative, got {seed}")
        self.seed = int(seed)
        self._rng = np.random.default_rng(self.seed)

    @property
    def generator(self) -> np.random.Generator:
        return self._rng

    def spawn(self, stage_name: str, *index) -> "RandomStream":
        """Child stream seeded from this stream's seed and *index*."""
        return RandomStream(derive_seed(self.seed, stage_name, *index))

    # ── Draws ────────────────────────────────────────────────────────

    def standard_normal(self, size: SizeLike = None):
        return self._rng.standard_normal(_check_size(size))

    def normal(self, mean=0.0, std=1.0, size: SizeLike = None):
        mean = _check_finite("mean", mean)
        std = _check_scale("std", std)
        return self._rng.normal(mean, std, _check_size(size))

    def exponential(self, rate=1.0, size: SizeLike = None):
        """Exponential draws parameterised by *rate* (mean ``1/rate``)."""
        rate = _check_scale("rate", rate)
        return self._rng.exponential(1.0 / rate, _check_size(size))

    def uniform(self, low=0.0, high=1.0, size: SizeLike = None):
        low = _check_finite("low", low)
        high = _check_finite("high", high)
        if np.any(low >= high):
            raise InvalidParameterError(
                f"uniform requires low < high, got low={low!r}, high={high!r}"
            )
        return self._rng.uniform(low, high, _check_size(size))

    def integers(self, low: int, high: int, size: SizeLike = None):
        if low >= high:
            raise InvalidParameterError(
                f"integers requires low < high, got low={low}, high={high}"
            )
        return self._rng.integers(low, high, _check_size(size))

    def permutation(self, n: int) -> np.ndarray:
        return self._rng.permutation(_check_size(n))

    def choice(self, values, size: SizeLike = None, replace: bool = True):
        values = np.asarray(values)
        if values.size == 0:
            raise InvalidParameterError("choice requires a non-empty population")
        return self._rng.choice(values, size=_check_size(size), replace=replace)

    def truncated_normal(self, mean, std, lower=0.0, size: SizeLike = None):
        """Normal(mean, std) draws restricted to ``[lower, inf)``.

        Inverse-CDF sampling on the upper tail: with ``a = (lower-mean)/std``
        and ``q ~ U(0, Phi(-a)]``, ``mean - std * Phi^-1(q)`` has the
        required law.  Works elementwise on array-valued *mean*/*std*.
        Where ``Phi(-a)`` underflows (``a`` beyond ~37) the exponential
        tail approximation ``a + E / a`` is used instead.
        """
        mean = _check_finite("mean", mean)
        std = _check_scale("std", std)
        lower = _check_finite("lower", lower)
        if size is None:
            size = np.broadcast(mean, std, lower).shape or None
        a = (lower - mean) / std
        tail = ndtr(-a)
        # 1 - U[0, 1) is in (0, 1], keeping ndtri away from -inf
        u = 1.0 - self._rng.random(_check_size(size))
        with np.errstate(divide='ignore', invalid='ignore'):
            z = -ndtri(u * tail)
        far = tail < _TAIL_FLOOR
        if np.any(far):
            e = self._rng.standard_exponential(np.shape(z) or None)
            z = np.where(far, a + e / np.where(a > 0, a, 1.0), z)
        return np.maximum(mean + std * z, lower)


def stream(seed: int) -> RandomStream:
    """Return a fresh :class:`RandomStream` for *seed*."""
    return RandomStream(seed)
