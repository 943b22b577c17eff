"""
Hierarchical model of measured yield strength.

Generative structure::

    mu     ~ Normal(300, 100)              population mean (MPa)
    sigma  ~ Exponential(rate = 1/50)      population std (MPa)
    y_i    ~ Normal(mu, sigma)             latent true strength of specimen i
    m_i    ~ Normal(y_i, eps_i)            observed measurement, eps_i known

The posterior over ``(mu, sigma, y_1..y_N)`` is sampled with a blocked
Gibbs scheme.  ``sigma`` is updated by slice sampling ``log(sigma)`` on
the likelihood with the latent strengths integrated out
(``m_i ~ Normal(mu, sqrt(sigma^2 + eps_i^2))``), ``mu`` from its
conjugate Normal conditional under the same marginal likelihood, and
the latent strengths last from their conjugate conditionals.  The
integrated updates avoid the funnel between ``sigma`` and the latent
strengths that slows a plain Gibbs sweep when ``sigma`` is small
compared with the measurement noise.

Each chain runs on its own :class:`RandomStream` seeded from
``derive_seed(seed, "posterior_chain", chain_index)``, so chains may
run concurrently without affecting reproducibility.
"""

import math
from concurrent.futures import (
    Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed,
)
from typing import Callable, Dict, Optional, Sequence, Union

import numpy as np

from . import diagnostics
from .constants import (
    DEFAULT_EPSILON, DEFAULT_N_CHAINS, DEFAULT_N_DRAWS, DEFAULT_N_WARMUP,
    DEFAULT_PARALLEL_BACKEND, DEFAULT_SEED, PARALLEL_BACKENDS,
    PREDICTIVE_LOWER_BOUND, PRIOR_MEAN_MU, PRIOR_MEAN_SD, PRIOR_SD_RATE,
    SLICE_MAX_STEPS, SLICE_WIDTH,
)
from .data_model import PosteriorEnsemble, PriorPredictive
from .errors import InsufficientDataError, InvalidParameterError, ModelDivergenceError
from .random_stream import RandomStream, derive_seed

ProgressHook = Callable[[str, int, int], None]
EpsilonLike = Union[float, Sequence[float], np.ndarray]

_LOG_2PI = math.log(2.0 * math.pi)


def broadcast_epsilon(epsilon: EpsilonLike, n: int) -> np.ndarray:
    """Expand scalar or per-observation measurement noise to length *n*."""
    eps = np.asarray(epsilon, dtype=float)
    if eps.ndim == 0:
        eps = np.full(n, float(eps))
    elif eps.ndim != 1 or len(eps) != n:
        raise InvalidParameterError(
            f"epsilon must be a scalar or a vector of length {n}, "
            f"got shape {eps.shape}"
        )
    if not np.all(np.isfinite(eps)) or np.any(eps <= 0):
        raise InvalidParameterError("epsilon values must be finite and > 0")
    return eps


def check_backend(backend: str) -> str:
    if backend not in PARALLEL_BACKENDS:
        raise InvalidParameterError(
            f"unknown parallel backend {backend!r}; expected one of {PARALLEL_BACKENDS}"
        )
    return backend


def check_workers(max_workers: Optional[int]) -> None:
    if max_workers is not None and int(max_workers) < 1:
        raise InvalidParameterError(
            f"max_workers must be >= 1 or None, got {max_workers}"
        )


def make_executor(backend: str, workers: int) -> Executor:
    """Pool for independent chains or batches.

    ``"process"`` runs work items in separate interpreters, so submitted
    callables and their arguments must be picklable.
    """
    if check_backend(backend) == "process":
        return ProcessPoolExecutor(max_workers=workers)
    return ThreadPoolExecutor(max_workers=workers)


class HierarchicalYieldModel:
    """Population model of yield strength with known measurement noise.

    Parameters
    ----------
    prior_mean_mu, prior_mean_sd : float
        Normal prior on the population mean.
    prior_sd_rate : float
        Rate of the Exponential prior on the population std.
    predictive_lower : float
        Lower truncation bound of predictive strength draws.
    """

    def __init__(
        self,
        prior_mean_mu: float = PRIOR_MEAN_MU,
        prior_mean_sd: float = PRIOR_MEAN_SD,
        prior_sd_rate: float = PRIOR_SD_RATE,
        predictive_lower: float = PREDICTIVE_LOWER_BOUND,
    ):
        if not np.isfinite(prior_mean_mu):
            raise InvalidParameterError("prior_mean_mu must be finite")
        if not (np.isfinite(prior_mean_sd) and prior_mean_sd > 0):
            raise InvalidParameterError("prior_mean_sd must be > 0")
        if not (np.isfinite(prior_sd_rate) and prior_sd_rate > 0):
            raise InvalidParameterError("prior_sd_rate must be > 0")
        self.prior_mean_mu = float(prior_mean_mu)
        self.prior_mean_sd = float(prior_mean_sd)
        self.prior_sd_rate = float(prior_sd_rate)
        self.predictive_lower = float(predictive_lower)

    def __repr__(self) -> str:
        return (
            f"HierarchicalYieldModel(mu~N({self.prior_mean_mu:g}, "
            f"{self.prior_mean_sd:g}), sigma~Exp({self.prior_sd_rate:g}))"
        )

    # ── Densities ────────────────────────────────────────────────────

    def log_prior(self, mu: float, sigma: float) -> float:
        if sigma <= 0:
            return -np.inf
        z = (mu - self.prior_mean_mu) / self.prior_mean_sd
        lp_mu = -0.5 * (z * z + _LOG_2PI) - math.log(self.prior_mean_sd)
        lp_sigma = math.log(self.prior_sd_rate) - self.prior_sd_rate * sigma
        return lp_mu + lp_sigma

    def log_joint(self, mu: float, sigma: float, latent: np.ndarray,
                  measurements: np.ndarray, eps: np.ndarray) -> float:
        """Unnormalised log posterior of ``(mu, sigma, y)``."""
        if not (sigma > 0):
            return -np.inf
        zy = (latent - mu) / sigma
        lp_y = -0.5 * np.sum(zy * zy + _LOG_2PI) - len(latent) * math.log(sigma)
        zm = (measurements - latent) / eps
        lp_m = -0.5 * np.sum(zm * zm + _LOG_2PI) - np.sum(np.log(eps))
        return float(self.log_prior(mu, sigma) + lp_y + lp_m)

    def _log_sigma_conditional(self, log_sigma: float, mu: float,
                               measurements: np.ndarray, eps2: np.ndarray) -> float:
        """Log density of ``log(sigma)`` given ``mu`` with ``y`` integrated out."""
        with np.errstate(over='ignore', invalid='ignore'):
            sigma = math.exp(log_sigma) if log_sigma < 700 else np.inf
            if not np.isfinite(sigma) or sigma <= 0:
                return -np.inf
            tv = sigma * sigma + eps2
            r = measurements - mu
            ll = -0.5 * float(np.sum(np.log(tv) + r * r / tv))
        # Exponential prior plus the log-Jacobian of sigma = exp(u)
        return ll + math.log(self.prior_sd_rate) - self.prior_sd_rate * sigma + log_sigma

    # ── Prior predictive ─────────────────────────────────────────────

    def prior_predictive(self, n_samples: int, seed: int = DEFAULT_SEED) -> PriorPredictive:
        """Draw ``(mu, sigma)`` from the priors and one strength per draw."""
        if n_samples < 1:
            raise InvalidParameterError(f"n_samples must be >= 1, got {n_samples}")
        rng = RandomStream(derive_seed(seed, "prior_predictive"))
        mu = rng.normal(self.prior_mean_mu, self.prior_mean_sd, size=n_samples)
        sigma = rng.exponential(self.prior_sd_rate, size=n_samples)
        # Exponential draws of exactly 0.0 are possible in floating point
        sigma = np.maximum(sigma, np.finfo(float).tiny)
        strength = rng.truncated_normal(mu, sigma, self.predictive_lower)
        return PriorPredictive(mean=mu, std=sigma, predicted_yield=strength)

    # ── Posterior sampling ───────────────────────────────────────────

    def posterior_sample(
        self,
        measurements,
        epsilon: EpsilonLike = DEFAULT_EPSILON,
        n_chains: int = DEFAULT_N_CHAINS,
        n_draws_per_chain: int = DEFAULT_N_DRAWS,
        n_warmup: int = DEFAULT_N_WARMUP,
        seed: int = DEFAULT_SEED,
        max_workers: Optional[int] = None,
        progress: Optional[ProgressHook] = None,
        backend: str = DEFAULT_PARALLEL_BACKEND,
    ) -> PosteriorEnsemble:
        """Sample the joint posterior and attach predictive strengths.

        Parameters
        ----------
        measurements : array_like
            Observed yield strengths (MPa).
        epsilon : float or array_like
            Known measurement-noise std, scalar or one per measurement.
        n_chains, n_draws_per_chain, n_warmup : int
            Chain layout; warmup iterations are discarded.
        seed : int
            Master seed; chain ``c`` uses
            ``derive_seed(seed, "posterior_chain", c)``.
        max_workers : int or None
            Pool size for running chains; ``1`` runs serially in the
            calling process.
        progress : callable or None
            ``progress("posterior_sample", chains_done, n_chains)``,
            always called from the calling process.
        backend : str
            ``"process"`` or ``"thread"`` pool for the chains.

        Returns
        -------
        PosteriorEnsemble
            ``n_chains * n_draws_per_chain`` draws in chain-major order.

        Raises
        ------
        InsufficientDataError
            No measurements.
        InvalidParameterError
            Non-finite data, bad noise vector, chain layout or pool settings.
        ModelDivergenceError
            A chain reached a non-finite log posterior.
        """
        m = np.asarray(measurements, dtype=float).ravel()
        if m.size == 0:
            raise InsufficientDataError("posterior_sample", 0, 1)
        if not np.all(np.isfinite(m)):
            raise InvalidParameterError("posterior_sample: measurements must be finite")
        eps = broadcast_epsilon(epsilon, m.size)
        if n_chains < 1 or n_draws_per_chain < 1:
            raise InvalidParameterError(
                f"need n_chains >= 1 and n_draws_per_chain >= 1, "
                f"got {n_chains} and {n_draws_per_chain}"
            )
        if n_warmup < 0:
            raise InvalidParameterError(f"n_warmup must be >= 0, got {n_warmup}")
        check_workers(max_workers)
        check_backend(backend)

        chain_seeds = [derive_seed(seed, "posterior_chain", c) for c in range(n_chains)]
        results: Dict[int, Dict[str, np.ndarray]] = {}

        workers = n_chains if max_workers is None else max(1, min(max_workers, n_chains))
        if workers == 1:
            for c in range(n_chains):
                results[c] = self._run_chain(m, eps, c, chain_seeds[c],
                                             n_draws_per_chain, n_warmup)
                if progress is not None:
                    progress("posterior_sample", len(results), n_chains)
        else:
            with make_executor(backend, workers) as pool:
                futures = {
                    pool.submit(self._run_chain, m, eps, c, chain_seeds[c],
                                n_draws_per_chain, n_warmup): c
                    for c in range(n_chains)
                }
                for fut in as_completed(futures):
                    results[futures[fut]] = fut.result()
                    if progress is not None:
                        progress("posterior_sample", len(results), n_chains)

        ordered = [results[c] for c in range(n_chains)]
        mean = np.concatenate([r['mean'] for r in ordered])
        std = np.concatenate([r['std'] for r in ordered])
        chain_id = np.repeat(np.arange(n_chains), n_draws_per_chain)
        iteration_id = np.tile(np.arange(n_draws_per_chain), n_chains)
        diag = diagnostics.summarize(mean, std, chain_id) if n_chains > 1 else {}

        return PosteriorEnsemble(
            chain_id=chain_id,
            iteration_id=iteration_id,
            mean=mean,
            std=std,
            predicted_yield=np.concatenate([r['predicted'] for r in ordered]),
            latent_yield=np.vstack([r['latent'] for r in ordered]),
            n_chains=n_chains,
            n_draws_per_chain=n_draws_per_chain,
            epsilon=eps,
            diagnostics=diag,
        )

    def _initial_state(self, m: np.ndarray, eps: np.ndarray,
                       rng: RandomStream):
        n = len(m)
        spread = float(np.std(m)) if n > 1 else 0.0
        sigma0 = spread if spread > 0 else 1.0 / self.prior_sd_rate
        scale = max(spread, float(np.mean(eps))) / math.sqrt(n)
        mu0 = float(np.mean(m)) + scale * float(rng.standard_normal())
        log_sigma0 = math.log(sigma0) + 0.5 * float(rng.standard_normal())
        return mu0, log_sigma0

    def _run_chain(self, m: np.ndarray, eps: np.ndarray, chain_index: int,
                   chain_seed: int, n_draws: int, n_warmup: int) -> Dict[str, np.ndarray]:
        rng = RandomStream(chain_seed)
        gen = rng.generator
        n = len(m)
        eps2 = eps * eps
        inv_eps2 = 1.0 / eps2
        prior_prec = 1.0 / (self.prior_mean_sd ** 2)

        mu, log_sigma = self._initial_state(m, eps, rng)

        mu_out = np.empty(n_draws)
        sigma_out = np.empty(n_draws)
        latent_out = np.empty((n_draws, n))

        for it in range(n_warmup + n_draws):
            log_sigma = self._slice_update(
                lambda u: self._log_sigma_conditional(u, mu, m, eps2),
                log_sigma, gen, chain_index, it, n,
            )
            sigma = math.exp(log_sigma)

            # mu | sigma, m  (latent strengths integrated out)
            w = 1.0 / (sigma * sigma + eps2)
            prec = prior_prec + float(np.sum(w))
            loc = (self.prior_mean_mu * prior_prec + float(np.sum(w * m))) / prec
            mu = loc + gen.standard_normal() / math.sqrt(prec)

            # y | mu, sigma, m
            prec_y = 1.0 / (sigma * sigma) + inv_eps2
            loc_y = (mu / (sigma * sigma) + m * inv_eps2) / prec_y
            latent = loc_y + gen.standard_normal(n) / np.sqrt(prec_y)

            lp = self.log_joint(mu, sigma, latent, m, eps)
            if not np.isfinite(lp):
                raise ModelDivergenceError(
                    "posterior_sample", n, chain=chain_index, iteration=it,
                    detail=f"mu={mu!r}, sigma={sigma!r}",
                )
            if it >= n_warmup:
                k = it - n_warmup
                mu_out[k] = mu
                sigma_out[k] = sigma
                latent_out[k] = latent

        predicted = rng.truncated_normal(mu_out, sigma_out, self.predictive_lower)
        return {
            'mean': mu_out,
            'std': sigma_out,
            'latent': latent_out,
            'predicted': predicted,
        }

    @staticmethod
    def _slice_update(logp: Callable[[float], float], x0: float,
                      gen: np.random.Generator, chain_index: int,
                      iteration: int, n_measurements: int) -> float:
        """One stepping-out / shrinkage slice-sampling update (Neal, 2003)."""
        lp0 = logp(x0)
        if not np.isfinite(lp0):
            raise ModelDivergenceError(
                "posterior_sample", n_measurements, chain=chain_index,
                iteration=iteration, detail=f"log(sigma)={x0!r}",
            )
        log_level = lp0 - gen.standard_exponential()

        left = x0 - SLICE_WIDTH * gen.random()
        right = left + SLICE_WIDTH
        j = int(SLICE_MAX_STEPS * gen.random())
        k = SLICE_MAX_STEPS - 1 - j
        while j > 0 and logp(left) > log_level:
            left -= SLICE_WIDTH
            j -= 1
        while k > 0 and logp(right) > log_level:
            right += SLICE_WIDTH
            k -= 1

        while True:
            x1 = left + (right - left) * gen.random()
            if logp(x1) > log_level:
                return x1
            if x1 < x0:
                left = x1
            else:
                right = x1
            if right - left < 1e-12:
                return x0
