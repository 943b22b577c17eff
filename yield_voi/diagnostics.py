"""
Convergence diagnostics for posterior ensembles.

Split R-hat and an autocorrelation-based effective sample size.  The
sampler attaches these to every ensemble; nothing rejects a run on
their basis; callers decide what to do with a poor value.
"""

from typing import Dict, List

import numpy as np


def _chain_matrix(values: np.ndarray, chain_id: np.ndarray) -> np.ndarray:
    """Reshape chain-major draws into ``(n_chains, n_draws)``."""
    chains = [values[chain_id == c] for c in np.unique(chain_id)]
    n = min(len(c) for c in chains)
    return np.vstack([c[:n] for c in chains])


def split_rhat(chains: np.ndarray) -> float:
    """Gelman-Rubin potential scale reduction on split chains.

    Returns ``nan`` when there are fewer than four draws per chain.
    """
    chains = np.atleast_2d(np.asarray(chains, dtype=float))
    n = chains.shape[1]
    if n < 4:
        return float('nan')
    half = n // 2
    split = np.vstack([chains[:, :half], chains[:, half:2 * half]])
    m, n_half = split.shape
    chain_means = split.mean(axis=1)
    chain_vars = split.var(axis=1, ddof=1)
    w = float(np.mean(chain_vars))
    b = float(n_half * np.var(chain_means, ddof=1))
    if w <= 0.0:
        return 1.0 if b <= 0.0 else float('inf')
    var_plus = (n_half - 1) / n_half * w + b / n_half
    return float(np.sqrt(var_plus / w))


def _autocorr_time(x: np.ndarray) -> float:
    """Integrated autocorrelation time of a single chain."""
    n = len(x)
    if n < 3:
        return 1.0
    x = x - float(np.mean(x))
    denom = float(np.dot(x, x))
    if denom <= 1e-15:
        return 1.0
    max_lag = min(n - 1, max(1, n // 3))
    tau = 1.0
    for lag in range(1, max_lag + 1):
        rho = float(np.dot(x[:-lag], x[lag:])) / denom
        # Truncate at the first non-positive autocorrelation
        if not np.isfinite(rho) or rho <= 0:
            break
        tau += 2.0 * rho * (1.0 - lag / n)
    return max(1.0, tau)


def effective_sample_size(chains: np.ndarray) -> float:
    """Sum over chains of ``n_draws / tau_int``."""
    chains = np.atleast_2d(np.asarray(chains, dtype=float))
    total = 0.0
    for row in chains:
        total += len(row) / _autocorr_time(row)
    return float(total)


def summarize(mean: np.ndarray, std: np.ndarray,
              chain_id: np.ndarray) -> Dict[str, float]:
    """R-hat and ESS for the population mean and std draws."""
    out: Dict[str, float] = {}
    for name, values in (('mean', mean), ('std', std)):
        mat = _chain_matrix(np.asarray(values), np.asarray(chain_id))
        out[f'rhat_{name}'] = split_rhat(mat)
        out[f'ess_{name}'] = effective_sample_size(mat)
    return out


def flagged(diagnostics: Dict[str, float], rhat_limit: float) -> List[str]:
    """Names of R-hat entries above *rhat_limit*."""
    return [
        k for k, v in diagnostics.items()
        if k.startswith('rhat_') and np.isfinite(v) and v > rhat_limit
    ]
