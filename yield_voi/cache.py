"""
On-disk cache of expensive sampling results.

Posterior ensembles are stored as ``.npz`` archives and VoI sweeps as
JSON, both keyed by a SHA-256 hash of the measurements and every
setting that influences the result.  The cache is optional: a result
loaded from it is identical to a recomputed one.
"""

import hashlib
import json
import os
from dataclasses import asdict
from typing import Callable, List

import numpy as np

from .data_model import PosteriorEnsemble, VoIBatchOutcome, VoISweepPoint

_ENSEMBLE_ARRAYS = ('chain_id', 'iteration_id', 'mean', 'std',
                    'predicted_yield', 'latent_yield', 'epsilon')


def _jsonable(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        return repr(float(value))
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def cache_key(*parts) -> str:
    """Stable hex digest of *parts* (arrays, dicts, scalars)."""
    payload = json.dumps(_jsonable(list(parts)), sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


class ResultCache:
    """Directory-backed cache of ensembles and sweep results."""

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, kind: str, key: str, ext: str) -> str:
        return os.path.join(self.directory, f"{kind}_{key}{ext}")

    # ── Ensembles ────────────────────────────────────────────────────

    def save_ensemble(self, key: str, ensemble: PosteriorEnsemble) -> str:
        path = self._path("ensemble", key, ".npz")
        arrays = {name: np.asarray(getattr(ensemble, name)) for name in _ENSEMBLE_ARRAYS}
        meta = json.dumps({
            'n_chains': ensemble.n_chains,
            'n_draws_per_chain': ensemble.n_draws_per_chain,
            'diagnostics': {k: float(v) for k, v in ensemble.diagnostics.items()},
        })
        with open(path, 'wb') as fh:
            np.savez(fh, meta=np.array(meta), **arrays)
        return path

    def load_ensemble(self, key: str):
        """Return the cached ensemble for *key*, or ``None``."""
        path = self._path("ensemble", key, ".npz")
        if not os.path.isfile(path):
            return None
        with np.load(path, allow_pickle=False) as data:
            meta = json.loads(str(data['meta']))
            arrays = {name: data[name].copy() for name in _ENSEMBLE_ARRAYS}
        return PosteriorEnsemble(
            n_chains=int(meta['n_chains']),
            n_draws_per_chain=int(meta['n_draws_per_chain']),
            diagnostics=meta.get('diagnostics', {}),
            **arrays,
        )

    def ensemble(self, key: str,
                 compute: Callable[[], PosteriorEnsemble]) -> PosteriorEnsemble:
        cached = self.load_ensemble(key)
        if cached is not None:
            return cached
        result = compute()
        self.save_ensemble(key, result)
        return result

    # ── VoI sweeps ───────────────────────────────────────────────────

    def save_sweep(self, key: str, points: List[VoISweepPoint]) -> str:
        path = self._path("sweep", key, ".json")
        with open(path, 'w', encoding='utf-8') as fh:
            json.dump([asdict(p) for p in points], fh, indent=1)
        return path

    def load_sweep(self, key: str):
        path = self._path("sweep", key, ".json")
        if not os.path.isfile(path):
            return None
        with open(path, 'r', encoding='utf-8') as fh:
            raw = json.load(fh)
        points = []
        for d in raw:
            batches = tuple(
                VoIBatchOutcome(**{**b, 'measurements': tuple(b['measurements'])})
                for b in d.pop('batches', [])
            )
            points.append(VoISweepPoint(batches=batches, **d))
        return points

    def sweep(self, key: str,
              compute: Callable[[], List[VoISweepPoint]]) -> List[VoISweepPoint]:
        cached = self.load_sweep(key)
        if cached is not None:
            return cached
        result = compute()
        self.save_sweep(key, result)
        return result
