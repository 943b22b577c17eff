"""
End-to-end analysis pipeline.

raw measurements
  → summary statistics, Normal MLE and bootstrap intervals
  → prior predictive and hierarchical posterior
  → baseline decision on the posterior predictive
  → EVPI and the EVI sweep over test precision
  → MOTE characteristic values against number of tests

The result object carries every table and figure dataset as plain
data; rendering happens elsewhere and never feeds back into it.
"""

import warnings
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from . import diagnostics
from .audit import AuditLog
from .cache import ResultCache, cache_key
from .config import AnalysisConfig
from .constants import RHAT_WARNING_LEVEL
from .data_model import (
    DecisionResult, DistributionParams, EVPIResult, MeasurementSet,
    MoteSample, PosteriorEnsemble, PriorPredictive, SampleSummary,
    VoISweepPoint,
)
from .decision import DecisionEvaluator
from .distribution_fit import bootstrap_confidence_interval, fit_mle, summarize_sample
from .hierarchical_model import HierarchicalYieldModel
from .mote import mote_vs_n_tests
from .random_stream import derive_seed
from .value_of_information import ValueOfInformationEngine, check_monotonic

ProgressHook = Callable[[str, int, int], None]


@dataclass(frozen=True, eq=False)
class AnalysisResults:
    """Everything produced by :func:`run_analysis`."""
    measurements: MeasurementSet
    config: AnalysisConfig
    summary: SampleSummary
    mle: DistributionParams
    bootstrap_ci: Dict[str, Tuple[float, float]]
    prior_predictive: PriorPredictive
    posterior: PosteriorEnsemble
    baseline: DecisionResult
    evpi: EVPIResult
    sweep: List[VoISweepPoint]
    mote_samples: List[MoteSample]
    monotonic_violations: List[Tuple[float, float]] = field(default_factory=list)
    audit: AuditLog = field(default_factory=AuditLog)


def build_model(config: AnalysisConfig) -> HierarchicalYieldModel:
    return HierarchicalYieldModel(
        prior_mean_mu=config.prior_mean_mu,
        prior_mean_sd=config.prior_mean_sd,
        prior_sd_rate=config.prior_sd_rate,
    )


def build_evaluator(config: AnalysisConfig) -> DecisionEvaluator:
    return DecisionEvaluator(
        threshold=config.threshold,
        cost_table=config.cost_table(),
        cost_of_failure=config.cost_of_failure,
    )


def run_analysis(
    measurements: MeasurementSet,
    config: Optional[AnalysisConfig] = None,
    progress: Optional[ProgressHook] = None,
    cache: Optional[ResultCache] = None,
) -> AnalysisResults:
    """Run the full decision analysis on *measurements*."""
    config = config if config is not None else AnalysisConfig()
    config.validate()
    if cache is None and config.cache_dir:
        cache = ResultCache(config.cache_dir)

    audit = AuditLog()
    values = measurements.values
    audit.log_data_load(
        measurements.source_file or "memory",
        f"N={len(values)} measurements, range "
        f"{values.min():.1f}–{values.max():.1f} MPa" if len(values) else "N=0",
    )

    # ── Classical statistics ──
    summary = summarize_sample(values)
    mle = fit_mle(values, "normal")
    ci = bootstrap_confidence_interval(
        values, fit_mle,
        n_resamples=config.n_bootstrap,
        confidence_level=config.confidence_level,
        seed=derive_seed(config.seed, "bootstrap"),
        skip_invalid=True,
    )
    audit.log_computation(
        "Normal MLE",
        f"mean={mle.mean:.2f} MPa, std={mle.std:.2f} MPa; "
        f"{100 * config.confidence_level:.0f}% bootstrap CI "
        + ", ".join(f"{k}=[{lo:.2f}, {hi:.2f}]" for k, (lo, hi) in ci.items()),
    )

    # ── Hierarchical model ──
    model = build_model(config)
    audit.log_assumption(
        f"Priors mu~Normal({config.prior_mean_mu:g}, {config.prior_mean_sd:g}), "
        f"sigma~Exponential(rate={config.prior_sd_rate:g}); "
        f"measurement noise eps={config.epsilon:g} MPa",
        "analysis configuration",
    )
    prior = model.prior_predictive(config.n_prior_predictive, seed=config.seed)

    def _sample():
        return model.posterior_sample(
            values, config.epsilon,
            n_chains=config.n_chains,
            n_draws_per_chain=config.n_draws_per_chain,
            n_warmup=config.n_warmup,
            seed=config.seed,
            max_workers=config.max_workers,
            progress=progress,
            backend=config.parallel_backend,
        )

    sampler_settings = {
        'epsilon': config.epsilon,
        'priors': [config.prior_mean_mu, config.prior_mean_sd, config.prior_sd_rate],
        'layout': [config.n_chains, config.n_draws_per_chain, config.n_warmup],
        'seed': config.seed,
    }
    if cache is not None:
        posterior = cache.ensemble(cache_key("posterior", values, sampler_settings), _sample)
    else:
        posterior = _sample()

    audit.log_computation(
        "Posterior sampling",
        f"{posterior.n_chains} chains x {posterior.n_draws_per_chain} draws "
        f"({config.n_warmup} warmup); diagnostics "
        + ", ".join(f"{k}={v:.3f}" for k, v in posterior.diagnostics.items()),
    )
    high_rhat = diagnostics.flagged(posterior.diagnostics, RHAT_WARNING_LEVEL)
    if high_rhat:
        msg = (f"R-hat above {RHAT_WARNING_LEVEL} for {high_rhat}; "
               f"consider more warmup or draws.")
        audit.log_warning(msg)
        warnings.warn(msg, stacklevel=2)

    # ── Decision ──
    evaluator = build_evaluator(config)
    baseline = evaluator.expected_costs(posterior.predicted_yield)
    audit.log_computation(
        "Baseline decision",
        "; ".join(
            f"{o.action}: p_fail={o.failure_probability:.4f}, "
            f"E[cost]={o.expected_cost:,.0f}"
            for o in baseline
        ) + f" → optimal {baseline.optimal.action}",
    )

    # ── Value of information ──
    engine = ValueOfInformationEngine(
        model, evaluator, values, config.epsilon,
        n_chains=config.voi_n_chains,
        n_draws_per_chain=config.voi_n_draws_per_chain,
        n_warmup=config.voi_n_warmup,
        seed=derive_seed(config.seed, "evi_sweep"),
        max_workers=config.max_workers,
        progress=progress,
        backend=config.parallel_backend,
    )
    evpi = engine.evpi(posterior)
    audit.log_computation(
        "EVPI",
        f"prior expected cost={evpi.prior_expected_cost:,.0f}, with perfect "
        f"information={evpi.expected_cost_with_information:,.0f}, "
        f"EVPI={evpi.evpi:,.0f}",
    )

    def _sweep():
        with warnings.catch_warnings():
            # Monotonicity is checked and reported below
            warnings.simplefilter("ignore", UserWarning)
            return engine.evi_sweep(
                posterior, config.noise_levels, config.n_tests, config.max_batches,
            )

    if cache is not None:
        sweep_settings = dict(sampler_settings, voi=[
            list(config.noise_levels), config.n_tests, config.max_batches,
            config.voi_n_chains, config.voi_n_draws_per_chain, config.voi_n_warmup,
            config.threshold, config.cost_of_failure, config.costs,
        ])
        sweep = cache.sweep(cache_key("sweep", values, sweep_settings), _sweep)
    else:
        sweep = _sweep()

    for p in sweep:
        audit.log_computation(
            f"EVI at measurement std {p.measurement_precision:g} MPa",
            f"E[cost | data]={p.mean_expected_cost_with_data:,.0f} "
            f"± {p.monte_carlo_standard_error:,.0f} (MCSE, {p.n_batches} batches); "
            f"EVI={p.value_of_information:,.0f}",
        )
    violations = check_monotonic(sweep)
    if violations:
        msg = (f"EVI increases with measurement noise beyond Monte-Carlo "
               f"tolerance at {violations}; increase max_batches.")
        audit.log_warning(msg)
        warnings.warn(msg, stacklevel=2)

    # ── MOTE ──
    mote_samples = mote_vs_n_tests(
        posterior.predicted_yield, config.mote_n_range,
        config.mote_n_replicates, seed=derive_seed(config.seed, "mote"),
    )

    return AnalysisResults(
        measurements=measurements,
        config=config,
        summary=summary,
        mle=mle,
        bootstrap_ci=ci,
        prior_predictive=prior,
        posterior=posterior,
        baseline=baseline,
        evpi=evpi,
        sweep=sweep,
        mote_samples=mote_samples,
        monotonic_violations=violations,
        audit=audit,
    )
