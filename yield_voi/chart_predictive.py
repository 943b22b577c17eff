"""
Predictive-strength histograms.

``render_prior_predictive`` shows the yield strengths implied by the
priors alone; ``render_posterior_vs_prior`` overlays the posterior
predictive on it, with the measurements as a rug and the design
threshold as a vertical line.
"""

from typing import Optional

import numpy as np
from matplotlib.figure import Figure

from .constants import EXPORT_BG_COLOR, EXPORT_TEXT_COLOR, PLOT_PALETTE
from .data_model import PosteriorEnsemble, PriorPredictive


def _n_bins(n: int) -> int:
    # Sturges' rule, kept between 10 and 60
    return min(60, max(10, int(np.ceil(np.log2(max(n, 1)) + 1)) * 2))


def _threshold_line(ax, threshold: Optional[float], units: str) -> None:
    if threshold is None:
        return
    ax.axvline(
        threshold, color=PLOT_PALETTE['threshold'], linewidth=1.5,
        linestyle='--', zorder=4, label=f"Threshold {threshold:g} {units}",
    )


def render_prior_predictive(
    fig: Figure,
    prior: PriorPredictive,
    *,
    threshold: Optional[float] = None,
    units: str = "MPa",
) -> None:
    """Histogram of prior-predictive yield strengths on *fig*."""
    fig.clf()
    ax = fig.add_subplot(111)
    values = np.asarray(prior.predicted_yield)
    if values.size == 0:
        ax.text(0.5, 0.5, 'No prior draws',
                transform=ax.transAxes, ha='center', va='center')
        return

    ax.hist(values, bins=_n_bins(values.size), color=PLOT_PALETTE['prior'],
            edgecolor='white', linewidth=0.5, zorder=3)
    _threshold_line(ax, threshold, units)

    stats_text = (
        f"Draws: {values.size}\n"
        f"Median: {np.median(values):.1f} {units}\n"
        f"5–95%: {np.percentile(values, 5):.1f}–{np.percentile(values, 95):.1f}"
    )
    ax.text(
        0.98, 0.95, stats_text,
        transform=ax.transAxes, ha='right', va='top',
        fontsize=6.5, family='monospace', color=EXPORT_TEXT_COLOR,
        bbox=dict(boxstyle='round,pad=0.4', facecolor=EXPORT_BG_COLOR,
                  edgecolor='#999999', alpha=0.9),
    )
    ax.set_xlabel(f"Yield strength ({units})", fontsize=8)
    ax.set_ylabel("Count", fontsize=8)
    ax.set_title("Prior predictive yield strength", fontsize=10, fontweight='bold')
    if threshold is not None:
        ax.legend(fontsize=6, framealpha=0.9)
    ax.grid(axis='y', linewidth=0.4, alpha=0.5)
    fig.tight_layout(pad=1.5)


def render_posterior_vs_prior(
    fig: Figure,
    posterior: PosteriorEnsemble,
    prior: PriorPredictive,
    *,
    measurements=None,
    threshold: Optional[float] = None,
    units: str = "MPa",
) -> None:
    """Overlaid density histograms of prior and posterior predictive."""
    fig.clf()
    ax = fig.add_subplot(111)
    post = np.asarray(posterior.predicted_yield)
    pri = np.asarray(prior.predicted_yield)

    lo = float(min(np.percentile(pri, 0.5), post.min()))
    hi = float(max(np.percentile(pri, 99.5), post.max()))
    bins = np.linspace(lo, hi, _n_bins(len(post)) + 1)

    ax.hist(pri, bins=bins, density=True, color=PLOT_PALETTE['prior'],
            alpha=0.6, edgecolor='white', linewidth=0.4, zorder=2,
            label='Prior predictive')
    ax.hist(post, bins=bins, density=True, color=PLOT_PALETTE['posterior'],
            alpha=0.75, edgecolor='white', linewidth=0.4, zorder=3,
            label='Posterior predictive')

    if measurements is not None and len(measurements):
        ax.plot(measurements, np.zeros(len(measurements)), '|',
                color=PLOT_PALETTE['primary'], markersize=12, zorder=5,
                label='Measurements')
    _threshold_line(ax, threshold, units)

    ax.set_xlabel(f"Yield strength ({units})", fontsize=8)
    ax.set_ylabel("Density", fontsize=8)
    ax.set_title("Posterior vs prior predictive", fontsize=10, fontweight='bold')
    ax.legend(fontsize=6, framealpha=0.9)
    ax.grid(axis='y', linewidth=0.4, alpha=0.5)
    fig.tight_layout(pad=1.5)
