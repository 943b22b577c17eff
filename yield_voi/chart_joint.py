"""
Joint posterior scatter of population mean and std, coloured by chain.
"""

import numpy as np
from matplotlib.figure import Figure

from .constants import PLOT_PALETTE
from .data_model import PosteriorEnsemble


def render_joint(
    fig: Figure,
    posterior: PosteriorEnsemble,
    *,
    units: str = "MPa",
    max_points: int = 4000,
) -> None:
    """Render a (mu, sigma) scatter on *fig*.

    At most *max_points* draws are shown, thinned evenly so every
    chain keeps its share.
    """
    fig.clf()
    ax = fig.add_subplot(111)
    cycle = PLOT_PALETTE['chain_cycle']

    n = len(posterior)
    step = max(1, int(np.ceil(n / max_points)))
    chain_ids = np.asarray(posterior.chain_id)[::step]
    mu = np.asarray(posterior.mean)[::step]
    sigma = np.asarray(posterior.std)[::step]

    for c in np.unique(chain_ids):
        sel = chain_ids == c
        ax.scatter(
            mu[sel], sigma[sel],
            c=cycle[int(c) % len(cycle)], s=6, alpha=0.5,
            edgecolors='none', zorder=3, label=f"Chain {int(c) + 1}",
        )

    ax.set_xlabel(f"Population mean μ ({units})", fontsize=8)
    ax.set_ylabel(f"Population std σ ({units})", fontsize=8)
    ax.set_title("Joint posterior of (μ, σ)", fontsize=10, fontweight='bold')
    ax.grid(linewidth=0.4, alpha=0.5)
    ax.legend(fontsize=6, framealpha=0.9, markerscale=2.0)
    fig.tight_layout(pad=1.5)
