"""
Value of information against test precision.

Point-range plot: one point per measurement-noise level with
±2 Monte-Carlo standard errors, plus the EVPI as the upper bound that
no real test can exceed.
"""

from typing import Optional, Sequence

import numpy as np
from matplotlib.figure import Figure

from .constants import PLOT_PALETTE
from .data_model import EVPIResult, VoISweepPoint


def render_voi_sweep(
    fig: Figure,
    sweep: Sequence[VoISweepPoint],
    *,
    evpi: Optional[EVPIResult] = None,
    units: str = "MPa",
    n_se: float = 2.0,
) -> None:
    """Render the EVI sweep on *fig*."""
    fig.clf()
    ax = fig.add_subplot(111)
    if not sweep:
        ax.text(0.5, 0.5, 'No sweep results',
                transform=ax.transAxes, ha='center', va='center')
        return

    points = sorted(sweep, key=lambda p: p.measurement_precision)
    x = np.array([p.measurement_precision for p in points])
    y = np.array([p.value_of_information for p in points])
    err = n_se * np.array([p.monte_carlo_standard_error for p in points])

    ax.errorbar(
        x, y, yerr=err, fmt='o', color=PLOT_PALETTE['primary'],
        ecolor=PLOT_PALETTE['primary_light'], elinewidth=1.2, capsize=3,
        markersize=5, zorder=3, label=f"EVI ± {n_se:g} MCSE",
    )
    if evpi is not None:
        ax.axhline(
            evpi.evpi, color=PLOT_PALETTE['baseline_line'], linewidth=1.2,
            linestyle='--', zorder=2, label=f"EVPI = {evpi.evpi:,.0f}",
        )
    ax.axhline(0, color=PLOT_PALETTE['zero_line'], linewidth=0.8, zorder=1)

    n_batches = points[0].n_batches
    ax.set_xlabel(f"Measurement noise std of new tests ({units})", fontsize=8)
    ax.set_ylabel("Expected value of information", fontsize=8)
    ax.set_title(f"Value of additional testing ({n_batches} simulated rounds per level)",
                 fontsize=10, fontweight='bold')
    ax.grid(linewidth=0.4, alpha=0.5)
    ax.legend(fontsize=6, framealpha=0.9)
    fig.tight_layout(pad=1.5)
