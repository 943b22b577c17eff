"""
MOTE characteristic value against number of tests.

Scatter of simulated MOTE values for each series length, with the
median per length and the design threshold for reference.
"""

from typing import Optional, Sequence

import numpy as np
from matplotlib.figure import Figure

from .constants import PLOT_PALETTE
from .data_model import MoteSample
from .random_stream import RandomStream


def render_mote(
    fig: Figure,
    samples: Sequence[MoteSample],
    *,
    threshold: Optional[float] = None,
    units: str = "MPa",
) -> None:
    """Render the MOTE-vs-n_tests scatter on *fig*."""
    fig.clf()
    ax = fig.add_subplot(111)
    if not samples:
        ax.text(0.5, 0.5, 'No MOTE samples',
                transform=ax.transAxes, ha='center', va='center')
        return

    n = np.array([s.n_tests for s in samples], dtype=float)
    v = np.array([s.mote_value for s in samples])
    jitter = RandomStream(0).uniform(-0.15, 0.15, size=len(n))
    ax.scatter(n + jitter, v, s=6, alpha=0.35, color=PLOT_PALETTE['posterior'],
               edgecolors='none', zorder=3, label='Simulated MOTE')

    lengths = np.unique(n)
    medians = [float(np.median(v[n == k])) for k in lengths]
    ax.plot(lengths, medians, '-o', color=PLOT_PALETTE['primary'],
            markersize=4, linewidth=1.2, zorder=4, label='Median')

    if threshold is not None:
        ax.axhline(threshold, color=PLOT_PALETTE['threshold'], linewidth=1.4,
                   linestyle='--', zorder=2, label=f"Threshold {threshold:g} {units}")

    ax.set_xticks(lengths)
    ax.set_xlabel("Number of tests", fontsize=8)
    ax.set_ylabel(f"MOTE characteristic value ({units})", fontsize=8)
    ax.set_title("MOTE vs number of tests", fontsize=10, fontweight='bold')
    ax.grid(linewidth=0.4, alpha=0.5)
    ax.legend(fontsize=6, framealpha=0.9)
    fig.tight_layout(pad=1.5)
