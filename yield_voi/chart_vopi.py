"""
Value of perfect information jitter plot.

Each point is one posterior-predictive strength treated as revealed:
x is the strength, y the cost of the action chosen once it is known
(jittered vertically so coincident costs stay visible), coloured by
that action.  Horizontal lines mark the expected cost of deciding now
and the mean cost with perfect information; their gap is the EVPI.
"""

import numpy as np
from matplotlib.figure import Figure

from .constants import ACTION_LABELS, ACTIONS, PLOT_PALETTE
from .data_model import EVPIResult
from .random_stream import RandomStream


def render_vopi(
    fig: Figure,
    evpi: EVPIResult,
    *,
    units: str = "MPa",
    jitter_fraction: float = 0.02,
    max_points: int = 4000,
) -> None:
    """Render the EVPI jitter plot on *fig*."""
    fig.clf()
    ax = fig.add_subplot(111)
    colors = PLOT_PALETTE['action_colors']

    samples = evpi.samples
    if not samples:
        ax.text(0.5, 0.5, 'No samples',
                transform=ax.transAxes, ha='center', va='center')
        return
    step = max(1, int(np.ceil(len(samples) / max_points)))
    shown = samples[::step]

    x = np.array([s.hypothetical_measurement for s in shown])
    y = np.array([s.resulting_expected_cost for s in shown])
    span = max(float(np.ptp(y)), evpi.prior_expected_cost, 1.0)
    # Fixed seed: the jitter is cosmetic and must not change between renders
    y_jit = y + RandomStream(0).normal(0.0, jitter_fraction * span, size=len(y))
    actions = [s.chosen_action for s in shown]

    for action in ACTIONS:
        sel = np.array([a == action for a in actions])
        if not np.any(sel):
            continue
        ax.scatter(
            x[sel], y_jit[sel], c=colors[action], s=8, alpha=0.6,
            edgecolors='none', zorder=3, label=ACTION_LABELS[action],
        )

    ax.axhline(
        evpi.prior_expected_cost, color=PLOT_PALETTE['baseline_line'],
        linewidth=1.4, linestyle='--', zorder=4,
        label=f"Decide now ({ACTION_LABELS.get(evpi.prior_optimal_action, '')}): "
              f"{evpi.prior_expected_cost:,.0f}",
    )
    ax.axhline(
        evpi.expected_cost_with_information, color=PLOT_PALETTE['mean_line'],
        linewidth=1.4, linestyle='-', zorder=4,
        label=f"Perfect information: {evpi.expected_cost_with_information:,.0f}",
    )

    ax.set_xlabel(f"Revealed yield strength ({units})", fontsize=8)
    ax.set_ylabel("Cost of chosen action", fontsize=8)
    ax.set_title(f"Value of perfect information: EVPI = {evpi.evpi:,.0f}",
                 fontsize=10, fontweight='bold')
    ax.grid(linewidth=0.4, alpha=0.5)
    ax.legend(fontsize=6, framealpha=0.9, markerscale=2.0)
    fig.tight_layout(pad=1.5)
