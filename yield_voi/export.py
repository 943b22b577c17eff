"""
Export utilities for the Yield Strength VoI Analyzer.

Builds the report figures from an ``AnalysisResults`` and writes them
as PNGs, together with the report tables (CSV) and the audit log.
Figures are created with ``matplotlib.figure.Figure`` directly, never
through ``pyplot``, so export works without a display and leaves no
global figure state behind.
"""

import os
from typing import Dict, List

from matplotlib.figure import Figure

from .analysis import build_evaluator
from .chart_joint import render_joint
from .chart_mote import render_mote
from .chart_predictive import render_posterior_vs_prior, render_prior_predictive
from .chart_voi_sweep import render_voi_sweep
from .chart_vopi import render_vopi
from .constants import EXPORT_DPI, EXPORT_WIDTH_INCHES
from .tables import (
    decision_inputs_table, decision_table, posterior_summary_table,
    raw_data_table, voi_table, write_table_csv,
)
from .theme import apply_plot_style


def build_figures(results) -> Dict[str, Figure]:
    """Render every report figure of *results*; ``{stem: Figure}``."""
    apply_plot_style()
    threshold = results.config.threshold
    figures: Dict[str, Figure] = {}

    def _new(name: str) -> Figure:
        fig = Figure(figsize=(EXPORT_WIDTH_INCHES, 4.0))
        figures[name] = fig
        return fig

    render_mote(_new("mote_vs_n_tests"), results.mote_samples, threshold=threshold)
    render_prior_predictive(_new("prior_predictive"), results.prior_predictive,
                            threshold=threshold)
    render_posterior_vs_prior(
        _new("posterior_vs_prior_predictive"), results.posterior,
        results.prior_predictive, measurements=results.measurements.values,
        threshold=threshold,
    )
    render_joint(_new("joint_mu_sigma"), results.posterior)
    render_vopi(_new("value_of_perfect_information"), results.evpi)
    render_voi_sweep(_new("value_of_information_sweep"), results.sweep,
                     evpi=results.evpi)
    return figures


def export_png(
    fig: Figure,
    filepath: str,
    *,
    dpi: int = EXPORT_DPI,
    width_inches: float = EXPORT_WIDTH_INCHES,
) -> None:
    """Export figure as PNG at *width_inches*, restoring its size after.

    Parameters
    ----------
    fig : matplotlib.figure.Figure
    filepath : str
        Output file path (should end with ``.png``).
    dpi : int
        Export resolution.
    width_inches : float
        Figure width in inches.
    """
    current_w = fig.get_figwidth()
    current_h = fig.get_figheight()
    try:
        scale = width_inches / current_w if current_w > 0 else 1.0
        fig.set_size_inches(width_inches, current_h * scale)
        fig.savefig(
            filepath,
            dpi=dpi,
            bbox_inches='tight',
            facecolor=fig.get_facecolor(),
            edgecolor='none',
            pad_inches=0.1,
        )
    finally:
        fig.set_size_inches(current_w, current_h)


def _safe_name(name: str) -> str:
    return "".join(
        c if c.isalnum() or c in '-_ ' else '_'
        for c in name
    ).strip().replace(' ', '_')


def export_all_charts(
    figures: dict,
    output_dir: str,
    *,
    dpi: int = EXPORT_DPI,
    width_inches: float = EXPORT_WIDTH_INCHES,
) -> List[str]:
    """Export multiple figures as PNGs to *output_dir*.

    Parameters
    ----------
    figures : dict
        ``{filename_stem: Figure}``

    Returns
    -------
    list of str
        Paths of exported files.
    """
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for name, fig in figures.items():
        filepath = os.path.join(output_dir, f"{_safe_name(name)}.png")
        export_png(fig, filepath, dpi=dpi, width_inches=width_inches)
        paths.append(filepath)
    return paths


def export_tables(results, output_dir: str) -> List[str]:
    """Write the report tables of *results* as CSV files."""
    tables = {
        "raw_data": raw_data_table(results.measurements),
        "decision_inputs": decision_inputs_table(build_evaluator(results.config)),
        "decision": decision_table(results.baseline),
        "posterior_summary": posterior_summary_table(results.posterior),
        "value_of_information": voi_table(results.evpi, results.sweep),
    }
    return [
        write_table_csv(table, os.path.join(output_dir, f"{name}.csv"))
        for name, table in tables.items()
    ]


def export_audit_log(results, output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "audit_log.txt")
    with open(path, 'w', encoding='utf-8') as fh:
        fh.write(results.audit.export_text())
    return path
