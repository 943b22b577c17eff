"""
Matplotlib report theme for the Yield Strength VoI Analyzer.
"""

import matplotlib as mpl

from .constants import PLOT_STYLE_LIGHT


def apply_plot_style(style_dict: dict = PLOT_STYLE_LIGHT) -> None:
    """Apply a style dictionary to matplotlib rcParams.

    Parameters
    ----------
    style_dict : dict
        Defaults to ``PLOT_STYLE_LIGHT``.
    """
    for key, value in style_dict.items():
        mpl.rcParams[key] = value
