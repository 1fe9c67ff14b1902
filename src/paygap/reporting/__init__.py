"""Report figures."""

from .plots import render_report_figures, save_figure

__all__ = ["render_report_figures", "save_figure"]
