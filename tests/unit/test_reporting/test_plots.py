"""Tests for the report figures."""

import matplotlib.pyplot as plt
import pytest

from paygap.reporting.plots import (
    plot_band_occupancy,
    plot_conditional_effects,
    plot_hypothesis,
    plot_salary_by_group,
    plot_trace,
    render_report_figures,
    save_figure,
)


class TestSaveFigure:
    """Test figure persistence."""

    def test_saves_png_and_closes(self, tmp_path):
        """Test the figure is written and released."""
        fig, ax = plt.subplots()
        ax.plot([0, 1], [0, 1])

        path = save_figure(fig, "line", tmp_path / "figs")

        assert path == tmp_path / "figs" / "line.png"
        assert path.exists()
        assert not plt.fignum_exists(fig.number)


class TestDataFigures:
    """Test figures of the simulated data."""

    def test_salary_by_group(self, banded, tmp_path):
        """Test the salary boxplot."""
        assert plot_salary_by_group(banded, tmp_path).exists()

    def test_band_occupancy(self, banded, tmp_path):
        """Test the band occupancy bar chart."""
        assert plot_band_occupancy(banded, tmp_path).name == "band_occupancy.png"


class TestFitFigures:
    """Test figures of a fitted model."""

    @pytest.fixture
    def fitted(self, spec, make_fitted):
        return make_fitted(spec)

    def test_trace(self, fitted, tmp_path):
        """Test the trace plot."""
        assert plot_trace(fitted, tmp_path).exists()

    @pytest.mark.parametrize("effect", ["gender:role_type", "level", "years_since_start:group_label"])
    def test_conditional_effects(self, fitted, effect, tmp_path):
        """Test categorical and continuous conditional effects."""
        table = fitted.conditional_effects(effect, resolution=20)
        path = plot_conditional_effects(table, effect, tmp_path)
        assert path.exists()
        assert path.name.startswith("conditional_")

    def test_hypothesis(self, fitted, tmp_path):
        """Test the hypothesis posterior plot."""
        result = fitted.hypothesis("genderwoman + genderwoman:role_typesupport = 0")
        path = plot_hypothesis(result, tmp_path)
        assert path.name == "hypothesis_genderwoman_genderwoman_role_typesupport_0.png"

    def test_render_without_fit(self, banded, tmp_path):
        """Test only the data figures are rendered before a fit."""
        paths = render_report_figures(banded, tmp_path)
        assert set(paths) == {"salary_by_group", "band_occupancy"}
        assert all(p.parent == tmp_path / "figures" for p in paths.values())
