"""Tests for the Model Specification Assembler."""

import numpy as np
import pytest

from paygap.config import ResponseFamily, SamplerSettings
from paygap.exceptions import ModelSpecificationError
from paygap.modeling.priors import Prior
from paygap.modeling.specification import assemble_model_specification
from paygap.synthetic.banding import SalaryBands, band_salaries


class TestAssembleModelSpecification:
    """Test the assembled regression."""

    def test_formula(self, spec):
        """Test the default formula."""
        assert spec.formula == (
            "mid_estimate | se(sd_estimate, sigma = TRUE) ~ gender * role_type + mo(level)"
            " + percentage_std + s(years_since_start, by = group_label)"
        )

    def test_fixed_effect_names(self, spec):
        """Test brms-style treatment-coded names."""
        assert spec.fixed_effect_names == [
            "genderwoman",
            "role_typesupport",
            "genderwoman:role_typesupport",
            "percentage_std",
        ]

    def test_excludes_unbounded_rows(self, banded):
        """Test only bounded rows reach the model."""
        spec = assemble_model_specification(banded)

        assert spec.n_obs == int(banded["band_is_bounded"].sum())
        assert spec.data["band_is_bounded"].all()
        assert np.isfinite(spec.data["mid_estimate"]).all()
        assert (spec.data["sd_estimate"] > 0).all()

    def test_exclusion_logged(self, banded, caplog):
        """Test excluded rows are reported when there are any."""
        with caplog.at_level("INFO", logger="paygap.modeling.specification"):
            spec = assemble_model_specification(banded)

        if spec.n_obs < len(banded):
            assert "unbounded salary bands" in caplog.text
        assert "Unmeasured confounder excluded" in caplog.text

    def test_confounder_excluded_by_default(self, spec):
        """Test the confounder is not a regressor unless requested."""
        assert not spec.adjusts_for_confounder
        assert "unmeasured_confounder" not in spec.formula

    def test_confounder_adjustment(self, banded):
        """Test adjust_for_confounder adds the regressor."""
        spec = assemble_model_specification(banded, adjust_for_confounder=True)

        assert spec.adjusts_for_confounder
        assert spec.fixed_effect_names[-1] == "unmeasured_confounder"
        assert "+ unmeasured_confounder +" in spec.formula

    def test_family_and_priors(self, banded):
        """Test family selection and prior overrides."""
        custom = Prior("normal", (0.0, 5000.0), "b", coef="genderwoman")
        spec = assemble_model_specification(banded, family="skew_normal", priors=[custom])

        assert spec.family == ResponseFamily.SKEW_NORMAL
        assert spec.priors.resolve("alpha").param_class == "alpha"
        assert spec.priors.resolve("b", "genderwoman") == custom

    def test_sampler_settings_carried(self, banded):
        """Test sampler settings are passed through unchanged."""
        settings = SamplerSettings(chains=2, warmup=500, iterations=1500, seed=9)
        spec = assemble_model_specification(banded, sampler=settings, version="v2")

        assert spec.sampler is settings
        assert spec.version == "v2"
        assert spec.describe()["sampler"]["seed"] == 9

    def test_describe(self, spec):
        """Test the serialisable description."""
        description = spec.describe()
        assert description["formula"] == spec.formula
        assert description["family"] == "gaussian"
        assert description["n_obs"] == spec.n_obs
        assert "normal(0, 20000), class = b" in description["priors"]

    def test_missing_columns(self, employees):
        """Test an unbanded table is rejected."""
        with pytest.raises(ModelSpecificationError, match="was the table banded"):
            assemble_model_specification(employees)

    def test_too_few_rows(self, banded):
        """Test a handful of rows cannot support the splines."""
        with pytest.raises(ModelSpecificationError, match="Need at least"):
            assemble_model_specification(banded.head(10))

    def test_spline_df_lower_bound(self, banded):
        """Test the spline needs at least a cubic basis."""
        with pytest.raises(ModelSpecificationError, match="spline_df"):
            assemble_model_specification(banded, spline_df=2)

    def test_non_positive_sd_rejected(self, banded):
        """Test a zero measurement error is rejected."""
        df = banded.copy()
        row = df.index[df["band_is_bounded"]][0]
        df.loc[row, "sd_estimate"] = 0.0

        with pytest.raises(ModelSpecificationError, match="sd_estimate"):
            assemble_model_specification(df)

    def test_input_not_modified(self, banded):
        """Test the banded table is left untouched."""
        before = banded.copy()
        assemble_model_specification(banded)
        assert banded.equals(before)

    def test_percentage_restandardized_over_modelled_rows(self, employees):
        """Test percentage_std is a z-score of the bounded rows alone."""
        banded = band_salaries(employees, SalaryBands.regular(70000, 150000, 10000))
        assert not banded["band_is_bounded"].all()

        spec = assemble_model_specification(banded)
        z = spec.data["percentage_std"]

        assert z.mean() == pytest.approx(0.0, abs=1e-12)
        assert z.std() == pytest.approx(1.0)
