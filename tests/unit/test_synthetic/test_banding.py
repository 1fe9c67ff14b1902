"""Tests for Salary Banding.

Tests band lookup at and between boundaries, the open tail bands under both
tail policies, the measurement-error columns, and the derived regressors.
"""

import math

import numpy as np
import pandas as pd
import pytest

from paygap.config import GROUP_LABELS, TailPolicy
from paygap.exceptions import BandingError, UnboundedBandError
from paygap.synthetic.banding import (
    BAND_COLUMNS,
    SalaryBands,
    band_midpoint,
    band_occupancy,
    band_salaries,
    band_sd,
    locate_bands,
    standardize,
)


class TestSalaryBands:
    """Test the band schedule and single-salary lookup."""

    def test_default_schedule(self):
        """Test the default boundaries run 50k..200k in 10k steps."""
        bands = SalaryBands()
        assert bands.lowest == 50000.0
        assert bands.highest == 200000.0
        assert bands.n_bounded == 15

    def test_regular_matches_default(self):
        """Test regular() builds the same schedule."""
        assert SalaryBands.regular(50000, 200000, 10000) == SalaryBands()

    def test_salary_inside_band(self):
        """Test 55,000 falls in [50,000, 60,000)."""
        lower, upper = SalaryBands().locate(55000)
        assert (lower, upper) == (50000.0, 60000.0)
        assert band_midpoint(lower, upper) == 55000.0
        assert band_sd(lower, upper) == 2500.0

    def test_boundary_belongs_to_upper_band(self):
        """Test bands are closed on the left and open on the right."""
        assert SalaryBands().locate(60000) == (60000.0, 70000.0)
        assert SalaryBands().locate(59999.99) == (50000.0, 60000.0)

    def test_tails(self):
        """Test salaries outside the finite bands get an infinite limit."""
        bands = SalaryBands()
        assert bands.locate(49999) == (-math.inf, 50000.0)
        assert bands.locate(200000) == (200000.0, math.inf)
        assert not bands.is_bounded(250000)
        assert bands.is_bounded(199999)

    def test_missing_salary_raises(self):
        """Test NaN cannot be banded."""
        with pytest.raises(BandingError):
            SalaryBands().locate(float("nan"))

    @pytest.mark.parametrize(
        "boundaries",
        [(), (50000, 50000), (60000, 50000), (50000, float("inf"))],
    )
    def test_invalid_boundaries(self, boundaries):
        """Test boundaries must be non-empty, finite and strictly ascending."""
        with pytest.raises(BandingError):
            SalaryBands(boundaries)

    def test_labels_cover_tails(self):
        """Test one label per band including both tails."""
        labels = SalaryBands((10, 20)).labels()
        assert labels == ["<10", "10-20", ">=20"]

    def test_locate_bands_matches_scalar(self):
        """Test the vector lookup agrees with locate()."""
        bands = SalaryBands()
        salaries = [10.0, 50000.0, 123456.0, 200000.0, 300000.0]
        lower, upper = locate_bands(salaries, bands)
        assert list(zip(lower, upper)) == [bands.locate(s) for s in salaries]

    def test_every_boundary_opens_its_band(self):
        """Test each boundary is the lower limit of the band it starts."""
        bands = SalaryBands((10.0, 20.0, 30.0))
        assert [bands.locate(b) for b in bands.boundaries] == [(10.0, 20.0), (20.0, 30.0), (30.0, math.inf)]
        assert all(type(limit) is float for limit in bands.locate(15.0))

    def test_standardize(self):
        """Test the z-score uses the sample standard deviation."""
        z = standardize(pd.Series([1.0, 2.0, 3.0]))
        assert list(z) == [-1.0, 0.0, 1.0]


class TestBandSalaries:
    """Test the banded table."""

    def test_adds_band_columns(self, banded):
        """Test every band column is present."""
        for col in BAND_COLUMNS:
            assert col in banded.columns, f"Missing column: {col}"

    def test_input_not_modified(self, employees):
        """Test band_salaries returns a new frame."""
        before = employees.copy()
        band_salaries(employees)
        pd.testing.assert_frame_equal(employees, before)

    def test_salary_within_its_band(self, banded):
        """Test bounded rows satisfy band_min <= salary < band_max."""
        rows = banded[banded["band_is_bounded"]]
        assert (rows["salary_band_min"] <= rows["salary"]).all()
        assert (rows["salary"] < rows["salary_band_max"]).all()

    def test_mid_and_sd(self, banded):
        """Test midpoint and sd are derived from the band limits."""
        rows = banded[banded["band_is_bounded"]]
        assert np.allclose(rows["mid_estimate"], (rows["salary_band_min"] + rows["salary_band_max"]) / 2)
        assert np.allclose(rows["sd_estimate"], 2500.0)

    def test_banding_midpoint_is_idempotent(self, banded):
        """Test banding the midpoint again yields the same band."""
        rows = banded[banded["band_is_bounded"]]
        lower, upper = locate_bands(rows["mid_estimate"], SalaryBands())
        assert np.array_equal(lower, rows["salary_band_min"].to_numpy())
        assert np.array_equal(upper, rows["salary_band_max"].to_numpy())

    def test_percentage_std_standardized(self, banded):
        """Test percentage_std has mean 0 and sample sd 1."""
        assert banded["percentage_std"].mean() == pytest.approx(0.0, abs=1e-9)
        assert banded["percentage_std"].std() == pytest.approx(1.0)

    def test_group_label_partitions_rows(self, banded):
        """Test group_label takes exactly four values."""
        assert set(banded["group_label"]) == set(GROUP_LABELS)
        assert (banded["group_label"] == banded["gender"] + banded["role_type"]).all()

    def test_attrs_carry_over(self, banded):
        """Test ground truth attrs survive and banding metadata is added."""
        assert banded.attrs["seed"] == 42
        assert banded.attrs["tail_policy"] == "mark_missing"
        assert banded.attrs["n_unbounded"] == int((~banded["band_is_bounded"]).sum())

    def test_missing_required_column(self, employees):
        """Test a table without percentage_fte is rejected."""
        with pytest.raises(BandingError, match="percentage_fte"):
            band_salaries(employees.drop(columns="percentage_fte"))

    def test_missing_salary_rejected(self, small_frame):
        """Test a NaN salary is an error under either policy."""
        frame = small_frame.copy()
        frame.loc[0, "salary"] = np.nan
        with pytest.raises(BandingError):
            band_salaries(frame)


class TestTailPolicy:
    """Test salaries in the open tail bands."""

    def test_mark_missing(self, small_frame):
        """Test tail rows keep NaN band columns and are flagged."""
        out = band_salaries(small_frame, tail_policy=TailPolicy.MARK_MISSING)

        assert list(out["band_is_bounded"]) == [True, True, False, False]
        tails = out[~out["band_is_bounded"]]
        assert tails[["salary_band_min", "salary_band_max", "mid_estimate", "sd_estimate"]].isna().all().all()
        assert out.loc[0, "mid_estimate"] == 55000.0
        assert out.attrs["n_unbounded"] == 2

    def test_mark_missing_logs_warning(self, small_frame, caplog):
        """Test dropping tail rows is reported."""
        with caplog.at_level("WARNING", logger="paygap.synthetic.banding"):
            band_salaries(small_frame)
        assert "open tail band" in caplog.text

    def test_reject(self, small_frame):
        """Test the reject policy raises with the count of tail rows."""
        with pytest.raises(UnboundedBandError) as exc_info:
            band_salaries(small_frame, tail_policy="reject")

        assert exc_info.value.n_unbounded == 2
        assert exc_info.value.lowest == 50000.0

    def test_reject_passes_when_all_bounded(self, small_frame):
        """Test the reject policy is silent when no salary is in a tail."""
        frame = small_frame.iloc[:2]
        out = band_salaries(frame, tail_policy=TailPolicy.REJECT)
        assert out["band_is_bounded"].all()

    def test_custom_bands(self, small_frame):
        """Test a wider schedule bounds every row."""
        bands = SalaryBands.regular(0, 300000, 25000)
        out = band_salaries(small_frame, bands=bands, tail_policy=TailPolicy.REJECT)
        assert out["band_is_bounded"].all()
        assert out["sd_estimate"].eq(6250.0).all()


class TestBandOccupancy:
    """Test per-band counts."""

    def test_counts_sum_to_rows(self, banded):
        """Test every salary is counted exactly once."""
        counts = band_occupancy(banded)
        assert counts.sum() == len(banded)
        assert len(counts) == SalaryBands().n_bounded + 2

    def test_boundary_counted_in_upper_band(self):
        """Test occupancy uses the same right-open convention."""
        counts = band_occupancy(pd.DataFrame({"salary": [60000.0]}))
        assert counts["60,000-70,000"] == 1
