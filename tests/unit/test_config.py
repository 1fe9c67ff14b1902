"""Tests for analysis settings resolution."""

from pathlib import Path

import pytest
import yaml

from paygap.config import (
    DEFAULT_HYPOTHESES,
    GROUP_LABELS,
    SALARY_BAND_BOUNDARIES,
    AnalysisSettings,
    ResponseFamily,
    SamplerSettings,
    TailPolicy,
)


class TestDefaults:
    """Test default settings."""

    def test_analysis_defaults(self):
        """Test the documented defaults."""
        settings = AnalysisSettings()
        assert settings.seed == 42
        assert settings.n == 500
        assert settings.family == ResponseFamily.GAUSSIAN
        assert settings.tail_policy == TailPolicy.MARK_MISSING
        assert not settings.adjust_for_confounder
        assert settings.hypotheses == DEFAULT_HYPOTHESES

    def test_sampler_defaults(self):
        """Test 4 chains of 2000 iterations with 1000 warmup."""
        sampler = SamplerSettings()
        assert (sampler.chains, sampler.cores, sampler.warmup, sampler.iterations) == (4, 4, 1000, 2000)
        assert sampler.draws == 1000

    def test_sampler_seed_follows_seed(self):
        """Test the sampler inherits the run seed when none is given."""
        assert AnalysisSettings(seed=7).sampler.seed == 7
        assert AnalysisSettings(seed=7, sampler=SamplerSettings(seed=3)).sampler.seed == 3

    def test_group_labels(self):
        """Test the four spline groups."""
        assert GROUP_LABELS == ["manresearch", "mansupport", "womanresearch", "womansupport"]

    def test_band_boundaries(self):
        """Test the default band schedule."""
        assert SALARY_BAND_BOUNDARIES[0] == 50000.0
        assert SALARY_BAND_BOUNDARIES[-1] == 200000.0
        assert len(SALARY_BAND_BOUNDARIES) == 16


class TestFromYaml:
    """Test loading settings files."""

    def test_partial_file(self, tmp_path):
        """Test missing keys keep their defaults and strings are coerced."""
        path = tmp_path / "settings.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "seed": 11,
                    "family": "skew_normal",
                    "output_dir": "runs",
                    "sampler": {"chains": 2, "iterations": 500, "warmup": 250},
                }
            )
        )

        settings = AnalysisSettings.from_yaml(path)

        assert settings.seed == 11
        assert settings.n == 500
        assert settings.family == ResponseFamily.SKEW_NORMAL
        assert settings.output_dir == Path("runs")
        assert settings.sampler.chains == 2
        assert settings.sampler.draws == 250
        assert settings.sampler.seed == 11

    def test_empty_file(self, tmp_path):
        """Test an empty file yields the defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert AnalysisSettings.from_yaml(path) == AnalysisSettings()

    def test_unknown_key(self, tmp_path):
        """Test typos are rejected rather than ignored."""
        path = tmp_path / "bad.yaml"
        path.write_text("seeds: 3\n")
        with pytest.raises(ValueError, match="Unknown settings"):
            AnalysisSettings.from_yaml(path)

    def test_invalid_family(self):
        """Test an unsupported family is rejected."""
        with pytest.raises(ValueError):
            AnalysisSettings(family="poisson")

    def test_shipped_config_loads(self):
        """Test config/paygap.yaml matches the defaults it documents."""
        path = Path(__file__).resolve().parents[2] / "config" / "paygap.yaml"
        settings = AnalysisSettings.from_yaml(path)
        assert settings.seed == 42
        assert settings.n == 500
        assert settings.sampler.chains == 4


class TestEnvironmentOverrides:
    """Test PAYGAP_* variables."""

    def test_overrides(self):
        """Test each supported variable."""
        settings = AnalysisSettings.from_env(
            {
                "PAYGAP_SEED": "5",
                "PAYGAP_N": "200",
                "PAYGAP_OUTPUT_DIR": "/tmp/paygap",
                "PAYGAP_FAMILY": "skew_normal",
                "PAYGAP_CHAINS": "2",
            }
        )
        assert settings.seed == 5
        assert settings.n == 200
        assert settings.output_dir == Path("/tmp/paygap")
        assert settings.family == ResponseFamily.SKEW_NORMAL
        assert settings.sampler.chains == 2
        assert settings.sampler.cores == 2
        assert settings.sampler.seed == 5

    def test_explicit_sampler_seed_kept(self):
        """Test an explicit sampler seed is not replaced by PAYGAP_SEED."""
        base = AnalysisSettings(sampler=SamplerSettings(seed=99))
        assert base.with_env_overrides({"PAYGAP_SEED": "5"}).sampler.seed == 99

    def test_reads_process_environment(self, monkeypatch):
        """Test os.environ is used when no mapping is passed."""
        monkeypatch.setenv("PAYGAP_N", "123")
        assert AnalysisSettings.from_env().n == 123

    def test_to_dict_is_plain(self):
        """Test to_dict contains only serialisable values."""
        data = AnalysisSettings().to_dict()
        assert data["family"] == "gaussian"
        assert data["tail_policy"] == "mark_missing"
        assert data["output_dir"] == "output"
        assert data["sampler"]["chains"] == 4
