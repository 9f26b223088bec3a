"""Tests for configuration loading."""

import pytest

from rgpv_results.config.settings import DEFAULT_BASE_URL, ScraperConfig, load_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove RGPV_* variables and keep .env files out of the way."""
    import os

    for name in list(os.environ):
        if name.startswith("RGPV_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr("rgpv_results.config.settings.load_dotenv", lambda: False)


class TestScraperConfig:
    """Test suite for ScraperConfig."""

    def test_defaults(self):
        config = ScraperConfig()

        assert config.base_url == DEFAULT_BASE_URL
        assert config.program_value == "24"
        assert config.concurrency == 12
        assert config.ocr_concurrency == 2
        assert config.max_retries == 3
        assert config.max_samples == 7
        assert config.early_stop_votes == 3

    def test_roll_numbers_are_zero_padded(self):
        config = ScraperConfig(prefix="0818CS23", start="998", end="1001")

        assert config.roll_numbers() == [
            "0818CS230998",
            "0818CS230999",
            "0818CS231000",
            "0818CS231001",
        ]

    def test_empty_range(self):
        assert ScraperConfig(start="1005", end="1001").roll_numbers() == []

    def test_with_overrides_ignores_none(self):
        config = ScraperConfig().with_overrides(concurrency=None, semester="5")

        assert config.concurrency == 12
        assert config.semester == "5"

    def test_with_overrides_rejects_unknown_fields(self):
        with pytest.raises(TypeError):
            ScraperConfig().with_overrides(threads=4)


class TestLoadConfig:
    """Test suite for load_config."""

    def test_reads_environment(self, clean_env, monkeypatch):
        monkeypatch.setenv("RGPV_PREFIX", "0818IT23")
        monkeypatch.setenv("RGPV_CONCURRENCY", "20")
        monkeypatch.setenv("RGPV_SAMPLE_DELAY", "0.5")
        monkeypatch.setenv("RGPV_FORCE", "yes")
        monkeypatch.setenv("RGPV_STOP_ON_OUTAGE", "false")

        config = load_config()

        assert config.prefix == "0818IT23"
        assert config.concurrency == 20
        assert config.sample_delay == 0.5
        assert config.force_reprocess is True
        assert config.stop_on_service_unavailable is False
        assert config.debug_dir is None

    def test_overrides_win_over_environment(self, clean_env, monkeypatch):
        monkeypatch.setenv("RGPV_SEMESTER", "4")

        config = load_config(semester="6", prefix=None)

        assert config.semester == "6"
        assert config.prefix == "0818CS23"
