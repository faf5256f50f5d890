"""
Tests for application configuration and scrape tunables.
"""

import dataclasses

import pytest

from rentals.config import LEGACY_SLOT_OFFSETS, ScrapeConfig, get_legacy_offset


class TestSettings:
    """Test the Settings configuration class."""

    def test_settings_defaults(self):
        """Test that settings have sensible defaults."""
        from service.config import Settings

        settings = Settings(_env_file=None)

        assert settings.store_backend == "firestore"
        assert settings.timezone == "America/New_York"
        assert settings.headless is True
        assert settings.quote_batch_size == 20
        assert settings.max_capture_attempts == 3
        assert settings.log_level == "INFO"

    def test_settings_log_paths(self):
        """Test that log paths are valid."""
        from service.config import settings

        assert settings.log_dir is not None
        assert settings.log_file.name == "scraper.log"
        assert settings.log_file.parent == settings.log_dir
        assert not hasattr(settings, "data_dir")

    def test_settings_build_scrape_config(self):
        """Test that settings produce a matching ScrapeConfig."""
        from service.config import Settings

        settings = Settings(_env_file=None, retry_backoff_min_ms=0, retry_backoff_max_ms=10)
        config = settings.scrape_config()

        assert isinstance(config, ScrapeConfig)
        assert config.retry_backoff_ms == (0, 10)
        assert config.instance_delay_ms == (2000, 4000)
        assert config.batch_size == 20

    def test_settings_read_environment(self, monkeypatch):
        """Test that environment variables override defaults."""
        from service.config import Settings

        monkeypatch.setenv("STORE_BACKEND", "sql")
        monkeypatch.setenv("GRANULARITY_MINUTES", "15")

        settings = Settings(_env_file=None)

        assert settings.store_backend == "sql"
        assert settings.granularity_minutes == 15


class TestScrapeConfig:
    """Test ScrapeConfig validation."""

    def test_defaults(self):
        config = ScrapeConfig()

        assert config.min_lead_minutes == 60
        assert config.granularity_minutes == 30
        assert config.max_capture_attempts == 3
        assert config.retry_backoff_ms == (3000, 5000)
        assert config.instance_delay_ms == (2000, 4000)
        assert config.step_timeout_seconds == 60

    def test_is_immutable(self):
        config = ScrapeConfig()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.batch_size = 5

    def test_lead_shorter_than_granularity_rejected(self):
        with pytest.raises(ValueError, match="min_lead_minutes"):
            ScrapeConfig(min_lead_minutes=15, granularity_minutes=30)

    @pytest.mark.parametrize("kwargs", [
        {"granularity_minutes": 0},
        {"batch_size": 0},
        {"max_capture_attempts": 0},
        {"default_duration_hours": 0},
        {"retry_backoff_ms": (5000, 3000)},
        {"instance_delay_ms": (-1, 10)},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ScrapeConfig(**kwargs)


class TestLegacyOffsets:
    """Test the legacy slot table."""

    def test_known_slot(self):
        assert get_legacy_offset(1) == LEGACY_SLOT_OFFSETS[1] == 24

    def test_unknown_slot_defaults_to_zero(self, caplog):
        assert get_legacy_offset(99) == 0
        assert "Unknown legacy slot 99" in caplog.text
