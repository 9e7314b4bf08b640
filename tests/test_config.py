"""Tests for settings loading."""

from pathlib import Path

import pytest

from career_scraper.config import ScraperSettings, load_config, load_settings
from career_scraper.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "CONFIG_PATH",
        "SCRAPER_GLOBAL_TIMEOUT",
        "SCRAPER_MAX_RETRIES",
        "SCRAPER_CACHE_DIR",
        "SCRAPER_CACHE_BACKEND",
        "SCRAPER_MAX_PROFILES",
    ):
        monkeypatch.delenv(name, raising=False)


class TestScraperSettings:
    """Test settings validation."""

    def test_defaults(self):
        settings = ScraperSettings()

        assert settings.global_timeout == 60
        assert settings.max_retries == 1
        assert settings.min_content_length == 100
        assert settings.max_profiles == 1000
        assert settings.cache_backend == "file"

    def test_from_dict_flattens_sections(self):
        settings = ScraperSettings.from_dict(
            {
                "orchestrator": {"global_timeout": 30, "max_retries": 3},
                "cache": {"cache_backend": "memory"},
                "learning_enabled": False,
            }
        )

        assert settings.global_timeout == 30
        assert settings.max_retries == 3
        assert settings.cache_backend == "memory"
        assert settings.learning_enabled is False

    @pytest.mark.parametrize(
        "data",
        [
            {"orchestrator": {"global_timeout": 0}},
            {"orchestrator": {"max_retries": 0}},
            {"cache": {"cache_backend": "redis"}},
            {"profiles": {"fast_track_threshold": 150}},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ConfigurationError):
            ScraperSettings.from_dict(data)


class TestLoadSettings:
    """Test YAML loading and environment overrides."""

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "missing.yaml")) == {}
        assert load_settings(str(tmp_path / "missing.yaml")) == ScraperSettings()

    def test_yaml_sections(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "scraping:\n"
            "  orchestrator:\n"
            "    global_timeout: 45\n"
            "  batch:\n"
            "    batch_concurrency_limit: 6\n"
        )

        settings = load_settings(str(path))

        assert settings.global_timeout == 45
        assert settings.batch_concurrency_limit == 6

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("scraping:\n  profiles:\n    max_profiles: 50\n")
        monkeypatch.setenv("CONFIG_PATH", str(path))

        assert load_settings().max_profiles == 50

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("scraping:\n  orchestrator:\n    global_timeout: 45\n")
        monkeypatch.setenv("SCRAPER_GLOBAL_TIMEOUT", "15")
        monkeypatch.setenv("SCRAPER_CACHE_BACKEND", "memory")

        settings = load_settings(str(path))

        assert settings.global_timeout == 15
        assert settings.cache_backend == "memory"

    def test_invalid_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCRAPER_MAX_RETRIES", "zero")

        with pytest.raises(ConfigurationError):
            load_settings(str(tmp_path / "missing.yaml"))

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scraping: [unclosed\n")

        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_packaged_config_file(self):
        settings = load_settings(str(Path(__file__).parent.parent / "config" / "config.yaml"))

        assert settings.global_timeout == 60
        assert settings.cache_dir == "data/cache"
