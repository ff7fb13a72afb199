"""Tests for settings loading."""

import json

import pytest
from pydantic import ValidationError

from vibecheck.config import DailyConfig, load_config


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_when_missing(self, tmp_path):
        """A missing or absent file gives the shipped defaults."""
        assert load_config(None) == DailyConfig()
        config = load_config(tmp_path / "missing.json")
        assert config.queue_size == 10
        assert config.playlist_min_score == 7
        assert config.bayes_prior_strength == 3
        assert config.default_global_mean == 6.5
        assert config.next_queue_hour == 10

    def test_overrides(self, tmp_path):
        """Values in the file override the defaults."""
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"queue_size": 5, "timezone": "Europe/Berlin"}))
        config = load_config(path)
        assert config.queue_size == 5
        assert config.timezone == "Europe/Berlin"
        assert config.top_artists == 7

    def test_unknown_key_rejected(self, tmp_path):
        """Typos in the settings file are errors."""
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"queue_sise": 5}))
        with pytest.raises(ValidationError):
            load_config(path)

    def test_out_of_range_rejected(self):
        """Settings are range-checked."""
        with pytest.raises(ValidationError):
            DailyConfig(playlist_min_score=11)
        with pytest.raises(ValidationError):
            DailyConfig(seed_artist_count=6)
