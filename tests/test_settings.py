"""
Tests for settings module.

Tests settings validation, attribute parsing and environment fallback.
"""
from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from s3_remote_cache.settings import (
    DEFAULT_TOUCH_REFRESH, Settings, parse_duration, settings_from_attrs
)
from s3_remote_cache.storage.errors import ConfigError

BASE = {"bucket": "b", "region": "eu-west-1"}


class TestSettings:
    """Test Settings dataclass validation."""

    def test_minimal_valid_settings(self):
        """Test creating settings with minimal required values."""
        settings = Settings(bucket="b", region="r")
        assert settings.prefix == ""
        assert settings.manifests_prefix == "manifests/"
        assert settings.blobs_prefix == "blobs/"
        assert settings.names == ("buildkit",)
        assert settings.touch_refresh == timedelta(hours=24)
        assert settings.upload_parallelism == 4
        assert settings.use_path_style is False
        assert settings.has_static_credentials is False

    @pytest.mark.parametrize("kwargs", [
        {"bucket": "", "region": "r"},
        {"bucket": "b", "region": ""},
        {"bucket": "b", "region": "r", "names": ()},
        {"bucket": "b", "region": "r", "upload_parallelism": 0},
        {"bucket": "b", "region": "r", "touch_refresh": timedelta(seconds=-1)},
    ])
    def test_invalid_settings_rejected(self, kwargs):
        with pytest.raises(ConfigError):
            Settings(**kwargs)

    def test_settings_are_frozen(self):
        settings = Settings(bucket="b", region="r")
        with pytest.raises(Exception):
            settings.bucket = "other"

    def test_credentials_not_in_repr_or_redacted(self):
        settings = Settings(bucket="b", region="r", access_key_id="AKIA", secret_access_key="s3cr3t")
        assert "s3cr3t" not in repr(settings)
        redacted = settings.redacted()
        assert "s3cr3t" not in str(redacted)
        assert redacted["static_credentials"] == "set"

    def test_static_credentials_need_key_and_secret(self):
        assert not Settings(bucket="b", region="r", access_key_id="AKIA").has_static_credentials
        assert Settings(bucket="b", region="r", access_key_id="AKIA",
                        secret_access_key="x").has_static_credentials


class TestParseDuration:
    """Test duration string parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("24h", timedelta(hours=24)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("90s", timedelta(seconds=90)),
        ("500ms", timedelta(milliseconds=500)),
        ("1.5h", timedelta(minutes=90)),
        ("0", timedelta(0)),
        ("+2m", timedelta(minutes=2)),
        ("-1s", timedelta(seconds=-1)),
    ])
    def test_valid_durations(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "10", "5d", "1h x", "-", "h"])
    def test_invalid_durations(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestSettingsFromAttrs:
    """Test building settings from attribute maps."""

    def test_defaults(self):
        settings = settings_from_attrs(BASE, env={})
        assert settings.bucket == "b"
        assert settings.region == "eu-west-1"
        assert settings.names == ("buildkit",)
        assert settings.touch_refresh == DEFAULT_TOUCH_REFRESH

    def test_env_fallback_for_bucket_and_region(self):
        settings = settings_from_attrs({}, env={"AWS_BUCKET": "env-bucket", "AWS_REGION": "env-region"})
        assert settings.bucket == "env-bucket"
        assert settings.region == "env-region"

    def test_attrs_win_over_env(self):
        settings = settings_from_attrs(BASE, env={"AWS_BUCKET": "env-bucket", "AWS_REGION": "env-region"})
        assert settings.bucket == "b"

    def test_env_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("AWS_BUCKET", "from-os")
        monkeypatch.setenv("AWS_REGION", "us-east-2")
        assert settings_from_attrs({}).bucket == "from-os"

    def test_missing_bucket(self):
        with pytest.raises(ConfigError, match="bucket"):
            settings_from_attrs({"region": "r"}, env={})

    def test_missing_region(self):
        with pytest.raises(ConfigError, match="region"):
            settings_from_attrs({"bucket": "b"}, env={})

    def test_names_split_on_semicolon(self):
        settings = settings_from_attrs({**BASE, "name": "main;pr-12"}, env={})
        assert settings.names == ("main", "pr-12")

    def test_layout_attributes(self):
        settings = settings_from_attrs(
            {**BASE, "prefix": "team/", "manifests_prefix": "m/", "blobs_prefix": "bl/"}, env={}
        )
        assert (settings.prefix, settings.manifests_prefix, settings.blobs_prefix) == ("team/", "m/", "bl/")

    def test_valid_touch_refresh(self):
        settings = settings_from_attrs({**BASE, "touch_refresh": "1h"}, env={})
        assert settings.touch_refresh == timedelta(hours=1)

    @pytest.mark.parametrize("value", ["soon", "-1h"])
    def test_invalid_touch_refresh_keeps_default(self, value, caplog):
        with caplog.at_level(logging.WARNING, logger="s3_remote_cache.settings"):
            settings = settings_from_attrs({**BASE, "touch_refresh": value}, env={})
        assert settings.touch_refresh == DEFAULT_TOUCH_REFRESH
        assert "touch_refresh" in caplog.text

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("1", True), ("T", True), ("false", False), ("0", False), ("maybe", False),
    ])
    def test_use_path_style(self, value, expected):
        settings = settings_from_attrs({**BASE, "use_path_style": value}, env={})
        assert settings.use_path_style is expected

    def test_upload_parallelism(self):
        settings = settings_from_attrs({**BASE, "upload_parallelism": "8"}, env={})
        assert settings.upload_parallelism == 8

    @pytest.mark.parametrize("value", ["0", "-2", "many", ""])
    def test_invalid_upload_parallelism_is_an_error(self, value):
        with pytest.raises(ConfigError, match="upload_parallelism"):
            settings_from_attrs({**BASE, "upload_parallelism": value}, env={})

    def test_credentials_and_endpoint(self):
        settings = settings_from_attrs({
            **BASE,
            "endpoint_url": "http://minio:9000",
            "access_key_id": "AKIA",
            "secret_access_key": "secret",
            "session_token": "",
        }, env={})
        assert settings.endpoint_url == "http://minio:9000"
        assert settings.has_static_credentials
        assert settings.session_token is None
