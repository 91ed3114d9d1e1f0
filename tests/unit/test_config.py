"""
Unit tests for server configuration.
"""

import dataclasses
import os

import pytest

from staticserver.config import CacheStrategy, ServerConfig


class TestServerConfig:
    """Tests for ServerConfig defaults and validation."""

    def test_defaults(self):
        """Test the documented defaults."""
        config = ServerConfig()

        assert config.port == 8080
        assert config.root_directory == os.getcwd()
        assert config.cache_strategy is CacheStrategy.ETAG
        assert config.compression is True
        config.validate()

    def test_frozen(self):
        """Test that configuration cannot change after construction."""
        config = ServerConfig()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.port = 9000

    def test_root_made_absolute(self, site, monkeypatch):
        """Test that a relative root is resolved once, up front."""
        monkeypatch.chdir(site)

        assert ServerConfig(root_directory="sub").root_directory == os.path.join(os.getcwd(), "sub")

    def test_cache_strategy_from_string(self):
        """Test that strategy names are accepted."""
        config = ServerConfig(cache_strategy="last-modified")

        assert config.cache_strategy is CacheStrategy.LAST_MODIFIED

    def test_port_zero_allowed(self):
        """Test that port 0 (OS-assigned) is valid."""
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("changes", [
        {"port": -1},
        {"port": 65536},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"buffer_size": 10},
        {"chunk_size": 0},
        {"timeout": 0},
        {"log_format": "xml"},
    ])
    def test_invalid_values(self, changes):
        """Test that validate() rejects bad values."""
        with pytest.raises(ValueError):
            ServerConfig(**changes).validate()

    def test_missing_root(self, tmp_path):
        """Test that a non-existent root directory is rejected."""
        with pytest.raises(ValueError):
            ServerConfig(root_directory=str(tmp_path / "nope")).validate()

    def test_missing_template(self, tmp_path):
        """Test that a configured template must exist."""
        with pytest.raises(ValueError):
            ServerConfig(template_path=str(tmp_path / "nope.html")).validate()


class TestFromEnv:
    """Tests for environment-based configuration."""

    def test_reads_environment(self, site, monkeypatch):
        """Test the HTTP_* variables."""
        monkeypatch.setenv("HTTP_PORT", "3000")
        monkeypatch.setenv("HTTP_ROOT_DIR", str(site))
        monkeypatch.setenv("HTTP_CACHE_STRATEGY", "last-modified")
        monkeypatch.setenv("HTTP_COMPRESSION", "false")
        monkeypatch.setenv("HTTP_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.port == 3000
        assert config.root_directory == str(site)
        assert config.cache_strategy is CacheStrategy.LAST_MODIFIED
        assert config.compression is False
        assert config.log_format == "json"

    def test_overrides_win(self, monkeypatch):
        """Test that keyword overrides beat the environment."""
        monkeypatch.setenv("HTTP_PORT", "3000")

        assert ServerConfig.from_env(port=4000).port == 4000

    def test_none_overrides_ignored(self, monkeypatch):
        """Test that unset CLI flags fall through to the environment."""
        monkeypatch.setenv("HTTP_PORT", "3000")

        assert ServerConfig.from_env(port=None).port == 3000

    def test_small_worker_count(self, monkeypatch):
        """Test that a small HTTP_WORKERS still validates."""
        monkeypatch.setenv("HTTP_WORKERS", "2")

        config = ServerConfig.from_env()

        assert config.max_workers == 2
        assert config.min_workers == 2
        config.validate()

    def test_invalid_strategy(self, monkeypatch):
        """Test that an unknown strategy name fails loudly."""
        monkeypatch.setenv("HTTP_CACHE_STRATEGY", "sometimes")

        with pytest.raises(ValueError):
            ServerConfig.from_env()

    def test_bad_variable_ignored_when_overridden(self, monkeypatch):
        """Test that a malformed variable is not parsed when a flag replaces it."""
        monkeypatch.setenv("HTTP_PORT", "eighty")
        monkeypatch.setenv("HTTP_CACHE_STRATEGY", "sometimes")

        config = ServerConfig.from_env(port=9000, cache_strategy=CacheStrategy.ETAG)

        assert config.port == 9000
        assert config.cache_strategy is CacheStrategy.ETAG

    def test_bad_variable_without_override(self, monkeypatch):
        """Test that a malformed variable still fails when nothing replaces it."""
        monkeypatch.setenv("HTTP_PORT", "eighty")

        with pytest.raises(ValueError):
            ServerConfig.from_env()
