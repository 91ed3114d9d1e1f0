"""
Unit tests for the command line entry point.
"""

import pytest

from staticserver.__main__ import build_parser, config_from_args, main
from staticserver.config import CacheStrategy


class TestCommandLine:
    """Tests for argument parsing and startup errors."""

    def test_flags(self, site):
        """Test that flags map onto ServerConfig fields."""
        args = build_parser().parse_args([
            "-p", "3000",
            "-d", str(site),
            "-H", "127.0.0.1",
            "-w", "8",
            "-c", "last-modified",
            "--no-compression",
            "--log-format", "json",
        ])

        config = config_from_args(args)

        assert config.port == 3000
        assert config.root_directory == str(site)
        assert config.host == "127.0.0.1"
        assert config.max_workers == 8
        assert config.cache_strategy is CacheStrategy.LAST_MODIFIED
        assert config.compression is False
        assert config.log_format == "json"

    def test_environment_used_when_flag_missing(self, monkeypatch):
        """Test that unset flags fall back to HTTP_* variables."""
        monkeypatch.setenv("HTTP_PORT", "9999")

        config = config_from_args(build_parser().parse_args([]))

        assert config.port == 9999
        assert config.compression is True

    def test_flag_beats_malformed_environment(self, monkeypatch):
        """Test that -p works even when HTTP_PORT is not a number."""
        monkeypatch.setenv("HTTP_PORT", "eighty")

        config = config_from_args(build_parser().parse_args(["-p", "3000"]))

        assert config.port == 3000

    def test_invalid_directory(self, tmp_path, capsys):
        """Test that configuration errors exit with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(["-d", str(tmp_path / "missing")])

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith("Error: ")

    def test_version(self, capsys):
        """Test the version flag."""
        with pytest.raises(SystemExit):
            main(["--version"])

        assert "staticserver 1.0.0" in capsys.readouterr().out
