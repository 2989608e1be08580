"""
Unit tests for server configuration.
"""

from argparse import Namespace

import pytest

from staticserve.config import ConfigError, ServerConfig, parse_bind


class TestParseBind:
    """Tests for parse_bind()."""

    @pytest.mark.parametrize("bind, expected", [
        ("127.0.0.1:8080", ("127.0.0.1", 8080)),
        ("localhost:0", ("localhost", 0)),
        (":80", ("", 80)),
        ("[::1]:9000", ("::1", 9000)),
    ])
    def test_valid(self, bind, expected):
        assert parse_bind(bind) == expected

    @pytest.mark.parametrize("bind", [
        "8080",
        "localhost",
        "::1:80",
        "host:http",
        "host:65536",
        "host:-1",
    ])
    def test_invalid(self, bind):
        with pytest.raises(ConfigError):
            parse_bind(bind)


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.bind == "127.0.0.1:8080"
        assert config.root == "."
        assert not (config.log or config.cors or config.gzip)
        assert config.auth == ""
        assert config.address == ("127.0.0.1", 8080)

    def test_frozen(self):
        with pytest.raises(AttributeError):
            ServerConfig().bind = ":80"

    def test_from_args_skips_missing(self):
        args = Namespace(bind=":9000", root="/srv", log=True, cors=None, gzip=False)
        config = ServerConfig.from_args(args)

        assert config.bind == ":9000"
        assert config.root == "/srv"
        assert config.log is True
        assert config.cors is False
        assert config.log_level == "INFO"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STATICSERVE_BIND", ":8000")
        monkeypatch.setenv("STATICSERVE_GZIP", "true")
        monkeypatch.delenv("STATICSERVE_CORS", raising=False)

        config = ServerConfig.from_env()

        assert config.bind == ":8000"
        assert config.gzip is True
        assert config.cors is False

    def test_validate_ok(self, tmp_path):
        ServerConfig(root=str(tmp_path)).validate()

    @pytest.mark.parametrize("overrides", [
        {"bind": "nope"},
        {"gzip_level": 0},
        {"buffer_size": 10},
        {"timeout": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, tmp_path, overrides):
        with pytest.raises(ConfigError):
            ServerConfig(root=str(tmp_path), **overrides).validate()

    def test_validate_missing_root(self, tmp_path):
        with pytest.raises(ConfigError, match="root directory"):
            ServerConfig(root=str(tmp_path / "gone")).validate()
