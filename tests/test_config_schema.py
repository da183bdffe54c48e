"""Tests for the Pydantic config models."""

import pytest
from pydantic import ValidationError

from jcr_mcp_server.config_schema import (
    JcrConfig,
    LoggingConfig,
    SyncConfig,
    UnifiedConfig,
    build_config,
)


class TestJcrConfig:
    def test_defaults(self):
        config = JcrConfig()
        assert config.hosts is None
        assert config.insecure is False
        assert config.max_parallel_requests == 4
        assert config.proxies == {}

    def test_hosts_from_comma_string(self):
        config = JcrConfig(hosts="http://localhost:4502, http://localhost:4503")
        assert config.hosts == ["http://localhost:4502", "http://localhost:4503"]

    @pytest.mark.parametrize("value", [0, 101])
    def test_max_parallel_bounds(self, value):
        with pytest.raises(ValidationError):
            JcrConfig(max_parallel_requests=value)

    def test_frozen(self):
        config = JcrConfig()
        with pytest.raises(ValidationError):
            config.insecure = True


class TestUnifiedConfig:
    def test_zero_config(self):
        config = UnifiedConfig()
        assert isinstance(config.jcr, JcrConfig)
        assert isinstance(config.sync, SyncConfig)
        assert isinstance(config.logging, LoggingConfig)
        assert config.logging.level == "INFO"

    def test_build_config_empty(self):
        assert build_config({}) == UnifiedConfig()

    def test_build_config_sections(self):
        config = build_config(
            {
                "jcr": {"hosts": ["http://localhost:4502"], "username": "admin"},
                "sync": {"content_root": "/work/jcr_root"},
                "logging": {"level": "DEBUG"},
            }
        )
        assert config.jcr.username == "admin"
        assert config.sync.content_root == "/work/jcr_root"
        assert config.logging.level == "DEBUG"

    def test_invalid_section_type(self):
        with pytest.raises(ValidationError):
            build_config({"jcr": {"max_parallel_requests": "lots"}})

    def test_fallbacks_flatten_and_drop_unset(self):
        config = build_config(
            {
                "jcr": {"hosts": ["http://localhost:4502"], "password": "pw"},
                "sync": {"delete_remote_files": True},
            }
        )
        fallbacks = config.fallbacks()
        assert fallbacks["hosts"] == ["http://localhost:4502"]
        assert fallbacks["password"] == "pw"
        assert fallbacks["delete_remote_files"] is True
        assert "username" not in fallbacks
        assert "content_root" not in fallbacks
        assert fallbacks["max_parallel_requests"] == 4
