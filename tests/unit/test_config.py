"""
Unit tests for server configuration.
"""

import pytest

from pagejar import __version__
from pagejar.config import ServerConfig


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        """Test the default values."""
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 0
        assert config.timeout == 60.0
        assert config.server_name == f"pagejar/{__version__}"
        config.validate()

    def test_from_env(self):
        """Test reading PAGEJAR_* variables."""
        config = ServerConfig.from_env({
            "PAGEJAR_HOST": "0.0.0.0",
            "PAGEJAR_PORT": "8080",
            "PAGEJAR_TIMEOUT": "2.5",
            "PAGEJAR_ROOT_DIR": "presentation",
            "PAGEJAR_LOG_LEVEL": "debug",
            "PAGEJAR_LOG_FORMAT": "JSON",
        })

        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.timeout == 2.5
        assert config.root_dir == "presentation"
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_from_env_defaults(self):
        """Test that an empty environment gives the defaults."""
        assert ServerConfig.from_env({}) == ServerConfig()

    def test_from_env_bad_number(self):
        """Test that a non-numeric port fails."""
        with pytest.raises(ValueError):
            ServerConfig.from_env({"PAGEJAR_PORT": "eighty"})

    @pytest.mark.parametrize("field,value", [
        ("port", -1),
        ("port", 65536),
        ("backlog", 0),
        ("buffer_size", 512),
        ("timeout", 0),
        ("timeout", None),
        ("max_line_size", 100),
        ("max_header_lines", 0),
        ("log_level", "CHATTY"),
        ("log_format", "xml"),
    ])
    def test_validate_rejects(self, field, value):
        """Test that each invalid field is reported."""
        config = ServerConfig(**{field: value})

        with pytest.raises(ValueError):
            config.validate()
