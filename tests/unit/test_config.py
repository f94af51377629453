"""
Unit tests for configuration models.

Tests field validation, defaults and configuration warnings of the
AgentConfig model and its sections.
"""

import logging
import pytest
from pathlib import Path
from pydantic import ValidationError

from ips_agent.models.config import (
    AgentConfig,
    ArchiveConfig,
    LoggingConfig,
    SearchConfig,
    ServerConfig,
    default_known_directories,
    default_scan_root,
)


class TestServerConfig:
    """Test cases for ServerConfig."""

    def test_defaults(self):
        """Test the default endpoint."""
        config = ServerConfig()
        assert config.host == "0.0.0.0"
        assert config.port == 8081

    @pytest.mark.parametrize("port", [0, 65536])
    def test_invalid_port(self, port):
        """Test port range validation."""
        with pytest.raises(ValidationError):
            ServerConfig(port=port)


class TestSearchConfig:
    """Test cases for SearchConfig."""

    def test_defaults(self):
        """Test default search settings."""
        config = SearchConfig()
        assert config.target_file_name == "ASMP start.bat"
        assert config.timeout_seconds == 600
        assert config.known_directories == default_known_directories()
        assert config.scan_root == default_scan_root()

    def test_default_known_directory_order(self):
        """Test that user folders come first and the volume root last."""
        directories = default_known_directories()
        home = Path.home()

        assert directories[:3] == [str(home / "Desktop"), str(home / "Downloads"), str(home / "Documents")]
        assert directories[-1] == default_scan_root()
        assert len(directories) == 6

    def test_known_directories_normalized(self):
        """Test that blanks and duplicates are dropped in order."""
        config = SearchConfig(known_directories=["/a", " ", "/b", "/a", "~/c"])
        assert config.known_directories == ["/a", "/b", str(Path.home() / "c")]

    @pytest.mark.parametrize("name", ["", "   ", "dir/ASMP start.bat", "dir\\ASMP start.bat"])
    def test_invalid_target_file_name(self, name):
        """Test that the target must be a bare file name."""
        with pytest.raises(ValidationError):
            SearchConfig(target_file_name=name)

    def test_invalid_timeout(self):
        """Test that the timeout must be positive."""
        with pytest.raises(ValidationError):
            SearchConfig(timeout_seconds=0)

    def test_worker_count(self):
        """Test probe thread count selection."""
        assert SearchConfig(known_directories=["/a", "/b", "/c"]).get_worker_count() == 3
        assert SearchConfig(known_directories=[]).get_worker_count() == 1
        assert SearchConfig(known_directories=["/a"], max_concurrent=4).get_worker_count() == 4


class TestArchiveConfig:
    """Test cases for ArchiveConfig."""

    def test_defaults(self):
        """Test default archive settings."""
        config = ArchiveConfig()
        assert config.output_name == "filtered-archive.zip"
        assert config.compression_level == 5

    @pytest.mark.parametrize("name", ["out/archive.zip", "..\\archive.zip", "archive.tar"])
    def test_invalid_output_name(self, name):
        """Test that the output name is a bare .zip file name."""
        with pytest.raises(ValidationError):
            ArchiveConfig(output_name=name)

    @pytest.mark.parametrize("level", [-1, 10])
    def test_invalid_compression_level(self, level):
        """Test compression level bounds."""
        with pytest.raises(ValidationError):
            ArchiveConfig(compression_level=level)


class TestLoggingConfig:
    """Test cases for LoggingConfig."""

    def test_level_normalized(self):
        """Test that level names are case-insensitive."""
        config = LoggingConfig(level="warning")
        assert config.level == "WARNING"
        assert config.get_level() == logging.WARNING

    def test_invalid_level(self):
        """Test that unknown level names are rejected."""
        with pytest.raises(ValidationError, match="Invalid log level"):
            LoggingConfig(level="LOUD")

    def test_blank_file_means_no_file(self):
        """Test that a blank log file disables file logging."""
        assert LoggingConfig(file="  ").file is None


class TestAgentConfig:
    """Test cases for AgentConfig."""

    def _quiet(self, **sections):
        data = {
            'server': {'host': '127.0.0.1'},
            'search': {'known_directories': ['/opt/a'], 'scan_root': '/'},
        }
        data.update(sections)
        return AgentConfig.from_dict(data)

    def test_defaults(self):
        """Test that every section has defaults."""
        config = AgentConfig()
        assert config.server.port == 8081
        assert config.archive.output_name == "filtered-archive.zip"
        assert config.logging.level == "INFO"

    def test_no_warnings_for_sane_config(self):
        """Test a configuration without anything suspicious."""
        assert self._quiet().validate_configuration() == []

    def test_all_interfaces_warning(self):
        """Test the warning for servers bound to every interface."""
        warnings = self._quiet(server={'host': '0.0.0.0'}).validate_configuration()
        assert any("all interfaces" in w for w in warnings)

    def test_no_known_directories_warning(self):
        """Test the warning for an empty known directory list."""
        warnings = self._quiet(search={'known_directories': [], 'scan_root': '/'}).validate_configuration()
        assert any("No known directories" in w for w in warnings)

    def test_scan_root_probed_early_warning(self):
        """Test the warning when the scan root is not the last known directory."""
        config = self._quiet(search={'known_directories': ['/', '/opt/a'], 'scan_root': '/'})
        assert any("Scan root" in w for w in config.validate_configuration())

        config = self._quiet(search={'known_directories': ['/opt/a', '/'], 'scan_root': '/'})
        assert config.validate_configuration() == []

    @pytest.mark.parametrize("level, fragment", [(9, "Maximum compression"), (0, "uncompressed")])
    def test_compression_warnings(self, level, fragment):
        """Test the warnings for extreme compression levels."""
        warnings = self._quiet(archive={'compression_level': level}).validate_configuration()
        assert any(fragment in w for w in warnings)

    def test_dict_round_trip(self):
        """Test to_dict and from_dict agree."""
        config = self._quiet(archive={'compression_level': 7})
        assert AgentConfig.from_dict(config.to_dict()) == config

    def test_invalid_value_in_section(self):
        """Test that bad values inside a section are rejected."""
        with pytest.raises(ValidationError):
            AgentConfig.from_dict({'search': {'timeout_seconds': -5}})

    def test_default_host_is_not_flagged(self):
        """Test that the built-in bind address raises no warning."""
        config = AgentConfig.from_dict({'search': {'known_directories': ['/opt/a'], 'scan_root': '/'}})

        assert config.server.host == "0.0.0.0"
        assert config.validate_configuration() == []
