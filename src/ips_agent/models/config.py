"""
Configuration data models for the IPS Agent.

This module defines the core data structures for managing application configuration,
including the WebSocket server endpoint, the directory search strategy, archive
settings, and logging options.
"""

from typing import Dict, List, Optional, Any
from pathlib import Path, PurePath
import logging
import os
import platform
from pydantic import BaseModel, Field, field_validator

from .archive import DEFAULT_OUTPUT_NAME


DEFAULT_TARGET_FILE_NAME = "ASMP start.bat"


def default_scan_root() -> str:
    """Root of the primary volume: the home drive on Windows, '/' elsewhere."""
    if platform.system().lower() == "windows":
        anchor = Path.home().anchor
        return anchor or "C:\\"
    return "/"


def default_known_directories() -> List[str]:
    """
    Get the prioritized list of directories probed before a full scan.

    Returns:
        Home Desktop/Downloads/Documents, both Program Files roots, then the
        primary volume root
    """
    home = Path.home()
    return [
        str(home / "Desktop"),
        str(home / "Downloads"),
        str(home / "Documents"),
        os.environ.get("ProgramFiles", "C:\\Program Files"),
        os.environ.get("ProgramFiles(x86)", "C:\\Program Files (x86)"),
        default_scan_root(),
    ]


class ServerConfig(BaseModel):
    """
    Configuration for the WebSocket endpoint.

    Attributes:
        host: Interface to bind
        port: TCP port to listen on
        max_message_size: Largest inbound frame accepted, in bytes
    """

    host: str = Field("0.0.0.0", min_length=1, description="Interface to bind")
    port: int = Field(8081, ge=1, le=65535, description="TCP port to listen on")
    max_message_size: int = Field(1048576, gt=0, description="Largest inbound frame in bytes")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class SearchConfig(BaseModel):
    """
    Configuration for locating the installation directory.

    Attributes:
        target_file_name: Artifact whose directory is the installation root
        known_directories: Roots probed concurrently, highest priority first
        scan_root: Root of the exhaustive fallback scan
        timeout_seconds: Time limit for each search pass
        max_concurrent: Probe worker threads (None means one per directory)
    """

    target_file_name: str = Field(DEFAULT_TARGET_FILE_NAME, min_length=1, description="Artifact to locate")
    known_directories: List[str] = Field(
        default_factory=default_known_directories,
        description="Roots probed before falling back to a full scan"
    )
    scan_root: str = Field(default_factory=default_scan_root, min_length=1, description="Full scan root")
    timeout_seconds: float = Field(600, gt=0, description="Time limit for each search pass")
    max_concurrent: Optional[int] = Field(None, gt=0, description="Probe worker threads")

    @field_validator('target_file_name')
    @classmethod
    def validate_target_file_name(cls, v: str) -> str:
        """The target is a bare file name, never a path."""
        v = v.strip()
        if not v:
            raise ValueError("Target file name cannot be empty")
        if '/' in v or '\\' in v:
            raise ValueError(f"Target file name must not contain path separators: {v}")
        return v

    @field_validator('known_directories')
    @classmethod
    def validate_known_directories(cls, v: List[str]) -> List[str]:
        """Expand user paths, drop blanks and duplicates while keeping order."""
        normalized = []
        for directory in v:
            if not directory or not directory.strip():
                continue
            expanded = str(Path(directory.strip()).expanduser())
            if expanded not in normalized:
                normalized.append(expanded)
        return normalized

    @field_validator('scan_root')
    @classmethod
    def validate_scan_root(cls, v: str) -> str:
        return str(Path(v.strip()).expanduser())

    def get_worker_count(self) -> int:
        """Number of probe threads to run."""
        if self.max_concurrent:
            return self.max_concurrent
        return max(1, len(self.known_directories))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class ArchiveConfig(BaseModel):
    """
    Configuration for archive output.

    Attributes:
        output_name: File name of the archive written inside the base directory
        compression_level: Deflate level (0-9)
    """

    output_name: str = Field(DEFAULT_OUTPUT_NAME, min_length=1, description="Archive file name")
    compression_level: int = Field(5, ge=0, le=9, description="Deflate compression level")

    @field_validator('output_name')
    @classmethod
    def validate_output_name(cls, v: str) -> str:
        """The archive is always written directly inside the base directory."""
        v = v.strip()
        if PurePath(v).name != v or '\\' in v:
            raise ValueError(f"Archive output name must be a bare file name: {v}")
        if not v.lower().endswith('.zip'):
            raise ValueError(f"Archive output name must end with .zip: {v}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class LoggingConfig(BaseModel):
    """
    Configuration for process-wide logging.

    Attributes:
        level: Log level name
        file: Optional log file path
    """

    level: str = Field("INFO", description="Log level name")
    file: Optional[str] = Field(None, description="Optional log file path")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.strip().upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"Invalid log level: {v}")
        return v

    @field_validator('file')
    @classmethod
    def validate_file(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return str(Path(v.strip()).expanduser())

    def get_level(self) -> int:
        return logging.getLevelName(self.level)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class AgentConfig(BaseModel):
    """
    Main configuration class for the IPS Agent.

    Attributes:
        server: WebSocket endpoint settings
        search: Installation search settings
        archive: Archive output settings
        logging: Logging settings
    """

    server: ServerConfig = Field(default_factory=ServerConfig, description="WebSocket endpoint settings")
    search: SearchConfig = Field(default_factory=SearchConfig, description="Installation search settings")
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig, description="Archive output settings")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging settings")

    def validate_configuration(self) -> List[str]:
        """
        Check the configuration for settings that are legal but suspicious.

        Returns:
            List of warning messages (empty if nothing stands out)
        """
        warnings = []

        if not self.search.known_directories:
            warnings.append("No known directories configured - every search falls back to a full scan")

        scan_root = str(Path(self.search.scan_root))
        if scan_root in self.search.known_directories[:-1]:
            warnings.append(
                f"Scan root {scan_root} is probed before other known directories and will dominate search time"
            )

        if self.archive.compression_level == 9:
            warnings.append("Maximum compression level may be slow on large diagnostic trees")
        elif self.archive.compression_level == 0:
            warnings.append("Compression level 0 stores archive entries uncompressed")

        # Only an explicitly configured wildcard address is flagged
        if "host" in self.server.model_fields_set and self.server.host in ("0.0.0.0", "::"):
            warnings.append(f"Server listens on all interfaces ({self.server.host}) without peer authentication")

        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert the configuration to a dictionary representation."""
        return {
            'server': self.server.to_dict(),
            'search': self.search.to_dict(),
            'archive': self.archive.to_dict(),
            'logging': self.logging.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentConfig':
        """Create an AgentConfig instance from a dictionary."""
        return cls.model_validate(data)
