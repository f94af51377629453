"""
Archive data models for the IPS Agent.

This module defines the static archive membership rules, the request-scoped
archive job, and the finalized archive artifact handed over for delivery.
"""

from typing import Dict, List, Optional, Any, Tuple
from pathlib import Path
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_OUTPUT_NAME = "filtered-archive.zip"


class FilterPolicy(Enum):
    """How an archive rule decides membership beyond the file extension."""
    PASS_ALL = "pass_all"
    MATCH_DEVICE_SUBSTRING = "match_device_substring"


class ArchiveRule(BaseModel):
    """
    Membership rule for one source sub-directory.

    Attributes:
        sub_directory: Sub-directory relative to the job's base directory,
            using forward slashes; also the namespace inside the archive
        extension: Required file name suffix (e.g. '.txt')
        policy: Filter applied after the extension check
    """

    model_config = ConfigDict(frozen=True)

    sub_directory: str = Field(..., min_length=1, description="Source sub-directory")
    extension: str = Field(..., min_length=2, description="Required file name suffix")
    policy: FilterPolicy = Field(..., description="Filter policy")

    @field_validator('extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Normalize extension to include leading dot."""
        if not v.startswith('.'):
            return '.' + v
        return v

    @field_validator('sub_directory')
    @classmethod
    def validate_sub_directory(cls, v: str) -> str:
        """Sub-directories are archive namespaces, so keep them relative."""
        v = v.replace('\\', '/').strip('/')
        if not v or '..' in v.split('/'):
            raise ValueError(f"Invalid archive sub-directory: {v!r}")
        return v

    def accepts(self, file_name: str, device_filter: Optional[str]) -> bool:
        """
        Check whether a file directly inside this rule's sub-directory belongs
        in the archive.

        Args:
            file_name: Bare file name
            device_filter: Device identifier, or None for unfiltered jobs

        Returns:
            True if the file should be archived
        """
        if not file_name.endswith(self.extension):
            return False
        if self.policy == FilterPolicy.PASS_ALL:
            return True
        # An absent filter matches nothing rather than everything
        if not device_filter:
            return False
        return device_filter in file_name

    def arcname(self, file_name: str) -> str:
        """Entry name inside the archive."""
        return f"{self.sub_directory}/{file_name}"


ARCHIVE_RULES: Tuple[ArchiveRule, ...] = (
    ArchiveRule(sub_directory="out", extension=".txt", policy=FilterPolicy.MATCH_DEVICE_SUBSTRING),
    ArchiveRule(sub_directory="_inputs_severin/tables", extension=".txt", policy=FilterPolicy.MATCH_DEVICE_SUBSTRING),
    ArchiveRule(sub_directory="temp", extension=".net", policy=FilterPolicy.PASS_ALL),
)


class ArchiveJob(BaseModel):
    """
    A single unit of archive work.

    Attributes:
        base_directory: Directory holding the installation output
        device_filter: Device identifier for device-scoped jobs, None for
            direct path jobs
        output_path: Where the archive is written
    """

    model_config = ConfigDict(frozen=True)

    base_directory: str = Field(..., min_length=1, description="Installation directory")
    device_filter: Optional[str] = Field(None, description="Device identifier filter")
    output_path: str = Field(..., min_length=1, description="Archive output path")

    @classmethod
    def for_directory(cls, base_directory: str, device_filter: Optional[str] = None,
                      output_name: str = DEFAULT_OUTPUT_NAME) -> 'ArchiveJob':
        """Create a job that writes its archive inside the base directory."""
        return cls(
            base_directory=base_directory,
            device_filter=device_filter,
            output_path=str(Path(base_directory) / output_name),
        )

    def is_device_scoped(self) -> bool:
        return self.device_filter is not None

    def __str__(self) -> str:
        scope = f"device '{self.device_filter}'" if self.is_device_scoped() else "unfiltered"
        return f"ArchiveJob({self.base_directory}, {scope})"


class ArchiveEntry(BaseModel):
    """One file written into an archive."""

    arcname: str = Field(..., min_length=1, description="Entry name inside the archive")
    source_path: str = Field(..., min_length=1, description="File the entry was read from")
    size: int = Field(..., ge=0, description="Uncompressed size in bytes")


class ArchiveArtifact(BaseModel):
    """
    A finalized archive on disk.

    Attributes:
        path: Location of the archive file
        entries: Entries written, in archive order
        size: Size of the archive file in bytes
        content: Archive bytes captured right after finalizing
    """

    path: str = Field(..., min_length=1, description="Archive file location")
    entries: List[ArchiveEntry] = Field(default_factory=list, description="Archived entries")
    size: int = Field(0, ge=0, description="Archive file size in bytes")
    content: Optional[bytes] = Field(None, exclude=True, repr=False, description="Archive bytes")

    @model_validator(mode='after')
    def validate_unique_entries(self):
        """Entry names must be unique within one archive."""
        names = self.entry_names()
        if len(names) != len(set(names)):
            raise ValueError("Archive entry names must be unique")
        return self

    def entry_names(self) -> List[str]:
        return [entry.arcname for entry in self.entries]

    def read_bytes(self) -> bytes:
        """
        Get the archive bytes.

        The file on disk may already have been replaced by a later build of the
        same directory, so the captured content is preferred.
        """
        if self.content is not None:
            return self.content
        return Path(self.path).read_bytes()

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
