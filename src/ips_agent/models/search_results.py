"""
Search data models for the IPS Agent.

This module defines the data structures produced by the directory locator,
including the search target, the tagged outcome of a single directory probe,
and the aggregated result of a complete locate operation.
"""

from typing import Dict, List, Optional, Any
from pathlib import PurePath
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProbeStatus(Enum):
    """Enumeration of directory probe outcomes."""
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class SearchSource(Enum):
    """Which search pass produced a result."""
    KNOWN = "known"
    SCAN = "scan"


class SearchTarget(BaseModel):
    """
    The artifact to locate.

    Attributes:
        file_name: Exact file name to search for (no directory components)
    """

    model_config = ConfigDict(frozen=True)

    file_name: str = Field(..., min_length=1, description="File name to locate")

    @field_validator('file_name')
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        """Strip whitespace and reject empty names."""
        if not v or not v.strip():
            raise ValueError("Search target file name cannot be empty")
        return v.strip()


class ProbeResult(BaseModel):
    """
    Tagged outcome of searching one root directory.

    A failed probe and a probe that found nothing look the same to callers of
    the locator; the distinction is kept here for diagnostics only.

    Attributes:
        directory: Root directory that was searched
        rank: Priority rank of the root (0 is highest priority)
        status: Outcome of the probe
        path: Full path of the first match (FOUND only)
        error: Error description (ERROR only)
    """

    directory: str = Field(..., description="Root directory that was searched")
    rank: int = Field(..., ge=0, description="Priority rank of the root")
    status: ProbeStatus = Field(..., description="Outcome of the probe")
    path: Optional[str] = Field(None, description="Full path of the first match")
    error: Optional[str] = Field(None, description="Error description")

    @field_validator('status', mode='before')
    @classmethod
    def validate_status(cls, v) -> ProbeStatus:
        """Ensure status is a ProbeStatus enum."""
        if isinstance(v, str):
            try:
                return ProbeStatus(v)
            except ValueError:
                raise ValueError(f"Invalid probe status: {v}")
        return v

    @model_validator(mode='after')
    def validate_outcome(self):
        """A FOUND probe needs a path, an ERROR probe needs a message."""
        if self.status == ProbeStatus.FOUND and not self.path:
            raise ValueError("A found probe must carry the matched path")
        if self.status == ProbeStatus.ERROR and not self.error:
            raise ValueError("An errored probe must carry an error message")
        return self

    @classmethod
    def found(cls, directory: str, rank: int, path: str) -> 'ProbeResult':
        return cls(directory=directory, rank=rank, status=ProbeStatus.FOUND, path=path)

    @classmethod
    def not_found(cls, directory: str, rank: int) -> 'ProbeResult':
        return cls(directory=directory, rank=rank, status=ProbeStatus.NOT_FOUND)

    @classmethod
    def failed(cls, directory: str, rank: int, error: str) -> 'ProbeResult':
        return cls(directory=directory, rank=rank, status=ProbeStatus.ERROR, error=error)

    def is_match(self) -> bool:
        return self.status == ProbeStatus.FOUND

    def containing_directory(self) -> Optional[str]:
        """Directory holding the matched file, or None when nothing matched."""
        if not self.is_match():
            return None
        return str(PurePath(self.path).parent)


class SearchResult(BaseModel):
    """
    Outcome of a complete locate operation.

    Attributes:
        target: The file name that was searched for
        found: Whether the target was located
        directory: Directory containing the target, if found
        source: Search pass that produced the match
        probes: Per-directory probe outcomes, in priority order
    """

    target: str = Field(..., min_length=1, description="File name that was searched for")
    found: bool = Field(False, description="Whether the target was located")
    directory: Optional[str] = Field(None, description="Directory containing the target")
    source: Optional[SearchSource] = Field(None, description="Search pass that produced the match")
    probes: List[ProbeResult] = Field(default_factory=list, description="Per-directory probe outcomes")

    @model_validator(mode='after')
    def validate_consistency(self):
        """found and directory must agree."""
        if self.found and not self.directory:
            raise ValueError("A successful search must name a directory")
        if not self.found and self.directory:
            raise ValueError("An unsuccessful search cannot name a directory")
        return self

    @classmethod
    def not_found(cls, target: str, probes: Optional[List[ProbeResult]] = None) -> 'SearchResult':
        return cls(target=target, found=False, probes=probes or [])

    def get_errors(self) -> List[ProbeResult]:
        """Get the probes that failed rather than finding nothing."""
        return [p for p in self.probes if p.status == ProbeStatus.ERROR]

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a dictionary representation."""
        data = self.model_dump()
        data['source'] = self.source.value if self.source else None
        data['probes'] = [
            {**probe.model_dump(), 'status': probe.status.value}
            for probe in self.probes
        ]
        return data

    def __str__(self) -> str:
        if self.found:
            return f"'{self.target}' found in {self.directory} ({self.source.value} search)"
        return f"'{self.target}' not found ({len(self.get_errors())} probe errors)"
