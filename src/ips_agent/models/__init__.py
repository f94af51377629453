"""
Data models for the IPS Agent.

This module contains all the core data structures used throughout the system.
"""

from .search_results import SearchTarget, ProbeStatus, ProbeResult, SearchResult, SearchSource
from .archive import ARCHIVE_RULES, ArchiveRule, ArchiveJob, ArchiveArtifact, ArchiveEntry, FilterPolicy
from .config import AgentConfig

__all__ = [
    'SearchTarget',
    'ProbeStatus',
    'ProbeResult',
    'SearchResult',
    'SearchSource',
    'ARCHIVE_RULES',
    'ArchiveRule',
    'ArchiveJob',
    'ArchiveArtifact',
    'ArchiveEntry',
    'FilterPolicy',
    'AgentConfig',
]
