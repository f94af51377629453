"""
Search and packaging tools for the IPS Agent.

This module contains the directory locator that finds the installation on disk
and the archive builder that packs its diagnostic output.
"""

from .locator import DirectoryLocator, find_file
from .archiver import ArchiveBuilder

__all__ = ['DirectoryLocator', 'find_file', 'ArchiveBuilder']
