"""
Archive builder for the IPS Agent.

This module packs the diagnostic output of an installation into a single ZIP
archive. Each source sub-directory has its own membership rule: some pass every
file with the right extension, others only the files whose name mentions the
requested device.
"""

import os
import threading
import zipfile
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
import logging

from ..errors import ArchiveError
from ..models.archive import ARCHIVE_RULES, ArchiveArtifact, ArchiveEntry, ArchiveJob, ArchiveRule
from ..models.config import ArchiveConfig


class ArchiveBuilder:
    """
    Builds filtered ZIP archives from an installation directory.

    Builds writing to the same output path are serialized; builds for different
    paths run independently.
    """

    def __init__(self, config: Optional[ArchiveConfig] = None,
                 rules: Iterable[ArchiveRule] = ARCHIVE_RULES):
        """
        Initialize the archive builder.

        Args:
            config: Archive settings (output name, compression level)
            rules: Membership rules, applied in order
        """
        self.config = config or ArchiveConfig()
        self.rules: Tuple[ArchiveRule, ...] = tuple(rules)
        # output path -> (lock, number of builds holding or waiting for it)
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def create_job(self, base_directory: str, device_filter: Optional[str] = None) -> ArchiveJob:
        """Create a job whose archive is written inside base_directory."""
        return ArchiveJob.for_directory(base_directory, device_filter, self.config.output_name)

    def build(self, job: ArchiveJob) -> ArchiveArtifact:
        """
        Write the archive for a job and finalize it.

        Args:
            job: The archive job to run

        Returns:
            ArchiveArtifact describing the finalized archive

        Raises:
            ArchiveError: If any file cannot be listed, read or written, or the
                archive cannot be finalized. The incomplete output is removed.
        """
        output_path = Path(job.output_path)

        key = self._acquire(output_path)
        try:
            self.logger.info(f"Building {job} -> {output_path}")
            entries: List[ArchiveEntry] = []
            total_bytes = 0
            try:
                with zipfile.ZipFile(output_path, 'w',
                                     compression=zipfile.ZIP_DEFLATED,
                                     compresslevel=self.config.compression_level) as zf:
                    for rule, source in self.iter_members(job):
                        arcname = rule.arcname(source.name)
                        zf.write(source, arcname)
                        entry_size = source.stat().st_size
                        entries.append(ArchiveEntry(arcname=arcname, source_path=str(source), size=entry_size))
                        total_bytes += entry_size
                        self.logger.debug(f"Archive progress: {len(entries)} files, {total_bytes} bytes")
                # Leaving the with block finalizes the archive. Read it back
                # before releasing the path to the next build.
                content = output_path.read_bytes()
            except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
                self._discard(output_path)
                self.logger.error(f"Archive creation failed for {job}: {e}")
                raise ArchiveError(str(e)) from e
        finally:
            self._release(key)

        self.logger.info(f"Archive finalized: {output_path} ({len(entries)} entries, {len(content)} bytes)")
        return ArchiveArtifact(path=str(output_path), entries=entries, size=len(content), content=content)

    def iter_members(self, job: ArchiveJob) -> Iterator[Tuple[ArchiveRule, Path]]:
        """
        Yield the files that belong in a job's archive, rule by rule.

        Args:
            job: The archive job

        Yields:
            (rule, source file) pairs in archive order
        """
        base = Path(job.base_directory)
        for rule in self.rules:
            source_dir = base / rule.sub_directory
            if not source_dir.is_dir():
                self.logger.debug(f"Skipping missing sub-directory: {source_dir}")
                continue

            for name in sorted(os.listdir(source_dir)):
                if not rule.accepts(name, job.device_filter):
                    continue
                source = source_dir / name
                if source.is_file():
                    yield rule, source

    def _acquire(self, output_path: Path) -> str:
        """
        Take the lock guarding one output path.

        Returns:
            Key to pass to _release
        """
        key = os.path.normcase(str(output_path.absolute()))
        with self._locks_guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        return key

    def _release(self, key: str) -> None:
        """Release an output path lock and forget it once nobody holds or waits for it."""
        with self._locks_guard:
            lock, users = self._locks[key]
            if users == 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)
        lock.release()

    def _discard(self, output_path: Path) -> None:
        """Remove an incomplete archive."""
        try:
            output_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove incomplete archive {output_path}: {e}")
