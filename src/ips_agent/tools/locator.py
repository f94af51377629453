"""
Directory locator for the IPS Agent.

This module finds the directory that holds a named installation artifact. It probes
a prioritized list of known directories concurrently and falls back to an exhaustive
walk of the primary volume when none of them holds the artifact.
"""

import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
import logging

from ..errors import LocateError
from ..models.config import SearchConfig
from ..models.search_results import ProbeResult, SearchResult, SearchSource, SearchTarget


# (root, file_name, cancel_event) -> full path of the first match or None
ProbeFunction = Callable[[str, str, threading.Event], Optional[str]]


def find_file(root: str, file_name: str, cancel_event: Optional[threading.Event] = None) -> Optional[str]:
    """
    Recursively search a directory tree for a file with an exact name.

    Unreadable sub-directories are skipped. Symbolic links to directories are
    not followed.

    Args:
        root: Directory to search
        file_name: File name to look for
        cancel_event: When set, the walk stops with a LocateError

    Returns:
        Full path of the first matching file, or None if there is none

    Raises:
        LocateError: If the root is not a directory or the walk was cancelled
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise LocateError(f"Root directory does not exist: {root_path}")

    wanted = os.path.normcase(file_name)

    for current_dir, subdirs, files in os.walk(root_path):
        if cancel_event is not None and cancel_event.is_set():
            raise LocateError(f"Search of {root_path} cancelled")

        # Stable traversal order
        subdirs.sort()

        for candidate_name in sorted(files):
            if os.path.normcase(candidate_name) != wanted:
                continue
            candidate = Path(current_dir) / candidate_name
            if candidate.is_file():
                return str(candidate)

    return None


class DirectoryLocator:
    """
    Locates the directory containing a target file.

    Known directories are probed concurrently. Among the probes that find the
    target, the one with the highest declared priority wins, whatever order the
    probes finish in. A full scan runs only when no known directory matches.
    """

    def __init__(self, config: SearchConfig,
                 probe: Optional[ProbeFunction] = None,
                 full_scan: Optional[ProbeFunction] = None):
        """
        Initialize the locator.

        Args:
            config: Search configuration (known directories, scan root, limits)
            probe: Function used to search one known directory
            full_scan: Function used for the fallback scan of the scan root
        """
        self.config = config
        self._probe = probe or find_file
        self._full_scan = full_scan or find_file
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def locate(self, file_name: str) -> SearchResult:
        """
        Find the directory that contains file_name.

        Args:
            file_name: Name of the artifact to locate

        Returns:
            SearchResult; never raises for search failures
        """
        target = SearchTarget(file_name=file_name)

        probes = self.locate_in_known_directories(target.file_name)
        winner = self._select_winner(probes)
        if winner is not None:
            directory = winner.containing_directory()
            self.logger.info(f"Found '{target.file_name}' in known directory {winner.directory}: {directory}")
            return SearchResult(
                target=target.file_name,
                found=True,
                directory=directory,
                source=SearchSource.KNOWN,
                probes=probes,
            )

        self.logger.info(f"'{target.file_name}' not in known directories, scanning {self.config.scan_root}")
        scan = self.locate_by_full_scan(target.file_name)
        probes.append(scan)

        if scan.is_match():
            directory = scan.containing_directory()
            self.logger.info(f"Full scan found '{target.file_name}' in {directory}")
            return SearchResult(
                target=target.file_name,
                found=True,
                directory=directory,
                source=SearchSource.SCAN,
                probes=probes,
            )

        self.logger.info(f"'{target.file_name}' not found")
        return SearchResult.not_found(target.file_name, probes)

    def locate_in_known_directories(self, file_name: str) -> List[ProbeResult]:
        """
        Probe every known directory concurrently.

        The pass ends as soon as the outcome can no longer change: a probe has
        matched and every higher-priority probe has finished. Remaining probes
        are cancelled.

        Args:
            file_name: Name of the artifact to locate

        Returns:
            One ProbeResult per known directory, in priority order
        """
        directories = self.config.known_directories
        if not directories:
            return []

        cancel_event = threading.Event()
        results: Dict[int, ProbeResult] = {}
        timed_out = False

        executor = ThreadPoolExecutor(
            max_workers=self.config.get_worker_count(),
            thread_name_prefix="probe"
        )
        try:
            futures = [
                executor.submit(self._run_probe, self._probe, directory, rank, file_name, cancel_event)
                for rank, directory in enumerate(directories)
            ]
            try:
                for future in as_completed(futures, timeout=self.config.timeout_seconds):
                    result = future.result()
                    results[result.rank] = result
                    if self._is_decided(results):
                        break
            except FuturesTimeoutError:
                timed_out = True
                self.logger.warning(
                    f"Known directory search timed out after {self.config.timeout_seconds}s"
                )
        finally:
            cancel_event.set()
            executor.shutdown(wait=False, cancel_futures=True)

        reason = (
            f"timed out after {self.config.timeout_seconds}s" if timed_out
            else "cancelled after a higher-priority match"
        )
        return [
            results.get(rank) or ProbeResult.failed(directory, rank, reason)
            for rank, directory in enumerate(directories)
        ]

    def locate_by_full_scan(self, file_name: str) -> ProbeResult:
        """
        Walk the whole scan root for the artifact.

        Args:
            file_name: Name of the artifact to locate

        Returns:
            ProbeResult for the scan root, ranked after all known directories
        """
        root = self.config.scan_root
        rank = len(self.config.known_directories)
        cancel_event = threading.Event()

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="full-scan")
        try:
            future = executor.submit(self._run_probe, self._full_scan, root, rank, file_name, cancel_event)
            try:
                return future.result(timeout=self.config.timeout_seconds)
            except FuturesTimeoutError:
                cancel_event.set()
                self.logger.warning(f"Full scan of {root} timed out after {self.config.timeout_seconds}s")
                return ProbeResult.failed(root, rank, f"timed out after {self.config.timeout_seconds}s")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _run_probe(self, probe: ProbeFunction, directory: str, rank: int,
                   file_name: str, cancel_event: threading.Event) -> ProbeResult:
        """Run one probe and turn its outcome into a ProbeResult."""
        try:
            path = probe(directory, file_name, cancel_event)
        except Exception as e:
            self.logger.debug(f"Probe of {directory} failed: {e}")
            return ProbeResult.failed(directory, rank, str(e) or e.__class__.__name__)

        if path:
            self.logger.debug(f"Probe of {directory} matched {path}")
            return ProbeResult.found(directory, rank, path)
        return ProbeResult.not_found(directory, rank)

    @staticmethod
    def _select_winner(probes: List[ProbeResult]) -> Optional[ProbeResult]:
        """Pick the matching probe with the best (lowest) priority rank."""
        matches = [probe for probe in probes if probe.is_match()]
        if not matches:
            return None
        return min(matches, key=lambda probe: probe.rank)

    @staticmethod
    def _is_decided(results: Dict[int, ProbeResult]) -> bool:
        """True once a match exists and every higher-priority probe has finished."""
        match_ranks = [rank for rank, result in results.items() if result.is_match()]
        if not match_ranks:
            return False
        best = min(match_ranks)
        return all(rank in results for rank in range(best))
