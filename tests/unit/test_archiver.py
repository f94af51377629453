"""
Unit tests for the archive builder.

Tests rule-based membership, missing sub-directories, compression settings,
and failure handling of the ArchiveBuilder class.
"""

import io
import os
import tempfile
import shutil
import threading
import zipfile
from pathlib import Path
from unittest.mock import patch
import pytest

from ips_agent.errors import ArchiveError
from ips_agent.models.archive import DEFAULT_OUTPUT_NAME, ArchiveJob
from ips_agent.models.config import ArchiveConfig
from ips_agent.tools.archiver import ArchiveBuilder


class TestArchiveBuilder:
    """Test cases for the ArchiveBuilder class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.base = Path(self.temp_dir)
        self._create_test_structure()
        self.builder = ArchiveBuilder(ArchiveConfig())

    def teardown_method(self):
        """Clean up test fixtures."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _create_test_structure(self):
        """Create an installation tree with output for two devices."""
        test_files = [
            "out/DEV1-a.txt",
            "out/DEV1-b.txt",
            "out/DEV2-b.txt",
            "out/DEV1-c.log",
            "out/nested/DEV1-deep.txt",
            "_inputs_severin/tables/DEV1_table.txt",
            "_inputs_severin/tables/DEV2_table.txt",
            "temp/x.net",
            "temp/DEV2.net",
            "temp/notes.txt",
            "ASMP start.bat",
        ]

        for file_path in test_files:
            full_path = self.base / file_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(f"Content of {file_path}")

    def _names(self, archive_path):
        with zipfile.ZipFile(archive_path) as zf:
            return zf.namelist()

    def test_device_scoped_job(self):
        """Test that device rules keep only names containing the device id."""
        artifact = self.builder.build(self.builder.create_job(self.temp_dir, "DEV1"))

        assert self._names(artifact.path) == [
            "out/DEV1-a.txt",
            "out/DEV1-b.txt",
            "_inputs_severin/tables/DEV1_table.txt",
            "temp/DEV2.net",
            "temp/x.net",
        ]
        assert artifact.entry_names() == self._names(artifact.path)

    def test_other_device(self):
        """Test a different device selects its own files."""
        artifact = self.builder.build(self.builder.create_job(self.temp_dir, "DEV2"))
        names = self._names(artifact.path)

        assert "out/DEV2-b.txt" in names
        assert "_inputs_severin/tables/DEV2_table.txt" in names
        assert not any("DEV1" in name for name in names)

    @pytest.mark.parametrize("device_filter", [None, ""])
    def test_empty_filter_keeps_only_pass_all_files(self, device_filter):
        """Test that no device filter yields only the temp/*.net files."""
        artifact = self.builder.build(self.builder.create_job(self.temp_dir, device_filter))
        assert self._names(artifact.path) == ["temp/DEV2.net", "temp/x.net"]

    def test_listing_is_not_recursive(self):
        """Test that files in nested directories are not archived."""
        artifact = self.builder.build(self.builder.create_job(self.temp_dir, "DEV1"))
        assert not any("nested" in name for name in artifact.entry_names())

    def test_directories_with_matching_names_are_skipped(self):
        """Test that only regular files are archived."""
        (self.base / "temp" / "folder.net").mkdir()
        artifact = self.builder.build(self.builder.create_job(self.temp_dir))
        assert "temp/folder.net" not in artifact.entry_names()

    def test_missing_sub_directories(self):
        """Test that absent sub-directories are skipped without error."""
        shutil.rmtree(self.base / "_inputs_severin")
        shutil.rmtree(self.base / "temp")

        artifact = self.builder.build(self.builder.create_job(self.temp_dir, "DEV1"))

        assert self._names(artifact.path) == ["out/DEV1-a.txt", "out/DEV1-b.txt"]

    def test_empty_installation(self):
        """Test that a directory without any output gives an empty archive."""
        empty_dir = self.base / "empty"
        empty_dir.mkdir()

        artifact = self.builder.build(self.builder.create_job(str(empty_dir), "DEV1"))

        assert artifact.entries == []
        assert self._names(artifact.path) == []
        assert artifact.size > 0

    def test_output_location_and_content(self):
        """Test that the archive is written in the base directory and is readable."""
        artifact = self.builder.build(self.builder.create_job(self.temp_dir, "DEV1"))

        assert Path(artifact.path) == self.base / DEFAULT_OUTPUT_NAME
        assert artifact.size == os.path.getsize(artifact.path)
        assert artifact.read_bytes()[:2] == b"PK"
        with zipfile.ZipFile(artifact.path) as zf:
            assert zf.read("out/DEV1-a.txt") == b"Content of out/DEV1-a.txt"

    def test_entries_are_deflated(self):
        """Test that entries use deflate compression."""
        artifact = self.builder.build(self.builder.create_job(self.temp_dir, "DEV1"))
        with zipfile.ZipFile(artifact.path) as zf:
            assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())

    def test_compression_level_is_configurable(self):
        """Test that the configured compression level is passed to zipfile."""
        builder = ArchiveBuilder(ArchiveConfig(compression_level=1))
        with patch("ips_agent.tools.archiver.zipfile.ZipFile", wraps=zipfile.ZipFile) as zip_cls:
            builder.build(builder.create_job(self.temp_dir, "DEV1"))

        assert zip_cls.call_args.kwargs["compresslevel"] == 1
        assert zip_cls.call_args.kwargs["compression"] == zipfile.ZIP_DEFLATED

    def test_rebuild_overwrites_previous_archive(self):
        """Test that a second build replaces the first archive."""
        self.builder.build(self.builder.create_job(self.temp_dir, "DEV1"))
        artifact = self.builder.build(self.builder.create_job(self.temp_dir, "DEV2"))

        assert "out/DEV2-b.txt" in self._names(artifact.path)
        assert "out/DEV1-a.txt" not in self._names(artifact.path)

    def test_archive_does_not_include_itself(self):
        """Test that the output file never becomes an entry."""
        self.builder.build(self.builder.create_job(self.temp_dir))
        artifact = self.builder.build(self.builder.create_job(self.temp_dir))
        assert DEFAULT_OUTPUT_NAME not in " ".join(artifact.entry_names())

    def test_missing_base_directory_raises(self):
        """Test that an unwritable output location raises ArchiveError."""
        job = ArchiveJob.for_directory(str(self.base / "does-not-exist"), "DEV1")

        with pytest.raises(ArchiveError):
            self.builder.build(job)

        assert not os.path.exists(job.output_path)

    def test_read_failure_removes_partial_archive(self):
        """Test that a failing entry raises ArchiveError and leaves no archive."""
        job = self.builder.create_job(self.temp_dir, "DEV1")

        with patch.object(zipfile.ZipFile, "write", side_effect=PermissionError("denied")):
            with pytest.raises(ArchiveError, match="denied"):
                self.builder.build(job)

        assert not os.path.exists(job.output_path)

    def test_concurrent_builds_of_same_directory(self):
        """Test that parallel builds against one directory each produce a valid archive."""
        errors = []

        def run(device):
            try:
                self.builder.build(self.builder.create_job(self.temp_dir, device))
            except ArchiveError as e:
                errors.append(e)

        threads = [threading.Thread(target=run, args=(d,)) for d in ("DEV1", "DEV2") * 4]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        with zipfile.ZipFile(self.base / DEFAULT_OUTPUT_NAME) as zf:
            assert zf.testzip() is None

    def test_artifact_holds_bytes_of_its_own_build(self):
        """Test that the returned bytes survive a later rebuild of the same directory."""
        first = self.builder.build(self.builder.create_job(self.temp_dir, "DEV1"))
        self.builder.build(self.builder.create_job(self.temp_dir, "DEV2"))

        assert first.size == len(first.content)
        with zipfile.ZipFile(io.BytesIO(first.read_bytes())) as zf:
            assert "out/DEV1-a.txt" in zf.namelist()
            assert "out/DEV2-b.txt" not in zf.namelist()

    def test_output_locks_are_released(self):
        """Test that no per-path lock outlives its builds."""
        for index in range(5):
            other = self.base / f"install-{index}"
            other.mkdir()
            self.builder.build(self.builder.create_job(str(other), "DEV1"))

        with pytest.raises(ArchiveError):
            self.builder.build(self.builder.create_job(str(self.base / "missing"), "DEV1"))

        assert self.builder._locks == {}

    def test_output_locks_released_after_concurrent_builds(self):
        """Test that contended locks are dropped once the last waiter finishes."""
        threads = [
            threading.Thread(target=self.builder.build, args=(self.builder.create_job(self.temp_dir, d),))
            for d in ("DEV1", "DEV2") * 4
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert self.builder._locks == {}

    def test_iter_members_order(self):
        """Test that rules are applied in out, tables, temp order."""
        job = self.builder.create_job(self.temp_dir, "DEV1")
        subdirs = [rule.sub_directory for rule, _ in self.builder.iter_members(job)]
        assert subdirs == ["out", "out", "_inputs_severin/tables", "temp", "temp"]
