"""
Directory Scanner

Discovers candidate input files for file based ingestors. The listing is
sorted by path so repeated scans of an unchanged directory produce the same
sequence, and nothing is remembered between scans: every run sees every
matching file again, including zero-byte ones.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from etl_overseer.errors import SourceUnavailable

logger = logging.getLogger("etl.extract")


@dataclass(frozen=True)
class FileDescriptor:
    """A discovered input file."""

    path: Path
    size_bytes: int
    discovered_at: int  # position in the scan order


@dataclass(frozen=True)
class ScanCriteria:
    """Which files in a directory are ingestion candidates."""

    file_pattern: str = "*"
    exclude_pattern: str | None = None
    recursive: bool = False

    def matches(self, path: Path) -> bool:
        if not fnmatch.fnmatch(path.name, self.file_pattern):
            return False
        return not (self.exclude_pattern and fnmatch.fnmatch(path.name, self.exclude_pattern))


def describe_file(path: str | Path, discovered_at: int = 0) -> FileDescriptor:
    """Build a descriptor for a single configured file."""
    path = Path(path)
    try:
        stat = path.stat()
    except FileNotFoundError:
        raise SourceUnavailable(f"Input file not found: {path}", path=str(path)) from None
    except OSError as e:
        raise SourceUnavailable(f"Cannot read input file {path}: {e}", path=str(path)) from e

    if not path.is_file():
        raise SourceUnavailable(f"Input path is not a file: {path}", path=str(path))
    return FileDescriptor(path=path, size_bytes=stat.st_size, discovered_at=discovered_at)


class DirectoryScanner:
    """Enumerates files in a directory matching ``ScanCriteria``."""

    def scan(self, directory: str | Path, criteria: ScanCriteria | None = None) -> Iterator[FileDescriptor]:
        """
        List matching files in lexicographic path order.

        The directory is checked and listed before this returns, so a missing
        or unreadable directory fails here rather than mid-iteration.
        Descriptors (with file sizes) are produced lazily.

        Args:
            directory: Directory to scan
            criteria: Match criteria, defaults to every regular file

        Returns:
            Iterator of FileDescriptor, empty for an empty directory

        Raises:
            SourceUnavailable: Directory missing, not a directory, or unreadable
        """
        criteria = criteria or ScanCriteria()
        directory = Path(directory)

        if not directory.exists():
            raise SourceUnavailable(f"Input directory not found: {directory}", path=str(directory))
        if not directory.is_dir():
            raise SourceUnavailable(f"Input path is not a directory: {directory}", path=str(directory))

        try:
            candidates = directory.rglob("*") if criteria.recursive else directory.iterdir()
            paths = sorted(
                (path for path in candidates if path.is_file() and criteria.matches(path)),
                key=lambda path: path.as_posix(),
            )
        except OSError as e:
            raise SourceUnavailable(f"Cannot list input directory {directory}: {e}", path=str(directory)) from e

        logger.debug(f"Scanned {directory}: {len(paths)} files match '{criteria.file_pattern}'")
        return self._describe(paths)

    def _describe(self, paths: list[Path]) -> Iterator[FileDescriptor]:
        for ordinal, path in enumerate(paths):
            yield describe_file(path, discovered_at=ordinal)
