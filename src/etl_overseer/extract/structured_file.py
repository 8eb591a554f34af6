"""
Structured File Ingestor

Reads a JSON document holding an array of objects and hands each object to
the loader as one record. Empty and degenerate files are valid input with
zero records; anything else that is not an array of objects is rejected as a
whole before a single record is produced.
"""

from __future__ import annotations

import codecs
import json
import logging
from pathlib import Path
from typing import Iterator

from etl_overseer.errors import MalformedInput, SourceUnavailable
from etl_overseer.extract.directory_scanner import FileDescriptor

logger = logging.getLogger("etl.extract")


class StructuredFileIngestor:
    """Parses one JSON array file into records. Holds no state between calls."""

    def __init__(self, encoding: str = "utf-8-sig"):
        self.encoding = encoding

    def ingest(self, descriptor: FileDescriptor) -> Iterator[dict]:
        """
        Parse a file and return its records.

        Args:
            descriptor: File to read

        Returns:
            Single-pass iterator over the file's records

        Raises:
            SourceUnavailable: File vanished or cannot be read
            MalformedInput: Content is not a JSON array of objects
        """
        records = self._parse(Path(descriptor.path))
        logger.info(f"Read {len(records)} records from {descriptor.path}")
        return iter(records)

    def _parse(self, path: Path) -> list[dict]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise SourceUnavailable(f"Input file not found: {path}", path=str(path)) from None
        except OSError as e:
            raise SourceUnavailable(f"Cannot read input file {path}: {e}", path=str(path)) from e

        # A byte order mark alone is still an empty file
        if not raw.removeprefix(codecs.BOM_UTF8).strip():
            logger.debug(f"{path} is empty, no records")
            return []

        try:
            document = json.loads(raw.decode(self.encoding))
        except UnicodeDecodeError as e:
            raise MalformedInput(f"{path} is not valid {self.encoding} text: {e}", path=str(path)) from e
        except json.JSONDecodeError as e:
            raise MalformedInput(
                f"{path} is not valid JSON (line {e.lineno}, column {e.colno}): {e.msg}",
                path=str(path),
            ) from e

        if not isinstance(document, list):
            raise MalformedInput(
                f"{path} must contain a JSON array of records, found {type(document).__name__}",
                path=str(path),
            )

        for index, entry in enumerate(document, start=1):
            if not isinstance(entry, dict):
                raise MalformedInput(
                    f"{path}: entry {index} is {type(entry).__name__}, expected an object",
                    path=str(path),
                )

        return [dict(entry) for entry in document]
