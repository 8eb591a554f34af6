"""
Record Sources

Resolves an action's source locator into batches of records: one batch per
input file for file ingestors, a single batch for inline records. Sources
are rebuilt for every action run, so nothing carries over between runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from etl_overseer.errors import ConfigurationError
from etl_overseer.extract.delimited_file import DelimitedFileIngestor
from etl_overseer.extract.directory_scanner import DirectoryScanner, ScanCriteria, describe_file
from etl_overseer.extract.structured_file import StructuredFileIngestor
from etl_overseer.load.sql_warnings import parse_bool
from etl_overseer.utils.path_loader import resolve_path

logger = logging.getLogger("etl.extract")


@dataclass
class SourceBatch:
    """Records read from one input unit, loaded with one loader call."""

    label: str
    records: list[dict]


class FileSource:
    """A single file or a scanned directory read through a file ingestor."""

    def __init__(self, ingestor, file=None, directory=None, criteria=None, scanner=None):
        self.ingestor = ingestor
        self.file = file
        self.directory = directory
        self.criteria = criteria
        self.scanner = scanner or DirectoryScanner()

    def batches(self) -> Iterator[SourceBatch]:
        if self.file is not None:
            descriptors = iter([describe_file(self.file)])
        else:
            descriptors = self.scanner.scan(self.directory, self.criteria)

        for descriptor in descriptors:
            yield SourceBatch(str(descriptor.path), list(self.ingestor.ingest(descriptor)))


class InlineSource:
    """Records embedded in the action definition."""

    def __init__(self, records):
        self.records = records

    def batches(self) -> Iterator[SourceBatch]:
        yield SourceBatch("inline", [dict(record) for record in self.records])


def build_ingestor(definition):
    if definition.ingestor == "structured_file":
        return StructuredFileIngestor()

    source = definition.source
    return DelimitedFileIngestor(
        field_separator=_separator(source.get("field_separator", ",")),
        columns=source.get("columns"),
    )


def build_source(definition, base_dir=None, variables=None):
    """
    Build the record source for an action definition.

    Args:
        definition: ActionDefinition
        base_dir: Directory relative paths are resolved against
        variables: ``-d NAME=value`` definitions used for ${NAME} substitution

    Raises:
        ConfigurationError: Locator missing or contains an undefined variable
    """
    if definition.ingestor == "inline":
        return InlineSource(definition.records)

    source = definition.source
    ingestor = build_ingestor(definition)

    if source.get("file"):
        path = resolve_path(source["file"], base_dir, variables)
        logger.debug(f"{definition.name} reads file {path}")
        return FileSource(ingestor, file=path)

    if source.get("directory"):
        directory = resolve_path(source["directory"], base_dir, variables)
        criteria = ScanCriteria(
            file_pattern=source.get("file_pattern", "*"),
            exclude_pattern=source.get("exclude_pattern"),
            recursive=parse_bool(source.get("recursive", False), "recursive"),
        )
        logger.debug(f"{definition.name} scans directory {directory} for '{criteria.file_pattern}'")
        return FileSource(ingestor, directory=directory, criteria=criteria)

    raise ConfigurationError(f"Action {definition.name} has no source.file or source.directory", action=definition.name)


def _separator(value):
    # YAML keeps "\t" literal inside single quotes
    return "\t" if value in ("\\t", "tab") else value
