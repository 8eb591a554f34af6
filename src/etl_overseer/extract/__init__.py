from etl_overseer.extract.delimited_file import DelimitedFileIngestor
from etl_overseer.extract.directory_scanner import DirectoryScanner, FileDescriptor, ScanCriteria, describe_file
from etl_overseer.extract.sources import FileSource, InlineSource, SourceBatch, build_source
from etl_overseer.extract.structured_file import StructuredFileIngestor

__all__ = [
    "DelimitedFileIngestor",
    "DirectoryScanner",
    "FileDescriptor",
    "FileSource",
    "InlineSource",
    "ScanCriteria",
    "SourceBatch",
    "StructuredFileIngestor",
    "build_source",
    "describe_file",
]
