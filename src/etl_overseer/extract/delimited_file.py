import csv
import io
import logging
from pathlib import Path

from etl_overseer.errors import MalformedInput, SourceUnavailable

logger = logging.getLogger("etl.extract")


# CSV/TSV reader feeding the same load path as structured files. Values stay strings; the engine coerces them.
class DelimitedFileIngestor:

    def __init__(self, field_separator=",", columns=None, null_marker=r"\N", encoding="utf-8-sig"):
        self.field_separator = field_separator
        self.columns = list(columns) if columns else None
        self.null_marker = null_marker
        self.encoding = encoding

    def ingest(self, descriptor):
        records = self._parse(Path(descriptor.path))
        logger.info(f"Read {len(records)} records from {descriptor.path}")
        return iter(records)

    def _parse(self, path):
        try:
            text = path.read_text(encoding=self.encoding)
        except FileNotFoundError:
            raise SourceUnavailable(f"Input file not found: {path}", path=str(path)) from None
        except UnicodeDecodeError as e:
            raise MalformedInput(f"{path} is not valid {self.encoding} text: {e}", path=str(path)) from e
        except OSError as e:
            raise SourceUnavailable(f"Cannot read input file {path}: {e}", path=str(path)) from e

        try:
            rows = list(csv.reader(io.StringIO(text, newline=""), delimiter=self.field_separator))
        except csv.Error as e:
            raise MalformedInput(f"{path} is not valid delimited text: {e}", path=str(path)) from e

        rows = [row for row in rows if row]
        if not rows:
            return []

        columns = self.columns
        if columns is None:
            columns, rows = rows[0], rows[1:]

        records = []
        for line, row in enumerate(rows, start=1):
            if len(row) != len(columns):
                raise MalformedInput(
                    f"{path}: record {line} has {len(row)} fields, expected {len(columns)}",
                    path=str(path),
                )
            records.append({
                column: (None if value == self.null_marker else value)
                for column, value in zip(columns, row)
            })
        return records
