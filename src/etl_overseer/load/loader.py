import json
import logging
import os
import tempfile
from dataclasses import dataclass, field

import pymysql

from etl_overseer.errors import ConnectionLost, DiagnosticsUnavailable, LoadFailed
from etl_overseer.load.connection import error_code, error_message, is_connection_lost
from etl_overseer.load.sql_warnings import DiagnosticRow

# Errors that reject one row's data rather than the statement: NOT NULL, duplicate key, foreign key,
# and the strict-mode forms of out of range, truncation and bad value.
ROW_REJECTION_CODES = {1048, 1062, 1216, 1364, 1406, 1451, 1452, 1264, 1265, 1292, 1366}


def quote_identifier(name):
    return "`" + str(name).strip("`").replace("`", "``") + "`"


def quote_table(name):
    """`schema`.`table` from either `schema.table` or an already quoted name."""
    return ".".join(quote_identifier(part) for part in str(name).split("."))


def collect_columns(records):
    # Union of keys in first-seen order, records missing a column load NULL for it.
    columns = {}
    for record in records:
        for column in record:
            columns.setdefault(column, None)
    return list(columns)


def adapt_value(value):
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def escape_field(value):
    # LOAD DATA defaults: tab separated, newline terminated, backslash escaped, \N for NULL.
    if value is None:
        return r"\N"
    if isinstance(value, bool):
        value = int(value)
    text = str(adapt_value(value))
    return (
        text.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\0", "\\0")
    )


@dataclass(frozen=True)
class RowFailure:
    row_number: int
    code: int | None
    message: str


@dataclass
class LoadOutcome:
    """What one load call did: rows accepted, raw diagnostics, rejected rows."""

    records_loaded: int = 0
    raw_warnings: list = field(default_factory=list)
    row_failures: list = field(default_factory=list)
    diagnostics_error: Exception | None = None

    def merge(self, other):
        self.records_loaded += other.records_loaded
        self.raw_warnings.extend(other.raw_warnings)
        self.row_failures.extend(other.row_failures)
        if self.diagnostics_error is None:
            self.diagnostics_error = other.diagnostics_error
        return self


# Set-oriented and row-oriented insertion into the target, capturing SHOW WARNINGS after every statement.
class BulkLoader:

    def __init__(self, connection, tmp_dir=None):
        self.connection = connection
        self.tmp_dir = tmp_dir
        self.logger = logging.getLogger('etl.load')

    def bulk_load(self, records, table) -> LoadOutcome:
        """Load all records with one LOAD DATA LOCAL INFILE statement and commit."""

        records = list(records)
        if not records:
            self.logger.debug(f"No records to load into {table}, skipping LOAD DATA")
            return LoadOutcome()

        columns = collect_columns(records)
        infile = self._write_infile(records, columns, table)
        column_sql = ", ".join(quote_identifier(column) for column in columns)
        statement = f"LOAD DATA LOCAL INFILE %s INTO TABLE {quote_table(table)} CHARACTER SET utf8mb4 ({column_sql})"

        try:
            self.logger.debug(f"Starting LOAD DATA of {len(records)} records into {table}")
            with self.connection.cursor() as cursor:
                try:
                    cursor.execute(statement, (infile,))
                    loaded = cursor.rowcount
                except pymysql.err.MySQLError as e:
                    self._raise_fatal(e, table)
                raw_warnings, diagnostics_error = self._fetch_diagnostics(cursor, table)
            self._commit(table)
        finally:
            os.unlink(infile)

        self.logger.debug(f"LOAD DATA completed for {table}, {loaded} rows affected")
        return LoadOutcome(
            records_loaded=max(loaded, 0),
            raw_warnings=raw_warnings,
            diagnostics_error=diagnostics_error,
        )

    def insert_one(self, record, table, row_number=1) -> LoadOutcome:
        """Insert a single record and commit. A rejected row is reported, not raised."""

        outcome = self._insert(record, table, row_number)
        self._commit(table)
        return outcome

    def insert_many(self, records, table) -> LoadOutcome:
        """Insert records one statement at a time, continuing past rejected rows, then commit once."""

        outcome = LoadOutcome()
        try:
            for row_number, record in enumerate(records, start=1):
                outcome.merge(self._insert(record, table, row_number))
        except LoadFailed:
            # Rows inserted before the failing statement are not kept
            try:
                self.connection.rollback()
            except pymysql.err.MySQLError as e:
                self.logger.debug(f"Rollback after failed insert into {table} failed: {e}")
            raise
        self._commit(table)

        if outcome.row_failures:
            self.logger.debug(f"{len(outcome.row_failures)} rows rejected by {table}")
        return outcome

    def _insert(self, record, table, row_number):
        columns = list(record)
        column_sql = ", ".join(quote_identifier(column) for column in columns)
        placeholders = ", ".join(["%s"] * len(columns))
        statement = f"INSERT INTO {quote_table(table)} ({column_sql}) VALUES ({placeholders})"

        with self.connection.cursor() as cursor:
            try:
                cursor.execute(statement, [adapt_value(record[column]) for column in columns])
                loaded = cursor.rowcount
            except pymysql.err.MySQLError as e:
                if is_connection_lost(e):
                    raise ConnectionLost(
                        f"Connection lost inserting row {row_number} into {table}: {error_message(e)}",
                        code=error_code(e),
                    ) from e
                if error_code(e) not in ROW_REJECTION_CODES:
                    self._raise_fatal(e, table)
                self.logger.debug(f"Row {row_number} rejected by {table}: {e}")
                return LoadOutcome(row_failures=[RowFailure(row_number, error_code(e), error_message(e))])

            raw_warnings, diagnostics_error = self._fetch_diagnostics(cursor, table, row_offset=row_number - 1)

        return LoadOutcome(
            records_loaded=max(loaded, 0),
            raw_warnings=raw_warnings,
            diagnostics_error=diagnostics_error,
        )

    def _fetch_diagnostics(self, cursor, table, row_offset=0):
        # Returns (rows, error); an error is handed to the collector rather than swallowed.
        # SHOW COUNT(*) WARNINGS leaves the diagnostics area intact, so both read the same statement.
        try:
            cursor.execute("SHOW COUNT(*) WARNINGS")
            expected = int(cursor.fetchone()[0])
            cursor.execute("SHOW WARNINGS")
            rows = cursor.fetchall()
        except pymysql.err.MySQLError as e:
            if is_connection_lost(e):
                raise ConnectionLost(
                    f"Connection lost retrieving warnings for {table}: {error_message(e)}",
                    code=error_code(e),
                ) from e
            return [], e

        if len(rows) < expected:
            return [], DiagnosticsUnavailable(
                f"SHOW WARNINGS returned {len(rows)} of {expected} warnings for {table}, raise max_error_count",
                table=table,
            )

        try:
            return [DiagnosticRow(level, code, message, row_offset) for level, code, message in rows], None
        except (TypeError, ValueError) as e:
            return [], e

    def _commit(self, table):
        try:
            self.connection.commit()
        except pymysql.err.MySQLError as e:
            self._raise_fatal(e, table)

    def _write_infile(self, records, columns, table):
        try:
            with tempfile.NamedTemporaryFile(
                "w", suffix=".tsv", prefix="etl_load_", dir=self.tmp_dir,
                delete=False, encoding="utf-8", newline="",
            ) as fh:
                for record in records:
                    fh.write("\t".join(escape_field(record.get(column)) for column in columns) + "\n")
                return fh.name
        except OSError as e:
            raise LoadFailed(f"Could not stage records for {table}: {e}", table=table) from e

    def _raise_fatal(self, error, table):
        if is_connection_lost(error):
            raise ConnectionLost(
                f"Connection lost loading {table}: {error_message(error)}",
                code=error_code(error),
            ) from error
        raise LoadFailed(
            f"Load into {table} failed: {error_message(error)}",
            table=table,
            code=error_code(error),
        ) from error
