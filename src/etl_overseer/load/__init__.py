from etl_overseer.load.connection import TargetConnection, is_connection_lost
from etl_overseer.load.loader import BulkLoader, LoadOutcome, RowFailure
from etl_overseer.load.sql_warnings import (
    DiagnosticRow,
    Severity,
    SqlWarning,
    WarningCollector,
    WarningFilter,
    WarningPolicy,
)
from etl_overseer.load.table_manager import TableManager

__all__ = [
    "BulkLoader",
    "DiagnosticRow",
    "LoadOutcome",
    "RowFailure",
    "Severity",
    "SqlWarning",
    "TableManager",
    "TargetConnection",
    "WarningCollector",
    "WarningFilter",
    "WarningPolicy",
    "is_connection_lost",
]
