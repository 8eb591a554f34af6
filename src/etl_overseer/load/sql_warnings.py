"""
SQL Warning Handling

Normalizes the engine's per-statement diagnostics (``SHOW WARNINGS`` rows)
into ``SqlWarning`` values and decides which of them reach the log stream.

The collector never drops or merges entries: two identical warnings on
different rows are two warnings. Suppression is expressed as a
``WarningPolicy`` value built once per action from its layered options, and
``WarningFilter`` only decides inclusion.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, NamedTuple

from etl_overseer.errors import ConfigurationError, DiagnosticsUnavailable

HIDE_ALL_OPTION = "hide_sql_warnings"
HIDE_CODES_OPTION = "hide_sql_warning_codes"

ROW_PATTERN = re.compile(r"\bat row (\d+)\b")

TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0", ""}


class Severity(str, Enum):
    WARNING = "warning"
    NOTE = "note"


class DiagnosticRow(NamedTuple):
    """One raw ``SHOW WARNINGS`` row as returned by the driver.

    ``row_offset`` is added to the engine's "at row N" so row-by-row inserts,
    where every statement reports row 1, still carry their batch position.
    """

    level: str
    code: Any
    message: str
    row_offset: int = 0


@dataclass(frozen=True)
class SqlWarning:
    """A non-fatal diagnostic reported by the engine for one load statement."""

    code: int
    message: str
    severity: Severity
    source_table: str
    row_number: int | None = None

    def render(self) -> str:
        """Render in the engine's own layout, e.g. ``Warning 1264 Out of range value ...``."""
        return f"{self.severity.value.capitalize()} {self.code} {self.message}"


class WarningCollector:
    """Turns a load outcome's raw diagnostics into ordered ``SqlWarning`` values."""

    def collect(self, outcome, source_table: str) -> list[SqlWarning]:
        """
        Normalize the diagnostics captured for a load call.

        Args:
            outcome: ``LoadOutcome`` produced by the loader
            source_table: Table the diagnostics belong to

        Returns:
            Warnings in engine order, possibly empty

        Raises:
            DiagnosticsUnavailable: The diagnostic query failed or returned
                rows that cannot be interpreted
        """
        if isinstance(outcome.diagnostics_error, DiagnosticsUnavailable):
            raise outcome.diagnostics_error
        if outcome.diagnostics_error is not None:
            raise DiagnosticsUnavailable(
                f"Could not retrieve warnings for table '{source_table}': {outcome.diagnostics_error}",
                table=source_table,
            )

        return [self._normalize(raw, source_table) for raw in outcome.raw_warnings]

    def _normalize(self, raw, source_table: str) -> SqlWarning:
        try:
            row = raw if isinstance(raw, DiagnosticRow) else DiagnosticRow(*raw)
            code = int(row.code)
        except (TypeError, ValueError) as e:
            raise DiagnosticsUnavailable(
                f"Unrecognized diagnostic row {raw!r} for table '{source_table}': {e}",
                table=source_table,
            ) from e

        message = str(row.message)
        severity = Severity.NOTE if str(row.level).strip().lower() == "note" else Severity.WARNING

        row_number = None
        match = ROW_PATTERN.search(message)
        if match:
            row_number = int(match.group(1)) + row.row_offset

        return SqlWarning(
            code=code,
            message=message,
            severity=severity,
            source_table=source_table,
            row_number=row_number,
        )


def parse_bool(value: Any, option: str = HIDE_ALL_OPTION) -> bool:
    """Interpret a boolean option given as a bool, number or string."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise ConfigurationError(f"Option {option} expects a boolean, got {value!r}")


def normalize_codes(value: Any) -> frozenset[int]:
    """
    Normalize ``hide_sql_warning_codes`` into a set of integers.

    Accepts a single code, a list of codes, or the same written as a string
    (``"1366"``, ``"[1264,1366]"``, ``"1264,1366"``).
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        stripped = value.strip().strip("[]")
        value = [part for part in re.split(r"[\s,]+", stripped) if part]
    elif not isinstance(value, (list, tuple, set, frozenset)):
        value = [value]

    codes = set()
    for item in value:
        if isinstance(item, bool):
            raise ConfigurationError(f"Option {HIDE_CODES_OPTION} expects integer codes, got {item!r}")
        try:
            codes.add(int(item))
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Option {HIDE_CODES_OPTION} expects integer codes, got {item!r}"
            ) from None
    return frozenset(codes)


@dataclass(frozen=True)
class WarningPolicy:
    """Which warnings an action keeps out of the log stream."""

    hide_all: bool = False
    hide_codes: frozenset[int] = frozenset()

    @classmethod
    def from_options(cls, *layers: Mapping[str, Any] | None) -> WarningPolicy:
        """
        Build a policy from option layers, lowest precedence first.

        A later ``hide_sql_warnings`` overrides an earlier one; the
        ``hide_sql_warning_codes`` of all layers are combined.
        """
        hide_all = False
        hide_codes: set[int] = set()

        for options in layers:
            if not options:
                continue
            if HIDE_ALL_OPTION in options:
                hide_all = parse_bool(options[HIDE_ALL_OPTION])
            if HIDE_CODES_OPTION in options:
                hide_codes |= normalize_codes(options[HIDE_CODES_OPTION])

        return cls(hide_all=hide_all, hide_codes=frozenset(hide_codes))

    def hides(self, warning: SqlWarning) -> bool:
        return self.hide_all or warning.code in self.hide_codes


class WarningFilter:
    """Applies a ``WarningPolicy`` to a warning stream without altering the warnings."""

    def apply(self, policy: WarningPolicy, warnings: Iterable[SqlWarning]) -> list[SqlWarning]:
        return [warning for warning in warnings if not policy.hides(warning)]
