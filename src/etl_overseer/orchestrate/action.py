"""
Action

The unit of work: read one source, load it into one destination table and
report what the engine said about it. Warnings never fail an action; any
``EtlError`` does, and the result records how many rows were committed
before the failure.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from etl_overseer.errors import EtlError
from etl_overseer.extract.sources import build_source
from etl_overseer.load.loader import BulkLoader, RowFailure
from etl_overseer.load.sql_warnings import SqlWarning, WarningCollector, WarningFilter, WarningPolicy
from etl_overseer.load.table_manager import TableManager
from etl_overseer.transform.transformer import Transform
from etl_overseer.utils.logger import log_metrics

logger = logging.getLogger("etl.overseer")
metrics_logger = logging.getLogger("metrics.logger")


class ActionState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ActionResult:
    """Outcome of one action execution."""

    name: str
    destination: str = ""
    load_mode: str = "bulk"
    state: ActionState = ActionState.PENDING
    records_read: int = 0
    records_loaded: int = 0
    warnings: list[SqlWarning] = field(default_factory=list)
    warnings_hidden: int = 0
    rows_rejected: list[RowFailure] = field(default_factory=list)
    error: EtlError | None = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state == ActionState.SUCCEEDED

    @property
    def exit_status(self) -> int:
        return 0 if self.succeeded else 1


class Action:
    """Executes one ``ActionDefinition``."""

    def __init__(
        self,
        definition,
        policy: WarningPolicy | None = None,
        connection_provider: Callable | None = None,
        base_dir=None,
        variables: dict | None = None,
        dryrun: bool = False,
    ):
        """
        Initialize action.

        Args:
            definition: ActionDefinition from the configuration
            policy: Warning suppression for this run
            connection_provider: Returns the shared target connection; not
                called in dry-run mode
            base_dir: Directory relative source paths resolve against
            variables: ``-d`` definitions for ${VAR} substitution
            dryrun: Read and transform only, write nothing
        """
        self.definition = definition
        self.name = definition.name
        self.policy = policy or WarningPolicy()
        self.connection_provider = connection_provider
        self.base_dir = base_dir
        self.variables = variables or {}
        self.dryrun = dryrun

        self.collector = WarningCollector()
        self.warning_filter = WarningFilter()
        self.state = ActionState.PENDING

    def run(self) -> ActionResult:
        """Run to completion or failure. Fatal errors end up in the result, not raised."""
        definition = self.definition
        result = ActionResult(name=self.name, destination=definition.destination, load_mode=definition.load_mode)

        self.state = result.state = ActionState.RUNNING
        start = time.time()
        logger.info(f"Starting action {self.name} ({definition.ingestor} -> {definition.destination})")

        try:
            self._execute(result)
        except EtlError as e:
            if e.action is None:
                e.action = self.name
            result.error = e
            self.state = result.state = ActionState.FAILED
            log_metrics(metrics_logger, self.name, 'FAILED', start, e)
        else:
            self.state = result.state = ActionState.SUCCEEDED
            log_metrics(metrics_logger, self.name, 'SUCCESS', start)

        result.elapsed_seconds = time.time() - start
        return result

    def _execute(self, result: ActionResult) -> None:
        definition = self.definition
        source = build_source(definition, self.base_dir, self.variables)
        transform = Transform(definition.transform, name=self.name)

        loader = None
        if not self.dryrun:
            connection = self.connection_provider()
            self._prepare_destination(connection)
            loader = BulkLoader(connection)

        for batch in source.batches():
            records = transform.apply_transforms(batch.records)
            result.records_read += len(records)

            if loader is None:
                logger.info(f"Dry run: {len(records)} records from {batch.label} not loaded into {definition.destination}")
                result.records_loaded += len(records)
                continue

            if definition.load_mode == "row":
                outcome = loader.insert_many(records, definition.destination)
            else:
                outcome = loader.bulk_load(records, definition.destination)

            # Counted before diagnostics, the rows are committed even if warning retrieval fails.
            result.records_loaded += outcome.records_loaded
            result.rows_rejected.extend(outcome.row_failures)

            warnings = self.collector.collect(outcome, definition.destination)
            surfaced = self.warning_filter.apply(self.policy, warnings)
            result.warnings.extend(surfaced)
            result.warnings_hidden += len(warnings) - len(surfaced)
            logger.debug(
                f"{batch.label}: {outcome.records_loaded} loaded, {len(warnings)} warnings, {len(surfaced)} surfaced"
            )

    def _prepare_destination(self, connection) -> None:
        definition = self.definition
        if definition.table_definition is None and not definition.truncate_destination:
            return

        tables = TableManager(connection)
        if definition.table_definition is not None:
            tables.create_table(definition.destination, definition.table_definition)
        if definition.truncate_destination:
            tables.truncate(definition.destination)
