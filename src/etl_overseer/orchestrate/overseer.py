"""
Overseer

Top-level driver. Resolves an action or pipeline name against the
configuration, runs it on one shared target connection, and renders the
results onto the log stream:

- a header plus one ``[warning]`` line per surfaced warning,
- one ``[notice]`` line ``<action-name> records_loaded: <N>`` per completed action,
- one ``[error]`` line per failed action.

The same information is returned as ``ActionResult`` / ``PipelineResult``
values for in-process callers.
"""

from __future__ import annotations

import logging

from etl_overseer.load.connection import TargetConnection
from etl_overseer.load.sql_warnings import WarningPolicy
from etl_overseer.orchestrate.action import Action, ActionResult
from etl_overseer.orchestrate.pipeline import Pipeline, PipelineResult
from etl_overseer.utils.logger import notice

logger = logging.getLogger("etl.overseer")


class Overseer:
    """Runs named actions and pipelines from an ``EtlConfig``."""

    def __init__(self, config, local_options=None, variables=None, dryrun=False, target=None):
        """
        Initialize overseer.

        Args:
            config: Parsed EtlConfig
            local_options: Command-line ``-o`` options, highest precedence
            variables: Command-line ``-d`` definitions for ${VAR} substitution
            dryrun: Read sources without touching the database
            target: Object with ``connect()`` / ``close()``; defaults to a
                TargetConnection built from the environment, opened lazily
        """
        self.config = config
        self.local_options = dict(local_options or {})
        self.variables = dict(variables or {})
        self.dryrun = dryrun
        self.target = target

        # Fail on a bad -o value before anything runs
        WarningPolicy.from_options(self.local_options)

    def run(self, action: str | None = None, pipeline: str | None = None) -> int:
        """Run one action or one pipeline and return the process exit status."""
        if action is not None:
            return self.run_action(action).exit_status
        return self.run_pipeline(pipeline).exit_status

    def run_action(self, name: str) -> ActionResult:
        definition = self.config.find_action(name)
        result = self._build_action(definition).run()
        self._report(result)
        return result

    def run_pipeline(self, name: str) -> PipelineResult:
        definition = self.config.find_pipeline(name)
        result = Pipeline(definition, self._build_action).run(on_action_complete=self._report)
        if not result.succeeded:
            logger.error(f"Pipeline {result.name} failed at action {result.failed_action}")
        return result

    def policy_for(self, definition) -> WarningPolicy:
        layers = self.config.option_layers(definition) + [self.local_options]
        return WarningPolicy.from_options(*layers)

    def close(self) -> None:
        if self.target is not None:
            self.target.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _build_action(self, definition) -> Action:
        return Action(
            definition,
            policy=self.policy_for(definition),
            connection_provider=self._connection,
            base_dir=self.config.base_dir,
            variables=self.variables,
            dryrun=self.dryrun,
        )

    def _connection(self):
        if self.target is None:
            self.target = TargetConnection()
        return self.target.connect()

    def _report(self, result: ActionResult) -> None:
        if result.warnings:
            kind = "LOAD DATA" if result.load_mode == "bulk" else "SQL"
            logger.warning(f"{kind} warnings on table '{result.destination}' generated by action {result.name}")
            for warning in result.warnings:
                logger.warning(warning.render())
        if result.warnings_hidden:
            logger.debug(f"{result.warnings_hidden} warnings hidden by policy for {result.name}")

        for failure in result.rows_rejected:
            logger.error(f"Row {failure.row_number} rejected by '{result.destination}': Error {failure.code} {failure.message}")

        if result.succeeded:
            notice(logger, f"{result.name} records_loaded: {result.records_loaded}")
        else:
            logger.error(f"Action {result.name} failed after loading {result.records_loaded} records: {result.error}")
