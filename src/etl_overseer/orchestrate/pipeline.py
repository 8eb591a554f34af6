from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from etl_overseer.orchestrate.action import Action, ActionResult, ActionState

logger = logging.getLogger("etl.overseer")


@dataclass
class PipelineResult:
    """Results of the actions a pipeline ran, in order."""

    name: str
    results: list[ActionResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    state: ActionState = ActionState.PENDING
    failed_action: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == ActionState.SUCCEEDED

    @property
    def exit_status(self) -> int:
        return 0 if self.succeeded else 1


# Runs actions strictly in declared order and stops at the first failure.
class Pipeline:

    def __init__(self, definition, action_factory: Callable[..., Action]):
        self.definition = definition
        self.name = definition.name
        self.action_factory = action_factory

    def run(self, on_action_complete: Callable[[ActionResult], None] | None = None) -> PipelineResult:
        result = PipelineResult(name=self.name, state=ActionState.RUNNING)

        # Actions of a disabled pipeline only run when requested by name
        if not self.definition.enabled:
            logger.info(f"Skipping disabled pipeline {self.name}")
            result.skipped.extend(definition.name for definition in self.definition.actions)
            result.state = ActionState.SUCCEEDED
            return result

        logger.info(f"Starting pipeline {self.name} with {len(self.definition.actions)} actions")

        for definition in self.definition.actions:
            if not definition.enabled:
                logger.info(f"Skipping disabled action {definition.name}")
                result.skipped.append(definition.name)
                continue

            # A fresh Action per step, nothing read by an earlier step is reused.
            action_result = self.action_factory(definition).run()
            result.results.append(action_result)
            if on_action_complete is not None:
                on_action_complete(action_result)

            if not action_result.succeeded:
                result.state = ActionState.FAILED
                result.failed_action = definition.name
                remaining = len(self.definition.actions) - len(result.results) - len(result.skipped)
                logger.info(f"Pipeline {self.name} stopped at {definition.name}, {remaining} actions not run")
                return result

        result.state = ActionState.SUCCEEDED
        return result
