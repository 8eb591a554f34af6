from etl_overseer.orchestrate.action import Action, ActionResult, ActionState
from etl_overseer.orchestrate.overseer import Overseer
from etl_overseer.orchestrate.pipeline import Pipeline, PipelineResult

__all__ = [
    "Action",
    "ActionResult",
    "ActionState",
    "Overseer",
    "Pipeline",
    "PipelineResult",
]
