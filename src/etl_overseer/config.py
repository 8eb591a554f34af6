"""
ETL Configuration

Parses the configuration document (YAML, or JSON which YAML accepts) into
immutable action and pipeline definitions and resolves requested names.

Document layout::

    module: xdmod
    defaults: {hide_sql_warnings: false}
    pipelines:
      structured-file:
        options: {}
        actions:
          - name: read-people-1
            ingestor: structured_file
            source: {file: people_1.json}
            destination: people

Actions are addressed as ``<module>.<pipeline>.<action>`` and pipelines as
``<module>.<pipeline>``; the module prefix may be omitted on lookup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from etl_overseer.errors import ConfigurationError
from etl_overseer.load.sql_warnings import parse_bool
from etl_overseer.utils.yaml_loader import load_yaml

INGESTORS = ("structured_file", "delimited_file", "inline")
LOAD_MODES = ("bulk", "row")
FILE_INGESTORS = ("structured_file", "delimited_file")


@dataclass(frozen=True)
class ActionDefinition:
    """One configured action."""

    name: str
    pipeline: str
    ingestor: str
    destination: str
    load_mode: str = "bulk"
    source: dict = field(default_factory=dict)
    records: tuple = ()
    options: dict = field(default_factory=dict)
    transform: dict = field(default_factory=dict)
    table_definition: dict | None = None
    truncate_destination: bool = False
    enabled: bool = True


@dataclass(frozen=True)
class PipelineDefinition:
    """An ordered list of actions sharing pipeline-level options."""

    name: str
    actions: tuple[ActionDefinition, ...]
    options: dict = field(default_factory=dict)
    enabled: bool = True


@dataclass(frozen=True)
class EtlConfig:
    """Parsed configuration document."""

    pipelines: dict[str, PipelineDefinition]
    actions: dict[str, ActionDefinition]
    defaults: dict = field(default_factory=dict)
    module: str | None = None
    path: Path | None = None

    @property
    def base_dir(self) -> Path:
        """Directory relative source paths resolve against."""
        return self.path.parent if self.path else Path.cwd()

    def find_action(self, name: str) -> ActionDefinition:
        return self._find(self.actions, name, "action")

    def find_pipeline(self, name: str) -> PipelineDefinition:
        return self._find(self.pipelines, name, "pipeline")

    def pipeline_of(self, action: ActionDefinition) -> PipelineDefinition:
        return self.pipelines[action.pipeline]

    def option_layers(self, action: ActionDefinition) -> list[dict]:
        """Option mappings for an action, lowest precedence first."""
        return [self.defaults, self.pipeline_of(action).options, action.options]

    def _find(self, entries: dict, name: str, kind: str):
        if name in entries:
            return entries[name]
        if self.module and f"{self.module}.{name}" in entries:
            return entries[f"{self.module}.{name}"]

        available = ", ".join(sorted(entries)) or "none"
        raise ConfigurationError(f"Unknown {kind} '{name}'. Available: {available}")


def load_config(path: str | Path) -> EtlConfig:
    """
    Load and validate a configuration document.

    Raises:
        ConfigurationError: File missing, unparseable, or structurally invalid
    """
    path = Path(path).resolve()
    try:
        document = load_yaml(str(path))
    except (ValueError, FileNotFoundError) as e:
        raise ConfigurationError(str(e)) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e

    return parse_config(document, path)


def parse_config(document: Any, path: Path | None = None) -> EtlConfig:
    if not isinstance(document, dict):
        raise ConfigurationError("Configuration document must be a mapping")

    module = document.get("module")
    defaults = _mapping(document.get("defaults"), "defaults")
    raw_pipelines = _mapping(document.get("pipelines"), "pipelines")
    if not raw_pipelines:
        raise ConfigurationError("Configuration defines no pipelines")

    pipelines: dict[str, PipelineDefinition] = {}
    actions: dict[str, ActionDefinition] = {}

    for short_name, raw in raw_pipelines.items():
        pipeline_name = f"{module}.{short_name}" if module else str(short_name)
        if isinstance(raw, list):
            raw = {"actions": raw}
        raw = _mapping(raw, f"pipeline {pipeline_name}")

        raw_actions = raw.get("actions") or []
        if not isinstance(raw_actions, list):
            raise ConfigurationError(f"Pipeline {pipeline_name}: 'actions' must be a list")

        pipeline_actions = []
        for raw_action in raw_actions:
            action = _parse_action(raw_action, pipeline_name)
            if action.name in actions:
                raise ConfigurationError(f"Duplicate action name {action.name}")
            actions[action.name] = action
            pipeline_actions.append(action)

        pipelines[pipeline_name] = PipelineDefinition(
            name=pipeline_name,
            actions=tuple(pipeline_actions),
            options=_mapping(raw.get("options"), f"pipeline {pipeline_name} options"),
            enabled=parse_bool(raw.get("enabled", True), f"pipeline {pipeline_name} enabled"),
        )

    return EtlConfig(pipelines=pipelines, actions=actions, defaults=defaults, module=module, path=path)


def _parse_action(raw: Any, pipeline_name: str) -> ActionDefinition:
    raw = _mapping(raw, f"action in pipeline {pipeline_name}")
    short_name = raw.get("name")
    if not short_name:
        raise ConfigurationError(f"Pipeline {pipeline_name}: every action needs a 'name'")
    name = f"{pipeline_name}.{short_name}"

    ingestor = raw.get("ingestor", "structured_file")
    if ingestor not in INGESTORS:
        raise ConfigurationError(f"Action {name}: unknown ingestor '{ingestor}', expected one of {', '.join(INGESTORS)}")

    load_mode = raw.get("load_mode", "bulk")
    if load_mode not in LOAD_MODES:
        raise ConfigurationError(f"Action {name}: unknown load_mode '{load_mode}', expected bulk or row")

    destination = raw.get("destination")
    if not destination:
        raise ConfigurationError(f"Action {name}: 'destination' table is required")

    source = _mapping(raw.get("source"), f"action {name} source")
    if ingestor in FILE_INGESTORS and not (source.get("file") or source.get("directory")):
        raise ConfigurationError(f"Action {name}: {ingestor} needs source.file or source.directory")

    records = raw.get("records") or []
    if ingestor == "inline" and not isinstance(records, list):
        raise ConfigurationError(f"Action {name}: 'records' must be a list of objects")
    if any(not isinstance(record, dict) for record in records):
        raise ConfigurationError(f"Action {name}: every inline record must be an object")

    table_definition = raw.get("table_definition")
    if table_definition is not None:
        table_definition = _mapping(table_definition, f"action {name} table_definition")

    try:
        truncate = parse_bool(raw.get("truncate_destination", False), "truncate_destination")
        enabled = parse_bool(raw.get("enabled", True), "enabled")
    except ConfigurationError as e:
        raise ConfigurationError(f"Action {name}: {e}") from None

    return ActionDefinition(
        name=name,
        pipeline=pipeline_name,
        ingestor=ingestor,
        destination=str(destination),
        load_mode=load_mode,
        source=source,
        records=tuple(records),
        options=_mapping(raw.get("options"), f"action {name} options"),
        transform=_mapping(raw.get("transform"), f"action {name} transform"),
        table_definition=table_definition,
        truncate_destination=truncate,
        enabled=enabled,
    )


def _mapping(value: Any, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{what} must be a mapping")
    return value
