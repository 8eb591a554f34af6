#Sets up logs with dedicated formats, handlers, loggers, etc.

import logging
import logging.config
import os
import time
from pathlib import Path

import yaml

from etl_overseer.utils.env_variables import LOGGING_CONFIG_PATH

# Between INFO and WARNING; used for per-action summaries.
NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")

VERBOSITY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": NOTICE,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

DEFAULT_LOGGING_YAML = Path(__file__).resolve().parents[1] / "config" / "logging.yaml"


class SeverityFormatter(logging.Formatter):
    """Adds a lowercase `severity` attribute so lines read `[warning]`, `[notice]`."""

    def format(self, record):
        record.severity = record.levelname.lower()
        return super().format(record)


def resolve_level(verbosity):
    if isinstance(verbosity, int):
        return verbosity
    try:
        return VERBOSITY_LEVELS[str(verbosity).lower()]
    except KeyError:
        available = ", ".join(VERBOSITY_LEVELS)
        raise ValueError(f"Unknown verbosity '{verbosity}'. Available levels: {available}") from None


def setup_logging(module_name, verbosity="notice", config_path=None):
    """Configures logging using dictConfig with the provided YAML configuration."""

    logging_yaml_path = Path(config_path or LOGGING_CONFIG_PATH or DEFAULT_LOGGING_YAML)
    level_name = logging.getLevelName(resolve_level(verbosity))

    with open(logging_yaml_path) as f:
        config_str = f.read()
        # Expand environment variables, the level placeholder always wins over the environment
        config_str = config_str.replace("${ETL_LOG_LEVEL}", level_name)
        config_str = os.path.expandvars(config_str)
        log_config = yaml.safe_load(config_str)

    logging.config.dictConfig(log_config)

    return logging.getLogger(module_name)


def notice(logger, message, *args):
    logger.log(NOTICE, message, *args)


def log_metrics(logger, name, status, start_time, error=None):
    duration = time.time() - start_time
    message = f"{name} | {status} | {duration:.2f}s"
    if error:
        message += f" | Error: {error}"
    logger.info(message)
