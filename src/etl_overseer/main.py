# Command line entry point: resolves the requested action or pipeline, runs it, and maps the outcome to an exit status.
# Everything is reported on stdout through logging; stderr stays empty unless argparse rejects the arguments.

import argparse
import os
import sys

from etl_overseer.config import load_config
from etl_overseer.errors import ConfigurationError
from etl_overseer.orchestrate.overseer import Overseer
from etl_overseer.utils.env_variables import PROJECT_ROOT
from etl_overseer.utils.logger import VERBOSITY_LEVELS, setup_logging
from etl_overseer.utils.yaml_loader import parse_scalar

EXIT_CONFIGURATION = 2
EXIT_INTERRUPTED = 130

DEFAULT_CONFIG = os.getenv("ETL_CONFIG", os.path.join(PROJECT_ROOT, "config", "etl_config.yaml"))


def parse_assignments(values, typed=False):
    """Turn repeated NAME=value arguments into a dict, optionally typing values like YAML scalars."""
    assignments = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ConfigurationError(f"Expected NAME=value, got '{item}'")
        assignments[name] = parse_scalar(value) if typed else value
    return assignments


def build_parser():
    parser = argparse.ArgumentParser(
        prog="etl-overseer",
        description="Run a configured ETL action or pipeline.",
    )
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG, help="ETL configuration file (YAML or JSON)")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("-a", "--action", help="qualified name of a single action to run")
    target.add_argument("-p", "--pipeline", help="qualified name of a pipeline to run")
    parser.add_argument(
        "-o", "--option", action="append", default=[], metavar="NAME=VALUE",
        help="local option for this run, e.g. hide_sql_warnings=true or hide_sql_warning_codes=[1264,1366]",
    )
    parser.add_argument(
        "-d", "--define", action="append", default=[], metavar="VAR=VALUE",
        help="variable used for ${VAR} substitution in source paths",
    )
    parser.add_argument("-v", "--verbosity", default="notice", choices=list(VERBOSITY_LEVELS), help="lowest severity written to the log")
    parser.add_argument("-n", "--dryrun", action="store_true", help="read and count records without writing to the database")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logger = setup_logging("etl.overseer", args.verbosity)

    try:
        config = load_config(args.config)
        local_options = parse_assignments(args.option, typed=True)
        variables = parse_assignments(args.define)

        with Overseer(config, local_options, variables, dryrun=args.dryrun) as overseer:
            return overseer.run(action=args.action, pipeline=args.pipeline)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIGURATION
    except KeyboardInterrupt:
        # Rows the engine already committed stay committed
        logger.error("Interrupted, stopping without rollback")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
