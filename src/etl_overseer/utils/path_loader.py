#Resolves source locators from configuration: ${VAR} substitution and paths relative to the config file.

import os
from pathlib import Path
from string import Template

from etl_overseer.errors import ConfigurationError

def substitute_variables(value, variables=None):
    """Replace $VAR / ${VAR} using command-line definitions first, then the process environment."""

    mapping = dict(os.environ)
    mapping.update(variables or {})
    try:
        return Template(value).substitute(mapping)
    except KeyError as e:
        raise ConfigurationError(f"Undefined variable {e.args[0]} in '{value}'. Define it with -d {e.args[0]}=<value>") from None
    except ValueError as e:
        raise ConfigurationError(f"Invalid variable placeholder in '{value}': {e}") from None

def resolve_path(value, base_dir=None, variables=None):

    path = Path(substitute_variables(str(value), variables)).expanduser()
    if not path.is_absolute() and base_dir is not None:
        path = Path(base_dir) / path
    return path
