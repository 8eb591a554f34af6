#Functions to extract information out of yaml (or json) configuration documents.

import yaml
from typing import Any, Dict

def load_yaml(file_path: str) -> Dict[str, Any]:
    """Load and parse a YAML file. JSON documents parse as YAML too."""
    try:
        with open(file_path, 'r') as file:
            return yaml.safe_load(file) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file {file_path}: {e}")
    except FileNotFoundError:
        raise FileNotFoundError(f"YAML file not found: {file_path}")

def parse_scalar(value: str) -> Any:
    """Type a command-line option value the way YAML would: `1366`, `[1264,1366]`, `true`."""
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value
    return parsed
