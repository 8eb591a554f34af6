"""
Shared fixtures: an in-memory target connection and helpers for writing
input files.
"""

import json
import logging

import pytest

from fakes import FakeConnection, FakeTarget


@pytest.fixture
def connection():
    """Fake connection with the tables most tests load into."""
    conn = FakeConnection()
    conn.add_table("people", id="int(11) NOT NULL", name="varchar(64)", active="tinyint(1)")
    conn.add_table("warning_test", resource_id="int(11) NOT NULL", resource="varchar(8)", core_count="int(11)")
    return conn


@pytest.fixture
def target(connection):
    return FakeTarget(connection)


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON document (or raw text) under tmp_path and return its path."""

    def _write(name, content):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_text(json.dumps(content), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def people():
    return [
        {"id": 1, "name": "Ada", "active": True},
        {"id": 2, "name": "Grace", "active": False},
        {"id": 3, "name": "Edsger", "active": True},
    ]


@pytest.fixture(autouse=True)
def reset_logging():
    """Leave logging as pytest configured it, whatever a test applied with dictConfig."""
    root = logging.getLogger()
    root_handlers, root_level = list(root.handlers), root.level
    yield
    root.handlers[:] = root_handlers
    root.setLevel(root_level)
    for name in ("etl", "metrics"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
