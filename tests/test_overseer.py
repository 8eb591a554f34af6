"""
End to end tests for actions, pipelines and the overseer, run against the
in-memory connection. Log output is checked the way an operator sees it, on
stdout after the packaged logging configuration is applied.
"""

import pymysql
import pytest

from etl_overseer.config import parse_config
from etl_overseer.errors import ConfigurationError, ConnectionLost, DiagnosticsUnavailable, LoadFailed, SourceUnavailable
from etl_overseer.orchestrate.action import ActionState
from etl_overseer.orchestrate.overseer import Overseer
from etl_overseer.utils.logger import setup_logging

WARNING_RECORDS = [
    {"resource_id": 999999999999, "resource": "ok", "core_count": ""},
    {"resource_id": 1, "resource": "ok", "core_count": ""},
]


def make_config(tmp_path, pipelines, **document):
    document["pipelines"] = pipelines
    document.setdefault("module", "xdmod")
    return parse_config(document, tmp_path / "etl_config.yaml")


def file_action(name, path, destination="people", **extra):
    return dict(name=name, ingestor="structured_file", source={"file": str(path)}, destination=destination, **extra)


def warning_action(**extra):
    action = dict(
        name="test-sql-warnings",
        ingestor="inline",
        load_mode="row",
        destination="warning_test",
        records=WARNING_RECORDS,
    )
    action.update(extra)
    return action


def output_lines(capsys, tag):
    captured = capsys.readouterr()
    assert captured.err == ""
    return [line for line in captured.out.splitlines() if f"[{tag}]" in line]


class TestStructuredFilePipeline:
    """Pipelines over structured files."""

    def test_one_three_three(self, tmp_path, write_json, target, capsys):
        """Three actions over files of 1, 3 and 3 records report 1, 3, 3 in order."""
        one = write_json("people_1.json", [{"id": 1, "name": "Ada"}])
        three = write_json("people_3.json", [{"id": i, "name": f"p{i}"} for i in range(3)])
        config = make_config(tmp_path, {"structured-file": [
            file_action("read-people-1", one),
            file_action("read-people-2", three),
            file_action("read-people-3", three),
        ]})
        setup_logging("etl.overseer", "notice")

        with Overseer(config, target=target) as overseer:
            result = overseer.run_pipeline("xdmod.structured-file")

        assert result.exit_status == 0
        assert [r.records_loaded for r in result.results] == [1, 3, 3]
        notices = output_lines(capsys, "notice")
        assert [line.split("] ", 1)[1] for line in notices] == [
            "xdmod.structured-file.read-people-1 records_loaded: 1",
            "xdmod.structured-file.read-people-2 records_loaded: 3",
            "xdmod.structured-file.read-people-3 records_loaded: 3",
        ]
        assert target.closed

    def test_directory_with_degenerate_files(self, tmp_path, write_json, target, capsys):
        """A 0-byte file, an empty array and a 2-record file load 2 records cleanly."""
        write_json("drop/a_empty.json", "")
        write_json("drop/b_empty_array.json", [])
        write_json("drop/c_two.json", [{"id": 10, "name": "Barbara"}, {"id": 11, "name": "Donald"}])
        config = make_config(tmp_path, {"structured-file": [
            {"name": "read-drop", "source": {"directory": "${DROP_DIR}", "file_pattern": "*.json"}, "destination": "people"},
        ]})
        setup_logging("etl.overseer", "notice")

        overseer = Overseer(config, variables={"DROP_DIR": str(tmp_path / "drop")}, target=target)
        status = overseer.run(pipeline="structured-file")

        assert status == 0
        assert len(target.connection.rows("people")) == 2
        assert output_lines(capsys, "error") == []

    def test_same_file_loaded_by_two_runs(self, tmp_path, write_json, target):
        """Nothing marks a file as processed between runs."""
        path = write_json("people.json", [{"id": 1}, {"id": 2}])
        config = make_config(tmp_path, {"p": [file_action("read", path)]})
        overseer = Overseer(config, target=target)

        first = overseer.run_action("p.read")
        second = overseer.run_action("p.read")

        assert first.records_loaded == second.records_loaded == 2
        assert len(target.connection.rows("people")) == 4

    def test_fail_fast(self, tmp_path, write_json, target, capsys):
        """The first failed action stops the pipeline."""
        path = write_json("people.json", [{"id": 1}])
        config = make_config(tmp_path, {"p": [
            file_action("first", path),
            file_action("second", tmp_path / "missing.json"),
            file_action("third", path),
        ]})
        setup_logging("etl.overseer", "notice")

        result = Overseer(config, target=target).run_pipeline("p")

        assert result.exit_status == 1
        assert result.failed_action == "xdmod.p.second"
        assert [r.name for r in result.results] == ["xdmod.p.first", "xdmod.p.second"]
        assert isinstance(result.results[1].error, SourceUnavailable)
        errors = output_lines(capsys, "error")
        assert any("xdmod.p.second failed after loading 0 records" in line for line in errors)

    def test_malformed_file_fails_action(self, tmp_path, write_json, target):
        path = write_json("bad.json", '{"id": 1}')
        config = make_config(tmp_path, {"p": [file_action("read", path)]})

        result = Overseer(config, target=target).run_action("p.read")

        assert result.state == ActionState.FAILED
        assert str(path) in str(result.error)
        assert target.connection.rows("people") == []

    def test_disabled_action_skipped(self, tmp_path, write_json, target):
        path = write_json("people.json", [{"id": 1}])
        config = make_config(tmp_path, {"p": [
            file_action("on", path),
            file_action("off", path, enabled=False),
        ]})
        overseer = Overseer(config, target=target)

        result = overseer.run_pipeline("p")
        direct = overseer.run_action("p.off")

        assert result.skipped == ["xdmod.p.off"]
        assert len(result.results) == 1
        assert direct.succeeded

    def test_disabled_pipeline_skipped(self, tmp_path, write_json, target):
        path = write_json("people.json", [{"id": 1}])
        config = make_config(tmp_path, {"p": {"enabled": False, "actions": [file_action("read", path)]}})
        overseer = Overseer(config, target=target)

        result = overseer.run_pipeline("p")

        assert result.exit_status == 0
        assert result.results == []
        assert result.skipped == ["xdmod.p.read"]
        assert target.connection.rows("people") == []
        assert overseer.run_action("p.read").records_loaded == 1

    def test_prepares_destination(self, tmp_path, write_json, target):
        """table_definition creates the table and truncation keeps reruns idempotent."""
        path = write_json("events.json", [{"id": 1, "label": "a"}, {"id": 2, "label": "b"}])
        config = make_config(tmp_path, {"p": [file_action(
            "read", path, destination="events",
            truncate_destination=True,
            table_definition={"columns": {"id": "int(11) NOT NULL", "label": "varchar(8)"}},
        )]})
        overseer = Overseer(config, target=target)

        overseer.run_action("p.read")
        overseer.run_action("p.read")

        assert len(target.connection.rows("events")) == 2

    def test_dryrun_opens_no_connection(self, tmp_path, write_json, target):
        path = write_json("people.json", [{"id": 1}, {"id": 2}])
        config = make_config(tmp_path, {"p": [file_action("read", path)]})

        result = Overseer(config, dryrun=True, target=target).run_action("p.read")

        assert result.records_loaded == 2
        assert target.connect_calls == 0

    def test_unknown_name(self, tmp_path, target):
        config = make_config(tmp_path, {"p": [warning_action()]})

        with pytest.raises(ConfigurationError):
            Overseer(config, target=target).run(action="p.nope")


class TestSqlWarnings:
    """Warning reporting and suppression for row and bulk loads."""

    @pytest.fixture
    def config(self, tmp_path):
        return make_config(tmp_path, {"ingestor-tests": [warning_action()]})

    def run(self, config, target, **local_options):
        setup_logging("etl.overseer", "notice")
        return Overseer(config, local_options=local_options, target=target).run_action(
            "xdmod.ingestor-tests.test-sql-warnings"
        )

    def test_all_warnings_reported(self, config, target, capsys):
        result = self.run(config, target)

        assert result.succeeded
        assert [w.code for w in result.warnings] == [1264, 1366, 1366]
        lines = output_lines(capsys, "warning")
        assert len(lines) == 4
        assert "SQL warnings on table 'warning_test' generated by action xdmod.ingestor-tests.test-sql-warnings" in lines[0]
        assert lines[1].endswith("Warning 1264 Out of range value for column 'resource_id' at row 1")
        assert lines[3].endswith("Warning 1366 Incorrect integer value: '' for column 'core_count' at row 1")

    def test_hide_all(self, config, target, capsys):
        result = self.run(config, target, hide_sql_warnings=True)

        assert result.exit_status == 0
        assert result.warnings == []
        assert result.warnings_hidden == 3
        assert output_lines(capsys, "warning") == []

    def test_hide_one_code(self, config, target, capsys):
        result = self.run(config, target, hide_sql_warning_codes=1366)

        assert [w.code for w in result.warnings] == [1264]
        assert len(output_lines(capsys, "warning")) == 2

    def test_hide_both_codes(self, config, target, capsys):
        result = self.run(config, target, hide_sql_warning_codes=[1264, 1366])

        assert result.warnings == []
        assert output_lines(capsys, "warning") == []

    def test_local_option_overrides_configuration(self, tmp_path, target):
        config = make_config(tmp_path, {"ingestor-tests": [warning_action()]}, defaults={"hide_sql_warnings": True})

        result = self.run(config, target, hide_sql_warnings="false")

        assert len(result.warnings) == 3

    def test_codes_augment_across_layers(self, tmp_path, target):
        config = make_config(tmp_path, {"ingestor-tests": {
            "options": {"hide_sql_warning_codes": [1264]},
            "actions": [warning_action()],
        }})

        result = self.run(config, target, hide_sql_warning_codes=1366)

        assert result.warnings == []

    def test_bulk_load_header(self, tmp_path, target, capsys):
        config = make_config(tmp_path, {"ingestor-tests": [warning_action(load_mode="bulk")]})

        result = self.run(config, target)

        assert len(result.warnings) == 3
        assert "LOAD DATA warnings on table 'warning_test'" in output_lines(capsys, "warning")[0]

    def test_bad_local_option(self, config, target):
        with pytest.raises(ConfigurationError):
            Overseer(config, local_options={"hide_sql_warnings": "sometimes"}, target=target)

    def test_rejected_rows_logged_but_action_succeeds(self, tmp_path, target, capsys):
        records = [{"resource_id": None, "resource": "x"}, {"resource_id": 5, "resource": "y"}]
        config = make_config(tmp_path, {"ingestor-tests": [warning_action(records=records)]})

        result = self.run(config, target)

        assert result.succeeded
        assert result.records_loaded == 1
        errors = output_lines(capsys, "error")
        assert len(errors) == 1
        assert "Row 1 rejected by 'warning_test': Error 1048" in errors[0]


class TestFatalFailures:
    """Faults abort the action and report what was already committed."""

    def test_connection_lost_stops_pipeline(self, tmp_path, write_json, target):
        path = write_json("people.json", [{"id": 1}, {"id": 2}])
        config = make_config(tmp_path, {"p": [
            file_action("rows", path, load_mode="row"),
            file_action("after", path),
        ]})
        target.connection.fail("INSERT", pymysql.err.OperationalError(2013, "Lost connection"), after=1)

        result = Overseer(config, target=target).run_pipeline("p")

        assert result.exit_status == 1
        assert len(result.results) == 1
        assert isinstance(result.results[0].error, ConnectionLost)
        assert result.results[0].error.action == "xdmod.p.rows"

    def test_partial_count_after_failure(self, tmp_path, write_json, target, capsys):
        """Rows committed by earlier files are reported, the failed file is not."""
        write_json("drop/a.json", [{"id": 1}, {"id": 2}])
        write_json("drop/b.json", [{"id": 3}, {"id": 4}])
        config = make_config(tmp_path, {"p": [
            {"name": "drop", "source": {"directory": "drop"}, "destination": "people"},
        ]})
        target.connection.fail("LOAD DATA", pymysql.err.OperationalError(2013, "Lost connection"), after=1)
        setup_logging("etl.overseer", "notice")

        result = Overseer(config, target=target).run_action("p.drop")

        assert result.state == ActionState.FAILED
        assert result.records_loaded == 2
        assert any("failed after loading 2 records" in line for line in output_lines(capsys, "error"))

    def test_diagnostics_failure_fails_action(self, tmp_path, target):
        config = make_config(tmp_path, {"p": [warning_action(load_mode="bulk")]})
        target.connection.fail("SHOW WARNINGS", pymysql.err.ProgrammingError(1064, "bad"))

        result = Overseer(config, target=target).run_action("p.test-sql-warnings")

        assert isinstance(result.error, DiagnosticsUnavailable)
        assert result.records_loaded == 2

    def test_warnings_past_the_session_limit_fail_action(self, tmp_path, target):
        config = make_config(tmp_path, {"p": [warning_action(load_mode="bulk")]})
        target.connection.max_error_count = 1

        result = Overseer(config, target=target).run_action("p.test-sql-warnings")

        assert result.state == ActionState.FAILED
        assert isinstance(result.error, DiagnosticsUnavailable)
        assert "max_error_count" in str(result.error)

    @pytest.mark.parametrize("destination, records", [
        ("nowhere", [{"id": 1}]),
        ("people", [{"id": 1, "nickname": "Ada"}]),
    ])
    def test_row_mode_statement_error_fails_action(self, tmp_path, target, destination, records):
        """A missing table or unknown column is not a rejected row."""
        config = make_config(tmp_path, {"p": [
            warning_action(name="rows", destination=destination, records=records),
        ]})

        result = Overseer(config, target=target).run_pipeline("p")

        assert result.exit_status == 1
        assert result.results[0].state == ActionState.FAILED
        assert isinstance(result.results[0].error, LoadFailed)
        assert result.results[0].rows_rejected == []

    def test_bad_transform_arguments_fail_action(self, tmp_path, write_json, target):
        path = write_json("people.json", [{"id": 1, "name": "Ada"}])
        config = make_config(tmp_path, {"p": [file_action("read", path, transform={
            "transformation_order": ["rename_columns"],
            "rename_columns": ["name", "full_name"],
        })]})

        result = Overseer(config, target=target).run_action("p.read")

        assert result.state == ActionState.FAILED
        assert isinstance(result.error, ConfigurationError)
        assert result.error.action == "xdmod.p.read"
        assert target.connection.rows("people") == []
