"""
Command-line interface tests.
"""

import json

import pytest
from click.testing import CliRunner

from classfile_builder import ClassBuilder, jdk_builders, write_classes
from declass.cli import EXIT_ERROR, EXIT_OK, EXIT_PARTIAL, declass_cli
from declass.parsers.classfile import ACC_PUBLIC


def json_payload(result):
    # Log records may share the stream; the document starts on a bare "{" line
    lines = result.stdout.splitlines()
    start = max(i for i, line in enumerate(lines) if line == "{")
    return json.loads("\n".join(lines[start:]))


class TestDeclassCli:
    """Test the declass command end to end."""

    @pytest.fixture
    def workspace(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        widget = ClassBuilder("com/example/Widget")
        widget.field(ACC_PUBLIC, "count", "I")
        widget.constructor()
        write_classes(tmp_path / "classes", [*jdk_builders(), widget])
        return tmp_path

    @pytest.fixture
    def runner(self):
        return CliRunner()

    def test_writes_sources(self, runner, workspace):
        """Test that -o lays files out by package."""
        result = runner.invoke(
            declass_cli,
            ["com.example.Widget", "-cp", "classes", "-o", "out"],
        )
        assert result.exit_code == EXIT_OK, result.output
        written = workspace / "out" / "com" / "example" / "Widget.java"
        text = written.read_text(encoding="utf-8")
        assert text.startswith("package com.example;\n")
        assert "\tpublic int count;\n" in text

    def test_prints_sources(self, runner, workspace):
        result = runner.invoke(declass_cli, ["com/example/Widget", "-cp", "classes"])
        assert result.exit_code == EXIT_OK
        assert "public class Widget" in result.output
        assert not (workspace / "out").exists()

    def test_partial_failure(self, runner, workspace):
        """Test exit code 2 when any class fails."""
        result = runner.invoke(
            declass_cli,
            ["com.example.Widget", "com.example.Missing", "-cp", "classes", "--json"],
        )
        assert result.exit_code == EXIT_PARTIAL
        payload = json_payload(result)
        assert [u["name"] for u in payload["units"]] == ["com.example.Widget"]
        assert payload["failures"][0]["name"] == "com.example.Missing"
        assert payload["failures"][0]["error_type"] == "ResolutionError"

    def test_json_output(self, runner, workspace):
        result = runner.invoke(declass_cli, ["com.example.Widget", "-cp", "classes", "--json"])
        assert result.exit_code == EXIT_OK
        payload = json_payload(result)
        (unit,) = payload["units"]
        assert unit["kind"] == "class"
        assert unit["path"] is None
        assert "public class Widget {" in unit["source"]
        assert payload["failures"] == []

    def test_missing_config_file(self, runner, workspace):
        result = runner.invoke(
            declass_cli,
            ["com.example.Widget", "-cp", "classes", "--config", "absent.toml"],
        )
        assert result.exit_code == EXIT_ERROR

    def test_no_class_path(self, runner, workspace):
        result = runner.invoke(declass_cli, ["com.example.Widget"])
        assert result.exit_code == EXIT_ERROR

    def test_bad_class_path_entry(self, runner, workspace):
        (workspace / "notes.txt").write_text("x", encoding="utf-8")
        result = runner.invoke(declass_cli, ["com.example.Widget", "-cp", "notes.txt"])
        assert result.exit_code == EXIT_ERROR

    def test_class_names_required(self, runner, workspace):
        result = runner.invoke(declass_cli, ["-cp", "classes"])
        assert result.exit_code != EXIT_OK

    def test_settings_file_and_flag_override(self, runner, workspace):
        """Test options from declass.toml and their command-line override."""
        (workspace / "declass.toml").write_text(
            '[decompiler]\nclass_path = ["classes"]\n'
            "[decompiler.options]\ndiscarding_extends_object = false\n",
            encoding="utf-8",
        )
        result = runner.invoke(declass_cli, ["com.example.Widget", "--json"])
        assert result.exit_code == EXIT_OK
        assert "public class Widget extends Object {" in json_payload(result)["units"][0]["source"]

        result = runner.invoke(
            declass_cli, ["com.example.Widget", "--json", "--discard-extends-object"]
        )
        assert result.exit_code == EXIT_OK
        assert "public class Widget {" in json_payload(result)["units"][0]["source"]

    def test_toggle_flags(self, runner, workspace):
        result = runner.invoke(
            declass_cli,
            [
                "com.example.Widget",
                "-cp",
                "classes",
                "--json",
                "--sort-groups",
                "--separate-groups",
                "--workers",
                "2",
            ],
        )
        assert result.exit_code == EXIT_OK
        assert "/" * 100 in json_payload(result)["units"][0]["source"]
