"""Tests for variable interpolation and layering."""

import pytest

from pipejob.variables import build_variables, interpolate, load_env_file, parse_cli_vars


def test_interpolate_all_placeholder_forms():
    vars = {"NAME": "world"}
    assert interpolate("{{NAME}}", vars) == "world"
    assert interpolate("{{ NAME }}", vars) == "world"
    assert interpolate("{{.NAME}}", vars) == "world"
    assert interpolate("{{ .NAME }}", vars) == "world"
    assert interpolate("hello {{NAME}} and {{ NAME }}", vars) == "hello world and world"


def test_interpolate_keeps_unknown_placeholders():
    assert interpolate("echo {{MISSING}}", {"OTHER": "x"}) == "echo {{MISSING}}"


def test_interpolate_is_single_pass():
    vars = {"A": "{{B}}", "B": "b"}
    assert interpolate("{{A}}", vars) == "{{B}}"


def test_interpolate_empty_text():
    assert interpolate("", {"A": "1"}) == ""


def test_load_env_file(tmp_path):
    env = tmp_path / ".env"
    env.write_text('# comment\n\nTOKEN="abc def"\nPLAIN=value\n', encoding="utf-8")
    values = load_env_file(env)
    assert values["TOKEN"] == "abc def"
    assert values["PLAIN"] == "value"


def test_load_env_file_missing_is_empty(tmp_path):
    assert load_env_file(tmp_path / "nope.env") == {}
    assert load_env_file(None) == {}


def test_parse_cli_vars():
    assert parse_cli_vars(["A=1", "B=x=y", "C="]) == {"A": "1", "B": "x=y", "C": ""}


@pytest.mark.parametrize("bad", ["novalue", "=x"])
def test_parse_cli_vars_rejects_malformed(bad):
    with pytest.raises(ValueError, match="expected key=val"):
        parse_cli_vars([bad])


def test_build_variables_precedence():
    merged = build_variables(
        {"A": "pipeline", "B": "pipeline", "C": "pipeline"},
        {"B": "env", "C": "env"},
        {"C": "cli"},
    )
    assert merged == {"A": "pipeline", "B": "env", "C": "cli"}
