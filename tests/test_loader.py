"""Tests for the pipeline loader."""

import pytest

from pipejob.errors import (
    EXIT_BAD_TARGET,
    EXIT_LIVE_REFUSED,
    EXIT_USAGE,
    BranchConfigError,
    ConfigError,
    LiveModeRefused,
)
from pipejob.loader import load_pipeline, parse_duration, parse_pipeline, parse_pipeline_dict
from pipejob.model import Continue, Drop, Fail, GotoJob, GotoStep


def test_valid_pipeline():
    config = """
pipeline:
  name: Test Pipeline
  runs: [build]
  variables:
    MSG: hi
    N: 3
  jobs:
    - name: build
      steps:
        - name: compile
          type: command
          commands:
            - make
            - make test
          save_output: out
          silent: true
          timeout: 1m30s
          idle_timeout: "500ms"
        - name: single
          command: echo one
"""
    p = parse_pipeline(config)
    assert p.name == "Test Pipeline"
    assert p.runs == ["build"]
    assert p.variables == {"MSG": "hi", "N": "3"}
    compile_step, single = p.jobs[0].steps
    assert compile_step.commands == ["make", "make test"]
    assert compile_step.save_output == "out"
    assert compile_step.silent is True
    assert compile_step.timeout == 90.0
    assert compile_step.idle_timeout == pytest.approx(0.5)
    assert single.commands == ["echo one"]
    assert single.is_command


def test_commands_list_wins_over_command():
    p = parse_pipeline_dict({
        "pipeline": {"jobs": [{"name": "j", "steps": [
            {"name": "s", "command": "ignored", "commands": ["used"]},
        ]}]}
    })
    assert p.jobs[0].steps[0].commands == ["used"]


def test_actions_are_parsed_into_union():
    config = """
pipeline:
  jobs:
    - name: j
      steps:
        - name: s
          command: echo
          conditions:
            - pattern: "a"
              action: drop
          when:
            - contains: "b"
              action: goto_step
              step: other
            - exit_code: 0
              action: goto_job
              job: j2
            - equals: "x"
              action: fail
          else_action: continue
          on_timeout: goto_job
          on_timeout_job: cleanup
"""
    step = parse_pipeline(config).jobs[0].steps[0]
    assert step.conditions[0].action == Drop()
    assert step.when[0].action == GotoStep("other")
    assert step.when[1].action == GotoJob("j2")
    assert step.when[1].clause.exit_code == 0
    assert step.when[2].action == Fail()
    assert step.else_action == Continue()
    assert step.on_timeout == GotoJob("cleanup")


def test_unknown_action_is_branch_error():
    config = """
pipeline:
  jobs:
    - name: j
      steps:
        - name: s
          command: echo
          when:
            - contains: "x"
              action: jump
"""
    with pytest.raises(BranchConfigError, match="unknown when action 'jump'") as exc:
        parse_pipeline(config)
    assert exc.value.exit_code == EXIT_BAD_TARGET


def test_goto_without_target_is_branch_error():
    config = """
pipeline:
  jobs:
    - name: j
      steps:
        - name: s
          command: echo
          else_action: goto_step
"""
    with pytest.raises(BranchConfigError, match="requires 'else_step'"):
        parse_pipeline(config)


def test_when_groups_parsed():
    config = """
pipeline:
  jobs:
    - name: j
      steps:
        - name: s
          command: echo
          when:
            - all:
                - contains: a
                - exit_code: 0
              any:
                - regex: "b+"
              action: continue
"""
    rule = parse_pipeline(config).jobs[0].steps[0].when[0]
    assert rule.clause.is_empty()
    assert [c.contains for c in rule.all] == ["a", None]
    assert rule.all[1].exit_code == 0
    assert rule.any[0].regex == "b+"


def test_live_mode_refused():
    config = """
execution:
  mode: LIVE
pipeline:
  jobs: []
"""
    with pytest.raises(LiveModeRefused) as exc:
        parse_pipeline(config)
    assert exc.value.exit_code == EXIT_LIVE_REFUSED


def test_other_execution_mode_accepted():
    p = parse_pipeline("execution: {mode: dry}\npipeline: {name: x, jobs: []}\n")
    assert p.execution_mode == "dry"


def test_invalid_yaml():
    with pytest.raises(ConfigError, match="Invalid YAML") as exc:
        parse_pipeline("pipeline: [unclosed")
    assert exc.value.exit_code == EXIT_USAGE


def test_empty_config():
    with pytest.raises(ConfigError, match="Empty"):
        parse_pipeline("")


def test_missing_pipeline_section():
    with pytest.raises(ConfigError, match="'pipeline' section"):
        parse_pipeline("jobs: []\n")


def test_missing_step_name():
    config = """
pipeline:
  jobs:
    - name: j
      steps:
        - command: echo
"""
    with pytest.raises(ConfigError, match="missing 'name'"):
        parse_pipeline(config)


def test_duplicate_job_names():
    config = """
pipeline:
  jobs:
    - name: j
      steps: []
    - name: j
      steps: []
"""
    with pytest.raises(ConfigError, match="Duplicate job name"):
        parse_pipeline(config)


def test_load_pipeline_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="failed to read"):
        load_pipeline(tmp_path / "absent.yaml")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("30s", 30.0),
        ("1m", 60.0),
        ("1h2m3s", 3723.0),
        ("250ms", 0.25),
        ("1.5s", 1.5),
        (5, 5.0),
        ("2", 2.0),
        ("0s", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == (pytest.approx(expected) if expected else None)


@pytest.mark.parametrize("value", ["soon", "10x", "s", True])
def test_parse_duration_rejects_garbage(value):
    with pytest.raises(ConfigError):
        parse_duration(value)


@pytest.mark.parametrize("value", ['"false"', "1", "yes please"])
def test_silent_must_be_boolean(value):
    config = f"""
pipeline:
  jobs:
    - name: j
      steps:
        - name: s
          command: echo hi
          silent: {value}
"""
    with pytest.raises(ConfigError, match="'silent' must be true or false"):
        parse_pipeline(config)
