"""
Pipeline YAML loader and validator.

Turns the `pipeline:` document into the typed model in `pipejob.model`.
Branch actions are validated here, so a rule with an unknown action or a
goto without its target is rejected before anything runs.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import BranchConfigError, ConfigError, LiveModeRefused
from .model import (
    Action,
    Clause,
    Condition,
    Continue,
    Drop,
    Fail,
    GotoJob,
    GotoStep,
    Job,
    Pipeline,
    Step,
    WhenRule,
)

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any, *, where: str = "duration") -> Optional[float]:
    """
    Parse a duration into seconds.

    Accepts Go-style strings ("30s", "1m30s", "500ms") or plain numbers
    (seconds). Zero, negative or empty values mean "no timeout" (None).
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ConfigError(f"invalid {where}: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        pos = 0
        seconds = 0.0
        for m in _DURATION_PART.finditer(text):
            if m.start() != pos:
                break
            seconds += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
            pos = m.end()
        if pos != len(text) or pos == 0:
            try:
                seconds = float(text)
            except ValueError:
                raise ConfigError(f"invalid {where}: {value!r} (expected e.g. '30s', '1m')") from None
    else:
        raise ConfigError(f"invalid {where}: {value!r}")
    return seconds if seconds > 0 else None


def parse_action(
    keyword: Any,
    step_target: Any,
    job_target: Any,
    *,
    owner: str,
    label: str = "condition",
    step_field: str = "step",
    job_field: str = "job",
) -> Action:
    """Validate an action keyword and its companion target field."""
    kw = keyword if isinstance(keyword, str) else ""
    if kw == "continue":
        return Continue()
    if kw == "drop":
        return Drop()
    if kw == "fail":
        return Fail()
    if kw == "goto_step":
        if not step_target or not isinstance(step_target, str):
            raise BranchConfigError(
                f"{label} goto_step requires '{step_field}' in step {owner}", step=owner
            )
        return GotoStep(step_target)
    if kw == "goto_job":
        if not job_target or not isinstance(job_target, str):
            raise BranchConfigError(
                f"{label} goto_job requires '{job_field}' in step {owner}", step=owner
            )
        return GotoJob(job_target)
    raise BranchConfigError(f"unknown {label} action '{keyword}' in step {owner}", step=owner)


def _as_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _opt_str(d: Dict[str, Any], key: str, where: str) -> Optional[str]:
    v = d.get(key)
    if v is None:
        return None
    if isinstance(v, (dict, list)):
        raise ConfigError(f"{where} '{key}' must be a string")
    return _as_str(v)


def _parse_clause(d: Any, where: str) -> Clause:
    if not isinstance(d, dict):
        raise ConfigError(f"{where} must be a dictionary")
    exit_code = d.get("exit_code")
    if exit_code is not None and (isinstance(exit_code, bool) or not isinstance(exit_code, int)):
        raise ConfigError(f"{where} 'exit_code' must be an integer")
    return Clause(
        contains=_opt_str(d, "contains", where),
        equals=_opt_str(d, "equals", where),
        regex=_opt_str(d, "regex", where),
        exit_code=exit_code,
    )


def _parse_group(d: Dict[str, Any], key: str, where: str) -> List[Clause]:
    raw = d.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{where} '{key}' must be a list")
    return [_parse_clause(c, f"{where} {key}[{i}]") for i, c in enumerate(raw)]


def _list_of(d: Dict[str, Any], key: str, where: str) -> List[Any]:
    raw = d.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{where} '{key}' must be a list")
    return raw


def validate_step(step: Any, job_name: str, index: int) -> Step:
    """Validate a single step dictionary."""
    where = f"Job '{job_name}' step {index}"
    if not isinstance(step, dict):
        raise ConfigError(f"{where} must be a dictionary")

    name = step.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigError(f"{where} missing 'name'")
    where = f"Job '{job_name}' step '{name}'"

    commands = [_as_str(c) for c in _list_of(step, "commands", where)]
    if not commands and step.get("command"):
        commands = [_as_str(step["command"])]

    conditions: List[Condition] = []
    for i, c in enumerate(_list_of(step, "conditions", where)):
        if not isinstance(c, dict):
            raise ConfigError(f"{where} condition {i} must be a dictionary")
        conditions.append(
            Condition(
                pattern=_as_str(c.get("pattern")),
                action=parse_action(c.get("action"), c.get("step"), c.get("job"), owner=name),
            )
        )

    when: List[WhenRule] = []
    for i, w in enumerate(_list_of(step, "when", where)):
        rule_where = f"{where} when {i}"
        clause = _parse_clause(w, rule_where)
        when.append(
            WhenRule(
                clause=clause,
                action=parse_action(
                    w.get("action"), w.get("step"), w.get("job"), owner=name, label="when"
                ),
                all=_parse_group(w, "all", rule_where),
                any=_parse_group(w, "any", rule_where),
            )
        )

    else_action = None
    if step.get("else_action"):
        else_action = parse_action(
            step.get("else_action"),
            step.get("else_step"),
            step.get("else_job"),
            owner=name,
            label="else",
            step_field="else_step",
            job_field="else_job",
        )

    on_timeout = None
    if step.get("on_timeout"):
        on_timeout = parse_action(
            step.get("on_timeout"),
            step.get("on_timeout_step"),
            step.get("on_timeout_job"),
            owner=name,
            label="on_timeout",
            step_field="on_timeout_step",
            job_field="on_timeout_job",
        )

    silent = step.get("silent", False)
    if not isinstance(silent, bool):
        raise ConfigError(f"{where} 'silent' must be true or false")

    save_output = step.get("save_output")
    return Step(
        name=name,
        commands=commands,
        type=_as_str(step.get("type")),
        save_output=_as_str(save_output) if save_output else None,
        silent=silent,
        timeout=parse_duration(step.get("timeout"), where=f"{where} timeout"),
        idle_timeout=parse_duration(step.get("idle_timeout"), where=f"{where} idle_timeout"),
        conditions=conditions,
        when=when,
        else_action=else_action,
        on_timeout=on_timeout,
    )


def validate_job(job: Any, index: int) -> Job:
    if not isinstance(job, dict):
        raise ConfigError(f"Job {index} must be a dictionary")
    name = job.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigError(f"Job {index} missing 'name'")
    steps = _list_of(job, "steps", f"Job '{name}'")
    return Job(name=name, steps=[validate_step(s, name, i) for i, s in enumerate(steps)])


def is_live_mode(document: Any) -> bool:
    """True when the document declares `execution: {mode: live}`."""
    if not isinstance(document, dict):
        return False
    execution = document.get("execution")
    if not isinstance(execution, dict):
        return False
    mode = execution.get("mode")
    return isinstance(mode, str) and mode.lower() == "live"


def parse_pipeline_dict(document: Any) -> Pipeline:
    """Validate a parsed YAML document and build the Pipeline model."""
    if not document:
        raise ConfigError("Empty pipeline configuration")
    if not isinstance(document, dict):
        raise ConfigError("Pipeline configuration must be a dictionary")
    if is_live_mode(document):
        raise LiveModeRefused("refusing to run pipeline with execution.mode=live in local tool")

    body = document.get("pipeline")
    if not isinstance(body, dict):
        raise ConfigError("Pipeline configuration must have a 'pipeline' section")

    name = body.get("name", "")
    if not isinstance(name, str):
        raise ConfigError("Pipeline 'name' must be a string")

    runs = [_as_str(r) for r in _list_of(body, "runs", "Pipeline")]

    raw_vars = body.get("variables") or {}
    if not isinstance(raw_vars, dict):
        raise ConfigError("Pipeline 'variables' must be a mapping")
    variables = {str(k): _as_str(v) for k, v in raw_vars.items()}

    jobs = [validate_job(j, i) for i, j in enumerate(_list_of(body, "jobs", "Pipeline"))]
    seen = set()
    for j in jobs:
        if j.name in seen:
            raise ConfigError(f"Duplicate job name: {j.name}")
        seen.add(j.name)

    execution = document.get("execution")
    mode = execution.get("mode") if isinstance(execution, dict) else None

    return Pipeline(
        name=name,
        jobs=jobs,
        runs=runs,
        variables=variables,
        execution_mode=mode if isinstance(mode, str) else None,
    )


def parse_pipeline(yaml_content: str) -> Pipeline:
    """Parse pipeline YAML from a string."""
    try:
        document = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    return parse_pipeline_dict(document)


def load_pipeline(path: str | Path) -> Pipeline:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read {p}: {e}") from e
    return parse_pipeline(text)
