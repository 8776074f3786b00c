# conditions.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import BranchConfigError
from .model import Action, Clause, CommandResult, Step, WhenRule
from .variables import interpolate


@dataclass(frozen=True)
class Decision:
    """A branch decision plus the rule stage that produced it."""
    action: Action
    source: str  # "condition" | "when" | "else" | "on_timeout"
    index: Optional[int] = None

    def describe(self) -> str:
        where = self.source if self.index is None else f"{self.source}[{self.index}]"
        return f"{where} -> {self.action}"


def _compile(pattern: str, step: Step, label: str) -> "re.Pattern[str]":
    try:
        return re.compile(pattern)
    except re.error as e:
        raise BranchConfigError(
            f"invalid {label} '{pattern}' in step {step.name}: {e}", step=step.name
        ) from e


def clause_matches(
    clause: Clause,
    output: str,
    exit_code: int,
    variables: Mapping[str, str],
    step: Step,
) -> bool:
    """Operators are tried in order: contains, equals (trimmed), regex, exit_code."""
    if clause.contains and interpolate(clause.contains, variables) in output:
        return True
    if clause.equals and output.strip() == interpolate(clause.equals, variables).strip():
        return True
    if clause.regex:
        pattern = interpolate(clause.regex, variables)
        if _compile(pattern, step, "when.regex").search(output):
            return True
    if clause.exit_code is not None and exit_code == clause.exit_code:
        return True
    return False


def rule_matches(
    rule: WhenRule,
    output: str,
    exit_code: int,
    variables: Mapping[str, str],
    step: Step,
) -> bool:
    if clause_matches(rule.clause, output, exit_code, variables, step):
        return True
    if rule.all and all(clause_matches(c, output, exit_code, variables, step) for c in rule.all):
        return True
    if rule.any and any(clause_matches(c, output, exit_code, variables, step) for c in rule.any):
        return True
    return False


def evaluate(step: Step, result: CommandResult, variables: Mapping[str, str]) -> Optional[Decision]:
    """
    Decide what happens after a step ran.

    Stages run in strict order and the first one that decides wins:
    legacy conditions, when rules, the else branch, then the on_timeout
    shortcut (only for a timed-out command). Returns None when nothing
    applies; the caller then falls back to the exit code.
    """
    output = result.output

    for i, cond in enumerate(step.conditions):
        pattern = interpolate(cond.pattern, variables)
        if _compile(pattern, step, "condition regex").search(output):
            return Decision(cond.action, "condition", i)

    for i, rule in enumerate(step.when):
        if rule_matches(rule, output, result.exit_code, variables, step):
            return Decision(rule.action, "when", i)

    if step.else_action is not None:
        return Decision(step.else_action, "else")

    if result.timed_out and step.on_timeout is not None:
        return Decision(step.on_timeout, "on_timeout")

    return None
