# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


# ---------------------------------------------------------------------
# Branch actions
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Continue:
    def __str__(self) -> str:
        return "continue"


@dataclass(frozen=True)
class Drop:
    def __str__(self) -> str:
        return "drop"


@dataclass(frozen=True)
class Fail:
    def __str__(self) -> str:
        return "fail"


@dataclass(frozen=True)
class GotoStep:
    step: str

    def __str__(self) -> str:
        return f"goto_step({self.step})"


@dataclass(frozen=True)
class GotoJob:
    job: str

    def __str__(self) -> str:
        return f"goto_job({self.job})"


Action = Union[Continue, Drop, Fail, GotoStep, GotoJob]

ACTION_NAMES = ("continue", "drop", "goto_step", "goto_job", "fail")


# ---------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Condition:
    """Legacy rule: regex pattern searched in the captured output."""
    pattern: str
    action: Action


@dataclass(frozen=True)
class Clause:
    """
    One set of `when` operators. Empty strings / None mean "not set".
    Checked in this order: contains, equals, regex, exit_code.
    """
    contains: Optional[str] = None
    equals: Optional[str] = None
    regex: Optional[str] = None
    exit_code: Optional[int] = None

    def is_empty(self) -> bool:
        return not (self.contains or self.equals or self.regex) and self.exit_code is None


@dataclass(frozen=True)
class WhenRule:
    clause: Clause
    action: Action
    all: List[Clause] = field(default_factory=list)
    any: List[Clause] = field(default_factory=list)


# ---------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Step:
    """A single named unit of work running one or more shell commands."""
    name: str
    commands: List[str] = field(default_factory=list)
    type: str = ""
    save_output: Optional[str] = None
    silent: bool = False

    # seconds; None disables
    timeout: Optional[float] = None
    idle_timeout: Optional[float] = None

    conditions: List[Condition] = field(default_factory=list)
    when: List[WhenRule] = field(default_factory=list)
    else_action: Optional[Action] = None
    on_timeout: Optional[Action] = None

    @property
    def is_command(self) -> bool:
        return self.type == "" or self.type.lower() == "command"


@dataclass
class Job:
    """
    A named ordered group of steps.

    `resume_of` is set only on synthetic resume jobs created by a cross-job
    jump; it holds the name of the interrupted job.
    """
    name: str
    steps: List[Step]
    resume_of: Optional[str] = None

    @property
    def is_resume(self) -> bool:
        return self.resume_of is not None

    def step_index(self) -> Dict[str, int]:
        return {s.name: i for i, s in enumerate(self.steps)}


@dataclass
class Pipeline:
    name: str
    jobs: List[Job]
    runs: List[str] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)
    execution_mode: Optional[str] = None

    def job(self, name: str) -> Optional[Job]:
        for j in self.jobs:
            if j.name == name:
                return j
        return None


@dataclass(frozen=True)
class CommandResult:
    output: str
    exit_code: int
    timed_out: bool = False
    cancelled: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
