# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional

# Process exit codes (CLI contract)
EXIT_OK = 0
EXIT_USAGE = 2
EXIT_LIVE_REFUSED = 3
EXIT_UNSUPPORTED_STEP = 4
EXIT_UNMATCHED_FAILURE = 5
EXIT_BAD_TARGET = 6
EXIT_EXPLICIT_FAIL = 7
EXIT_INTERRUPTED = 130

# Recorded for a command killed by timeout; never returned by pipejob itself.
TIMEOUT_EXIT_CODE = 124


@dataclass(eq=False)
class PipelineError(Exception):
    """
    Structured run error with enough context for:
      - a single diagnostic line on stderr
      - the evidence log
      - a fixed process exit code
    """
    message: str
    job: Optional[str] = None
    step: Optional[str] = None
    details: Dict[str, object] = field(default_factory=dict)

    kind: ClassVar[str] = "error"
    exit_code: ClassVar[int] = 1

    def __str__(self) -> str:
        return self.message

    def describe(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.job:
            lines.append(f"job={self.job}")
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class ConfigError(PipelineError):
    """Pipeline file could not be read, parsed or validated."""
    kind = "config error"
    exit_code = EXIT_USAGE


class LiveModeRefused(PipelineError):
    kind = "refused"
    exit_code = EXIT_LIVE_REFUSED


class UnsupportedStepError(PipelineError):
    kind = "unsupported step"
    exit_code = EXIT_UNSUPPORTED_STEP


class UnmatchedFailure(PipelineError):
    kind = "step failed"
    exit_code = EXIT_UNMATCHED_FAILURE


class BranchConfigError(PipelineError):
    """Unknown action keyword, goto without a target field, or bad regex."""
    kind = "branch config error"
    exit_code = EXIT_BAD_TARGET


class TargetError(PipelineError):
    """A goto target (or a `runs` entry) names a step/job that does not exist."""
    kind = "missing target"
    exit_code = EXIT_BAD_TARGET


class ExplicitFail(PipelineError):
    kind = "failed"
    exit_code = EXIT_EXPLICIT_FAIL


class Cancelled(PipelineError):
    kind = "interrupted"
    exit_code = EXIT_INTERRUPTED
