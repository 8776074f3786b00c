# runner.py
from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .conditions import Decision, evaluate
from .errors import (
    EXIT_OK,
    Cancelled,
    ExplicitFail,
    PipelineError,
    TargetError,
    UnmatchedFailure,
    UnsupportedStepError,
)
from .evidence import EvidenceLog
from .model import CommandResult, Continue, Drop, Fail, GotoJob, GotoStep, Job, Pipeline, Step
from .supervisor import CancelToken, CommandSupervisor
from .ui.console import Console
from .variables import interpolate
from .worklist import WorkingJobList

# Printed next to "command not found" (exit 127) failures.
TOOL_HINTS = {
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "node": "Install Node.js or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
    "bash": "Install bash or pick another shell with --shell.",
}


def tool_hint(command: str, exit_code: int) -> Optional[str]:
    if exit_code != 127:
        return None
    try:
        words = shlex.split(command)
    except ValueError:
        words = command.split()
    tool = words[0] if words else ""
    return TOOL_HINTS.get(tool, f"'{tool}' not found: install it or fix PATH.")


# ----------------------------------------------------------------------
# Run context / outcome
# ----------------------------------------------------------------------

@dataclass
class RunContext:
    """Run-wide settings passed explicitly instead of living in globals."""
    shell: Optional[str] = None
    silent: bool = False
    cwd: Optional[str] = None
    console: Console = field(default_factory=Console)
    evidence: EvidenceLog = field(default_factory=EvidenceLog)
    cancel: CancelToken = field(default_factory=CancelToken)
    supervisor: Optional[CommandSupervisor] = None

    def __post_init__(self) -> None:
        if self.supervisor is None:
            self.supervisor = CommandSupervisor(shell=self.shell)


@dataclass
class RunOutcome:
    exit_code: int
    error: Optional[PipelineError] = None
    log_dir: Optional[Path] = None
    dropped: bool = False
    variables: Dict[str, str] = field(default_factory=dict)
    # (job, step) pairs in execution order
    trace: List[Tuple[str, str]] = field(default_factory=list)
    jobs: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == EXIT_OK


class _Dropped(Exception):
    """Internal: a `drop` decision ends the run successfully."""


# ----------------------------------------------------------------------
# Interpreter
# ----------------------------------------------------------------------

class PipelineRun:
    """
    Walks the working job list one step at a time.

    Single control thread: variables and the working list are only
    touched between command executions.
    """

    def __init__(self, pipeline: Pipeline, variables: Optional[Dict[str, str]] = None,
                 ctx: Optional[RunContext] = None):
        self.pipeline = pipeline
        self.variables: Dict[str, str] = dict(pipeline.variables if variables is None else variables)
        self.ctx = ctx or RunContext()
        self.trace: List[Tuple[str, str]] = []
        self.started_jobs: List[str] = []

    # ---- diagnostics ----

    def _warn(self, message: str, *, quiet: bool = False) -> None:
        self.ctx.evidence.line(message)
        if not quiet:
            self.ctx.console.print_warning(message)

    # ---- execution primitives ----

    def _run_commands(self, job: Job, step: Step) -> CommandResult:
        ctx = self.ctx
        quiet = ctx.silent or step.silent
        outputs: List[str] = []
        last = CommandResult(output="", exit_code=0)

        for raw in step.commands:
            cmd = interpolate(raw, self.variables)
            if not quiet:
                ctx.console.print_command(cmd)
            ctx.evidence.line(f"CMD: {cmd}")
            ctx.console.print_debug(
                f"[{job.name}] {step.name}: timeout={step.timeout} idle_timeout={step.idle_timeout}"
            )

            res = ctx.supervisor.run(
                cmd,
                timeout=step.timeout,
                idle_timeout=step.idle_timeout,
                cancel=ctx.cancel,
                cwd=ctx.cwd,
            )
            outputs.append(res.output)
            ctx.evidence.write(res.output)
            if not quiet:
                ctx.console.print_output(res.output)

            if res.cancelled:
                raise Cancelled("run cancelled", job=job.name, step=step.name)
            if not res.ok:
                self._warn(f"command failed: {res.error}", quiet=quiet)
                hint = tool_hint(cmd, res.exit_code)
                if hint:
                    self._warn(f"Hint: {hint}", quiet=quiet)
            last = res

        return CommandResult(
            output="".join(outputs),
            exit_code=last.exit_code,
            timed_out=last.timed_out,
        )

    def _run_step(self, job: Job, step: Step) -> Optional[Decision]:
        if not step.is_command:
            raise UnsupportedStepError(
                f"unsupported step type '{step.type}' in step '{step.name}' - aborting",
                job=job.name,
                step=step.name,
            )
        self.trace.append((job.name, step.name))

        result = self._run_commands(job, step)
        if step.save_output:
            self.variables[step.save_output] = result.output.strip()

        decision = evaluate(step, result, self.variables)
        if decision is not None:
            self.ctx.evidence.line(f"[{job.name}] {step.name}: {decision.describe()}")
        elif not result.ok:
            raise UnmatchedFailure(
                f"step {step.name} command(s) returned non-zero exit and no condition matched",
                job=job.name,
                step=step.name,
                details={"exit_code": result.exit_code, "timed_out": result.timed_out},
            )
        return decision

    def _run_job(self, jobs: WorkingJobList, ji: int) -> Optional[int]:
        """
        Run the job at working position `ji`.

        Returns the working position of a goto_job target, or None when the
        job ran to its last step.
        """
        job = jobs[ji]
        quiet = self.ctx.silent
        if not quiet:
            self.ctx.console.print_job_start(job.name)
        self.ctx.evidence.line(f"== Job: {job.name} ==")
        self.started_jobs.append(job.name)
        jobs.mark_started(job)

        index = job.step_index()
        si = 0
        while si < len(job.steps):
            step = job.steps[si]
            decision = self._run_step(job, step)
            action = decision.action if decision else Continue()

            if isinstance(action, Continue):
                si += 1
            elif isinstance(action, Drop):
                self.ctx.evidence.line(f"{decision.source} matched: drop")
                raise _Dropped()
            elif isinstance(action, Fail):
                raise ExplicitFail(
                    f"step {step.name} failed due to {decision.source} match",
                    job=job.name,
                    step=step.name,
                )
            elif isinstance(action, GotoStep):
                if action.step not in index:
                    raise TargetError(
                        f"goto_step target '{action.step}' not found in job {job.name}",
                        job=job.name,
                        step=step.name,
                    )
                si = index[action.step]
            elif isinstance(action, GotoJob):
                target, resume = jobs.jump(ji, action.job, job, job.steps[si + 1:])
                if resume is not None:
                    self.ctx.console.print_debug(
                        f"{job.name}: {len(resume.steps)} step(s) resume as {resume.name} after {action.job}"
                    )
                return target
            else:
                raise TypeError(f"unhandled action {action!r}")
        return None

    # ---- public ----

    def run(self) -> RunOutcome:
        ctx = self.ctx
        error: Optional[PipelineError] = None
        dropped = False
        try:
            jobs = WorkingJobList(self.pipeline.jobs, self.pipeline.runs)
            if not ctx.silent:
                ctx.console.print_run_started(self.pipeline.name, len(jobs))
            ji = 0
            while ji < len(jobs):
                if jobs.is_spent(jobs[ji]):
                    ji += 1
                    continue
                target = self._run_job(jobs, ji)
                ji = ji + 1 if target is None else target
        except _Dropped:
            dropped = True
        except PipelineError as e:
            error = e
        except KeyboardInterrupt:
            error = Cancelled("interrupted by user")

        exit_code = EXIT_OK if error is None else error.exit_code
        if error is not None:
            # critical: always printed, even when silent
            ctx.console.print_error(error.kind, str(error))
            ctx.evidence.line(error.describe())
        else:
            ctx.evidence.line("completed")

        log_dir = ctx.evidence.finish(
            failed=error is not None,
            exit_code=exit_code,
            reason=str(error) if error else "",
        )
        if error is not None and log_dir is not None:
            ctx.console.print_notice(f"logs preserved at {log_dir}")
        elif not ctx.silent:
            suffix = f" (logs: {log_dir})" if log_dir else ""
            ctx.console.print_success(f"pipejob: completed successfully{suffix}")

        return RunOutcome(
            exit_code=exit_code,
            error=error,
            log_dir=log_dir,
            dropped=dropped,
            variables=dict(self.variables),
            trace=list(self.trace),
            jobs=list(self.started_jobs),
        )


def run_pipeline(
    pipeline: Pipeline,
    variables: Optional[Dict[str, str]] = None,
    ctx: Optional[RunContext] = None,
) -> RunOutcome:
    return PipelineRun(pipeline, variables, ctx).run()


# ----------------------------------------------------------------------
# Dry run
# ----------------------------------------------------------------------

def dry_run(pipeline: Pipeline, variables: Dict[str, str], console: Optional[Console] = None) -> int:
    """Print the rendered commands in execution order without running anything."""
    console = console or Console()
    jobs = WorkingJobList(pipeline.jobs, pipeline.runs)
    console.print_info(f"Pipeline: {pipeline.name}")
    for job in jobs:
        console.print_info(f"Job: {job.name}")
        for step in job.steps:
            if not step.is_command:
                console.print_info(
                    f"  step {step.name}: unsupported step type '{step.type}' (would abort)"
                )
                continue
            for c in step.commands:
                console.print_info(f"  {interpolate(c, variables)}")
    return EXIT_OK
