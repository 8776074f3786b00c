# worklist.py
from __future__ import annotations

import itertools
import time
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from .errors import TargetError
from .model import Job, Step


class WorkingJobList:
    """
    The runtime copy of the job order.

    Starts as the declared jobs filtered/reordered by `runs` and then grows:
    jobs reached by `goto_job` that were left out of `runs` are
    inserted after the jumping job, and resume jobs carrying the rest of an
    interrupted job are inserted after the jump target. Resume jobs run at
    most once.
    """

    def __init__(self, declared: Sequence[Job], runs: Optional[Sequence[str]] = None):
        self.declared = list(declared)
        self._seq = itertools.count(1)
        self._spent: Set[str] = set()
        if runs:
            by_name = {j.name: j for j in self.declared}
            jobs: List[Job] = []
            for name in runs:
                if name not in by_name:
                    raise TargetError(f"runs lists unknown job '{name}' - aborting", job=name)
                jobs.append(by_name[name])
            self.jobs = jobs
        else:
            self.jobs = list(self.declared)

    def __len__(self) -> int:
        return len(self.jobs)

    def __getitem__(self, index: int) -> Job:
        return self.jobs[index]

    def __iter__(self) -> Iterator[Job]:
        return iter(self.jobs)

    def names(self) -> List[str]:
        return [j.name for j in self.jobs]

    def index_of(self, name: str) -> int:
        """First working position of `name`, ignoring resume jobs. -1 if absent."""
        for i, j in enumerate(self.jobs):
            if j.name == name and not j.is_resume:
                return i
        return -1

    def insert_after(self, position: int, job: Job) -> int:
        pos = min(max(position + 1, 0), len(self.jobs))
        self.jobs.insert(pos, job)
        return pos

    def resolve(self, name: str, current: int) -> int:
        """
        Position of job `name`, pulling it in from the declared jobs right
        after `current` when the execution order left it out.
        """
        idx = self.index_of(name)
        if idx != -1:
            return idx
        for j in self.declared:
            if j.name == name:
                return self.insert_after(current, j)
        raise TargetError(f"goto_job target '{name}' not found", job=name)

    def schedule_resume(self, origin: Job, remaining: Sequence[Step], after: int) -> Optional[Job]:
        """Insert a one-shot job running `remaining` right after position `after`."""
        if not remaining:
            return None
        base = origin.resume_of or origin.name
        resume = Job(
            name=f"{base}#resume-{int(time.time())}-{next(self._seq)}",
            steps=list(remaining),
            resume_of=base,
        )
        self.insert_after(after, resume)
        return resume

    def jump(self, current: int, name: str, origin: Job,
             remaining: Sequence[Step]) -> Tuple[int, Optional[Job]]:
        """
        Move control from position `current` to job `name`.

        Resume jobs still pending between `current` and the target would be
        skipped by the cursor; they are moved behind the target, after the
        remainder of `origin`, so interrupted jobs unwind innermost first.
        Returns the target position and the new resume job, if any.
        """
        target = self.resolve(name, current)
        between = self.jobs[current + 1:target]
        owed = [j for j in between if j.is_resume and j.name not in self._spent]
        self.jobs[current + 1:target] = [j for j in between if j not in owed]
        target -= len(owed)
        resume = self.schedule_resume(origin, remaining, after=target)
        tail = target + 1 if resume is not None else target
        for j in owed:
            tail = self.insert_after(tail, j)
        return target, resume

    def mark_started(self, job: Job) -> None:
        if job.is_resume:
            self._spent.add(job.name)

    def is_spent(self, job: Job) -> bool:
        """True for a resume job that already ran; it never runs twice."""
        return job.is_resume and job.name in self._spent
