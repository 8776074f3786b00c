"""Tests for the working job list."""

import pytest

from pipejob.errors import TargetError
from pipejob.model import Job, Step
from pipejob.worklist import WorkingJobList


def job(name, *steps):
    return Job(name=name, steps=[Step(name=s) for s in steps])


def declared():
    return [job("a", "a1", "a2"), job("b", "b1"), job("c", "c1"), job("x", "x1")]


def test_declaration_order_without_runs():
    assert WorkingJobList(declared()).names() == ["a", "b", "c", "x"]


def test_runs_reorders_and_filters():
    assert WorkingJobList(declared(), ["c", "a"]).names() == ["c", "a"]


def test_runs_may_schedule_a_job_twice():
    assert WorkingJobList(declared(), ["a", "b", "a"]).names() == ["a", "b", "a"]


def test_runs_unknown_job():
    with pytest.raises(TargetError, match="runs lists unknown job 'nope'"):
        WorkingJobList(declared(), ["a", "nope"])


def test_resolve_existing_job_does_not_insert():
    jobs = WorkingJobList(declared(), ["a", "b", "c"])
    assert jobs.resolve("c", current=0) == 2
    assert jobs.names() == ["a", "b", "c"]


def test_resolve_pulls_in_declared_job_after_current():
    jobs = WorkingJobList(declared(), ["a", "b"])
    assert jobs.resolve("x", current=0) == 1
    assert jobs.names() == ["a", "x", "b"]


def test_resolve_missing_everywhere():
    jobs = WorkingJobList(declared())
    with pytest.raises(TargetError, match="goto_job target 'ghost' not found"):
        jobs.resolve("ghost", current=0)


def test_schedule_resume_after_target():
    jobs = WorkingJobList(declared(), ["a", "b"])
    a = jobs[0]
    resume = jobs.schedule_resume(a, a.steps[1:], after=1)
    assert resume.is_resume
    assert resume.resume_of == "a"
    assert [s.name for s in resume.steps] == ["a2"]
    assert jobs.names()[2] == resume.name
    assert resume.name.startswith("a#resume-")


def test_schedule_resume_nothing_left():
    jobs = WorkingJobList(declared())
    assert jobs.schedule_resume(jobs[0], [], after=0) is None
    assert len(jobs) == 4


def test_resume_names_are_unique_and_not_targets():
    jobs = WorkingJobList(declared(), ["a"])
    a = jobs[0]
    r1 = jobs.schedule_resume(a, a.steps[1:], after=0)
    r2 = jobs.schedule_resume(a, a.steps[1:], after=0)
    assert r1.name != r2.name
    assert jobs.index_of(r1.name) == -1


def test_resume_of_resume_keeps_original_name():
    jobs = WorkingJobList(declared(), ["a"])
    a = jobs[0]
    r1 = jobs.schedule_resume(a, a.steps, after=0)
    r2 = jobs.schedule_resume(r1, r1.steps[1:], after=0)
    assert r2.resume_of == "a"
    assert r2.name.startswith("a#resume-")


def test_jump_moves_pending_resume_behind_new_target():
    jobs = WorkingJobList(declared(), ["a", "b", "c"])
    a = jobs[0]
    target, ra = jobs.jump(0, "b", a, a.steps[1:])
    assert target == 1
    assert jobs.names() == ["a", "b", ra.name, "c"]

    b = jobs[1]
    target, rb = jobs.jump(1, "c", b, [Step(name="b2")])
    assert target == 2
    assert jobs.names() == ["a", "b", "c", rb.name, ra.name]


def test_jump_leaves_spent_resume_in_place():
    jobs = WorkingJobList(declared(), ["a", "b", "c"])
    a = jobs[0]
    _, ra = jobs.jump(0, "b", a, a.steps[1:])
    jobs.mark_started(ra)
    assert jobs.is_spent(ra)
    target, rb = jobs.jump(1, "c", jobs[1], [])
    assert rb is None
    assert target == 3
    assert jobs.names() == ["a", "b", ra.name, "c"]


def test_regular_jobs_are_never_spent():
    jobs = WorkingJobList(declared())
    jobs.mark_started(jobs[0])
    assert not jobs.is_spent(jobs[0])
