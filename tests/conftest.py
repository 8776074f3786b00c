"""Shared fixtures for pipejob tests."""

from pathlib import Path

import pytest

from pipejob.evidence import EvidenceLog
from pipejob.loader import parse_pipeline
from pipejob.runner import RunContext, run_pipeline

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


@pytest.fixture
def examples_dir():
    return EXAMPLES


@pytest.fixture
def temp_base(tmp_path):
    return tmp_path / "workspace"


@pytest.fixture
def make_ctx(temp_base):
    def _make(**kwargs):
        kwargs.setdefault("evidence", EvidenceLog(temp_base=temp_base))
        return RunContext(**kwargs)
    return _make


@pytest.fixture
def run_yaml(make_ctx):
    """Parse a pipeline document and run it; returns the RunOutcome."""
    def _run(text, variables=None, **ctx_kwargs):
        pipeline = parse_pipeline(text)
        merged = dict(pipeline.variables)
        merged.update(variables or {})
        return run_pipeline(pipeline, merged, make_ctx(**ctx_kwargs))
    return _run
