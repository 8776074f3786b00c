from .loader import load_pipeline, parse_pipeline
from .model import Job, Pipeline, Step
from .runner import RunContext, RunOutcome, run_pipeline

__all__ = ["load_pipeline", "parse_pipeline", "Job", "Pipeline", "Step", "RunContext", "RunOutcome", "run_pipeline"]
