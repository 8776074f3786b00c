# cli.py
from __future__ import annotations

import sys

import click

from pipejob import config
from pipejob.errors import EXIT_INTERRUPTED, EXIT_USAGE, PipelineError
from pipejob.evidence import EvidenceLog
from pipejob.loader import load_pipeline
from pipejob.runner import RunContext, dry_run as render_dry_run, run_pipeline
from pipejob.scaffold import write_pipeline
from pipejob.ui.console import Console, get_console, set_console
from pipejob.variables import build_variables, load_env_file, parse_cli_vars


def _parse_vars(ctx, param, value):
    try:
        return parse_cli_vars(value or ())
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """pipejob: local pipeline runner with conditional branching."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("pipeline_file", metavar="PIPELINE.yaml")
@click.option("--var", "cli_vars", multiple=True, callback=_parse_vars, help="key=val variable to render (repeatable)")
@click.option("--env-file", default=config.DEFAULT_ENV_FILE, show_default=True, help="Path to .env file (optional)")
@click.option("--dry-run", is_flag=True, default=False, help="Validate and print steps without executing")
@click.option("--persist-logs", default=None, help="Directory to persist logs (optional)")
@click.option("--shell", default=None, help="Shell for step commands: sh, bash, cmd, powershell")
@click.option("--silent", is_flag=True, default=False, help="Only print critical errors")
def run(pipeline_file, cli_vars, env_file, dry_run, persist_logs, shell, silent):
    """Run a pipeline file."""
    console = get_console()

    try:
        pipeline = load_pipeline(pipeline_file)
    except PipelineError as e:
        console.print_error(e.kind, str(e))
        sys.exit(e.exit_code)

    variables = build_variables(pipeline.variables, load_env_file(env_file), cli_vars)
    console.print_debug(f"variables: {sorted(variables)}")

    if dry_run:
        try:
            sys.exit(render_dry_run(pipeline, variables, console))
        except PipelineError as e:
            console.print_error(e.kind, str(e))
            sys.exit(e.exit_code)

    try:
        evidence = EvidenceLog(persist_dir=persist_logs)
    except OSError as e:
        console.print_error("config error", f"failed to create log dir {persist_logs}: {e}")
        sys.exit(EXIT_USAGE)

    run_ctx = RunContext(shell=shell, silent=silent, console=console, evidence=evidence)
    try:
        outcome = run_pipeline(pipeline, variables, run_ctx)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    sys.exit(outcome.exit_code)


@cli.command()
@click.argument("out", metavar="OUT.yaml")
@click.option("--name", default="generated", show_default=True, help="Pipeline name")
def new(out, name):
    """Generate a minimal pipeline file."""
    console = get_console()
    try:
        path = write_pipeline(out, name)
    except OSError as e:
        console.print_error("write failed", f"failed to write {out}: {e}")
        sys.exit(EXIT_USAGE)
    console.print_info(f"generated {path}")


if __name__ == "__main__":
    cli()
