"""Console output formatting utilities for pipejob."""

from __future__ import annotations

import sys
from typing import Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(self, pipeline: str, job_count: int) -> None:
        """Print run start information."""
        print(f"Pipeline: {pipeline or '(unnamed)'} ({job_count} job(s))")

    def print_job_start(self, name: str) -> None:
        """Print job start message."""
        print(f"== Job: {name} ==")

    def print_command(self, command: str) -> None:
        """Echo a rendered command before it runs."""
        print(f"-> {command}")

    def print_output(self, text: str) -> None:
        """Echo captured command output as-is."""
        if not text:
            return
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
        sys.stdout.flush()

    def print_success(self, message: str) -> None:
        print(message)

    def print_warning(self, message: str) -> None:
        """Non-critical diagnostic (suppressed by callers in silent mode)."""
        print(message, file=sys.stderr)

    def print_notice(self, message: str) -> None:
        """Short notice on the diagnostic stream, e.g. where logs were kept."""
        print(message, file=sys.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"{title}: {message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"Hint: {suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
