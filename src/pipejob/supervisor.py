"""
Command supervisor.

Runs one shell command line to completion or forced termination. Output is
drained by two reader threads into a shared sink; the control thread races
output activity (idle timer), process exit, the overall deadline and
cancellation on a single event queue. Either timeout kills the whole
process tree and reports the 124 sentinel.
"""

from __future__ import annotations

import os
import queue
import signal
import subprocess
import threading
import time
from typing import IO, Callable, Dict, List, Optional

from . import config
from .errors import TIMEOUT_EXIT_CODE
from .model import CommandResult

# seconds to keep draining pipes after the process is gone; a detached
# grandchild may hold them open forever
READER_GRACE = 2.0

_ACTIVITY = "activity"
_EXITED = "exited"
_CANCELLED = "cancelled"


# ---------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------

class CancelToken:
    """Cooperative cancellation shared between the runner and the supervisor."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
        for cb in callbacks:
            cb()

    def subscribe(self, cb: Callable[[], None]) -> Callable[[], None]:
        """Register `cb`; returns a function that unregisters it."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(cb)

                def _unsubscribe() -> None:
                    with self._lock:
                        if cb in self._callbacks:
                            self._callbacks.remove(cb)

                return _unsubscribe
        cb()
        return lambda: None


# ---------------------------------------------------------------------
# Process tree backends
# ---------------------------------------------------------------------

class ProcessBackend:
    """Start a process as the root of a killable tree; kill that tree on demand."""

    def popen_kwargs(self) -> Dict[str, object]:
        raise NotImplementedError

    def kill_tree(self, proc: subprocess.Popen) -> None:
        raise NotImplementedError


class PosixProcessGroup(ProcessBackend):
    """The child leads its own process group; SIGKILL goes to the whole group."""

    def popen_kwargs(self) -> Dict[str, object]:
        return {"start_new_session": True}

    def kill_tree(self, proc: subprocess.Popen) -> None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            # group already gone; make sure the leader is too
            if proc.poll() is None:
                proc.kill()


class WindowsProcessTree(ProcessBackend):
    """Forceful recursive kill through taskkill /T /F."""

    def popen_kwargs(self) -> Dict[str, object]:
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}

    def kill_tree(self, proc: subprocess.Popen) -> None:
        subprocess.run(
            ["taskkill", "/T", "/F", "/PID", str(proc.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
        if proc.poll() is None:
            proc.kill()


def default_backend() -> ProcessBackend:
    return WindowsProcessTree() if os.name == "nt" else PosixProcessGroup()


def shell_argv(command: str, shell: Optional[str] = None) -> List[str]:
    """Build the argv that runs `command` under the configured shell."""
    sh = (shell or config.DEFAULT_SHELL or ("cmd" if os.name == "nt" else "sh")).lower()
    if sh == "cmd":
        return ["cmd", "/C", command]
    if sh in ("powershell", "pwsh"):
        return [sh, "-NoProfile", "-Command", command]
    if sh == "sh":
        return ["/bin/sh", "-c", command]
    return [sh, "-c", command]


# ---------------------------------------------------------------------
# Output aggregation
# ---------------------------------------------------------------------

class OutputSink:
    """Single in-process buffer both reader threads append to."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buf = bytearray()

    def write(self, data: bytes) -> None:
        with self._lock:
            self._buf += data

    def getvalue(self) -> bytes:
        with self._lock:
            return bytes(self._buf)


def _drain(stream: IO[bytes], sink: OutputSink, events: "queue.Queue[str]") -> None:
    try:
        while True:
            chunk = stream.read1(4096)  # type: ignore[attr-defined]
            if not chunk:
                return
            sink.write(chunk)
            events.put(_ACTIVITY)
    except (OSError, ValueError):
        # pipe closed underneath us
        return
    finally:
        try:
            stream.close()
        except OSError:
            pass


# ---------------------------------------------------------------------
# Supervisor
# ---------------------------------------------------------------------

class CommandSupervisor:
    def __init__(self, shell: Optional[str] = None, backend: Optional[ProcessBackend] = None):
        self.shell = shell
        self.backend = backend or default_backend()

    def run(
        self,
        command: str,
        *,
        timeout: Optional[float] = None,
        idle_timeout: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """
        Run `command` and return its combined output and exit code.

        Exit codes: the real code on natural exit (128+N when killed by
        signal N), 124 with `timed_out` when either timeout fired, 1 on a
        spawn error or cancellation.
        """
        if cancel is not None and cancel.cancelled:
            return CommandResult(output="", exit_code=1, cancelled=True, error="cancelled")

        try:
            proc = subprocess.Popen(
                shell_argv(command, self.shell),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=env,
                **self.backend.popen_kwargs(),
            )
        except OSError as e:
            return CommandResult(output="", exit_code=1, error=f"failed to start command: {e}")

        events: "queue.Queue[str]" = queue.Queue()
        sink = OutputSink()
        readers = [
            threading.Thread(target=_drain, args=(proc.stdout, sink, events), daemon=True),
            threading.Thread(target=_drain, args=(proc.stderr, sink, events), daemon=True),
        ]
        for t in readers:
            t.start()

        def _wait() -> None:
            proc.wait()
            events.put(_EXITED)

        threading.Thread(target=_wait, daemon=True).start()
        unsubscribe = cancel.subscribe(lambda: events.put(_CANCELLED)) if cancel else (lambda: None)

        start = time.monotonic()
        last_activity = start
        deadline = start + timeout if timeout else None
        reason: Optional[str] = None

        try:
            while True:
                now = time.monotonic()
                waits = []
                if idle_timeout:
                    waits.append(last_activity + idle_timeout - now)
                if deadline is not None:
                    waits.append(deadline - now)
                try:
                    event = events.get(timeout=max(0.0, min(waits)) if waits else None)
                except queue.Empty:
                    now = time.monotonic()
                    if deadline is not None and now >= deadline:
                        reason = "timeout"
                        break
                    if idle_timeout and now - last_activity >= idle_timeout:
                        reason = "idle"
                        break
                    continue
                if event == _ACTIVITY:
                    last_activity = time.monotonic()
                elif event == _EXITED:
                    break
                elif event == _CANCELLED:
                    reason = "cancel"
                    break
        except BaseException:
            if proc.poll() is None:
                self.backend.kill_tree(proc)
            raise
        finally:
            unsubscribe()

        if reason is not None and proc.poll() is None:
            self.backend.kill_tree(proc)
        returncode = proc.wait()
        for t in readers:
            t.join(READER_GRACE)
        output = sink.getvalue().decode("utf-8", "replace")

        if reason == "timeout":
            return CommandResult(output, TIMEOUT_EXIT_CODE, timed_out=True,
                                 error=f"timed out after {timeout:g}s")
        if reason == "idle":
            return CommandResult(output, TIMEOUT_EXIT_CODE, timed_out=True,
                                 error=f"no output for {idle_timeout:g}s (idle timeout)")
        if reason == "cancel":
            return CommandResult(output, 1, cancelled=True, error="cancelled")
        if returncode < 0:
            returncode = 128 - returncode
        return CommandResult(output, returncode,
                             error=None if returncode == 0 else f"exit status {returncode}")
