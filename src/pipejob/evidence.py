# evidence.py
from __future__ import annotations

import tempfile
import time
from pathlib import Path
from typing import BinaryIO, Optional

from . import config

EVIDENCE_FILE = "error_evidence.log"
RUN_LOG_FILE = "run.log"


class EvidenceLog:
    """
    Capacity-bounded, append-only run log.

    Keeps only the most recent `capacity` bytes in memory. Nothing touches
    disk unless the run fails or a persistence directory was requested; in
    the latter case every write is also streamed to `<dir>/run.log`.
    """

    def __init__(
        self,
        capacity: int = config.LOG_CAPACITY,
        persist_dir: str | Path | None = None,
        temp_base: str | Path = config.TEMP_BASE,
    ):
        if capacity <= 0:
            raise ValueError(f"log capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.persist_dir = Path(persist_dir) if persist_dir else None
        self.temp_base = Path(temp_base)
        self.discarded = 0
        self._buf = bytearray()
        self._stream: Optional[BinaryIO] = None

        if self.persist_dir is not None:
            self.persist_dir.mkdir(parents=True, exist_ok=True)
            self._stream = (self.persist_dir / RUN_LOG_FILE).open("ab")

    def __len__(self) -> int:
        return len(self._buf)

    def write(self, data: str | bytes) -> None:
        b = data.encode("utf-8", "replace") if isinstance(data, str) else bytes(data)
        if not b:
            return
        if self._stream is not None:
            self._stream.write(b)
            self._stream.flush()

        if len(b) >= self.capacity:
            self.discarded += len(self._buf) + len(b) - self.capacity
            self._buf[:] = b[-self.capacity:]
            return

        self._buf += b
        overflow = len(self._buf) - self.capacity
        if overflow > 0:
            del self._buf[:overflow]
            self.discarded += overflow

    def line(self, text: str) -> None:
        self.write(text if text.endswith("\n") else text + "\n")

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def text(self) -> str:
        return self._buf.decode("utf-8", "replace")

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def _workspace(self) -> Path:
        """Create and return the directory the evidence file goes to."""
        if self.persist_dir is not None:
            self.persist_dir.mkdir(parents=True, exist_ok=True)
            return self.persist_dir
        self.temp_base.mkdir(parents=True, exist_ok=True)
        ts = time.strftime("%Y%m%d-%H%M%S")
        # unique per run even within the same second
        return Path(tempfile.mkdtemp(prefix=f"pipejob-{ts}-", dir=self.temp_base))

    def finish(self, *, failed: bool, exit_code: int = 0, reason: str = "") -> Optional[Path]:
        """
        Close the run log.

        Returns the directory holding the logs, or None when the run
        succeeded without persistence (buffer discarded, no disk I/O).
        """
        self.close()
        if not failed:
            self._buf.clear()
            return self.persist_dir

        directory = self._workspace()
        header = [
            "=== ERROR EVIDENCE ===",
            f"exit_code: {exit_code}",
        ]
        if reason:
            header.append(f"reason: {reason}")
        if self.discarded:
            header.append(f"(earliest {self.discarded} bytes discarded, last {self.capacity} kept)")
        header.append("")
        with (directory / EVIDENCE_FILE).open("wb") as f:
            f.write(("\n".join(header) + "\n").encode("utf-8"))
            f.write(bytes(self._buf))
        return directory
