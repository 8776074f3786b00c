from __future__ import annotations
import os

# Evidence buffer capacity in bytes (trailing window kept on failure).
LOG_CAPACITY = int(os.environ.get("PIPEJOB_LOG_CAPACITY", str(300 * 1024)))

# Base directory for the per-run temp workspace used when preserving logs.
TEMP_BASE = os.environ.get("PIPEJOB_TEMP_DIR", ".sync_temp")

# Shell used to run step commands. Empty means platform default.
DEFAULT_SHELL = os.environ.get("PIPEJOB_SHELL", "")

DEFAULT_ENV_FILE = ".env"
