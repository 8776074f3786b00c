# scaffold.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml


def generate_pipeline(name: str = "generated") -> Dict[str, Any]:
    """Minimal runnable pipeline document."""
    return {
        "pipeline": {
            "name": name,
            "variables": {"EXAMPLE": "value"},
            "jobs": [
                {
                    "name": "job1",
                    "steps": [
                        {
                            "name": "step1",
                            "type": "command",
                            "command": "echo 'hello world'",
                        }
                    ],
                }
            ],
        }
    }


def write_pipeline(path: str | Path, name: str = "generated") -> Path:
    out = Path(path)
    out.write_text(yaml.safe_dump(generate_pipeline(name), sort_keys=False), encoding="utf-8")
    return out
