# variables.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from dotenv import dotenv_values

# {{KEY}}, {{ KEY }}, {{.KEY}}, {{ .KEY }}
_PLACEHOLDER = re.compile(r"\{\{\s?\.?([^{}\s]+?)\s?\}\}")


def interpolate(text: str, variables: Mapping[str, str]) -> str:
    """
    Replace `{{name}}` placeholders with values from `variables`.

    Unknown names are left untouched so a typo stays visible in the
    rendered command instead of silently becoming an empty string.
    """
    if not text:
        return text

    def _sub(m: re.Match) -> str:
        key = m.group(1)
        if key in variables:
            return variables[key]
        return m.group(0)

    return _PLACEHOLDER.sub(_sub, text)


def load_env_file(path: str | Path | None) -> Dict[str, str]:
    """
    Load KEY=VALUE pairs from a .env file.

    A missing file is not an error: the env file is optional.
    Keys declared without a value are skipped.
    """
    if not path:
        return {}
    p = Path(path)
    if not p.is_file():
        return {}
    return {k: v for k, v in dotenv_values(p).items() if v is not None}


def parse_cli_vars(items: Iterable[str]) -> Dict[str, str]:
    """Parse repeated `key=val` options. Raises ValueError on a malformed item."""
    out: Dict[str, str] = {}
    for kv in items:
        key, sep, val = kv.partition("=")
        if not sep or not key:
            raise ValueError(f"invalid --var value: {kv} (expected key=val)")
        out[key] = val
    return out


def build_variables(
    pipeline_vars: Optional[Mapping[str, str]] = None,
    env_vars: Optional[Mapping[str, str]] = None,
    cli_vars: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Merge variable layers: pipeline < env file < CLI."""
    merged: Dict[str, str] = {}
    for layer in (pipeline_vars, env_vars, cli_vars):
        merged.update(layer or {})
    return merged
