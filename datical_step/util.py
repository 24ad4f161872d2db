from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Mapping, Sequence


def xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def expand_path(s: str) -> Path:
    # Expand ~ and $VARS
    return Path(os.path.expandvars(os.path.expanduser(s)))


def sh_join(args: Sequence[str]) -> str:
    return shlex.join(list(args))


def merge_env(overrides: Mapping[str, str] | None) -> dict[str, str]:
    merged = dict(os.environ)
    if overrides:
        merged.update({str(k): str(v) for k, v in overrides.items()})
    return merged


def parse_env_lines(text: str, *, origin: str = "<env>") -> dict[str, str]:
    """
    Parse dotenv-style `KEY=VALUE` lines.

    Blank lines and `#` comments are skipped, an optional `export ` prefix is accepted and
    surrounding quotes are stripped from values. Anything else raises ValueError.
    """
    data: dict[str, str] = {}
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            raise ValueError(f"{origin}:{lineno}: expected KEY=VALUE, got {raw_line!r}")
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"{origin}:{lineno}: empty variable name")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        data[key] = value
    return data
