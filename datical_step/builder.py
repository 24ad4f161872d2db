from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable

from datical_step.core import Action, Platform
from datical_step.envvars import convert_for
from datical_step.errors import ConfigurationError
from datical_step.separators import normalize_separators


@dataclass(frozen=True)
class NormalizedCommand:
    raw: str
    separators_sanitized: str
    env_sanitized: str


def _quote(value: str) -> str:
    # The tokenizer has no escape for `"`, so a value containing one cannot be passed intact.
    if '"' in value:
        raise ConfigurationError(f"Value must not contain a double quote: {value!r}")
    return '"' + value + '"'


def _needs_quoting(token: str) -> bool:
    return any(ch.isspace() or ch in ("\"", "'") for ch in token)


def resolve_executable(
    install_dir: str,
    platform: Platform,
    *,
    exists: Callable[[str], bool] = os.path.exists,
) -> str:
    """
    Locate `hammer` under the install dir.

    The GUI installer puts it in `<install>/repl/`, the CLI installer directly in `<install>/`.
    """
    base = install_dir.rstrip("/\\") or install_dir
    suffix = platform.executable_suffix
    candidate = f"{base}/repl/hammer{suffix}"
    if exists(candidate):
        return candidate
    return f"{base}/hammer{suffix}"


def action_suffix(action: str, server: str) -> str:
    act = Action.parse(action)
    if not act.requires_server:
        return act.value
    if not server:
        raise ConfigurationError(f"Datical DB action '{act.value}' requires a server")
    return f"{act.value} {_quote(server)}"


def build(
    install_dir: str,
    drivers_dir: str,
    project_dir: str,
    action: str,
    server: str,
    platform: Platform,
    *,
    exists: Callable[[str], bool] = os.path.exists,
) -> str:
    # Resolve the suffix first so a bad action never yields a partial command line.
    suffix = action_suffix(action, server)

    executable = resolve_executable(install_dir, platform, exists=exists)
    if _needs_quoting(executable):
        executable = _quote(executable)

    parts = [
        executable,
        _quote(f"--drivers={drivers_dir}"),
        _quote(f"--project={project_dir}"),
        suffix,
    ]
    return " ".join(parts)


def build_normalized(
    install_dir: str,
    drivers_dir: str,
    project_dir: str,
    action: str,
    server: str,
    platform: Platform,
    *,
    exists: Callable[[str], bool] = os.path.exists,
) -> NormalizedCommand:
    raw = build(install_dir, drivers_dir, project_dir, action, server, platform, exists=exists)
    separators_sanitized = normalize_separators(raw, platform.separator) or ""
    env_sanitized = convert_for(platform, separators_sanitized) or ""
    return NormalizedCommand(
        raw=raw,
        separators_sanitized=separators_sanitized,
        env_sanitized=env_sanitized,
    )
