from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Mapping

import yaml

from datical_step.core import Action, InvocationParams, StepConfig
from datical_step.errors import ConfigurationError
from datical_step.util import expand_path

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib


_STRING_KEYS = ("install_dir", "drivers_dir", "project_dir", "server", "action", "workspace")
_SECTIONS: dict[str, dict[str, str]] = {
    "global": {"install_dir": "install_dir", "drivers_dir": "drivers_dir"},
    "project": {"project_dir": "project_dir", "server": "server", "action": "action"},
    "build": {"workspace": "workspace", "env_files": "env_files", "vars": "vars", "dry_run": "dry_run"},
}
_FLAT_KEYS = set(_STRING_KEYS) | {"env_files", "vars", "dry_run"}


@dataclass(frozen=True)
class LoadedConfig:
    path: Path
    values: dict[str, Any]


# Field checks, usable on their own (e.g. before saving a config). None means OK.


def _check_no_double_quote(value: str, *, what: str) -> str | None:
    # Values are double-quoted on the command line; an embedded `"` would be dropped.
    if '"' in value:
        return f"The Datical DB {what} must not contain a double quote (\")"
    return None


def check_install_dir(value: str | None) -> str | None:
    if not value:
        return "Please set the Datical DB Installation Directory"
    return _check_no_double_quote(value, what="Installation Directory")


def check_drivers_dir(value: str | None) -> str | None:
    if not value:
        return "Please set the Datical DB Drivers Directory"
    return _check_no_double_quote(value, what="Drivers Directory")


def check_project_dir(value: str | None) -> str | None:
    if not value:
        return "Please set the Datical DB Project Directory"
    return _check_no_double_quote(value, what="Project Directory")


def check_action(value: str | None) -> str | None:
    if not value:
        return "Please set the Datical DB Action"
    try:
        Action.parse(value)
    except ConfigurationError as e:
        return str(e)
    return None


def check_server(value: str | None, *, action: str | None) -> str | None:
    if value:
        return _check_no_double_quote(value, what="Server")
    try:
        act = Action.parse(action or "")
    except ConfigurationError:
        # Reported by check_action.
        return None
    if act.requires_server:
        return f"Please set the Datical DB Server (required by '{act.value}')"
    return None


def validate_params(params: InvocationParams) -> list[str]:
    errors = [
        check_install_dir(params.install_dir),
        check_drivers_dir(params.drivers_dir),
        check_project_dir(params.project_dir),
        check_action(params.action),
        check_server(params.server, action=params.action),
    ]
    return [e for e in errors if e is not None]


def _require_str(value: Any, *, what: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"'{what}' must be a string if present")
    return value


def _flatten(obj: Any, path: Path) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ValueError(f"{path}: config must be a table/object of settings")

    out: dict[str, Any] = {}
    for key, value in obj.items():
        if key in _SECTIONS:
            if not isinstance(value, dict):
                raise ValueError(f"{path}: [{key}] must be a table")
            allowed = _SECTIONS[key]
            for sub_key, sub_value in value.items():
                if sub_key not in allowed:
                    known = ", ".join(sorted(allowed))
                    raise ValueError(f"{path}: unknown key '{key}.{sub_key}' (known: {known})")
                out[allowed[sub_key]] = sub_value
        elif key in _FLAT_KEYS:
            out[key] = value
        else:
            known = ", ".join(sorted(set(_SECTIONS) | _FLAT_KEYS))
            raise ValueError(f"{path}: unknown key '{key}' (known: {known})")

    for key in _STRING_KEYS:
        if key in out and out[key] is not None:
            _require_str(out[key], what=key)

    env_files = out.get("env_files")
    if env_files is not None:
        if isinstance(env_files, str):
            env_files = [env_files]
        if not isinstance(env_files, list) or not all(isinstance(x, str) and x for x in env_files):
            raise ValueError(f"{path}: 'env_files' must be a string or a list of strings")
        out["env_files"] = env_files

    build_vars = out.get("vars")
    if build_vars is not None:
        if not isinstance(build_vars, dict):
            raise ValueError(f"{path}: 'vars' must be a table of KEY = VALUE")
        out["vars"] = {str(k): str(v) for k, v in build_vars.items()}

    dry_run = out.get("dry_run")
    if dry_run is not None and not isinstance(dry_run, bool):
        raise ValueError(f"{path}: 'dry_run' must be a boolean if present")

    return out


def _load_json(text: str, path: Path) -> Any:
    try:
        return json.loads(text)
    except JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON in {path} at line {e.lineno}, column {e.colno}: {e.msg}"
        ) from e


def _load_toml(text: str, path: Path) -> Any:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def _load_yaml(text: str, path: Path) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is not None and hasattr(mark, "line") and hasattr(mark, "column"):
            line = int(mark.line) + 1
            col = int(mark.column) + 1
            raise ValueError(f"Invalid YAML in {path} at line {line}, column {col}: {e}") from e
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def load_config_file(path: Path) -> LoadedConfig:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    if suffix == ".json":
        raw = _load_json(text, path)
    elif suffix == ".toml":
        raw = _load_toml(text, path)
    elif suffix in (".yaml", ".yml"):
        raw = _load_yaml(text, path)
        if raw is None:
            raw = {}
    else:
        raise ValueError(
            f"Unsupported config format for {path} (expected .json, .toml, .yaml, .yml)."
        )
    return LoadedConfig(path=path, values=_flatten(raw, path))


def default_config_file(config_dir: Path) -> Path | None:
    for name in ("config.toml", "config.yaml", "config.yml", "config.json"):
        candidate = config_dir / name
        if candidate.is_file():
            return candidate
    return None


def build_step_config(
    values: Mapping[str, Any],
    *,
    base_dir: Path,
    default_workspace: Path,
) -> StepConfig:
    """
    Turn merged settings (file values overlaid with CLI flags) into a StepConfig.

    Relative env files and workspace are resolved against `base_dir` (the config file's
    directory). Missing values stay empty; `validate_params` reports them.
    """
    params = InvocationParams(
        install_dir=values.get("install_dir") or "",
        drivers_dir=values.get("drivers_dir") or "",
        project_dir=values.get("project_dir") or "",
        server=values.get("server") or "",
        action=values.get("action") or "",
    )

    workspace_raw = values.get("workspace")
    workspace = default_workspace
    if workspace_raw:
        workspace = expand_path(workspace_raw)
        if not workspace.is_absolute():
            workspace = base_dir / workspace

    env_files: list[Path] = []
    for f in values.get("env_files") or []:
        p = expand_path(f)
        if not p.is_absolute():
            p = base_dir / p
        env_files.append(p)

    return StepConfig(
        params=params,
        workspace=workspace,
        build_vars=dict(values.get("vars") or {}),
        env_files=tuple(env_files),
        dry_run=bool(values.get("dry_run", False)),
    )
