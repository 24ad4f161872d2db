from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

from datical_step.config_loader import (
    build_step_config,
    check_action,
    default_config_file,
    load_config_file,
)
from datical_step.core import Action, Platform
from datical_step.step import perform
from datical_step.util import xdg_config_home


def _setup_logger(verbose: bool) -> logging.Logger:
    logger = logging.getLogger("datical-step")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.handlers[:] = [handler]
    logger.propagate = False
    return logger


def _parse_env_assignment(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key.strip(), val


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datical-step",
        description="Run a Datical DB (hammer) action as a build step.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Step config file (*.json, *.toml, *.yaml, *.yml). "
        "Defaults to ~/.config/datical-step/config.* when present.",
    )
    parser.add_argument("--install-dir", help="Datical DB installation directory.")
    parser.add_argument("--drivers-dir", help="Datical DB JDBC drivers directory.")
    parser.add_argument("--project-dir", help="Datical DB project directory.")
    parser.add_argument("--server", help="Target server (deployment step) name.")
    parser.add_argument(
        "--action",
        help="One of: " + ", ".join(a.value for a in Action) + ".",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Working directory for hammer (default: current directory).",
    )
    parser.add_argument(
        "--env",
        action="append",
        type=_parse_env_assignment,
        default=[],
        metavar="KEY=VALUE",
        help="Build variable passed to hammer's environment. Can be specified multiple times.",
    )
    parser.add_argument(
        "--env-file",
        action="append",
        type=Path,
        default=[],
        help="Dotenv-style file of build environment variables. Can be specified multiple times.",
    )
    parser.add_argument(
        "--platform",
        choices=[p.value for p in Platform],
        help="Override platform detection (useful with --dry-run).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the resolved command but do not run it.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose logs.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = _setup_logger(args.verbose)

    config_path: Path | None = args.config
    if config_path is None:
        config_path = default_config_file(xdg_config_home() / "datical-step")
        if config_path is not None:
            logger.debug("Using default config %s", config_path)
    elif not config_path.is_file():
        logger.error("Config file not found: %s", config_path)
        return 2

    values: dict[str, Any] = {}
    base_dir = Path.cwd()
    if config_path is not None:
        try:
            loaded = load_config_file(config_path)
        except (OSError, ValueError) as e:
            logger.error("Failed to load config @ %s: %s", config_path, e)
            return 2
        values.update(loaded.values)
        base_dir = config_path.resolve().parent

    # Flags win over file values.
    for key in ("install_dir", "drivers_dir", "project_dir", "server", "action"):
        flag = getattr(args, key)
        if flag is not None:
            values[key] = flag
    if args.workspace is not None:
        values["workspace"] = str(args.workspace.resolve())
    if args.env_file:
        values["env_files"] = list(values.get("env_files") or []) + [
            str(p.resolve()) for p in args.env_file
        ]
    if args.env:
        merged_vars = dict(values.get("vars") or {})
        merged_vars.update(dict(args.env))
        values["vars"] = merged_vars
    if args.dry_run:
        values["dry_run"] = True

    # Reject a bad action up front; the step would refuse it anyway.
    action_error = check_action(values.get("action"))
    if action_error:
        logger.error("%s", action_error)
        return 2

    config = build_step_config(values, base_dir=base_dir, default_workspace=Path.cwd())
    platform = Platform(args.platform) if args.platform else Platform.detect()

    ok = perform(config, logger=logger, platform=platform)
    if ok:
        logger.info("Done.")
        return 0
    logger.error("Datical DB step failed.")
    return 1
