from __future__ import annotations

import logging
import os
from typing import Callable, Mapping

from datical_step.builder import build_normalized
from datical_step.config_loader import validate_params
from datical_step.core import Platform, StepConfig
from datical_step.errors import ConfigurationError, EnvironmentResolutionError
from datical_step.runner import ProcessRunner
from datical_step.util import parse_env_lines

EnvironmentProvider = Callable[[StepConfig], Mapping[str, str]]


def resolve_build_environment(config: StepConfig) -> dict[str, str]:
    """
    Environment overrides for the child: env files in order, then the build variables.

    The inherited process environment is merged underneath by the runner.
    """
    env: dict[str, str] = {}
    for path in config.env_files:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise EnvironmentResolutionError(f"Unable to read environment file {path}: {e}") from e
        try:
            env.update(parse_env_lines(text, origin=str(path)))
        except ValueError as e:
            raise EnvironmentResolutionError(f"Unable to parse environment file {path}: {e}") from e
    env.update(config.build_vars)
    return env


def _echo_config(config: StepConfig, logger: logging.Logger) -> None:
    p = config.params
    logger.info("Datical DB Global Config:")
    logger.info("Datical DB Install Dir = %s", p.install_dir)
    logger.info("Datical DB Drivers Dir = %s", p.drivers_dir)
    logger.info("Datical DB Project Config:")
    logger.info("Datical DB Project Dir = %s", p.project_dir)
    logger.info("Datical DB Server = %s", p.server)
    logger.info("Datical DB Action = %s", p.action)


def perform(
    config: StepConfig,
    *,
    logger: logging.Logger,
    platform: Platform | None = None,
    environment: EnvironmentProvider | None = None,
    runner: ProcessRunner | None = None,
    exists: Callable[[str], bool] = os.path.exists,
) -> bool:
    """
    Run one Datical DB build step and report whether it succeeded.

    Every failure (bad configuration, unresolvable environment, launch problems,
    interruption, non-zero exit) is logged and turned into False; nothing is raised.
    """
    platform = platform or Platform.detect()
    environment = environment or resolve_build_environment
    runner = runner or ProcessRunner(dry_run=config.dry_run, logger=logger)

    _echo_config(config, logger)

    try:
        problems = validate_params(config.params)
        if problems:
            raise ConfigurationError("; ".join(problems))

        p = config.params
        cmd = build_normalized(
            p.install_dir,
            p.drivers_dir,
            p.project_dir,
            p.action,
            p.server,
            platform,
            exists=exists,
        )
        logger.debug("Raw command line: %s", cmd.raw)
        logger.info("File separators sanitized: %s", cmd.separators_sanitized)
        logger.info("Environment variables sanitized: %s", cmd.env_sanitized)

        try:
            env = dict(environment(config))
        except EnvironmentResolutionError:
            raise
        except Exception as e:
            raise EnvironmentResolutionError(f"Unable to find environment variables: {e}") from e

        result = runner.run(
            cmd.env_sanitized,
            platform=platform,
            working_dir=config.workspace,
            env_overrides=env,
            sink=logger,
        )
    except ConfigurationError as e:
        logger.error("Invalid Datical DB configuration: %s", e)
        return False
    except EnvironmentResolutionError as e:
        logger.error("Unable to find environment variables.", exc_info=e)
        return False

    return result.succeeded
