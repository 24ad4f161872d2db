from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Mapping

from datical_step.core import NO_EXIT_CODE, ExecutionResult, Platform
from datical_step.errors import ConfigurationError, LaunchError, WaitInterruptedError
from datical_step.tokenizer import quote_for_display, tokenize, windows_command_string
from datical_step.util import merge_env, sh_join


def with_relative_marker(executable: str) -> str:
    # Absolute paths and explicit ./ or ../ paths never go through PATH lookup.
    # An absolute path stays as is: "./" + "/opt/x" would resolve under the working directory.
    if executable.startswith(("/", "./", "../")):
        return executable
    return "./" + executable


def launch_args(command_line: str, platform: Platform) -> list[str]:
    args = tokenize(command_line)
    if not args or not args[0]:
        raise ConfigurationError("Command line is empty")
    if platform is Platform.POSIX:
        args[0] = with_relative_marker(args[0])
    return args


class ProcessRunner:
    def __init__(self, *, dry_run: bool, logger: logging.Logger) -> None:
        self._dry_run = dry_run
        self._logger = logger

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def run(
        self,
        command_line: str,
        *,
        platform: Platform,
        working_dir: Path,
        env_overrides: Mapping[str, str] | None = None,
        sink: logging.Logger | None = None,
    ) -> ExecutionResult:
        """
        Launch the command line and wait for it, streaming its output to `sink`.

        An empty command line, launch failures and interrupted waits are logged and
        returned as a failed result; they are never raised.
        """
        log = sink or self._logger

        try:
            args = launch_args(command_line, platform)
        except ConfigurationError as e:
            log.error("Command execution failed: %s", e)
            return ExecutionResult.from_exit_code(NO_EXIT_CODE)
        display = quote_for_display(args)
        log.info("Execute from working directory: %s", display)
        if platform is Platform.WINDOWS:
            display = windows_command_string(args)
            log.info("Windows command: %s", display)

        log.info("Command line: %s", display)
        log.info("Working directory: %s", working_dir)

        try:
            exit_code = self._launch(
                args,
                platform=platform,
                working_dir=working_dir,
                env_overrides=env_overrides,
                sink=log,
            )
        except (LaunchError, WaitInterruptedError) as e:
            log.error("Command execution failed: %s", e, exc_info=e)
            return ExecutionResult.from_exit_code(NO_EXIT_CODE)

        if exit_code != 0:
            log.debug("Exit code: %d", exit_code)
        return ExecutionResult.from_exit_code(exit_code)

    def _launch(
        self,
        args: list[str],
        *,
        platform: Platform,
        working_dir: Path,
        env_overrides: Mapping[str, str] | None,
        sink: logging.Logger,
    ) -> int:
        # Keep low-level process logs at DEBUG; the step narrates at INFO.
        self._logger.debug("RUN %s", sh_join(args))
        if self._dry_run:
            return 0

        if not working_dir.is_dir():
            raise LaunchError(f"Working directory does not exist: {working_dir}")

        # cmd.exe must see our quoting verbatim, so Windows gets one pre-built string.
        popen_args: str | list[str]
        if platform is Platform.WINDOWS:
            popen_args = windows_command_string(args)
        else:
            popen_args = args

        try:
            proc = subprocess.Popen(
                popen_args,
                cwd=str(working_dir),
                env=merge_env(env_overrides),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise LaunchError(f"Unable to start {args[0]}: {e}") from e

        try:
            assert proc.stdout is not None
            with proc.stdout:
                for line in proc.stdout:
                    sink.info("%s", line.rstrip("\r\n"))
            return proc.wait()
        except KeyboardInterrupt as e:
            proc.kill()
            proc.wait()
            raise WaitInterruptedError(f"Interrupted while waiting for {args[0]}") from e
