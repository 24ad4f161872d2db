from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping

from datical_step.errors import ConfigurationError


class Action(str, Enum):
    FORECAST = "forecast"
    SNAPSHOT = "snapshot"
    DEPLOY = "deploy"
    STATUS = "status"
    CHECKDRIVERS = "checkdrivers"

    @property
    def requires_server(self) -> bool:
        return self is not Action.CHECKDRIVERS

    @classmethod
    def parse(cls, value: str) -> "Action":
        # Exact, case-sensitive match on the sub-command token.
        for action in cls:
            if action.value == value:
                return action
        known = ", ".join(a.value for a in cls)
        raise ConfigurationError(f"Unknown Datical DB action: {value!r} (known: {known})")


class Platform(str, Enum):
    POSIX = "posix"
    WINDOWS = "windows"

    @classmethod
    def detect(cls) -> "Platform":
        return cls.WINDOWS if os.name == "nt" else cls.POSIX

    @property
    def separator(self) -> str:
        return "\\" if self is Platform.WINDOWS else "/"

    @property
    def executable_suffix(self) -> str:
        return ".bat" if self is Platform.WINDOWS else ""


@dataclass(frozen=True)
class InvocationParams:
    install_dir: str
    drivers_dir: str
    project_dir: str
    server: str
    action: str


@dataclass(frozen=True)
class ExecutionResult:
    exit_code: int
    succeeded: bool

    @classmethod
    def from_exit_code(cls, exit_code: int) -> "ExecutionResult":
        return cls(exit_code=exit_code, succeeded=(exit_code == 0))


# Exit code used when no process exit status exists (launch failure, interrupted wait).
NO_EXIT_CODE = -1


@dataclass(frozen=True)
class StepConfig:
    params: InvocationParams
    workspace: Path
    build_vars: Mapping[str, str] = field(default_factory=dict)
    env_files: tuple[Path, ...] = ()
    dry_run: bool = False
