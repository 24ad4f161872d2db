from __future__ import annotations


class StepError(RuntimeError):
    """Base class for failures the build step reports instead of raising to its caller."""


class ConfigurationError(StepError):
    pass


class EnvironmentResolutionError(StepError):
    pass


class LaunchError(StepError):
    pass


class WaitInterruptedError(StepError):
    # Not the builtin InterruptedError (that one is an OSError for EINTR).
    pass
