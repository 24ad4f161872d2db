"""
Environment-variable reference conversion between Windows and POSIX syntax.

    script --opt=%OPT%   <->   script --opt=$OPT
"""

from __future__ import annotations

import re

from datical_step.core import Platform

_WINDOWS_VAR_RE = re.compile(r"%([a-zA-Z0-9_]+)%")
_POSIX_VAR_RE = re.compile(r"\$([a-zA-Z0-9_]+)")


def to_posix(command_line: str | None) -> str | None:
    if not command_line:
        return command_line
    return _WINDOWS_VAR_RE.sub(lambda m: "$" + m.group(1), command_line)


def to_windows(command_line: str | None) -> str | None:
    if not command_line:
        return command_line
    return _POSIX_VAR_RE.sub(lambda m: "%" + m.group(1) + "%", command_line)


def convert_for(platform: Platform, command_line: str | None) -> str | None:
    if platform is Platform.WINDOWS:
        return to_windows(command_line)
    return to_posix(command_line)
