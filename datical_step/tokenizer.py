from __future__ import annotations

from enum import Enum
from typing import Sequence

_QUOTES = ("\"", "'")
# Characters cmd.exe treats specially outside of quotes.
_CMD_SPECIAL = set(" \t&|<>()^\"")


class _State(Enum):
    NORMAL = "normal"
    IN_QUOTE = "in_quote"


def tokenize(command_line: str) -> list[str]:
    """
    Split a command line into arguments.

    Whitespace separates tokens outside quotes. A quoted region (double or single quotes)
    is copied without its quotes and keeps its whitespace; text directly adjacent to it
    joins the same token (`"--drivers=C:\\My Drivers"` -> `--drivers=C:\\My Drivers`).
    Backslashes are literal so Windows paths survive. An unterminated quote runs to the end.
    """
    tokens: list[str] = []
    buf: list[str] = []
    in_token = False
    state = _State.NORMAL
    quote = ""

    for ch in command_line:
        if state is _State.IN_QUOTE:
            if ch == quote:
                state = _State.NORMAL
            else:
                buf.append(ch)
            continue

        if ch in _QUOTES:
            state = _State.IN_QUOTE
            quote = ch
            in_token = True
        elif ch.isspace():
            if in_token:
                tokens.append("".join(buf))
                buf = []
                in_token = False
        else:
            buf.append(ch)
            in_token = True

    if in_token:
        tokens.append("".join(buf))
    return tokens


def quote_for_display(args: Sequence[str]) -> str:
    out: list[str] = []
    for a in args:
        if a == "" or any(ch.isspace() for ch in a) or any(q in a for q in _QUOTES):
            out.append('"' + a.replace('"', '\\"') + '"')
        else:
            out.append(a)
    return " ".join(out)


def _quote_for_cmd(arg: str) -> str:
    if arg and not any(ch in _CMD_SPECIAL for ch in arg):
        return arg
    # cmd.exe has no escape inside quotes; doubling is what batch files expect.
    return '"' + arg.replace('"', '""') + '"'


def to_windows_command(args: Sequence[str]) -> list[str]:
    """
    Wrap an argument list for launching through cmd.exe, which `.bat` files require.

    The result is `cmd.exe /C "<args> && exit %%ERRORLEVEL%%"`; the last element is the whole
    quoted payload and must reach cmd.exe as-is (see `windows_command_string`).
    """
    payload = " ".join(_quote_for_cmd(a) for a in args)
    return ["cmd.exe", "/C", f"\"{payload} && exit %%ERRORLEVEL%%\""]


def windows_command_string(args: Sequence[str]) -> str:
    return " ".join(to_windows_command(args))
