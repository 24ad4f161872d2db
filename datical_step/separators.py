from __future__ import annotations

import re

_TOKEN_RE = re.compile(r"\S+")
_URL_PREFIX_RE = re.compile(r"^(?:https?|ftp|git):")
_SEPARATOR_RE = re.compile(r"[/\\]")


def is_url_token(token: str) -> bool:
    return _URL_PREFIX_RE.match(token) is not None


def normalize_separators(command_line: str | None, separator: str) -> str | None:
    """
    Rewrite every `/` and `\\` inside each whitespace-delimited token to `separator`.

    Tokens starting with a URL scheme (http:, https:, ftp:, git:) are kept verbatim, and
    the whitespace between tokens is never touched.
    """
    if not command_line:
        return command_line

    def _rewrite(m: re.Match[str]) -> str:
        token = m.group(0)
        if is_url_token(token):
            return token
        # A callable replacement keeps a literal backslash separator literal.
        return _SEPARATOR_RE.sub(lambda _m: separator, token)

    return _TOKEN_RE.sub(_rewrite, command_line)
