"""Keep the Monica API token out of log output.

Tokens can reach a log line through a request header, a ``.env`` style
assignment, a JSON payload echo or a JWT pasted into an error message. Each
shape has one rule below; :func:`mask_secrets` applies them in order.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePath
from typing import Any, Callable, Pattern, Tuple, Union

REDACTED = "***REDACTED***"

_Replacement = Union[str, Callable[[re.Match], str]]

_RULES: Tuple[Tuple[Pattern[str], _Replacement], ...] = (
    # MONICA_API_TOKEN=... / MONICA_TOKEN: ...
    (
        re.compile(r"\b(MONICA_(?:API_)?TOKEN)\s*[:=]\s*[^\s'\"]+", re.IGNORECASE),
        lambda m: f"{m.group(1)}={REDACTED}",
    ),
    # {"api_token": "..."} and friends
    (
        re.compile(r"(\"(?:api_?token|access_token|apiToken|token)\"\s*:\s*)\"[^\"]*\"", re.IGNORECASE),
        lambda m: f'{m.group(1)}"{REDACTED}"',
    ),
    # headers={'Authorization': '...'}
    (
        re.compile(r"('Authorization'\s*:\s*)'[^']*'", re.IGNORECASE),
        lambda m: f"{m.group(1)}'{REDACTED}'",
    ),
    (
        re.compile(r"\beyJ[\w-]{10,}\.[\w-]{10,}\.[\w-]{10,}\b"),
        REDACTED,
    ),
    (
        re.compile(r"\bBearer\s+[\w\-.~+/]+=*", re.IGNORECASE),
        "Bearer " + REDACTED,
    ),
)


def mask_secrets(text: str) -> str:
    """Replace anything that looks like an API token with a placeholder."""
    masked = str(text or "")
    for pattern, replacement in _RULES:
        if masked:
            masked = pattern.sub(replacement, masked)
    return masked


def sanitize(obj: Any) -> Any:
    """Apply :func:`mask_secrets` to every string inside nested containers."""
    if isinstance(obj, str):
        return mask_secrets(obj)
    if isinstance(obj, dict):
        return {key: sanitize(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return type(obj)(sanitize(item) for item in obj)
    return obj


def mask_path(path: str) -> str:
    """Show only the file name of a vault or cache path."""
    raw = str(path or "").strip()
    return "…/" + PurePath(raw).name if raw else raw


class SecretsRedactionFilter(logging.Filter):
    """Rewrite each record's message with tokens masked.

    The message is formatted first and ``args`` cleared, so a token passed
    as a ``%s`` argument is masked as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = mask_secrets(message)
        record.args = ()
        return True


def install_secrets_redaction_filter(logger: logging.Logger | None = None) -> SecretsRedactionFilter:
    """Attach one filter to ``logger`` (root by default) and its handlers."""
    target = logger or logging.getLogger()
    redaction = SecretsRedactionFilter()
    target.addFilter(redaction)
    for handler in target.handlers:
        handler.addFilter(redaction)
    return redaction


__all__ = [
    "REDACTED",
    "SecretsRedactionFilter",
    "install_secrets_redaction_filter",
    "mask_path",
    "mask_secrets",
    "sanitize",
]
