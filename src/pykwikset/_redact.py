"""Helpers for safe debug logging.

Session payloads carry Cognito tokens and the account password.  This
module redacts those fields before anything is emitted at DEBUG level.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_REDACTED = "<redacted>"

# Normalized key names (lowercase, no ``_`` or ``-``).
_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "idtoken",
        "accesstoken",
        "refreshtoken",
        "token",
        "authorization",
        "session",
        "srpa",
        "passwordclaimsignature",
        "passwordclaimsecretblock",
        "answer",
        "code",
    }
)


def _is_sensitive(key: object) -> bool:
    return str(key).replace("_", "").replace("-", "").lower() in _SENSITIVE_KEYS


def redact_for_log(value: Any) -> Any:
    """Return a copy of *value* with secret fields replaced.

    Keys match regardless of case, ``_`` and ``-``, so ``IdToken``,
    ``id_token`` and ``SRP_A`` are all caught.  Nested mappings and
    lists are walked; any other value is returned as is.
    """
    if isinstance(value, Mapping):
        return {str(k): _REDACTED if _is_sensitive(k) else redact_for_log(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact_for_log(v) for v in value]
    return value


def mask_token(token: str | None) -> str:
    """Show only the tail of a token, for log lines that identify a session."""
    if not token:
        return "<none>"
    return f"…{token[-6:]}"
