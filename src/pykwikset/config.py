"""Client configuration for pykwikset."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pykwikset._constants import (
    API_BASE_URL,
    CHALLENGE_GRACE_PERIOD,
    MFA_PORT_MAX,
    MFA_PORT_MIN,
    POLL_INTERVAL,
    REFRESH_INTERVAL,
)
from pykwikset.exceptions import KwiksetConfigError


@dataclasses.dataclass(frozen=True)
class KwiksetConfig:
    """Client configuration.

    Parameters
    ----------
    email : str
        Kwikset account email.
    password : str
        Kwikset account password.
    home_name : str
        Name of the home whose locks are tracked.  Matched exactly
        (case-sensitive) against the account's home list.
    mfa_port : int
        Local port the verification code form listens on.  Must be
        between 1024 and 65535.
    credentials_path : str
        JSON file holding the cached token triple.
    base_url : str
        REST API base URL.
    refresh_interval : float
        Seconds between background token refreshes.
    poll_interval : float
        Seconds between per-lock state reads.
    discovery_interval : float
        Seconds between device list reconciliations after startup.
        ``0`` reconciles only once.
    challenge_grace_period : float
        Seconds the code form stays reachable after a successful
        verification, so the browser's redirect can complete.
    challenge_timeout : float
        Seconds to wait for a valid code before giving up.
        ``0`` waits forever.
    max_challenge_attempts : int
        Number of code submissions allowed.  ``0`` is unlimited.
    reauth_after_refresh_failures : int
        Consecutive refresh failures that trigger a full
        re-authentication.  ``0`` never escalates and keeps the last
        token.
    command_source : str
        Name reported to the API as the origin of lock/unlock commands.
    request_timeout : float
        Total timeout for a single API request.
    """

    email: str
    password: str
    home_name: str
    mfa_port: int = 8888
    credentials_path: str = "kwikset-credentials.json"
    base_url: str = API_BASE_URL
    refresh_interval: float = REFRESH_INTERVAL
    poll_interval: float = POLL_INTERVAL
    discovery_interval: float = 0
    challenge_grace_period: float = CHALLENGE_GRACE_PERIOD
    challenge_timeout: float = 0
    max_challenge_attempts: int = 0
    reauth_after_refresh_failures: int = 0
    command_source: str = "pykwikset"
    request_timeout: float = 30.0

    def validate(self) -> None:
        """Raise :class:`KwiksetConfigError` for unusable settings."""
        if not self.email:
            raise KwiksetConfigError("Invalid email")
        if not self.password:
            raise KwiksetConfigError("Invalid password")
        if not self.home_name:
            raise KwiksetConfigError("Invalid home name")
        if isinstance(self.mfa_port, bool) or not isinstance(self.mfa_port, int):
            raise KwiksetConfigError(f"Invalid MFA port {self.mfa_port!r} (must be an integer)")
        if not MFA_PORT_MIN <= self.mfa_port <= MFA_PORT_MAX:
            raise KwiksetConfigError(
                f"Invalid MFA port {self.mfa_port} (must be between {MFA_PORT_MIN} and {MFA_PORT_MAX})"
            )
        if self.refresh_interval <= 0 or self.poll_interval <= 0:
            raise KwiksetConfigError("refresh_interval and poll_interval must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> KwiksetConfig:
        """Create configuration from environment variables.

        Reads ``KWIKSET_EMAIL``, ``KWIKSET_PASSWORD``, ``KWIKSET_HOME_NAME``
        and the optional ``KWIKSET_*`` variables below.  Explicit keyword
        arguments override environment values.

        Raises
        ------
        KwiksetConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "KWIKSET_EMAIL": "email",
            "KWIKSET_PASSWORD": "password",
            "KWIKSET_HOME_NAME": "home_name",
            "KWIKSET_CREDENTIALS_PATH": "credentials_path",
            "KWIKSET_BASE_URL": "base_url",
            "KWIKSET_COMMAND_SOURCE": "command_source",
        }
        _ENV_NUM_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "KWIKSET_MFA_PORT": ("mfa_port", int),
            "KWIKSET_REFRESH_INTERVAL": ("refresh_interval", float),
            "KWIKSET_POLL_INTERVAL": ("poll_interval", float),
            "KWIKSET_DISCOVERY_INTERVAL": ("discovery_interval", float),
            "KWIKSET_CHALLENGE_TIMEOUT": ("challenge_timeout", float),
            "KWIKSET_MAX_CHALLENGE_ATTEMPTS": ("max_challenge_attempts", int),
            "KWIKSET_REAUTH_AFTER_REFRESH_FAILURES": ("reauth_after_refresh_failures", int),
        }

        config_kwargs: dict[str, Any] = {field_name: "" for field_name in ("email", "password", "home_name")}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, (field_name, cast) in _ENV_NUM_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = cast(val)
            except ValueError as exc:
                raise KwiksetConfigError(f"{env_key} must be a number, got {val!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
