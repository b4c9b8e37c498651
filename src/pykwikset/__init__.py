"""pykwikset - Async Python client for Kwikset smart locks."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pykwikset")
except PackageNotFoundError:
    __version__ = "0+local"
from pykwikset.client import KwiksetClient
from pykwikset.config import KwiksetConfig
from pykwikset.credentials import CredentialStore
from pykwikset.engine import ReconciliationEngine
from pykwikset.exceptions import (
    KwiksetApiError,
    KwiksetAuthenticationError,
    KwiksetChallengeRejectedError,
    KwiksetConfigError,
    KwiksetError,
    KwiksetReconciliationError,
    KwiksetTransportError,
)
from pykwikset.models import (
    CredentialRecord,
    DeviceRecord,
    DoorStatus,
    Home,
    LockState,
    LockTargetState,
    is_low_battery,
)
from pykwikset.session import AuthPhase, Session
from pykwikset.state.events import DeviceEvent, DeviceEventType
from pykwikset.state.store import TrackedEntity

__all__ = [
    "__version__",
    "AuthPhase",
    "CredentialRecord",
    "CredentialStore",
    "DeviceEvent",
    "DeviceEventType",
    "DeviceRecord",
    "DoorStatus",
    "Home",
    "KwiksetApiError",
    "KwiksetAuthenticationError",
    "KwiksetChallengeRejectedError",
    "KwiksetClient",
    "KwiksetConfig",
    "KwiksetConfigError",
    "KwiksetError",
    "KwiksetReconciliationError",
    "KwiksetTransportError",
    "LockState",
    "LockTargetState",
    "ReconciliationEngine",
    "Session",
    "TrackedEntity",
    "is_low_battery",
]
