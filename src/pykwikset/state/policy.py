"""Deterministic lock state policy.

This module contains *no* payload parsing; it decides how observed states
relate to requested ones.
"""

from __future__ import annotations

from pykwikset._constants import REPLACE_BATTERY_LEVEL
from pykwikset.models.device import LockState, LockTargetState

_OBSERVABLE_TARGETS: dict[LockState, LockTargetState] = {
    LockState.SECURED: LockTargetState.SECURED,
    LockState.UNSECURED: LockTargetState.UNSECURED,
}


def initial_target(observed: LockState) -> LockTargetState:
    """Target state for a newly discovered lock."""
    return _OBSERVABLE_TARGETS.get(observed, LockTargetState.UNSECURED)


def realign_target(observed: LockState, target: LockTargetState) -> LockTargetState:
    """Follow the lock when it was operated outside of this client.

    A secured/unsecured observation that disagrees with the target means
    someone used the key or the keypad; the target follows it so the
    lock is never driven back.  Jammed and unknown observations say
    nothing about intent and leave the target alone.
    """
    return _OBSERVABLE_TARGETS.get(observed, target)


def needs_battery_replacement(battery_percentage: int | None) -> bool:
    return battery_percentage is not None and battery_percentage <= REPLACE_BATTERY_LEVEL
