"""Base model and enum for Kwikset API responses.

Every response model inherits from :class:`KwiksetBaseModel` which
provides:

* ``extra="ignore"`` so new API keys never break parsing.
* A ``model_validator(mode="before")`` that drops ``None`` and blank
  string values so the field default is used.
* A ``raw`` dict that captures the original payload.

String enums inherit from :class:`KwiksetEnum`, whose ``_missing_``
hook returns ``UNKNOWN`` for any value without a mapped member.
"""

from __future__ import annotations

import enum
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def safe_int(value: Any) -> int | None:
    """Coerce API numbers (``85``, ``"85"``, ``85.0``) to ``int``; ``None`` if unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return int(result)


class KwiksetEnum(enum.StrEnum):
    """Base for Kwikset API string enums.

    Every subclass **must** define ``UNKNOWN``.  Values the API sends
    that have no mapped member resolve to ``UNKNOWN`` instead of raising
    ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> KwiksetEnum:
        # pylint: disable=no-member
        unknown: KwiksetEnum = cls.UNKNOWN  # type: ignore[attr-defined]
        return unknown


class KwiksetBaseModel(BaseModel):
    """Base for Kwikset API response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Drop empty values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
