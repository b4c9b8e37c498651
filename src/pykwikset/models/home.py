"""Home model."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from pykwikset.models._base import KwiksetBaseModel


class Home(KwiksetBaseModel):
    """A home from ``/users/me/homes``; the resolved home is the session's HomeContext."""

    home_id: str = Field(validation_alias="homeid")
    home_name: str = Field(default="", validation_alias="homename")

    @field_validator("home_id", "home_name", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return str(value)
