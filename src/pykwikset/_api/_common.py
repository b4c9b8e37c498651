"""Shared helpers for Kwikset API endpoint modules.

Every REST response wraps its payload as ``{"data": ...}``.  This module
unwraps it and turns list-shaped payloads into typed records.

It is internal to pykwikset and may change at any time.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from pykwikset._transport import ApiResponse
from pykwikset.exceptions import KwiksetApiError

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def unwrap_data(path: str, response: ApiResponse) -> Any:
    """Return the ``data`` member of a response body."""
    body = response.data
    if not isinstance(body, dict) or "data" not in body:
        raise KwiksetApiError(f"{path} response missing 'data'", path=path)
    return body["data"]


def unwrap_items(path: str, response: ApiResponse) -> list[dict[str, Any]]:
    """Return the ``data`` member as a list of objects, skipping anything else."""
    data = unwrap_data(path, response)
    if data is None:
        return []
    if not isinstance(data, list):
        raise KwiksetApiError(f"{path} 'data' is not a list", path=path)
    return [item for item in data if isinstance(item, dict)]


def parse_items(path: str, response: ApiResponse, model: type[M]) -> list[M]:
    """Validate every object in the ``data`` list as *model*.

    Objects that do not validate are logged and skipped, so one bad
    record does not hide the others.
    """
    parsed: list[M] = []
    for item in unwrap_items(path, response):
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            _logger.warning(
                "Skipping unusable %s from %s: %d validation error(s)",
                model.__name__,
                path,
                exc.error_count(),
            )
    return parsed
