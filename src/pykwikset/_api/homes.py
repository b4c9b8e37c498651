"""Home endpoints.

Endpoint:
  - GET /users/me/homes
"""

from __future__ import annotations

import logging

from pykwikset._api._common import parse_items
from pykwikset._transport import Transport
from pykwikset.exceptions import KwiksetReconciliationError
from pykwikset.models.home import Home

_logger = logging.getLogger(__name__)

HOMES_PATH = "users/me/homes?top=200"


async def fetch_homes(transport: Transport) -> list[Home]:
    """Fetch every home the authenticated user belongs to."""
    response = await transport.request(HOMES_PATH)
    return parse_items(HOMES_PATH, response, Home)


def resolve_home(homes: list[Home], home_name: str) -> Home:
    """Pick the home whose name matches *home_name* exactly.

    Raises
    ------
    KwiksetReconciliationError
        If no home, or more than one home, carries that name.  This is a
        configuration problem, not something to retry.
    """
    matches = [home for home in homes if home.home_name == home_name]
    if not matches:
        available = ", ".join(repr(home.home_name) for home in homes) or "none"
        raise KwiksetReconciliationError(f"No home named {home_name!r} (available: {available})")
    if len(matches) > 1:
        ids = ", ".join(home.home_id for home in matches)
        raise KwiksetReconciliationError(f"Home name {home_name!r} is ambiguous (ids: {ids})")
    _logger.debug("Resolved home %r to %s", home_name, matches[0].home_id)
    return matches[0]
