"""On-disk cache of the session token triple.

The file holds a single JSON object ``{"idToken", "accessToken",
"refreshToken"}``.  Writes go to a temporary file in the same directory,
are fsynced, and are renamed into place with ``0o600`` permissions, so a
reader sees either the previous record or the new one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from pykwikset.models.token import CredentialRecord

_logger = logging.getLogger(__name__)


class CredentialStore:
    """Read/write the cached :class:`CredentialRecord`.

    Example::

        store = CredentialStore("/var/lib/kwikset/credentials.json")
        record = store.load()
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CredentialRecord | None:
        """Return the cached record, or ``None`` when there is no usable cache.

        A missing file, an unreadable file, invalid JSON and a record with
        missing fields are all treated as "no cached session".
        """
        if not self._path.is_file():
            _logger.debug("No cached credentials at %s", self._path)
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return CredentialRecord.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            _logger.warning("Ignoring unreadable credentials file %s: %s", self._path, exc)
            return None

    def save(self, record: CredentialRecord) -> None:
        """Overwrite the cached record atomically.

        Raises
        ------
        OSError
            If the file cannot be written.  Callers treat this as
            non-fatal: the in-memory session keeps working.
        """
        text = json.dumps(record.model_dump(by_alias=True)) + "\n"
        self._path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as fd:
                tmp_path = fd.name
                os.chmod(tmp_path, 0o600)
                fd.write(text)
                fd.flush()
                os.fsync(fd.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        _logger.debug("Credentials saved to %s", self._path)

    def clear(self) -> None:
        """Delete the cached record if it exists."""
        if self._path.is_file():
            self._path.unlink()
