from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from pykwikset.credentials import CredentialStore
from pykwikset.models.token import CredentialRecord


def _record(suffix: str = "1") -> CredentialRecord:
    return CredentialRecord(
        id_token=f"id-{suffix}",
        access_token=f"acc-{suffix}",
        refresh_token=f"ref-{suffix}",
    )


def test_load_missing_file_returns_none(tmp_path: Path) -> None:
    assert CredentialStore(tmp_path / "credentials.json").load() is None


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "credentials.json"
    store = CredentialStore(path)

    store.save(_record())

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "idToken": "id-1",
        "accessToken": "acc-1",
        "refreshToken": "ref-1",
    }
    assert store.load() == _record()


def test_save_overwrites_and_leaves_no_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "credentials.json"
    store = CredentialStore(path)

    store.save(_record("1"))
    store.save(_record("2"))

    assert store.load() == _record("2")
    assert list(tmp_path.iterdir()) == [path]


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_saved_file_is_private(tmp_path: Path) -> None:
    path = tmp_path / "credentials.json"
    CredentialStore(path).save(_record())
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_save_creates_parent_directory(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "credentials.json"
    CredentialStore(path).save(_record())
    assert path.is_file()


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        '{"idToken": "id", "accessToken": "acc"}',
        '{"idToken": "", "accessToken": "acc", "refreshToken": "ref"}',
    ],
)
def test_unusable_file_is_treated_as_absent(tmp_path: Path, content: str) -> None:
    path = tmp_path / "credentials.json"
    path.write_text(content, encoding="utf-8")
    assert CredentialStore(path).load() is None


def test_failed_save_raises_oserror(tmp_path: Path) -> None:
    target = tmp_path / "credentials.json"
    target.mkdir()

    with pytest.raises(OSError):
        CredentialStore(target).save(_record())

    assert [p.name for p in tmp_path.iterdir()] == ["credentials.json"]


def test_clear(tmp_path: Path) -> None:
    path = tmp_path / "credentials.json"
    store = CredentialStore(path)
    store.save(_record())

    store.clear()
    store.clear()

    assert not path.exists()
    assert store.load() is None
