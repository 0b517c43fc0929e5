from __future__ import annotations

import pytest

from fakes import cid

from refwatch.adapters.sqlite_store import SQLiteDedupStore
from refwatch.core.errors import StoreError


def test_store_lifecycle(tmp_path) -> None:
    store = SQLiteDedupStore(str(tmp_path / "reported.db"))

    assert not store.exists()
    assert store.seen() == set()

    store.seed([cid(1), cid(2)])

    assert store.exists()
    assert store.claim([cid(2), cid(3), cid(3)]) == {cid(2)}
    assert store.claim([cid(3)]) == {cid(3)}
    assert store.seen() == {cid(1), cid(2), cid(3)}


def test_two_instances_share_state(tmp_path) -> None:
    path = str(tmp_path / "reported.db")
    first = SQLiteDedupStore(path)
    second = SQLiteDedupStore(path)

    assert first.claim([cid(5)]) == set()
    assert second.claim([cid(5)]) == {cid(5)}


def test_unopenable_path_is_an_error(tmp_path) -> None:
    store = SQLiteDedupStore(str(tmp_path / "missing-dir" / "reported.db"))

    with pytest.raises(StoreError):
        store.claim([cid(1)])
