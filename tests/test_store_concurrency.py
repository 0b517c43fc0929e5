from __future__ import annotations

import multiprocessing

import pytest

from fakes import cid

from refwatch.adapters.file_store import FileDedupStore
from refwatch.adapters.sqlite_store import SQLiteDedupStore

WORKERS = 6
COMMIT_IDS = [cid(number) for number in range(1, 200)]


def _claim_worker(store_type, path, barrier, results) -> None:
    store = store_type(path)
    barrier.wait()
    previously = store.claim(COMMIT_IDS)
    results.put([commit_id for commit_id in COMMIT_IDS if commit_id not in previously])


@pytest.mark.parametrize(
    "store_type, filename",
    [(FileDedupStore, "reported"), (SQLiteDedupStore, "reported.db")],
)
def test_concurrent_hooks_report_each_commit_once(tmp_path, store_type, filename) -> None:
    ctx = multiprocessing.get_context("fork")
    barrier = ctx.Barrier(WORKERS)
    results = ctx.Queue()
    path = str(tmp_path / filename)
    workers = [
        ctx.Process(target=_claim_worker, args=(store_type, path, barrier, results))
        for _ in range(WORKERS)
    ]
    for worker in workers:
        worker.start()

    fresh = []
    for _ in workers:
        fresh.extend(results.get(timeout=60))
    for worker in workers:
        worker.join(timeout=60)

    assert all(worker.exitcode == 0 for worker in workers)
    assert len(fresh) == len(COMMIT_IDS)
    assert set(fresh) == set(COMMIT_IDS)
    assert store_type(path).seen() == set(COMMIT_IDS)
