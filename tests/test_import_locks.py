import threading
import time

from sheetsync.utils.locks import ImportLockManager


def test_same_file_commits_are_serialised():
    events = []

    def worker(name):
        with ImportLockManager.acquire("shipment", "f" * 64):
            events.append(f"{name}:start")
            time.sleep(0.05)
            events.append(f"{name}:end")

    threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert events[0].split(":")[0] == events[1].split(":")[0]
    assert events[2].split(":")[0] == events[3].split(":")[0]
    assert ImportLockManager.key_for("shipment", "f" * 64) not in ImportLockManager._locks


def test_lock_is_released_on_error():
    try:
        with ImportLockManager.acquire("order", "e" * 64):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert ImportLockManager.key_for("order", "e" * 64) not in ImportLockManager._locks
    with ImportLockManager.acquire("order", "e" * 64):
        pass


def test_lock_registry_does_not_grow_with_distinct_files():
    before = ImportLockManager.active_keys()

    for i in range(1000):
        with ImportLockManager.acquire("shipment", f"{i:064d}"):
            pass

    assert ImportLockManager.active_keys() == before
    assert ImportLockManager._refcounts.keys() == ImportLockManager._locks.keys()


def test_lock_survives_while_another_commit_waits():
    key = ImportLockManager.key_for("inventory", "a" * 64)
    entered = threading.Event()
    release = threading.Event()

    def holder():
        with ImportLockManager.acquire("inventory", "a" * 64):
            entered.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    entered.wait(timeout=5)
    assert key in ImportLockManager._locks

    release.set()
    with ImportLockManager.acquire("inventory", "a" * 64):
        assert ImportLockManager._refcounts[key] >= 1
    thread.join()

    assert key not in ImportLockManager._locks
