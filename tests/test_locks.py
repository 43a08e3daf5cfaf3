"""
Tests for the per-key lock registry.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from case_critique.core.locks import KeyedLocks


class TestKeyedLocks:
    """Test lock lifetime and mutual exclusion."""

    def test_registry_empty_after_release(self):
        locks = KeyedLocks()
        with locks.hold("alice"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_released_when_body_raises(self):
        locks = KeyedLocks()
        try:
            with locks.hold("alice"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert len(locks) == 0

    def test_same_key_is_exclusive(self):
        locks = KeyedLocks()
        counter = {"value": 0}

        def bump(_):
            with locks.hold("alice"):
                current = counter["value"]
                threading.Event().wait(0.0001)
                counter["value"] = current + 1

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(bump, range(100)))

        assert counter["value"] == 100
        assert len(locks) == 0

    def test_different_keys_do_not_contend(self):
        locks = KeyedLocks()
        entered = threading.Event()

        def hold_bob():
            with locks.hold("bob"):
                entered.set()

        with locks.hold("alice"):
            worker = threading.Thread(target=hold_bob)
            worker.start()
            assert entered.wait(timeout=5)
            worker.join()

    def test_discard_idle_skips_held_keys(self):
        locks = KeyedLocks()
        mapping = {"alice": 1, "bob": 1, "carol": 2}

        with locks.hold("alice"):
            removed = locks.discard_idle(mapping, lambda value: value == 1)

        assert removed == 1
        assert mapping == {"alice": 1, "carol": 2}
