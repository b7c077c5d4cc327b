from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path

from booking.idempotency import IdempotencyGuard
from booking.locks import IdentityLocks
from booking.repository import BookingRepository


class IdempotencyGuardTest(unittest.TestCase):
    def test_same_message_id_is_admitted_once(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repo = BookingRepository(str(Path(tmp) / "booking.db"))
            guard = IdempotencyGuard(repo)
            session = repo.create_session("919800000001")

            self.assertTrue(guard.admit(session, "wamid.1"))
            self.assertEqual(session.last_processed_message_id, "wamid.1")
            self.assertFalse(guard.admit(session, "wamid.1"))
            self.assertTrue(guard.admit(session, "wamid.2"))

    def test_redelivery_seen_by_a_stale_copy_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repo = BookingRepository(str(Path(tmp) / "booking.db"))
            guard = IdempotencyGuard(repo)
            repo.create_session("919800000001")
            first = repo.get_session("919800000001")
            stale = repo.get_session("919800000001")

            self.assertTrue(guard.admit(first, "wamid.1"))
            self.assertFalse(guard.admit(stale, "wamid.1"))

    def test_empty_message_id_is_always_admitted(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repo = BookingRepository(str(Path(tmp) / "booking.db"))
            guard = IdempotencyGuard(repo)
            session = repo.create_session("919800000001")
            self.assertTrue(guard.admit(session, ""))
            self.assertTrue(guard.admit(session, None))


class IdentityLocksTest(unittest.TestCase):
    def test_same_identity_shares_one_lock(self) -> None:
        locks = IdentityLocks()
        first = locks.lock_for("a")
        self.assertIs(first, locks.lock_for("a"))
        self.assertIsNot(first, locks.lock_for("b"))

    def test_hold_serializes_one_identity(self) -> None:
        locks = IdentityLocks()
        order: list[str] = []

        def worker() -> None:
            with locks.hold("a"):
                order.append("worker")

        with locks.hold("a"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join(timeout=0.2)
            order.append("main")
        thread.join(timeout=2)

        self.assertEqual(order, ["main", "worker"])


if __name__ == "__main__":
    unittest.main()
