from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from booking.repository import BookingRepository
from booking.repository_factory import create_booking_repository


class RepositoryFactoryTest(unittest.TestCase):
    def test_create_sqlite_repository_by_default(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config = {"booking": {"sqlite_path": str(Path(tmp) / "booking.db")}}
            repository = create_booking_repository(config)
            self.assertIsInstance(repository, BookingRepository)

    def test_create_dynamodb_repository(self) -> None:
        config = {
            "booking": {
                "backend": "dynamodb",
                "dynamodb": {
                    "region": "ap-south-1",
                    "table_prefix": "bookingbot",
                    "tables": {"sessions": "ses", "reconciliation": "rec"},
                },
            }
        }
        with mock.patch("booking.repository_factory.DynamoBookingRepository") as constructor:
            _ = create_booking_repository(config)
        constructor.assert_called_once_with(
            region_name="ap-south-1",
            table_prefix="bookingbot",
            sessions_table_name="ses",
            reconciliation_table_name="rec",
        )


if __name__ == "__main__":
    unittest.main()
