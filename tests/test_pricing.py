from __future__ import annotations

import unittest

from booking.pricing import compute_total

PRICES = {"court_fee_per_player": 300, "add_ons": {"spa": 2000, "gym": 500, "sauna": 800}}


class PricingTest(unittest.TestCase):
    def test_players_only(self) -> None:
        self.assertEqual(compute_total(4, [], PRICES), 1200)

    def test_add_ons_counted_once(self) -> None:
        self.assertEqual(compute_total(2, ["spa", "spa", "gym"], PRICES), 600 + 2000 + 500)

    def test_unknown_add_on_is_free(self) -> None:
        self.assertEqual(compute_total(2, ["massage"], PRICES), 600)

    def test_missing_player_count_counts_one(self) -> None:
        self.assertEqual(compute_total(None, ["sauna"], {}), 300 + 0)


if __name__ == "__main__":
    unittest.main()
