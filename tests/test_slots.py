from __future__ import annotations

import unittest

from booking.slots import (
    build_catalog,
    bucket_from_token,
    dedupe_labels,
    normalize_slot_label,
    offer_for_bucket,
    parse_slot_times,
    presentation_for,
    resolve_selection,
    slot_is_listed,
)
from core.enums import OfferStatus, Presentation


class SlotNormalizationTest(unittest.TestCase):
    def test_dash_variants_collapse_to_canonical_separator(self) -> None:
        for raw in ("10:00-11:00", "10:00 – 11:00", "10:00—11:00", "10:00  −  11:00", " 10:00 ‑ 11:00 "):
            self.assertEqual(normalize_slot_label(raw), "10:00 - 11:00")

    def test_parse_slot_times_pads_hours(self) -> None:
        self.assertEqual(parse_slot_times("9:00 - 10:30"), ("09:00", "10:30"))
        self.assertIsNone(parse_slot_times("morning"))

    def test_dedupe_keeps_first_occurrence(self) -> None:
        labels = dedupe_labels(["18:00 - 19:00", "18:00–19:00", "", "19:00 - 20:00"])
        self.assertEqual(labels, ["18:00 - 19:00", "19:00 - 20:00"])

    def test_bucket_from_token(self) -> None:
        self.assertEqual(bucket_from_token("tod_evening"), "evening")
        self.assertEqual(bucket_from_token("Morning"), "morning")
        self.assertIsNone(bucket_from_token("night"))


class SlotOfferTest(unittest.TestCase):
    def test_evening_offer_intersects_template(self) -> None:
        offer = offer_for_bucket("evening", ["18:00 – 19:00", "20:00-21:00", "09:00 - 10:00"])
        self.assertEqual(offer.status, OfferStatus.OFFERED)
        self.assertEqual(offer.labels, ["18:00 - 19:00", "20:00 - 21:00"])

    def test_offer_matches_by_clock_times_when_labels_differ(self) -> None:
        offer = offer_for_bucket("morning", ["6:00 to 7:00"])
        self.assertEqual(offer.status, OfferStatus.OFFERED)
        self.assertEqual(offer.labels, ["06:00 - 07:00"])

    def test_empty_bucket_widens_to_whole_day(self) -> None:
        offer = offer_for_bucket("morning", ["18:00 - 19:00", "19:00 - 20:00"])
        self.assertEqual(offer.status, OfferStatus.WIDENED)
        self.assertEqual(offer.labels, ["18:00 - 19:00", "19:00 - 20:00"])

    def test_no_availability_yields_none(self) -> None:
        offer = offer_for_bucket("afternoon", [])
        self.assertEqual(offer.status, OfferStatus.NONE)
        self.assertEqual(offer.labels, [])


class SlotCatalogTest(unittest.TestCase):
    def test_every_catalog_id_resolves_to_its_label(self) -> None:
        catalog = build_catalog(["18:00 - 19:00", "20:00 - 21:00"], bucket="evening")
        self.assertEqual(catalog.size, 2)
        for slot_id, label in catalog.entries.items():
            self.assertEqual(resolve_selection(catalog, slot_id), label)

    def test_resolve_by_index_and_label(self) -> None:
        catalog = build_catalog(["18:00 - 19:00", "20:00 - 21:00"])
        self.assertEqual(resolve_selection(catalog, "2"), "20:00 - 21:00")
        self.assertEqual(resolve_selection(catalog, "18:00 - 19:00"), "18:00 - 19:00")
        self.assertEqual(resolve_selection(catalog, "20:00–21:00"), "20:00 - 21:00")
        self.assertIsNone(resolve_selection(catalog, "3"))
        self.assertIsNone(resolve_selection(catalog, "slot_9"))
        self.assertIsNone(resolve_selection(None, "slot_0"))

    def test_slot_is_listed_tolerates_formatting(self) -> None:
        self.assertTrue(slot_is_listed("18:00 - 19:00", ["18:00–19:00"]))
        self.assertTrue(slot_is_listed("9:00 - 10:00", ["09:00 - 10:00"]))
        self.assertFalse(slot_is_listed("18:00 - 19:00", ["19:00 - 20:00"]))

    def test_presentation_thresholds(self) -> None:
        self.assertEqual(presentation_for(0), Presentation.TEXT)
        self.assertEqual(presentation_for(2), Presentation.BUTTONS)
        self.assertEqual(presentation_for(3), Presentation.BUTTONS)
        self.assertEqual(presentation_for(4), Presentation.LIST)


if __name__ == "__main__":
    unittest.main()
