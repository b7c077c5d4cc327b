from __future__ import annotations

import unittest

from app.config import DEFAULT_CONFIG
from booking.conversation_service import ConversationService
from booking.slots import build_catalog
from booking.state_machine import TRANSITIONS, InputClassifier, can_transition, parse_typed_date
from core.enums import InputKind, Step
from core.models import BookingSession, DateCandidate, DateCandidates, WeekOption, WeekOptions


def _session(step: Step, working_state=None) -> BookingSession:
    session = BookingSession(identity="919800000001")
    session.advance(step, working_state)
    return session


class TransitionTableTest(unittest.TestCase):
    def test_forward_path_is_allowed(self) -> None:
        path = [
            Step.SPORT,
            Step.VENUE,
            Step.DATE_CATEGORY,
            Step.TIME_OF_DAY,
            Step.SLOT_CONFIRM,
            Step.PLAYER_COUNT,
            Step.ADD_ONS,
            Step.CONTACT,
            Step.PAYMENT_INITIATED,
            Step.COMMITTED,
        ]
        for current, target in zip(path, path[1:]):
            self.assertTrue(can_transition(current, target), f"{current} -> {target}")

    def test_skipping_steps_is_rejected(self) -> None:
        self.assertFalse(can_transition(Step.SPORT, Step.PLAYER_COUNT))
        self.assertFalse(can_transition(Step.VENUE, Step.COMMITTED))
        self.assertFalse(can_transition(Step.CONTACT, Step.COMMITTED))

    def test_any_step_may_return_to_start(self) -> None:
        for step in Step:
            self.assertTrue(can_transition(step, Step.SPORT))

    def test_commit_outcomes_leave_payment_step(self) -> None:
        self.assertTrue(can_transition(Step.PAYMENT_INITIATED, Step.TIME_OF_DAY))
        self.assertTrue(can_transition(Step.PAYMENT_INITIATED, Step.DATE_CATEGORY))

    def test_every_handler_exists_on_the_service(self) -> None:
        for (step, kind), transition in TRANSITIONS.items():
            self.assertIsInstance(step, Step)
            self.assertIsInstance(kind, InputKind)
            self.assertTrue(hasattr(ConversationService, f"_on_{transition.handler}"), transition.handler)


class InputClassifierTest(unittest.TestCase):
    def setUp(self) -> None:
        self.classifier = InputClassifier(DEFAULT_CONFIG)

    def test_sport_by_id_title_and_keyword(self) -> None:
        session = _session(Step.SPORT)
        self.assertEqual(self.classifier.classify(Step.SPORT, "sport_padel", session).value["title"], "Padel")
        self.assertEqual(self.classifier.classify(Step.SPORT, "Pickleball", session).kind, InputKind.SPORT)
        self.assertEqual(self.classifier.classify(Step.SPORT, "i want pickle", session).kind, InputKind.SPORT)
        self.assertEqual(self.classifier.classify(Step.SPORT, "tennis", session).kind, InputKind.INVALID)

    def test_date_category_tokens(self) -> None:
        session = _session(Step.DATE_CATEGORY)
        self.assertEqual(self.classifier.classify(Step.DATE_CATEGORY, "date_today", session).kind, InputKind.TODAY)
        self.assertEqual(self.classifier.classify(Step.DATE_CATEGORY, "tomorrow", session).kind, InputKind.TOMORROW)
        self.assertEqual(
            self.classifier.classify(Step.DATE_CATEGORY, "date_this_week", session).kind, InputKind.THIS_WEEK
        )
        self.assertEqual(
            self.classifier.classify(Step.DATE_CATEGORY, "date_other", session).kind, InputKind.OTHER_DATES
        )
        typed = self.classifier.classify(Step.DATE_CATEGORY, "21/03/2026", session)
        self.assertEqual(typed.kind, InputKind.DATE)
        self.assertEqual(typed.value, "2026-03-21")

    def test_week_by_id_and_number(self) -> None:
        weeks = WeekOptions(
            weeks=[
                WeekOption(option_id="week_1", start_date="2026-03-23", label="23 Mar - 29 Mar"),
                WeekOption(option_id="week_2", start_date="2026-03-30", label="30 Mar - 05 Apr"),
            ]
        )
        session = _session(Step.WEEK, weeks)
        self.assertEqual(self.classifier.classify(Step.WEEK, "week_2", session).value.start_date, "2026-03-30")
        self.assertEqual(self.classifier.classify(Step.WEEK, "1", session).value.option_id, "week_1")
        self.assertEqual(self.classifier.classify(Step.WEEK, "week 2", session).value.option_id, "week_2")
        self.assertEqual(self.classifier.classify(Step.WEEK, "5", session).kind, InputKind.INVALID)

    def test_date_pick_by_candidate_id_and_index(self) -> None:
        candidates = DateCandidates(
            candidates=[
                DateCandidate(option_id="date_2026-03-17", iso="2026-03-17"),
                DateCandidate(option_id="date_2026-03-19", iso="2026-03-19"),
            ]
        )
        session = _session(Step.DATE, candidates)
        self.assertEqual(self.classifier.classify(Step.DATE, "date_2026-03-17", session).value, "2026-03-17")
        self.assertEqual(self.classifier.classify(Step.DATE, "2", session).value, "2026-03-19")
        self.assertEqual(self.classifier.classify(Step.DATE, "3", session).kind, InputKind.INVALID)

    def test_slot_step_accepts_bucket_or_catalog_entry(self) -> None:
        catalog = build_catalog(["18:00 - 19:00", "20:00 - 21:00"], bucket="evening")
        session = _session(Step.SLOT_CONFIRM, catalog)
        self.assertEqual(self.classifier.classify(Step.SLOT_CONFIRM, "tod_morning", session).kind, InputKind.BUCKET)
        picked = self.classifier.classify(Step.SLOT_CONFIRM, "slot_1", session)
        self.assertEqual(picked.kind, InputKind.SLOT)
        self.assertEqual(picked.value, "20:00 - 21:00")

    def test_slot_tokens_ignored_without_catalog(self) -> None:
        session = _session(Step.TIME_OF_DAY)
        session.working_state = build_catalog(["18:00 - 19:00"])
        self.assertEqual(self.classifier.classify(Step.SLOT_CONFIRM, "slot_0", session).kind, InputKind.INVALID)

    def test_players_add_ons_and_contact(self) -> None:
        session = _session(Step.PLAYER_COUNT)
        self.assertEqual(self.classifier.classify(Step.PLAYER_COUNT, "players_3", session).value, 3)
        self.assertEqual(self.classifier.classify(Step.PLAYER_COUNT, "0", session).kind, InputKind.INVALID)
        self.assertEqual(self.classifier.classify(Step.ADD_ONS, "1", session).value, ["spa"])
        self.assertEqual(self.classifier.classify(Step.ADD_ONS, "addon_gym", session).value, ["gym"])
        self.assertEqual(self.classifier.classify(Step.ADD_ONS, "4", session).value, [])
        self.assertEqual(self.classifier.classify(Step.CONTACT, "Asha Rao", session).kind, InputKind.CONTACT_NAME)
        self.assertEqual(self.classifier.classify(Step.CONTACT, "A", session).kind, InputKind.INVALID)

    def test_payment_step_distinguishes_notice(self) -> None:
        session = _session(Step.PAYMENT_INITIATED)
        self.assertEqual(
            self.classifier.classify(Step.PAYMENT_INITIATED, "done", session).kind, InputKind.PAYMENT_NOTICE
        )
        self.assertEqual(self.classifier.classify(Step.PAYMENT_INITIATED, "hello", session).kind, InputKind.ANY)

    def test_parse_typed_date_rejects_impossible_dates(self) -> None:
        self.assertIsNone(parse_typed_date("2026-02-30"))
        self.assertIsNone(parse_typed_date("next friday"))
        self.assertEqual(parse_typed_date("date_2026-03-21").isoformat(), "2026-03-21")


if __name__ == "__main__":
    unittest.main()
