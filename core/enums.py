from __future__ import annotations

from enum import Enum


class Step(str, Enum):
    SPORT = "sport_selection"
    VENUE = "centre_selection"
    DATE_CATEGORY = "date_selection"
    WEEK = "week_selection"
    DATE = "date_pick"
    TIME_OF_DAY = "time_selection"
    SLOT_CONFIRM = "slot_selection"
    PLAYER_COUNT = "player_count"
    ADD_ONS = "addons_selection"
    CONTACT = "collect_contact"
    PAYMENT_INITIATED = "payment"
    COMMITTED = "completed"

    @classmethod
    def parse(cls, value: str | None) -> "Step | None":
        try:
            return cls(str(value or ""))
        except ValueError:
            return None


INITIAL_STEP = Step.SPORT


class InputKind(str, Enum):
    SPORT = "sport"
    VENUE = "venue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    OTHER_DATES = "other_dates"
    WEEK = "week"
    DATE = "date"
    BUCKET = "bucket"
    SLOT = "slot"
    PLAYER_COUNT = "player_count"
    ADD_ON = "add_on"
    CONTACT_NAME = "contact_name"
    PAYMENT_NOTICE = "payment_notice"
    ANY = "any"
    INVALID = "invalid"


class TimeBucket(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class OfferStatus(str, Enum):
    OFFERED = "offered"
    WIDENED = "widened"
    NONE = "none"


class RecheckStatus(str, Enum):
    AVAILABLE = "available"
    TAKEN = "taken"
    UNKNOWN = "unknown"


class Presentation(str, Enum):
    TEXT = "text"
    BUTTONS = "buttons"
    LIST = "list"


class ReconciliationReason:
    EVENT_NOT_CREATED = "calendar_event_not_created"
    SLOT_LOST_AFTER_PAYMENT = "slot_lost_after_payment"
    UNKNOWN_PAYMENT_REFERENCE = "unknown_payment_reference"
    PAYMENT_OUT_OF_SEQUENCE = "payment_for_session_not_awaiting_payment"
