from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from booking.slots import bucket_from_token, resolve_selection
from core.enums import InputKind, Step
from core.models import BookingSession, DateCandidates, WeekOptions


@dataclass(frozen=True, slots=True)
class Transition:
    handler: str
    targets: frozenset[Step]


def _t(handler: str, *targets: Step) -> Transition:
    return Transition(handler=handler, targets=frozenset(targets))


# (step, input kind) -> handler name on ConversationService and the steps it may move to.
# A handler that re-prompts leaves the step unchanged, which is always allowed.
TRANSITIONS: dict[tuple[Step, InputKind], Transition] = {
    (Step.SPORT, InputKind.SPORT): _t("select_sport", Step.VENUE),
    (Step.VENUE, InputKind.VENUE): _t("select_venue", Step.DATE_CATEGORY),
    (Step.DATE_CATEGORY, InputKind.TODAY): _t("select_relative_date", Step.TIME_OF_DAY),
    (Step.DATE_CATEGORY, InputKind.TOMORROW): _t("select_relative_date", Step.TIME_OF_DAY),
    (Step.DATE_CATEGORY, InputKind.THIS_WEEK): _t("offer_this_week", Step.DATE),
    (Step.DATE_CATEGORY, InputKind.OTHER_DATES): _t("offer_weeks", Step.WEEK),
    (Step.DATE_CATEGORY, InputKind.DATE): _t("select_date", Step.TIME_OF_DAY, Step.WEEK),
    (Step.WEEK, InputKind.WEEK): _t("select_week", Step.DATE),
    (Step.DATE, InputKind.DATE): _t("select_date", Step.TIME_OF_DAY, Step.WEEK),
    (Step.DATE, InputKind.OTHER_DATES): _t("offer_weeks", Step.WEEK),
    (Step.TIME_OF_DAY, InputKind.BUCKET): _t("select_bucket", Step.SLOT_CONFIRM),
    (Step.SLOT_CONFIRM, InputKind.BUCKET): _t("select_bucket", Step.TIME_OF_DAY),
    (Step.SLOT_CONFIRM, InputKind.SLOT): _t(
        "confirm_slot", Step.PLAYER_COUNT, Step.TIME_OF_DAY, Step.DATE_CATEGORY
    ),
    (Step.PLAYER_COUNT, InputKind.PLAYER_COUNT): _t("select_player_count", Step.ADD_ONS),
    (Step.ADD_ONS, InputKind.ADD_ON): _t("select_add_ons", Step.CONTACT),
    (Step.CONTACT, InputKind.CONTACT_NAME): _t("collect_contact", Step.PAYMENT_INITIATED),
    (Step.PAYMENT_INITIATED, InputKind.PAYMENT_NOTICE): _t("payment_pending"),
    (Step.PAYMENT_INITIATED, InputKind.ANY): _t("payment_pending"),
    (Step.COMMITTED, InputKind.ANY): _t("already_committed"),
}

# Driven by the payment gateway's confirmation event, not by a conversation message.
COMMIT_TARGETS: frozenset[Step] = frozenset({Step.COMMITTED, Step.TIME_OF_DAY, Step.DATE_CATEGORY})

# Where a step falls back to when its working state is missing.
RECOVERY_TARGETS: dict[Step, Step] = {
    Step.WEEK: Step.DATE_CATEGORY,
    Step.DATE: Step.DATE_CATEGORY,
    Step.SLOT_CONFIRM: Step.TIME_OF_DAY,
}


def lookup_transition(step: Step, kind: InputKind) -> Transition | None:
    return TRANSITIONS.get((step, kind))


def can_transition(current: Step, target: Step) -> bool:
    if current == target:
        return True
    # start command and recovery from a corrupted step both land on the initial step
    if target == Step.SPORT:
        return True
    if current == Step.PAYMENT_INITIATED and target in COMMIT_TARGETS:
        return True
    if RECOVERY_TARGETS.get(current) == target:
        return True
    return any(
        target in transition.targets
        for (step, _), transition in TRANSITIONS.items()
        if step == current
    )


@dataclass(frozen=True, slots=True)
class ClassifiedInput:
    kind: InputKind
    value: Any = None


INVALID = ClassifiedInput(InputKind.INVALID)

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DMY_DATE_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})$")
_DIGITS_RE = re.compile(r"^\d+$")
_WEEK_TEXT_RE = re.compile(r"^week[\s_]*(\d+)")
_PLAYERS_RE = re.compile(r"^players?_(\d+)$")

TODAY_TOKENS = {"date_today", "today"}
TOMORROW_TOKENS = {"date_tomorrow", "tomorrow"}
THIS_WEEK_TOKENS = {"date_this_week", "this week", "this_week"}
OTHER_DATES_TOKENS = {"date_other", "other", "other dates", "other date"}
PAYMENT_NOTICE_TOKENS = {"payment_done", "done", "paid"}
NONE_ADD_ON_TOKENS = {"addon_none", "none", "no", "no thanks", "skip"}


class InputClassifier:
    """Maps a canonical token to the input kind expected at a step."""

    def __init__(self, config: dict[str, Any]) -> None:
        catalog = config.get("catalog", {})
        booking_conf = config.get("booking", {})
        self.sports = _options(catalog.get("sports"))
        self.venues = _options(catalog.get("venues"))
        self.add_ons = _options(catalog.get("add_ons"))
        self.min_players = max(1, int(booking_conf.get("min_players", 1)))
        self.max_players = max(self.min_players, int(booking_conf.get("max_players", 8)))
        self.min_contact_length = max(1, int(booking_conf.get("min_contact_length", 2)))

    def classify(self, step: Step, token: str, session: BookingSession) -> ClassifiedInput:
        text = (token or "").strip()
        lowered = text.lower()
        if step == Step.SPORT:
            return self._sport(text, lowered)
        if step == Step.VENUE:
            return self._venue(text, lowered)
        if step == Step.DATE_CATEGORY:
            return self._date_category(text, lowered)
        if step == Step.WEEK:
            return self._week(lowered, session.working_state_for(Step.WEEK))
        if step == Step.DATE:
            return self._date_pick(text, lowered, session.working_state_for(Step.DATE))
        if step == Step.TIME_OF_DAY:
            bucket = bucket_from_token(lowered)
            return ClassifiedInput(InputKind.BUCKET, bucket) if bucket else INVALID
        if step == Step.SLOT_CONFIRM:
            bucket = bucket_from_token(lowered)
            if bucket:
                return ClassifiedInput(InputKind.BUCKET, bucket)
            label = resolve_selection(session.working_state_for(Step.SLOT_CONFIRM), text)
            return ClassifiedInput(InputKind.SLOT, label) if label else INVALID
        if step == Step.PLAYER_COUNT:
            return self._player_count(lowered)
        if step == Step.ADD_ONS:
            return self._add_ons(lowered)
        if step == Step.CONTACT:
            if len(text) >= self.min_contact_length and not _DIGITS_RE.match(text):
                return ClassifiedInput(InputKind.CONTACT_NAME, text)
            return INVALID
        if step == Step.PAYMENT_INITIATED:
            if lowered in PAYMENT_NOTICE_TOKENS:
                return ClassifiedInput(InputKind.PAYMENT_NOTICE)
            return ClassifiedInput(InputKind.ANY)
        if step == Step.COMMITTED:
            return ClassifiedInput(InputKind.ANY)
        return INVALID

    def _sport(self, text: str, lowered: str) -> ClassifiedInput:
        for option in self.sports:
            if text == option["id"] or lowered == option["title"].lower():
                return ClassifiedInput(InputKind.SPORT, option)
        for option in self.sports:
            if any(keyword and keyword in lowered for keyword in option["keywords"]):
                return ClassifiedInput(InputKind.SPORT, option)
        return INVALID

    def _venue(self, text: str, lowered: str) -> ClassifiedInput:
        for option in self.venues:
            if text == option["id"] or lowered == option["title"].lower():
                return ClassifiedInput(InputKind.VENUE, option)
        return INVALID

    def _date_category(self, text: str, lowered: str) -> ClassifiedInput:
        if lowered in TODAY_TOKENS:
            return ClassifiedInput(InputKind.TODAY)
        if lowered in TOMORROW_TOKENS:
            return ClassifiedInput(InputKind.TOMORROW)
        if lowered in THIS_WEEK_TOKENS:
            return ClassifiedInput(InputKind.THIS_WEEK)
        if lowered in OTHER_DATES_TOKENS:
            return ClassifiedInput(InputKind.OTHER_DATES)
        typed = parse_typed_date(text)
        if typed is not None:
            return ClassifiedInput(InputKind.DATE, typed.isoformat())
        return INVALID

    def _week(self, lowered: str, weeks: Any) -> ClassifiedInput:
        if not isinstance(weeks, WeekOptions) or not weeks.weeks:
            return INVALID
        option = weeks.find(lowered)
        if option is None:
            index = None
            if _DIGITS_RE.match(lowered):
                index = int(lowered)
            else:
                match = _WEEK_TEXT_RE.match(lowered)
                if match:
                    index = int(match.group(1))
            if index is not None and 1 <= index <= len(weeks.weeks):
                option = weeks.weeks[index - 1]
        return ClassifiedInput(InputKind.WEEK, option) if option else INVALID

    def _date_pick(self, text: str, lowered: str, candidates: Any) -> ClassifiedInput:
        if lowered in OTHER_DATES_TOKENS:
            return ClassifiedInput(InputKind.OTHER_DATES)
        if isinstance(candidates, DateCandidates):
            found = candidates.find(text)
            if found is not None:
                return ClassifiedInput(InputKind.DATE, found.iso)
            if _DIGITS_RE.match(text):
                index = int(text) - 1
                if 0 <= index < len(candidates.candidates):
                    return ClassifiedInput(InputKind.DATE, candidates.candidates[index].iso)
                return INVALID
        typed = parse_typed_date(text)
        if typed is not None:
            return ClassifiedInput(InputKind.DATE, typed.isoformat())
        return INVALID

    def _player_count(self, lowered: str) -> ClassifiedInput:
        match = _PLAYERS_RE.match(lowered)
        digits = match.group(1) if match else (lowered if _DIGITS_RE.match(lowered) else "")
        if not digits:
            return INVALID
        count = int(digits)
        if self.min_players <= count <= self.max_players:
            return ClassifiedInput(InputKind.PLAYER_COUNT, count)
        return INVALID

    def _add_ons(self, lowered: str) -> ClassifiedInput:
        none_index = str(len(self.add_ons) + 1)
        if lowered in NONE_ADD_ON_TOKENS or lowered == none_index:
            return ClassifiedInput(InputKind.ADD_ON, [])
        for index, option in enumerate(self.add_ons, start=1):
            code = option["id"]
            if lowered in {str(index), f"addon_{code}", code.lower(), option["title"].lower()}:
                return ClassifiedInput(InputKind.ADD_ON, [code])
        return INVALID


def parse_typed_date(text: str) -> date | None:
    value = (text or "").strip().lower()
    if value.startswith("date_"):
        value = value[len("date_"):]
    match = _ISO_DATE_RE.match(value)
    if match:
        year, month, day = match.groups()
    else:
        match = _DMY_DATE_RE.match(value)
        if not match:
            return None
        day, month, year = match.groups()
    try:
        return datetime(int(year), int(month), int(day)).date()
    except ValueError:
        return None


def _options(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    output: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        option_id = str(item.get("id", "") or "").strip()
        if not option_id:
            continue
        keywords = item.get("keywords", [])
        output.append(
            {
                "id": option_id,
                "title": str(item.get("title", option_id) or option_id),
                "keywords": [str(k).lower() for k in keywords] if isinstance(keywords, list) else [],
                "price": item.get("price"),
            }
        )
    return output
