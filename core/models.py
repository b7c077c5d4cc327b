from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional, Union

from core.enums import OfferStatus, RecheckStatus, Step


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class WeekOption:
    option_id: str
    start_date: str
    label: str


@dataclass(slots=True)
class WeekOptions:
    kind: ClassVar[str] = "week_options"
    step: ClassVar[Step] = Step.WEEK

    weeks: list[WeekOption] = field(default_factory=list)

    def find(self, option_id: str) -> WeekOption | None:
        for week in self.weeks:
            if week.option_id == option_id:
                return week
        return None


@dataclass(slots=True)
class DateCandidate:
    option_id: str
    iso: str


@dataclass(slots=True)
class DateCandidates:
    kind: ClassVar[str] = "date_candidates"
    step: ClassVar[Step] = Step.DATE

    candidates: list[DateCandidate] = field(default_factory=list)

    def find(self, option_id: str) -> DateCandidate | None:
        for candidate in self.candidates:
            if candidate.option_id == option_id:
                return candidate
        return None


@dataclass(slots=True)
class SlotCatalog:
    kind: ClassVar[str] = "slot_catalog"
    step: ClassVar[Step] = Step.SLOT_CONFIRM

    entries: dict[str, str] = field(default_factory=dict)
    labels: list[str] = field(default_factory=list)
    bucket: Optional[str] = None
    widened: bool = False

    @property
    def size(self) -> int:
        return len(self.labels)


WorkingState = Union[WeekOptions, DateCandidates, SlotCatalog]


def working_state_to_dict(state: WorkingState | None) -> dict[str, Any] | None:
    if state is None:
        return None
    if isinstance(state, WeekOptions):
        return {
            "kind": state.kind,
            "weeks": [
                {"id": week.option_id, "start_date": week.start_date, "label": week.label}
                for week in state.weeks
            ],
        }
    if isinstance(state, DateCandidates):
        return {
            "kind": state.kind,
            "candidates": [{"id": c.option_id, "iso": c.iso} for c in state.candidates],
        }
    return {
        "kind": state.kind,
        "entries": dict(state.entries),
        "labels": list(state.labels),
        "bucket": state.bucket,
        "widened": bool(state.widened),
    }


def working_state_from_dict(data: Any) -> WorkingState | None:
    if not isinstance(data, dict):
        return None
    kind = str(data.get("kind", "") or "")
    if kind == WeekOptions.kind:
        weeks = [
            WeekOption(
                option_id=str(row.get("id", "")),
                start_date=str(row.get("start_date", "")),
                label=str(row.get("label", "")),
            )
            for row in data.get("weeks", [])
            if isinstance(row, dict)
        ]
        return WeekOptions(weeks=weeks)
    if kind == DateCandidates.kind:
        candidates = [
            DateCandidate(option_id=str(row.get("id", "")), iso=str(row.get("iso", "")))
            for row in data.get("candidates", [])
            if isinstance(row, dict)
        ]
        return DateCandidates(candidates=candidates)
    if kind == SlotCatalog.kind:
        entries = data.get("entries", {})
        labels = data.get("labels", [])
        return SlotCatalog(
            entries={str(k): str(v) for k, v in entries.items()} if isinstance(entries, dict) else {},
            labels=[str(v) for v in labels] if isinstance(labels, list) else [],
            bucket=data.get("bucket"),
            widened=bool(data.get("widened", False)),
        )
    return None


@dataclass(slots=True)
class BookingSession:
    identity: str
    step: str = Step.SPORT.value
    sport: Optional[str] = None
    venue: Optional[str] = None
    date: Optional[str] = None
    time_slot: Optional[str] = None
    player_count: Optional[int] = None
    add_ons: list[str] = field(default_factory=list)
    contact_name: Optional[str] = None
    paid: bool = False
    total_amount: int = 0
    last_processed_message_id: Optional[str] = None
    working_state: Optional[WorkingState] = None
    confirmed_event_id: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_link: Optional[str] = None
    payment_id: Optional[str] = None
    version: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def current_step(self) -> Step | None:
        return Step.parse(self.step)

    def working_state_for(self, step: Step) -> WorkingState | None:
        """Return the scratch data only while it belongs to ``step`` and ``step`` is active."""
        state = self.working_state
        if state is None or self.current_step != step or state.step != step:
            return None
        return state

    def advance(self, step: Step, working_state: WorkingState | None = None) -> None:
        if working_state is not None and working_state.step != step:
            raise ValueError(f"{working_state.kind} does not belong to step {step.value}")
        self.step = step.value
        self.working_state = working_state

    def clear_slot(self) -> None:
        self.time_slot = None

    def summary_fields(self) -> dict[str, Any]:
        return {
            "sport": self.sport,
            "venue": self.venue,
            "date": self.date,
            "time_slot": self.time_slot,
            "player_count": self.player_count,
            "add_ons": list(self.add_ons),
            "contact_name": self.contact_name,
            "total_amount": self.total_amount,
        }


@dataclass(slots=True)
class InboundMessage:
    sender: str
    message_id: str
    token: str
    reply_kind: str
    title: str = ""

    @property
    def token_lower(self) -> str:
        return self.token.lower()


@dataclass(slots=True)
class SlotOffer:
    status: OfferStatus
    labels: list[str]
    bucket: Optional[str] = None


@dataclass(slots=True)
class AvailabilitySnapshot:
    date: str
    labels: list[str]
    ok: bool = True


@dataclass(slots=True)
class RecheckResult:
    status: RecheckStatus
    slot: str
    snapshot: AvailabilitySnapshot


@dataclass(slots=True)
class PaymentLink:
    url: str
    reference: str
    link_id: Optional[str] = None


@dataclass(slots=True)
class PaymentConfirmation:
    reference: str
    payment_id: Optional[str]
    event_type: str


@dataclass(slots=True)
class ReconciliationFlag:
    flag_id: str
    identity: str
    reason: str
    details: dict[str, Any]
    created_at: str
