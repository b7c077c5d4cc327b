from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import uuid4
from zoneinfo import ZoneInfo

from booking.confirmation import ConfirmationChecker
from booking.idempotency import IdempotencyGuard
from booking.locks import IdentityLocks
from booking.pricing import compute_total
from booking.repository_interface import BookingRepositoryProtocol
from booking.slots import build_catalog, offer_for_bucket
from booking.state_machine import (
    RECOVERY_TARGETS,
    ClassifiedInput,
    InputClassifier,
    can_transition,
    lookup_transition,
)
from calendars.base import CalendarClient
from core.enums import INITIAL_STEP, InputKind, OfferStatus, ReconciliationReason, RecheckStatus, Step
from core.errors import BookingError, CollaboratorUnavailableError
from core.models import (
    BookingSession,
    DateCandidate,
    DateCandidates,
    InboundMessage,
    PaymentConfirmation,
    SlotCatalog,
    WeekOption,
    WeekOptions,
)
from payments.base import PaymentLinkProvider
from whatsapp import message_templates

DEFAULT_START_COMMANDS = ("start", "restart")
DEFAULT_CANCEL_COMMANDS = ("cancel", "exit", "stop")

_RESETTABLE_FIELDS = (
    "sport",
    "venue",
    "date",
    "time_slot",
    "player_count",
    "add_ons",
    "contact_name",
    "paid",
    "total_amount",
    "working_state",
    "confirmed_event_id",
    "payment_reference",
    "payment_link",
    "payment_id",
)


class ConversationService:
    def __init__(
        self,
        repository: BookingRepositoryProtocol,
        calendar: CalendarClient,
        payments: PaymentLinkProvider,
        config: dict[str, Any],
        locks: IdentityLocks | None = None,
        today: Callable[[], date_type] | None = None,
    ) -> None:
        self.repository = repository
        self.calendar = calendar
        self.payments = payments
        self.locks = locks or IdentityLocks()
        self.guard = IdempotencyGuard(repository)
        self.checker = ConfirmationChecker(calendar)
        self.classifier = InputClassifier(config)

        booking_conf = config.get("booking", {})
        self.pricing = config.get("pricing", {})
        self.currency_symbol = str(self.pricing.get("currency_symbol", "₹") or "")
        self.start_commands = _command_set(booking_conf.get("start_commands"), DEFAULT_START_COMMANDS)
        self.cancel_commands = _command_set(booking_conf.get("cancel_commands"), DEFAULT_CANCEL_COMMANDS)
        self.this_week_days = max(1, int(booking_conf.get("this_week_days", 7)))
        self.week_count = max(1, int(booking_conf.get("week_bucket_count", 3)))
        self.first_week_offset_days = max(1, int(booking_conf.get("first_week_offset_days", 7)))
        self.booking_horizon_days = max(1, int(booking_conf.get("booking_horizon_days", 60)))
        self.min_contact_length = self.classifier.min_contact_length
        timezone_name = str(booking_conf.get("timezone", "Asia/Kolkata") or "Asia/Kolkata")
        self._tz = ZoneInfo(timezone_name)
        self._today = today or (lambda: datetime.now(self._tz).date())

    def handle_message(self, message: InboundMessage) -> list[dict[str, Any]]:
        """Apply one inbound message to the sender's session and return the replies.

        Raises SessionConflictError when another writer created or saved the
        session in between; the message is then left unapplied.
        """
        identity = message.sender
        command = message.token_lower.strip()
        with self.locks.hold(identity):
            session = self.repository.get_session(identity)
            if session is None:
                if command in self.cancel_commands:
                    return message_templates.build_cancelled_message()
                session = self.repository.create_session(identity)
                self.guard.admit(session, message.message_id)
                print(f"booking-session-created identity={identity}")
                return message_templates.build_welcome_message(self.classifier.sports)

            if not self.guard.admit(session, message.message_id):
                return []

            if command in self.cancel_commands:
                self.repository.delete_session(identity)
                print(f"booking-session-cancelled identity={identity} step={session.step}")
                return message_templates.build_cancelled_message()

            if command in self.start_commands:
                _reset(session)
                self.repository.save_session(session)
                return message_templates.build_welcome_message(self.classifier.sports, returning=True)

            step = session.current_step
            if step is None:
                print(f"booking-session-reset identity={identity} unknown_step={session.step}")
                _reset(session)
                self.repository.save_session(session)
                return message_templates.build_session_reset(self.classifier.sports)

            replies = self._dispatch(session, step, message)
            self.repository.save_session(session)
            return replies

    def handle_payment_confirmed(self, confirmation: PaymentConfirmation) -> tuple[str | None, list[dict[str, Any]]]:
        """Commit the booking that owns ``confirmation.reference``.

        Returns the identity to notify and the messages to send. Raises
        CollaboratorUnavailableError when availability cannot be checked, so
        the gateway redelivers the event later.
        """
        reference = (confirmation.reference or "").strip()
        located = self.repository.find_session_by_payment_reference(reference) if reference else None
        if located is None:
            self._flag_unknown_reference(confirmation)
            return None, []

        identity = located.identity
        with self.locks.hold(identity):
            session = self.repository.get_session(identity)
            if session is None or session.payment_reference != reference:
                self._flag_unknown_reference(confirmation)
                return None, []

            if session.current_step == Step.COMMITTED and session.paid:
                print(f"payment-duplicate-ignored identity={identity} reference={reference}")
                return identity, []

            if session.current_step != Step.PAYMENT_INITIATED:
                if confirmation.payment_id and session.payment_id == confirmation.payment_id:
                    print(f"payment-duplicate-ignored identity={identity} reference={reference}")
                    return identity, []
                self.repository.flag_for_reconciliation(
                    identity,
                    ReconciliationReason.PAYMENT_OUT_OF_SEQUENCE,
                    {"reference": reference, "payment_id": confirmation.payment_id, "step": session.step},
                )
                return identity, []

            result = self.checker.recheck(session.date or "", session.time_slot or "")
            if result.status == RecheckStatus.UNKNOWN:
                raise CollaboratorUnavailableError(
                    f"availability unknown while committing identity={identity} reference={reference}"
                )

            session.payment_id = confirmation.payment_id
            if result.status == RecheckStatus.TAKEN:
                lost_slot = session.time_slot
                self.repository.flag_for_reconciliation(
                    identity,
                    ReconciliationReason.SLOT_LOST_AFTER_PAYMENT,
                    {
                        "reference": reference,
                        "payment_id": confirmation.payment_id,
                        "date": session.date,
                        "slot": lost_slot,
                        "amount": session.total_amount,
                    },
                )
                session.paid = False
                session.clear_slot()
                day_has_slots = bool(result.snapshot.labels)
                session.advance(Step.TIME_OF_DAY if day_has_slots else Step.DATE_CATEGORY)
                self.repository.save_session(session)
                print(f"booking-commit-conflict identity={identity} date={session.date} slot={lost_slot}")
                return identity, message_templates.build_paid_slot_lost(lost_slot, session.date, day_has_slots)

            session.confirmed_event_id = self._create_event(session)
            session.paid = True
            session.advance(Step.COMMITTED)
            self.repository.save_session(session)
            print(
                f"booking-committed identity={identity} date={session.date} slot={session.time_slot} "
                f"event_id={session.confirmed_event_id or '-'}"
            )
            return identity, message_templates.build_booking_confirmed(session, self.currency_symbol)

    def _dispatch(self, session: BookingSession, step: Step, message: InboundMessage) -> list[dict[str, Any]]:
        classified = self.classifier.classify(step, message.token, session)
        transition = lookup_transition(step, classified.kind)
        if transition is None:
            replies = self._reprompt(session, step)
        else:
            handler = getattr(self, f"_on_{transition.handler}")
            replies = handler(session, classified)

        target = session.current_step
        if target is None or not can_transition(step, target):
            raise BookingError(f"illegal transition {step.value} -> {session.step}")
        return replies

    def _on_select_sport(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        session.sport = classified.value["title"]
        session.advance(Step.VENUE)
        return message_templates.build_venue_prompt(session.sport, self.classifier.venues)

    def _on_select_venue(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        session.venue = classified.value["title"]
        session.advance(Step.DATE_CATEGORY)
        return message_templates.build_date_category_prompt(session.venue)

    def _on_select_relative_date(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        offset = 1 if classified.kind == InputKind.TOMORROW else 0
        iso = (self._today() + timedelta(days=offset)).isoformat()
        snapshot = self.checker.fetch(iso)
        if not snapshot.labels:
            return message_templates.build_no_slots_on_date(iso, checked=snapshot.ok)
        session.date = iso
        session.clear_slot()
        session.advance(Step.TIME_OF_DAY)
        return message_templates.build_bucket_prompt(iso)

    def _on_offer_this_week(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        candidates = self._open_dates(self._today(), self.this_week_days)
        if not candidates.candidates:
            return message_templates.build_no_dates_this_week()
        session.advance(Step.DATE, candidates)
        return message_templates.build_date_candidates_prompt(candidates, "Select a date this week:")

    def _on_offer_weeks(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        weeks = self._week_options()
        session.advance(Step.WEEK, weeks)
        return message_templates.build_week_prompt(weeks)

    def _on_select_week(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        week: WeekOption = classified.value
        start = date_type.fromisoformat(week.start_date)
        candidates = self._open_dates(start, 7)
        if not candidates.candidates:
            weeks = session.working_state_for(Step.WEEK)
            if not isinstance(weeks, WeekOptions):
                weeks = self._week_options()
                session.advance(Step.WEEK, weeks)
            return message_templates.build_week_prompt(weeks, lead=f"Sorry, {week.label} has no open dates.")
        session.advance(Step.DATE, candidates)
        return message_templates.build_date_candidates_prompt(candidates, "Select a date from the week:")

    def _on_select_date(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        iso = str(classified.value)
        today = self._today()
        picked = date_type.fromisoformat(iso)
        if picked < today or picked > today + timedelta(days=self.booking_horizon_days):
            return message_templates.build_invalid_choice(
                f"Please pick a date between {message_templates.format_user_date(today.isoformat())} and "
                f"{message_templates.format_user_date((today + timedelta(days=self.booking_horizon_days)).isoformat())}."
            )

        snapshot = self.checker.fetch(iso)
        if not snapshot.labels:
            weeks = self._week_options()
            session.advance(Step.WEEK, weeks)
            if snapshot.ok:
                lead = f"Sorry, there are no slots available on {message_templates.format_user_date(iso)}."
            else:
                lead = "Sorry, I couldn't check the calendar for that date."
            return message_templates.build_week_prompt(weeks, lead=lead)

        session.date = iso
        session.clear_slot()
        session.advance(Step.TIME_OF_DAY)
        return message_templates.build_bucket_prompt(iso)

    def _on_select_bucket(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        bucket = str(classified.value)
        snapshot = self.checker.fetch(session.date or "")
        offer = offer_for_bucket(bucket, snapshot.labels)
        if offer.status == OfferStatus.NONE:
            session.advance(Step.TIME_OF_DAY)
            if not snapshot.ok:
                lead = "Sorry, I couldn't check the calendar right now. Please try again."
            else:
                lead = f"Sorry, there are no {bucket} slots open on {message_templates.format_user_date(session.date)}."
            return message_templates.build_bucket_prompt(session.date, lead=lead)

        catalog = build_catalog(offer.labels, bucket=bucket, widened=offer.status == OfferStatus.WIDENED)
        session.advance(Step.SLOT_CONFIRM, catalog)
        return message_templates.build_slot_prompt(session.date, catalog)

    def _on_confirm_slot(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        slot = str(classified.value)
        catalog = session.working_state_for(Step.SLOT_CONFIRM)
        result = self.checker.recheck(session.date or "", slot)

        if result.status == RecheckStatus.UNKNOWN:
            return message_templates.build_slot_unverified(session.date, catalog)

        if result.status == RecheckStatus.TAKEN:
            bucket = catalog.bucket if isinstance(catalog, SlotCatalog) else None
            if not result.snapshot.labels:
                session.clear_slot()
                session.advance(Step.DATE_CATEGORY)
                return message_templates.build_day_sold_out(slot, session.date)
            if bucket is None:
                session.advance(Step.TIME_OF_DAY)
                return message_templates.build_bucket_prompt(
                    session.date, lead=f"Sorry, {slot} was just booked by someone else."
                )
            offer = offer_for_bucket(bucket, result.snapshot.labels)
            rebuilt = build_catalog(offer.labels, bucket=bucket, widened=offer.status == OfferStatus.WIDENED)
            session.advance(Step.SLOT_CONFIRM, rebuilt)
            return message_templates.build_slot_taken(slot, session.date, rebuilt)

        session.time_slot = slot
        session.advance(Step.PLAYER_COUNT)
        return message_templates.build_player_count_prompt(slot)

    def _on_select_player_count(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        session.player_count = int(classified.value)
        session.advance(Step.ADD_ONS)
        return self._add_on_prompt()

    def _on_select_add_ons(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        session.add_ons = list(classified.value)
        session.total_amount = compute_total(session.player_count, session.add_ons, self.pricing)
        session.advance(Step.CONTACT)
        return message_templates.build_contact_prompt()

    def _on_collect_contact(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        session.contact_name = str(classified.value)
        session.total_amount = compute_total(session.player_count, session.add_ons, self.pricing)
        reference = uuid4().hex
        try:
            link = self.payments.create_payment_link(session, session.total_amount, reference)
        except CollaboratorUnavailableError as exc:
            print(f"payment-link-failed identity={session.identity} error={exc}")
            return message_templates.build_payment_link_failed()

        session.payment_reference = link.reference
        session.payment_link = link.url
        session.paid = False
        session.advance(Step.PAYMENT_INITIATED)
        print(
            f"payment-link-issued identity={session.identity} reference={link.reference} "
            f"amount={session.total_amount}"
        )
        return message_templates.build_payment_link_message(session, self.currency_symbol)

    def _on_payment_pending(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        return message_templates.build_payment_pending(session, self.currency_symbol)

    def _on_already_committed(self, session: BookingSession, classified: ClassifiedInput) -> list[dict[str, Any]]:
        return message_templates.build_already_committed(session, self.currency_symbol)

    def _reprompt(self, session: BookingSession, step: Step) -> list[dict[str, Any]]:
        if step == Step.SPORT:
            return message_templates.build_sport_prompt(self.classifier.sports)
        if step == Step.VENUE:
            return message_templates.build_venue_reprompt(self.classifier.venues)
        if step == Step.DATE_CATEGORY:
            return [
                *message_templates.build_invalid_choice("Please choose when you'd like to play."),
                *message_templates.build_date_category_prompt(),
            ]
        if step == Step.WEEK:
            weeks = session.working_state_for(Step.WEEK)
            if isinstance(weeks, WeekOptions):
                return message_templates.build_week_prompt(weeks, lead="Please choose one of the weeks.")
        if step == Step.DATE:
            candidates = session.working_state_for(Step.DATE)
            if isinstance(candidates, DateCandidates) and candidates.candidates:
                return message_templates.build_date_candidates_prompt(candidates, "Please choose one of these dates:")
        if step == Step.TIME_OF_DAY:
            return message_templates.build_bucket_prompt(session.date, lead="Please choose a time of day.")
        if step == Step.SLOT_CONFIRM:
            catalog = session.working_state_for(Step.SLOT_CONFIRM)
            if isinstance(catalog, SlotCatalog) and catalog.labels:
                return [
                    *message_templates.build_invalid_choice("Please pick one of the listed slots."),
                    *message_templates.build_slot_prompt(session.date, catalog),
                ]
        if step == Step.PLAYER_COUNT:
            return [
                *message_templates.build_invalid_choice("Please choose the number of players."),
                *message_templates.build_player_count_prompt(session.time_slot),
            ]
        if step == Step.ADD_ONS:
            return [
                *message_templates.build_invalid_choice("Please choose an add-on by number."),
                *self._add_on_prompt(),
            ]
        if step == Step.CONTACT:
            return message_templates.build_invalid_contact(self.min_contact_length)

        fallback = RECOVERY_TARGETS.get(step)
        if fallback is None:
            return message_templates.build_invalid_choice("Send 'start' to begin a new booking.")
        print(f"booking-working-state-missing identity={session.identity} step={step.value}")
        session.advance(fallback)
        if fallback == Step.TIME_OF_DAY:
            return message_templates.build_bucket_prompt(session.date)
        return message_templates.build_date_category_prompt()

    def _add_on_prompt(self) -> list[dict[str, Any]]:
        prices = self.pricing.get("add_ons", {})
        return message_templates.build_add_on_prompt(
            self.classifier.add_ons,
            prices if isinstance(prices, dict) else {},
            self.currency_symbol,
        )

    def _open_dates(self, start: date_type, days: int) -> DateCandidates:
        candidates: list[DateCandidate] = []
        for offset in range(days):
            iso = (start + timedelta(days=offset)).isoformat()
            if self.checker.fetch(iso).labels:
                candidates.append(DateCandidate(option_id=f"date_{iso}", iso=iso))
        return DateCandidates(candidates=candidates)

    def _week_options(self) -> WeekOptions:
        today = self._today()
        weeks: list[WeekOption] = []
        for index in range(1, self.week_count + 1):
            start = today + timedelta(days=self.first_week_offset_days * index)
            end = start + timedelta(days=6)
            weeks.append(
                WeekOption(
                    option_id=f"week_{index}",
                    start_date=start.isoformat(),
                    label=f"{start:%d %b} - {end:%d %b}",
                )
            )
        return WeekOptions(weeks=weeks)

    def _create_event(self, session: BookingSession) -> str | None:
        summary = f"{session.sport or 'Court'} booking - {session.contact_name or session.identity}"
        description = "\n".join(
            [
                f"Centre: {session.venue or '-'}",
                f"Players: {session.player_count or '-'}",
                f"Add-ons: {', '.join(session.add_ons) if session.add_ons else 'None'}",
                f"Phone: {session.identity}",
                f"Payment reference: {session.payment_reference or '-'}",
                f"Payment id: {session.payment_id or '-'}",
            ]
        )
        try:
            event_id = self.calendar.create_event(session.date or "", session.time_slot or "", summary, description)
        except (CollaboratorUnavailableError, ValueError) as exc:
            print(f"calendar-event-failed identity={session.identity} error={exc}")
            self.repository.flag_for_reconciliation(
                session.identity,
                ReconciliationReason.EVENT_NOT_CREATED,
                {
                    "reference": session.payment_reference,
                    "payment_id": session.payment_id,
                    "date": session.date,
                    "slot": session.time_slot,
                    "error": str(exc),
                },
            )
            return None
        return event_id or None

    def _flag_unknown_reference(self, confirmation: PaymentConfirmation) -> None:
        print(f"payment-reference-unknown reference={confirmation.reference or '-'}")
        self.repository.flag_for_reconciliation(
            "",
            ReconciliationReason.UNKNOWN_PAYMENT_REFERENCE,
            {
                "reference": confirmation.reference,
                "payment_id": confirmation.payment_id,
                "event_type": confirmation.event_type,
            },
        )


def _reset(session: BookingSession) -> None:
    fresh = BookingSession(identity=session.identity)
    for name in _RESETTABLE_FIELDS:
        setattr(session, name, getattr(fresh, name))
    session.advance(INITIAL_STEP)


def _command_set(raw: Any, default: tuple[str, ...]) -> set[str]:
    values = raw if isinstance(raw, list) and raw else list(default)
    return {str(value).strip().lower() for value in values if str(value).strip()}
