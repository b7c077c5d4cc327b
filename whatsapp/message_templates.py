from __future__ import annotations

from datetime import date as date_type
from typing import Any

from booking.slots import MAX_LIST_ROWS
from core.models import BookingSession, DateCandidates, SlotCatalog, WeekOptions
from whatsapp.interactive import buttons_message, option, options_message, text_message

DATE_CATEGORY_OPTIONS = (
    option("date_today", "Today"),
    option("date_this_week", "This Week"),
    option("date_other", "Other Dates"),
)
LATER_DATE_OPTIONS = (
    option("date_this_week", "This Week"),
    option("date_other", "Other Dates"),
)
BUCKET_OPTIONS = (
    option("tod_morning", "Morning"),
    option("tod_afternoon", "Afternoon"),
    option("tod_evening", "Evening"),
)


def format_user_date(iso: str | None) -> str:
    if not iso:
        return "-"
    try:
        value = date_type.fromisoformat(iso)
    except ValueError:
        return str(iso)
    return value.strftime("%a, %d %b %Y")


def _money(amount: int | None, symbol: str) -> str:
    return f"{symbol}{int(amount or 0):,}"


def _catalog_options(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [option(row["id"], row["title"]) for row in rows]


def build_welcome_message(sports: list[dict[str, Any]], returning: bool = False) -> list[dict[str, Any]]:
    if returning:
        body = "🏓 Welcome back! Which sport would you like to play?"
    else:
        body = "🏓 Welcome to Sports Booking Bot!\nLet's get started. Which sport would you like to play?"
    return [options_message(body, _catalog_options(sports))]


def build_sport_prompt(sports: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [options_message("Please choose a sport:", _catalog_options(sports))]


def build_venue_prompt(sport: str | None, venues: list[dict[str, Any]]) -> list[dict[str, Any]]:
    body = f"Great choice! You've selected {sport}.\nWhich centre would you like to book at?"
    return [options_message(body, _catalog_options(venues))]


def build_venue_reprompt(venues: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [options_message("Please choose one of the centres:", _catalog_options(venues))]


def build_date_category_prompt(venue: str | None = None) -> list[dict[str, Any]]:
    if venue:
        body = f"Perfect! You've selected {venue}.\nWhen would you like to play?"
    else:
        body = "When would you like to play? You can also type a date like 2026-03-21."
    return [buttons_message(body, DATE_CATEGORY_OPTIONS)]


def build_no_slots_on_date(iso: str, checked: bool = True) -> list[dict[str, Any]]:
    if not checked:
        lead = "Sorry, I couldn't check the calendar right now."
    else:
        lead = f"Sorry, there are no slots available on {format_user_date(iso)}."
    return [text_message(lead), buttons_message("Choose a date:", LATER_DATE_OPTIONS)]


def build_week_prompt(weeks: WeekOptions, lead: str | None = None) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    if lead:
        messages.append(text_message(lead))
    rows = [option(week.option_id, week.label) for week in weeks.weeks]
    messages.append(options_message("Select which week (other dates):", rows))
    return messages


def build_date_candidates_prompt(candidates: DateCandidates, body: str) -> list[dict[str, Any]]:
    rows = [
        option(candidate.option_id, format_user_date(candidate.iso), candidate.iso)
        for candidate in candidates.candidates
    ]
    return [options_message(body, rows, button_text="Dates", section_title="Available dates")]


def build_no_dates_this_week() -> list[dict[str, Any]]:
    return [
        text_message("Sorry, there are no open dates in the next 7 days."),
        buttons_message("Choose a date:", (option("date_other", "Other Dates"),)),
    ]


def build_bucket_prompt(iso: str | None, lead: str | None = None) -> list[dict[str, Any]]:
    body = f"Great! You've selected {format_user_date(iso)}.\nChoose time of day:"
    messages: list[dict[str, Any]] = []
    if lead:
        messages.append(text_message(lead))
        body = "Choose time of day:"
    messages.append(buttons_message(body, BUCKET_OPTIONS))
    return messages


def build_slot_prompt(iso: str | None, catalog: SlotCatalog) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    if catalog.widened:
        messages.append(
            text_message(f"No slots left in the {catalog.bucket}. Here are the other open slots that day.")
        )
    rows = [option(slot_id, label) for slot_id, label in catalog.entries.items()]
    body = f"Available time slots for {format_user_date(iso)}:"
    if len(rows) > MAX_LIST_ROWS:
        # a list shows at most MAX_LIST_ROWS rows; the numbered text reaches the rest
        numbered = "\n".join(f"{index}. {label}" for index, label in enumerate(catalog.labels, start=1))
        messages.append(text_message(f"{body}\n{numbered}\nReply with the number of the slot you want."))
        body = f"Or tap one of the first {MAX_LIST_ROWS} below:"
    messages.append(options_message(body, rows, button_text="Slots", section_title="Slots"))
    return messages


def build_slot_unverified(iso: str | None, catalog: SlotCatalog | None) -> list[dict[str, Any]]:
    messages = [text_message("Sorry, I couldn't confirm that slot right now. Please choose again in a moment.")]
    if catalog is not None and catalog.labels:
        messages.extend(build_slot_prompt(iso, catalog))
    return messages


def build_slot_taken(slot: str, iso: str | None, catalog: SlotCatalog) -> list[dict[str, Any]]:
    lead = text_message(f"Sorry, {slot} was just booked by someone else. Please pick another slot.")
    return [lead, *build_slot_prompt(iso, catalog)]


def build_day_sold_out(slot: str, iso: str | None) -> list[dict[str, Any]]:
    return [
        text_message(f"Sorry, {slot} was just booked and {format_user_date(iso)} has no other open slots."),
        buttons_message("Pick a new date:", DATE_CATEGORY_OPTIONS),
    ]


def build_player_count_prompt(slot: str | None) -> list[dict[str, Any]]:
    return [
        buttons_message(
            f"Perfect! You've chosen {slot}.\nHow many players?",
            (
                option("players_2", "2 players"),
                option("players_3", "3 players"),
                option("players_4", "4 players"),
            ),
        )
    ]


def build_add_on_prompt(add_ons: list[dict[str, Any]], prices: dict[str, Any], symbol: str) -> list[dict[str, Any]]:
    rows = []
    lines = ["Would you like any add-ons?"]
    for index, add_on in enumerate(add_ons, start=1):
        price = prices.get(add_on["id"], 0)
        lines.append(f"{index}. {add_on['title']} ({_money(price, symbol)})")
        rows.append(option(f"addon_{add_on['id']}", add_on["title"], _money(price, symbol)))
    lines.append(f"{len(add_ons) + 1}. No thanks")
    rows.append(option("addon_none", "No thanks"))
    return [options_message("\n".join(lines), rows, button_text="Add-ons", section_title="Add-ons")]


def build_contact_prompt() -> list[dict[str, Any]]:
    return [text_message("Please provide your full name for the booking.")]


def build_invalid_contact(min_length: int) -> list[dict[str, Any]]:
    return [text_message(f"Please enter a valid name (at least {min_length} characters).")]


def _summary_lines(session: BookingSession, symbol: str) -> list[str]:
    add_ons = ", ".join(session.add_ons) if session.add_ons else "None"
    return [
        f"Sport: {session.sport or '-'}",
        f"Centre: {session.venue or '-'}",
        f"Date: {format_user_date(session.date)}",
        f"Time: {session.time_slot or '-'}",
        f"Players: {session.player_count or '-'}",
        f"Add-ons: {add_ons}",
        f"Name: {session.contact_name or '-'}",
        f"Total: {_money(session.total_amount, symbol)}",
    ]


def build_payment_link_message(session: BookingSession, symbol: str) -> list[dict[str, Any]]:
    lines = ["📋 Booking summary", *_summary_lines(session, symbol), "", f"Pay here to confirm: {session.payment_link}"]
    lines.append("Your booking is confirmed as soon as the payment goes through.")
    return [text_message("\n".join(lines))]


def build_payment_link_failed() -> list[dict[str, Any]]:
    return [text_message("Sorry, I couldn't create a payment link right now. Please send your name again shortly.")]


def build_payment_pending(session: BookingSession, symbol: str) -> list[dict[str, Any]]:
    lines = [
        "We're waiting for the payment confirmation from the gateway.",
        f"Amount: {_money(session.total_amount, symbol)}",
    ]
    if session.payment_link:
        lines.append(f"Payment link: {session.payment_link}")
    lines.append("Send 'cancel' to drop this booking.")
    return [text_message("\n".join(lines))]


def build_booking_confirmed(session: BookingSession, symbol: str) -> list[dict[str, Any]]:
    lines = ["✅ Payment received. Your booking is confirmed!", *_summary_lines(session, symbol)]
    lines.append("Send 'start' to make another booking.")
    return [text_message("\n".join(lines))]


def build_paid_slot_lost(slot: str | None, iso: str | None, day_has_slots: bool) -> list[dict[str, Any]]:
    lead = (
        f"We received your payment, but {slot} on {format_user_date(iso)} was booked by someone else "
        "before it could be confirmed. Our team will reach out about your payment."
    )
    if day_has_slots:
        return [text_message(lead), buttons_message("Choose another time of day:", BUCKET_OPTIONS)]
    return [text_message(lead), buttons_message("Pick a new date:", DATE_CATEGORY_OPTIONS)]


def build_already_committed(session: BookingSession, symbol: str) -> list[dict[str, Any]]:
    lines = ["Your booking is already confirmed.", *_summary_lines(session, symbol)]
    lines.append("Send 'start' to make another booking.")
    return [text_message("\n".join(lines))]


def build_cancelled_message() -> list[dict[str, Any]]:
    return [text_message("Your booking has been cancelled. Send 'start' whenever you want to book again.")]


def build_invalid_choice(step_hint: str) -> list[dict[str, Any]]:
    return [text_message(f"Sorry, I didn't get that. {step_hint}")]


def build_session_reset(sports: list[dict[str, Any]]) -> list[dict[str, Any]]:
    messages = [text_message("Something went wrong with your booking, so let's start over.")]
    messages.extend(build_sport_prompt(sports))
    return messages
