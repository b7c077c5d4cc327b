from __future__ import annotations

import re
from typing import Any, Iterable

from core.enums import OfferStatus, Presentation, TimeBucket
from core.models import SlotCatalog, SlotOffer

MAX_BUTTONS = 3
MAX_LIST_ROWS = 10
SLOT_ID_PREFIX = "slot_"

BUCKET_TEMPLATES: dict[str, tuple[str, ...]] = {
    TimeBucket.MORNING.value: (
        "06:00 - 07:00",
        "07:00 - 08:00",
        "08:00 - 09:00",
        "09:00 - 10:00",
        "10:00 - 11:00",
        "11:00 - 12:00",
    ),
    TimeBucket.AFTERNOON.value: (
        "12:00 - 13:00",
        "13:00 - 14:00",
        "14:00 - 15:00",
        "15:00 - 16:00",
        "16:00 - 17:00",
    ),
    TimeBucket.EVENING.value: (
        "17:00 - 18:00",
        "18:00 - 19:00",
        "19:00 - 20:00",
        "20:00 - 21:00",
        "21:00 - 22:00",
    ),
}

BUCKET_IDS = {f"tod_{bucket}": bucket for bucket in BUCKET_TEMPLATES}

# hyphen-minus, hyphen, figure dash, en dash, em dash, horizontal bar, minus sign
_DASH_RE = re.compile(r"[-‐‑‒–—―−]")
_WHITESPACE_RE = re.compile(r"\s+")
_SEPARATOR_RE = re.compile(r"\s*-\s*")
_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})")
_DIGITS_RE = re.compile(r"^\d+$")


def normalize_slot_label(label: Any) -> str:
    text = _DASH_RE.sub("-", str(label or ""))
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return _SEPARATOR_RE.sub(" - ", text)


def parse_slot_times(label: Any) -> tuple[str, str] | None:
    matches = _TIME_RE.findall(str(label or ""))
    if len(matches) < 2:
        return None
    (start_h, start_m), (end_h, end_m) = matches[0], matches[1]
    return f"{int(start_h):02d}:{start_m}", f"{int(end_h):02d}:{end_m}"


def dedupe_labels(labels: Iterable[Any]) -> list[str]:
    seen: set[str] = set()
    output: list[str] = []
    for label in labels:
        normalized = normalize_slot_label(label)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        output.append(normalized)
    return output


def bucket_from_token(token: str) -> str | None:
    text = (token or "").strip().lower()
    if text in BUCKET_IDS:
        return BUCKET_IDS[text]
    if text in BUCKET_TEMPLATES:
        return text
    return None


def offer_for_bucket(
    bucket: str,
    available: Iterable[Any],
    templates: dict[str, Iterable[str]] | None = None,
) -> SlotOffer:
    """Intersect the bucket template with reported availability.

    Matching is by normalized label first, then by parsed ``(start, end)``
    clock times. When the bucket has nothing but the day still has open
    slots, the whole day is offered and the offer is marked ``WIDENED``.
    """
    day = dedupe_labels(available)
    template = dedupe_labels((templates or BUCKET_TEMPLATES).get(bucket, ()))
    if not day:
        return SlotOffer(status=OfferStatus.NONE, labels=[], bucket=bucket)

    day_set = set(day)
    matched = [label for label in template if label in day_set]

    if not matched:
        day_ranges = {times for times in (parse_slot_times(label) for label in day) if times}
        if day_ranges:
            matched = [label for label in template if parse_slot_times(label) in day_ranges]

    if matched:
        return SlotOffer(status=OfferStatus.OFFERED, labels=matched, bucket=bucket)
    return SlotOffer(status=OfferStatus.WIDENED, labels=day, bucket=bucket)


def build_catalog(labels: Iterable[Any], bucket: str | None = None, widened: bool = False) -> SlotCatalog:
    ordered = dedupe_labels(labels)
    entries = {f"{SLOT_ID_PREFIX}{index}": label for index, label in enumerate(ordered)}
    return SlotCatalog(entries=entries, labels=ordered, bucket=bucket, widened=widened)


def resolve_selection(catalog: SlotCatalog | None, token: str) -> str | None:
    if catalog is None:
        return None
    text = (token or "").strip()
    if not text:
        return None

    if text in catalog.entries:
        return catalog.entries[text]

    if _DIGITS_RE.match(text):
        index = int(text) - 1
        if 0 <= index < len(catalog.labels):
            return catalog.labels[index]
        return None

    if text in catalog.labels:
        return text

    wanted = normalize_slot_label(text).lower()
    for label in catalog.labels:
        if normalize_slot_label(label).lower() == wanted:
            return label
    return None


def slot_is_listed(slot: str, available: Iterable[Any]) -> bool:
    wanted = normalize_slot_label(slot)
    if not wanted:
        return False
    day = dedupe_labels(available)
    if wanted in day:
        return True
    times = parse_slot_times(wanted)
    return times is not None and any(parse_slot_times(label) == times for label in day)


def presentation_for(count: int) -> Presentation:
    if count <= 0:
        return Presentation.TEXT
    if count <= MAX_BUTTONS:
        return Presentation.BUTTONS
    return Presentation.LIST
