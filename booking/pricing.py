from __future__ import annotations

from typing import Any, Iterable

DEFAULT_COURT_FEE_PER_PLAYER = 300


def compute_total(player_count: int | None, add_ons: Iterable[str], price_table: dict[str, Any]) -> int:
    """Total booking amount; depends only on the player count, the add-ons and the price table."""
    per_player = _as_int(price_table.get("court_fee_per_player"), DEFAULT_COURT_FEE_PER_PLAYER)
    add_on_prices = price_table.get("add_ons", {})
    if not isinstance(add_on_prices, dict):
        add_on_prices = {}

    players = max(1, int(player_count or 1))
    total = per_player * players
    for code in sorted(set(add_ons)):
        total += _as_int(add_on_prices.get(code), 0)
    return total


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
