from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

DEFAULT_CONFIG: dict[str, Any] = {
    "whatsapp": {
        "enabled": False,
        "verify_token": None,
        "app_secret": None,
        "access_token": None,
        "phone_number_id": None,
        "api_base_url": "https://graph.facebook.com",
        "api_version": "v20.0",
        "webhook_path": "/webhook/whatsapp",
        "timeout_sec": 10,
        "allowed_numbers": [],
    },
    "booking": {
        "backend": "sqlite",
        "sqlite_path": "data/booking/bookingbot.db",
        "dynamodb": {
            "region": None,
            "table_prefix": "bookingbot",
            "tables": {
                "sessions": None,
                "reconciliation": None,
            },
        },
        "timezone": "Asia/Kolkata",
        "start_commands": ["start", "restart"],
        "cancel_commands": ["cancel", "exit", "stop"],
        "min_players": 1,
        "max_players": 8,
        "min_contact_length": 2,
        "this_week_days": 7,
        "week_bucket_count": 3,
        "first_week_offset_days": 7,
        "booking_horizon_days": 60,
    },
    "catalog": {
        "sports": [
            {"id": "sport_pickleball", "title": "Pickleball", "keywords": ["pickle"]},
            {"id": "sport_padel", "title": "Padel", "keywords": ["padel"]},
        ],
        "venues": [
            {"id": "centre_jw", "title": "JW Marriott"},
            {"id": "centre_taj", "title": "Taj West End"},
            {"id": "centre_itc", "title": "ITC Gardenia"},
        ],
        "add_ons": [
            {"id": "spa", "title": "Spa"},
            {"id": "gym", "title": "Gym"},
            {"id": "sauna", "title": "Sauna"},
        ],
    },
    "pricing": {
        "currency": "INR",
        "currency_symbol": "₹",
        "court_fee_per_player": 300,
        "add_ons": {
            "spa": 2000,
            "gym": 500,
            "sauna": 800,
        },
    },
    "calendar": {
        "provider": "static",
        "timezone": "Asia/Kolkata",
        "day_template": None,
        "google": {
            "calendar_id": "primary",
            "client_id": None,
            "client_secret": None,
            "refresh_token": None,
        },
        "static": {
            "availability": {},
        },
    },
    "payments": {
        "provider": "static",
        "webhook_path": "/webhook/payments",
        "webhook_secret": None,
        "timeout_sec": 10,
        "razorpay": {
            "key_id": None,
            "key_secret": None,
            "api_base_url": "https://api.razorpay.com",
            "callback_url": None,
        },
        "static": {
            "base_url": "https://example-payments.local/pay",
        },
    },
}

# environment variable -> config path
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "WHATSAPP_VERIFY_TOKEN": ("whatsapp", "verify_token"),
    "WHATSAPP_APP_SECRET": ("whatsapp", "app_secret"),
    "WHATSAPP_ACCESS_TOKEN": ("whatsapp", "access_token"),
    "WHATSAPP_PHONE_NUMBER_ID": ("whatsapp", "phone_number_id"),
    "GOOGLE_CLIENT_ID": ("calendar", "google", "client_id"),
    "GOOGLE_CLIENT_SECRET": ("calendar", "google", "client_secret"),
    "GOOGLE_REFRESH_TOKEN": ("calendar", "google", "refresh_token"),
    "GOOGLE_CALENDAR_ID": ("calendar", "google", "calendar_id"),
    "RAZORPAY_KEY_ID": ("payments", "razorpay", "key_id"),
    "RAZORPAY_KEY_SECRET": ("payments", "razorpay", "key_secret"),
    "RAZORPAY_WEBHOOK_SECRET": ("payments", "webhook_secret"),
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def apply_env_overrides(config: dict[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    override: dict[str, Any] = {}
    for name, path in ENV_OVERRIDES.items():
        value = str(env.get(name, "") or "").strip()
        if not value:
            continue
        node = override
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
    if not override:
        return config
    return deep_merge(config, override)


def load_config(config_path: str | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    return apply_env_overrides(_load_file(config_path), environ)


def _load_file(config_path: str | None) -> dict[str, Any]:
    if not config_path:
        return DEFAULT_CONFIG

    path = Path(config_path)
    if not path.exists():
        return DEFAULT_CONFIG

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return DEFAULT_CONFIG

    data: dict[str, Any] | None = None
    if path.suffix.lower() == ".json":
        import json

        data = json.loads(text)
    else:
        import yaml

        loaded = yaml.safe_load(text)
        data = loaded if isinstance(loaded, dict) else {}

    if data is None:
        data = {}
    return deep_merge(DEFAULT_CONFIG, data)
