from __future__ import annotations

import hashlib
import hmac


def verify_payment_signature(webhook_secret: str, body: bytes, signature: str | None) -> bool:
    secret = (webhook_secret or "").strip()
    received = (signature or "").strip().lower()
    if not secret or not received:
        return False

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, received)
