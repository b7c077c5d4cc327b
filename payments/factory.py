from __future__ import annotations

from typing import Any

from payments.base import PaymentLinkProvider
from payments.razorpay_client import RazorpayPaymentLinks
from payments.static_links import StaticPaymentLinks


class PaymentConfigError(RuntimeError):
    pass


def create_payment_provider(config: dict[str, Any]) -> PaymentLinkProvider:
    pay_conf = config.get("payments", {})
    provider = str(pay_conf.get("provider", "static") or "static").strip().lower()

    if provider == "razorpay":
        rconf = pay_conf.get("razorpay", {})
        return RazorpayPaymentLinks(
            key_id=str(rconf.get("key_id", "") or ""),
            key_secret=str(rconf.get("key_secret", "") or ""),
            api_base_url=str(rconf.get("api_base_url", "https://api.razorpay.com") or "https://api.razorpay.com"),
            currency=str(config.get("pricing", {}).get("currency", "INR") or "INR"),
            callback_url=rconf.get("callback_url"),
            timeout_sec=float(pay_conf.get("timeout_sec", 10)),
        )

    if provider == "static":
        sconf = pay_conf.get("static", {})
        return StaticPaymentLinks(base_url=str(sconf.get("base_url", "") or ""))

    raise PaymentConfigError(f"unsupported payment provider: {provider}")
