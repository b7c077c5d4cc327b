from __future__ import annotations

import os
from typing import Any

from fastapi import FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from app.config import load_config
from payments.webhook_handler import PaymentWebhookHandler
from whatsapp.webhook_handler import WhatsAppWebhookHandler

DEFAULT_CONFIG_PATH = "config.yaml"

CONFIG_PATH = os.getenv("BOOKINGBOT_CONFIG_PATH", DEFAULT_CONFIG_PATH)
CONFIG = load_config(CONFIG_PATH)
HANDLER = WhatsAppWebhookHandler(CONFIG)
PAYMENT_HANDLER = PaymentWebhookHandler(
    CONFIG,
    conversation_service=HANDLER.conversation_service,
    reply_client=HANDLER.reply_client,
)

app = FastAPI(title="Court Booking WhatsApp Webhook", version="0.1.0")
WEBHOOK_PATH = str(CONFIG.get("whatsapp", {}).get("webhook_path", "/webhook/whatsapp"))
PAYMENT_WEBHOOK_PATH = str(CONFIG.get("payments", {}).get("webhook_path", "/webhook/payments"))


@app.get("/healthz")
async def healthz() -> dict[str, Any]:
    return {"ok": True}


@app.get(WEBHOOK_PATH)
async def whatsapp_verify(
    hub_mode: str | None = Query(default=None, alias="hub.mode"),
    hub_verify_token: str | None = Query(default=None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(default=None, alias="hub.challenge"),
) -> PlainTextResponse:
    status_code, body = HANDLER.verify_subscription(hub_mode, hub_verify_token, hub_challenge)
    return PlainTextResponse(status_code=status_code, content=body)


# handlers block on storage and HTTP calls
@app.post(WEBHOOK_PATH)
async def whatsapp_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(default=None),
) -> JSONResponse:
    body = await request.body()
    status_code, payload = await run_in_threadpool(HANDLER.handle, body, x_hub_signature_256)
    return JSONResponse(status_code=status_code, content=payload)


@app.post(PAYMENT_WEBHOOK_PATH)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
) -> JSONResponse:
    body = await request.body()
    status_code, payload = await run_in_threadpool(PAYMENT_HANDLER.handle, body, x_razorpay_signature)
    return JSONResponse(status_code=status_code, content=payload)
