from __future__ import annotations

from typing import Any

from core.errors import HttpRequestError, WhatsAppApiError
from core.http_client import HttpJsonClient, UrllibHttpJsonClient


class WhatsAppReplyClient:
    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_base_url: str = "https://graph.facebook.com",
        api_version: str = "v20.0",
        timeout_sec: float = 10.0,
        http_client: HttpJsonClient | None = None,
    ) -> None:
        self.access_token = (access_token or "").strip()
        self.phone_number_id = (phone_number_id or "").strip()
        self.api_base_url = (api_base_url or "https://graph.facebook.com").rstrip("/")
        self.api_version = (api_version or "v20.0").strip("/")
        self.timeout_sec = float(timeout_sec)
        self.http_client = http_client or UrllibHttpJsonClient()

    def send(self, to: str, messages: list[dict[str, Any]]) -> None:
        if not self.access_token or not self.phone_number_id:
            raise WhatsAppApiError("whatsapp.access_token and whatsapp.phone_number_id are required")
        target = (to or "").strip()
        if not target:
            raise WhatsAppApiError("recipient is empty")
        for message in messages:
            self._post(build_cloud_payload(target, message))

    def _post(self, payload: dict[str, Any]) -> None:
        url = f"{self.api_base_url}/{self.api_version}/{self.phone_number_id}/messages"
        try:
            self.http_client.post_json(
                url,
                payload,
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout_sec=self.timeout_sec,
            )
        except HttpRequestError as exc:
            raise WhatsAppApiError(f"whatsapp api error: {exc}") from exc


def build_cloud_payload(to: str, message: dict[str, Any]) -> dict[str, Any]:
    base: dict[str, Any] = {"messaging_product": "whatsapp", "recipient_type": "individual", "to": to}
    kind = message.get("type")
    if kind == "buttons":
        base["type"] = "interactive"
        base["interactive"] = {
            "type": "button",
            "body": {"text": message["body"]},
            "action": {
                "buttons": [
                    {"type": "reply", "reply": {"id": button["id"], "title": button["title"]}}
                    for button in message["buttons"]
                ]
            },
        }
        return base
    if kind == "list":
        base["type"] = "interactive"
        base["interactive"] = {
            "type": "list",
            "body": {"text": message["body"]},
            "action": {"button": message["button"], "sections": message["sections"]},
        }
        return base
    base["type"] = "text"
    base["text"] = {"preview_url": False, "body": str(message.get("text", ""))}
    return base
