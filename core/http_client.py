from __future__ import annotations

import json
from typing import Any, Protocol
from urllib import error, request

from core.errors import HttpRequestError


class HttpJsonClient(Protocol):
    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        ...


class UrllibHttpJsonClient:
    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_sec: float = 10.0,
    ) -> dict[str, Any]:
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = request.Request(url=url, data=data, method="POST")
        req.add_header("Content-Type", "application/json; charset=utf-8")
        for key, value in (headers or {}).items():
            req.add_header(key, value)

        try:
            with request.urlopen(req, timeout=timeout_sec) as resp:
                status = int(getattr(resp, "status", 200))
                body = resp.read().decode("utf-8", errors="ignore")
        except error.HTTPError as exc:
            try:
                body = exc.read().decode("utf-8", errors="ignore")
            except Exception:
                body = ""
            raise HttpRequestError(f"request failed: status={exc.code} body={body}", exc.code, body) from exc
        except error.URLError as exc:
            raise HttpRequestError(f"connection error: {exc}") from exc

        if status >= 400:
            raise HttpRequestError(f"request failed: status={status}", status, body)
        if not body.strip():
            return {}
        try:
            parsed = json.loads(body)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
