from __future__ import annotations

from typing import Any

import httpx

from ..core.config import get_settings
from ..core.logging import get_logger
from ..core.metrics import inc
from ..errors import RemoteUnavailable
from ..schemas.telegram import TelegramUpdate


class TelegramClient:
    def __init__(self) -> None:
        settings = get_settings()
        self._api_url: str = settings.telegram_api_url.rstrip("/")
        self._bot_token: str | None = settings.telegram_bot_token
        self._timeout = float(settings.http_timeout_sec)
        self._logger = get_logger(__name__)

    def _method_url(self, method: str) -> str:
        return f"{self._api_url}/bot{self._bot_token}/{method}"

    def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            with httpx.Client(timeout=self._timeout) as client:
                resp = client.post(self._method_url(method), json=payload)
                data = resp.json()
        except httpx.HTTPError as exc:
            raise RemoteUnavailable("telegram", f"{method}: {exc}") from exc
        except ValueError as exc:
            raise RemoteUnavailable(
                "telegram", f"{method}: invalid JSON body", resp.status_code
            ) from exc
        if not isinstance(data, dict):
            raise RemoteUnavailable(
                "telegram", f"{method}: unexpected response body", resp.status_code
            )
        if not data.get("ok"):
            raise RemoteUnavailable(
                "telegram",
                f"{method}: {data.get('description') or 'request rejected'}",
                resp.status_code,
            )
        return data.get("result")

    def get_updates(self, offset: int | None = None) -> list[TelegramUpdate]:
        if not self._bot_token:
            self._logger.info("telegram.get_updates.dry_run", offset=offset)
            return []
        payload: dict[str, Any] = {"allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        result = self._call("getUpdates", payload) or []
        return [TelegramUpdate.model_validate(item) for item in result]

    def send_message(self, chat_id: int, text: str) -> dict[str, Any]:
        if not self._bot_token:
            self._logger.info("telegram.send_message.dry_run", chat_id=chat_id, text=text)
            return {"ok": False, "dry_run": True, "text": text}
        try:
            result = self._call("sendMessage", {"chat_id": chat_id, "text": text})
        except RemoteUnavailable:
            inc("notifications_total", ok="false")
            raise
        inc("notifications_total", ok="true")
        return {"ok": True, "result": result}
