from __future__ import annotations

from ..core.config import DEFAULT_NOTIFICATION_TEMPLATE


def format_assignment_notice(
    telegram_username: str,
    web_url: str | None,
    template: str = DEFAULT_NOTIFICATION_TEMPLATE,
) -> str:
    return template.format(username=telegram_username, url=web_url or "")
