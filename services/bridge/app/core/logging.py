import logging
from typing import Any, Dict

import structlog
import re

# Telegram bot tokens look like "123456789:AA..."; they also leak through /bot<token>/ URLs
_BOT_URL_RE = re.compile(r"/bot[0-9]+:[A-Za-z0-9_-]+")
_BOT_TOKEN_RE = re.compile(r"\b[0-9]{6,}:[A-Za-z0-9_-]{30,}\b")
_GITLAB_TOKEN_RE = re.compile(r"glpat-[A-Za-z0-9_-]+")


def _configure_stdlib_logging() -> None:
    logging.basicConfig(
        format="%(message)s",
        level=logging.INFO,
    )


def _redact_string(value: str) -> str:
    value = _BOT_URL_RE.sub("/bot[REDACTED]", value)
    value = _BOT_TOKEN_RE.sub("[REDACTED]", value)
    return _GITLAB_TOKEN_RE.sub("glpat-[REDACTED]", value)


def configure_structlog() -> None:
    _configure_stdlib_logging()

    secret_keys = {
        "authorization",
        "private-token",
        "telegram_bot_token",
        "gitlab_private_token",
        "token",
    }

    def _redact_event_logger(_logger, _name, event_dict: Dict[str, Any]):  # type: ignore[override]
        for k in list(event_dict.keys()):
            lk = str(k).lower()
            if lk in secret_keys:
                event_dict[k] = "[REDACTED]"
        for k, v in list(event_dict.items()):
            if isinstance(v, str):
                event_dict[k] = _redact_string(v)
        return event_dict

    structlog.configure(
        processors=[
            _redact_event_logger,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)
