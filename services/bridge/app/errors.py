"""Error types raised by the bridge loops and the remote clients."""

from __future__ import annotations

import re


class BridgeError(Exception):
    """Base class for failures the loops know how to report."""


class RemoteUnavailable(BridgeError):
    """A Telegram or GitLab call failed at transport level or was rejected."""

    def __init__(self, service: str, detail: str, status_code: int | None = None) -> None:
        super().__init__(f"{service} unavailable: {detail}")
        self.service = service
        self.detail = detail
        self.status_code = status_code


class NoEligibleReviewer(BridgeError):
    """Nobody in the project may review this merge request."""

    def __init__(self, project_id: int, iid: int) -> None:
        super().__init__(f"no eligible reviewer for merge request {project_id}!{iid}")
        self.project_id = project_id
        self.iid = iid


_PG_MISSING_RELATION_RE = re.compile(r'relation "(?P<table>[^"]+)" does not exist', re.IGNORECASE)
_SQLITE_MISSING_TABLE_RE = re.compile(r"no such table:\s*(?P<table>[A-Za-z0-9_]+)", re.IGNORECASE)


def _unwrap_exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def missing_table_name(exc: BaseException) -> str | None:
    """Best-effort extraction of the missing table name from a DB exception."""
    for e in _unwrap_exception_chain(exc):
        message = str(e)
        match = _PG_MISSING_RELATION_RE.search(message) or _SQLITE_MISSING_TABLE_RE.search(message)
        if match:
            return match.group("table")
    return None
