from __future__ import annotations

import threading
from abc import ABCMeta, abstractmethod
from typing import Any

from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.logging import get_logger
from ..core.metrics import inc
from ..errors import missing_table_name
from .chat_ingestion import ingest_updates
from .gitlab_client import GitLabClient
from .review_assignment import UniformChooser, assign_review_requests
from .telegram_client import TelegramClient


class PeriodicRunner(threading.Thread, metaclass=ABCMeta):
    """Fixed-delay background loop.

    The next cycle is scheduled ``interval_sec`` after the previous one
    finished. ``run_once`` is guarded so a cycle never overlaps another cycle
    of the same runner, including manual triggers from other threads.
    """

    name_prefix = "runner"

    def __init__(self, session_factory, interval_sec: float, initial_delay_sec: float = 0) -> None:
        super().__init__(daemon=True, name=self.name_prefix)
        self._session_factory = session_factory
        self._interval = interval_sec
        self._initial_delay = initial_delay_sec
        self._stop_event = threading.Event()
        self._guard = threading.Lock()
        self._logger = get_logger(__name__)
        self.cycles = 0
        self.last_error: str | None = None

    def run(self) -> None:  # pragma: no cover - background loop
        if self._stop_event.wait(self._initial_delay):
            return
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self._interval)

    def run_once(self) -> bool:
        if not self._guard.acquire(blocking=False):
            self._logger.info(f"{self.name_prefix}.cycle_skipped", reason="already running")
            return False
        try:
            with self._session_factory() as session:
                result = self.cycle(session)
            self.last_error = None
            inc("cycles_total", loop=self.name_prefix, ok="true")
            self._logger.info(f"{self.name_prefix}.cycle_complete", **self.describe(result))
        except Exception as exc:
            # Keep loop alive; the next tick retries
            self.last_error = str(exc)
            inc("cycles_total", loop=self.name_prefix, ok="false")
            table = missing_table_name(exc)
            if table:
                self._logger.error(
                    f"{self.name_prefix}.schema_missing",
                    table=table,
                    hint="run `alembic upgrade head`",
                )
            else:
                self._logger.warning(f"{self.name_prefix}.cycle_error", error=str(exc))
        finally:
            self.cycles += 1
            self._guard.release()
        return True

    @abstractmethod
    def cycle(self, session: Session) -> Any:
        """Run one pass of the loop inside ``session``."""

    def describe(self, result: Any) -> dict[str, Any]:
        return {}

    def stop(self) -> None:
        self._stop_event.set()


class IngestionRunner(PeriodicRunner):
    name_prefix = "ingestion"

    def __init__(self, session_factory, settings: Settings, telegram: TelegramClient | None = None) -> None:
        super().__init__(
            session_factory,
            settings.ingestion_interval_sec,
            settings.ingestion_initial_delay_sec,
        )
        self._telegram = telegram or TelegramClient()

    def cycle(self, session: Session):
        return ingest_updates(session, self._telegram)

    def describe(self, result) -> dict[str, Any]:
        return {"updates": result.updates, "mappings": result.mappings, "offset": result.offset}


class AssignmentRunner(PeriodicRunner):
    name_prefix = "assignment"

    def __init__(
        self,
        session_factory,
        settings: Settings,
        gitlab: GitLabClient | None = None,
        telegram: TelegramClient | None = None,
    ) -> None:
        super().__init__(
            session_factory,
            settings.assignment_interval_sec,
            settings.assignment_initial_delay_sec,
        )
        self._gitlab = gitlab or GitLabClient()
        self._telegram = telegram or TelegramClient()
        self._chooser = UniformChooser(settings.reviewer_seed)
        self._min_access_level = settings.min_reviewer_access_level
        self._template = settings.notification_template

    def cycle(self, session: Session):
        return assign_review_requests(
            session,
            self._gitlab,
            self._telegram,
            chooser=self._chooser,
            min_access_level=self._min_access_level,
            template=self._template,
        )

    def describe(self, result) -> dict[str, Any]:
        return {
            "assigned": len(result.assigned),
            "failed": len(result.failed),
            "skipped_merged": result.skipped_merged,
            "notified": result.notified,
        }


def maybe_start_runners(app, session_factory) -> list[PeriodicRunner]:
    settings = get_settings()
    logger = get_logger(__name__)
    runners: list[PeriodicRunner] = []
    if settings.ingestion_enabled:
        runners.append(IngestionRunner(session_factory, settings))
    if settings.assignment_enabled:
        runners.append(AssignmentRunner(session_factory, settings))
    for t in runners:
        t.start()
        logger.info(f"{t.name_prefix}.started", interval_sec=t._interval)
    app.state.runners = runners
    return runners


def maybe_stop_runners(app) -> None:
    for t in getattr(app.state, "runners", []):
        t.stop()
