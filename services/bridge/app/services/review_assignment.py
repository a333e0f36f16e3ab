from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Sequence

from sqlalchemy.orm import Session

from ..core.config import DEFAULT_NOTIFICATION_TEMPLATE
from ..core.logging import get_logger
from ..core.metrics import inc
from ..errors import NoEligibleReviewer, RemoteUnavailable
from ..schemas.gitlab import GitLabUser, MergeRequest, ProjectMember
from .gitlab_client import GitLabClient
from .identity_store import IdentityMappingStore
from .notifications import format_assignment_notice
from .telegram_client import TelegramClient

DEVELOPER_ACCESS_LEVEL = 30

logger = get_logger(__name__)

Chooser = Callable[[Sequence[ProjectMember]], ProjectMember]


class UniformChooser:
    """Uniform pick over the eligible reviewers; seed it for reproducible runs."""

    def __init__(self, seed: int | None = None) -> None:
        self._random = random.Random(seed)

    def __call__(self, candidates: Sequence[ProjectMember]) -> ProjectMember:
        return self._random.choice(list(candidates))


@dataclass
class AssignmentSummary:
    assigned: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped_merged: int = 0
    notified: int = 0


def _same_user(member: GitLabUser, other: GitLabUser | None) -> bool:
    return other is not None and member.id == other.id


def eligible_reviewers(
    members: Sequence[ProjectMember],
    service_account: GitLabUser,
    author: GitLabUser | None,
    min_access_level: int = DEVELOPER_ACCESS_LEVEL,
) -> list[ProjectMember]:
    return [
        m
        for m in members
        if not _same_user(m, service_account)
        and not _same_user(m, author)
        and m.access_level >= min_access_level
    ]


def _notify_assignee(
    store: IdentityMappingStore,
    telegram: TelegramClient,
    assignee: ProjectMember,
    mr: MergeRequest,
    template: str,
) -> int:
    mappings = store.find_by_gitlab_username(assignee.username)
    if not mappings:
        logger.debug("assignment.mapping_absent", gitlab_username=assignee.username)
        return 0
    sent = 0
    for mapping in mappings:
        text = format_assignment_notice(mapping.telegram_username, mr.web_url, template)
        try:
            result = telegram.send_message(mapping.telegram_chat_id, text)
            if result.get("ok"):
                sent += 1
        except RemoteUnavailable as exc:
            # the assignment already happened; the next notice is independent
            logger.warning(
                "assignment.notify_failed",
                telegram_username=mapping.telegram_username,
                error=str(exc),
            )
    return sent


def assign_merge_request(
    mr: MergeRequest,
    service_account: GitLabUser,
    gitlab: GitLabClient,
    telegram: TelegramClient,
    store: IdentityMappingStore,
    chooser: Chooser,
    min_access_level: int = DEVELOPER_ACCESS_LEVEL,
    template: str = DEFAULT_NOTIFICATION_TEMPLATE,
) -> tuple[ProjectMember, int]:
    members = gitlab.get_project_members(mr.project_id)
    candidates = eligible_reviewers(members, service_account, mr.author, min_access_level)
    if not candidates:
        raise NoEligibleReviewer(mr.project_id, mr.iid)

    assignee = chooser(candidates)
    gitlab.change_assignee(mr.project_id, mr.iid, assignee.id)
    notified = _notify_assignee(store, telegram, assignee, mr, template)
    return assignee, notified


def assign_review_requests(
    session: Session,
    gitlab: GitLabClient,
    telegram: TelegramClient,
    chooser: Chooser | None = None,
    min_access_level: int = DEVELOPER_ACCESS_LEVEL,
    template: str = DEFAULT_NOTIFICATION_TEMPLATE,
) -> AssignmentSummary:
    """Hand every open merge request assigned to the service account to a reviewer.

    Fetching the service account and its merge requests may raise; that aborts
    the cycle. Everything after that is isolated per merge request.
    """
    chooser = chooser or UniformChooser()
    service_account = gitlab.get_current_user()
    merge_requests = gitlab.get_assigned_merge_requests()
    store = IdentityMappingStore(session)

    summary = AssignmentSummary()
    for mr in merge_requests:
        ref = f"{mr.project_id}!{mr.iid}"
        if mr.is_merged:
            summary.skipped_merged += 1
            continue
        try:
            assignee, notified = assign_merge_request(
                mr,
                service_account,
                gitlab,
                telegram,
                store,
                chooser,
                min_access_level=min_access_level,
                template=template,
            )
        except NoEligibleReviewer as exc:
            session.rollback()
            summary.failed.append(ref)
            inc("assignments_total", ok="false")
            logger.warning("assignment.no_eligible_reviewer", merge_request=ref, error=str(exc))
            continue
        except Exception as exc:  # noqa: BLE001 - one merge request must not stop the others
            # an aborted transaction would fail every later mapping lookup
            session.rollback()
            summary.failed.append(ref)
            inc("assignments_total", ok="false")
            logger.error(
                "assignment.request_failed",
                merge_request=ref,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            continue
        summary.assigned.append(ref)
        summary.notified += notified
        inc("assignments_total", ok="true")
        logger.info(
            "assignment.assigned",
            merge_request=ref,
            assignee=assignee.username,
            notified=notified,
        )
    return summary
