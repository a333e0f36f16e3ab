from __future__ import annotations

from typing import Any

import httpx

from ..core.config import get_settings
from ..core.logging import get_logger
from ..errors import RemoteUnavailable
from ..schemas.gitlab import GitLabUser, MergeRequest, ProjectMember

PER_PAGE = 100


class GitLabClient:
    """Thin GitLab REST v4 adapter acting as the service account."""

    def __init__(self) -> None:
        settings = get_settings()
        self._base_url: str = settings.gitlab_url.rstrip("/") + "/api/v4"
        self._token: str | None = settings.gitlab_private_token
        self._timeout = float(settings.http_timeout_sec)
        self._logger = get_logger(__name__)

    def _headers(self) -> dict[str, str]:
        return {"PRIVATE-TOKEN": self._token or ""}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            with httpx.Client(timeout=self._timeout, headers=self._headers()) as client:
                resp = client.request(method, f"{self._base_url}{path}", params=params, json=json)
        except httpx.HTTPError as exc:
            raise RemoteUnavailable("gitlab", f"{method} {path}: {exc}") from exc
        if resp.status_code >= 300:
            raise RemoteUnavailable(
                "gitlab", f"{method} {path}: HTTP {resp.status_code}", resp.status_code
            )
        return resp

    def _get_all(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        # Follows X-Next-Page until GitLab reports no further page
        items: list[dict[str, Any]] = []
        page: str | None = "1"
        while page:
            query = dict(params or {}, per_page=PER_PAGE, page=page)
            resp = self._request("GET", path, params=query)
            items.extend(resp.json())
            page = resp.headers.get("X-Next-Page") or None
        return items

    def get_current_user(self) -> GitLabUser:
        return GitLabUser.model_validate(self._request("GET", "/user").json())

    def get_assigned_merge_requests(self) -> list[MergeRequest]:
        rows = self._get_all(
            "/merge_requests", {"scope": "assigned_to_me", "state": "opened"}
        )
        return [MergeRequest.model_validate(row) for row in rows]

    def get_project_members(self, project_id: int) -> list[ProjectMember]:
        rows = self._get_all(f"/projects/{project_id}/members/all")
        return [ProjectMember.model_validate(row) for row in rows]

    def change_assignee(self, project_id: int, iid: int, user_id: int) -> dict[str, Any]:
        resp = self._request(
            "PUT",
            f"/projects/{project_id}/merge_requests/{iid}",
            json={"assignee_id": user_id},
        )
        self._logger.info(
            "gitlab.assignee_changed", project_id=project_id, iid=iid, user_id=user_id
        )
        return resp.json()
