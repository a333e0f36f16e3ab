from pydantic import BaseModel, ConfigDict


class GitLabUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    username: str
    name: str | None = None


class ProjectMember(GitLabUser):
    access_level: int = 0


class MergeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    iid: int
    project_id: int
    title: str | None = None
    author: GitLabUser | None = None
    merged_by: GitLabUser | None = None
    web_url: str | None = None

    @property
    def is_merged(self) -> bool:
        return self.merged_by is not None
