# models.py
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    return utc_now().isoformat().replace("+00:00", "Z")


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str  # data URI or http(s) url


class TaskRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    task: str
    round: int
    nonce: str
    secret: str
    brief: str
    evaluation_url: str
    checks: List[str] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)


class PublishResult(BaseModel):
    repo_url: str
    commit_sha: str
    pages_url: str
    owner: str


class ReportPayload(BaseModel):
    email: str
    task: str
    round: int
    nonce: str
    repo_url: str
    commit_sha: str
    pages_url: str

    @classmethod
    def build(cls, request: TaskRequest, result: PublishResult) -> "ReportPayload":
        return cls(
            email=request.email,
            task=request.task,
            round=request.round,
            nonce=request.nonce,
            repo_url=result.repo_url,
            commit_sha=result.commit_sha,
            pages_url=result.pages_url,
        )


class PipelineState(str, Enum):
    DISPATCHED = "dispatched"
    SETTLING = "settling"
    REPORTED = "reported"
    FAILED = "failed"


class PipelineRun(BaseModel):
    """In-memory record of one dispatched request, exposed on /status."""

    task: str
    round: int
    nonce: str
    state: PipelineState = PipelineState.DISPATCHED
    error: Optional[str] = None
    result: Optional[PublishResult] = None
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    def finish(self, state: PipelineState, error: Optional[str] = None):
        self.state = state
        self.error = error
        self.finished_at = utc_now()
