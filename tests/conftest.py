"""Shared test fixtures."""

import os

import pytest

from pages_deployer.models import Attachment, TaskRequest
from pages_deployer.settings import Settings


class SleepRecorder:
    """Stands in for asyncio.sleep and records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FakeVersionControl:
    """In-memory VersionControl: seeds a clone and snapshots files at commit time."""

    def __init__(self, seed_files=None, fail_on=None, revision="0123456789abcdef0123456789abcdef01234567"):
        self.seed_files = seed_files or {}
        self.fail_on = fail_on
        self.revision = revision
        self.calls = []
        self.snapshot = {}

    def _maybe_fail(self, op):
        if self.fail_on and self.fail_on[0] == op:
            raise self.fail_on[1]

    def clone_into(self, remote_url, path):
        self.calls.append(("clone", remote_url, path))
        self._maybe_fail("clone")
        for name, content in self.seed_files.items():
            with open(os.path.join(path, name), "w", encoding="utf-8") as f:
                f.write(content)

    def commit(self, path, message, author_email):
        self.calls.append(("commit", message, author_email))
        self._maybe_fail("commit")
        self.snapshot = {}
        for name in os.listdir(path):
            with open(os.path.join(path, name), "rb") as f:
                self.snapshot[name] = f.read().decode("utf-8")

    def push(self, path, branch):
        self.calls.append(("push", branch))
        self._maybe_fail("push")

    def head_revision(self, path):
        return self.revision


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        _env_file=None,
        STUDENT_SECRET="s3cret",
        GITHUB_TOKEN="ghp_token",
        GITHUB_USERNAME="octo",
        LLM_API_KEY="llm-key",
        WORK_DIR=str(tmp_path / "work"),
        LOG_FILE_PATH=str(tmp_path / "logs" / "app.log"),
    )


@pytest.fixture()
def sleep_recorder():
    return SleepRecorder()


def make_request(**overrides) -> TaskRequest:
    data = {
        "email": "student@example.com",
        "task": "My Task",
        "round": 1,
        "nonce": "nonce-123",
        "secret": "s3cret",
        "brief": "Build a page that shows the sum of the sales column.",
        "evaluation_url": "https://evaluator.example.com/notify",
        "checks": ["Page has id=total-sales", "document.title is Sales"],
        "attachments": [],
    }
    data.update(overrides)
    data["attachments"] = [a if isinstance(a, Attachment) else Attachment(**a) for a in data["attachments"]]
    return TaskRequest(**data)


@pytest.fixture()
def task_request():
    return make_request()


@pytest.fixture()
def request_factory():
    return make_request


@pytest.fixture()
def vcs_factory():
    return FakeVersionControl
