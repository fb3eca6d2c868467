# vcs.py
import logging
from typing import Protocol

import git

from .errors import PublishFailed

logger = logging.getLogger("pages_deployer.vcs")

GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class VersionControl(Protocol):
    """The git operations the publisher relies on. All calls are blocking."""

    def clone_into(self, remote_url: str, path: str) -> None: ...

    def commit(self, path: str, message: str, author_email: str) -> None: ...

    def push(self, path: str, branch: str) -> None: ...

    def head_revision(self, path: str) -> str: ...


class GitVersionControl:
    """VersionControl backed by the local git binary through GitPython."""

    def clone_into(self, remote_url: str, path: str) -> None:
        try:
            git.Repo.clone_from(remote_url, path, env=GIT_ENV)
        except git.GitCommandError as e:
            # stderr may echo the tokenized remote URL
            raise PublishFailed(f"git clone failed with exit status {e.status}") from None
        logger.info(f"[GIT] Cloned into {path}")

    def commit(self, path: str, message: str, author_email: str) -> None:
        repo = self._open(path)
        try:
            with repo.config_writer() as cw:
                cw.set_value("user", "name", author_email)
                cw.set_value("user", "email", author_email)
            repo.git.add(A=True)
            actor = git.Actor(author_email, author_email)
            repo.index.commit(message, author=actor, committer=actor)
        except git.GitCommandError as e:
            raise PublishFailed(f"git commit failed: {e.stderr.strip() if e.stderr else e}") from e
        logger.info(f"[GIT] Committed: {repo.head.object.hexsha}")

    def push(self, path: str, branch: str) -> None:
        repo = self._open(path)
        try:
            with repo.git.custom_environment(**GIT_ENV):
                repo.git.push("origin", f"HEAD:{branch}")
        except git.GitCommandError as e:
            raise PublishFailed(f"git push failed with exit status {e.status}") from None
        logger.info(f"[GIT] Pushed to origin/{branch}")

    def head_revision(self, path: str) -> str:
        try:
            return self._open(path).head.object.hexsha
        except ValueError as e:
            # unborn branch
            raise PublishFailed(f"working copy {path} has no commits") from e

    @staticmethod
    def _open(path: str) -> git.Repo:
        try:
            return git.Repo(path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise PublishFailed(f"not a git working copy: {path}") from e
