# publisher.py
import asyncio
import logging
import os
import re
import shutil
import stat
import tempfile
from typing import Dict, List, Optional, Union
from urllib.parse import quote, urlsplit, urlunsplit

from .attachments import LoadedAttachment
from .errors import ProjectNotFound, PublishFailed
from .generator import Generator
from .github_api import GitHubClient
from .models import PublishResult, TaskRequest
from .settings import Settings
from .templates import SUPPORTING_FILES, supporting_files
from .vcs import VersionControl

logger = logging.getLogger("pages_deployer.publisher")

ENTRY_DOCUMENT = "index.html"
# kept from the previous round when already present in the repository
PRESERVED_ON_REVISION = ("LICENSE", ".gitignore", "package.json")
# attachments may not take these names
RESERVED_NAMES = frozenset((ENTRY_DOCUMENT, ".git") + SUPPORTING_FILES)


def slugify(task: str) -> str:
    slug = re.sub(r"[^a-z0-9-]+", "-", task.lower())
    return re.sub(r"-{2,}", "-", slug).strip("-")


def publishable_attachments(attachments: List[LoadedAttachment]) -> List[LoadedAttachment]:
    kept = []
    for att in attachments:
        if att.name in RESERVED_NAMES or att.name.lower() == ".git":
            logger.warning(f"[PUBLISH] Skipping attachment {att.name!r}: name is reserved for generated files")
            continue
        kept.append(att)
    return kept


def remove_local_path(path: str):
    if not os.path.exists(path):
        return

    def onexc(func, path_arg, exc):
        # read-only files inside .git/objects
        os.chmod(path_arg, stat.S_IWUSR)
        func(path_arg)

    logger.info(f"[CLEANUP] Removing local directory: {path}")
    shutil.rmtree(path, onexc=onexc)


def write_files(root: str, files: Dict[str, Union[str, bytes]]):
    for filename, content in files.items():
        file_path = os.path.join(root, filename)
        if isinstance(content, bytes):
            with open(file_path, "wb") as f:
                f.write(content)
        else:
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(content)
        logger.info(f"   -> Wrote: {filename} (bytes: {len(content)})")


class Publisher:
    """Creates or updates the GitHub repository and Pages site for a task."""

    def __init__(self, settings: Settings, github: GitHubClient, vcs: VersionControl, generator: Generator):
        self.settings = settings
        self.github = github
        self.vcs = vcs
        self.generator = generator

    async def create_project(self, request: TaskRequest, artifact: str, attachments: List[LoadedAttachment]) -> PublishResult:
        slug = self._slug(request.task)
        repo = await self.github.create_repo(slug, description=f"Auto-generated: {request.brief[:60]}")
        return await self._publish(repo, request, attachments, artifact=artifact)

    async def update_project(self, request: TaskRequest, attachments: List[LoadedAttachment]) -> PublishResult:
        slug = self._slug(request.task)
        repo = await self.github.find_repo(slug)
        if repo is None:
            raise ProjectNotFound(slug)
        logger.info(f"[PUBLISH] Found existing repo: {repo.get('html_url')}")
        return await self._publish(repo, request, attachments)

    def _slug(self, task: str) -> str:
        slug = slugify(task)
        if not slug:
            raise PublishFailed(f"Task identifier {task!r} does not yield a usable repository name")
        return slug

    def authenticated_url(self, clone_url: str, owner: str) -> str:
        parts = urlsplit(clone_url)
        user = quote(self.settings.GITHUB_USERNAME or owner, safe="")
        token = quote(self.settings.GITHUB_TOKEN, safe="")
        host = parts.netloc.rsplit("@", 1)[-1]
        return urlunsplit((parts.scheme, f"{user}:{token}@{host}", parts.path, "", ""))

    async def _publish(self, repo: dict, request: TaskRequest, attachments: List[LoadedAttachment], artifact: Optional[str] = None) -> PublishResult:
        """Clone ``repo``, write the site, commit and push.

        With no ``artifact`` the current entry document is read from the clone
        and handed to the generator for revision.
        """
        slug = repo["name"]
        owner = repo["owner"]["login"]
        branch = repo.get("default_branch") or "main"
        clone_url = repo.get("clone_url") or f"https://github.com/{owner}/{slug}.git"
        pages_url = f"{self.settings.pages_base_for(owner)}/{slug}/"

        attachments = publishable_attachments(attachments)
        os.makedirs(self.settings.WORK_DIR, exist_ok=True)
        local_path = tempfile.mkdtemp(prefix=f"{slug}-", dir=self.settings.WORK_DIR)
        try:
            logger.info(f"[GIT] Cloning {repo.get('html_url', clone_url)} into {local_path}")
            await asyncio.to_thread(self.vcs.clone_into, self.authenticated_url(clone_url, owner), local_path)

            revising = artifact is None
            if revising:
                existing = await asyncio.to_thread(self._read_entry_document, local_path)
                artifact = await self.generator.revise(existing, request.brief, request.checks)

            files: Dict[str, Union[str, bytes]] = supporting_files(
                task=request.task,
                slug=slug,
                brief=request.brief,
                checks=request.checks,
                email=request.email,
                clone_url=clone_url,
                pages_url=pages_url,
                round_index=request.round,
                extra_files=[a.name for a in attachments],
            )
            if revising:
                for name in PRESERVED_ON_REVISION:
                    if os.path.exists(os.path.join(local_path, name)):
                        files.pop(name)
            for att in attachments:
                files[att.name] = att.data
            files[ENTRY_DOCUMENT] = artifact
            await asyncio.to_thread(write_files, local_path, files)

            if revising:
                message = f"Round {request.round}: Improved app - {request.brief[:50]}"
            else:
                message = f"Initial commit: Auto-generated app for {request.task}"
            await asyncio.to_thread(self.vcs.commit, local_path, message, request.email)
            await asyncio.to_thread(self.vcs.push, local_path, branch)
            commit_sha = await asyncio.to_thread(self.vcs.head_revision, local_path)
        finally:
            await asyncio.to_thread(remove_local_path, local_path)

        await self.github.enable_pages(owner, slug, branch)
        result = PublishResult(repo_url=repo["html_url"], commit_sha=commit_sha, pages_url=pages_url, owner=owner)
        logger.info(f"[PUBLISH] Repo ready: {result.repo_url} Pages: {result.pages_url} Commit: {result.commit_sha}")
        return result

    @staticmethod
    def _read_entry_document(local_path: str) -> str:
        idx_path = os.path.join(local_path, ENTRY_DOCUMENT)
        if not os.path.exists(idx_path):
            logger.warning(f"[PUBLISH] No existing {ENTRY_DOCUMENT} in clone; revising from empty document")
            return ""
        with open(idx_path, "r", encoding="utf-8") as f:
            return f.read()
