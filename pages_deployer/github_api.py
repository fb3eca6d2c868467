# github_api.py
import asyncio
import logging
from typing import Optional

import httpx

from .errors import PublishFailed
from .settings import Settings

logger = logging.getLogger("pages_deployer.github")

PAGE_SIZE = 100
PAGES_MAX_RETRIES = 5
PAGES_BASE_DELAY = 3


class GitHubClient:
    """Thin wrapper over the GitHub REST endpoints the publisher needs."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None, sleep=asyncio.sleep):
        self.settings = settings
        self.transport = transport
        self.sleep = sleep

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"token {self.settings.GITHUB_TOKEN}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.GITHUB_API_BASE,
            headers=self.headers,
            timeout=45,
            transport=self.transport,
        )

    async def create_repo(self, name: str, description: str) -> dict:
        payload = {"name": name, "description": description, "private": False, "auto_init": True}
        logger.info(f"[GITHUB] Creating remote repo '{name}'")
        async with self._client() as client:
            try:
                resp = await client.post("/user/repos", json=payload)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"[GITHUB] Repo creation failed: {e.response.text}")
                raise PublishFailed(f"Could not create repository '{name}': HTTP {e.response.status_code}") from e
            except httpx.HTTPError as e:
                raise PublishFailed(f"Could not create repository '{name}': {e!r}") from e
        repo = resp.json()
        logger.info(f"[GITHUB] Repo created: {repo.get('html_url')}")
        return repo

    async def find_repo(self, name: str) -> Optional[dict]:
        """Scan the authenticated user's repositories for ``name``."""
        page = 1
        async with self._client() as client:
            while True:
                try:
                    resp = await client.get("/user/repos", params={"per_page": PAGE_SIZE, "page": page, "affiliation": "owner"})
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    raise PublishFailed(f"Could not list repositories: {e!r}") from e
                repos = resp.json()
                for repo in repos:
                    if repo.get("name") == name:
                        return repo
                if len(repos) < PAGE_SIZE:
                    return None
                page += 1

    async def enable_pages(self, owner: str, repo: str, branch: str) -> bool:
        """Point GitHub Pages at the root of ``branch``. Failures are logged, not raised."""
        url = f"/repos/{owner}/{repo}/pages"
        payload = {"source": {"branch": branch, "path": "/"}}
        async with self._client() as client:
            for attempt in range(PAGES_MAX_RETRIES):
                try:
                    current = await client.get(url)
                    if current.status_code == 200:
                        resp = await client.put(url, json=payload)
                    else:
                        resp = await client.post(url, json=payload)
                    resp.raise_for_status()
                    logger.info(f"[GITHUB] Pages configured for {owner}/{repo} ({branch})")
                    return True
                except httpx.HTTPStatusError as e:
                    text = e.response.text
                    if e.response.status_code == 422 and "branch must exist" in text and attempt < PAGES_MAX_RETRIES - 1:
                        delay = PAGES_BASE_DELAY * (2 ** attempt)
                        logger.warning(f"[GITHUB] Pages timing issue, retrying in {delay}s")
                        await self.sleep(delay)
                        continue
                    logger.warning(f"[GITHUB] Could not update Pages settings: HTTP {e.response.status_code} {text}")
                    return False
                except httpx.HTTPError as e:
                    logger.warning(f"[GITHUB] Could not update Pages settings: {e!r}")
                    return False
        return False
