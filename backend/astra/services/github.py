import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)


class GitHubClient:
    """Thin async wrapper over the GitHub REST API, built per request from stored credentials."""

    def __init__(self, token: str, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token = token
        self.base_url = (base_url or config.GITHUB_API_URL).rstrip("/")
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            transport=self.transport,
            timeout=30,
        )

    async def get_authenticated_user(self) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get("/user")
            response.raise_for_status()
            return response.json()

    async def verify(self) -> bool:
        """True when the token authenticates; failures are logged, not raised."""
        try:
            user = await self.get_authenticated_user()
        except httpx.HTTPError as e:
            logger.warning(f"GitHub authentication failed: {e}")
            return False
        logger.info(f"GitHub authentication successful for user: {user.get('login')}")
        return True

    async def get_repo(self, owner: str, repo: str):
        async with self._client() as client:
            response = await client.get(f"/repos/{owner}/{repo}")
            response.raise_for_status()
            return response.json()

    async def _get_contents(self, owner: str, repo: str, path: str, ref: Optional[str], missing_ok: bool = False):
        """Raw contents API payload; None for a missing path when ``missing_ok``."""
        params = {"ref": ref} if ref else {}
        async with self._client() as client:
            response = await client.get(f"/repos/{owner}/{repo}/contents/{path}", params=params)
        if missing_ok and response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def get_contents(self, owner: str, repo: str, path: str = "", ref: Optional[str] = None):
        return await self._get_contents(owner, repo, path, ref)

    async def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Optional[str]:
        """Decoded text of a file, or None if the path does not exist."""
        data = await self._get_contents(owner, repo, path, ref, missing_ok=True)
        if data is None:
            return None
        if not isinstance(data, dict) or "content" not in data:
            raise ValueError(f"Path {path} does not point to a file")
        if data.get("encoding") == "base64":
            return base64.b64decode(data["content"]).decode("utf-8")
        return data["content"]

    async def get_file_sha(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Optional[str]:
        data = await self._get_contents(owner, repo, path, ref, missing_ok=True)
        if isinstance(data, dict):
            return data.get("sha")
        return None

    async def get_branches(self, owner: str, repo: str) -> List[str]:
        async with self._client() as client:
            response = await client.get(f"/repos/{owner}/{repo}/branches")
            response.raise_for_status()
            return [branch["name"] for branch in response.json()]

    async def commit_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
    ) -> Dict[str, Any]:
        """Create or update a single file; returns the GitHub response with ``commit.html_url``."""
        sha = await self.get_file_sha(owner, repo, path, branch)
        if sha is None:
            logger.info(f"Creating new file: {path}")

        data = {
            "message": message,
            "content": base64.b64encode(content.encode()).decode(),
            "branch": branch,
        }
        if sha:
            data["sha"] = sha
        async with self._client() as client:
            response = await client.put(
                f"/repos/{owner}/{repo}/contents/{path}",
                json=data,
            )
            response.raise_for_status()
            return response.json()

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
    ):
        async with self._client() as client:
            response = await client.post(
                f"/repos/{owner}/{repo}/pulls",
                json={
                    "title": title,
                    "body": body,
                    "head": head,
                    "base": base,
                },
            )
            response.raise_for_status()
            return response.json()
