import base64
import json
import os
from typing import Any, Dict, List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from astra.database import Base, enable_sqlite_foreign_keys, get_db
from astra.main import app
from astra.services.ai import AIClient
from astra.services.github import GitHubClient

VALID_TOKEN = "ghp_valid"
GITHUB_TEST_URL = "https://api.github.test"


class FakeAIClient(AIClient):
    """Stands in for the LLM: returns canned content and records every call."""

    def __init__(self, content: Optional[str] = "**Answer** - Hello there.", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def chat(self, messages, **kwargs):
        self.calls.append({"messages": messages, **kwargs})
        if self.error:
            raise self.error
        return {
            "id": "chatcmpl-test",
            "model": kwargs.get("model") or "gpt-4o",
            "content": self.content,
            "finish_reason": "stop",
            "usage": {"prompt_tokens": 12, "completion_tokens": 7, "total_tokens": 19},
        }

    async def chat_json(self, messages, **kwargs):
        return await self.chat(messages, response_format={"type": "json_object"}, **kwargs)


class FakeGitHub:
    """In-memory GitHub REST API served through ``httpx.MockTransport``."""

    def __init__(self):
        self.repos: Dict[str, Dict[str, Any]] = {
            "octo/hello": {
                "name": "hello",
                "full_name": "octo/hello",
                "description": "Hello world service",
                "language": "Python",
                "stargazers_count": 3,
                "forks_count": 1,
                "open_issues_count": 0,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-06-01T00:00:00Z",
                "default_branch": "trunk",
            }
        }
        self.files: Dict[str, str] = {
            "README.md": "# Hello\n",
            "package.json": json.dumps({"dependencies": {"react": "18.2.0"}, "devDependencies": {"vitest": "1.0.0"}}),
            "src/app.py": "print('hi')\n",
        }
        self.branches = ["trunk", "feature/x"]
        self.fail_commits = False
        self.outage = False
        self.puts: List[Dict[str, Any]] = []
        self.pulls: List[Dict[str, Any]] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, token: str) -> GitHubClient:
        return GitHubClient(token, base_url=GITHUB_TEST_URL, transport=self.transport())

    def _entries(self, directory: str) -> Optional[List[Dict[str, str]]]:
        prefix = f"{directory}/" if directory else ""
        entries: Dict[str, Dict[str, str]] = {}
        for path in self.files:
            if not path.startswith(prefix):
                continue
            rest = path[len(prefix):]
            name = rest.split("/", 1)[0]
            kind = "dir" if "/" in rest else "file"
            entries[name] = {"name": name, "path": prefix + name, "type": kind}
        if directory and not entries:
            return None
        return sorted(entries.values(), key=lambda e: e["path"])

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != f"Bearer {VALID_TOKEN}":
            return httpx.Response(401, json={"message": "Bad credentials"})

        path = request.url.path.lstrip("/")
        if path == "user":
            return httpx.Response(200, json={"login": "octocat"})
        if self.outage:
            return httpx.Response(500, json={"message": "Server Error"})

        parts = path.split("/", 4)
        if parts[0] != "repos" or len(parts) < 3:
            return httpx.Response(404, json={"message": "Not Found"})
        full_name = f"{parts[1]}/{parts[2]}"
        repo = self.repos.get(full_name)
        if repo is None:
            return httpx.Response(404, json={"message": "Not Found"})

        if len(parts) == 3:
            return httpx.Response(200, json=repo)

        resource = parts[3]
        if resource == "branches" and request.method == "GET":
            return httpx.Response(200, json=[{"name": b, "commit": {"sha": "0" * 40}} for b in self.branches])

        if resource == "pulls" and request.method == "POST":
            body = json.loads(request.content)
            self.pulls.append(body)
            number = len(self.pulls)
            return httpx.Response(201, json={"number": number, "html_url": f"https://github.com/{full_name}/pull/{number}"})

        if resource == "contents":
            file_path = parts[4] if len(parts) > 4 else ""
            if request.method == "PUT":
                if self.fail_commits:
                    return httpx.Response(409, json={"message": "Conflict"})
                body = json.loads(request.content)
                self.puts.append({"path": file_path, **body})
                self.files[file_path] = base64.b64decode(body["content"]).decode()
                return httpx.Response(
                    200,
                    json={
                        "content": {"path": file_path},
                        "commit": {"sha": "abc123", "html_url": f"https://github.com/{full_name}/commit/abc123"},
                    },
                )
            if file_path in self.files:
                return httpx.Response(200, json={
                    "type": "file",
                    "path": file_path,
                    "sha": f"sha-{file_path}",
                    "encoding": "base64",
                    "content": base64.b64encode(self.files[file_path].encode()).decode(),
                })
            entries = self._entries(file_path)
            if entries is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=entries)

        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine.sync_engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_ai(monkeypatch) -> FakeAIClient:
    fake = FakeAIClient()
    monkeypatch.setattr("astra.routers.chat.get_ai_client", lambda *args, **kwargs: fake)
    monkeypatch.setattr("astra.routers.github.get_ai_client", lambda *args, **kwargs: fake)
    return fake


@pytest.fixture
def fake_github(monkeypatch) -> FakeGitHub:
    fake = FakeGitHub()
    monkeypatch.setattr("astra.routers.github.GitHubClient", fake.client)
    return fake


@pytest.fixture
async def credentials(client, fake_github) -> Dict[str, Any]:
    response = await client.post("/api/github/credentials", json={"username": "octocat", "token": VALID_TOKEN})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def repository(client, credentials) -> Dict[str, Any]:
    response = await client.post(
        "/api/github/repositories",
        json={"credentialsId": credentials["id"], "owner": "octo", "repo": "hello"},
    )
    assert response.status_code == 201
    return response.json()
