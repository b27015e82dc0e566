import json

import pytest

from astra.models import GithubRepository
from astra.services.analysis import assist_messages, collect_repository_data, parse_json_response


async def test_collect_without_readme_or_package_json(fake_github):
    fake_github.files = {"lib/core.py": "x = 1\n", "lib/extra/util.py": "y = 2\n"}

    data = await collect_repository_data(fake_github.client("ghp_valid"), "octo", "hello", "trunk")

    assert data["readme"] == ""
    assert data["dependencies"] == {}
    assert data["devDependencies"] == {}
    assert data["structure"] == {
        "lib": [
            {"name": "core.py", "type": "file", "path": "lib/core.py"},
            {"name": "extra", "type": "dir", "path": "lib/extra"},
        ]
    }


async def test_collect_ignores_invalid_package_json(fake_github):
    fake_github.files["package.json"] = "{not json"

    data = await collect_repository_data(fake_github.client("ghp_valid"), "octo", "hello")

    assert data["dependencies"] == {}
    assert data["stars"] == 3


def test_assist_messages_without_target_path():
    repository = GithubRepository(owner="octo", repo="hello", default_branch=None, summary='{"purpose": "x"}')

    system, user = assist_messages(repository, "Add logging", {"a.py": None})

    assert "octo/hello" in system["content"]
    assert "branch main" in system["content"]
    assert "focus on the file" not in system["content"]
    payload = json.loads(user["content"])
    assert payload["repository"]["summary"] == '{"purpose": "x"}'
    assert payload["targetPath"] is None


@pytest.mark.parametrize(
    "text",
    [
        '{"analysis": "ok", "changes": []}',
        '```json\n{"analysis": "ok", "changes": []}\n```',
        '  {"analysis": "ok", "changes": []}  \n',
    ],
)
def test_parse_json_response(text):
    assert parse_json_response(text) == {"analysis": "ok", "changes": []}


@pytest.mark.parametrize("text", ["not json", "[1, 2]", ""])
def test_parse_json_response_rejects(text):
    with pytest.raises(ValueError):
        parse_json_response(text)
