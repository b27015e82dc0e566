import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .github import GitHubClient

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = """You are a code analysis expert. Analyze the following GitHub repository data and provide a comprehensive summary of the project structure, purpose, main features, and technologies used. Format your response as JSON with the following fields:
{
  "projectName": "Name of the project",
  "purpose": "A brief description of what the project does",
  "technologies": ["List", "of", "technologies", "used"],
  "mainFeatures": ["List", "of", "main", "features"],
  "fileStructure": "A brief description of how the project is organized",
  "developmentStatus": "Active/Inactive/Archived/etc.",
  "suggestedImprovements": ["List", "of", "potential", "improvements"]
}"""

ASSIST_SYSTEM_PROMPT = """You are an expert software developer helping to improve code in a GitHub repository.
The repository is {full_name} and you are looking at branch {branch}.

You have been asked to help with the following request: "{prompt}".
{target}
Analyze the repository structure and provided file context, then generate the appropriate code solution.
If you're suggesting changes to existing files, clearly indicate which parts should be changed.
If you're creating new files, provide the full content for each file.

Format your response as JSON with the following structure:
{{
  "analysis": "Your analysis of the repository and the task",
  "changes": [
    {{
      "path": "path/to/file",
      "content": "Full content of the file or the changes to be made",
      "changeType": "create|modify",
      "commitMessage": "Brief description of what this change does"
    }}
  ],
  "explanation": "Explanation of your solution and how it addresses the request"
}}"""

README_CANDIDATES = ("README.md", "readme.md")


async def _first_readme(github: GitHubClient, owner: str, repo: str, branch: str) -> str:
    for name in README_CANDIDATES:
        try:
            content = await github.get_file_content(owner, repo, name, branch)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not read {name} in {owner}/{repo}: {e}")
            continue
        if content is not None:
            return content
    logger.info(f"No README found in {owner}/{repo}")
    return ""


async def _package_json(github: GitHubClient, owner: str, repo: str, branch: str) -> Optional[Dict]:
    try:
        content = await github.get_file_content(owner, repo, "package.json", branch)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Could not read package.json in {owner}/{repo}: {e}")
        return None
    if content is None:
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        logger.info(f"Invalid package.json in {owner}/{repo}")
        return None
    return data if isinstance(data, dict) else None


async def collect_repository_data(github: GitHubClient, owner: str, repo: str, branch: str = "main") -> Dict[str, Any]:
    """Snapshot of a repository: metadata, top-level layout, README and JS dependencies."""
    info = await github.get_repo(owner, repo)
    root = await github.get_contents(owner, repo, "", branch)

    directories = [item["path"] for item in root if item.get("type") == "dir"] if isinstance(root, list) else []
    structure: Dict[str, List[Dict[str, str]]] = {}
    for directory in directories:
        try:
            contents = await github.get_contents(owner, repo, directory, branch)
        except httpx.HTTPError as e:
            logger.error(f"Error analyzing directory {directory}: {e}")
            continue
        if isinstance(contents, list):
            structure[directory] = [
                {"name": item["name"], "type": item["type"], "path": item["path"]}
                for item in contents
            ]

    package_json = await _package_json(github, owner, repo, branch) or {}
    return {
        "name": info.get("name"),
        "description": info.get("description"),
        "language": info.get("language"),
        "stars": info.get("stargazers_count"),
        "forks": info.get("forks_count"),
        "issues": info.get("open_issues_count"),
        "created": info.get("created_at"),
        "updated": info.get("updated_at"),
        "structure": structure,
        "readme": await _first_readme(github, owner, repo, branch),
        "dependencies": package_json.get("dependencies") or {},
        "devDependencies": package_json.get("devDependencies") or {},
    }


def analysis_messages(repository_data: Dict[str, Any]) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": json.dumps(repository_data, indent=2)},
    ]


def assist_messages(
    repository,
    prompt: str,
    file_contents: Dict[str, Optional[str]],
    target_path: Optional[str] = None,
) -> List[Dict[str, str]]:
    branch = repository.default_branch or "main"
    system = ASSIST_SYSTEM_PROMPT.format(
        full_name=repository.full_name,
        branch=branch,
        prompt=prompt,
        target=f"You should focus on the file at path: {target_path}\n" if target_path else "",
    )
    user = json.dumps({
        "repository": {
            "owner": repository.owner,
            "repo": repository.repo,
            "branch": repository.default_branch,
            "summary": repository.summary,
        },
        "fileContext": file_contents,
        "prompt": prompt,
        "targetPath": target_path,
    })
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def parse_json_response(content: str) -> Dict[str, Any]:
    """Decode the model's JSON object, tolerating a surrounding ```json fence."""
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data
