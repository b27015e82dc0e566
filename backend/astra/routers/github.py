import json
import logging
from datetime import datetime
from typing import Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..errors import github_status, llm_http_exception
from ..models import FileChangeStatus, GithubCredentials, GithubFileChange, GithubRepository
from ..schemas import (
    AssistRequest,
    GithubCredentialsCreate,
    GithubCredentialsOut,
    GithubFileChangeCreate,
    GithubFileChangeOut,
    GithubFileChangeUpdate,
    GithubRepositoryCreate,
    GithubRepositoryOut,
    PullRequestCreate,
)
from ..services.ai import get_ai_client
from ..services.analysis import analysis_messages, assist_messages, collect_repository_data, parse_json_response
from ..services.github import GitHubClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/github", tags=["github"])


async def _get_repository_or_404(db: AsyncSession, repository_id: int) -> GithubRepository:
    repository = await db.get(GithubRepository, repository_id)
    if not repository:
        raise HTTPException(status_code=404, detail="Repository not found")
    return repository


async def _get_credentials_or_404(db: AsyncSession, credentials_id: int) -> GithubCredentials:
    credentials = await db.get(GithubCredentials, credentials_id)
    if not credentials:
        raise HTTPException(status_code=404, detail="GitHub credentials not found")
    return credentials


async def _get_file_change_or_404(db: AsyncSession, file_change_id: int) -> GithubFileChange:
    file_change = await db.get(GithubFileChange, file_change_id)
    if not file_change:
        raise HTTPException(status_code=404, detail="File change not found")
    return file_change


async def connect(credentials: GithubCredentials) -> GitHubClient:
    """A fresh client for these credentials, rejected with 401 if GitHub refuses the token."""
    github = GitHubClient(credentials.token)
    if not await github.verify():
        raise HTTPException(status_code=401, detail="Invalid GitHub credentials")
    return github


async def connect_repository(db: AsyncSession, repository: GithubRepository) -> GitHubClient:
    credentials = await _get_credentials_or_404(db, repository.credentials_id)
    return await connect(credentials)


# Credentials

@router.post("/credentials", response_model=GithubCredentialsOut, status_code=201)
async def create_credentials(request: GithubCredentialsCreate, db: AsyncSession = Depends(get_db)):
    github = GitHubClient(request.token)
    if not await github.verify():
        raise HTTPException(status_code=401, detail="Invalid GitHub credentials")

    credentials = GithubCredentials(username=request.username, token=request.token)
    db.add(credentials)
    await db.commit()
    await db.refresh(credentials)
    return credentials


@router.get("/credentials", response_model=List[GithubCredentialsOut])
async def list_credentials(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(GithubCredentials).order_by(GithubCredentials.id))
    return result.scalars().all()


@router.delete("/credentials/{credentials_id}", status_code=204)
async def delete_credentials(credentials_id: int, db: AsyncSession = Depends(get_db)):
    credentials = await _get_credentials_or_404(db, credentials_id)
    await db.delete(credentials)
    await db.commit()
    return Response(status_code=204)


# Repositories

@router.post("/repositories", response_model=GithubRepositoryOut, status_code=201)
async def create_repository(request: GithubRepositoryCreate, db: AsyncSession = Depends(get_db)):
    credentials = await _get_credentials_or_404(db, request.credentials_id)
    github = await connect(credentials)

    try:
        info = await github.get_repo(request.owner, request.repo)
    except httpx.HTTPError as e:
        logger.warning(f"Repository lookup failed for {request.owner}/{request.repo}: {e}")
        raise HTTPException(status_code=404, detail="Repository not found or access denied")

    repository = GithubRepository(
        credentials_id=credentials.id,
        owner=request.owner,
        repo=request.repo,
        default_branch=request.default_branch or info.get("default_branch") or "main",
    )
    db.add(repository)
    await db.commit()
    await db.refresh(repository)
    return repository


@router.get("/repositories", response_model=List[GithubRepositoryOut])
async def list_repositories(
    credentials_id: Optional[int] = Query(None, alias="credentialsId"),
    db: AsyncSession = Depends(get_db),
):
    query = select(GithubRepository).order_by(GithubRepository.id)
    if credentials_id is not None:
        query = query.where(GithubRepository.credentials_id == credentials_id)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/repositories/{repository_id}", response_model=GithubRepositoryOut)
async def get_repository(repository_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_repository_or_404(db, repository_id)


@router.delete("/repositories/{repository_id}", status_code=204)
async def delete_repository(repository_id: int, db: AsyncSession = Depends(get_db)):
    repository = await _get_repository_or_404(db, repository_id)
    await db.delete(repository)
    await db.commit()
    return Response(status_code=204)


@router.post("/repositories/{repository_id}/analyze", response_model=GithubRepositoryOut)
async def analyze_repository(repository_id: int, db: AsyncSession = Depends(get_db)):
    repository = await _get_repository_or_404(db, repository_id)
    github = await connect_repository(db, repository)

    try:
        repo_data = await collect_repository_data(
            github, repository.owner, repository.repo, repository.default_branch or "main"
        )
    except httpx.HTTPError as e:
        logger.error(f"Error collecting data for {repository.full_name}: {e}")
        if github_status(e) == 404:
            raise HTTPException(status_code=404, detail="Repository not found or access denied")
        raise HTTPException(status_code=500, detail="Failed to analyze GitHub repository")

    ai_client = get_ai_client()
    try:
        result = await ai_client.chat_json(analysis_messages(repo_data))
    except Exception as e:
        logger.error(f"Error analyzing GitHub repository {repository.full_name}: {e}")
        raise llm_http_exception(e, "Failed to analyze GitHub repository")

    repository.summary = result.get("content") or json.dumps(repo_data, indent=2)
    repository.last_analyzed = datetime.utcnow()
    repository.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(repository)
    logger.info(f"Analyzed repository {repository.full_name}")
    return repository


@router.get("/repositories/{repository_id}/branches")
async def list_branches(repository_id: int, db: AsyncSession = Depends(get_db)):
    repository = await _get_repository_or_404(db, repository_id)
    github = await connect_repository(db, repository)
    try:
        branches = await github.get_branches(repository.owner, repository.repo)
    except httpx.HTTPError as e:
        logger.error(f"Failed to list branches for {repository.full_name}: {e}")
        raise HTTPException(status_code=500, detail="Failed to list branches")
    return {"branches": branches}


@router.post("/repositories/{repository_id}/pulls", status_code=201)
async def create_pull_request(repository_id: int, request: PullRequestCreate, db: AsyncSession = Depends(get_db)):
    repository = await _get_repository_or_404(db, repository_id)
    github = await connect_repository(db, repository)
    try:
        result = await github.create_pull_request(
            repository.owner, repository.repo, request.title, request.body,
            request.head, request.base or repository.default_branch or "main",
        )
    except httpx.HTTPError as e:
        logger.error(f"Failed to create pull request for {repository.full_name}: {e}")
        status = github_status(e)
        if status == 422:
            raise HTTPException(status_code=400, detail="GitHub rejected the pull request")
        raise HTTPException(status_code=500, detail="Failed to create pull request")
    return {"url": result.get("html_url"), "number": result.get("number")}


# File changes

@router.post("/repositories/{repository_id}/files", response_model=GithubFileChangeOut, status_code=201)
async def create_file_change(
    repository_id: int,
    request: GithubFileChangeCreate,
    db: AsyncSession = Depends(get_db),
):
    repository = await _get_repository_or_404(db, repository_id)
    file_change = GithubFileChange(
        repository_id=repository.id,
        path=request.path,
        content=request.content,
        commit_message=request.commit_message,
    )
    if request.status is not None:
        file_change.status = request.status.value
    db.add(file_change)
    await db.commit()
    await db.refresh(file_change)
    return file_change


@router.get("/repositories/{repository_id}/files", response_model=List[GithubFileChangeOut])
async def list_file_changes(repository_id: int, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(GithubFileChange)
        .where(GithubFileChange.repository_id == repository_id)
        .order_by(GithubFileChange.created_at.desc(), GithubFileChange.id.desc())
    )
    return result.scalars().all()


@router.patch("/files/{file_change_id}", response_model=GithubFileChangeOut)
async def update_file_change(
    file_change_id: int,
    request: GithubFileChangeUpdate,
    db: AsyncSession = Depends(get_db),
):
    file_change = await _get_file_change_or_404(db, file_change_id)
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if "status" in changes:
        changes["status"] = changes["status"].value
    for field, value in changes.items():
        setattr(file_change, field, value)
    file_change.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(file_change)
    return file_change


@router.post("/files/{file_change_id}/commit", response_model=GithubFileChangeOut)
async def commit_file_change(file_change_id: int, db: AsyncSession = Depends(get_db)):
    file_change = await _get_file_change_or_404(db, file_change_id)
    repository = await _get_repository_or_404(db, file_change.repository_id)
    github = await connect_repository(db, repository)

    try:
        result = await github.commit_file(
            repository.owner,
            repository.repo,
            file_change.path,
            file_change.content,
            file_change.commit_message,
            repository.default_branch or "main",
        )
    except httpx.HTTPError as e:
        logger.error(f"Failed to commit file {file_change.path} to {repository.full_name}: {e}")
        file_change.status = FileChangeStatus.FAILED.value
        file_change.updated_at = datetime.utcnow()
        await db.commit()
        raise HTTPException(status_code=500, detail="Failed to commit file change")

    file_change.status = FileChangeStatus.COMMITTED.value
    file_change.commit_url = (result.get("commit") or {}).get("html_url")
    file_change.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(file_change)
    return file_change


@router.delete("/files/{file_change_id}", status_code=204)
async def delete_file_change(file_change_id: int, db: AsyncSession = Depends(get_db)):
    file_change = await _get_file_change_or_404(db, file_change_id)
    await db.delete(file_change)
    await db.commit()
    return Response(status_code=204)


# Code assistance

async def _fetch_file_context(github: GitHubClient, repository: GithubRepository, paths: List[str]) -> Dict[str, Optional[str]]:
    contents: Dict[str, Optional[str]] = {}
    for path in paths:
        try:
            contents[path] = await github.get_file_content(
                repository.owner, repository.repo, path, repository.default_branch or "main"
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not get content for file {path}: {e}")
            contents[path] = None
    return contents


def proposed_file_change(repository_id: int, change) -> Optional[GithubFileChange]:
    """Pending file change for one entry of the model's ``changes`` list, or None if it is unusable.

    Structured content (a JSON file the model emitted as an object) is serialized back to text.
    """
    if not isinstance(change, dict):
        return None
    path = change.get("path")
    content = change.get("content")
    if not isinstance(path, str) or not path.strip():
        return None
    if isinstance(content, (dict, list)):
        content = json.dumps(content, indent=2)
    elif not isinstance(content, str):
        return None

    commit_message = change.get("commitMessage")
    if not isinstance(commit_message, str) or not commit_message.strip():
        commit_message = f"Update {path}"
    return GithubFileChange(
        repository_id=repository_id,
        path=path,
        content=content,
        commit_message=commit_message,
    )


@router.post("/assist")
async def assist(request: AssistRequest, db: AsyncSession = Depends(get_db)):
    repository = await _get_repository_or_404(db, request.repository_id)
    github = await connect_repository(db, repository)

    file_contents = await _fetch_file_context(github, repository, request.file_context)
    messages = assist_messages(repository, request.prompt, file_contents, request.target_path)

    ai_client = get_ai_client()
    try:
        result = await ai_client.chat_json(messages)
    except Exception as e:
        logger.error(f"Error getting code assistance: {e}")
        raise llm_http_exception(e, "Failed to get code assistance")

    content = result.get("content")
    if not content:
        raise HTTPException(status_code=500, detail="No response from AI assistant")

    try:
        response = parse_json_response(content)
    except ValueError as e:
        logger.error(f"Error parsing code assistance response: {e}")
        raise HTTPException(
            status_code=500,
            detail={"message": "Failed to parse code assistance response", "rawResponse": content},
        )

    if request.save_changes:
        saved = []
        for change in response.get("changes") or []:
            file_change = proposed_file_change(repository.id, change)
            if file_change is None:
                logger.warning(f"Skipping unusable proposed change for {repository.full_name}: {change!r:.200}")
                continue
            db.add(file_change)
            saved.append(file_change)
        await db.commit()
        for file_change in saved:
            await db.refresh(file_change)
        response["savedChanges"] = [
            GithubFileChangeOut.model_validate(fc).model_dump(by_alias=True, mode="json") for fc in saved
        ]

    return response
