"""Request and response bodies.

The HTTP API speaks camelCase JSON (``commitMessage``, ``isDefault``...) while
the Python side uses snake_case; every model here accepts both on input and
emits camelCase on output.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import FileChangeStatus, MessageRole


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Chat sessions

class ChatSessionCreate(ApiModel):
    name: Optional[str] = None


class ChatSessionUpdate(ApiModel):
    name: str = Field(min_length=1)


class ChatSessionOut(ApiModel):
    id: int
    name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MessageCreate(ApiModel):
    role: MessageRole
    content: str = Field(min_length=1)
    token_count: Optional[int] = None


class MessageOut(ApiModel):
    id: int
    session_id: int
    role: str
    content: str
    token_count: Optional[int] = None
    timestamp: datetime


# System prompts

class SystemPromptCreate(ApiModel):
    name: str = "Custom Prompt"
    content: str = Field(min_length=1)
    is_default: bool = False


class SystemPromptUpdate(ApiModel):
    name: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    is_default: Optional[bool] = None


class SystemPromptOut(ApiModel):
    id: int
    name: str
    content: str
    is_default: bool
    created_at: datetime


# GitHub

class GithubCredentialsCreate(ApiModel):
    username: str = Field(min_length=1)
    token: str = Field(min_length=1)


class GithubCredentialsOut(ApiModel):
    """Credentials as returned to clients: the token never leaves the server."""

    id: int
    username: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class GithubRepositoryCreate(ApiModel):
    credentials_id: int
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    default_branch: Optional[str] = None


class GithubRepositoryOut(ApiModel):
    id: int
    credentials_id: int
    owner: str
    repo: str
    default_branch: Optional[str] = None
    last_analyzed: Optional[datetime] = None
    summary: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class GithubFileChangeCreate(ApiModel):
    path: str = Field(min_length=1)
    content: str
    commit_message: str = Field(min_length=1)
    status: Optional[FileChangeStatus] = None


class GithubFileChangeUpdate(ApiModel):
    path: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = None
    commit_message: Optional[str] = Field(default=None, min_length=1)
    status: Optional[FileChangeStatus] = None


class GithubFileChangeOut(ApiModel):
    id: int
    repository_id: int
    path: str
    content: str
    commit_message: str
    status: str
    commit_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PullRequestCreate(ApiModel):
    title: str = Field(min_length=1)
    body: str = ""
    head: str = Field(min_length=1)
    base: Optional[str] = None


class AssistRequest(ApiModel):
    repository_id: int
    prompt: str = Field(min_length=1)
    file_context: List[str] = []
    target_path: Optional[str] = None
    save_changes: bool = False
