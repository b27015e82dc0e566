from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class FileChangeStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True)
    name = Column(String, default="New Chat")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    messages = relationship(
        "Message",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    token_count = Column(Integer, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    session = relationship("ChatSession", back_populates="messages")


class SystemPrompt(Base):
    __tablename__ = "system_prompts"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, default="Custom Prompt")
    content = Column(Text, nullable=False)
    # at most one row is the default; writers clear the flag elsewhere first
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class GithubCredentials(Base):
    __tablename__ = "github_credentials"

    id = Column(Integer, primary_key=True)
    username = Column(String, nullable=False)
    token = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    repositories = relationship(
        "GithubRepository",
        back_populates="credentials",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class GithubRepository(Base):
    __tablename__ = "github_repositories"

    id = Column(Integer, primary_key=True)
    credentials_id = Column(
        Integer, ForeignKey("github_credentials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner = Column(String, nullable=False)
    repo = Column(String, nullable=False)
    default_branch = Column(String, default="main")
    last_analyzed = Column(DateTime, nullable=True)
    summary = Column(Text, nullable=True)  # JSON text produced by analysis
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    credentials = relationship("GithubCredentials", back_populates="repositories")
    file_changes = relationship(
        "GithubFileChange",
        back_populates="repository",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class GithubFileChange(Base):
    __tablename__ = "github_file_changes"

    id = Column(Integer, primary_key=True)
    repository_id = Column(
        Integer, ForeignKey("github_repositories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    path = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    commit_message = Column(Text, nullable=False)
    status = Column(String, nullable=False, default=FileChangeStatus.PENDING.value)
    commit_url = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    repository = relationship("GithubRepository", back_populates="file_changes")
