import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..errors import llm_http_exception
from ..models import ChatSession, Message, MessageRole, SystemPrompt
from ..schemas import ApiModel
from ..services.ai import get_ai_client, image_message
from ..services.prompts import parse_ai_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatMessage(ApiModel):
    role: MessageRole
    content: str = Field(min_length=1)
    image_data: Optional[str] = None
    image_type: str = "image/png"


class ChatRequest(ApiModel):
    messages: List[ChatMessage]
    system_prompt: Optional[str] = None
    session_id: Optional[int] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)


async def resolve_system_prompt(db: AsyncSession, system_prompt: Optional[str]) -> str:
    if system_prompt is not None:
        return system_prompt
    result = await db.execute(select(SystemPrompt).where(SystemPrompt.is_default.is_(True)))
    default = result.scalars().first()
    return default.content if default else ""


def build_messages(system_prompt: str, messages: List[ChatMessage]) -> List[dict]:
    formatted = [{"role": "system", "content": system_prompt}]
    for m in messages:
        message = {"role": m.role.value, "content": m.content}
        if m.image_data:
            message = image_message(message, m.image_data, m.image_type)
        formatted.append(message)
    return formatted


async def _record_exchange(db: AsyncSession, session: ChatSession, request: ChatRequest, result: dict) -> None:
    user_messages = [m for m in request.messages if m.role == MessageRole.USER]
    if user_messages:
        db.add(Message(session_id=session.id, role=MessageRole.USER.value, content=user_messages[-1].content))
    usage = result.get("usage") or {}
    db.add(Message(
        session_id=session.id,
        role=MessageRole.ASSISTANT.value,
        content=result["content"],
        token_count=usage.get("completion_tokens"),
    ))
    session.updated_at = datetime.utcnow()
    await db.commit()


def camel_usage(usage: Optional[dict]) -> Optional[dict]:
    """OpenAI token counts in the API's camelCase."""
    if not usage:
        return None
    return {
        "promptTokens": usage.get("prompt_tokens"),
        "completionTokens": usage.get("completion_tokens"),
        "totalTokens": usage.get("total_tokens"),
    }


@router.post("")
async def chat(
    request: ChatRequest,
    db: AsyncSession = Depends(get_db),
):
    session = None
    if request.session_id is not None:
        session = await db.get(ChatSession, request.session_id)
        if not session:
            raise HTTPException(status_code=404, detail="Chat session not found")

    system_prompt = await resolve_system_prompt(db, request.system_prompt)
    messages = build_messages(system_prompt, request.messages)

    options = {"model": request.model}
    if request.temperature is not None:
        options["temperature"] = request.temperature

    ai_client = get_ai_client()
    try:
        result = await ai_client.chat(messages, **options)
    except Exception as e:
        logger.error(f"Error in chat API: {e}")
        raise llm_http_exception(e, "Failed to process chat request")

    content = result.get("content")
    if content is None:
        raise HTTPException(status_code=500, detail="No response from AI assistant")

    if session is not None:
        await _record_exchange(db, session, request, result)

    return {
        "id": result.get("id"),
        "model": result.get("model"),
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finishReason": result.get("finish_reason"),
        }],
        "usage": camel_usage(result.get("usage")),
        "sessionId": session.id if session is not None else None,
        "parsed": parse_ai_response(content),
    }
