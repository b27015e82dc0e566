from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import ChatSession, Message
from ..schemas import ChatSessionCreate, ChatSessionOut, ChatSessionUpdate, MessageCreate, MessageOut

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


async def _get_session_or_404(db: AsyncSession, session_id: int) -> ChatSession:
    session = await db.get(ChatSession, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return session


@router.get("", response_model=List[ChatSessionOut])
async def list_sessions(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(ChatSession).order_by(ChatSession.updated_at.desc(), ChatSession.id.desc()))
    return result.scalars().all()


@router.post("", response_model=ChatSessionOut, status_code=201)
async def create_session(request: ChatSessionCreate, db: AsyncSession = Depends(get_db)):
    session = ChatSession()
    if request.name:
        session.name = request.name
    db.add(session)
    await db.commit()
    await db.refresh(session)
    return session


@router.get("/{session_id}", response_model=ChatSessionOut)
async def get_session(session_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_session_or_404(db, session_id)


@router.patch("/{session_id}", response_model=ChatSessionOut)
async def update_session(session_id: int, request: ChatSessionUpdate, db: AsyncSession = Depends(get_db)):
    session = await _get_session_or_404(db, session_id)
    session.name = request.name
    session.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(session)
    return session


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: int, db: AsyncSession = Depends(get_db)):
    session = await _get_session_or_404(db, session_id)
    await db.delete(session)
    await db.commit()
    return Response(status_code=204)


@router.get("/{session_id}/messages", response_model=List[MessageOut])
async def list_messages(session_id: int, db: AsyncSession = Depends(get_db)):
    await _get_session_or_404(db, session_id)
    result = await db.execute(
        select(Message)
        .where(Message.session_id == session_id)
        .order_by(Message.timestamp, Message.id)
    )
    return result.scalars().all()


@router.post("/{session_id}/messages", response_model=MessageOut, status_code=201)
async def create_message(session_id: int, request: MessageCreate, db: AsyncSession = Depends(get_db)):
    session = await _get_session_or_404(db, session_id)
    message = Message(
        session_id=session.id,
        role=request.role.value,
        content=request.content,
        token_count=request.token_count,
    )
    db.add(message)
    session.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(message)
    return message
