from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import SystemPrompt
from ..schemas import SystemPromptCreate, SystemPromptOut, SystemPromptUpdate

router = APIRouter(prefix="/api/prompts", tags=["prompts"])


async def clear_default(db: AsyncSession, keep_id: Optional[int] = None) -> None:
    """Unset ``is_default`` on every prompt except ``keep_id``."""
    statement = update(SystemPrompt).where(SystemPrompt.is_default.is_(True))
    if keep_id is not None:
        statement = statement.where(SystemPrompt.id != keep_id)
    await db.execute(statement.values(is_default=False))


async def _get_prompt_or_404(db: AsyncSession, prompt_id: int) -> SystemPrompt:
    prompt = await db.get(SystemPrompt, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail="System prompt not found")
    return prompt


@router.get("", response_model=List[SystemPromptOut])
async def list_prompts(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(SystemPrompt).order_by(SystemPrompt.id))
    return result.scalars().all()


@router.get("/default", response_model=SystemPromptOut)
async def get_default_prompt(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(SystemPrompt).where(SystemPrompt.is_default.is_(True)))
    prompt = result.scalars().first()
    if not prompt:
        raise HTTPException(status_code=404, detail="No default system prompt")
    return prompt


@router.get("/{prompt_id}", response_model=SystemPromptOut)
async def get_prompt(prompt_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_prompt_or_404(db, prompt_id)


@router.post("", response_model=SystemPromptOut, status_code=201)
async def create_prompt(request: SystemPromptCreate, db: AsyncSession = Depends(get_db)):
    if request.is_default:
        await clear_default(db)

    prompt = SystemPrompt(name=request.name, content=request.content, is_default=request.is_default)
    db.add(prompt)
    await db.commit()
    await db.refresh(prompt)
    return prompt


@router.patch("/{prompt_id}", response_model=SystemPromptOut)
async def update_prompt(prompt_id: int, request: SystemPromptUpdate, db: AsyncSession = Depends(get_db)):
    prompt = await _get_prompt_or_404(db, prompt_id)
    changes = request.model_dump(exclude_unset=True, exclude_none=True)

    if changes.get("is_default"):
        await clear_default(db, keep_id=prompt.id)
    for field, value in changes.items():
        setattr(prompt, field, value)

    await db.commit()
    await db.refresh(prompt)
    return prompt


@router.delete("/{prompt_id}", status_code=204)
async def delete_prompt(prompt_id: int, db: AsyncSession = Depends(get_db)):
    prompt = await _get_prompt_or_404(db, prompt_id)
    if prompt.is_default:
        raise HTTPException(status_code=400, detail="Cannot delete the default system prompt")
    await db.delete(prompt)
    await db.commit()
    return Response(status_code=204)
