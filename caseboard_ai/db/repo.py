# caseboard_ai/db/repo.py

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseboard_ai.db.models import Board, BoardMember, TraceEvent


def _serialize_sqlite_value(value: Any) -> Any:
    """
    SQLite cannot bind dict/list directly into TEXT parameters.
    Convert dict/list to JSON string so commit never fails.
    """
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return value


def member_id(board_id: str, user_id: str) -> str:
    return f"{board_id}_{user_id}"


async def get_board(db: AsyncSession, board_id: str) -> Board | None:
    res = await db.execute(select(Board).where(Board.id == board_id))
    return res.scalar_one_or_none()


async def upsert_board(db: AsyncSession, board: Board) -> Board:
    board.updated_at = datetime.utcnow()
    merged = await db.merge(board)
    await db.commit()
    return merged


async def get_member_role(db: AsyncSession, board_id: str, user_id: str) -> str | None:
    res = await db.execute(select(BoardMember).where(BoardMember.id == member_id(board_id, user_id)))
    member = res.scalar_one_or_none()
    return member.role if member else None


async def upsert_member(db: AsyncSession, board_id: str, user_id: str, role: str) -> BoardMember:
    member = BoardMember(id=member_id(board_id, user_id), board_id=board_id, user_id=user_id, role=role)
    member.updated_at = datetime.utcnow()
    merged = await db.merge(member)
    await db.commit()
    return merged


async def add_traces(db: AsyncSession, traces: list[TraceEvent]) -> int:
    for tr in traces:
        tr.payload = _serialize_sqlite_value(tr.payload)
        db.add(tr)
    await db.commit()
    return len(traces)

