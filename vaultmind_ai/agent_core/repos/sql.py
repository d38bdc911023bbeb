from __future__ import annotations

"""SQLAlchemy async repository implementation.

Usage
-----

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (tests and local development).
- Create a session factory with ``create_sessionmaker``.
- Build ``SqlTranscriptRepository(session_factory=...)``.

Each repository method opens an ``AsyncSession``, performs its operation and
commits, so a saved message is durable when the method returns.
"""

from dataclasses import dataclass
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..schemas.domain import ChatMessage, MessageRole, MessageStatus
from .models import Base, MessageRow


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine (e.g. ``sqlite+aiosqlite:///vaultmind.db``)."""
    return create_async_engine(db_url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _to_message(row: MessageRow) -> ChatMessage:
    return ChatMessage(
        id=row.id,
        conversation_id=row.conversation_id,
        role=MessageRole(row.role),
        content=row.content,
        status=MessageStatus(row.status),
        error=row.error,
        metadata=dict(row.metadata_json or {}),
        created_at=row.created_at,
    )


@dataclass(frozen=True)
class SqlTranscriptRepository:
    """SQL implementation of ``TranscriptRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def save(self, message: ChatMessage) -> None:
        async with self.session_factory() as s:
            res = await s.execute(select(MessageRow).where(MessageRow.id == message.id))
            row = res.scalar_one_or_none()
            if row is None:
                s.add(
                    MessageRow(
                        id=message.id,
                        conversation_id=message.conversation_id,
                        role=message.role.value,
                        content=message.content,
                        status=message.status.value,
                        error=message.error,
                        metadata_json=dict(message.metadata),
                        created_at=message.created_at,
                    )
                )
            else:
                row.content = message.content
                row.status = message.status.value
                row.error = message.error
                row.metadata_json = dict(message.metadata)
            await s.commit()

    async def list(self, conversation_id: str) -> List[ChatMessage]:
        async with self.session_factory() as s:
            res = await s.execute(
                select(MessageRow).where(MessageRow.conversation_id == conversation_id).order_by(MessageRow.seq)
            )
            return [_to_message(row) for row in res.scalars().all()]

    async def delete_conversation(self, conversation_id: str) -> None:
        async with self.session_factory() as s:
            await s.execute(delete(MessageRow).where(MessageRow.conversation_id == conversation_id))
            await s.commit()
