"""
Message persistence - saves final messages with their workspace trail.

``SqlMessageStore`` writes to the ``messages`` table; blocking calls run
in a worker thread so the turn loop stays async.
``InMemoryMessageStore`` keeps messages in a list (local runs, tests).
"""

import asyncio
import uuid
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from agents.types import SavedMessage, WorkspaceEntry
from infrastructure.db.models import Message
from infrastructure.db.sql_client import get_session


def _saved_from_row(row: Message, workspace: Sequence[WorkspaceEntry]) -> SavedMessage:
    return SavedMessage(
        id=row.id,
        thread_id=row.thread_id,
        content=row.content,
        role=row.role,
        run_id=row.run_id,
        workspace=list(workspace),
        routing_metadata=row.routing_metadata,
        created_at=row.created_at,
    )


class SqlMessageStore:
    """Message store backed by SQLAlchemy."""

    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory

    async def save(
        self,
        thread_id: str,
        content: str,
        role: str,
        workspace: Sequence[WorkspaceEntry] = (),
        run_id: Optional[str] = None,
        routing_metadata: Optional[Dict[str, Any]] = None,
    ) -> SavedMessage:
        return await asyncio.to_thread(
            self._save_sync, thread_id, content, role, list(workspace), run_id, routing_metadata,
        )

    def _save_sync(self, thread_id, content, role, workspace, run_id, routing_metadata) -> SavedMessage:
        session = self._session_factory()
        try:
            row = Message(
                thread_id=thread_id,
                content=content,
                role=role,
                run_id=run_id,
                workspace=[entry.to_dict() for entry in workspace],
                routing_metadata=routing_metadata,
            )
            session.add(row)
            session.commit()
            logger.debug("Saved {} message {} in thread {}", role, row.id, thread_id)
            return _saved_from_row(row, workspace)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    async def list_messages(self, thread_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent messages of a thread, oldest first."""
        return await asyncio.to_thread(self._list_sync, thread_id, limit)

    def _list_sync(self, thread_id: str, limit: int) -> List[Dict[str, Any]]:
        session = self._session_factory()
        try:
            rows = (
                session.query(Message)
                .filter(Message.thread_id == thread_id)
                .order_by(Message.created_at.desc())
                .limit(limit)
                .all()
            )
            return [
                {
                    "id": r.id,
                    "content": r.content,
                    "role": r.role,
                    "createdAt": r.created_at.isoformat() if r.created_at else "",
                    "routingMetadata": r.routing_metadata,
                }
                for r in reversed(rows)
            ]
        finally:
            session.close()


class InMemoryMessageStore:
    """Message store kept in process memory."""

    def __init__(self) -> None:
        self.messages: List[SavedMessage] = []

    async def save(
        self,
        thread_id: str,
        content: str,
        role: str,
        workspace: Sequence[WorkspaceEntry] = (),
        run_id: Optional[str] = None,
        routing_metadata: Optional[Dict[str, Any]] = None,
    ) -> SavedMessage:
        message = SavedMessage(
            id=str(uuid.uuid4()),
            thread_id=thread_id,
            content=content,
            role=role,
            run_id=run_id,
            workspace=list(workspace),
            routing_metadata=routing_metadata,
        )
        self.messages.append(message)
        return message

    async def list_messages(self, thread_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        selected = [m for m in self.messages if m.thread_id == thread_id][-limit:]
        return [
            {
                "id": m.id,
                "content": m.content,
                "role": m.role,
                "createdAt": m.created_at.isoformat(),
                "routingMetadata": m.routing_metadata,
            }
            for m in selected
        ]
