"""
Checkpoint stores - conversation state keyed by composite thread id.

State is an opaque JSON-serialisable dict. The routing core only checks
whether a checkpoint exists; the execution service reads and writes it.
"""

import asyncio
import copy
from typing import Any, Dict, Optional

from loguru import logger

from infrastructure.db.models import Checkpoint
from infrastructure.db.sql_client import get_session


class SqlCheckpointStore:
    """Checkpoint store backed by the ``checkpoints`` table."""

    def __init__(self, session_factory=get_session) -> None:
        self._session_factory = session_factory

    async def get_state(self, composite_thread_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get_sync, composite_thread_id)

    async def put_state(self, composite_thread_id: str, state: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._put_sync, composite_thread_id, state)

    def _get_sync(self, key: str) -> Optional[Dict[str, Any]]:
        session = self._session_factory()
        try:
            row = session.get(Checkpoint, key)
            return dict(row.state) if row is not None else None
        finally:
            session.close()

    def _put_sync(self, key: str, state: Dict[str, Any]) -> None:
        session = self._session_factory()
        try:
            row = session.get(Checkpoint, key)
            if row is None:
                session.add(Checkpoint(thread_key=key, state=state))
            else:
                row.state = state
                row.version = (row.version or 0) + 1
            session.commit()
            logger.debug("Checkpoint written for {}", key)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class InMemoryCheckpointStore:
    """Checkpoint store kept in process memory."""

    def __init__(self) -> None:
        self._states: Dict[str, Dict[str, Any]] = {}

    async def get_state(self, composite_thread_id: str) -> Optional[Dict[str, Any]]:
        state = self._states.get(composite_thread_id)
        return copy.deepcopy(state) if state is not None else None

    async def put_state(self, composite_thread_id: str, state: Dict[str, Any]) -> None:
        self._states[composite_thread_id] = copy.deepcopy(state)

    def __contains__(self, composite_thread_id: str) -> bool:
        return composite_thread_id in self._states
