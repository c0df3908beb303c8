"""
Database models (SQLAlchemy ORM).

Three tables:
  messages         - final assistant/user messages with their workspace trail
  checkpoints      - conversation state per composite thread id
  routing_metrics  - one row per conversation analysis
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


def _uuid():
    return str(uuid.uuid4())


class Message(Base):
    """A persisted chat message (one per terminal turn for assistants)."""

    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=_uuid)
    thread_id = Column(String, nullable=False, index=True)
    run_id = Column(String, index=True)
    role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    workspace = Column(JSON, nullable=False, default=list)
    routing_metadata = Column(JSON)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "run_id": self.run_id,
            "role": self.role,
            "content": self.content,
            "workspace": self.workspace,
            "routing_metadata": self.routing_metadata,
            "created_at": self.created_at,
        }


class Checkpoint(Base):
    """Latest conversation state for one composite thread id."""

    __tablename__ = "checkpoints"

    thread_key = Column(String, primary_key=True)
    state = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class RoutingMetric(Base):
    """Conversation analysis metrics, saved for every analysis."""

    __tablename__ = "routing_metrics"

    id = Column(String, primary_key=True, default=_uuid)

    # Context identifiers
    user_id = Column(String, index=True)
    campaign_id = Column(String, index=True)
    thread_id = Column(String, index=True)
    run_id = Column(String, index=True)

    # Basic metrics
    analysis_time_ms = Column(Float, nullable=False, default=0.0)
    message_count = Column(Integer, nullable=False, default=0)
    topic_stability = Column(Float, nullable=False, default=1.0)

    # Agent information
    current_agent = Column(String, nullable=False)
    available_agents = Column(JSON, nullable=False, default=list)

    # Topic analysis
    dominant_topics = Column(JSON, nullable=False, default=list)
    topic_shift_count = Column(Integer, nullable=False, default=0)

    # Detailed analysis
    agent_performance_json = Column(JSON)
    patterns_json = Column(JSON)
    topic_shifts_json = Column(JSON)
    continuity_factors_json = Column(JSON)
    recommendations_json = Column(JSON)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
