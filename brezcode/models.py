from __future__ import annotations

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey,
    UniqueConstraint, Index,
)
from sqlalchemy import JSON as JSONType
from sqlalchemy.orm import declarative_base, relationship

from .schemas import utcnow

Base = declarative_base()

# ──────────────────────────────────────────────────────────────────────────────
# Avatar training
# ──────────────────────────────────────────────────────────────────────────────
class AvatarTrainingSession(Base):
    __tablename__ = "avatar_training_sessions"
    id               = Column(Integer, primary_key=True)
    session_id       = Column(String(64), nullable=False, unique=True, index=True)  # session_<ms>_<rand>
    user_id          = Column(Integer, nullable=False, index=True)
    avatar_id        = Column(String(64), nullable=False, index=True)
    avatar_type      = Column(String(64), nullable=False)
    scenario_id      = Column(String(120), nullable=False)
    scenario_name    = Column(String(255), nullable=False)
    business_context = Column(String(64), nullable=False, default="health_coaching")
    status           = Column(String(16), nullable=False, default="active", index=True)  # active|completed|paused|abandoned
    total_messages   = Column(Integer, nullable=False, default=0)

    scenario_details    = Column(JSONType, nullable=True)
    current_context     = Column(JSONType, nullable=True)
    customer_persona    = Column(JSONType, nullable=True)
    performance_metrics = Column(JSONType, nullable=True)
    learning_points     = Column(JSONType, nullable=True)

    session_duration      = Column(Integer, nullable=True)   # minutes
    session_summary       = Column(Text, nullable=True)
    key_achievements      = Column(JSONType, nullable=True)
    areas_for_improvement = Column(JSONType, nullable=True)
    next_recommendations  = Column(JSONType, nullable=True)

    started_at     = Column(DateTime, nullable=True)
    last_active_at = Column(DateTime, nullable=True)
    completed_at   = Column(DateTime, nullable=True)
    created_at     = Column(DateTime, default=utcnow, nullable=False)
    updated_at     = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    messages = relationship(
        "AvatarTrainingMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="AvatarTrainingMessage.sequence_number",
    )

    __table_args__ = (
        Index("ix_training_sessions_user_avatar", "user_id", "avatar_id"),
    )


class AvatarTrainingMessage(Base):
    __tablename__ = "avatar_training_messages"
    id               = Column(Integer, primary_key=True)
    message_id       = Column(String(64), nullable=False, unique=True, index=True)
    session_id       = Column(String(64), ForeignKey("avatar_training_sessions.session_id", ondelete="CASCADE"),
                              nullable=False, index=True)
    role             = Column(String(16), nullable=False)    # customer|avatar|system
    content          = Column(Text, nullable=False)
    emotion          = Column(String(32), nullable=True, default="neutral")
    sequence_number  = Column(Integer, nullable=False)
    quality_score    = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    ai_model         = Column(String(120), nullable=True)
    topics_discussed     = Column(JSONType, nullable=True)
    conversation_context = Column(JSONType, nullable=True)
    created_at       = Column(DateTime, default=utcnow, nullable=False)

    session = relationship("AvatarTrainingSession", back_populates="messages")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence_number", name="uq_training_message_seq"),
    )


class AvatarResponseFeedback(Base):
    __tablename__ = "avatar_response_feedback"
    id                = Column(Integer, primary_key=True)
    feedback_id       = Column(String(64), nullable=False, unique=True)
    session_id        = Column(String(64), ForeignKey("avatar_training_sessions.session_id", ondelete="CASCADE"),
                               nullable=False, index=True)
    message_id        = Column(String(64), nullable=False, index=True)
    feedback          = Column(Text, nullable=False)
    improved_response = Column(Text, nullable=False)
    improvement_score = Column(Integer, nullable=True)
    created_at        = Column(DateTime, default=utcnow, nullable=False)
