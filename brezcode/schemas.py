"""
Domain records shared by the repository, the service and the HTTP layer.

Both repository backends hand back these same shapes; nested structures
(context, metrics, persona) stay plain dicts/lists so they serialize to JSON
unchanged.
"""
from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Naive UTC wall clock; every stored timestamp uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Session status labels
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_PAUSED = "paused"
STATUS_ABANDONED = "abandoned"
SESSION_STATUSES = (STATUS_ACTIVE, STATUS_COMPLETED, STATUS_PAUSED, STATUS_ABANDONED)
CLOSED_STATUSES = (STATUS_COMPLETED, STATUS_ABANDONED)

# Message roles
ROLE_CUSTOMER = "customer"
ROLE_AVATAR = "avatar"
ROLE_SYSTEM = "system"
MESSAGE_ROLES = (ROLE_CUSTOMER, ROLE_AVATAR, ROLE_SYSTEM)


@dataclass
class PatientPersona:
    """Structured profile of the simulated patient."""
    name: str
    age: Optional[int] = None
    background: str = ""

    def describe(self) -> str:
        bits = [self.name]
        if self.age is not None:
            bits.append(str(self.age))
        if self.background:
            bits.append(self.background)
        return ", ".join(bits)


@dataclass
class TrainingMessage:
    message_id: str
    session_id: str
    role: str
    content: str
    emotion: str = "neutral"
    sequence_number: int = 0
    quality_score: Optional[int] = None
    response_time_ms: Optional[int] = None
    ai_model: Optional[str] = None
    topics_discussed: List[str] = field(default_factory=list)
    conversation_context: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_history(self) -> Dict[str, Any]:
        """Compact entry used for conversation history in prompts and API payloads."""
        return {
            "role": self.role,
            "content": self.content,
            "emotion": self.emotion,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
            "sequence_number": self.sequence_number,
            "message_id": self.message_id,
            "quality_score": self.quality_score,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TrainingSession:
    session_id: str
    user_id: int
    avatar_id: str
    avatar_type: str
    scenario_id: str
    scenario_name: str
    business_context: str = "health_coaching"
    status: str = STATUS_ACTIVE
    total_messages: int = 0
    scenario_details: Dict[str, Any] = field(default_factory=dict)
    current_context: Dict[str, Any] = field(default_factory=dict)
    customer_persona: Dict[str, Any] = field(default_factory=dict)
    performance_metrics: Dict[str, Any] = field(default_factory=dict)
    learning_points: List[Dict[str, str]] = field(default_factory=list)
    session_duration: Optional[int] = None
    session_summary: Optional[str] = None
    key_achievements: List[str] = field(default_factory=list)
    areas_for_improvement: List[str] = field(default_factory=list)
    next_recommendations: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    messages: List[TrainingMessage] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def conversation_history(self) -> List[Dict[str, Any]]:
        return [m.to_history() for m in self.messages]

    def copy(self) -> "TrainingSession":
        return copy.deepcopy(self)

    def to_dict(self, include_messages: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if not include_messages:
            data.pop("messages", None)
        return data


@dataclass
class ResponseFeedback:
    feedback_id: str
    session_id: str
    message_id: str
    feedback: str
    improved_response: str
    improvement_score: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TrainingMemory:
    """Aggregate of completed sessions for one avatar/user pair (derived, never stored)."""
    total_sessions: int = 0
    average_quality: float = 0.0
    scenarios_practiced: List[str] = field(default_factory=list)
    learning_points: List[Dict[str, str]] = field(default_factory=list)
    topics_handled: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_sessions == 0


__all__ = [
    "STATUS_ACTIVE",
    "STATUS_COMPLETED",
    "STATUS_PAUSED",
    "STATUS_ABANDONED",
    "SESSION_STATUSES",
    "CLOSED_STATUSES",
    "ROLE_CUSTOMER",
    "ROLE_AVATAR",
    "ROLE_SYSTEM",
    "MESSAGE_ROLES",
    "utcnow",
    "PatientPersona",
    "TrainingMessage",
    "TrainingSession",
    "ResponseFeedback",
    "TrainingMemory",
]
