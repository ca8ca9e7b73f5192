"""
Avatar training sessions: create, converse, complete, summarize.

AvatarTrainingSessionService owns the lifecycle. Storage sits behind a
SessionRepository; replies come from a ResponseGenerator whose fallback chain
always answers. Writes to one session are serialized by a per-session lock so
the read-modify-write of context/metrics in add_message never interleaves.
"""
from __future__ import annotations

import random
import string
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from .debug_utils import debug_log, log
from .errors import MessageNotFound, ScenarioNotFound, SessionNotActive, SessionNotFound
from .fallbacks import SUMMARY_ACHIEVEMENTS, SUMMARY_IMPROVEMENTS, SUMMARY_RECOMMENDATIONS
from .generation import ResponseGenerator, default_response_generator
from .repository import SessionRepository
from .scenarios import avatar_type_for, get_avatar_personality, get_scenario
from .schemas import (
    CLOSED_STATUSES,
    MESSAGE_ROLES,
    ROLE_AVATAR,
    ROLE_CUSTOMER,
    ROLE_SYSTEM,
    STATUS_ABANDONED,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    ResponseFeedback,
    TrainingMemory,
    TrainingMessage,
    TrainingSession,
    utcnow,
)

TOPIC_KEYWORDS = (
    "breast health", "self-exam", "mammogram", "screening", "lumps",
    "anxiety", "health concerns", "prevention", "early detection",
    "medical advice", "health coaching", "wellness", "symptoms",
    "family history", "genetic testing", "lifestyle", "diet", "exercise",
)

MEMORY_LEARNING_POINTS = 5
MEMORY_TOPICS = 3
_ID_ALPHABET = string.ascii_lowercase + string.digits


def extract_topics(content: str | None) -> List[str]:
    """Topic keywords present in the text (case-insensitive substring match)."""
    lowered = (content or "").lower()
    return [k for k in TOPIC_KEYWORDS if k in lowered]


def _merge_unique(existing, new) -> List[str]:
    merged: List[str] = []
    for item in list(existing or []) + list(new or []):
        if item not in merged:
            merged.append(item)
    return merged


@dataclass
class GenerationResult:
    content: str
    quality_score: int
    response_time_ms: int
    ai_model: Optional[str] = None
    strategy: str = "fallback"
    score_is_synthetic: bool = True

    def metadata(self) -> Dict[str, Any]:
        return {
            "quality_score": self.quality_score,
            "response_time_ms": self.response_time_ms,
            "ai_model": self.ai_model,
        }


@dataclass
class ConversationTurn:
    session: TrainingSession
    customer_message: TrainingMessage
    avatar_message: TrainingMessage
    generation: GenerationResult
    question: Optional[Dict[str, Any]] = None


class AvatarTrainingSessionService:
    def __init__(
        self,
        repository: SessionRepository,
        generator: ResponseGenerator | None = None,
        now: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ):
        self.repository = repository
        self.rng = rng or random.Random()
        self.generator = generator or default_response_generator(self.rng)
        self.now = now or utcnow
        self._locks_guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    # ──────────────────────────────────────────────────────────────────────
    # internals
    # ──────────────────────────────────────────────────────────────────────
    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    def _release_lock(self, session_id: str) -> None:
        # closed sessions never take the lock again; the store rejects late writers
        with self._locks_guard:
            self._locks.pop(session_id, None)

    def _new_id(self, prefix: str) -> str:
        ms = int(self.now().timestamp() * 1000)
        suffix = "".join(self.rng.choice(_ID_ALPHABET) for _ in range(9))
        return f"{prefix}_{ms}_{suffix}"

    def _require_session(self, session_id: str) -> TrainingSession:
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    # ──────────────────────────────────────────────────────────────────────
    # lifecycle
    # ──────────────────────────────────────────────────────────────────────
    def create_session(
        self,
        user_id: int,
        avatar_id: str,
        scenario_id: str,
        scenario_details: Mapping[str, Any] | None = None,
        business_context: str = "health_coaching",
    ) -> TrainingSession:
        if scenario_details is None:
            scenario = get_scenario(scenario_id)
            if scenario is None:
                raise ScenarioNotFound(scenario_id)
            details = scenario.to_details()
        else:
            details = dict(scenario_details)

        now = self.now()
        scenario_name = details.get("name") or scenario_id
        mood = details.get("customer_mood") or "neutral"
        objectives = list(details.get("objectives") or [])
        session = TrainingSession(
            session_id=self._new_id("session"),
            user_id=user_id,
            avatar_id=avatar_id,
            avatar_type=avatar_type_for(avatar_id),
            scenario_id=scenario_id,
            scenario_name=scenario_name,
            business_context=business_context,
            status=STATUS_ACTIVE,
            scenario_details=details,
            current_context={
                "phase": "introduction",
                "topics_covered": [],
                "customer_mood": mood,
                "objectives_remaining": objectives,
            },
            customer_persona={
                "name": details.get("customer_persona") or "Anonymous Customer",
                "mood": mood,
                "background": details.get("description") or "",
                "concerns": objectives,
            },
            performance_metrics={"average_quality": 0, "response_count": 0},
            started_at=now,
            last_active_at=now,
            created_at=now,
            updated_at=now,
        )
        self.repository.put_session(session)
        self.add_system_message(
            session.session_id,
            f"Training session started with {avatar_id} for scenario: {scenario_name}",
        )
        log("training", f"session started {session.session_id} avatar={avatar_id} scenario={scenario_id}")
        return self._require_session(session.session_id)

    def get_session(self, session_id: str) -> Optional[TrainingSession]:
        return self.repository.get_session(session_id)

    def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        emotion: str = "neutral",
        response_metadata: Mapping[str, Any] | None = None,
    ) -> TrainingMessage:
        if role not in MESSAGE_ROLES:
            raise ValueError(f"unknown message role: {role!r}")
        meta = dict(response_metadata or {})
        with self._lock_for(session_id):
            session = self._require_session(session_id)
            if session.status in CLOSED_STATUSES:
                raise SessionNotActive(session_id, session.status)

            now = self.now()
            topics = extract_topics(content)
            context = dict(session.current_context or {})
            message = TrainingMessage(
                message_id=self._new_id("msg"),
                session_id=session_id,
                role=role,
                content=content,
                emotion=emotion or "neutral",
                quality_score=meta.get("quality_score"),
                response_time_ms=meta.get("response_time_ms"),
                ai_model=meta.get("ai_model"),
                topics_discussed=topics,
                conversation_context=dict(context),
                created_at=now,
            )

            context.update({
                "last_message_role": role,
                "last_message_time": now.isoformat(),
                "topics_covered": _merge_unique(context.get("topics_covered"), topics),
                "message_count": session.total_messages + 1,
            })
            metrics = dict(session.performance_metrics or {})
            score = meta.get("quality_score")
            if score is not None:
                count = int(metrics.get("response_count") or 0)
                avg = float(metrics.get("average_quality") or 0)
                metrics["average_quality"] = (avg * count + score) / (count + 1)
                metrics["response_count"] = count + 1

            saved = self.repository.append_message(
                session_id,
                message,
                {
                    "current_context": context,
                    "performance_metrics": metrics,
                    "last_active_at": now,
                    "updated_at": now,
                },
            )
        debug_log("message added", {"session_id": session_id, "role": role, "seq": saved.sequence_number}, tag="training")
        return saved

    def add_system_message(self, session_id: str, content: str) -> TrainingMessage:
        return self.add_message(session_id, ROLE_SYSTEM, content)

    def generate_response(self, session_id: str, customer_message: str) -> GenerationResult:
        session = self._require_session(session_id)
        started = time.perf_counter()
        log("training", f"generating reply for {session.avatar_type} in {session_id}")
        outcome = self.generator.generate_avatar_response(
            get_avatar_personality(session.avatar_type),
            customer_message,
            session.conversation_history,
            business_context=session.business_context,
            scenario_details=session.scenario_details,
            memory=self.get_training_memory(session.avatar_id, session.user_id),
        )
        return GenerationResult(
            content=outcome.text,
            quality_score=outcome.quality_score,
            response_time_ms=int((time.perf_counter() - started) * 1000),
            ai_model=outcome.model,
            strategy=outcome.strategy,
            score_is_synthetic=outcome.score_is_synthetic,
        )

    def post_message(self, session_id: str, text: str, emotion: str = "neutral") -> ConversationTurn:
        customer = self.add_message(session_id, ROLE_CUSTOMER, text, emotion)
        result = self.generate_response(session_id, text)
        avatar = self.add_message(session_id, ROLE_AVATAR, result.content, "neutral", result.metadata())
        return ConversationTurn(
            session=self._require_session(session_id),
            customer_message=customer,
            avatar_message=avatar,
            generation=result,
        )

    def continue_conversation(self, session_id: str) -> ConversationTurn:
        session = self._require_session(session_id)
        if session.status in CLOSED_STATUSES:
            raise SessionNotActive(session_id, session.status)
        question = self.generator.generate_patient_question(
            session.conversation_history,
            session.scenario_details,
        )
        customer = self.add_message(
            session_id, ROLE_CUSTOMER, question["question"], question.get("emotion") or "neutral"
        )
        result = self.generate_response(session_id, question["question"])
        avatar = self.add_message(session_id, ROLE_AVATAR, result.content, "neutral", result.metadata())
        log("training", f"continued conversation for {session_id}")
        return ConversationTurn(
            session=self._require_session(session_id),
            customer_message=customer,
            avatar_message=avatar,
            generation=result,
            question=question,
        )

    def complete_session(self, session_id: str) -> Optional[TrainingSession]:
        """
        Close an active session with a templated summary.

        Missing session: returns None. Already completed: returned unchanged.
        Abandoned: SessionNotActive.
        """
        with self._lock_for(session_id):
            session = self.repository.get_session(session_id)
            if session is None:
                return None
            if session.status == STATUS_COMPLETED:
                return session
            if session.status == STATUS_ABANDONED:
                raise SessionNotActive(session_id, session.status)

            now = self.now()
            started = session.started_at or session.created_at or now
            session.session_duration = round((now - started).total_seconds() / 60)
            session.session_summary = (
                f"Training session with {session.avatar_id} focused on {session.scenario_name}. "
                f"{len(session.messages)} messages exchanged with focus on practical application and skill development."
            )
            session.key_achievements = list(SUMMARY_ACHIEVEMENTS)
            session.areas_for_improvement = list(SUMMARY_IMPROVEMENTS)
            session.next_recommendations = list(SUMMARY_RECOMMENDATIONS)
            session.learning_points = self._learning_points(session)
            session.status = STATUS_COMPLETED
            session.completed_at = now
            session.updated_at = now
            saved = self.repository.put_session(session, expected_status=STATUS_ACTIVE)
            self._release_lock(session_id)
        log("training", f"session completed {session_id} ({saved.session_duration} min)")
        return saved

    def _learning_points(self, session: TrainingSession) -> List[Dict[str, str]]:
        points = session.scenario_details.get("key_learning_points")
        if not points:
            scenario = get_scenario(session.scenario_id)
            points = scenario.key_learning_points if scenario else ()
        return [{"title": session.scenario_name, "summary": str(p)} for p in points]

    # ──────────────────────────────────────────────────────────────────────
    # queries
    # ──────────────────────────────────────────────────────────────────────
    def get_user_sessions(self, user_id: int) -> List[TrainingSession]:
        sessions = self.repository.list_sessions(user_id=user_id)
        return sorted(sessions, key=lambda s: s.created_at or s.started_at or datetime.min, reverse=True)

    def get_training_memory(self, avatar_id: str, user_id: int) -> TrainingMemory:
        completed = self.repository.list_sessions(user_id=user_id, avatar_id=avatar_id, status=STATUS_COMPLETED)
        if not completed:
            return TrainingMemory()
        total = len(completed)
        avg = sum(float((s.performance_metrics or {}).get("average_quality") or 0) for s in completed) / total
        scenarios = _merge_unique([], [s.scenario_name for s in completed])
        points = [p for s in completed for p in (s.learning_points or [])][:MEMORY_LEARNING_POINTS]
        topics = _merge_unique([], [t for s in completed for t in (s.current_context or {}).get("topics_covered", [])])
        debug_log("training memory", {"avatar_id": avatar_id, "user_id": user_id, "sessions": total}, tag="training")
        return TrainingMemory(
            total_sessions=total,
            average_quality=avg,
            scenarios_practiced=scenarios,
            learning_points=points,
            topics_handled=topics[:MEMORY_TOPICS],
        )

    def get_session_messages(self, session_id: str) -> List[TrainingMessage]:
        return self.repository.list_messages(session_id)

    def get_all_sessions(self) -> List[TrainingSession]:
        return self.repository.list_sessions()

    def get_total_sessions_count(self) -> int:
        return self.repository.count_sessions()

    def get_stats(self) -> Dict[str, Any]:
        sessions = self.repository.list_sessions()
        by_status = {status: 0 for status in (STATUS_ACTIVE, STATUS_COMPLETED, STATUS_ABANDONED)}
        for s in sessions:
            if s.status in by_status:
                by_status[s.status] += 1
        durations = [s.session_duration for s in sessions if s.status == STATUS_COMPLETED and s.session_duration is not None]
        return {
            "total_sessions": len(sessions),
            "active_sessions": by_status[STATUS_ACTIVE],
            "completed_sessions": by_status[STATUS_COMPLETED],
            "abandoned_sessions": by_status[STATUS_ABANDONED],
            "average_duration_minutes": round(sum(durations) / len(durations), 1) if durations else 0,
            "avatars_trained": len({s.avatar_id for s in sessions}),
        }

    # ──────────────────────────────────────────────────────────────────────
    # feedback
    # ──────────────────────────────────────────────────────────────────────
    def improve_response(self, session_id: str, message_id: str, feedback: str) -> ResponseFeedback:
        session = self._require_session(session_id)
        original = next((m for m in session.messages if m.message_id == message_id), None)
        if original is None or original.role != ROLE_AVATAR:
            raise MessageNotFound(message_id)
        question = next(
            (
                m.content for m in reversed(session.messages)
                if m.role == ROLE_CUSTOMER and m.sequence_number < original.sequence_number
            ),
            "",
        )
        outcome = self.generator.improve_response(
            get_avatar_personality(session.avatar_type),
            question,
            original.content,
            feedback,
            business_context=session.business_context,
        )
        record = ResponseFeedback(
            feedback_id=self._new_id("fb"),
            session_id=session_id,
            message_id=message_id,
            feedback=feedback,
            improved_response=outcome.text,
            improvement_score=outcome.quality_score,
            created_at=self.now(),
        )
        saved = self.repository.add_feedback(record)
        log("training", f"improved response for {message_id} via {outcome.strategy}")
        return saved

    def get_feedback(self, session_id: str) -> List[ResponseFeedback]:
        return self.repository.list_feedback(session_id)

    # ──────────────────────────────────────────────────────────────────────
    # housekeeping
    # ──────────────────────────────────────────────────────────────────────
    def cleanup_abandoned_sessions(self, hours_threshold: float = 2) -> List[str]:
        cutoff = self.now() - timedelta(hours=hours_threshold)
        affected = self.repository.mark_abandoned(cutoff)
        for session_id in affected:
            self._release_lock(session_id)
        if affected:
            log("training", f"marked {len(affected)} idle session(s) abandoned (older than {hours_threshold}h)")
        return affected

    def clear_all_data(self) -> None:
        self.repository.clear()
        with self._locks_guard:
            self._locks.clear()
        log("training", "all training data cleared")


__all__ = [
    "TOPIC_KEYWORDS",
    "extract_topics",
    "GenerationResult",
    "ConversationTurn",
    "AvatarTrainingSessionService",
]
