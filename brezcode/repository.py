"""
Session store + message ledger behind one repository interface.

InMemorySessionRepository   process-local, RLock-guarded, hands out copies
SqlSessionRepository        SQLAlchemy tables with a write-through in-memory
                            mirror that serves an operation when the
                            database errors (logged as a [store] WARN)
select_repository()         probe the database once at startup and pick one

Sequence numbers are assigned inside the store (max+1 under the lock or in
the same transaction as the insert), so concurrent appends to one session
never collide and never leave gaps.
"""
from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .debug_utils import debug_log, log
from .errors import NotFound, PersistenceFailure, SessionNotActive, SessionNotFound
from .models import AvatarResponseFeedback, AvatarTrainingMessage, AvatarTrainingSession
from .schemas import (
    CLOSED_STATUSES,
    STATUS_ABANDONED,
    STATUS_ACTIVE,
    ResponseFeedback,
    TrainingMessage,
    TrainingSession,
    utcnow,
)

# Fields append_message may update on the owning session in the same write
SESSION_UPDATE_FIELDS = ("performance_metrics", "current_context", "last_active_at", "updated_at")

APPEND_RETRIES = 3


class SessionRepository(Protocol):
    def put_session(self, session: TrainingSession, expected_status: Optional[str] = None) -> TrainingSession: ...

    def get_session(self, session_id: str) -> Optional[TrainingSession]: ...

    def list_sessions(
        self,
        user_id: Optional[int] = None,
        avatar_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[TrainingSession]: ...

    def append_message(
        self,
        session_id: str,
        message: TrainingMessage,
        session_updates: Optional[Mapping[str, Any]] = None,
    ) -> TrainingMessage: ...

    def list_messages(self, session_id: str) -> List[TrainingMessage]: ...

    def mark_abandoned(self, before: datetime) -> List[str]: ...

    def add_feedback(self, feedback: ResponseFeedback) -> ResponseFeedback: ...

    def list_feedback(self, session_id: str) -> List[ResponseFeedback]: ...

    def count_sessions(self) -> int: ...

    def clear(self) -> None: ...


def _newest_first(sessions: List[TrainingSession]) -> List[TrainingSession]:
    return sorted(sessions, key=lambda s: s.started_at or s.created_at or datetime.min, reverse=True)


def _check_status(session_id: str, current: str, expected_status: Optional[str]) -> None:
    if expected_status is not None and current != expected_status:
        raise SessionNotActive(session_id, current)


def _started_before(session: TrainingSession, before: datetime) -> bool:
    started = session.started_at or session.created_at
    return session.status == STATUS_ACTIVE and started is not None and started < before


# ──────────────────────────────────────────────────────────────────────────────
# In-memory
# ──────────────────────────────────────────────────────────────────────────────
class InMemorySessionRepository:
    """Dict-backed store. Every read and write crosses the boundary as a deep copy."""

    def __init__(self):
        self._lock = threading.RLock()
        self._sessions: Dict[str, TrainingSession] = {}
        self._feedback: Dict[str, List[ResponseFeedback]] = {}

    def put_session(self, session: TrainingSession, expected_status: Optional[str] = None) -> TrainingSession:
        """Upsert session fields. With expected_status, the stored status must still match."""
        with self._lock:
            existing = self._sessions.get(session.session_id)
            if existing is not None:
                _check_status(session.session_id, existing.status, expected_status)
            stored = copy.deepcopy(session)
            # messages only change through append_message
            stored.messages = existing.messages if existing else []
            self._sessions[session.session_id] = stored
            return copy.deepcopy(stored)

    def restore(self, session: TrainingSession) -> None:
        """Replace a session wholesale, messages included."""
        with self._lock:
            self._sessions[session.session_id] = copy.deepcopy(session)

    def get_session(self, session_id: str) -> Optional[TrainingSession]:
        with self._lock:
            found = self._sessions.get(session_id)
            return copy.deepcopy(found) if found else None

    def list_sessions(self, user_id=None, avatar_id=None, status=None) -> List[TrainingSession]:
        with self._lock:
            rows = [
                s for s in self._sessions.values()
                if (user_id is None or s.user_id == user_id)
                and (avatar_id is None or s.avatar_id == avatar_id)
                and (status is None or s.status == status)
            ]
            return [copy.deepcopy(s) for s in _newest_first(rows)]

    def append_message(self, session_id, message, session_updates=None) -> TrainingMessage:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            if session.status in CLOSED_STATUSES:
                raise SessionNotActive(session_id, session.status)
            stored = copy.deepcopy(message)
            stored.session_id = session_id
            stored.sequence_number = max((m.sequence_number for m in session.messages), default=0) + 1
            session.messages.append(stored)
            session.total_messages = len(session.messages)
            for key, value in (session_updates or {}).items():
                if key in SESSION_UPDATE_FIELDS:
                    setattr(session, key, copy.deepcopy(value))
            return copy.deepcopy(stored)

    def list_messages(self, session_id: str) -> List[TrainingMessage]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return []
            return [copy.deepcopy(m) for m in sorted(session.messages, key=lambda m: m.sequence_number)]

    def mark_abandoned(self, before: datetime) -> List[str]:
        with self._lock:
            affected = []
            for session in self._sessions.values():
                if _started_before(session, before):
                    session.status = STATUS_ABANDONED
                    affected.append(session.session_id)
            return affected

    def add_feedback(self, feedback: ResponseFeedback) -> ResponseFeedback:
        with self._lock:
            self._feedback.setdefault(feedback.session_id, []).append(copy.deepcopy(feedback))
            return copy.deepcopy(feedback)

    def list_feedback(self, session_id: str) -> List[ResponseFeedback]:
        with self._lock:
            return [copy.deepcopy(f) for f in self._feedback.get(session_id, [])]

    def count_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._feedback.clear()


# ──────────────────────────────────────────────────────────────────────────────
# SQLAlchemy
# ──────────────────────────────────────────────────────────────────────────────
def _message_from_row(row: AvatarTrainingMessage) -> TrainingMessage:
    return TrainingMessage(
        message_id=row.message_id,
        session_id=row.session_id,
        role=row.role,
        content=row.content,
        emotion=row.emotion or "neutral",
        sequence_number=row.sequence_number,
        quality_score=row.quality_score,
        response_time_ms=row.response_time_ms,
        ai_model=row.ai_model,
        topics_discussed=list(row.topics_discussed or []),
        conversation_context=dict(row.conversation_context or {}),
        created_at=row.created_at,
    )


def _session_from_row(row: AvatarTrainingSession, with_messages: bool = True) -> TrainingSession:
    return TrainingSession(
        session_id=row.session_id,
        user_id=row.user_id,
        avatar_id=row.avatar_id,
        avatar_type=row.avatar_type,
        scenario_id=row.scenario_id,
        scenario_name=row.scenario_name,
        business_context=row.business_context,
        status=row.status,
        total_messages=row.total_messages or 0,
        scenario_details=dict(row.scenario_details or {}),
        current_context=dict(row.current_context or {}),
        customer_persona=dict(row.customer_persona or {}),
        performance_metrics=dict(row.performance_metrics or {}),
        learning_points=list(row.learning_points or []),
        session_duration=row.session_duration,
        session_summary=row.session_summary,
        key_achievements=list(row.key_achievements or []),
        areas_for_improvement=list(row.areas_for_improvement or []),
        next_recommendations=list(row.next_recommendations or []),
        started_at=row.started_at,
        last_active_at=row.last_active_at,
        completed_at=row.completed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        messages=[_message_from_row(m) for m in row.messages] if with_messages else [],
    )


def _apply_session(row: AvatarTrainingSession, session: TrainingSession) -> None:
    for key in (
        "user_id", "avatar_id", "avatar_type", "scenario_id", "scenario_name", "business_context",
        "status", "total_messages", "session_duration", "session_summary",
        "started_at", "last_active_at", "completed_at",
    ):
        setattr(row, key, getattr(session, key))
    # JSON columns need fresh objects so the change is detected
    for key in (
        "scenario_details", "current_context", "customer_persona", "performance_metrics",
        "learning_points", "key_achievements", "areas_for_improvement", "next_recommendations",
    ):
        setattr(row, key, copy.deepcopy(getattr(session, key)))
    if session.created_at is not None:
        row.created_at = session.created_at
    row.updated_at = session.updated_at or utcnow()


class SqlSessionRepository:
    """
    Durable store. Each successful write is mirrored in memory; when the
    database raises, the operation is served by the mirror instead.
    """

    def __init__(self, session_factory: Callable[[], Any], mirror: InMemorySessionRepository | None = None):
        self.session_factory = session_factory
        self.mirror = mirror or InMemorySessionRepository()

    def _guarded(self, op: str, fn: Callable[[], Any], fallback: Callable[[], Any]):
        try:
            return fn()
        except NotFound:
            raise
        except SQLAlchemyError as e:
            log("store", f"WARN {op} failed, serving from memory: {e}")
            return fallback()

    def _refresh_mirror(self, session_id: str) -> None:
        with self.session_factory() as db:
            row = db.query(AvatarTrainingSession).filter_by(session_id=session_id).first()
            if row is not None:
                self.mirror.restore(_session_from_row(row))

    # ── sessions
    def put_session(self, session: TrainingSession, expected_status: Optional[str] = None) -> TrainingSession:
        def _write():
            with self.session_factory() as db:
                row = (
                    db.query(AvatarTrainingSession)
                    .filter_by(session_id=session.session_id)
                    .with_for_update()
                    .first()
                )
                if row is None:
                    row = AvatarTrainingSession(session_id=session.session_id)
                    db.add(row)
                else:
                    _check_status(session.session_id, row.status, expected_status)
                _apply_session(row, session)
                db.commit()
                db.refresh(row)
                saved = _session_from_row(row)
            self.mirror.restore(saved)
            return saved

        return self._guarded("put_session", _write, lambda: self.mirror.put_session(session, expected_status))

    def get_session(self, session_id: str) -> Optional[TrainingSession]:
        def _read():
            with self.session_factory() as db:
                row = db.query(AvatarTrainingSession).filter_by(session_id=session_id).first()
                return _session_from_row(row) if row else None

        return self._guarded("get_session", _read, lambda: self.mirror.get_session(session_id))

    def list_sessions(self, user_id=None, avatar_id=None, status=None) -> List[TrainingSession]:
        def _read():
            with self.session_factory() as db:
                q = db.query(AvatarTrainingSession)
                if user_id is not None:
                    q = q.filter(AvatarTrainingSession.user_id == user_id)
                if avatar_id is not None:
                    q = q.filter(AvatarTrainingSession.avatar_id == avatar_id)
                if status is not None:
                    q = q.filter(AvatarTrainingSession.status == status)
                return _newest_first([_session_from_row(r) for r in q.all()])

        return self._guarded(
            "list_sessions", _read,
            lambda: self.mirror.list_sessions(user_id=user_id, avatar_id=avatar_id, status=status),
        )

    # ── ledger
    def _append_once(self, session_id: str, message: TrainingMessage, session_updates) -> TrainingMessage:
        with self.session_factory() as db:
            row = (
                db.query(AvatarTrainingSession)
                .filter_by(session_id=session_id)
                .with_for_update()
                .first()
            )
            if row is None:
                raise SessionNotFound(session_id)
            if row.status in CLOSED_STATUSES:
                raise SessionNotActive(session_id, row.status)
            last = (
                db.query(func.max(AvatarTrainingMessage.sequence_number))
                .filter(AvatarTrainingMessage.session_id == session_id)
                .scalar()
            )
            seq = (last or 0) + 1
            msg_row = AvatarTrainingMessage(
                message_id=message.message_id,
                session_id=session_id,
                role=message.role,
                content=message.content,
                emotion=message.emotion,
                sequence_number=seq,
                quality_score=message.quality_score,
                response_time_ms=message.response_time_ms,
                ai_model=message.ai_model,
                topics_discussed=list(message.topics_discussed or []),
                conversation_context=copy.deepcopy(message.conversation_context or {}),
                created_at=message.created_at or utcnow(),
            )
            db.add(msg_row)
            row.total_messages = seq
            for key, value in (session_updates or {}).items():
                if key in SESSION_UPDATE_FIELDS:
                    setattr(row, key, copy.deepcopy(value))
            db.commit()
            db.refresh(msg_row)
            return _message_from_row(msg_row)

    def append_message(self, session_id, message, session_updates=None) -> TrainingMessage:
        def _write():
            for attempt in range(1, APPEND_RETRIES + 1):
                try:
                    saved = self._append_once(session_id, message, session_updates)
                    break
                except IntegrityError as e:
                    # another writer took this sequence number; recompute and retry
                    debug_log("sequence clash", {"session_id": session_id, "attempt": attempt}, tag="store")
                    if attempt == APPEND_RETRIES:
                        raise PersistenceFailure(f"could not append to {session_id}: {e}") from e
            self._refresh_mirror(session_id)
            return saved

        def _fallback():
            if self.mirror.get_session(session_id) is None:
                raise SessionNotFound(session_id)
            return self.mirror.append_message(session_id, message, session_updates)

        return self._guarded("append_message", _write, _fallback)

    def list_messages(self, session_id: str) -> List[TrainingMessage]:
        def _read():
            with self.session_factory() as db:
                rows = (
                    db.query(AvatarTrainingMessage)
                    .filter(AvatarTrainingMessage.session_id == session_id)
                    .order_by(AvatarTrainingMessage.sequence_number.asc())
                    .all()
                )
                return [_message_from_row(r) for r in rows]

        return self._guarded("list_messages", _read, lambda: self.mirror.list_messages(session_id))

    # ── housekeeping
    def mark_abandoned(self, before: datetime) -> List[str]:
        def _write():
            with self.session_factory() as db:
                stale = (
                    db.query(AvatarTrainingSession)
                    .filter(AvatarTrainingSession.status == STATUS_ACTIVE)
                    .filter(AvatarTrainingSession.started_at < before)
                    .all()
                )
                affected = [r.session_id for r in stale]
                for r in stale:
                    r.status = STATUS_ABANDONED
                db.commit()
            self.mirror.mark_abandoned(before)
            return affected

        return self._guarded("mark_abandoned", _write, lambda: self.mirror.mark_abandoned(before))

    def add_feedback(self, feedback: ResponseFeedback) -> ResponseFeedback:
        def _write():
            with self.session_factory() as db:
                db.add(AvatarResponseFeedback(
                    feedback_id=feedback.feedback_id,
                    session_id=feedback.session_id,
                    message_id=feedback.message_id,
                    feedback=feedback.feedback,
                    improved_response=feedback.improved_response,
                    improvement_score=feedback.improvement_score,
                    created_at=feedback.created_at or utcnow(),
                ))
                db.commit()
            return self.mirror.add_feedback(feedback)

        return self._guarded("add_feedback", _write, lambda: self.mirror.add_feedback(feedback))

    def list_feedback(self, session_id: str) -> List[ResponseFeedback]:
        def _read():
            with self.session_factory() as db:
                rows = (
                    db.query(AvatarResponseFeedback)
                    .filter(AvatarResponseFeedback.session_id == session_id)
                    .order_by(AvatarResponseFeedback.id.asc())
                    .all()
                )
                return [
                    ResponseFeedback(
                        feedback_id=r.feedback_id,
                        session_id=r.session_id,
                        message_id=r.message_id,
                        feedback=r.feedback,
                        improved_response=r.improved_response,
                        improvement_score=r.improvement_score,
                        created_at=r.created_at,
                    )
                    for r in rows
                ]

        return self._guarded("list_feedback", _read, lambda: self.mirror.list_feedback(session_id))

    def count_sessions(self) -> int:
        def _read():
            with self.session_factory() as db:
                return db.query(func.count(AvatarTrainingSession.id)).scalar() or 0

        return self._guarded("count_sessions", _read, self.mirror.count_sessions)

    def clear(self) -> None:
        def _write():
            with self.session_factory() as db:
                db.query(AvatarResponseFeedback).delete()
                db.query(AvatarTrainingMessage).delete()
                db.query(AvatarTrainingSession).delete()
                db.commit()
            self.mirror.clear()

        return self._guarded("clear", _write, self.mirror.clear)


# ──────────────────────────────────────────────────────────────────────────────
# Selection
# ──────────────────────────────────────────────────────────────────────────────
def select_repository(force_in_memory: bool | None = None, bind=None) -> SessionRepository:
    """
    Durable store when the database answers a probe, else in-memory.
    FORCE_IN_MEMORY_STORE skips the probe entirely.
    """
    from . import db as dbmod
    from .config import settings

    if force_in_memory is None:
        force_in_memory = settings.FORCE_IN_MEMORY_STORE
    if force_in_memory:
        log("store", "using in-memory session store (forced)")
        return InMemorySessionRepository()

    engine = bind or dbmod.engine
    if not dbmod.test_connection(engine):
        log("store", "WARN database unavailable; using in-memory session store")
        return InMemorySessionRepository()
    try:
        dbmod.init_db(engine)
    except SQLAlchemyError as e:
        log("store", f"WARN could not create tables ({e}); using in-memory session store")
        return InMemorySessionRepository()
    factory = dbmod.SessionLocal if bind is None else sessionmaker(autocommit=False, autoflush=False, bind=engine)
    log("store", "using database session store")
    return SqlSessionRepository(factory)


__all__ = [
    "SessionRepository",
    "InMemorySessionRepository",
    "SqlSessionRepository",
    "select_repository",
    "SESSION_UPDATE_FIELDS",
]
