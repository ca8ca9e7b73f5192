# brezcode/api.py
import os
from dataclasses import asdict
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, FastAPI, Header, HTTPException

from .config import settings
from .debug_utils import debug_log, log
from .errors import NotFound, ProviderFailure, SessionNotActive, TrainingError
from .repository import select_repository
from .scenarios import AVATAR_TYPES, TRAINING_PATHS, TRAINING_SCENARIOS, scenarios_by_avatar_type, training_path
from .scheduler import run_cleanup, schedule_cleanup
from .schemas import TrainingSession
from .training import AvatarTrainingSessionService, ConversationTurn

ENV = (os.getenv("ENV") or settings.ENV or "development").lower()
DEFAULT_AVATAR_ID = "dr_sakura"

UK_TZ = ZoneInfo("Europe/London")
APP_START_DT = datetime.now(UK_TZ)
APP_START_UK_STR = APP_START_DT.strftime("%d/%m/%y %H:%M:%S")


def _uptime_seconds() -> int:
    try:
        return int((datetime.now(UK_TZ) - APP_START_DT).total_seconds())
    except Exception:
        return 0


def _print_env_banner():
    try:
        print("\n" + "═" * 72)
        print(f"🚀 Starting BrezCode training [{ENV.upper()}]")
        print(f"🕒 App start (UK): {APP_START_UK_STR}")
        print("═" * 72 + "\n")
    except Exception:
        pass


app = FastAPI(title="BrezCode Training")
training = APIRouter(prefix="/training", tags=["training"])

# ──────────────────────────────────────────────────────────────────────────────
# Service wiring
# ──────────────────────────────────────────────────────────────────────────────
_service: AvatarTrainingSessionService | None = None


def get_service() -> AvatarTrainingSessionService:
    global _service
    if _service is None:
        _service = AvatarTrainingSessionService(select_repository())
    return _service


def set_service(service: AvatarTrainingSessionService | None) -> None:
    """Swap the process-wide service (tests, scripts)."""
    global _service
    _service = service


@app.on_event("startup")
def on_startup():
    get_service()
    swept = run_cleanup(get_service)
    if swept:
        log("startup", f"abandoned {len(swept)} stale training session(s)")
    schedule_cleanup(get_service)
    _print_env_banner()


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────
def _current_user_id(x_user_id: str | None) -> int:
    if not x_user_id:
        return 1
    try:
        return int(x_user_id)
    except Exception:
        raise HTTPException(status_code=400, detail="X-User-Id must be an integer")


def _http_error(e: TrainingError) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, SessionNotActive):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ProviderFailure):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _session_summary(s: TrainingSession) -> dict:
    return {
        "session_id": s.session_id,
        "avatar_id": s.avatar_id,
        "avatar_type": s.avatar_type,
        "scenario_id": s.scenario_id,
        "scenario_name": s.scenario_name,
        "business_context": s.business_context,
        "status": s.status,
        "total_messages": s.total_messages,
        "current_context": s.current_context,
        "performance_metrics": s.performance_metrics,
        "started_at": s.started_at,
        "last_active_at": s.last_active_at,
        "completed_at": s.completed_at,
    }


def _session_payload(s: TrainingSession) -> dict:
    out = _session_summary(s)
    out.update({
        "customer_persona": s.customer_persona,
        "scenario_details": s.scenario_details,
        "messages": [m.to_dict() for m in s.messages],
        "conversation_history": s.conversation_history,
    })
    return out


def _turn_payload(turn: ConversationTurn) -> dict:
    out = {
        "response": turn.generation.content,
        "quality_score": turn.generation.quality_score,
        "score_is_synthetic": turn.generation.score_is_synthetic,
        "response_time_ms": turn.generation.response_time_ms,
        "customer_message": turn.customer_message.to_dict(),
        "avatar_message": turn.avatar_message.to_dict(),
        "session": _session_payload(turn.session),
    }
    if turn.question is not None:
        out["question"] = turn.question
    return out


# ──────────────────────────────────────────────────────────────────────────────
# Catalog
# ──────────────────────────────────────────────────────────────────────────────
@training.get("/scenarios")
def list_scenarios(avatar_type: str | None = None):
    items = scenarios_by_avatar_type(avatar_type) if avatar_type else list(TRAINING_SCENARIOS)
    return {"scenarios": [s.summary() for s in items]}


@training.get("/avatars")
def list_avatars():
    return {"avatars": [asdict(a) for a in AVATAR_TYPES]}


@training.get("/paths/{avatar_type}")
def get_training_path(avatar_type: str):
    if avatar_type not in TRAINING_PATHS:
        raise HTTPException(status_code=404, detail=f"No training path for {avatar_type}")
    return {"avatar_type": avatar_type, "path": [s.summary() for s in training_path(avatar_type)]}


# ──────────────────────────────────────────────────────────────────────────────
# Sessions
# ──────────────────────────────────────────────────────────────────────────────
@training.post("/sessions/start")
def start_session(payload: dict, x_user_id: str | None = Header(None, alias="X-User-Id")):
    """
    Body: { "scenario_id": "dr_sakura_initial_consultation", "avatar_id": "dr_sakura" }
    """
    user_id = _current_user_id(x_user_id)
    scenario_id = (payload.get("scenario_id") or "").strip()
    if not scenario_id:
        raise HTTPException(status_code=400, detail="scenario_id required")
    avatar_id = (payload.get("avatar_id") or DEFAULT_AVATAR_ID).strip()
    business_context = (payload.get("business_context") or "health_coaching").strip()
    try:
        session = get_service().create_session(user_id, avatar_id, scenario_id, business_context=business_context)
    except TrainingError as e:
        raise _http_error(e)
    return {"session": _session_summary(session)}


@training.post("/sessions/{session_id}/message")
def post_message(session_id: str, payload: dict):
    text = (payload.get("message") or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="message required")
    try:
        turn = get_service().post_message(session_id, text, payload.get("emotion") or "neutral")
    except TrainingError as e:
        raise _http_error(e)
    debug_log("message posted", {"session_id": session_id, "strategy": turn.generation.strategy}, tag="api")
    return _turn_payload(turn)


@training.post("/sessions/{session_id}/continue")
def continue_session(session_id: str):
    try:
        turn = get_service().continue_conversation(session_id)
    except TrainingError as e:
        raise _http_error(e)
    return _turn_payload(turn)


@training.get("/sessions/{session_id}")
def get_session(session_id: str):
    session = get_service().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Training session not found")
    return {"session": _session_payload(session)}


@training.get("/sessions")
def list_sessions(x_user_id: str | None = Header(None, alias="X-User-Id")):
    user_id = _current_user_id(x_user_id)
    sessions = get_service().get_user_sessions(user_id)
    return {"sessions": [_session_summary(s) for s in sessions]}


@training.post("/sessions/{session_id}/complete")
def complete_session(session_id: str):
    try:
        session = get_service().complete_session(session_id)
    except TrainingError as e:
        raise _http_error(e)
    if session is None:
        raise HTTPException(status_code=404, detail="Training session not found")
    return {
        "session_id": session.session_id,
        "status": session.status,
        "session_duration": session.session_duration,
        "session_summary": session.session_summary,
        "key_achievements": session.key_achievements,
        "areas_for_improvement": session.areas_for_improvement,
        "next_recommendations": session.next_recommendations,
        "learning_points": session.learning_points,
        "completed_at": session.completed_at,
    }


@training.post("/sessions/{session_id}/messages/{message_id}/feedback")
def message_feedback(session_id: str, message_id: str, payload: dict):
    feedback = (payload.get("feedback") or "").strip()
    if not feedback:
        raise HTTPException(status_code=400, detail="feedback required")
    try:
        record = get_service().improve_response(session_id, message_id, feedback)
    except TrainingError as e:
        raise _http_error(e)
    return {"feedback": record.to_dict()}


@training.get("/stats")
def stats():
    return get_service().get_stats()


app.include_router(training)

# ──────────────────────────────────────────────────────────────────────────────
# Health / Root
# ──────────────────────────────────────────────────────────────────────────────

@app.get("/health")
def health():
    return {
        "ok": True,
        "env": ENV,
        "timezone": "Europe/London",
        "app_start_uk": APP_START_UK_STR,
        "uptime_seconds": _uptime_seconds(),
    }


@app.get("/")
def root():
    return {
        "service": "brezcode-training",
        "status": "ok",
        "env": ENV,
        "app_start_uk": APP_START_UK_STR,
        "uptime_seconds": _uptime_seconds(),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Debug routes
# ──────────────────────────────────────────────────────────────────────────────

def _walk_routes(routes, prefix: str = "") -> list[dict]:
    """Flatten routes, descending into included routers and mounts."""
    out = []
    for r in routes:
        path = getattr(r, "path", None)
        nested = getattr(r, "routes", None)
        if nested is None and getattr(r, "router", None) is not None:
            nested = getattr(r.router, "routes", None)
        if nested is not None and getattr(r, "endpoint", None) is None:
            own = path or getattr(r, "prefix", None) or getattr(getattr(r, "router", None), "prefix", None)
            sub_prefix = prefix + (own or "")
            out.extend(_walk_routes(nested, sub_prefix))
            continue
        if path is not None and prefix and not path.startswith(prefix):
            path = prefix + path
        endpoint = getattr(r, "endpoint", None)
        out.append({
            "path": path,
            "name": getattr(r, "name", None),
            "methods": sorted(list(getattr(r, "methods", []) or [])),
            "endpoint": f"{getattr(endpoint, '__module__', None)}.{getattr(endpoint, '__name__', None)}",
        })
    return out


@app.get("/debug/routes")
def debug_routes():
    return _walk_routes(app.router.routes)
