import json
import os
from typing import Any, Optional

# prompts and replies get long; debug lines keep the head only
MAX_FIELD_CHARS = 400
SECRET_MARKERS = ("api_key", "token", "password", "secret")


def debug_enabled() -> bool:
    raw = os.getenv("BREZCODE_DEBUG")
    if raw is None:
        from .config import settings
        return bool(settings.BREZCODE_DEBUG)
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def log(tag: str, message: str) -> None:
    """Tagged console line; never raises."""
    try:
        print(f"[{tag}] {message}")
    except Exception:
        pass


def _scrub(value: Any, key: str = "") -> Any:
    if key and any(m in key.lower() for m in SECRET_MARKERS):
        return "***"
    if isinstance(value, dict):
        return {k: _scrub(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    if isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
        return value[:MAX_FIELD_CHARS] + f"… (+{len(value) - MAX_FIELD_CHARS} chars)"
    return value


def debug_log(message: str, payload: Optional[dict[str, Any]] = None, tag: str = "debug") -> None:
    """Payload lines for BREZCODE_DEBUG runs; secrets masked, long text clipped."""
    if not debug_enabled():
        return
    if payload is None:
        log(tag, message)
        return
    try:
        body = json.dumps(_scrub(payload), ensure_ascii=False, default=str)
    except Exception:
        body = repr(payload)[:MAX_FIELD_CHARS]
    log(tag, f"{message} :: {body}")
