# run.py
import os

from dotenv import load_dotenv
import uvicorn

load_dotenv(override=True)

APP_PATH = "brezcode.api:app"


def _describe_backends() -> str:
    from brezcode.config import settings

    store = "in-memory" if settings.FORCE_IN_MEMORY_STORE else settings.DATABASE_URL.split("://", 1)[0]
    providers = [name for name, key in (("anthropic", settings.ANTHROPIC_API_KEY), ("openai", settings.OPENAI_API_KEY)) if key]
    return f"store={store} providers={','.join(providers) or 'canned fallback only'}"


def run_server(host: str, port: int, reload: bool = True):
    """Serve the training API; drop auto-reload when the file watcher is refused."""
    try:
        uvicorn.run(APP_PATH, host=host, port=port, reload=reload)
    except (PermissionError, OSError) as exc:
        if not reload or getattr(exc, "errno", None) != 1:
            raise
        print("ℹ️  Reload watcher not permitted; serving without reload.")
        uvicorn.run(APP_PATH, host=host, port=port, reload=False)


if __name__ == "__main__":
    host = os.getenv("APP_HOST") or "0.0.0.0"
    port = int(os.getenv("PORT") or os.getenv("DEV_SERVER_PORT") or 8000)
    reload_pref = os.getenv("UVICORN_RELOAD", "true").strip().lower() not in {"0", "false", "no"}
    print(f"🩺 BrezCode training on {host}:{port} | {_describe_backends()}")
    run_server(host, port, reload=reload_pref)
