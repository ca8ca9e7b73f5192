from __future__ import annotations

from typing import Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from .config import settings
from .errors import ProviderFailure

PROVIDER_PRIMARY = "primary"
PROVIDER_BACKUP = "backup"

# Primary = Anthropic (contextual prompt); backup = OpenAI (simple prompt).
primary_model = (settings.PRIMARY_MODEL or "").strip() or "claude-sonnet-4-20250514"
backup_model = (settings.BACKUP_MODEL or "").strip() or "gpt-4o"


def resolve_model_name(provider: str, model_override: str | None = None) -> str:
    override = (model_override or "").strip()
    if override:
        return override
    return primary_model if provider == PROVIDER_PRIMARY else backup_model


def get_llm_client(
    provider: str,
    *,
    max_tokens: int,
    temperature: float | None = None,
    model_override: str | None = None,
):
    """
    Chat model for a provider slot. Raises ProviderFailure when the provider is
    not configured so callers can move on to the next strategy.
    """
    model_name = resolve_model_name(provider, model_override)
    temp = settings.LLM_TEMPERATURE if temperature is None else temperature
    if provider == PROVIDER_PRIMARY:
        if not settings.ANTHROPIC_API_KEY:
            raise ProviderFailure("ANTHROPIC_API_KEY not configured")
        return ChatAnthropic(
            model=model_name,
            temperature=temp,
            max_tokens=max_tokens,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            api_key=settings.ANTHROPIC_API_KEY,
        )
    if provider == PROVIDER_BACKUP:
        if not settings.OPENAI_API_KEY:
            raise ProviderFailure("OPENAI_API_KEY not configured")
        return ChatOpenAI(
            model=model_name,
            temperature=temp,
            max_tokens=max_tokens,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            api_key=settings.OPENAI_API_KEY,
        )
    raise ProviderFailure(f"Unknown provider: {provider}")


def message_text(content: Any) -> str:
    """Flatten a chat model reply (plain string or list of content parts)."""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text") or ""))
        return "".join(parts).strip()
    return str(content or "").strip()


def complete(client, prompt: str) -> str:
    """Single-turn completion; empty output counts as a provider failure."""
    reply = client.invoke([HumanMessage(content=prompt)])
    text = message_text(getattr(reply, "content", reply))
    if not text:
        raise ProviderFailure("provider returned empty content")
    return text
