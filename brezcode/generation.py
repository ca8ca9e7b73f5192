"""
Response generation as an ordered chain of strategies.

Each strategy attempts generation and returns Success(text, score, ...) or
Exhausted(reason). FallbackChain tries them in order, never retries a
strategy, and stops at the first Success. The keyword/question fallbacks
always succeed, so a chain ending in one never comes back Exhausted.

Quality scores are placeholders: providers get a synthetic value
(85–100 primary, 85 backup) and the canned fallback a fixed 75. They are
flagged with score_is_synthetic and must not be read as measurements.
"""
from __future__ import annotations

import json
import random
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from . import llm
from .config import settings
from .debug_utils import debug_log, log
from .errors import ProviderFailure
from .fallbacks import fallback_question, fallback_response
from .prompts import (
    avatar_response_prompt,
    backup_response_prompt,
    improvement_prompt,
    patient_question_prompt,
)
from .scenarios import AvatarPersonality
from .schemas import TrainingMemory

PRIMARY_SCORE_RANGE = (85, 100)
BACKUP_SCORE = 85
FALLBACK_SCORE = 75
IMPROVED_SCORE_RANGE = (90, 100)


@dataclass
class GenerationRequest:
    prompt: str
    simple_prompt: str = ""
    customer_message: str = ""
    history: Sequence[Mapping[str, Any]] = field(default_factory=list)


@dataclass
class Success:
    text: str
    quality_score: int
    strategy: str
    model: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    score_is_synthetic: bool = True


@dataclass
class Exhausted:
    reasons: List[str] = field(default_factory=list)


GenerationOutcome = Union[Success, Exhausted]


class GenerationStrategy(Protocol):
    name: str

    def attempt(self, request: GenerationRequest) -> GenerationOutcome:
        """Try to produce text; never raises."""


# ──────────────────────────────────────────────────────────────────────────────
# Scoring / parsing helpers
# ──────────────────────────────────────────────────────────────────────────────

def fixed_score(value: int) -> Callable[[random.Random], int]:
    return lambda _rng: value


def ranged_score(low: int, high: int) -> Callable[[random.Random], int]:
    return lambda rng: rng.randint(low, high)


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_question_payload(text: str) -> Dict[str, Any]:
    """Parse a {question, emotion, context} reply, tolerating markdown code fences."""
    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    try:
        data = json.loads(cleaned)
    except ValueError as e:
        raise ProviderFailure(f"patient question was not JSON: {e}") from e
    if not isinstance(data, dict) or not str(data.get("question") or "").strip():
        raise ProviderFailure("patient question JSON missing 'question'")
    return {
        "question": str(data["question"]).strip(),
        "emotion": str(data.get("emotion") or "neutral").strip(),
        "context": str(data.get("context") or "").strip(),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Strategies
# ──────────────────────────────────────────────────────────────────────────────

class ProviderStrategy:
    """Call an external chat model for one provider slot."""

    def __init__(
        self,
        name: str,
        provider: str,
        *,
        max_tokens: int,
        temperature: float | None = None,
        use_simple_prompt: bool = False,
        scorer: Callable[[random.Random], int] = fixed_score(BACKUP_SCORE),
        parser: Callable[[str], Dict[str, Any]] | None = None,
        client_factory: Callable[..., Any] = llm.get_llm_client,
        rng: random.Random | None = None,
    ):
        self.name = name
        self.provider = provider
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.use_simple_prompt = use_simple_prompt
        self.scorer = scorer
        self.parser = parser
        self.client_factory = client_factory
        self.rng = rng or random.Random()

    def attempt(self, request: GenerationRequest) -> GenerationOutcome:
        prompt = request.simple_prompt if self.use_simple_prompt and request.simple_prompt else request.prompt
        try:
            client = self.client_factory(self.provider, max_tokens=self.max_tokens, temperature=self.temperature)
            text = llm.complete(client, prompt)
            payload = self.parser(text) if self.parser else None
        except Exception as e:
            log("llm", f"{self.name} provider failed: {e!r}")
            return Exhausted([f"{self.name}: {e}"])
        model = getattr(client, "model", None) or getattr(client, "model_name", None)
        if payload is not None:
            text = payload["question"]
        return Success(
            text=text,
            quality_score=self.scorer(self.rng),
            strategy=self.name,
            model=str(model) if model else llm.resolve_model_name(self.provider),
            payload=payload,
        )


class KeywordFallbackStrategy:
    """Canned answer chosen by keyword match on the customer's message."""

    name = "fallback"

    def attempt(self, request: GenerationRequest) -> GenerationOutcome:
        return Success(
            text=fallback_response(request.customer_message),
            quality_score=FALLBACK_SCORE,
            strategy=self.name,
            model=None,
        )


class QuestionFallbackStrategy:
    """Canned patient question rotated by conversation length."""

    name = "fallback"

    def attempt(self, request: GenerationRequest) -> GenerationOutcome:
        payload = fallback_question(request.history)
        return Success(
            text=payload["question"],
            quality_score=FALLBACK_SCORE,
            strategy=self.name,
            model=None,
            payload=payload,
        )


class FallbackChain:
    def __init__(self, strategies: Sequence[GenerationStrategy]):
        self.strategies = list(strategies)

    def run(self, request: GenerationRequest) -> GenerationOutcome:
        reasons: List[str] = []
        for strategy in self.strategies:
            outcome = strategy.attempt(request)
            if isinstance(outcome, Success):
                if reasons:
                    log("llm", f"using {strategy.name} after: {'; '.join(reasons)}")
                debug_log("generation ok", {"strategy": strategy.name, "score": outcome.quality_score}, tag="llm")
                return outcome
            reasons.extend(outcome.reasons)
        return Exhausted(reasons)


# ──────────────────────────────────────────────────────────────────────────────
# Generator facade
# ──────────────────────────────────────────────────────────────────────────────

class ResponseGenerator:
    """
    Builds prompts and runs the three chains: avatar replies, simulated
    patient questions and feedback-driven improvements.
    """

    def __init__(
        self,
        response_chain: FallbackChain,
        question_chain: FallbackChain,
        improvement_chain: FallbackChain,
    ):
        self.response_chain = response_chain
        self.question_chain = question_chain
        self.improvement_chain = improvement_chain

    def generate_avatar_response(
        self,
        personality: AvatarPersonality,
        customer_message: str,
        history: Sequence[Mapping[str, Any]] = (),
        business_context: str = "general",
        scenario_details: Mapping[str, Any] | None = None,
        memory: TrainingMemory | None = None,
    ) -> Success:
        assembly = avatar_response_prompt(
            personality,
            customer_message,
            history,
            business_context=business_context,
            scenario_details=scenario_details,
            memory=memory,
        )
        request = GenerationRequest(
            prompt=assembly.text,
            simple_prompt=backup_response_prompt(customer_message),
            customer_message=customer_message,
            history=list(history),
        )
        outcome = self.response_chain.run(request)
        if isinstance(outcome, Exhausted):
            # chain configured without a terminal fallback
            return KeywordFallbackStrategy().attempt(request)  # type: ignore[return-value]
        return outcome

    def generate_patient_question(
        self,
        history: Sequence[Mapping[str, Any]] = (),
        scenario_details: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        details = scenario_details or {}
        prompt = patient_question_prompt(history, details.get("name"), details.get("customer_persona"))
        request = GenerationRequest(prompt=prompt, simple_prompt=prompt, history=list(history))
        outcome = self.question_chain.run(request)
        if isinstance(outcome, Exhausted):
            return fallback_question(history)
        payload = dict(outcome.payload or {"question": outcome.text, "emotion": "neutral", "context": ""})
        payload["source"] = outcome.strategy
        return payload

    def improve_response(
        self,
        personality: AvatarPersonality,
        customer_question: str,
        original_response: str,
        feedback: str,
        business_context: str = "general",
    ) -> Success:
        prompt = improvement_prompt(personality, customer_question, original_response, feedback, business_context)
        outcome = self.improvement_chain.run(GenerationRequest(prompt=prompt, simple_prompt=prompt))
        if isinstance(outcome, Exhausted):
            raise ProviderFailure("Failed to generate improved response: " + "; ".join(outcome.reasons))
        return outcome


def default_response_generator(rng: random.Random | None = None) -> ResponseGenerator:
    """Primary → backup → canned, wired from settings."""
    rng = rng or random.Random()
    response_chain = FallbackChain([
        ProviderStrategy(
            "primary",
            llm.PROVIDER_PRIMARY,
            max_tokens=settings.PRIMARY_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
            scorer=ranged_score(*PRIMARY_SCORE_RANGE),
            rng=rng,
        ),
        ProviderStrategy(
            "backup",
            llm.PROVIDER_BACKUP,
            max_tokens=settings.BACKUP_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
            use_simple_prompt=True,
            scorer=fixed_score(BACKUP_SCORE),
            rng=rng,
        ),
        KeywordFallbackStrategy(),
    ])
    question_chain = FallbackChain([
        ProviderStrategy(
            "primary",
            llm.PROVIDER_PRIMARY,
            max_tokens=settings.QUESTION_MAX_TOKENS,
            scorer=ranged_score(*PRIMARY_SCORE_RANGE),
            parser=parse_question_payload,
            rng=rng,
        ),
        ProviderStrategy(
            "backup",
            llm.PROVIDER_BACKUP,
            max_tokens=settings.QUESTION_MAX_TOKENS,
            scorer=fixed_score(BACKUP_SCORE),
            parser=parse_question_payload,
            rng=rng,
        ),
        QuestionFallbackStrategy(),
    ])
    improvement_chain = FallbackChain([
        ProviderStrategy(
            "primary",
            llm.PROVIDER_PRIMARY,
            max_tokens=settings.IMPROVE_MAX_TOKENS,
            temperature=settings.IMPROVE_TEMPERATURE,
            scorer=ranged_score(*IMPROVED_SCORE_RANGE),
            rng=rng,
        ),
        ProviderStrategy(
            "backup",
            llm.PROVIDER_BACKUP,
            max_tokens=settings.IMPROVE_MAX_TOKENS,
            temperature=settings.IMPROVE_TEMPERATURE,
            scorer=fixed_score(BACKUP_SCORE),
            rng=rng,
        ),
    ])
    return ResponseGenerator(response_chain, question_chain, improvement_chain)


__all__ = [
    "GenerationRequest",
    "Success",
    "Exhausted",
    "GenerationOutcome",
    "GenerationStrategy",
    "ProviderStrategy",
    "KeywordFallbackStrategy",
    "QuestionFallbackStrategy",
    "FallbackChain",
    "ResponseGenerator",
    "default_response_generator",
    "parse_question_payload",
    "fixed_score",
    "ranged_score",
    "PRIMARY_SCORE_RANGE",
    "BACKUP_SCORE",
    "FALLBACK_SCORE",
]
