import pytest

from brezcode.errors import ProviderFailure
from brezcode.fallbacks import (
    ANXIETY_RESPONSE,
    FALLBACK_QUESTIONS,
    GENERIC_RESPONSE,
    SCREENING_RESPONSE,
    TECHNIQUE_RESPONSE,
    fallback_response,
    match_topic,
)
from brezcode.generation import (
    Exhausted,
    FallbackChain,
    GenerationRequest,
    KeywordFallbackStrategy,
    Success,
    parse_question_payload,
)
from brezcode.scenarios import DR_SAKURA


class CountingStrategy:
    def __init__(self, name, outcome):
        self.name = name
        self.outcome = outcome
        self.calls = 0

    def attempt(self, request):
        self.calls += 1
        return self.outcome


# ── keyword fallback

def test_keyword_groups_checked_in_order():
    assert fallback_response("I'm so worried about this") == ANXIETY_RESPONSE
    # anxiety wins over family history when both match
    assert match_topic("Scared because of my family history") == "anxiety"
    assert fallback_response("What is the right self-exam technique?") == TECHNIQUE_RESPONSE
    assert fallback_response("When should I get a MAMMOGRAM?") == SCREENING_RESPONSE


def test_unmatched_message_gets_generic_paragraph():
    assert fallback_response("I found a lump, what do I do?") == GENERIC_RESPONSE
    assert fallback_response("") == GENERIC_RESPONSE


# ── chain mechanics

def test_chain_stops_at_first_success_and_never_retries():
    first = CountingStrategy("a", Exhausted(["a: down"]))
    second = CountingStrategy("b", Success("ok", 85, "b"))
    third = CountingStrategy("c", Success("unused", 75, "c"))
    outcome = FallbackChain([first, second, third]).run(GenerationRequest(prompt="p"))
    assert isinstance(outcome, Success)
    assert outcome.strategy == "b"
    assert (first.calls, second.calls, third.calls) == (1, 1, 0)


def test_chain_without_terminal_fallback_reports_every_reason():
    chain = FallbackChain([CountingStrategy("a", Exhausted(["a: x"])), CountingStrategy("b", Exhausted(["b: y"]))])
    outcome = chain.run(GenerationRequest(prompt="p"))
    assert isinstance(outcome, Exhausted)
    assert outcome.reasons == ["a: x", "b: y"]


def test_keyword_strategy_always_succeeds():
    outcome = KeywordFallbackStrategy().attempt(GenerationRequest(prompt="", customer_message="diet tips?"))
    assert isinstance(outcome, Success)
    assert outcome.quality_score == 75
    assert outcome.score_is_synthetic


# ── avatar replies

def test_primary_success_has_synthetic_score_in_band(make_generator, chat_client):
    primary = chat_client("Here is what I suggest.", model="claude-test")
    gen = make_generator(primary=primary, backup=chat_client("unused"))
    result = gen.generate_avatar_response(DR_SAKURA, "hello", [])
    assert result.text == "Here is what I suggest."
    assert 85 <= result.quality_score <= 100
    assert result.strategy == "primary"
    assert result.model == "claude-test"
    assert result.score_is_synthetic
    assert "You are Dr. Sakura Wellness" in primary.prompts[0]


def test_backup_gets_simple_prompt_and_score_85(make_generator, chat_client):
    backup = chat_client("Backup answer", model="gpt-test")
    gen = make_generator(primary=chat_client(RuntimeError("rate limited")), backup=backup)
    result = gen.generate_avatar_response(DR_SAKURA, "When should I screen?", [{"role": "customer", "content": "hi"}])
    assert result.text == "Backup answer"
    assert result.quality_score == 85
    assert result.strategy == "backup"
    assert "professional health educator" in backup.prompts[0]
    assert "Current conversation context" not in backup.prompts[0]


def test_empty_provider_output_counts_as_failure(make_generator, chat_client):
    gen = make_generator(primary=chat_client("   "), backup=None)
    result = gen.generate_avatar_response(DR_SAKURA, "I found a lump, what do I do?", [])
    assert result.strategy == "fallback"
    assert result.text == GENERIC_RESPONSE
    assert result.quality_score == 75


def test_both_providers_down_uses_keyword_fallback(failing_generator):
    result = failing_generator.generate_avatar_response(DR_SAKURA, "I'm anxious about my results", [])
    assert result.text == ANXIETY_RESPONSE
    assert result.quality_score == 75
    assert result.model is None


# ── patient questions

def test_question_json_with_code_fence():
    payload = parse_question_payload('```json\n{"question": "Is it genetic?", "emotion": "anxious"}\n```')
    assert payload == {"question": "Is it genetic?", "emotion": "anxious", "context": ""}


def test_question_without_question_field_is_rejected():
    with pytest.raises(ProviderFailure):
        parse_question_payload('{"emotion": "calm"}')
    with pytest.raises(ProviderFailure):
        parse_question_payload("Sure! Here's a question: how often?")


def test_bad_json_falls_through_to_backup(make_generator, chat_client):
    gen = make_generator(
        primary=chat_client("not json at all"),
        backup=chat_client('{"question": "What about my sister?", "emotion": "concerned", "context": "family"}'),
    )
    q = gen.generate_patient_question([], {"name": "Family", "customer_persona": "Lisa"})
    assert q["question"] == "What about my sister?"
    assert q["emotion"] == "concerned"
    assert q["source"] == "backup"


def test_question_fallback_rotates_by_history_length(failing_generator):
    history = [{"role": "customer", "content": str(i)} for i in range(7)]
    q = failing_generator.generate_patient_question(history, {})
    assert q["question"] == FALLBACK_QUESTIONS[7 % 5]["question"]
    assert q["source"] == "fallback"


# ── improvements

def test_improvement_uses_feedback_prompt(make_generator, chat_client):
    primary = chat_client("Improved answer")
    gen = make_generator(primary=primary)
    result = gen.improve_response(DR_SAKURA, "How do I check?", "Old answer", "More detail please")
    assert result.text == "Improved answer"
    assert 90 <= result.quality_score <= 100
    assert 'Customer Feedback: "More detail please"' in primary.prompts[0]


def test_improvement_without_providers_raises(failing_generator):
    with pytest.raises(ProviderFailure):
        failing_generator.improve_response(DR_SAKURA, "q", "a", "feedback")
