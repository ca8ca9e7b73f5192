"""
Prompt helpers for avatar training (structured, data-in/data-out; no DB or network calls).

Sections:
1) Structured prompt blocks (avatar/business/scenario/patient/memory/anti-repetition/conversation/task)
2) Patient name extraction
3) Prompts: avatar response, backup response, patient question, improvement
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .scenarios import AvatarPersonality
from .schemas import ROLE_AVATAR, PatientPersona, TrainingMemory

RECENT_TURNS = 6
QUESTION_TURNS = 4
PREVIOUS_RESPONSE_PREVIEW = 100
MAX_LEARNING_POINTS = 5
MAX_TOPICS_HANDLED = 3

FIRST_SESSION_MEMORY = (
    "This is your first training session. Apply your medical knowledge and empathetic communication skills."
)


@dataclass
class PromptAssembly:
    text: str
    blocks: Dict[str, str] = field(default_factory=dict)
    block_order: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Structured prompt blocks (reusable building pieces)
# Each block is a simple text fragment; compose them with assemble_prompt.
# ---------------------------------------------------------------------------


def avatar_block(personality: AvatarPersonality) -> str:
    """Avatar persona and its standing instructions."""
    return f"You are {personality.name}, {personality.expertise}.\n\n{personality.system_prompt}"


def business_block(business_context: str) -> str:
    return f"Business Context: {business_context or 'general'}"


def scenario_block(scenario_name: str | None) -> str:
    return f'TRAINING SCENARIO: "{scenario_name}"' if scenario_name else ""


def patient_block(persona_text: str | None, patient_name: str) -> str:
    if not persona_text:
        return ""
    return (
        f"PATIENT PROFILE YOU'RE HELPING: {persona_text}\n"
        f"PATIENT NAME: {patient_name}\n\n"
        f"REMEMBER: You are responding to {patient_name} with their unique background and concerns. "
        "Apply all knowledge from your training experience."
    )


def training_memory_context(memory: Optional[TrainingMemory]) -> str:
    """Summary of prior completed sessions for the same avatar/user."""
    if memory is None or memory.is_empty:
        return FIRST_SESSION_MEMORY
    lines = [
        f"TRAINING EXPERIENCE: {memory.total_sessions} completed sessions "
        f"(avg quality: {memory.average_quality:.1f}/100)",
        f"SCENARIOS PRACTICED: {', '.join(memory.scenarios_practiced)}",
    ]
    points = memory.learning_points[:MAX_LEARNING_POINTS]
    if points:
        lines.append("KEY LEARNING POINTS FROM TRAINING:")
        for idx, point in enumerate(points, start=1):
            lines.append(f"{idx}. {point.get('title', '')}: {point.get('summary') or point.get('content', '')}")
    topics = memory.topics_handled[:MAX_TOPICS_HANDLED]
    if topics:
        lines.append(f"COMMON PATIENT CONCERNS HANDLED: {', '.join(topics)}")
    return "\n".join(lines)


def training_memory_block(memory: Optional[TrainingMemory]) -> str:
    return "TRAINING MEMORY - KNOWLEDGE FROM ALL PREVIOUS SESSIONS:\n" + training_memory_context(memory)


def _preview(text: str, limit: int = PREVIOUS_RESPONSE_PREVIEW) -> str:
    return f"{(text or '')[:limit]}..."


def anti_repetition_block(previous_responses: Sequence[str]) -> str:
    if not previous_responses:
        return "This is the start of a new conversation."
    listed = "\n".join(
        f"Previous Response {i}: {_preview(resp)}" for i, resp in enumerate(previous_responses, start=1)
    )
    return (
        "IMPORTANT: Avoid repetitive responses. Here are your previous responses in this conversation:\n"
        f"{listed}\n\n"
        "CRITICAL INSTRUCTIONS:\n"
        "1. DO NOT repeat greetings or introductions - you're already in conversation\n"
        '2. DO NOT start with "Hello", "Hi", or any greeting if you\'ve already introduced yourself\n'
        "3. Build on what you've already told them - reference previous advice naturally\n"
        "4. Use completely different phrasing and examples than your previous responses\n"
        '5. If they ask similar questions, say "Building on what I mentioned earlier..." or '
        '"Let me add to that previous guidance..."\n'
        "6. Provide specific, actionable details they haven't heard yet"
    )


def conversation_block(turns: Sequence[Mapping[str, Any]]) -> str:
    lines = [f"{t.get('role', '')}: {t.get('content', '')}" for t in turns]
    return "Current conversation context:\n" + "\n".join(lines)


def incoming_block(customer_message: str) -> str:
    return f'Customer/Patient message: "{customer_message}"'


def format_block(avatar_name: str, has_previous: bool) -> str:
    opener = (
        "Jump directly into helpful content since you're continuing an ongoing conversation."
        if has_previous
        else "You may introduce yourself briefly if this is the first interaction."
    )
    return (
        f"Please respond as {avatar_name} with a FRESH, SPECIFIC response that directly addresses their question "
        f"with NEW information. {opener}\n\n"
        "Keep responses focused and practical, typically 150-300 words."
    )


def assemble_prompt(blocks: List[str]) -> str:
    """Join non-empty blocks with blank lines."""
    return "\n\n".join([b for b in blocks if b])


# ---------------------------------------------------------------------------
# Patient name extraction
# ---------------------------------------------------------------------------

_LEADING_NAME = re.compile(r"^([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)")

# (substrings, name) checked in order when no leading name is found
_NAME_HEURISTICS = (
    (("42", "Maria"), "Maria Santos"),
    (("35", "Sarah"), "Sarah Johnson"),
    (("28", "Emily"), "Emily Chen"),
)


def extract_patient_name(
    customer_persona: str | None,
    scenario_details: Mapping[str, Any] | None = None,
    persona: PatientPersona | None = None,
) -> str:
    """
    Display name for the simulated patient.

    A structured persona wins. Otherwise the free-text description is parsed:
    leading capitalized words, then scenario 'patient_name', then a few
    age/name guesses, then 'Patient'. The text parse is a compatibility shim.
    """
    if persona is not None and persona.name:
        return persona.name
    text = (customer_persona or "").strip()
    match = _LEADING_NAME.match(text)
    if match:
        return match.group(1)
    if scenario_details and scenario_details.get("patient_name"):
        return str(scenario_details["patient_name"])
    for needles, name in _NAME_HEURISTICS:
        if any(n in text for n in needles):
            return name
    return "Patient"


def persona_from_details(scenario_details: Mapping[str, Any] | None) -> Optional[PatientPersona]:
    raw = (scenario_details or {}).get("persona")
    if isinstance(raw, PatientPersona):
        return raw
    if isinstance(raw, Mapping) and raw.get("name"):
        return PatientPersona(name=str(raw["name"]), age=raw.get("age"), background=str(raw.get("background") or ""))
    return None


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def avatar_response_prompt(
    personality: AvatarPersonality,
    customer_message: str,
    history: Sequence[Mapping[str, Any]],
    business_context: str = "general",
    scenario_details: Mapping[str, Any] | None = None,
    memory: Optional[TrainingMemory] = None,
) -> PromptAssembly:
    """
    Full contextual prompt for the avatar's next reply. Deterministic for fixed inputs.
    """
    details = scenario_details or {}
    persona = persona_from_details(details)
    persona_text = persona.describe() if persona else details.get("customer_persona")
    patient_name = extract_patient_name(details.get("customer_persona"), details, persona)

    recent = list(history)[-RECENT_TURNS:]
    previous = [str(t.get("content", "")) for t in recent if t.get("role") == ROLE_AVATAR]

    blocks = {
        "avatar": avatar_block(personality),
        "business": business_block(business_context),
        "scenario": scenario_block(details.get("name")),
        "patient": patient_block(persona_text, patient_name),
        "memory": training_memory_block(memory),
        "anti_repetition": anti_repetition_block(previous),
        "conversation": conversation_block(recent),
        "incoming": incoming_block(customer_message),
        "format": format_block(personality.name, bool(previous)),
    }
    order = list(blocks.keys())
    return PromptAssembly(
        text=assemble_prompt([blocks[k] for k in order]),
        blocks=blocks,
        block_order=order,
    )


def backup_response_prompt(customer_message: str, avatar_name: str = "Dr. Sakura") -> str:
    """Simple, non-contextual prompt for the backup provider."""
    return (
        f"You are {avatar_name}, a professional health educator. Provide a comprehensive, detailed response to this "
        f'patient question: "{customer_message}". Include specific medical guidance, step-by-step instructions when '
        "appropriate, and evidence-based recommendations. Be thorough and professional."
    )


def patient_question_prompt(
    history: Sequence[Mapping[str, Any]],
    scenario_name: str | None = None,
    patient_persona: str | None = None,
) -> str:
    recent = "\n".join(f"{t.get('role', '')}: {t.get('content', '')}" for t in list(history)[-QUESTION_TURNS:])
    scenario_context = scenario_name or "A general healthcare consultation"
    persona = patient_persona or "A patient seeking medical guidance"
    return (
        f'You are simulating an intelligent patient in this medical training scenario: "{scenario_context}"\n\n'
        f"PATIENT PERSONA: {persona}\n\n"
        f"Recent conversation:\n{recent}\n\n"
        "Generate a thoughtful, contextual follow-up question that a real patient would ask. The question should:\n"
        "1. Show deeper engagement with the medical topic discussed\n"
        "2. Reflect genuine patient concerns and anxieties\n"
        "3. Build naturally on the conversation flow\n"
        "4. Demonstrate the patient is processing and thinking about the advice\n"
        "5. Include specific details that show active listening\n\n"
        "For breast health scenarios, patients might ask about:\n"
        "- Specific techniques or procedures mentioned\n"
        "- Personal risk factors and family history implications\n"
        "- Timing and frequency of screenings\n"
        "- What to expect during procedures\n"
        "- Signs and symptoms to watch for\n"
        "- Lifestyle modifications and their effectiveness\n"
        "- How to manage anxiety about findings\n\n"
        "Respond with a JSON object:\n"
        "{\n"
        '  "question": "The patient\'s next question (natural, specific, thoughtful)",\n'
        '  "emotion": "concerned|anxious|curious|hopeful|confused",\n'
        '  "context": "Brief explanation of why this question follows naturally"\n'
        "}"
    )


def improvement_prompt(
    personality: AvatarPersonality,
    customer_question: str,
    original_response: str,
    feedback: str,
    business_context: str = "general",
) -> str:
    return (
        f"You are {personality.name}, {personality.expertise}.\n\n"
        "LEARNING TASK: Improve your previous response based on specific feedback.\n\n"
        f'Original Customer Question: "{customer_question}"\n\n'
        f'Your Previous Response: "{original_response}"\n\n'
        f'Customer Feedback: "{feedback}"\n\n'
        f"Business Context: {business_context}\n\n"
        f"{personality.system_prompt}\n\n"
        "IMPROVEMENT INSTRUCTIONS:\n"
        "1. Analyze what the customer specifically requested in their feedback\n"
        "2. Enhance your response to address those specific needs\n"
        "3. Maintain your professional expertise and communication style\n"
        "4. Provide more detail, specificity, or clarity as requested\n"
        "5. Keep the improved response focused and actionable\n"
        "6. Aim for 200-400 words to provide comprehensive value\n\n"
        "Generate an improved response that directly addresses the customer's feedback while maintaining your "
        "professional standards."
    )


__all__ = [
    "PromptAssembly",
    "avatar_block",
    "business_block",
    "scenario_block",
    "patient_block",
    "training_memory_context",
    "training_memory_block",
    "anti_repetition_block",
    "conversation_block",
    "incoming_block",
    "format_block",
    "assemble_prompt",
    "extract_patient_name",
    "persona_from_details",
    "avatar_response_prompt",
    "backup_response_prompt",
    "patient_question_prompt",
    "improvement_prompt",
]
