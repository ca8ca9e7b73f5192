"""
Canned content used when every generation provider has failed.

Keyword groups are checked in order; the first group with a case-insensitive
substring hit picks the paragraph. No hit -> GENERIC_RESPONSE.
"""
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

ANXIETY_RESPONSE = (
    "I understand you're feeling anxious about this, and that's completely normal. Many people share these concerns "
    "about breast health. Let me reassure you - being proactive about your health shows great self-care. The most "
    "important first step is establishing a regular self-examination routine. I recommend doing this monthly, about a "
    "week after your period when breast tissue is least tender. During the exam, use the pads of your three middle "
    "fingers to feel for any changes in a circular motion. Remember, you're looking for anything that feels different "
    "from last time, not necessarily something that feels \"wrong.\" If you find anything concerning, don't panic - "
    "most breast changes are benign, but it's always worth having a healthcare professional take a look for peace of mind."
)

TECHNIQUE_RESPONSE = (
    "Great question about self-examinations! Here's the proper technique: First, examine yourself in the mirror with "
    "your arms at your sides, then raised above your head, looking for any visible changes in size, shape, or skin "
    "texture. Next, lie down and use the pads of your three middle fingers to examine each breast in circular motions, "
    "starting from the outside and working inward. Apply light, medium, and firm pressure to feel different depths of "
    "tissue. Don't forget to check your armpits and collarbone area too. The best time is about a week after your "
    "period when breasts are least tender. If you're post-menopausal, pick the same date each month. Remember, you're "
    "looking for changes from your baseline, not perfection."
)

FAMILY_HISTORY_RESPONSE = (
    "Family history is indeed an important risk factor to consider, and I'm glad you're being proactive. Having a "
    "family history doesn't mean you'll definitely develop breast cancer, but it does mean you should be extra "
    "vigilant about screening. I'd recommend discussing your family history in detail with your healthcare provider - "
    "they might suggest genetic counseling or earlier/more frequent screening. In the meantime, focus on what you can "
    "control: maintain a healthy weight, exercise regularly, limit alcohol, and perform monthly self-exams. Also, make "
    "sure your relatives' diagnoses are well-documented (what type of cancer, at what age) as this information helps "
    "your doctor assess your risk more accurately."
)

SCREENING_RESPONSE = (
    "Excellent question about screening! Current guidelines recommend mammograms starting at age 40-50 (depending on "
    "your risk factors), then annually or every two years. However, if you have a family history or other risk "
    "factors, your doctor might recommend starting earlier. The screening schedule should be personalized based on "
    "your individual risk profile. Don't wait if you're due for a mammogram - early detection is key. If you're "
    "nervous about the procedure, know that while it can be uncomfortable, it's brief (about 15 minutes total) and the "
    "compression is necessary for clear images. Many facilities now offer more comfortable equipment and can schedule "
    "around your menstrual cycle for less sensitivity."
)

LIFESTYLE_RESPONSE = (
    "Lifestyle factors can indeed influence breast health! While we can't prevent all breast cancers, we can reduce "
    "our risk through healthy choices. Focus on a Mediterranean-style diet rich in fruits, vegetables, whole grains, "
    "and healthy fats like olive oil and nuts. Limit processed foods, red meat, and alcohol. Regular exercise (aim for "
    "150 minutes of moderate activity weekly) helps maintain a healthy weight and hormone balance. Getting adequate "
    "sleep (7-9 hours) and managing stress through techniques like meditation or yoga also support overall health. "
    "Don't smoke, and if you do, seek help to quit. These lifestyle factors work synergistically to support your "
    "body's natural defenses."
)

GENERIC_RESPONSE = (
    "Thank you for your question about breast health. While I'd love to give you more personalized guidance, the most "
    "important thing I can tell you is that being proactive about your health - like you're doing right now by asking "
    "questions - is the best first step. I recommend establishing three key habits: monthly self-examinations (about "
    "a week after your period), annual clinical breast exams with your healthcare provider, and mammograms according "
    "to screening guidelines for your age and risk level. If you have specific concerns about symptoms, changes "
    "you've noticed, or your personal risk factors, please don't hesitate to contact your healthcare provider. They "
    "can give you personalized advice based on your complete medical history. Remember, most breast changes are "
    "benign, but early detection and professional guidance are always your best allies in maintaining breast health."
)

# (topic, keywords, paragraph) in priority order
KEYWORD_RESPONSES: Tuple[Tuple[str, Tuple[str, ...], str], ...] = (
    ("anxiety", ("anxious", "worried", "scared"), ANXIETY_RESPONSE),
    ("technique", ("self-exam", "examination", "technique"), TECHNIQUE_RESPONSE),
    ("family_history", ("family history", "genetic", "risk"), FAMILY_HISTORY_RESPONSE),
    ("screening", ("mammogram", "screening", "when"), SCREENING_RESPONSE),
    ("lifestyle", ("diet", "lifestyle", "prevent"), LIFESTYLE_RESPONSE),
)


def match_topic(message: str | None) -> str | None:
    lowered = (message or "").lower()
    for topic, keywords, _ in KEYWORD_RESPONSES:
        if any(k in lowered for k in keywords):
            return topic
    return None


def fallback_response(message: str | None) -> str:
    topic = match_topic(message)
    for name, _, paragraph in KEYWORD_RESPONSES:
        if name == topic:
            return paragraph
    return GENERIC_RESPONSE


# ──────────────────────────────────────────────────────────────────────────────
# Simulated patient questions
# ──────────────────────────────────────────────────────────────────────────────

FALLBACK_QUESTIONS: Tuple[Dict[str, str], ...] = (
    {
        "question": "I've been thinking about what you said - can you help me understand the next steps more clearly?",
        "emotion": "curious",
        "context": "Patient reflecting on previous advice",
    },
    {
        "question": "I'm still feeling a bit overwhelmed. Could you break down the most important things I should focus on first?",
        "emotion": "anxious",
        "context": "Patient needs prioritized, manageable steps",
    },
    {
        "question": "Based on my family history and concerns, what specific signs should I be watching for?",
        "emotion": "concerned",
        "context": "Patient wants personalized risk awareness",
    },
    {
        "question": "How often should I be doing the self-examinations, and what's the best time of month?",
        "emotion": "curious",
        "context": "Patient seeks specific scheduling guidance",
    },
    {
        "question": "I want to make sure I'm doing everything right - could you walk me through the technique again?",
        "emotion": "determined",
        "context": "Patient wants to confirm proper technique",
    },
)


def fallback_question(history: Sequence[object]) -> Dict[str, str]:
    """Rotate through the canned questions by conversation length."""
    return dict(FALLBACK_QUESTIONS[len(history) % len(FALLBACK_QUESTIONS)])


# ──────────────────────────────────────────────────────────────────────────────
# Session summary templates
# ──────────────────────────────────────────────────────────────────────────────

SUMMARY_ACHIEVEMENTS: List[str] = [
    "Completed scenario-based training",
    "Practiced real-world patient interactions",
    "Applied health coaching knowledge in context",
    "Demonstrated empathetic communication",
]

SUMMARY_IMPROVEMENTS: List[str] = [
    "Continue practicing similar scenarios",
    "Focus on response quality and medical accuracy",
    "Build knowledge base further",
    "Practice handling complex emotional situations",
]

SUMMARY_RECOMMENDATIONS: List[str] = [
    "Try more challenging scenarios with high-risk patients",
    "Practice different patient demographics",
    "Review session learnings and apply feedback",
    "Focus on prevention counseling techniques",
]


__all__ = [
    "ANXIETY_RESPONSE",
    "TECHNIQUE_RESPONSE",
    "FAMILY_HISTORY_RESPONSE",
    "SCREENING_RESPONSE",
    "LIFESTYLE_RESPONSE",
    "GENERIC_RESPONSE",
    "KEYWORD_RESPONSES",
    "match_topic",
    "fallback_response",
    "FALLBACK_QUESTIONS",
    "fallback_question",
    "SUMMARY_ACHIEVEMENTS",
    "SUMMARY_IMPROVEMENTS",
    "SUMMARY_RECOMMENDATIONS",
]
