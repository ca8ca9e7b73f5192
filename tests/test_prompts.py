from brezcode.prompts import (
    FIRST_SESSION_MEMORY,
    anti_repetition_block,
    avatar_response_prompt,
    extract_patient_name,
    training_memory_context,
)
from brezcode.scenarios import DR_SAKURA, get_scenario
from brezcode.schemas import PatientPersona, TrainingMemory


def _history(n):
    roles = ["customer", "avatar"]
    return [{"role": roles[i % 2], "content": f"msg-{i:02d}"} for i in range(n)]


def test_leading_capitalized_name_wins():
    assert extract_patient_name("Maria Santos, 42, teacher with two kids") == "Maria Santos"


def test_structured_persona_beats_text():
    persona = PatientPersona("Grace Lee", 33, "engineer")
    assert extract_patient_name("Maria Santos, 42", persona=persona) == "Grace Lee"


def test_scenario_patient_name_used_when_text_has_no_name():
    assert extract_patient_name("a nervous first-timer", {"patient_name": "Dana"}) == "Dana"


def test_age_heuristics_and_default():
    assert extract_patient_name("a 42 year old teacher") == "Maria Santos"
    assert extract_patient_name("a 35 year old nurse") == "Sarah Johnson"
    assert extract_patient_name("a 28 year old runner") == "Emily Chen"
    assert extract_patient_name("someone unnamed") == "Patient"
    assert extract_patient_name(None) == "Patient"


def test_blocks_in_fixed_order():
    details = get_scenario("dr_sakura_initial_consultation").to_details()
    assembly = avatar_response_prompt(DR_SAKURA, "How often should I check?", _history(4), "health_coaching", details)
    assert assembly.block_order == [
        "avatar", "business", "scenario", "patient", "memory",
        "anti_repetition", "conversation", "incoming", "format",
    ]
    text = assembly.text
    markers = [
        "You are Dr. Sakura Wellness",
        "Business Context: health_coaching",
        'TRAINING SCENARIO: "Initial Breast Health Consultation"',
        "PATIENT NAME: Sarah Chen",
        "TRAINING MEMORY",
        "IMPORTANT: Avoid repetitive responses",
        "Current conversation context:",
        'Customer/Patient message: "How often should I check?"',
        "150-300 words",
    ]
    positions = [text.index(m) for m in markers]
    assert positions == sorted(positions)


def test_only_last_six_turns_are_included():
    text = avatar_response_prompt(DR_SAKURA, "next", _history(8)).text
    assert "msg-00" not in text
    assert "msg-01" not in text
    for i in range(2, 8):
        assert f"msg-{i:02d}" in text


def test_anti_repetition_lists_truncated_avatar_replies():
    long_reply = "A" * 150
    history = [{"role": "customer", "content": "hi"}, {"role": "avatar", "content": long_reply}]
    text = avatar_response_prompt(DR_SAKURA, "more?", history).text
    assert f"Previous Response 1: {'A' * 100}..." in text
    assert "Jump directly into helpful content" in text


def test_new_conversation_marker():
    assert anti_repetition_block([]) == "This is the start of a new conversation."
    text = avatar_response_prompt(DR_SAKURA, "hello", []).text
    assert "This is the start of a new conversation." in text
    assert "You may introduce yourself briefly" in text


def test_memory_context():
    assert training_memory_context(None) == FIRST_SESSION_MEMORY
    memory = TrainingMemory(
        total_sessions=2,
        average_quality=82.5,
        scenarios_practiced=["A", "B"],
        learning_points=[{"title": "A", "summary": f"point {i}"} for i in range(7)],
        topics_handled=["screening", "diet", "anxiety", "lifestyle"],
    )
    text = training_memory_context(memory)
    assert "TRAINING EXPERIENCE: 2 completed sessions (avg quality: 82.5/100)" in text
    assert "SCENARIOS PRACTICED: A, B" in text
    assert "5. A: point 4" in text
    assert "point 5" not in text
    assert "COMMON PATIENT CONCERNS HANDLED: screening, diet, anxiety" in text


def test_prompt_is_deterministic():
    details = get_scenario("self_exam_guidance").to_details()
    a = avatar_response_prompt(DR_SAKURA, "technique?", _history(5), "health_coaching", details)
    b = avatar_response_prompt(DR_SAKURA, "technique?", _history(5), "health_coaching", details)
    assert a.text == b.text
