"""
Static catalog of avatar types, coaching personalities and training scenarios.

Read-only reference data; nothing here is user-owned or persisted.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

from .schemas import PatientPersona


@dataclass(frozen=True)
class AvatarType:
    id: str
    name: str
    description: str
    primary_skills: Tuple[str, ...] = ()
    industries: Tuple[str, ...] = ()
    difficulty: str = "intermediate"
    expected_outcomes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AvatarPersonality:
    name: str
    expertise: str
    system_prompt: str


@dataclass(frozen=True)
class Scenario:
    id: str
    avatar_type: str
    name: str
    description: str
    customer_persona: str
    customer_mood: str
    objectives: Tuple[str, ...]
    timeframe_mins: int
    difficulty: str
    persona: Optional[PatientPersona] = None
    tags: Tuple[str, ...] = ()
    industry: str = "Healthcare"
    success_criteria: Tuple[str, ...] = ()
    common_mistakes: Tuple[str, ...] = ()
    key_learning_points: Tuple[str, ...] = ()
    patient_name: Optional[str] = None

    def to_details(self) -> Dict[str, Any]:
        """Plain-dict snapshot stored on the session (JSON friendly)."""
        data = asdict(self)
        for key, value in list(data.items()):
            if isinstance(value, tuple):
                data[key] = list(value)
        return data

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.name,
            "description": self.description,
            "difficulty": self.difficulty,
            "health_focus": self.industry,
            "estimated_duration": self.timeframe_mins,
            "objectives": list(self.objectives),
            "avatar_type": self.avatar_type,
            "customer_persona": self.customer_persona,
            "customer_mood": self.customer_mood,
        }


# ──────────────────────────────────────────────────────────────────────────────
# Avatar types / personalities
# ──────────────────────────────────────────────────────────────────────────────

AVATAR_TYPES: Tuple[AvatarType, ...] = (
    AvatarType(
        id="health_coach",
        name="Health & Wellness Coach",
        description="Specialized in health guidance, behavior change, and wellness program support",
        primary_skills=(
            "Motivational interviewing",
            "Health education",
            "Behavior change techniques",
            "Empathetic communication",
            "Goal setting",
            "Progress tracking",
            "Medical sensitivity",
        ),
        industries=("Healthcare", "Wellness", "Fitness", "Nutrition", "Mental Health"),
        difficulty="intermediate",
        expected_outcomes=(
            "Improve patient engagement",
            "Better health outcome tracking",
            "Enhanced motivational skills",
            "Increased program adherence",
        ),
    ),
)

_SAKURA_SYSTEM_PROMPT = (
    "You are Dr. Sakura Wellness, a compassionate and culturally-aware breast health coach specializing in:\n\n"
    "PERSONALITY: Warm, empathetic, professionally caring, and culturally sensitive\n"
    "EXPERTISE: Breast health education, risk assessment, preventive care, lifestyle recommendations, emotional support\n"
    "COMMUNICATION: Evidence-based guidance with emotional intelligence and supportive encouragement\n"
    "BOUNDARIES: Never diagnose conditions - provide education and recommend professional consultation for concerning symptoms\n\n"
    "You help patients understand breast health, perform self-examinations, interpret risk factors, and make informed "
    "healthcare decisions while providing emotional support for health anxiety."
)

DR_SAKURA = AvatarPersonality(
    name="Dr. Sakura Wellness",
    expertise="Health Coach and Breast Health Specialist",
    system_prompt=_SAKURA_SYSTEM_PROMPT,
)

AVATAR_PERSONALITIES: Dict[str, AvatarPersonality] = {
    "dr_sakura": DR_SAKURA,
    "health_coach": DR_SAKURA,
}


def get_avatar_personality(avatar_type: str | None) -> AvatarPersonality:
    """Unknown avatar types fall back to Dr. Sakura."""
    return AVATAR_PERSONALITIES.get((avatar_type or "").strip(), DR_SAKURA)


def avatar_type_for(avatar_id: str) -> str:
    """Base avatar type: the avatar id up to its first underscore ('dr_sakura' -> 'dr')."""
    return (avatar_id or "").split("_", 1)[0]


# ──────────────────────────────────────────────────────────────────────────────
# Training scenarios
# ──────────────────────────────────────────────────────────────────────────────

TRAINING_SCENARIOS: Tuple[Scenario, ...] = (
    Scenario(
        id="dr_sakura_initial_consultation",
        avatar_type="health_coach",
        name="Initial Breast Health Consultation",
        description="First-time patient consultation about breast health concerns and prevention strategies",
        customer_persona="Sarah Chen, 40, marketing manager, no family history, heard painful stories from friends, very anxious about the unknown",
        persona=PatientPersona("Sarah Chen", 40, "marketing manager, no family history, heard painful stories from friends, very anxious about the unknown"),
        customer_mood="anxious",
        objectives=(
            "Establish rapport and trust with the patient",
            "Assess patient health history and concerns",
            "Provide evidence-based breast health education",
            "Address anxiety and misconceptions",
            "Create personalized prevention plan",
        ),
        timeframe_mins=20,
        difficulty="beginner",
        tags=("consultation", "anxiety", "education", "prevention"),
        success_criteria=(
            "Patient feels heard and understood",
            "Comprehensive health history gathered",
            "Clear explanation of breast health basics provided",
            "Anxiety significantly reduced",
            "Follow-up plan established",
        ),
        common_mistakes=(
            "Rushing through the consultation",
            "Using too much medical jargon",
            "Not addressing emotional concerns",
            "Providing generic advice without personalization",
        ),
        key_learning_points=(
            "First consultations set the tone for long-term care",
            "Anxiety reduction is as important as information sharing",
            "Personalized approach improves patient engagement",
            "Building trust requires empathy and active listening",
        ),
    ),
    Scenario(
        id="breast_screening_anxiety",
        avatar_type="health_coach",
        name="First Mammogram Anxiety",
        description="Patient is terrified about her first mammogram and considering cancelling due to fear and anxiety",
        customer_persona="Sarah Chen, 40, marketing manager, no family history, heard painful stories from friends, very anxious about the unknown",
        persona=PatientPersona("Sarah Chen", 40, "marketing manager, no family history, heard painful stories from friends, very anxious about the unknown"),
        customer_mood="anxious",
        objectives=(
            "Validate anxiety while providing reassurance",
            "Explain mammogram process in simple terms",
            "Address pain and discomfort concerns",
            "Emphasize importance of early detection",
        ),
        timeframe_mins=15,
        difficulty="beginner",
        tags=("mammogram", "anxiety", "first_screening", "fear"),
        success_criteria=(
            "Patient feels heard and understood",
            "Provided clear explanation of procedure",
            "Offered practical comfort tips",
            "Patient commits to keeping appointment",
        ),
        common_mistakes=(
            "Dismissing fears as irrational",
            "Using medical jargon",
            "Not acknowledging discomfort reality",
            "Rushing through explanation",
        ),
        key_learning_points=(
            "Acknowledge fear before education",
            "Use empathetic, gentle language",
            "Provide practical coping strategies",
            "Focus on empowerment through knowledge",
        ),
    ),
    Scenario(
        id="family_history_concern",
        avatar_type="health_coach",
        name="Family History Breast Cancer Worry",
        description="Patient just learned her sister was diagnosed with breast cancer and is panicked about her own risk",
        customer_persona="Lisa Thompson, 35, teacher, sister recently diagnosed, feeling overwhelmed and scared about genetic risk",
        persona=PatientPersona("Lisa Thompson", 35, "teacher, sister recently diagnosed, feeling overwhelmed and scared about genetic risk"),
        customer_mood="urgent",
        objectives=(
            "Provide emotional support during crisis",
            "Explain family history risk factors clearly",
            "Discuss genetic testing options",
            "Create action plan for screening",
        ),
        timeframe_mins=20,
        difficulty="intermediate",
        tags=("family_history", "genetics", "risk_assessment", "crisis_support"),
        success_criteria=(
            "Emotional state stabilized",
            "Risk factors explained accurately",
            "Clear next steps provided",
            "Patient feels empowered not helpless",
        ),
        common_mistakes=(
            "Providing false reassurance",
            "Overwhelming with statistics",
            "Not addressing emotional impact",
            "Delaying necessary referrals",
        ),
        key_learning_points=(
            "Balance hope with realistic information",
            "Family history increases but doesn't guarantee risk",
            "Early detection saves lives",
            "Support system is crucial",
        ),
    ),
    Scenario(
        id="self_exam_guidance",
        avatar_type="health_coach",
        name="Breast Self-Examination Teaching",
        description="Patient wants to learn proper self-examination technique but feels embarrassed and unsure",
        customer_persona="Amanda Rodriguez, 28, nurse, wants to be proactive but lacks confidence in technique, feels awkward about self-touch",
        persona=PatientPersona("Amanda Rodriguez", 28, "nurse, wants to be proactive but lacks confidence in technique, feels awkward about self-touch"),
        customer_mood="confused",
        objectives=(
            "Create comfortable learning environment",
            "Teach proper self-examination technique",
            "Address embarrassment and discomfort",
            "Establish regular self-exam routine",
        ),
        timeframe_mins=25,
        difficulty="beginner",
        tags=("self_examination", "technique", "education", "routine"),
        success_criteria=(
            "Patient comfortable with discussion",
            "Demonstrated proper technique",
            "Addressed normal variations",
            "Committed to monthly routine",
        ),
        common_mistakes=(
            "Not addressing embarrassment",
            "Teaching too quickly",
            "Not explaining normal changes",
            "Skipping follow-up planning",
        ),
        key_learning_points=(
            "Normalize body awareness",
            "Technique matters for effectiveness",
            "Know your normal to detect changes",
            "Monthly routine after menstruation",
        ),
    ),
    Scenario(
        id="lump_discovery_panic",
        avatar_type="health_coach",
        name="Found a Lump - Crisis Management",
        description="Patient found a lump during self-exam and is in complete panic, needs immediate guidance and support",
        customer_persona="Jennifer Walsh, 45, mother of two, found lump yesterday, couldn't sleep, assuming the worst, needs urgent support",
        persona=PatientPersona("Jennifer Walsh", 45, "mother of two, found lump yesterday, couldn't sleep, assuming the worst, needs urgent support"),
        customer_mood="urgent",
        objectives=(
            "Provide immediate emotional support",
            "Guide through next steps calmly",
            "Explain that most lumps are benign",
            "Facilitate prompt medical evaluation",
        ),
        timeframe_mins=20,
        difficulty="advanced",
        tags=("lump_discovery", "crisis", "urgent_care", "emotional_support"),
        success_criteria=(
            "Panic level reduced significantly",
            "Clear action plan established",
            "Appointment scheduled promptly",
            "Support system activated",
        ),
        common_mistakes=(
            "False reassurance without examination",
            "Not validating extreme fear",
            "Delaying medical referral",
            "Providing diagnostic opinions",
        ),
        key_learning_points=(
            "Most breast lumps are not cancer",
            "Immediate evaluation is important",
            "Support system crucial during waiting",
            "Stay within scope of practice",
        ),
    ),
    Scenario(
        id="menopause_breast_changes",
        avatar_type="health_coach",
        name="Menopause and Breast Health Changes",
        description="Patient experiencing breast changes during menopause and worried about increased cancer risk",
        customer_persona="Patricia Kim, 52, executive, going through menopause, noticing breast density changes, concerned about hormone therapy effects",
        persona=PatientPersona("Patricia Kim", 52, "executive, going through menopause, noticing breast density changes, concerned about hormone therapy effects"),
        customer_mood="skeptical",
        objectives=(
            "Explain normal menopausal breast changes",
            "Discuss hormone therapy implications",
            "Address screening modifications needed",
            "Provide lifestyle recommendations",
        ),
        timeframe_mins=18,
        difficulty="intermediate",
        tags=("menopause", "hormones", "breast_density", "lifestyle"),
        success_criteria=(
            "Normal changes explained clearly",
            "Hormone risks/benefits discussed",
            "Screening plan updated",
            "Lifestyle modifications planned",
        ),
        common_mistakes=(
            "Not explaining hormone complexity",
            "Dismissing valid concerns",
            "Generic lifestyle advice",
            "Not coordinating with physician",
        ),
        key_learning_points=(
            "Menopause affects breast tissue",
            "Personalized risk assessment needed",
            "Collaborative care approach",
            "Lifestyle factors matter at any age",
        ),
    ),
    Scenario(
        id="young_adult_education",
        avatar_type="health_coach",
        name="Young Adult Breast Health Education",
        description="College student wants to learn about breast health but feels it's not relevant at her age",
        customer_persona="Emma Johnson, 20, college student, thinks breast cancer only affects older women, wants basic education",
        persona=PatientPersona("Emma Johnson", 20, "college student, thinks breast cancer only affects older women, wants basic education"),
        customer_mood="calm",
        objectives=(
            "Provide age-appropriate education",
            "Establish healthy habits early",
            "Address young adult risk factors",
            "Create foundation for lifelong awareness",
        ),
        timeframe_mins=15,
        difficulty="beginner",
        tags=("young_adult", "prevention", "education", "habits"),
        success_criteria=(
            "Age-appropriate information provided",
            "Early habits encouraged",
            "Risk factors understood",
            "Foundation for future awareness",
        ),
        common_mistakes=(
            "Too much focus on cancer risk",
            "Not making it relevant to age",
            "Overwhelming with information",
            "Not encouraging questions",
        ),
        key_learning_points=(
            "Early education builds lifelong habits",
            "Young women can develop breast awareness",
            "Risk factors exist at all ages",
            "Prevention starts early",
        ),
    ),
    Scenario(
        id="health_high_risk_consultation",
        avatar_type="health_coach",
        name="High-Risk Patient Consultation",
        description="Navigate complex conversations with patients who have elevated risk factors",
        customer_persona="Patient with family history of illness",
        customer_mood="worried",
        objectives=(
            "Explain risk factors clearly and sensitively",
            "Discuss genetic testing and family history",
            "Provide prevention strategies",
            "Offer emotional support and reassurance",
            "Guide on enhanced monitoring protocols",
        ),
        timeframe_mins=25,
        difficulty="advanced",
        tags=("healthcare", "high-risk", "genetics", "counseling"),
        success_criteria=(
            "Risk factors communicated clearly",
            "Patient anxiety managed effectively",
            "Comprehensive prevention plan developed",
            "Appropriate referrals made",
        ),
        common_mistakes=(
            "Being too technical with explanations",
            "Not addressing emotional needs",
            "Overwhelming patient with statistics",
            "Missing referral opportunities",
        ),
        key_learning_points=(
            "High-risk doesn't mean inevitable",
            "Emotional support is crucial",
            "Prevention strategies can be empowering",
            "Team-based care approach works best",
        ),
    ),
)

TRAINING_PATHS: Dict[str, Tuple[str, ...]] = {
    "health_coach": (
        "dr_sakura_initial_consultation",
        "breast_screening_anxiety",
        "family_history_concern",
        "self_exam_guidance",
        "lump_discovery_panic",
        "menopause_breast_changes",
        "young_adult_education",
        "health_high_risk_consultation",
    ),
}

_BY_ID: Dict[str, Scenario] = {s.id: s for s in TRAINING_SCENARIOS}


# ──────────────────────────────────────────────────────────────────────────────
# Selection helpers
# ──────────────────────────────────────────────────────────────────────────────

def get_scenario(scenario_id: str | None) -> Optional[Scenario]:
    if not scenario_id:
        return None
    return _BY_ID.get(scenario_id)


def scenarios_by_avatar_type(avatar_type: str) -> List[Scenario]:
    return [s for s in TRAINING_SCENARIOS if s.avatar_type == avatar_type]


def scenarios_by_difficulty(difficulty: str) -> List[Scenario]:
    return [s for s in TRAINING_SCENARIOS if s.difficulty == difficulty]


def scenarios_by_industry(industry: str) -> List[Scenario]:
    return [s for s in TRAINING_SCENARIOS if s.industry == industry]


def get_avatar_type(avatar_type_id: str) -> Optional[AvatarType]:
    return next((a for a in AVATAR_TYPES if a.id == avatar_type_id), None)


def training_path(avatar_type: str) -> List[Scenario]:
    """Scenarios in progressive order for an avatar type (unknown ids skipped)."""
    return [_BY_ID[sid] for sid in TRAINING_PATHS.get(avatar_type, ()) if sid in _BY_ID]


__all__ = [
    "AvatarType",
    "AvatarPersonality",
    "Scenario",
    "AVATAR_TYPES",
    "AVATAR_PERSONALITIES",
    "DR_SAKURA",
    "TRAINING_SCENARIOS",
    "TRAINING_PATHS",
    "get_scenario",
    "scenarios_by_avatar_type",
    "scenarios_by_difficulty",
    "scenarios_by_industry",
    "get_avatar_type",
    "get_avatar_personality",
    "avatar_type_for",
    "training_path",
]
