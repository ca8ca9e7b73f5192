from brezcode.scenarios import (
    DR_SAKURA,
    TRAINING_PATHS,
    TRAINING_SCENARIOS,
    avatar_type_for,
    get_avatar_personality,
    get_avatar_type,
    get_scenario,
    scenarios_by_avatar_type,
    scenarios_by_difficulty,
    scenarios_by_industry,
    training_path,
)


def test_catalog_ids_are_unique():
    ids = [s.id for s in TRAINING_SCENARIOS]
    assert len(ids) == len(set(ids)) == 8


def test_get_scenario_lookup():
    s = get_scenario("dr_sakura_initial_consultation")
    assert s is not None
    assert s.customer_mood == "anxious"
    assert s.persona.name == "Sarah Chen"
    assert get_scenario("nope") is None
    assert get_scenario(None) is None


def test_filters():
    assert len(scenarios_by_avatar_type("health_coach")) == 8
    assert scenarios_by_avatar_type("sales") == []
    advanced = {s.id for s in scenarios_by_difficulty("advanced")}
    assert advanced == {"lump_discovery_panic", "health_high_risk_consultation"}
    assert len(scenarios_by_industry("Healthcare")) == 8


def test_training_path_keeps_progressive_order():
    path = training_path("health_coach")
    assert [s.id for s in path] == list(TRAINING_PATHS["health_coach"])
    assert path[0].id == "dr_sakura_initial_consultation"
    assert training_path("unknown") == []


def test_to_details_is_json_friendly():
    details = get_scenario("family_history_concern").to_details()
    assert isinstance(details["objectives"], list)
    assert details["persona"] == {
        "name": "Lisa Thompson",
        "age": 35,
        "background": "teacher, sister recently diagnosed, feeling overwhelmed and scared about genetic risk",
    }
    assert details["name"] == "Family History Breast Cancer Worry"


def test_avatar_type_is_prefix_before_first_underscore():
    assert avatar_type_for("dr_sakura") == "dr"
    assert avatar_type_for("health_coach_v2") == "health"
    assert avatar_type_for("solo") == "solo"


def test_personality_falls_back_to_sakura():
    assert get_avatar_personality("health_coach") is DR_SAKURA
    assert get_avatar_personality("dr") is DR_SAKURA
    assert get_avatar_personality(None).name == "Dr. Sakura Wellness"


def test_avatar_type_catalog():
    assert get_avatar_type("health_coach").name == "Health & Wellness Coach"
    assert get_avatar_type("missing") is None
