import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from brezcode.errors import SessionNotActive, SessionNotFound
from brezcode.repository import InMemorySessionRepository, SqlSessionRepository, select_repository
from brezcode.schemas import ResponseFeedback, TrainingMessage, TrainingSession

T0 = datetime(2025, 3, 1, 9, 0, 0)


def _session(session_id, user_id=1, avatar_id="dr_sakura", started=T0, status="active"):
    return TrainingSession(
        session_id=session_id,
        user_id=user_id,
        avatar_id=avatar_id,
        avatar_type="dr",
        scenario_id="dr_sakura_initial_consultation",
        scenario_name="Initial Breast Health Consultation",
        status=status,
        scenario_details={"name": "Initial Breast Health Consultation", "objectives": ["a", "b"]},
        current_context={"phase": "introduction", "topics_covered": []},
        performance_metrics={"average_quality": 0, "response_count": 0},
        started_at=started,
        last_active_at=started,
        created_at=started,
        updated_at=started,
    )


def _message(message_id, content="hello", role="customer"):
    return TrainingMessage(message_id=message_id, session_id="", role=role, content=content, created_at=T0)


def test_put_and_get_round_trip(repo):
    repo.put_session(_session("s1"))
    got = repo.get_session("s1")
    assert got.session_id == "s1"
    assert got.scenario_details["objectives"] == ["a", "b"]
    assert got.started_at == T0
    assert got.messages == []
    assert repo.get_session("missing") is None


def test_returned_sessions_do_not_alias_store(repo):
    repo.put_session(_session("s1"))
    got = repo.get_session("s1")
    got.current_context["phase"] = "mutated"
    got.messages.append(_message("m-x"))
    again = repo.get_session("s1")
    assert again.current_context["phase"] == "introduction"
    assert again.messages == []


def test_append_assigns_gapless_sequence_numbers(repo):
    repo.put_session(_session("s1"))
    seqs = [repo.append_message("s1", _message(f"m{i}")).sequence_number for i in range(4)]
    assert seqs == [1, 2, 3, 4]
    session = repo.get_session("s1")
    assert session.total_messages == 4
    assert [m.sequence_number for m in session.messages] == [1, 2, 3, 4]
    assert [m.message_id for m in repo.list_messages("s1")] == ["m0", "m1", "m2", "m3"]


def test_append_applies_session_updates(repo):
    repo.put_session(_session("s1"))
    later = T0 + timedelta(minutes=5)
    repo.append_message(
        "s1",
        _message("m1"),
        {"current_context": {"phase": "introduction", "topics_covered": ["diet"]}, "last_active_at": later},
    )
    session = repo.get_session("s1")
    assert session.current_context["topics_covered"] == ["diet"]
    assert session.last_active_at == later


def test_append_to_missing_session(repo):
    with pytest.raises(SessionNotFound):
        repo.append_message("nope", _message("m1"))


def test_put_session_leaves_ledger_alone(repo):
    repo.put_session(_session("s1"))
    repo.append_message("s1", _message("m1"))
    stale = _session("s1", status="completed")
    stale.total_messages = 1
    repo.put_session(stale)
    session = repo.get_session("s1")
    assert session.status == "completed"
    assert [m.message_id for m in session.messages] == ["m1"]


def test_list_sessions_filters_newest_first(repo):
    repo.put_session(_session("old", started=T0))
    repo.put_session(_session("new", started=T0 + timedelta(hours=1)))
    repo.put_session(_session("other-user", user_id=2))
    repo.put_session(_session("other-avatar", avatar_id="coach_x"))
    assert [s.session_id for s in repo.list_sessions(user_id=1, avatar_id="dr_sakura")] == ["new", "old"]
    assert [s.session_id for s in repo.list_sessions(user_id=2)] == ["other-user"]
    assert repo.list_sessions(status="completed") == []
    assert repo.count_sessions() == 4


def test_mark_abandoned_uses_start_time(repo):
    repo.put_session(_session("stale", started=T0))
    repo.put_session(_session("fresh", started=T0 + timedelta(hours=3)))
    repo.put_session(_session("done", started=T0, status="completed"))
    affected = repo.mark_abandoned(T0 + timedelta(hours=1))
    assert affected == ["stale"]
    assert repo.get_session("stale").status == "abandoned"
    assert repo.get_session("fresh").status == "active"
    assert repo.get_session("done").status == "completed"


def test_feedback_and_clear(repo):
    repo.put_session(_session("s1"))
    repo.append_message("s1", _message("m1", role="avatar"))
    repo.add_feedback(ResponseFeedback("f1", "s1", "m1", "more detail", "better answer", 92, T0))
    assert [f.improved_response for f in repo.list_feedback("s1")] == ["better answer"]
    repo.clear()
    assert repo.count_sessions() == 0
    assert repo.get_session("s1") is None
    assert repo.list_feedback("s1") == []


def test_in_memory_concurrent_appends_never_collide():
    repo = InMemorySessionRepository()
    repo.put_session(_session("s1"))

    def worker(n):
        for i in range(25):
            repo.append_message("s1", _message(f"m{n}-{i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    seqs = [m.sequence_number for m in repo.list_messages("s1")]
    assert seqs == list(range(1, 201))


def _broken_factory():
    raise OperationalError("SELECT 1", {}, Exception("database is gone"))


def test_sql_errors_are_served_from_mirror(sql_repo, capsys):
    sql_repo.put_session(_session("s1"))
    sql_repo.append_message("s1", _message("m1"))

    sql_repo.session_factory = _broken_factory
    got = sql_repo.get_session("s1")
    assert got is not None
    assert [m.message_id for m in got.messages] == ["m1"]

    saved = sql_repo.append_message("s1", _message("m2"))
    assert saved.sequence_number == 2
    assert sql_repo.count_sessions() == 1
    assert "[store] WARN" in capsys.readouterr().out

    with pytest.raises(SessionNotFound):
        sql_repo.append_message("never-written", _message("m3"))


def test_select_repository(sql_engine):
    assert isinstance(select_repository(force_in_memory=True), InMemorySessionRepository)
    assert isinstance(select_repository(force_in_memory=False, bind=sql_engine), SqlSessionRepository)


def test_select_repository_falls_back_when_db_unreachable():
    from brezcode.db import make_engine

    engine = make_engine("sqlite:////nonexistent-dir/brezcode/x.db")
    assert isinstance(select_repository(force_in_memory=False, bind=engine), InMemorySessionRepository)


def test_closed_sessions_reject_appends(repo):
    repo.put_session(_session("s1"))
    repo.append_message("s1", _message("m1"))
    repo.mark_abandoned(T0 + timedelta(hours=1))
    with pytest.raises(SessionNotActive):
        repo.append_message("s1", _message("m2"))
    assert [m.message_id for m in repo.list_messages("s1")] == ["m1"]
    assert repo.get_session("s1").total_messages == 1


def test_conditional_put_refuses_status_change(repo):
    repo.put_session(_session("s1"))
    repo.mark_abandoned(T0 + timedelta(hours=1))
    closing = _session("s1", status="completed")
    with pytest.raises(SessionNotActive):
        repo.put_session(closing, expected_status="active")
    assert repo.get_session("s1").status == "abandoned"
    # new sessions have nothing to compare against
    assert repo.put_session(_session("s2"), expected_status="active").status == "active"
