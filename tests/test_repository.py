"""Tests for QuizRepository queries and answer logs."""

import pytest
from sqlalchemy import text

from medical_quiz.errors import AnswerLogError
from medical_quiz.models import PerformanceFilter, Subject, System
from medical_quiz.repository import QuizRepository


def test_detects_comma_separated_ids(repo):
    assert repo.uses_string_ids is True


def test_question_ids_unfiltered(repo):
    assert repo.get_question_ids() == [101, 102, 103]


def test_question_ids_by_subject_matches_inside_lists(repo):
    # 102 has subId "1,2"
    assert repo.get_question_ids(subject_ids=[1]) == [101, 102]
    assert repo.get_question_ids(subject_ids=[2]) == [102, 103]
    assert repo.get_question_ids(subject_ids=[1, 2, 2]) == [101, 102, 103]


def test_question_ids_by_subject_and_system(repo):
    assert repo.get_question_ids(subject_ids=[2], system_ids=[20]) == [103]
    assert repo.get_question_ids(system_ids=[99]) == []


def test_integer_id_columns(tmp_path):
    from sqlalchemy import create_engine

    engine = create_engine(f"sqlite:///{tmp_path / 'int.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE Questions (id INTEGER PRIMARY KEY, subId INTEGER, sysId INTEGER)"))
        conn.execute(text("INSERT INTO Questions (id, subId, sysId) VALUES (1, 1, 10), (2, 2, 10), (3, 12, 20)"))
    repo = QuizRepository(engine)
    try:
        assert repo.uses_string_ids is False
        assert repo.get_question_ids(subject_ids=[1]) == [1]
        assert repo.get_question_ids(system_ids=[10]) == [1, 2]
    finally:
        engine.dispose()


def test_get_question_by_id_fills_names(repo):
    q = repo.get_question_by_id(102)
    assert q.sub_name == "Pharmacology, Anatomy"
    assert q.sys_name == "Cardiovascular"
    assert q.title is None
    assert q.corr_ans == 1

    q = repo.get_question_by_id(101)
    assert q.media_files() == ["heart.svg", "ecg.png"]
    assert q.accuracy == 0.75


def test_get_question_by_id_missing(repo):
    assert repo.get_question_by_id(999) is None


def test_answers_are_ordered(repo):
    answers = repo.get_answers_for_question(101)
    assert [a.answer_id for a in answers] == [1, 2, 3]
    assert all(a.q_id == 101 for a in answers)
    assert answers[1].correct_percentage == 70
    assert repo.get_answers_for_question(102)[0].correct_percentage is None
    assert repo.get_answers_for_question(999) == []


def test_subjects_and_systems(repo):
    assert repo.get_subjects() == [
        Subject(id=2, name="Anatomy", count=2),
        Subject(id=1, name="Pharmacology", count=2),
    ]
    assert [s.name for s in repo.get_systems()] == ["Cardiovascular", "Renal"]
    assert repo.get_systems([1]) == [System(id=10, name="Cardiovascular", count=2)]
    assert [s.id for s in repo.get_systems([2])] == [10, 20]


def test_log_answer_and_performance(repo):
    assert repo.get_question_performance(101) is None

    assert repo.log_answer(101, selected_answer=1, corr_answer=2, time_ms=1500, test_id="42")
    assert repo.log_answer(101, selected_answer=2, corr_answer=2, time_ms=900, test_id="abc")

    perf = repo.get_question_performance(101)
    assert perf.attempts == 2
    assert perf.last_correct is True
    assert perf.ever_correct is True
    assert perf.ever_incorrect is True
    assert perf.correct_count == 1
    assert perf.incorrect_count == 1

    with repo.engine.connect() as conn:
        test_ids = [r[0] for r in conn.execute(text("SELECT testId FROM logs ORDER BY id"))]
    assert test_ids == [42, None]


def test_performance_filters(repo):
    repo.log_answer(101, 2, 2, 100)       # correct
    repo.log_answer(102, 2, 1, 100)       # wrong
    repo.log_answer(102, 1, 1, 100)       # then correct

    assert repo.get_question_ids(performance_filter=PerformanceFilter.UNANSWERED) == [103]
    assert repo.get_question_ids(performance_filter=PerformanceFilter.LAST_CORRECT) == [101, 102]
    assert repo.get_question_ids(performance_filter=PerformanceFilter.LAST_INCORRECT) == []
    assert repo.get_question_ids(performance_filter=PerformanceFilter.EVER_INCORRECT) == [102]
    assert repo.get_question_ids(performance_filter=PerformanceFilter.EVER_CORRECT) == [101, 102]
    assert repo.get_question_ids(
        subject_ids=[2], performance_filter=PerformanceFilter.UNANSWERED
    ) == [103]


def test_logging_disabled_skips_insert(repo, settings):
    settings.is_logging_enabled = False
    assert repo.log_answer(101, 1, 2, 100) is False
    assert repo.get_question_performance(101) is None


def test_clear_logs(repo):
    repo.log_answer(101, 1, 2, 100)
    repo.clear_logs()
    assert repo.get_question_performance(101) is None


def test_log_answer_failure_raises_answer_log_error(repo):
    with repo.engine.begin() as conn:
        conn.execute(text("DROP TABLE logs"))

    with pytest.raises(AnswerLogError) as exc_info:
        repo.log_answer(101, selected_answer=2, corr_answer=2, time_ms=100)
    assert "101" in str(exc_info.value)


def test_log_answer_skips_question_without_correct_answer(repo):
    assert repo.log_answer(101, selected_answer=1, corr_answer=None, time_ms=100) is False
    assert repo.get_question_performance(101) is None


def test_answers_carry_requested_question_id(repo):
    assert {a.q_id for a in repo.get_answers_for_question(101)} == {101}
