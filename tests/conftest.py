"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest
from sqlalchemy import insert

from medical_quiz.database import (
    DatabaseBuilder,
    answers_table,
    questions_table,
    subjects_systems_table,
    subjects_table,
    systems_table,
)
from medical_quiz.images import reset_default_image_loader
from medical_quiz.platform import Platform, PlatformCapabilities, app_context
from medical_quiz.repository import QuizRepository
from medical_quiz.settings import SettingsStore


@pytest.fixture(autouse=True)
def _isolate_globals(tmp_path, monkeypatch):
    """Keep process-wide state and the home directory out of each test."""
    monkeypatch.setenv("MEDICAL_QUIZ_HOME", str(tmp_path / "home"))
    app_context._reset()
    reset_default_image_loader()
    yield
    app_context._reset()
    reset_default_image_loader()


@pytest.fixture
def desktop_caps() -> PlatformCapabilities:
    return PlatformCapabilities(platform=Platform.DESKTOP, memory_budget_bytes=8 * 1024 * 1024)


@pytest.fixture
def mobile_caps() -> PlatformCapabilities:
    return PlatformCapabilities(platform=Platform.MOBILE, os_version=33, memory_budget_bytes=4 * 1024 * 1024)


@pytest.fixture
def engine(tmp_path: Path):
    """A quiz database with two subjects, two systems and three questions."""
    builder = DatabaseBuilder("quiz.db", tmp_path / "quiz.db")
    eng = builder.create_schema()

    with eng.begin() as conn:
        conn.execute(insert(subjects_table), [
            {"id": 1, "name": "Pharmacology", "count": 2},
            {"id": 2, "name": "Anatomy", "count": 2},
        ])
        conn.execute(insert(systems_table), [
            {"id": 10, "name": "Cardiovascular", "count": 2},
            {"id": 20, "name": "Renal", "count": 1},
        ])
        conn.execute(insert(subjects_systems_table), [
            {"subId": 1, "sysId": 10, "count": 1},
            {"subId": 2, "sysId": 10, "count": 1},
            {"subId": 2, "sysId": 20, "count": 1},
        ])
        conn.execute(insert(questions_table), [
            {
                "id": 101, "question": "Which drug...?", "explanation": "Because...",
                "corrAns": 2, "title": "Beta blockers", "mediaName": "heart.svg",
                "otherMedias": "ecg.png,heart.svg", "pplTaken": 200.0, "corrTaken": 150.0,
                "subId": "1", "sysId": "10",
            },
            {
                "id": 102, "question": "Which nerve...?", "explanation": "",
                "corrAns": 1, "title": None, "mediaName": None, "otherMedias": None,
                "pplTaken": None, "corrTaken": None, "subId": "1,2", "sysId": "10",
            },
            {
                "id": 103, "question": "Where is the nephron...?", "explanation": "Kidney",
                "corrAns": 3, "title": None, "mediaName": None, "otherMedias": None,
                "pplTaken": 10.0, "corrTaken": 5.0, "subId": "2", "sysId": "20",
            },
        ])
        conn.execute(insert(answers_table), [
            {"answerId": 1, "answerText": "Aspirin", "correctPercentage": 10, "qId": 101},
            {"answerId": 2, "answerText": "Propranolol", "correctPercentage": 70, "qId": 101},
            {"answerId": 3, "answerText": "Heparin", "correctPercentage": 20, "qId": 101},
            {"answerId": 4, "answerText": "Vagus", "correctPercentage": None, "qId": 102},
            {"answerId": 5, "answerText": "Phrenic", "correctPercentage": None, "qId": 102},
        ])

    yield eng
    eng.dispose()


@pytest.fixture
def settings(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "storage")


@pytest.fixture
def repo(engine, settings) -> QuizRepository:
    repository = QuizRepository(engine, settings)
    yield repository
    repository.close()
