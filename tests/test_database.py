"""Tests for the platform context holder and the database builder factory."""

import threading
from pathlib import Path

import pytest
from sqlalchemy import inspect

from medical_quiz.database import DatabaseBuilder, get_database_builder
from medical_quiz.errors import (
    ContextAlreadyInitializedError,
    ContextNotInitializedError,
    DatabaseOpenError,
)
from medical_quiz.platform import (
    AppContext,
    AppContextHolder,
    Platform,
    PlatformCapabilities,
    app_context,
    app_storage_dir,
    detect_capabilities,
)


class TestAppContextHolder:
    def test_read_before_init_fails(self):
        holder = AppContextHolder()
        assert not holder.is_initialized
        with pytest.raises(ContextNotInitializedError):
            _ = holder.context

    def test_init_once(self, tmp_path):
        holder = AppContextHolder()
        ctx = AppContext(files_dir=tmp_path)
        holder.init(ctx)
        assert holder.is_initialized
        assert holder.context is ctx

        with pytest.raises(ContextAlreadyInitializedError):
            holder.init(AppContext(files_dir=tmp_path / "other"))
        assert holder.context is ctx

    def test_concurrent_init_allows_single_winner(self, tmp_path):
        holder = AppContextHolder()
        errors = []

        def worker(n):
            try:
                holder.init(AppContext(files_dir=tmp_path / str(n)))
            except ContextAlreadyInitializedError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 7
        assert holder.is_initialized


class TestMobileBuilder:
    def test_fails_before_context_init(self, mobile_caps):
        with pytest.raises(ContextNotInitializedError):
            get_database_builder("quiz.db", mobile_caps)

    def test_succeeds_after_context_init(self, mobile_caps, tmp_path):
        app_context.init(AppContext(files_dir=tmp_path))

        builder = get_database_builder("quiz.db", mobile_caps)

        assert builder is not None
        assert builder.name == "quiz.db"
        assert builder.path == tmp_path / "databases" / "quiz.db"

    def test_injected_context_skips_global(self, mobile_caps, tmp_path):
        builder = get_database_builder("quiz.db", mobile_caps, context=AppContext(files_dir=tmp_path))
        assert builder.path.parent.parent == tmp_path
        assert not app_context.is_initialized


class TestDesktopBuilder:
    def test_needs_no_init(self, desktop_caps):
        builder = get_database_builder("quiz.db", desktop_caps)
        assert builder.name == "quiz.db"
        assert builder.path == Path("quiz.db")

    def test_build_creates_engine_and_schema(self, desktop_caps, tmp_path):
        builder = get_database_builder(str(tmp_path / "sub" / "quiz.db"), desktop_caps)
        engine = builder.create_schema()
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()

        assert {"Questions", "Answers", "Subjects", "Systems", "SubjectsSystems", "logs"} <= tables
        assert (tmp_path / "sub" / "quiz.db").exists()

    def test_open_failure_is_wrapped(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        builder = DatabaseBuilder("quiz.db", blocker / "quiz.db")

        with pytest.raises(DatabaseOpenError) as exc_info:
            builder.build()
        assert exc_info.value.path == str(blocker / "quiz.db")


class TestStorage:
    def test_desktop_storage_uses_home_override(self, desktop_caps, tmp_path):
        path = app_storage_dir(desktop_caps)
        assert path == tmp_path / "home"
        assert path.is_dir()

    def test_mobile_storage_requires_context(self, mobile_caps, tmp_path):
        with pytest.raises(ContextNotInitializedError):
            app_storage_dir(mobile_caps)
        assert app_storage_dir(mobile_caps, context=AppContext(files_dir=tmp_path / "m")) == tmp_path / "m"

    def test_desktop_storage_prefers_configured_dir(self, desktop_caps, tmp_path):
        path = app_storage_dir(desktop_caps, desktop_dir=tmp_path / "configured")
        assert path == tmp_path / "configured"
        assert path.is_dir()


def test_detect_capabilities_reports_memory():
    caps = detect_capabilities(dark_mode=True)
    assert caps.platform is Platform.DESKTOP
    assert caps.dark_mode is True
    assert caps.memory_budget_bytes > 0
    assert not caps.supports_dynamic_color


def test_dynamic_color_requires_version_and_seed():
    assert PlatformCapabilities(os_version=31, dynamic_color_seed="#336699").supports_dynamic_color
    assert not PlatformCapabilities(os_version=30, dynamic_color_seed="#336699").supports_dynamic_color
    assert not PlatformCapabilities(os_version=34).supports_dynamic_color
