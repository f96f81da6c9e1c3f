"""
app.py
======================

医学クイズアプリ（Streamlit）エントリーポイント。デスクトップ版の起動処理を兼ねる。

特徴:
- Subject / System / 過去の成績で問題を絞り込んで出題
- 解答を logs テーブルに記録（設定で無効化できる）
- SVG 対応の画像ローダーをプロセス共通で 1 つだけ登録
- ホストのテーマに合わせたライト / ダーク配色

前提:
- ~/.medicalquiz/medical_quiz.db に問題 DB がある
  （MEDICAL_QUIZ_HOME / MEDICAL_QUIZ_DB / config.toml で変更可）
- 画像は ~/.medicalquiz/media に置く
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import streamlit as st

from medical_quiz.config import AppConfig
from medical_quiz.database import get_database_builder
from medical_quiz.errors import AnswerLogError, DatabaseOpenError
from medical_quiz.images import ImageLoader, generate_image_loader, install_default_image_loader
from medical_quiz.logging_config import setup_logging
from medical_quiz.media import MediaLibrary
from medical_quiz.models import PerformanceFilter, QuizSession
from medical_quiz.platform import PlatformCapabilities, app_storage_dir, detect_capabilities
from medical_quiz.repository import QuizRepository
from medical_quiz.settings import SettingsStore
from medical_quiz.theme import app_theme
from medical_quiz.ui import (
    render_filter_panel,
    render_navigation,
    render_question_block,
    render_settings_panel,
)

logger = logging.getLogger("medical_quiz.app")


# ----------------------------------------------------------------------
#  起動処理（プロセスで 1 回）
# ----------------------------------------------------------------------
@dataclass
class Services:
    config: AppConfig
    capabilities: PlatformCapabilities
    repository: QuizRepository
    settings: SettingsStore
    image_loader: ImageLoader
    media: MediaLibrary


@st.cache_resource
def bootstrap() -> Services:
    """
    設定・ログ・DB・画像ローダーを初期化する。

    st.cache_resource によりプロセス内で 1 回だけ実行される。
    DB を開けない場合は DatabaseOpenError をそのまま送出する。
    """
    config = AppConfig()
    setup_logging(config.log_level)

    capabilities = detect_capabilities()
    storage = app_storage_dir(capabilities, desktop_dir=config.storage_dir)

    builder = get_database_builder(str(config.database_path), capabilities)
    engine = builder.create_schema()

    settings = SettingsStore(storage)
    repository = QuizRepository(engine, settings)

    loader = install_default_image_loader(
        generate_image_loader(
            capabilities,
            disk_cache_dir=storage / config.image_cache_dirname,
            disk_cache_max_bytes=config.image_disk_cache_max_bytes,
        )
    )
    media = MediaLibrary(storage / config.media_dirname, storage / config.media_descriptions_name)

    logger.info("bootstrap complete", extra={"path": str(builder.path)})
    return Services(config, capabilities, repository, settings, loader, media)


# ----------------------------------------------------------------------
#  SessionState のラッパー
# ----------------------------------------------------------------------
def get_quiz_session(repository: QuizRepository, settings: SettingsStore) -> QuizSession:
    """QuizSession をセッションに保持して返す。初回は全問題で開始する。"""
    if "quiz_session" not in st.session_state:
        session = QuizSession()
        session.reset(repository.get_question_ids(performance_filter=settings.performance_filter))
        st.session_state["quiz_session"] = session
    return st.session_state["quiz_session"]  # type: ignore[return-value]


# ----------------------------------------------------------------------
#  サイドバー
# ----------------------------------------------------------------------
def render_sidebar(services: Services, session: QuizSession) -> None:
    repo = services.repository
    settings = services.settings

    subjects = repo.get_subjects()
    selected_subjects = st.session_state.get("mq_subject_ids") or None
    systems = repo.get_systems(selected_subjects)

    result: Dict[str, Any] = render_filter_panel(subjects, systems, settings.performance_filter)
    if result["apply"]:
        settings.performance_filter = PerformanceFilter(result["performance_filter"])
        ids = repo.get_question_ids(
            subject_ids=result["subject_ids"],
            system_ids=result["system_ids"],
            performance_filter=settings.performance_filter,
        )
        session.reset(ids)
        st.rerun()

    panel = render_settings_panel(settings)
    if panel["clear_logs"]:
        repo.clear_logs()
        st.sidebar.success("解答ログを消去しました。")


# ----------------------------------------------------------------------
#  ページ: クイズ
# ----------------------------------------------------------------------
def render_quiz_page(services: Services, session: QuizSession) -> None:
    repo = services.repository

    qid: Optional[int] = session.current_id
    if qid is None:
        st.info("条件に合う問題がありません。サイドバーで絞り込みを変更してください。")
        return

    question = repo.get_question_by_id(qid)
    if question is None:
        st.error(f"問題 {qid} が見つかりません。")
        return

    answers = repo.get_answers_for_question(qid)
    ui_result = render_question_block(
        question,
        answers,
        session,
        performance=repo.get_question_performance(qid),
        media_paths=services.media.media_for(question),
        loader=services.image_loader,
        library=services.media,
    )

    # 新たに選択された場合のみ記録
    if ui_result["selected_choice"] is not None:
        idx = ui_result["selected_choice"]
        elapsed_ms = session.answer(idx)
        # logs には 1 始まりの位置で保存する（corrAns と同じ基準）
        try:
            repo.log_answer(
                qid=question.id,
                selected_answer=idx + 1,
                corr_answer=question.corr_ans,
                time_ms=elapsed_ms,
                test_id=session.test_id,
            )
        except AnswerLogError as e:
            # 保存できなかった解答は未回答に戻し、選び直せるようにする
            session.retract()
            st.warning(f"{e}。もう一度選択してください。")
        else:
            st.rerun()

    nav = render_navigation(session)
    if nav["clicked_next"] and session.go_next():
        st.rerun()
    elif nav["clicked_prev"] and session.go_prev():
        st.rerun()
    elif nav["jump_to"] is not None and session.jump_to(nav["jump_to"]):
        st.rerun()


# ----------------------------------------------------------------------
#  メイン
# ----------------------------------------------------------------------
def main() -> None:
    st.set_page_config(
        page_title="MedicalQuiz",
        page_icon="🩺",
        layout="centered",
    )

    try:
        services = bootstrap()
    except DatabaseOpenError as e:
        st.error(str(e))
        st.stop()

    app_theme(services.capabilities, dynamic_color=services.config.dynamic_color)

    session = get_quiz_session(services.repository, services.settings)
    render_sidebar(services, session)
    render_quiz_page(services, session)


if __name__ == "__main__":
    main()
