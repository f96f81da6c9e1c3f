"""
ui.py
======================

Streamlit ベースの UI コンポーネントをまとめたモジュール。

責務:
- 問題画面の描画（タグ・問題文・画像・選択肢・解説）
- ナビゲーションボタン（前へ / 次へ / 番号ジャンプ）
- サイドバーの絞り込みパネルと設定パネル

ここでは「見た目」と「ユーザー操作の入力」を扱い、
DB 更新などのビジネスロジックは app.py 側に任せる。

戻り値として「何が押されたか」「どの選択肢が新たに選ばれたか」を返す。
CSS は theme.app_theme() が注入する。
"""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import streamlit as st

from .errors import ImageDecodeError, SettingsPersistenceError
from .images import DecodedImage, ImageLoader
from .media import MediaLibrary
from .models import (
    Answer,
    PerformanceFilter,
    Question,
    QuestionPerformance,
    QuizSession,
    Subject,
    System,
    answer_percentages,
    correct_answer,
)
from .settings import SettingsStore

logger = logging.getLogger(__name__)

PERFORMANCE_LABELS: Dict[PerformanceFilter, str] = {
    PerformanceFilter.ALL: "すべて",
    PerformanceFilter.UNANSWERED: "未回答",
    PerformanceFilter.LAST_CORRECT: "前回正解",
    PerformanceFilter.LAST_INCORRECT: "前回不正解",
    PerformanceFilter.EVER_CORRECT: "一度でも正解",
    PerformanceFilter.EVER_INCORRECT: "一度でも不正解",
}


# ----------------------------------------------------------------------
#  画像
# ----------------------------------------------------------------------
def image_html(image: DecodedImage, crossfade: bool = True, alt: str = "") -> str:
    """デコード済み画像を data URI の <img> にする。"""
    encoded = base64.b64encode(image.data).decode("ascii")
    classes = "mq-image mq-crossfade" if crossfade else "mq-image"
    return (
        f"<img class='{classes}' alt='{html.escape(alt, quote=True)}' "
        f"src='data:{image.mime_type};base64,{encoded}'/>"
    )


def render_media(
    paths: List[Path],
    loader: Optional[ImageLoader],
    library: Optional[MediaLibrary] = None,
) -> None:
    """問題の画像を順に描画する。読めない画像は警告だけ出して続ける。"""
    if not paths or loader is None:
        return

    for path in paths:
        try:
            image = loader.load(path)
        except (ImageDecodeError, OSError) as e:
            logger.warning("画像を表示できません: %s", e, extra={"path": str(path)})
            st.caption(f"画像を表示できません: {path.name}")
            continue

        st.markdown(image_html(image, crossfade=loader.crossfade, alt=path.name), unsafe_allow_html=True)

        desc = library.describe(path.name) if library else None
        if desc is not None:
            with st.expander(desc.title or path.name):
                st.markdown(desc.description, unsafe_allow_html=True)


# ----------------------------------------------------------------------
#  問題ページ
# ----------------------------------------------------------------------
def _render_tags(question: Question, performance: Optional[QuestionPerformance]) -> None:
    tags = []
    if question.sub_name:
        tags.append(question.sub_name)
    if question.sys_name:
        tags.append(question.sys_name)
    if question.accuracy is not None:
        tags.append(f"正答率 {question.accuracy * 100:.0f}%")
    if performance is not None:
        mark = "○" if performance.last_correct else "×"
        tags.append(f"前回 {mark} / {performance.attempts} 回")

    if not tags:
        return
    tags_html = "".join(f"<span class='mq-tag'>{html.escape(t)}</span>" for t in tags)
    st.markdown(f"<div class='mq-tags'>{tags_html}</div>", unsafe_allow_html=True)


def render_question_block(
    question: Question,
    answers: List[Answer],
    session: QuizSession,
    *,
    performance: Optional[QuestionPerformance] = None,
    media_paths: Optional[List[Path]] = None,
    loader: Optional[ImageLoader] = None,
    library: Optional[MediaLibrary] = None,
) -> Dict[str, Any]:
    """
    問題 1 問分を描画する。

    戻り値:
        {
          "selected_choice": Optional[int],   # 新たに押された選択肢の位置 (0 始まり)
        }
    """
    selected_choice: Optional[int] = None

    st.markdown(
        f"<div class='mq-title'>Q{session.index + 1} / {len(session.question_ids)}"
        f"{' · ' + html.escape(question.title) if question.title else ''}</div>",
        unsafe_allow_html=True,
    )
    _render_tags(question, performance)

    # 問題文は DB の HTML をそのまま表示する
    st.markdown(f"<div class='mq-question-box'>{question.question}</div>", unsafe_allow_html=True)

    render_media(media_paths or [], loader, library)

    # ----------------------------------------
    # 選択肢
    # ----------------------------------------
    correct = correct_answer(question, answers)
    percentages = answer_percentages(answers)

    for idx, ans in enumerate(answers):
        if not session.answered:
            if st.button(ans.answer_text, key=f"mq_answer_{question.id}_{ans.answer_id}", use_container_width=True):
                selected_choice = idx
            continue

        # 回答済み: 正解・不正解を色分けし、選択率を添える
        classes = ["mq-answer"]
        if correct is not None and ans.answer_id == correct.answer_id:
            classes.append("mq-answer-correct")
        elif idx == session.selected_index:
            classes.append("mq-answer-incorrect")

        pct = percentages.get(ans.answer_id)
        suffix = f" <small>({pct}%)</small>" if pct is not None else ""
        st.markdown(
            f"<div class='{' '.join(classes)}'>{ans.answer_text}{suffix}</div>",
            unsafe_allow_html=True,
        )

    # ----------------------------------------
    # 解説（回答済みの場合のみ）
    # ----------------------------------------
    if session.answered and question.explanation:
        with st.expander("解説", expanded=True):
            st.markdown(
                f"<div class='mq-explanation-box'>{question.explanation}</div>",
                unsafe_allow_html=True,
            )

    return {"selected_choice": selected_choice}


def render_navigation(session: QuizSession) -> Dict[str, Any]:
    """前へ / 次へ / 番号ジャンプ。"""
    clicked_prev = False
    clicked_next = False
    jump_to: Optional[int] = None

    col_prev, col_next = st.columns(2)
    with col_prev:
        if st.button("◀ 前の問題", key="mq_prev", disabled=not session.has_prev, use_container_width=True):
            clicked_prev = True
    with col_next:
        if st.button("次の問題 ▶", key="mq_next", disabled=not session.has_next, use_container_width=True):
            clicked_next = True

    total = len(session.question_ids)
    if total > 1:
        with st.expander("問題番号へジャンプ"):
            number = st.number_input("問題番号", min_value=1, max_value=total, value=session.index + 1, step=1)
            if st.button("移動", key="mq_jump"):
                jump_to = int(number) - 1

    return {"clicked_prev": clicked_prev, "clicked_next": clicked_next, "jump_to": jump_to}


# ----------------------------------------------------------------------
#  サイドバー
# ----------------------------------------------------------------------
def render_filter_panel(
    subjects: List[Subject],
    systems: List[System],
    current_filter: PerformanceFilter,
) -> Dict[str, Any]:
    """
    絞り込みパネル。

    戻り値:
        {
          "subject_ids": List[int],
          "system_ids": List[int],
          "performance_filter": PerformanceFilter,
          "apply": bool,
        }
    """
    st.sidebar.markdown("### 絞り込み")

    subject_names = {s.id: f"{s.name} ({s.count})" if s.count else s.name for s in subjects}
    subject_ids = st.sidebar.multiselect(
        "Subject",
        list(subject_names.keys()),
        format_func=lambda i: subject_names.get(i, str(i)),
        key="mq_subject_ids",
    )

    system_names = {s.id: f"{s.name} ({s.count})" if s.count else s.name for s in systems}
    system_ids = st.sidebar.multiselect(
        "System",
        list(system_names.keys()),
        format_func=lambda i: system_names.get(i, str(i)),
        key="mq_system_ids",
    )

    options = list(PerformanceFilter)
    performance_filter = st.sidebar.selectbox(
        "成績",
        options,
        index=options.index(current_filter),
        format_func=lambda f: PERFORMANCE_LABELS.get(f, f.value),
        key="mq_performance_filter",
    )

    apply = st.sidebar.button("この条件で出題", key="mq_apply_filter", use_container_width=True)

    return {
        "subject_ids": list(subject_ids),
        "system_ids": list(system_ids),
        "performance_filter": performance_filter,
        "apply": apply,
    }


def render_settings_panel(settings: SettingsStore) -> Dict[str, Any]:
    """設定パネル。解答ログの ON/OFF とログ消去ボタン。"""
    st.sidebar.markdown("### 設定")

    enabled = st.sidebar.toggle(
        "解答を記録する",
        value=settings.is_logging_enabled,
        key="mq_logging_enabled",
    )
    if enabled != settings.is_logging_enabled:
        try:
            settings.is_logging_enabled = enabled
        except SettingsPersistenceError as e:
            # 値はメモリ上では反映済み
            st.sidebar.warning(str(e))

    clear_logs = st.sidebar.button("解答ログを消去", key="mq_clear_logs", use_container_width=True)
    return {"logging_enabled": enabled, "clear_logs": clear_logs}
