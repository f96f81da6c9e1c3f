"""
repository.py
===========================

問題 DB への問い合わせをまとめたモジュール。

目的:
- Subject / System / 過去の成績で問題 ID を絞り込む
- 問題・選択肢・分類名を models のデータクラスに変換する
- 解答ログ（logs テーブル）の書き込みと集計

配布されている DB には Questions.subId / sysId が
整数のものと "3,7" のようなカンマ区切り文字列のものがある。
どちらかは最初の接続時に列の型から判定する。
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import AnswerLogError
from .models import (
    Answer,
    PerformanceFilter,
    Question,
    QuestionPerformance,
    Subject,
    System,
)
from .settings import SettingsStore

logger = logging.getLogger(__name__)


# logs を問題ごとに集計するサブクエリ。lastCorrect は最新（id 最大）の 1 件で判定する
_LOG_SUMMARY_SQL = """
    SELECT
        l.qid AS qid,
        (SELECT CASE WHEN l2.selectedAnswer = l2.corrAnswer THEN 1 ELSE 0 END
           FROM logs l2 WHERE l2.qid = l.qid ORDER BY l2.id DESC LIMIT 1) AS lastCorrect,
        MAX(CASE WHEN l.selectedAnswer = l.corrAnswer THEN 1 ELSE 0 END) AS everCorrect,
        MAX(CASE WHEN l.selectedAnswer != l.corrAnswer THEN 1 ELSE 0 END) AS everIncorrect
    FROM logs l
    GROUP BY l.qid
"""

_PERFORMANCE_CLAUSES: Dict[PerformanceFilter, Optional[str]] = {
    PerformanceFilter.ALL: None,
    PerformanceFilter.UNANSWERED: "ls.qid IS NULL",
    PerformanceFilter.LAST_CORRECT: "ls.lastCorrect = 1",
    PerformanceFilter.LAST_INCORRECT: "ls.lastCorrect = 0",
    PerformanceFilter.EVER_CORRECT: "ls.everCorrect = 1",
    PerformanceFilter.EVER_INCORRECT: "ls.everIncorrect = 1",
}


class QuizRepository:
    """
    問題 DB のアクセサ。

    主な機能:
    - get_question_ids(): フィルタ付きの問題 ID 一覧
    - get_question_by_id() / get_answers_for_question()
    - get_subjects() / get_systems()
    - log_answer() / get_question_performance() / clear_logs()
    """

    def __init__(self, engine: Engine, settings: Optional[SettingsStore] = None):
        self.engine = engine
        self.settings = settings
        self._lock = threading.RLock()
        self._string_ids: Optional[bool] = None

    # ------------------------------------------------------------
    # 接続まわり
    # ------------------------------------------------------------
    def close(self) -> None:
        """接続プールを破棄する。"""
        self.engine.dispose()

    @property
    def uses_string_ids(self) -> bool:
        """subId 列が文字列（カンマ区切り）かどうか。判定結果はキャッシュする。"""
        if self._string_ids is None:
            with self.engine.connect() as conn:
                self._string_ids = self._detect_string_ids(conn)
        return self._string_ids

    @staticmethod
    def _detect_string_ids(conn: Connection) -> bool:
        row = conn.execute(
            text("SELECT type FROM pragma_table_info('Questions') WHERE name = 'subId'")
        ).first()
        if row is None or row[0] is None:
            # 判定できない場合は文字列扱い（instr は整数列でも動く）
            return True
        col_type = str(row[0]).lower()
        return "char" in col_type or "text" in col_type

    # ------------------------------------------------------------
    # 問題 ID の絞り込み
    # ------------------------------------------------------------
    def get_question_ids(
        self,
        subject_ids: Optional[Iterable[int]] = None,
        system_ids: Optional[Iterable[int]] = None,
        performance_filter: PerformanceFilter = PerformanceFilter.ALL,
    ) -> List[int]:
        params: Dict[str, Any] = {}
        where: List[str] = []

        if subject_ids:
            where.append(self._multi_value_condition("q.subId", "sub", subject_ids, params))
        if system_ids:
            where.append(self._multi_value_condition("q.sysId", "sys", system_ids, params))

        perf_clause = _PERFORMANCE_CLAUSES[PerformanceFilter(performance_filter)]
        if perf_clause:
            where.append(perf_clause)

        sql = "SELECT q.id FROM Questions q"
        if perf_clause:
            sql += f" LEFT JOIN ({_LOG_SUMMARY_SQL}) ls ON ls.qid = q.id"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY q.id"

        with self._lock, self.engine.connect() as conn:
            return [int(r[0]) for r in conn.execute(text(sql), params)]

    def _multi_value_condition(
        self,
        column: str,
        prefix: str,
        ids: Iterable[int],
        params: Dict[str, Any],
    ) -> str:
        """
        ID リストの一致条件を組み立てる。

        - 整数列: column IN (:p0, :p1, ...)
        - 文字列列: ',' || column || ',' の中に ',<id>,' が含まれるか
        """
        unique = list(dict.fromkeys(int(i) for i in ids))
        if not unique:
            return "1=1"

        names = []
        for n, value in enumerate(unique):
            name = f"{prefix}{n}"
            names.append(name)
            params[name] = str(value) if self.uses_string_ids else value

        if not self.uses_string_ids:
            return f"{column} IN ({', '.join(':' + n for n in names)})"

        conditions = [
            f"instr(',' || {column} || ',', ',' || :{n} || ',') > 0" for n in names
        ]
        if len(conditions) == 1:
            return conditions[0]
        return "(" + " OR ".join(conditions) + ")"

    # ------------------------------------------------------------
    # 問題 / 選択肢
    # ------------------------------------------------------------
    def get_question_by_id(self, question_id: int) -> Optional[Question]:
        sql = text(
            "SELECT id, question, explanation, corrAns, title, mediaName, otherMedias, "
            "pplTaken, corrTaken, subId, sysId FROM Questions WHERE id = :id"
        )
        with self._lock, self.engine.connect() as conn:
            row = conn.execute(sql, {"id": question_id}).mappings().first()
            if row is None:
                return None

            data = dict(row)
            sub_id = data.get("subId")
            sys_id = data.get("sysId")
            if sub_id is not None:
                data["subName"] = self._names_for(conn, "Subjects", str(sub_id))
            if sys_id is not None:
                data["sysName"] = self._names_for(conn, "Systems", str(sys_id))

        return Question.from_dict(data)

    @staticmethod
    def _names_for(conn: Connection, table: str, ids_str: str) -> str:
        """カンマ区切りの ID を名前に変換して ", " で連結する。"""
        ids = []
        for part in ids_str.split(","):
            part = part.strip()
            if part.lstrip("-").isdigit():
                ids.append(int(part))
        if not ids:
            return ""

        params = {f"id{n}": v for n, v in enumerate(ids)}
        placeholders = ", ".join(f":{k}" for k in params)
        rows = conn.execute(
            text(f"SELECT id, name FROM {table} WHERE id IN ({placeholders})"), params
        ).all()
        by_id = {int(r[0]): r[1] for r in rows if r[1] is not None}
        # 元の ID の並び順で返す
        return ", ".join(by_id[i] for i in ids if i in by_id)

    def get_answers_for_question(self, question_id: int) -> List[Answer]:
        sql = text(
            "SELECT id, answerId, answerText, correctPercentage, qId "
            "FROM Answers WHERE qId = :qid ORDER BY COALESCE(answerId, id)"
        )
        with self._lock, self.engine.connect() as conn:
            rows = conn.execute(sql, {"qid": question_id}).mappings().all()

        return [
            Answer(
                answer_id=int(r["answerId"] if r["answerId"] is not None else r["id"]),
                answer_text=r["answerText"] or "",
                q_id=question_id,
                correct_percentage=(
                    int(r["correctPercentage"]) if r["correctPercentage"] is not None else None
                ),
            )
            for r in rows
        ]

    # ------------------------------------------------------------
    # 分類
    # ------------------------------------------------------------
    def get_subjects(self) -> List[Subject]:
        with self._lock, self.engine.connect() as conn:
            rows = conn.execute(text("SELECT id, name, count FROM Subjects ORDER BY name")).all()
        return [Subject(id=int(r[0]), name=r[1] or "", count=r[2]) for r in rows]

    def get_systems(self, subject_ids: Optional[Iterable[int]] = None) -> List[System]:
        """
        System 一覧。subject_ids を渡すと SubjectsSystems で関連するものだけ返す。
        """
        subject_ids = list(subject_ids or [])
        with self._lock, self.engine.connect() as conn:
            if not subject_ids:
                rows = conn.execute(text("SELECT id, name, count FROM Systems ORDER BY name")).all()
            else:
                params = {f"s{n}": int(v) for n, v in enumerate(subject_ids)}
                placeholders = ", ".join(f":{k}" for k in params)
                rows = conn.execute(
                    text(
                        "SELECT id, name, count FROM Systems WHERE id IN ("
                        f"SELECT DISTINCT sysId FROM SubjectsSystems WHERE subId IN ({placeholders})"
                        ") ORDER BY name"
                    ),
                    params,
                ).all()
        return [System(id=int(r[0]), name=r[1] or "", count=r[2]) for r in rows]

    # ------------------------------------------------------------
    # 解答ログ
    # ------------------------------------------------------------
    def log_answer(
        self,
        qid: int,
        selected_answer: int,
        corr_answer: Optional[int],
        time_ms: int,
        test_id: Optional[str] = None,
    ) -> bool:
        """
        解答を logs に 1 件追加する。

        設定でログが無効、または正解位置 (corr_answer) が DB に無い問題なら
        何もせず False を返す。書き込みに失敗した場合は AnswerLogError。
        """
        if self.settings is not None and not self.settings.is_logging_enabled:
            logger.debug("answer logging disabled", extra={"qid": qid})
            return False
        if corr_answer is None:
            logger.warning("corrAns が無いため解答を記録しません", extra={"qid": qid})
            return False

        test_id_int: Optional[int] = None
        if test_id is not None and str(test_id).strip().lstrip("-").isdigit():
            test_id_int = int(str(test_id).strip())

        try:
            with self._lock, self.engine.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO logs (qid, selectedAnswer, corrAnswer, time, answerDate, testId) "
                        "VALUES (:qid, :selected, :corr, :time, :date, :test_id)"
                    ),
                    {
                        "qid": qid,
                        "selected": selected_answer,
                        "corr": corr_answer,
                        "time": int(time_ms),
                        "date": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
                        "test_id": test_id_int,
                    },
                )
        except SQLAlchemyError as e:
            logger.error("解答ログを保存できません", extra={"qid": qid}, exc_info=True)
            raise AnswerLogError(f"解答を保存できません (問題 {qid})") from e
        return True

    def get_question_performance(self, qid: int) -> Optional[QuestionPerformance]:
        sql = text(
            """
            SELECT
                (SELECT CASE WHEN selectedAnswer = corrAnswer THEN 1 ELSE 0 END
                   FROM logs WHERE qid = :qid ORDER BY id DESC LIMIT 1) AS lastCorrect,
                MAX(CASE WHEN selectedAnswer = corrAnswer THEN 1 ELSE 0 END) AS everCorrect,
                MAX(CASE WHEN selectedAnswer != corrAnswer THEN 1 ELSE 0 END) AS everIncorrect,
                COUNT(*) AS attempts,
                SUM(CASE WHEN selectedAnswer = corrAnswer THEN 1 ELSE 0 END) AS correctCount,
                SUM(CASE WHEN selectedAnswer != corrAnswer THEN 1 ELSE 0 END) AS incorrectCount
            FROM logs
            WHERE qid = :qid
            """
        )
        with self._lock, self.engine.connect() as conn:
            row = conn.execute(sql, {"qid": qid}).mappings().first()

        if row is None or not row["attempts"]:
            return None
        return QuestionPerformance(
            qid=qid,
            last_correct=row["lastCorrect"] == 1,
            ever_correct=row["everCorrect"] == 1,
            ever_incorrect=row["everIncorrect"] == 1,
            attempts=int(row["attempts"]),
            correct_count=int(row["correctCount"] or 0),
            incorrect_count=int(row["incorrectCount"] or 0),
        )

    def clear_logs(self) -> None:
        with self._lock, self.engine.begin() as conn:
            conn.execute(text("DELETE FROM logs"))
        logger.info("answer logs cleared")
