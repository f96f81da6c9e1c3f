"""
models.py
======================

クイズの問題・選択肢・分類（Subject / System）を表すデータクラス。

QuizSession 以外はすべて frozen dataclass で、生成後に書き換えない。
DB の行からの変換は repository.py が担当し、ここでは検証を行わない。
（例: corr_ans が実在する選択肢を指すかどうかはチェックしない）
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Question:
    """
    問題 1 件。

    sub_id / sys_id は DB によっては "3,7" のようなカンマ区切り文字列になる。
    sub_name / sys_name は取得時に名前を引いて埋めたもの（なければ None）。
    corr_ans は正解の選択肢の 1 始まりの位置。DB が NULL なら None。
    """

    id: int
    question: str
    explanation: str
    corr_ans: Optional[int]
    title: Optional[str] = None
    media_name: Optional[str] = None
    other_medias: Optional[str] = None
    ppl_taken: Optional[float] = None
    corr_taken: Optional[float] = None
    sub_id: Optional[str] = None
    sys_id: Optional[str] = None
    sub_name: Optional[str] = None
    sys_name: Optional[str] = None

    @property
    def accuracy(self) -> Optional[float]:
        """全体の正答率 (0.0〜1.0)。統計が無ければ None。"""
        if self.ppl_taken is None or self.corr_taken is None or self.ppl_taken <= 0:
            return None
        return self.corr_taken / self.ppl_taken

    def media_files(self) -> List[str]:
        """media_name と other_medias をまとめたファイル名リスト（重複なし・順序保持）。"""
        names: List[str] = []
        if self.media_name:
            names.append(self.media_name.strip())
        names.extend(parse_media_list(self.other_medias))

        seen = set()
        result = []
        for n in names:
            if n and n not in seen:
                seen.add(n)
                result.append(n)
        return result

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Question":
        return cls(
            id=int(d["id"]),
            question=d.get("question") or "",
            explanation=d.get("explanation") or "",
            corr_ans=int(d["corrAns"]) if d.get("corrAns") is not None else None,
            title=d.get("title"),
            media_name=d.get("mediaName"),
            other_medias=d.get("otherMedias"),
            ppl_taken=_opt_float(d.get("pplTaken")),
            corr_taken=_opt_float(d.get("corrTaken")),
            sub_id=_opt_str(d.get("subId")),
            sys_id=_opt_str(d.get("sysId")),
            sub_name=d.get("subName"),
            sys_name=d.get("sysName"),
        )


@dataclass(frozen=True)
class Answer:
    """選択肢 1 件。q_id は所属する Question.id。"""

    answer_id: int
    answer_text: str
    q_id: int
    correct_percentage: Optional[int] = None


@dataclass(frozen=True)
class Subject:
    id: int
    name: str
    count: Optional[int] = None


@dataclass(frozen=True)
class System:
    id: int
    name: str
    count: Optional[int] = None


class PerformanceFilter(str, Enum):
    """過去の解答ログで問題を絞り込むためのフィルタ。"""

    ALL = "all"
    UNANSWERED = "unanswered"
    LAST_CORRECT = "last_correct"
    LAST_INCORRECT = "last_incorrect"
    EVER_CORRECT = "ever_correct"
    EVER_INCORRECT = "ever_incorrect"


@dataclass(frozen=True)
class QuestionPerformance:
    """logs テーブルから集計した 1 問分の成績。"""

    qid: int
    last_correct: bool
    ever_correct: bool
    ever_incorrect: bool
    attempts: int
    correct_count: int = 0
    incorrect_count: int = 0


@dataclass(frozen=True)
class MediaDescription:
    image_name: str
    title: str
    description: str


# ----------------------------------------------------------------------
#  ヘルパー
# ----------------------------------------------------------------------
def parse_media_list(raw: Optional[str]) -> List[str]:
    """
    other_medias の文字列をファイル名リストに変換する。

    DB には JSON 配列 ('["a.jpg", "b.svg"]') と
    カンマ区切り ("a.jpg,b.svg") の両方が入っているので両方受け付ける。
    """
    if raw is None:
        return []
    text = raw.strip()
    if not text:
        return []

    if text.startswith("["):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            return [str(x).strip() for x in data if str(x).strip()]
        text = text.strip("[]")

    return [part.strip().strip('"').strip("'") for part in text.split(",") if part.strip()]


def correct_answer(question: Question, answers: List[Answer]) -> Optional[Answer]:
    """corr_ans は 1 始まりの位置。未設定・範囲外なら None。"""
    if question.corr_ans is None:
        return None
    pos = question.corr_ans - 1
    if 0 <= pos < len(answers):
        return answers[pos]
    return None


def answer_percentages(answers: List[Answer]) -> Dict[int, Optional[int]]:
    """
    各選択肢を選んだ人の割合 (%) を answer_id ごとに返す。

    correct_percentage は DB によって合計が 100 にならないので合計で割り直す。
    合計が 0 の場合は None。
    """
    total = sum(a.correct_percentage or 0 for a in answers)
    return {
        a.answer_id: ((a.correct_percentage or 0) * 100 // total if total > 0 else None)
        for a in answers
    }


def _opt_float(v: Any) -> Optional[float]:
    return None if v is None else float(v)


def _opt_str(v: Any) -> Optional[str]:
    return None if v is None else str(v)


# ----------------------------------------------------------------------
#  出題セッション（UI 用・可変）
# ----------------------------------------------------------------------
@dataclass
class QuizSession:
    """
    出題中の問題 ID リストと現在位置、解答状態を持つ。

    selected_index は現在の問題で選んだ選択肢の位置（未回答なら None）。
    """

    question_ids: List[int] = field(default_factory=list)
    index: int = 0
    selected_index: Optional[int] = None
    started_at: float = field(default_factory=time.monotonic)
    test_id: str = field(default_factory=lambda: str(int(time.time())))

    @property
    def current_id(self) -> Optional[int]:
        if 0 <= self.index < len(self.question_ids):
            return self.question_ids[self.index]
        return None

    @property
    def answered(self) -> bool:
        return self.selected_index is not None

    @property
    def has_next(self) -> bool:
        return self.index + 1 < len(self.question_ids)

    @property
    def has_prev(self) -> bool:
        return self.index > 0

    def reset(self, question_ids: List[int]) -> None:
        self.question_ids = list(question_ids)
        self.jump_to(0)

    def jump_to(self, index: int) -> bool:
        if not self.question_ids:
            self.index = 0
        elif not 0 <= index < len(self.question_ids):
            return False
        else:
            self.index = index
        self.selected_index = None
        self.started_at = time.monotonic()
        return True

    def go_next(self) -> bool:
        return self.jump_to(self.index + 1) if self.has_next else False

    def go_prev(self) -> bool:
        return self.jump_to(self.index - 1) if self.has_prev else False

    def answer(self, selected_index: int) -> int:
        """選択を記録し、問題表示からの経過時間（ミリ秒）を返す。"""
        self.selected_index = selected_index
        return int((time.monotonic() - self.started_at) * 1000)

    def retract(self) -> None:
        """answer() を取り消して未回答に戻す。経過時間の計測は続ける。"""
        self.selected_index = None
