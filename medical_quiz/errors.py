"""
errors.py
======================

medical_quiz で使う例外の定義。

呼び出し側は MedicalQuizError を捕まえればアプリ由来のエラーをまとめて扱える。
"""

from __future__ import annotations

from typing import Optional


class MedicalQuizError(Exception):
    """アプリ由来の例外の基底クラス。"""


class ContextNotInitializedError(MedicalQuizError, RuntimeError):
    """AppContext.init() より前にコンテキストを参照した。"""

    def __init__(self, message: str = "Context not initialized. Call app_context.init(context) first."):
        super().__init__(message)


class ContextAlreadyInitializedError(MedicalQuizError, RuntimeError):
    """AppContext を二度初期化しようとした。"""


class DatabaseOpenError(MedicalQuizError):
    """データベースファイルを開けなかった。"""

    def __init__(self, path: str, cause: Optional[Exception] = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"データベースを開けません ({path}){detail}")


class SettingsPersistenceError(MedicalQuizError):
    """設定ファイルの書き込みに失敗した（メモリ上の値は更新済み）。"""


class ImageDecodeError(MedicalQuizError):
    """画像データをデコードできなかった。"""


class AnswerLogError(MedicalQuizError):
    """解答ログを logs テーブルに書き込めなかった。"""
