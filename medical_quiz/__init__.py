"""
medical_quiz パッケージ
======================

このパッケージは、医学クイズアプリの内部ロジックを提供する。

主な役割:
- 設定管理（config / settings）
- 問題・選択肢・分類のデータモデル（models）
- プラットフォーム差分と起動時コンテキスト（platform）
- SQLite データベースの起動とクエリ（database / repository）
- 問題画像の読み込みとキャッシュ（media / images）
- テーマと UI コンポーネント（theme / ui）

app.py は Streamlit UI のみを担当し、内部ロジックはすべて本パッケージから呼ぶ。
UI モジュール（theme / ui）は streamlit を読み込むため、ここでは再エクスポートしない。
"""

from .config import AppConfig
from .database import DatabaseBuilder, get_database_builder
from .errors import (
    ContextAlreadyInitializedError,
    ContextNotInitializedError,
    DatabaseOpenError,
    ImageDecodeError,
    MedicalQuizError,
    SettingsPersistenceError,
)
from .images import ImageLoader, generate_image_loader, get_default_image_loader, install_default_image_loader
from .logging_config import setup_logging
from .media import MediaLibrary, load_media_descriptions
from .models import (
    Answer,
    MediaDescription,
    PerformanceFilter,
    Question,
    QuestionPerformance,
    QuizSession,
    Subject,
    System,
)
from .platform import (
    AppContext,
    AppContextHolder,
    Platform,
    PlatformCapabilities,
    app_context,
    detect_capabilities,
)
from .repository import QuizRepository
from .settings import SettingsStore

__all__ = [
    "AppConfig",
    "DatabaseBuilder",
    "get_database_builder",
    "MedicalQuizError",
    "ContextNotInitializedError",
    "ContextAlreadyInitializedError",
    "DatabaseOpenError",
    "SettingsPersistenceError",
    "ImageDecodeError",
    "ImageLoader",
    "generate_image_loader",
    "install_default_image_loader",
    "get_default_image_loader",
    "setup_logging",
    "MediaLibrary",
    "load_media_descriptions",
    "Question",
    "Answer",
    "Subject",
    "System",
    "PerformanceFilter",
    "QuestionPerformance",
    "MediaDescription",
    "QuizSession",
    "Platform",
    "PlatformCapabilities",
    "AppContext",
    "AppContextHolder",
    "app_context",
    "detect_capabilities",
    "QuizRepository",
    "SettingsStore",
]
