"""
config.py
=========

アプリ全体で利用する設定値を一元管理する。
保存先ディレクトリ、データベース名、ログレベル、画像キャッシュなど
すべてこのクラスを通じて取得する。

優先順位:
1. 環境変数（MEDICAL_QUIZ_*）
2. ルートの config.toml
3. このファイルの既定値
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging
import os

import toml


logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# 基本パス定義
# ------------------------------------------------------------

ROOT_DIR = Path(__file__).resolve().parent.parent
CONFIG_TOML_PATH = ROOT_DIR / "config.toml"

STORAGE_DIR_ENV = "MEDICAL_QUIZ_HOME"
DEFAULT_STORAGE_DIRNAME = ".medicalquiz"


def default_storage_dir() -> Path:
    """デスクトップ向けの保存先 (~/.medicalquiz または MEDICAL_QUIZ_HOME)。"""
    override = os.environ.get(STORAGE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_STORAGE_DIRNAME


# ------------------------------------------------------------
# AppConfig
# ------------------------------------------------------------

@dataclass
class AppConfig:
    """
    アプリ設定クラス。

    - 保存先ディレクトリ / DB ファイル名
    - ログレベル
    - 画像キャッシュの上限
    - テーマ（ダイナミックカラー）の既定値
    """

    # ---------- アプリ ----------
    app_name: str = "MedicalQuiz"

    # ---------- ファイルパス ----------
    storage_dir: Optional[Path] = None
    database_name: str = "medical_quiz.db"
    media_dirname: str = "media"
    media_descriptions_name: str = "media_descriptions.json"

    # ---------- ログ ----------
    log_level: str = "INFO"

    # ---------- 画像 ----------
    image_cache_dirname: str = "image_cache"
    image_disk_cache_max_bytes: int = 100 * 1024 * 1024

    # ---------- テーマ ----------
    dynamic_color: bool = True

    # config.toml の生データ（未知のセクションも含む）
    raw: Dict[str, Any] = field(default_factory=dict)

    # ============================================================
    # 初期化処理
    # ============================================================

    def __post_init__(self):
        self.raw = self._load_toml(CONFIG_TOML_PATH)
        self._apply_toml(self.raw)
        self._apply_env()

        if self.storage_dir is None:
            self.storage_dir = default_storage_dir()
        self.storage_dir = Path(self.storage_dir)

    # ============================================================
    # パス
    # ============================================================

    @property
    def database_path(self) -> Path:
        return self.storage_dir / self.database_name

    @property
    def media_dir(self) -> Path:
        return self.storage_dir / self.media_dirname

    @property
    def media_descriptions_path(self) -> Path:
        return self.storage_dir / self.media_descriptions_name

    @property
    def image_cache_dir(self) -> Path:
        return self.storage_dir / self.image_cache_dirname

    # ============================================================
    # 内部関数
    # ============================================================

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """
        config.toml を読み込む。
        無い場合は空 dict、壊れている場合は警告を出して空 dict を返す。
        """
        if not path.exists():
            return {}
        try:
            return toml.load(path)
        except (toml.TomlDecodeError, OSError) as e:
            logger.warning("config.toml を読み込めません: %s", e)
            return {}

    def _apply_toml(self, cfg: Dict[str, Any]) -> None:
        app = cfg.get("app")
        if isinstance(app, dict):
            self.app_name = app.get("name", self.app_name)
            self.log_level = app.get("log_level", self.log_level)
            storage = app.get("storage_dir")
            if isinstance(storage, str) and storage:
                self.storage_dir = Path(storage).expanduser()

        db = cfg.get("database")
        if isinstance(db, dict):
            self.database_name = db.get("name", self.database_name)

        images = cfg.get("images")
        if isinstance(images, dict):
            self.image_disk_cache_max_bytes = int(
                images.get("disk_cache_max_bytes", self.image_disk_cache_max_bytes)
            )

        theme = cfg.get("theme")
        if isinstance(theme, dict):
            self.dynamic_color = bool(theme.get("dynamic_color", self.dynamic_color))

    def _apply_env(self) -> None:
        """環境変数があれば config.toml より優先する。"""
        home = os.environ.get(STORAGE_DIR_ENV)
        if home:
            self.storage_dir = Path(home).expanduser()

        db_name = os.environ.get("MEDICAL_QUIZ_DB")
        if db_name:
            self.database_name = db_name

        level = os.environ.get("MEDICAL_QUIZ_LOG_LEVEL")
        if level:
            self.log_level = level

    # ============================================================
    # JSON 読み取りユーティリティ
    # ============================================================

    @staticmethod
    def read_json(path: Path):
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def write_json(path: Path, data: dict):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
