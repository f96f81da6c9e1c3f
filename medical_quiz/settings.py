"""
settings.py
======================

端末に保存するキーバリュー形式の設定ストア。

保存先: <storage>/medical_quiz_settings.json

{
  "log_answers_enabled": true
}

- 未設定のキーは既定値を返す
- 書き込みは即座にファイルへ反映する
- 知らないキーはそのまま残す

書き込みに失敗した場合でもメモリ上の値は更新されるので、
同じプロセス内の次の読み取りは新しい値を返す。
失敗そのものは SettingsPersistenceError として呼び出し側に伝える。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from .config import AppConfig
from .errors import SettingsPersistenceError
from .models import PerformanceFilter

logger = logging.getLogger(__name__)

PREFS_NAME = "medical_quiz_settings"
KEY_LOGGING_ENABLED = "log_answers_enabled"

DEFAULTS: Dict[str, Any] = {
    KEY_LOGGING_ENABLED: True,
}


class SettingsStore:
    """
    設定ストア。

    主な機能:
    - is_logging_enabled: 解答ログを DB に書くかどうか（永続化）
    - performance_filter: 出題フィルタ（このプロセスの間だけ保持）
    """

    def __init__(self, storage_dir: Path, name: str = PREFS_NAME):
        self.path = Path(storage_dir) / f"{name}.json"
        self._values: Dict[str, Any] = {}
        self.performance_filter: PerformanceFilter = PerformanceFilter.ALL
        self._load()

    # ------------------------------------------------------------------
    # 公開プロパティ
    # ------------------------------------------------------------------
    @property
    def is_logging_enabled(self) -> bool:
        return bool(self.get_bool(KEY_LOGGING_ENABLED))

    @is_logging_enabled.setter
    def is_logging_enabled(self, value: bool) -> None:
        self.put_bool(KEY_LOGGING_ENABLED, value)

    # ------------------------------------------------------------------
    # キーバリュー API
    # ------------------------------------------------------------------
    def get_bool(self, key: str, default: Any = None) -> bool:
        if default is None:
            default = DEFAULTS.get(key, False)
        value = self._values.get(key)
        if value is None:
            # null は未設定と同じ扱い
            return bool(default)
        if isinstance(value, bool):
            return value
        # 手で書き換えられたファイルへの保険
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    def put_bool(self, key: str, value: bool) -> None:
        self._values[key] = bool(value)
        self._save()

    # ------------------------------------------------------------------
    # ロード / セーブ
    # ------------------------------------------------------------------
    def _load(self) -> None:
        """ファイルを読む。無い・壊れている場合は既定値のまま。"""
        try:
            data = AppConfig.read_json(self.path)
        except (OSError, ValueError) as e:
            # ValueError は JSONDecodeError と UnicodeDecodeError の両方を含む
            logger.warning("設定ファイルを読み込めません: %s", e, extra={"path": str(self.path)})
            return

        if data is None:
            return
        if not isinstance(data, dict):
            logger.warning("設定ファイルの形式が不正です", extra={"path": str(self.path)})
            return
        self._values = data

    def _save(self) -> None:
        try:
            AppConfig.write_json(self.path, self._values)
        except OSError as e:
            logger.error("設定を保存できません", extra={"path": str(self.path)}, exc_info=True)
            raise SettingsPersistenceError(f"設定を保存できません: {self.path}") from e
