"""
platform.py
======================

プラットフォーム（モバイル / デスクトップ）ごとの差分をまとめるモジュール。

- PlatformCapabilities: 起動時に 1 回だけ決める「この環境で何ができるか」
- AppContext / AppContextHolder: モバイル版で DB の保存先を決めるのに必要な
  アプリケーションコンテキスト。未初期化 → 初期化済みの一方向にだけ遷移する
- app_storage_dir(): 画像キャッシュや設定ファイルの保存先

呼び出し側はコンテキストを引数で渡すのが基本。
モジュール変数 app_context は、引数で渡せない箇所のための互換用。
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .config import default_storage_dir
from .errors import ContextAlreadyInitializedError, ContextNotInitializedError

logger = logging.getLogger(__name__)

# ダイナミックカラーが使える OS バージョン（Android 12 = API 31）
DYNAMIC_COLOR_MIN_VERSION = 31

# メモリ量が取れない環境での仮の値
FALLBACK_MEMORY_BUDGET = 512 * 1024 * 1024


class Platform(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"


@dataclass(frozen=True)
class PlatformCapabilities:
    """
    起動時に決定するプラットフォーム情報。

    platform:
        MOBILE / DESKTOP
    os_version:
        モバイルなら API レベル。デスクトップは 0。
    dark_mode:
        ホストがダークモードかどうか
    dynamic_color_seed:
        ホストが提供するアクセントカラー ("#RRGGBB")。無ければ None
    memory_budget_bytes:
        画像キャッシュなどに使ってよいメモリ量の基準値
    """

    platform: Platform = Platform.DESKTOP
    os_version: int = 0
    dark_mode: bool = False
    dynamic_color_seed: Optional[str] = None
    memory_budget_bytes: int = FALLBACK_MEMORY_BUDGET

    @property
    def is_mobile(self) -> bool:
        return self.platform is Platform.MOBILE

    @property
    def supports_dynamic_color(self) -> bool:
        return (
            self.os_version >= DYNAMIC_COLOR_MIN_VERSION
            and self.dynamic_color_seed is not None
        )


def detect_memory_budget() -> int:
    """物理メモリ量を返す。取得できなければ FALLBACK_MEMORY_BUDGET。"""
    try:
        pages = os.sysconf("SC_PHYS_PAGES")
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, ValueError, OSError):
        return FALLBACK_MEMORY_BUDGET
    if pages <= 0 or page_size <= 0:
        return FALLBACK_MEMORY_BUDGET
    return pages * page_size


def detect_capabilities(
    *,
    dark_mode: bool = False,
    dynamic_color_seed: Optional[str] = None,
) -> PlatformCapabilities:
    """
    デスクトップ環境の PlatformCapabilities を作る。

    Streamlit 側のテーマ情報は UI 層でしか取れないので dark_mode は引数で受ける。
    """
    caps = PlatformCapabilities(
        platform=Platform.DESKTOP,
        os_version=0,
        dark_mode=dark_mode,
        dynamic_color_seed=dynamic_color_seed,
        memory_budget_bytes=detect_memory_budget(),
    )
    logger.debug(
        "detected capabilities",
        extra={"platform": caps.platform.value},
    )
    return caps


# ----------------------------------------------------------------------
#  AppContext
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class AppContext:
    """モバイル版のアプリケーションコンテキスト（アプリ専用ディレクトリ）。"""

    files_dir: Path


class AppContextHolder:
    """
    AppContext を 1 回だけ保持するホルダー。

    状態は Uninitialized / Initialized の 2 つだけ。
    - init() は 1 回のみ（2 回目は ContextAlreadyInitializedError）
    - 未初期化で context を読むと ContextNotInitializedError
    """

    def __init__(self) -> None:
        self._context: Optional[AppContext] = None
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> AppContext:
        ctx = self._context
        if ctx is None:
            raise ContextNotInitializedError()
        return ctx

    def init(self, context: AppContext) -> None:
        with self._lock:
            if self._context is not None:
                raise ContextAlreadyInitializedError("AppContext は既に初期化されています。")
            self._context = context
        logger.info("app context initialized", extra={"path": str(context.files_dir)})

    def _reset(self) -> None:
        """テスト用。"""
        with self._lock:
            self._context = None


# プロセス全体で共有するホルダー（互換用）
app_context = AppContextHolder()


# ----------------------------------------------------------------------
#  保存先
# ----------------------------------------------------------------------
def app_storage_dir(
    capabilities: PlatformCapabilities,
    context: Optional[AppContext] = None,
    holder: AppContextHolder = app_context,
    desktop_dir: Optional[Path] = None,
) -> Path:
    """
    設定ファイル・画像キャッシュ・メディアの置き場所を返す（無ければ作る）。

    - DESKTOP: desktop_dir（AppConfig.storage_dir）。省略時は ~/.medicalquiz
      （MEDICAL_QUIZ_HOME で上書き可）
    - MOBILE: AppContext.files_dir
    """
    if capabilities.is_mobile:
        ctx = context if context is not None else holder.context
        path = Path(ctx.files_dir)
    else:
        path = Path(desktop_dir) if desktop_dir is not None else default_storage_dir()

    path.mkdir(parents=True, exist_ok=True)
    return path
