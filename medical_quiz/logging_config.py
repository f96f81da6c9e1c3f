"""
logging_config.py
======================

ログ出力の設定。

- 1 行 1 JSON の構造化ログを stderr に出す
- Streamlit は再実行のたびにスクリプトを評価するため、
  ハンドラの二重登録を避ける
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Optional

_HANDLER_NAME = "medical_quiz"


class StructuredFormatter(logging.Formatter):
    """JSON 形式のフォーマッタ。"""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # extra= で渡された項目
        for key in ("qid", "path", "platform", "duration_ms"):
            if hasattr(record, key):
                log_obj[key] = getattr(record, key)

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_obj, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", stream: Optional[object] = None) -> logging.Logger:
    """
    パッケージロガー medical_quiz を設定して返す。

    何度呼んでもハンドラは 1 つだけ。レベルは毎回更新する。
    """
    logger = logging.getLogger("medical_quiz")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in logger.handlers:
        if handler.get_name() == _HANDLER_NAME:
            return logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
