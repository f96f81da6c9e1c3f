"""
database.py
======================

SQLite データベースの起動処理。

get_database_builder(name, capabilities) がプラットフォームごとに
保存先を解決した DatabaseBuilder を返し、build() で SQLAlchemy Engine を作る。

- MOBILE : AppContext が必要。name はアプリ専用ディレクトリからの相対パス
- DESKTOP: コンテキスト不要。name をそのままファイルパスとして扱う

クエリは repository.py 側にまとめる。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import DatabaseOpenError
from .platform import AppContext, AppContextHolder, PlatformCapabilities, app_context

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
#  スキーマ
# ----------------------------------------------------------------------
metadata = MetaData()

questions_table = Table(
    "Questions",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("question", Text),
    Column("explanation", Text),
    Column("corrAns", Integer),
    Column("title", Text),
    Column("mediaName", Text),
    Column("otherMedias", Text),
    Column("pplTaken", Float),
    Column("corrTaken", Float),
    # 配布されている DB では "3,7" のようなカンマ区切りの文字列
    Column("subId", String),
    Column("sysId", String),
)

answers_table = Table(
    "Answers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("answerId", Integer),
    Column("answerText", Text),
    Column("correctPercentage", Integer),
    Column("qId", Integer, ForeignKey("Questions.id")),
)

subjects_table = Table(
    "Subjects",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", Text),
    Column("count", Integer),
)

systems_table = Table(
    "Systems",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", Text),
    Column("count", Integer),
)

subjects_systems_table = Table(
    "SubjectsSystems",
    metadata,
    Column("subId", Integer, primary_key=True),
    Column("sysId", Integer, primary_key=True),
    Column("count", Integer),
)

logs_table = Table(
    "logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("qid", Integer, nullable=False),
    Column("selectedAnswer", Integer, nullable=False),
    Column("corrAnswer", Integer, nullable=False),
    Column("time", Integer, nullable=False),
    Column("answerDate", Text, nullable=False),
    Column("testId", Integer),
)


# ----------------------------------------------------------------------
#  DatabaseBuilder
# ----------------------------------------------------------------------
class DatabaseBuilder:
    """
    保存先が決まった状態のデータベースビルダー。

    name: 呼び出し側が渡した名前（例: "quiz.db"）
    path: 実際のファイルパス
    """

    def __init__(self, name: str, path: Path, *, echo: bool = False):
        self.name = name
        self.path = Path(path)
        self.echo = echo

    @property
    def url(self) -> str:
        return f"sqlite:///{self.path}"

    def build(self) -> Engine:
        """
        Engine を作って接続を確認する。

        開けない場合は DatabaseOpenError（ログにも残す）。
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(self.url, echo=self.echo, future=True)
            with engine.connect():
                pass
        except (SQLAlchemyError, OSError) as e:
            logger.error("failed to open database", extra={"path": str(self.path)}, exc_info=True)
            raise DatabaseOpenError(str(self.path), e) from e

        logger.info("database opened", extra={"path": str(self.path)})
        return engine

    def create_schema(self, engine: Optional[Engine] = None) -> Engine:
        """足りないテーブルだけ作る（既存の問題 DB は壊さない）。"""
        engine = engine or self.build()
        metadata.create_all(engine, checkfirst=True)
        return engine

    def __repr__(self) -> str:
        return f"DatabaseBuilder(name={self.name!r}, path={str(self.path)!r})"


# ----------------------------------------------------------------------
#  プラットフォーム別ファクトリ
# ----------------------------------------------------------------------
def get_database_builder(
    name: str,
    capabilities: PlatformCapabilities,
    context: Optional[AppContext] = None,
    holder: AppContextHolder = app_context,
) -> DatabaseBuilder:
    """
    プラットフォームに応じた DatabaseBuilder を返す。

    MOBILE で context を渡さず holder も未初期化なら
    ContextNotInitializedError をそのまま送出する。
    """
    if capabilities.is_mobile:
        return _mobile_database_builder(name, context if context is not None else holder.context)
    return _desktop_database_builder(name)


def _mobile_database_builder(name: str, context: AppContext) -> DatabaseBuilder:
    return DatabaseBuilder(name, Path(context.files_dir) / "databases" / name)


def _desktop_database_builder(name: str) -> DatabaseBuilder:
    return DatabaseBuilder(name, Path(name).expanduser())
