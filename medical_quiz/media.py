"""
media.py
======================

問題に添付された画像ファイルの解決と、画像の説明文の読み込み。

media_descriptions.json の構造:

[
  {"image_name": "heart.svg", "title": "心臓", "description": "..."},
  ...
]

image_name / description が空のエントリは捨てる。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .models import MediaDescription, Question

logger = logging.getLogger(__name__)

SVG_SUFFIXES = {".svg"}
IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"} | SVG_SUFFIXES


class MediaLibrary:
    """
    <storage>/media 以下のファイルを扱うクラス。

    - resolve(): ファイル名 → 実在するパス（無ければ None）
    - media_for(): 問題に紐づく画像パスの一覧
    - describe(): 画像の説明文
    """

    def __init__(self, media_dir: Path, descriptions_path: Optional[Path] = None):
        self.media_dir = Path(media_dir)
        self.descriptions: Dict[str, MediaDescription] = (
            load_media_descriptions(descriptions_path) if descriptions_path else {}
        )

    def resolve(self, file_name: str) -> Optional[Path]:
        name = Path(file_name).name  # ディレクトリ指定は無視
        if not name:
            return None
        path = self.media_dir / name
        return path if path.is_file() else None

    def media_for(self, question: Question) -> List[Path]:
        paths = []
        for name in question.media_files():
            path = self.resolve(name)
            if path is None:
                logger.debug("media file missing: %s", name, extra={"qid": question.id})
                continue
            if path.suffix.lower() not in IMAGE_SUFFIXES:
                continue
            if path not in paths:
                paths.append(path)
        return paths

    def describe(self, file_name: str) -> Optional[MediaDescription]:
        return self.descriptions.get(Path(file_name).name)


# ----------------------------------------------------------------------
#  説明文の読み込み
# ----------------------------------------------------------------------
def load_media_descriptions(path: Path) -> Dict[str, MediaDescription]:
    """
    media_descriptions.json を読み込み、image_name をキーとする辞書を返す。
    ファイルが無い・壊れている場合は空 dict。
    """
    path = Path(path)
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("media_descriptions.json を読み込めません: %s", e, extra={"path": str(path)})
        return {}

    if not isinstance(data, list):
        return {}

    entries: Dict[str, MediaDescription] = {}
    for obj in data:
        if not isinstance(obj, dict):
            continue
        image_name = str(obj.get("image_name") or "").strip()
        description = str(obj.get("description") or "").strip()
        if not image_name or not description:
            continue
        entries[image_name] = MediaDescription(
            image_name=image_name,
            title=str(obj.get("title") or ""),
            description=description,
        )
    return entries
