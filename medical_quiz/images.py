"""
images.py
======================

問題画像の読み込みとキャッシュ。

generate_image_loader() が作る ImageLoader の構成:
- デコーダ: SvgDecoder を既定の RasterDecoder (Pillow) より先に登録
- メモリキャッシュ: プラットフォームのメモリ量の 25% を上限とする LRU
- ディスクキャッシュ: <storage>/image_cache （任意、既定 100 MB）
- crossfade: 表示時にフェードインさせる

アプリ起動時に install_default_image_loader() でプロセス共通のローダーを登録し、
UI からは get_default_image_loader() で取り出す。
"""

from __future__ import annotations

import hashlib
import io
import logging
import threading
import xml.etree.ElementTree as ET
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError
from .platform import PlatformCapabilities

logger = logging.getLogger(__name__)

MEMORY_CACHE_PERCENT = 0.25
DISK_CACHE_MAX_BYTES = 100 * 1024 * 1024


@dataclass(frozen=True)
class DecodedImage:
    """
    デコード済み画像。

    data はそのまま表示に使えるバイト列（SVG は XML テキスト、ラスタは元ファイル）。
    """

    data: bytes
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


# ----------------------------------------------------------------------
#  デコーダ
# ----------------------------------------------------------------------
class Decoder:
    """デコーダの基底クラス。handles() が True のものが先頭から使われる。"""

    def handles(self, name: str, data: bytes) -> bool:
        raise NotImplementedError

    def decode(self, data: bytes) -> DecodedImage:
        raise NotImplementedError


class SvgDecoder(Decoder):
    """SVG を解析し、width / height（無ければ viewBox）を取り出す。"""

    def handles(self, name: str, data: bytes) -> bool:
        if name.lower().endswith(".svg"):
            return True
        head = data[:256].lstrip().lower()
        return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in data[:1024].lower())

    def decode(self, data: bytes) -> DecodedImage:
        try:
            root = ET.fromstring(data)
        except ET.ParseError as e:
            raise ImageDecodeError(f"SVG を解析できません: {e}") from e

        if not root.tag.endswith("svg"):
            raise ImageDecodeError("ルート要素が <svg> ではありません。")

        width = _svg_length(root.get("width"))
        height = _svg_length(root.get("height"))
        if width is None or height is None:
            view_box = (root.get("viewBox") or "").replace(",", " ").split()
            if len(view_box) == 4:
                width = width if width is not None else _svg_length(view_box[2])
                height = height if height is not None else _svg_length(view_box[3])

        return DecodedImage(data=data, mime_type="image/svg+xml", width=width, height=height)


class RasterDecoder(Decoder):
    """PNG / JPEG などを Pillow で検証してサイズを取る。"""

    def handles(self, name: str, data: bytes) -> bool:
        return True

    def decode(self, data: bytes) -> DecodedImage:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
            # verify() 後は再オープンが必要
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                fmt = (img.format or "PNG").lower()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ImageDecodeError(f"画像をデコードできません: {e}") from e

        mime = Image.MIME.get(fmt.upper(), f"image/{fmt}")
        return DecodedImage(data=data, mime_type=mime, width=width, height=height)


def _svg_length(value: Optional[str]) -> Optional[int]:
    """SVG の長さ指定（120 / 120px / 12.5）を整数にする。% や em は None。"""
    if not value:
        return None
    value = value.strip()
    if value.endswith("px"):
        value = value[:-2]
    try:
        return int(round(float(value)))
    except ValueError:
        return None


# ----------------------------------------------------------------------
#  メモリキャッシュ
# ----------------------------------------------------------------------
class MemoryCache:
    """
    バイト数で上限を決める LRU キャッシュ。

    上限を超えたら古いものから捨てる。1 件で上限を超える画像はキャッシュしない。
    """

    def __init__(self, max_size_bytes: int):
        if max_size_bytes < 0:
            raise ValueError("max_size_bytes must be >= 0")
        self.max_size_bytes = int(max_size_bytes)
        self._items: "OrderedDict[str, DecodedImage]" = OrderedDict()
        self._size = 0
        self._lock = threading.Lock()

    @classmethod
    def with_max_size_percent(cls, capabilities: PlatformCapabilities, percent: float) -> "MemoryCache":
        if not 0.0 <= percent <= 1.0:
            raise ValueError("percent must be between 0.0 and 1.0")
        return cls(int(capabilities.memory_budget_bytes * percent))

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def get(self, key: str) -> Optional[DecodedImage]:
        with self._lock:
            item = self._items.get(key)
            if item is not None:
                self._items.move_to_end(key)
            return item

    def put(self, key: str, image: DecodedImage) -> None:
        with self._lock:
            if key in self._items:
                self._size -= self._items.pop(key).size_bytes
            if image.size_bytes > self.max_size_bytes:
                return
            self._items[key] = image
            self._size += image.size_bytes
            while self._size > self.max_size_bytes and self._items:
                _, evicted = self._items.popitem(last=False)
                self._size -= evicted.size_bytes

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._size = 0


# ----------------------------------------------------------------------
#  ディスクキャッシュ
# ----------------------------------------------------------------------
class DiskCache:
    """読み込んだ元データを directory 以下に保存する。上限超過時は古い順に削除。"""

    def __init__(self, directory: Path, max_size_bytes: int = DISK_CACHE_MAX_BYTES):
        self.directory = Path(directory)
        self.max_size_bytes = int(max_size_bytes)

    def _path(self, key: str) -> Path:
        return self.directory / hashlib.sha256(key.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_bytes(data)
        self.trim()

    def trim(self) -> None:
        files = [p for p in self.directory.iterdir() if p.is_file()]
        total = sum(p.stat().st_size for p in files)
        if total <= self.max_size_bytes:
            return
        for p in sorted(files, key=lambda f: f.stat().st_mtime):
            if total <= self.max_size_bytes:
                break
            total -= p.stat().st_size
            p.unlink(missing_ok=True)


# ----------------------------------------------------------------------
#  ImageLoader
# ----------------------------------------------------------------------
class ImageLoader:
    """
    画像ローダー。

    load(path) の流れ:
    メモリキャッシュ → ディスクキャッシュ → ファイル読み込み → デコーダ
    """

    def __init__(
        self,
        decoders: Sequence[Decoder],
        memory_cache: MemoryCache,
        disk_cache: Optional[DiskCache] = None,
        crossfade: bool = False,
    ):
        self.decoders: List[Decoder] = list(decoders)
        self.memory_cache = memory_cache
        self.disk_cache = disk_cache
        self.crossfade = crossfade

    @staticmethod
    def cache_key(path: Path) -> str:
        """ファイルが更新されたら別キーになるよう mtime とサイズを含める。"""
        st = path.stat()
        return f"{path.resolve()}:{st.st_mtime_ns}:{st.st_size}"

    def load(self, path: Path) -> DecodedImage:
        path = Path(path)
        key = self.cache_key(path)

        cached = self.memory_cache.get(key)
        if cached is not None:
            return cached

        data = self.disk_cache.get(key) if self.disk_cache else None
        if data is None:
            data = path.read_bytes()
            if self.disk_cache:
                self.disk_cache.put(key, data)

        image = self.decode(path.name, data)
        self.memory_cache.put(key, image)
        return image

    def decode(self, name: str, data: bytes) -> DecodedImage:
        for decoder in self.decoders:
            if decoder.handles(name, data):
                return decoder.decode(data)
        raise ImageDecodeError(f"対応するデコーダがありません: {name}")


def generate_image_loader(
    capabilities: PlatformCapabilities,
    disk_cache_dir: Optional[Path] = None,
    disk_cache_max_bytes: int = DISK_CACHE_MAX_BYTES,
) -> ImageLoader:
    """SVG 対応・メモリ 25% 上限・crossfade 有効の ImageLoader を作る。"""
    loader = ImageLoader(
        decoders=[SvgDecoder(), RasterDecoder()],
        memory_cache=MemoryCache.with_max_size_percent(capabilities, MEMORY_CACHE_PERCENT),
        disk_cache=DiskCache(disk_cache_dir, disk_cache_max_bytes) if disk_cache_dir else None,
        crossfade=True,
    )
    logger.info(
        "image loader created (memory cache %d bytes)", loader.memory_cache.max_size_bytes,
        extra={"platform": capabilities.platform.value},
    )
    return loader


# ----------------------------------------------------------------------
#  プロセス共通のローダー
# ----------------------------------------------------------------------
_default_loader: Optional[ImageLoader] = None
_default_lock = threading.Lock()


def install_default_image_loader(loader: ImageLoader) -> ImageLoader:
    """起動時に 1 回呼ぶ。2 回目以降は最初に登録したローダーを返す。"""
    global _default_loader
    with _default_lock:
        if _default_loader is None:
            _default_loader = loader
        return _default_loader


def get_default_image_loader() -> Optional[ImageLoader]:
    return _default_loader


def reset_default_image_loader() -> None:
    """テスト用。"""
    global _default_loader
    with _default_lock:
        _default_loader = None
