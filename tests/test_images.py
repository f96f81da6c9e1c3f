"""Tests for the image loader, decoders and caches."""

import io

import pytest
from PIL import Image

from medical_quiz.errors import ImageDecodeError
from medical_quiz.images import (
    DecodedImage,
    DiskCache,
    ImageLoader,
    MemoryCache,
    RasterDecoder,
    SvgDecoder,
    generate_image_loader,
    get_default_image_loader,
    install_default_image_loader,
)
from medical_quiz.platform import PlatformCapabilities

SVG = b'<svg xmlns="http://www.w3.org/2000/svg" width="120px" height="80"><rect width="1" height="1"/></svg>'


def _png_bytes(size=(3, 2)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (255, 0, 0)).save(buf, format="PNG")
    return buf.getvalue()


def test_memory_cache_is_quarter_of_budget():
    caps = PlatformCapabilities(memory_budget_bytes=1_000_000)
    loader = generate_image_loader(caps)
    assert loader.memory_cache.max_size_bytes == 250_000


def test_loader_configuration():
    loader = generate_image_loader(PlatformCapabilities())
    assert isinstance(loader.decoders[0], SvgDecoder)
    assert isinstance(loader.decoders[-1], RasterDecoder)
    assert loader.crossfade is True
    assert loader.disk_cache is None


class TestSvgDecoder:
    def test_reads_dimensions(self):
        img = SvgDecoder().decode(SVG)
        assert img.mime_type == "image/svg+xml"
        assert (img.width, img.height) == (120, 80)

    def test_falls_back_to_viewbox(self):
        data = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 12"></svg>'
        img = SvgDecoder().decode(data)
        assert (img.width, img.height) == (24, 12)

    def test_detects_by_content(self):
        assert SvgDecoder().handles("image.bin", SVG)
        assert not SvgDecoder().handles("image.png", _png_bytes())

    def test_invalid_svg(self):
        with pytest.raises(ImageDecodeError):
            SvgDecoder().decode(b"<svg><unclosed></svg>")


def test_raster_decoder():
    img = RasterDecoder().decode(_png_bytes((5, 4)))
    assert img.mime_type == "image/png"
    assert (img.width, img.height) == (5, 4)

    with pytest.raises(ImageDecodeError):
        RasterDecoder().decode(b"not an image")


class TestMemoryCache:
    def test_lru_eviction_by_size(self):
        cache = MemoryCache(10)
        cache.put("a", DecodedImage(b"xxxx", "image/png"))
        cache.put("b", DecodedImage(b"xxxx", "image/png"))
        cache.get("a")  # a becomes most recently used
        cache.put("c", DecodedImage(b"xxxx", "image/png"))

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert cache.size == 8

    def test_oversized_item_is_not_cached(self):
        cache = MemoryCache(3)
        cache.put("big", DecodedImage(b"xxxx", "image/png"))
        assert len(cache) == 0

    def test_percent_must_be_fraction(self):
        with pytest.raises(ValueError):
            MemoryCache.with_max_size_percent(PlatformCapabilities(), 1.5)


def test_loader_uses_memory_cache(tmp_path):
    path = tmp_path / "heart.svg"
    path.write_bytes(SVG)
    loader = generate_image_loader(PlatformCapabilities(memory_budget_bytes=1_000_000))

    first = loader.load(path)
    assert len(loader.memory_cache) == 1
    assert loader.load(path) is first


def test_loader_decodes_png_by_fallback(tmp_path):
    path = tmp_path / "ecg.png"
    path.write_bytes(_png_bytes())
    loader = generate_image_loader(PlatformCapabilities(memory_budget_bytes=1_000_000))
    assert loader.load(path).mime_type == "image/png"


def test_disk_cache_round_trip_and_trim(tmp_path):
    cache = DiskCache(tmp_path / "cache", max_size_bytes=10)
    cache.put("a", b"123456")
    assert cache.get("a") == b"123456"
    cache.put("b", b"123456")
    # only one entry fits
    assert len(list((tmp_path / "cache").iterdir())) == 1
    assert cache.get("missing") is None


def test_loader_with_disk_cache(tmp_path):
    path = tmp_path / "heart.svg"
    path.write_bytes(SVG)
    loader = generate_image_loader(PlatformCapabilities(), disk_cache_dir=tmp_path / "image_cache")

    loader.load(path)
    assert loader.disk_cache.get(ImageLoader.cache_key(path)) == SVG


def test_default_loader_is_installed_once():
    assert get_default_image_loader() is None
    first = generate_image_loader(PlatformCapabilities())
    second = generate_image_loader(PlatformCapabilities())

    assert install_default_image_loader(first) is first
    assert install_default_image_loader(second) is first
    assert get_default_image_loader() is first
