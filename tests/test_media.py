"""Tests for media lookup, descriptions, config and logging setup."""

import io
import json
import logging

from medical_quiz.config import AppConfig
from medical_quiz.images import DecodedImage
from medical_quiz.logging_config import setup_logging
from medical_quiz.media import MediaLibrary, load_media_descriptions
from medical_quiz.models import Question
from medical_quiz.ui import image_html


def test_load_media_descriptions_skips_incomplete(tmp_path):
    path = tmp_path / "media_descriptions.json"
    path.write_text(json.dumps([
        {"image_name": "heart.svg", "title": "Heart", "description": "Four chambers"},
        {"image_name": "", "description": "nameless"},
        {"image_name": "lung.png", "description": ""},
        "garbage",
    ]), encoding="utf-8")

    entries = load_media_descriptions(path)
    assert list(entries) == ["heart.svg"]
    assert entries["heart.svg"].title == "Heart"


def test_load_media_descriptions_missing_or_broken(tmp_path):
    assert load_media_descriptions(tmp_path / "none.json") == {}
    broken = tmp_path / "broken.json"
    broken.write_text("[", encoding="utf-8")
    assert load_media_descriptions(broken) == {}

    undecodable = tmp_path / "undecodable.json"
    undecodable.write_bytes(b"[\xff]")
    assert load_media_descriptions(undecodable) == {}


def test_media_for_resolves_existing_images(tmp_path):
    media_dir = tmp_path / "media"
    media_dir.mkdir()
    (media_dir / "heart.svg").write_text("<svg/>", encoding="utf-8")
    (media_dir / "notes.txt").write_text("x", encoding="utf-8")

    library = MediaLibrary(media_dir)
    q = Question(id=1, question="", explanation="", corr_ans=1,
                 media_name="heart.svg", other_medias="missing.png,notes.txt,../heart.svg")

    assert library.media_for(q) == [media_dir / "heart.svg"]
    assert library.resolve("../../etc/passwd") is None
    assert library.describe("heart.svg") is None


def test_image_html_embeds_data_uri():
    out = image_html(DecodedImage(b"<svg/>", "image/svg+xml"), crossfade=True, alt="a'b")
    assert "data:image/svg+xml;base64,PHN2Zy8+" in out
    assert "mq-crossfade" in out
    assert "a&#x27;b" in out


def test_app_config_reads_env(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDICAL_QUIZ_DB", "other.db")
    monkeypatch.setenv("MEDICAL_QUIZ_LOG_LEVEL", "DEBUG")
    cfg = AppConfig()

    assert cfg.storage_dir == tmp_path / "home"
    assert cfg.database_path == tmp_path / "home" / "other.db"
    assert cfg.image_cache_dir == tmp_path / "home" / "image_cache"
    assert cfg.log_level == "DEBUG"


def test_setup_logging_emits_json_once():
    logging.getLogger("medical_quiz").handlers.clear()
    stream = io.StringIO()
    logger = setup_logging("INFO", stream=stream)
    setup_logging("INFO", stream=stream)

    logger.info("hello", extra={"qid": 5})
    lines = stream.getvalue().strip().splitlines()

    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["message"] == "hello"
    assert record["qid"] == 5
