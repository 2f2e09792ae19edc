"""Tests for submission filtering."""

from __future__ import annotations

import pytest

from conftest import make_image_bytes
from imgrelay.errors import SubmissionError
from imgrelay.pipeline.submission import (
    guess_media_type,
    is_image_media_type,
    sniff_media_type,
    source_from_bytes,
    source_from_path,
    sources_from_paths,
)


class TestSniffMediaType:
    def test_png(self):
        assert sniff_media_type(make_image_bytes(2, 2, "PNG")) == "image/png"

    def test_jpeg(self):
        assert sniff_media_type(make_image_bytes(2, 2, "JPEG")) == "image/jpeg"

    def test_gif(self):
        assert sniff_media_type(b"GIF89a....") == "image/gif"

    def test_webp_requires_webp_fourcc(self):
        assert sniff_media_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert sniff_media_type(b"RIFF\x00\x00\x00\x00WAVEfmt ") is None

    def test_unknown(self):
        assert sniff_media_type(b"%PDF-1.7") is None


class TestMediaTypeHelpers:
    def test_guess_falls_back_to_extension(self):
        assert guess_media_type("notes.txt", b"hello") == "text/plain"

    def test_guess_prefers_magic_bytes(self):
        assert guess_media_type("mislabelled.txt", make_image_bytes(2, 2)) == "image/png"

    def test_guess_unknown(self):
        assert guess_media_type("blob", b"\x00\x01") == "application/octet-stream"

    @pytest.mark.parametrize("mime,expected", [
        ("image/png", True),
        ("IMAGE/JPEG", True),
        ("image/svg+xml", True),
        ("application/pdf", False),
        ("", False),
        (None, False),
    ])
    def test_is_image_media_type(self, mime, expected):
        assert is_image_media_type(mime) is expected


class TestSourceFromBytes:
    def test_detects_type(self):
        data = make_image_bytes(3, 3)
        source = source_from_bytes("a.png", data)
        assert source.media_type == "image/png"
        assert source.size == len(data)
        assert source.read_bytes() == data

    def test_explicit_type_wins(self):
        source = source_from_bytes("a.bin", b"whatever", media_type="image/x-custom")
        assert source.media_type == "image/x-custom"

    def test_rejects_non_image(self):
        with pytest.raises(SubmissionError) as exc_info:
            source_from_bytes("doc.pdf", b"%PDF-1.7")
        assert exc_info.value.context["media_type"] == "application/pdf"


class TestSourceFromPath:
    def test_reads_lazily_and_repeatably(self, tmp_path):
        data = make_image_bytes(5, 5)
        path = tmp_path / "pic.png"
        path.write_bytes(data)

        source = source_from_path(path)

        assert source.name == "pic.png"
        assert source.size == len(data)
        assert source.media_type == "image/png"
        assert source.read_bytes() == data
        assert source.read_bytes() == data

    def test_missing_file(self, tmp_path):
        with pytest.raises(SubmissionError, match="not found"):
            source_from_path(tmp_path / "nope.png")

    def test_batch_keeps_order_and_splits_rejections(self, tmp_path):
        names = ["b.png", "notes.txt", "a.jpg"]
        (tmp_path / "b.png").write_bytes(make_image_bytes(2, 2, "PNG"))
        (tmp_path / "notes.txt").write_text("hello")
        (tmp_path / "a.jpg").write_bytes(make_image_bytes(2, 2, "JPEG"))

        accepted, rejected = sources_from_paths(tmp_path / n for n in names)

        assert [s.name for s in accepted] == ["b.png", "a.jpg"]
        assert [e.context["name"] for e in rejected] == ["notes.txt"]
