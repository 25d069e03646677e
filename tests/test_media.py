"""Image and document attachments."""

from __future__ import annotations

import base64

import pytest

from castor.errors import ConfigurationError
from castor.media import Document, Image

pytestmark = pytest.mark.unit


def test_inline_data_renders_as_data_url():
    image = Image.from_base64("aGVsbG8=", "image/jpeg")
    assert image.data_url() == "data:image/jpeg;base64,aGVsbG8="


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"url": "https://example.com/a.png", "file_id": "file_1"},
        {"data": "aGVsbG8="},
    ],
)
def test_media_needs_exactly_one_located_source(kwargs):
    with pytest.raises(ConfigurationError):
        Image(**kwargs)


def test_image_from_path_reads_and_guesses_mime_type(tmp_path):
    path = tmp_path / "pixel.png"
    path.write_bytes(b"\x89PNG")

    image = Image.from_path(path, detail="high")

    assert image.mime_type == "image/png"
    assert base64.b64decode(image.data) == b"\x89PNG"
    assert image.detail == "high"


def test_document_from_path_keeps_the_file_name(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello")

    document = Document.from_path(path)

    assert document.filename == "notes.txt"
    assert document.mime_type == "text/plain"
    assert base64.b64decode(document.data) == b"hello"


def test_unknown_extensions_fall_back_to_octet_stream(tmp_path):
    path = tmp_path / "blob.castorbin"
    path.write_bytes(b"\x00")

    assert Document.from_path(path).mime_type == "application/octet-stream"


def test_missing_file_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="File not found"):
        Document.from_path(tmp_path / "absent.pdf")
