"""Tests for turning uploaded files into inline content blocks."""

import io
import base64

from PIL import Image

from config import settings
from assessment_pipeline.content_extraction import extract, strip_data_uri, uploaded_file_from_bytes
from assessment_pipeline.schemas import UploadedFile


def _png_bytes(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


def _decoded_size(block):
    with Image.open(io.BytesIO(base64.b64decode(block.data))) as img:
        return img.size


class TestStripDataUri:

    def test_strip_when_data_uri_then_payload_only(self):
        assert strip_data_uri("data:application/pdf;base64,JVBERi0xLjQ=") == "JVBERi0xLjQ="

    def test_strip_when_bare_payload_then_unchanged(self):
        assert strip_data_uri("JVBERi0xLjQ=") == "JVBERi0xLjQ="

    def test_strip_when_none_then_empty(self):
        assert strip_data_uri(None) == ""


class TestExtract:

    def test_extract_when_files_given_then_one_block_per_file_in_order(self, pdf_upload):
        png = uploaded_file_from_bytes("page1.png", "image/png", _png_bytes(10, 10))
        blocks = extract([pdf_upload, png])
        assert [b.mime_type for b in blocks] == ["application/pdf", "image/png"]
        assert blocks[0].data == "JVBERi0xLjQ="
        assert not blocks[1].data.startswith("data:")

    def test_extract_when_no_files_then_empty(self):
        assert extract([]) == []

    def test_extract_when_pdf_then_payload_untouched(self, pdf_upload):
        assert base64.b64decode(extract([pdf_upload])[0].data) == b"%PDF-1.4"

    def test_extract_when_wide_image_then_downscaled_to_max_width(self, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_MAX_WIDTH", 100)
        wide = uploaded_file_from_bytes("scan.png", "image/png", _png_bytes(400, 200))
        block = extract([wide])[0]
        assert block.mime_type == "image/png"
        assert _decoded_size(block) == (100, 50)

    def test_extract_when_narrow_image_then_left_as_is(self, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_MAX_WIDTH", 100)
        narrow = uploaded_file_from_bytes("scan.png", "image/png", _png_bytes(80, 200))
        block = extract([narrow])[0]
        assert block.data == strip_data_uri(narrow.raw_content)

    def test_extract_when_image_unreadable_then_left_as_is(self, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_MAX_WIDTH", 100)
        bogus = UploadedFile(name="x.jpg", mime_type="image/jpeg", raw_content="bm90IGFuIGltYWdl")
        block = extract([bogus])[0]
        assert block.mime_type == "image/jpeg"
        assert block.data == "bm90IGFuIGltYWdl"

    def test_extract_when_downscale_disabled_then_wide_image_kept(self, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_MAX_WIDTH", 0)
        wide = uploaded_file_from_bytes("scan.png", "image/png", _png_bytes(400, 200))
        assert _decoded_size(extract([wide])[0]) == (400, 200)
