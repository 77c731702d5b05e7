"""Unit tests for image payload helpers."""

import base64
import io

import pytest
from PIL import Image

from huiben.core.config import Config
from huiben.core.images import (
    UPLOAD_MAX_BYTES,
    UPLOAD_MAX_SIDE,
    compress_for_upload,
    decode_image_payload,
    extension_for_mime,
    image_url,
    infer_mime,
    is_embedded_data,
    parse_data_url,
    to_data_url,
)
from huiben.utils.exceptions import ImageProcessingError, ValidationError


@pytest.mark.unit
class TestMime:
    def test_infer_mime_from_magic_bytes(self, png_bytes):
        assert infer_mime(png_bytes) == "image/png"
        assert infer_mime(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
        assert infer_mime(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
        assert infer_mime(b"GIF89a...") == "image/gif"
        assert infer_mime(b"unknown") == "image/png"

    def test_extension_for_mime(self):
        assert extension_for_mime("image/jpeg") == "jpeg"
        assert extension_for_mime("image/svg+xml") == "svg"
        assert extension_for_mime("garbage") == "png"


@pytest.mark.unit
class TestDataUrls:
    def test_parse_data_url(self, png_bytes):
        data, mime = parse_data_url(to_data_url(png_bytes))
        assert data == png_bytes
        assert mime == "image/png"

    def test_parse_data_url_without_base64_marker(self):
        with pytest.raises(ValidationError):
            parse_data_url("data:image/png,abcd")

    def test_parse_data_url_bad_payload(self):
        with pytest.raises(ValidationError):
            parse_data_url("data:image/png;base64,@@@")

    def test_decode_bare_base64(self, png_bytes):
        data, mime = decode_image_payload(base64.b64encode(png_bytes).decode("ascii"))
        assert data == png_bytes
        assert mime == "image/png"

    def test_is_embedded_data(self):
        assert is_embedded_data(b"\x89PNG")
        assert is_embedded_data("  data:image/png;base64,AAAA")
        assert not is_embedded_data("/tmp/a.png")
        assert not is_embedded_data("https://cdn.example/a.png")


@pytest.mark.unit
class TestCompressForUpload:
    def test_small_images_untouched(self, png_bytes):
        assert compress_for_upload(png_bytes) == (png_bytes, "image/png")

    def test_oversized_image_is_downscaled_to_jpeg(self):
        image = Image.new("RGB", (1100, 1100), (10, 20, 30))
        buf = io.BytesIO()
        image.save(buf, format="PNG", compress_level=0)
        data = buf.getvalue()
        assert len(data) > UPLOAD_MAX_BYTES

        compressed, mime = compress_for_upload(data, "big.png")
        assert mime == "image/jpeg"
        assert max(Image.open(io.BytesIO(compressed)).size) <= UPLOAD_MAX_SIDE

    def test_undecodable_oversized_payload(self):
        with pytest.raises(ImageProcessingError) as exc_info:
            compress_for_upload(b"x" * (UPLOAD_MAX_BYTES + 1), "junk.png")
        assert exc_info.value.image_path == "junk.png"


@pytest.mark.unit
class TestImageUrl:
    def test_remote_and_data_urls_pass_through(self):
        config = Config()
        assert image_url("https://a/b.png", embedded=True, config=config) == "https://a/b.png"
        assert image_url("data:image/png;base64,AA", embedded=False, config=config).startswith(
            "data:"
        )

    def test_local_path_served_by_active_side(self):
        config = Config(
            server_url="http://server:3000/", local_service_url="http://127.0.0.1:3001"
        )
        assert (
            image_url("file:///imgs/a b.png", embedded=True, config=config)
            == "http://127.0.0.1:3001/api/image?path=%2Fimgs%2Fa%20b.png"
        )
        assert (
            image_url("/imgs/a.png", embedded=False, config=config)
            == "http://server:3000/api/image?path=%2Fimgs%2Fa.png"
        )
