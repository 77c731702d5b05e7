"""Unit tests for exporting generated images."""

import re
from unittest.mock import MagicMock, patch

import pytest
import requests

from huiben.core.export import (
    ExportHandler,
    default_filename,
    directory_downloader,
    filename_from_url,
)
from huiben.core.images import to_data_url
from huiben.core.transport import Dispatcher, create_dispatcher
from huiben.utils.exceptions import NetworkError, ValidationError


def _http_dispatcher() -> Dispatcher:
    return Dispatcher(MagicMock())


@pytest.mark.unit
class TestFilenames:
    def test_default_filename_pattern(self):
        assert re.fullmatch(r"generated_\d{8}_\d{6}_\d{3}\.jpeg", default_filename("jpeg"))

    def test_filename_from_url(self):
        assert filename_from_url("https://cdn.example/x/cat%20one.png?sig=1") == "cat one.png"
        assert filename_from_url("https://cdn.example/render") is None
        assert filename_from_url("https://cdn.example/.hidden") is None

    def test_encoded_separators_do_not_escape(self):
        assert filename_from_url("https://cdn.example/%2Ftmp%2Fescaped.png") == "escaped.png"
        assert filename_from_url("https://cdn.example/..%2F..%2Fx.png") == "x.png"
        assert filename_from_url("https://cdn.example/a%5C..%5Cx.png") is None
        assert filename_from_url("https://cdn.example/p%2F..") is None

    def test_downloader_rejects_names_outside_directory(self, png_bytes, tmp_path):
        download = directory_downloader(tmp_path / "out")
        with pytest.raises(ValidationError):
            download(png_bytes, "../escaped.png")
        assert not (tmp_path / "escaped.png").exists()


@pytest.mark.unit
class TestEmbeddedExport:
    def test_dialog_path_is_written_by_host(self, embedded_config, png_bytes, tmp_path):
        target = tmp_path / "books" / "page1.png"
        handler = ExportHandler(
            create_dispatcher(embedded_config), save_dialog=lambda _name: str(target)
        )
        saved = handler.save_generated_image(to_data_url(png_bytes))
        assert saved == str(target)
        assert target.read_bytes() == png_bytes

    def test_dialog_suggests_extension_of_source(self, embedded_config, png_bytes):
        seen = []
        handler = ExportHandler(
            create_dispatcher(embedded_config), save_dialog=lambda name: seen.append(name)
        )
        handler.save_generated_image("https://cdn.example/a/b.webp")
        assert seen[0].startswith("generated_") and seen[0].endswith(".webp")

    def test_cancel_returns_none(self, embedded_config, png_bytes):
        handler = ExportHandler(create_dispatcher(embedded_config), save_dialog=lambda _n: None)
        assert handler.save_generated_image(to_data_url(png_bytes)) is None

    def test_remote_url_fetched_by_host(self, embedded_config, png_bytes, tmp_path):
        target = tmp_path / "remote.png"
        handler = ExportHandler(
            create_dispatcher(embedded_config), save_dialog=lambda _name: str(target)
        )
        response = MagicMock(content=png_bytes)
        with patch("huiben.backend.host.requests.get", return_value=response):
            handler.save_generated_image("https://cdn.example/img.png")
        assert target.read_bytes() == png_bytes


@pytest.mark.unit
class TestHttpExport:
    def test_data_url_goes_to_downloader(self, png_bytes, tmp_path):
        handler = ExportHandler(_http_dispatcher(), downloader=directory_downloader(tmp_path))
        saved = handler.save_generated_image(to_data_url(png_bytes, "image/png"))
        assert saved.endswith(".png")
        assert (tmp_path / saved.rsplit("/", 1)[-1]).read_bytes() == png_bytes

    def test_remote_download_uses_url_filename(self, png_bytes, tmp_path):
        handler = ExportHandler(_http_dispatcher(), downloader=directory_downloader(tmp_path))
        response = MagicMock(content=png_bytes)
        with patch("huiben.core.export.requests.get", return_value=response) as mock_get:
            saved = handler.save_generated_image("https://cdn.example/pages/p1.png")
        assert saved == str(tmp_path / "p1.png")
        assert mock_get.call_args.kwargs["timeout"] == 30

    def test_failed_download_falls_back_to_opener(self):
        opener = MagicMock()
        handler = ExportHandler(_http_dispatcher(), opener=opener)
        with patch(
            "huiben.core.export.requests.get",
            side_effect=requests.exceptions.ConnectionError("blocked"),
        ):
            result = handler.save_generated_image("https://cdn.example/p1.png")
        assert result == "https://cdn.example/p1.png"
        opener.assert_called_once_with("https://cdn.example/p1.png", "p1.png")

    def test_failed_download_without_opener(self):
        handler = ExportHandler(_http_dispatcher())
        with patch(
            "huiben.core.export.requests.get",
            side_effect=requests.exceptions.ConnectionError("blocked"),
        ):
            with pytest.raises(NetworkError):
                handler.save_generated_image("https://cdn.example/p1.png")

    def test_encoded_absolute_path_stays_in_download_directory(self, png_bytes, tmp_path):
        handler = ExportHandler(_http_dispatcher(), downloader=directory_downloader(tmp_path))
        response = MagicMock(content=png_bytes)
        with patch("huiben.core.export.requests.get", return_value=response):
            saved = handler.save_generated_image(
                f"https://cdn.example/{str(tmp_path.parent).replace('/', '%2F')}%2Fescaped.png"
            )
        assert saved == str(tmp_path / "escaped.png")
        assert not (tmp_path.parent / "escaped.png").exists()
