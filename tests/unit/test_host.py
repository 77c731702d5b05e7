"""Unit tests for the in-process command host."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from huiben.backend.host import CommandHost, LocalBackend, create_local_host
from huiben.core.images import to_data_url
from huiben.utils.exceptions import CommandError, ImageProcessingError, NetworkError


@pytest.fixture
def backend(embedded_config):
    return LocalBackend(embedded_config)


@pytest.fixture
def image_file(tmp_path, png_bytes):
    path = tmp_path / "mia.png"
    path.write_bytes(png_bytes)
    return path


def _ok(body) -> MagicMock:
    response = MagicMock(status_code=200, ok=True, text="")
    response.json.return_value = body
    return response


@pytest.mark.unit
class TestCommandHost:
    def test_invoke_registered_command(self):
        host = CommandHost()
        host.register("echo", lambda text: text)
        assert host.invoke("echo", text="hi") == "hi"
        assert host.commands() == ["echo"]

    def test_unknown_command(self):
        with pytest.raises(CommandError) as exc_info:
            CommandHost().invoke("nope")
        assert exc_info.value.command == "nope"

    def test_arguments_must_fit(self):
        host = CommandHost()
        host.register("echo", lambda text: text)
        with pytest.raises(CommandError, match="Bad arguments"):
            host.invoke("echo", words="hi")

    def test_local_host_exposes_full_surface(self, embedded_config):
        commands = create_local_host(embedded_config).commands()
        for name in (
            "parse_prompt",
            "get_bindings_for_prompt",
            "bind_character_reference",
            "generate_image",
            "test_api_connection",
            "get_reference_images",
            "save_image_to_file",
        ):
            assert name in commands


@pytest.mark.unit
class TestLocalBackendBindings:
    def test_parse_prompt_record(self, backend):
        record = backend.parse_prompt("@Mia 在森林里")
        assert record["characters"] == [{"name": "Mia", "bound": False}]
        assert record["segments"][0]["type"] == "scene"

    def test_bindings_for_prompt_accepts_comma_string(self, backend, image_file):
        backend.bind_character_reference("Mia", str(image_file))
        backend.bind_character_reference("Leo", str(image_file))
        records = backend.get_bindings_for_prompt("Leo, Mia ,Ghost")
        assert [r["character_name"] for r in records] == ["Leo", "Mia"]

    def test_unbind_and_lookup(self, backend, image_file):
        backend.bind_character_reference("Mia", str(image_file))
        assert backend.unbind_character("Mia") is True
        assert backend.get_character_binding("Mia")["reference_image_path"] == ""
        assert backend.get_character_binding("Ghost") is None

    def test_reference_query_accepts_camel_type_and_string_tags(self, backend, image_file):
        backend.bind_character_reference("Mia", str(image_file))
        backend.bind_character_reference("Forest", str(image_file), "scene")
        backend.add_tag_to_reference("Forest", "green")
        records = backend.get_reference_images({"imageType": "scene", "tags": "green,"})
        assert [r["character_name"] for r in records] == ["Forest"]
        assert backend.get_all_tags() == ["green"]


@pytest.mark.unit
class TestLocalBackendGeneration:
    def test_missing_api_config_is_partial(self, backend):
        record = backend.generate_image({"prompt": "a cat", "model": "seedream"})
        assert record["success"] is False
        assert "API config" in record["error"]
        assert record["task_id"].startswith("task_")

    def test_unknown_model_is_partial(self, backend):
        record = backend.generate_image({"prompt": "a cat", "model": "dalle"})
        assert record["success"] is False
        assert "Unknown model" in record["error"]

    def test_references_attached_with_hints(self, backend, image_file):
        backend.save_api_config(
            {"seedream": {"base_url": "https://api.example", "api_key": "sk"}}
        )
        binding = backend.bind_character_reference("Mia", str(image_file))
        body = {"data": [{"url": "https://cdn/a.png"}]}
        with patch(
            "huiben.backend.providers.base.requests.post", return_value=_ok(body)
        ) as mock_post:
            record = backend.generate_image(
                {"prompt": "@Mia reads", "model": "jimeng", "character_bindings": [binding]}
            )

        assert record == {
            "success": True,
            "images": ["https://cdn/a.png"],
            "error": None,
            "task_id": record["task_id"],
        }
        payload = mock_post.call_args.kwargs["json"]
        assert payload["prompt"] == "@Mia reads\n[Mia: reference image 1]"
        assert payload["image"][0].startswith("data:image/png;base64,")

    def test_unreadable_reference_is_partial(self, backend, image_file):
        backend.save_api_config(
            {"seedream": {"base_url": "https://api.example", "api_key": "sk"}}
        )
        binding = backend.bind_character_reference("Mia", str(image_file))
        image_file.unlink()
        record = backend.generate_image(
            {"prompt": "@Mia", "model": "seedream", "character_bindings": [binding]}
        )
        assert record["success"] is False
        assert "Cannot read reference image" in record["error"]

    def test_malformed_provider_body_is_partial(self, backend):
        backend.save_api_config(
            {"banana_pro": {"base_url": "https://api.example", "api_key": "sk"}}
        )
        with patch(
            "huiben.backend.providers.base.requests.post",
            return_value=_ok({"candidates": ["oops"]}),
        ):
            record = backend.generate_image({"prompt": "a cat", "model": "banana_pro"})
        assert record["success"] is False
        assert "Unexpected API response shape" in record["error"]

    def test_load_reference_error(self, backend, tmp_path):
        with pytest.raises(ImageProcessingError):
            backend._load_reference(str(tmp_path / "missing.png"))


@pytest.mark.unit
class TestLocalBackendSettings:
    def test_settings_roundtrip(self, backend):
        assert backend.save_generation_config(
            {"model": "banana_pro", "width": 16, "height": 9, "count": 1, "quality": "high"}
        )
        assert backend.load_generation_config()["model"] == "banana_pro"
        assert backend.get_default_generation_config()["model"] == "seedream"
        assert backend.get_default_api_config()["seedream"]["api_key"] == ""

    def test_connection_test_uses_overrides(self, backend):
        response = MagicMock(status_code=200, ok=True)
        with patch(
            "huiben.backend.providers.base.requests.get", return_value=response
        ) as mock_get:
            assert backend.test_api_connection("banana_pro", api_key="sk-x") is True
        assert mock_get.call_args.args[0] == "https://api.zhongzhuan.chat/v1/models"
        assert mock_get.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-x"
        assert mock_get.call_args.kwargs["timeout"] == backend.config.connection_test_timeout


@pytest.mark.unit
class TestSaveImageToFile:
    def test_data_url(self, backend, png_bytes, tmp_path):
        target = tmp_path / "nested" / "out.png"
        assert backend.save_image_to_file(to_data_url(png_bytes), str(target)) == str(target)
        assert target.read_bytes() == png_bytes

    def test_local_file_url(self, backend, image_file, png_bytes, tmp_path):
        target = tmp_path / "copy.png"
        backend.save_image_to_file(f"file://{image_file}", str(target))
        assert target.read_bytes() == png_bytes

    def test_missing_local_file(self, backend, tmp_path):
        with pytest.raises(ImageProcessingError):
            backend.save_image_to_file(str(tmp_path / "nope.png"), str(tmp_path / "o.png"))

    def test_remote_download_failure(self, backend, tmp_path):
        with patch(
            "huiben.backend.host.requests.get",
            side_effect=requests.exceptions.ConnectionError("down"),
        ):
            with pytest.raises(NetworkError):
                backend.save_image_to_file("https://cdn/a.png", str(tmp_path / "o.png"))
