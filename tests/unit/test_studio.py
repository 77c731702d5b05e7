"""Unit tests for the Studio orchestrator."""

from unittest.mock import MagicMock, patch

import pytest

from huiben.core.models import ProviderEndpoint
from huiben.core.studio import NOTICE_ERROR, NOTICE_SUCCESS, Studio
from huiben.core.transport import Dispatcher
from huiben.utils.exceptions import NetworkError, TransportError

PARSED = {
    "original": "@Mia reads",
    "segments": [{"type": "action", "content": "reads", "start_index": 5, "end_index": 10}],
    "characters": [{"name": "Mia", "bound": False}],
}


def _fake_http(generate):
    """HTTP transport double answering by operation name."""

    def call(operation, native_args, http_endpoint, http_body, timeout):
        if operation == "parse_prompt":
            return PARSED
        if operation == "get_bindings_for_prompt":
            return []
        if operation == "generate_image":
            return generate()
        raise AssertionError(f"unexpected operation {operation}")

    http = MagicMock()
    http.call.side_effect = call
    return http


def _studio(http, embedded_config, notices):
    return Studio(
        Dispatcher(http),
        config=embedded_config,
        notify=lambda level, message: notices.append((level, message)),
    )


@pytest.mark.unit
class TestStudioGenerate:
    def test_network_failure_gives_one_notice(self, embedded_config):
        notices = []

        def fail():
            raise NetworkError("API error: Network error - refused")

        studio = _studio(_fake_http(fail), embedded_config, notices)
        assert studio.generate("@Mia reads") is None

        assert len(notices) == 1
        assert notices[0][0] == NOTICE_ERROR
        assert "refused" in notices[0][1]
        assert isinstance(studio.last_error, NetworkError)
        assert studio.context.generating is False

    def test_partial_result_is_reported_not_raised(self, embedded_config):
        notices = []
        studio = _studio(
            _fake_http(lambda: {"success": False, "error": "quota", "task_id": "t1"}),
            embedded_config,
            notices,
        )
        result = studio.generate("@Mia reads")

        assert result.partial
        assert notices == [(NOTICE_ERROR, "Generation failed: quota")]
        assert studio.last_error is None
        assert studio.context.last_result is result

    def test_success_reaches_done(self, embedded_config):
        notices = []
        progress = []
        studio = _studio(
            _fake_http(lambda: {"success": True, "images": ["https://cdn/a.png"]}),
            embedded_config,
            notices,
        )
        studio.progress_listener = progress.append
        result = studio.generate("@Mia reads")

        assert result.images == ["https://cdn/a.png"]
        assert notices == [(NOTICE_SUCCESS, "Generated 1 image(s)")]
        assert progress[-1] == 100
        assert studio.context.progress == 100

    def test_empty_prompt(self, embedded_config):
        notices = []
        studio = _studio(_fake_http(lambda: {}), embedded_config, notices)
        assert studio.generate("   ") is None
        assert len(notices) == 1
        assert studio.last_error.field == "prompt"

    def test_embedded_generation_end_to_end(self, embedded_config, png_bytes, tmp_path):
        studio = Studio.from_config(embedded_config, notify=lambda *_: None)
        assert studio.startup()
        image = tmp_path / "mia.png"
        image.write_bytes(png_bytes)
        assert studio.bind("Mia", str(image)) is not None
        studio.gateway.save_api_config(
            studio.context.api_config.with_endpoint(
                "seedream", ProviderEndpoint("https://api.example", "sk")
            )
        )

        response = MagicMock(status_code=200, ok=True)
        response.json.return_value = {"data": [{"url": "https://cdn/a.png"}]}
        with patch(
            "huiben.backend.providers.base.requests.post", return_value=response
        ) as mock_post:
            result = studio.generate("@Mia reads")

        assert result.success
        assert "[Mia: reference image 1]" in mock_post.call_args.kwargs["json"]["prompt"]


@pytest.mark.unit
class TestStudioStartup:
    def test_falls_back_to_defaults(self, embedded_config):
        studio = Studio.from_config(embedded_config, notify=lambda *_: None)
        assert studio.startup() is True
        assert studio.context.api_config.seedream.base_url
        assert studio.context.generation_config.model == "seedream"

    def test_unreachable_server(self, embedded_config):
        notices = []
        http = MagicMock()
        http.call.side_effect = TransportError("API error: 502 - bad gateway", status_code=502)
        studio = _studio(http, embedded_config, notices)

        assert studio.startup() is False
        assert len(notices) == 1
        assert studio.last_error.status_code == 502


@pytest.mark.unit
class TestStudioGuard:
    def test_library_failure_returns_fallback(self, embedded_config):
        notices = []
        http = MagicMock()
        http.call.side_effect = NetworkError("down")
        studio = _studio(http, embedded_config, notices)

        assert studio.browse_library(search_text="mia") == []
        assert studio.all_tags() == []
        assert len(notices) == 2

    def test_programming_errors_propagate(self, embedded_config):
        http = MagicMock()
        http.call.side_effect = KeyError("bug")
        studio = _studio(http, embedded_config, [])
        with pytest.raises(KeyError):
            studio.search_library("mia")
