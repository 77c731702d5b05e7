"""Unit tests for the field-naming adapter."""

import pytest

from huiben.core.models import (
    APIConfig,
    CharacterBinding,
    GenerationConfig,
    ImageGenerationParams,
    ProviderEndpoint,
)
from huiben.core.transport.adapter import (
    NAMING_CAMEL,
    api_config_to_record,
    binding_to_record,
    generation_config_to_record,
    generation_params_to_record,
    normalize_api_config,
    normalize_binding,
    normalize_bindings,
    normalize_generation_config,
    normalize_generation_params,
    normalize_parsed_prompt,
    normalize_result,
)
from huiben.utils.exceptions import TransportError


@pytest.mark.unit
class TestNormalizeBinding:
    def test_camel_case_record(self):
        b = normalize_binding(
            {
                "characterName": "Mia",
                "referenceImagePath": "/refs/mia.png",
                "imageType": "scene",
                "createdAt": 1700000000,
                "tags": ["forest", "forest", " "],
            }
        )
        assert b.character_name == "Mia"
        assert b.reference_image_path == "/refs/mia.png"
        assert b.image_type == "scene"
        assert b.created_at == 1700000000
        assert b.bound is True
        assert b.tags == ["forest"]

    def test_snake_case_record(self):
        b = normalize_binding(
            {"character_name": "Leo", "reference_image_path": "", "image_type": "person"}
        )
        assert b.character_name == "Leo"
        assert b.bound is False
        assert b.has_image is False
        assert b.tags == []

    def test_explicit_bound_wins(self):
        b = normalize_binding(
            {"character_name": "Leo", "reference_image_path": "/x", "bound": False}
        )
        assert b.bound is False

    def test_legacy_and_unknown_image_types(self):
        legacy = normalize_binding({"characterName": "A", "imageType": "场景"})
        unknown = normalize_binding({"characterName": "A", "imageType": "robot"})
        assert legacy.image_type == "scene"
        assert unknown.image_type == "person"

    def test_missing_name_rejected(self):
        with pytest.raises(TransportError):
            normalize_binding({"referenceImagePath": "/x"})

    def test_non_mapping_rejected(self):
        with pytest.raises(TransportError):
            normalize_binding(["Mia"])

    def test_list_helpers(self):
        assert normalize_bindings(None) == []
        with pytest.raises(TransportError):
            normalize_bindings({"characterName": "Mia"})

    def test_record_round_trip_both_namings(self):
        b = CharacterBinding("Mia", "/refs/mia.png", "scene", 5, True, ["a"])
        assert normalize_binding(binding_to_record(b)) == b
        camel = binding_to_record(b, NAMING_CAMEL)
        assert camel["characterName"] == "Mia"
        assert normalize_binding(camel) == b


@pytest.mark.unit
class TestNormalizeParsedPrompt:
    def test_segments_and_unique_characters(self):
        parsed = normalize_parsed_prompt(
            {
                "original": "@A runs. @A sleeps.",
                "segments": [
                    {"type": "action", "content": "runs", "startIndex": 0, "endIndex": 7},
                ],
                "characters": [{"name": "A"}, {"name": "A", "bound": True}, {"name": ""}],
            }
        )
        assert parsed.original == "@A runs. @A sleeps."
        assert parsed.segments[0].start_index == 0
        assert parsed.segments[0].end_index == 7
        assert parsed.character_names() == ["A"]


@pytest.mark.unit
class TestApiConfig:
    def test_accepts_camel_and_legacy_keys(self):
        cfg = normalize_api_config(
            {
                "jimeng": {"baseUrl": "https://s.example", "apiKey": "k1"},
                "bananaPro": {"baseUrl": "https://b.example", "apiKey": "k2"},
            }
        )
        assert cfg.seedream == ProviderEndpoint("https://s.example", "k1")
        assert cfg.banana_pro == ProviderEndpoint("https://b.example", "k2")

    def test_snake_round_trip(self):
        cfg = APIConfig(
            seedream=ProviderEndpoint("https://s.example", "k1"),
            banana_pro=ProviderEndpoint("https://b.example", "k2"),
        )
        assert normalize_api_config(api_config_to_record(cfg)) == cfg

    def test_camel_shape(self):
        record = api_config_to_record(
            APIConfig(banana_pro=ProviderEndpoint("https://b", "k")), NAMING_CAMEL
        )
        assert record["bananaPro"] == {"baseUrl": "https://b", "apiKey": "k"}
        assert "banana_pro" not in record

    def test_null_is_empty(self):
        assert normalize_api_config(None) == APIConfig()


@pytest.mark.unit
class TestGenerationRecords:
    def test_config_omits_unset_extras(self):
        record = generation_config_to_record(
            GenerationConfig(model="banana_pro", width=2048, height=1152)
        )
        assert "size" not in record
        assert "watermark" not in record

    def test_config_camel_extras(self):
        record = generation_config_to_record(
            GenerationConfig(sequential_image_generation="auto", watermark=False), NAMING_CAMEL
        )
        assert record["sequentialImageGeneration"] == "auto"
        assert record["watermark"] is False

    def test_config_from_camel(self):
        cfg = normalize_generation_config(
            {"model": "seedream", "width": "2048", "height": 2048, "responseFormat": "b64_json"}
        )
        assert cfg.width == 2048
        assert cfg.response_format == "b64_json"
        assert cfg.count == 1

    def test_params_round_trip(self):
        params = ImageGenerationParams(
            prompt="@A in the rain",
            model="seedream",
            width=1024,
            height=1024,
            count=1,
            quality="standard",
            character_bindings=[CharacterBinding("A", "/a.png", bound=True)],
            size="1024x1024",
        )
        record = generation_params_to_record(params)
        assert record["character_bindings"] == [
            {"character_name": "A", "reference_image_path": "/a.png", "image_type": "person"}
        ]
        back = normalize_generation_params(record)
        assert back.prompt == params.prompt
        assert back.character_bindings[0].character_name == "A"
        assert back.size == "1024x1024"

    def test_result_task_id_either_naming(self):
        r = normalize_result({"success": True, "images": ["http://x/1.png"], "taskId": "task_1"})
        assert r.success is True
        assert r.task_id == "task_1"
        assert r.partial is False
        failed = normalize_result({"success": False, "error": "quota"})
        assert failed.partial is True
        assert failed.error == "quota"
