"""Unit tests for reference library queries."""

from unittest.mock import MagicMock

import pytest

from huiben.core.context import AppContext
from huiben.core.library import ReferenceLibrary, build_query, query_string
from huiben.core.reconciler import BindingReconciler
from huiben.core.transport import Dispatcher, create_dispatcher
from huiben.utils.exceptions import CommandError, ValidationError


@pytest.fixture
def library(embedded_config, tmp_path, png_bytes) -> ReferenceLibrary:
    context = AppContext()
    dispatcher = create_dispatcher(embedded_config)
    reconciler = BindingReconciler(dispatcher, context)
    for name, image_type in (("Mia", "person"), ("Forest", "scene"), ("Leo", "person")):
        path = tmp_path / f"{name}.png"
        path.write_bytes(png_bytes)
        reconciler.bind(name, path, image_type)
    return ReferenceLibrary(dispatcher, context, reconciler)


@pytest.mark.unit
class TestBuildQuery:
    def test_empty_criteria_omitted(self):
        assert build_query(None, "  ", ["", " "]) == {}

    def test_all_criteria(self):
        query = build_query("人物", " mia ", ["hero", " kid "])
        assert query == {"image_type": "person", "search": "mia", "tags": ["hero", "kid"]}

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            build_query("vehicle")

    def test_query_string_joins_tags(self):
        qs = query_string({"image_type": "scene", "tags": ["a", "b"]})
        assert qs == "image_type=scene&tags=a%2Cb"


@pytest.mark.unit
class TestReferenceLibrary:
    def test_apply_filters_by_type(self, library):
        images = library.apply(build_query("scene"))
        assert [b.character_name for b in images] == ["Forest"]
        assert library.context.query == {"image_type": "scene"}

    def test_tag_added_twice_appears_once(self, library):
        library.add_tag("Mia", "x")
        library.add_tag("Mia", "x")
        assert library.all_tags() == ["x"]
        assert library.context.tags == ["x"]

    def test_tags_filter_and_search(self, library):
        library.add_tag("Mia", "hero")
        library.add_tag("Leo", "hero")
        library.add_tag("Leo", "kid")
        found = library.apply(build_query(tags=["hero", "kid"]))
        assert [b.character_name for b in found] == ["Leo"]
        assert {b.character_name for b in library.search("HERO")} == {"Mia", "Leo"}

    def test_remove_tag_refreshes_vocabulary(self, library):
        library.add_tag("Mia", "x")
        library.remove_tag("Mia", "x")
        assert library.context.tags == []

    def test_by_type(self, library):
        assert {b.character_name for b in library.by_type("person")} == {"Mia", "Leo"}

    def test_empty_tag_rejected(self, library):
        with pytest.raises(ValidationError):
            library.add_tag("Mia", "  ")

    def test_tag_unknown_character(self, library):
        with pytest.raises(CommandError):
            library.add_tag("Nobody", "x")

    def test_delete_forgets_binding(self, library):
        library.reconciler.parse("@Mia runs")
        assert library.context.parsed_prompt.is_bound("Mia")
        remaining = library.delete("Mia")
        assert "Mia" not in {b.character_name for b in remaining}
        assert library.context.parsed_prompt.is_bound("Mia") is False
        assert library.reconciler.all_bindings() and all(
            b.character_name != "Mia" for b in library.reconciler.all_bindings()
        )

    def test_http_fetch_builds_query_endpoint(self):
        http = MagicMock()
        http.call.return_value = []
        library = ReferenceLibrary(Dispatcher(http), AppContext())
        library.fetch({"search": "mia", "tags": ["a", "b"]})
        operation, native, endpoint, body, _ = http.call.call_args.args
        assert operation == "get_reference_images"
        assert native == {"query": {"search": "mia", "tags": ["a", "b"]}}
        assert endpoint == "/api/reference-images?search=mia&tags=a%2Cb"
        assert body is None
