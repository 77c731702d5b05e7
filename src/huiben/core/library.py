"""
Reference library queries.

Composes filtered queries over stored reference images and keeps the
library view and global tag vocabulary in the context fresh. Every mutation
is followed by a full refresh; tags are never patched locally.
"""

from collections.abc import Iterable
from typing import Any
from urllib.parse import urlencode

from huiben.core.context import AppContext
from huiben.core.models import CharacterBinding, canonical_image_type
from huiben.core.reconciler import BindingReconciler
from huiben.core.transport import Dispatcher
from huiben.logging_config import get_logger
from huiben.utils.exceptions import ValidationError

logger = get_logger(__name__)


def build_query(
    filter_type: str | None = None,
    search_text: str | None = None,
    tags: Iterable[str] | None = None,
) -> dict[str, Any]:
    """
    Build a reference image query, leaving out empty criteria.

    Returns:
        A dict with any of image_type, search and tags
    """
    query: dict[str, Any] = {}
    if filter_type and filter_type.strip():
        query["image_type"] = canonical_image_type(filter_type.strip())
    if search_text and search_text.strip():
        query["search"] = search_text.strip()
    selected = [t.strip() for t in tags or () if t and t.strip()]
    if selected:
        query["tags"] = selected
    return query


def query_string(query: dict[str, Any]) -> str:
    """Encode a query for GET /api/reference-images; tags are comma-joined."""
    params = {k: v for k, v in query.items() if k != "tags"}
    if query.get("tags"):
        params["tags"] = ",".join(query["tags"])
    return urlencode(params)


class ReferenceLibrary:
    """Browse, tag and delete stored reference images."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        context: AppContext,
        reconciler: BindingReconciler | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.context = context
        self.reconciler = reconciler

    def fetch(self, query: dict[str, Any] | None = None) -> list[CharacterBinding]:
        """Reference images matching query; an empty list when nothing matches."""
        query = query or {}
        qs = query_string(query)
        endpoint = "/api/reference-images" + (f"?{qs}" if qs else "")
        return self.dispatcher.dispatch_bindings(
            "get_reference_images", {"query": dict(query)}, endpoint
        )

    def search(self, keyword: str) -> list[CharacterBinding]:
        return self.dispatcher.dispatch_bindings(
            "search_reference_images",
            {"keyword": keyword},
            "/api/reference-images/search",
            {"keyword": keyword},
        )

    def by_type(self, image_type: str) -> list[CharacterBinding]:
        image_type = canonical_image_type(image_type)
        return self.dispatcher.dispatch_bindings(
            "get_references_by_type",
            {"image_type": image_type},
            "/api/reference-images/by-type",
            {"imageType": image_type},
        )

    def all_tags(self) -> list[str]:
        tags = self.dispatcher.dispatch("get_all_tags", {}, "/api/reference-images/tags")
        return [str(t) for t in tags or []]

    def apply(self, query: dict[str, Any]) -> list[CharacterBinding]:
        """Make query the active filter and refresh."""
        self.context.query = dict(query)
        return self.refresh()

    def refresh(self) -> list[CharacterBinding]:
        """Re-fetch the active filtered list and the global tag vocabulary."""
        self.context.library = self.fetch(self.context.query)
        self.context.tags = self.all_tags()
        logger.debug(
            "Library refreshed: %d images, %d tags",
            len(self.context.library),
            len(self.context.tags),
        )
        return self.context.library

    def add_tag(self, character_name: str, tag: str) -> list[CharacterBinding]:
        tag = self._check_tag(tag)
        self.dispatcher.dispatch(
            "add_tag_to_reference",
            {"character_name": character_name, "tag": tag},
            "/api/reference-images/add-tag",
            {"characterName": character_name, "tag": tag},
        )
        logger.info("Tagged %s with %r", character_name, tag)
        return self.refresh()

    def remove_tag(self, character_name: str, tag: str) -> list[CharacterBinding]:
        tag = self._check_tag(tag)
        self.dispatcher.dispatch(
            "remove_tag_from_reference",
            {"character_name": character_name, "tag": tag},
            "/api/reference-images/remove-tag",
            {"characterName": character_name, "tag": tag},
        )
        logger.info("Removed tag %r from %s", tag, character_name)
        return self.refresh()

    def delete(self, character_name: str) -> list[CharacterBinding]:
        """Delete a reference image and its binding record, then refresh."""
        self.dispatcher.dispatch(
            "delete_reference_image",
            {"character_name": character_name},
            "/api/reference-images/delete",
            {"characterName": character_name},
        )
        if self.reconciler is not None:
            self.reconciler.forget(character_name)
        logger.info("Deleted reference image for %s", character_name)
        return self.refresh()

    @staticmethod
    def _check_tag(tag: str) -> str:
        tag = tag.strip()
        if not tag:
            raise ValidationError("Tag cannot be empty", field="tag")
        return tag
