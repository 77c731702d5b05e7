"""
Character binding store for the embedded host.

Bindings live in <data_dir>/config/character_bindings.json as snake_case
records keyed by character name; uploaded reference images are written to
<data_dir>/reference_images. Unbinding keeps a record (and its tags) with an
empty path; deleting removes it.
"""

import json
import re
import time
from collections.abc import Iterable
from pathlib import Path

from huiben.core.images import decode_image_payload, extension_for_mime
from huiben.core.models import (
    IMAGE_TYPE_PERSON,
    CharacterBinding,
    canonical_image_type,
    unique_tags,
)
from huiben.core.transport.adapter import binding_to_record, normalize_binding
from huiben.logging_config import get_logger
from huiben.utils.exceptions import StoreError, TransportError

logger = get_logger(__name__)

BINDINGS_FILE = "character_bindings.json"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w-]")


class BindingStore:
    """JSON-file backed store of character bindings and their tags."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.bindings_path = self.data_dir / "config" / BINDINGS_FILE
        self.images_dir = self.data_dir / "reference_images"

    # --- persistence ---

    def _load(self) -> dict[str, CharacterBinding]:
        if not self.bindings_path.exists():
            return {}
        try:
            raw = json.loads(self.bindings_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"Failed to read {self.bindings_path}: {e}") from e
        if not isinstance(raw, dict):
            raise StoreError(f"{self.bindings_path} does not hold a JSON object")
        try:
            return {name: normalize_binding(record) for name, record in raw.items()}
        except TransportError as e:
            raise StoreError(f"Corrupt binding record in {self.bindings_path}: {e}") from e

    def _save(self, bindings: dict[str, CharacterBinding]) -> None:
        self.bindings_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {name: binding_to_record(b) for name, b in bindings.items()}
        tmp = self.bindings_path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.bindings_path)

    def _require(self, bindings: dict[str, CharacterBinding], name: str) -> CharacterBinding:
        binding = bindings.get(name)
        if binding is None:
            raise StoreError(f"No binding for character {name!r}")
        return binding

    # --- lookups ---

    def get(self, name: str) -> CharacterBinding | None:
        return self._load().get(name)

    def get_all(self) -> list[CharacterBinding]:
        return list(self._load().values())

    def get_for_names(self, names: Iterable[str]) -> list[CharacterBinding]:
        """Stored bindings for names, in the order given; unknown names are skipped."""
        bindings = self._load()
        return [bindings[n] for n in dict.fromkeys(names) if n in bindings]

    def query(
        self,
        image_type: str | None = None,
        search: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[CharacterBinding]:
        """
        Bindings that have an image and match every given criterion, newest first.

        search matches the name or any tag case-insensitively; every one of
        tags must be present on the binding.
        """
        wanted_type = canonical_image_type(image_type) if image_type else None
        needle = (search or "").strip().lower()
        required = unique_tags(tags or ())
        matches = []
        for binding in self._load().values():
            if not binding.has_image:
                continue
            if wanted_type and binding.image_type != wanted_type:
                continue
            if needle and needle not in binding.character_name.lower() and not any(
                needle in t.lower() for t in binding.tags
            ):
                continue
            if any(t not in binding.tags for t in required):
                continue
            matches.append(binding)
        return sorted(matches, key=lambda b: b.created_at, reverse=True)

    def all_tags(self) -> list[str]:
        return sorted({t for b in self._load().values() for t in b.tags})

    # --- mutations ---

    def _put(
        self, name: str, path: str, image_type: str, bindings: dict[str, CharacterBinding]
    ) -> CharacterBinding:
        existing = bindings.get(name)
        binding = CharacterBinding(
            character_name=name,
            reference_image_path=path,
            image_type=canonical_image_type(image_type),
            created_at=int(time.time()),
            bound=True,
            tags=list(existing.tags) if existing else [],
        )
        bindings[name] = binding
        self._save(bindings)
        return binding

    def save_reference_image(
        self, name: str, image_data: str, image_type: str = IMAGE_TYPE_PERSON
    ) -> CharacterBinding:
        """Write an uploaded image (data URL or bare base64) and bind it to name."""
        data, mime = decode_image_payload(image_data)
        self.images_dir.mkdir(parents=True, exist_ok=True)
        stem = _UNSAFE_FILENAME_CHARS.sub("_", name) or "character"
        path = self.images_dir / f"{stem}_{int(time.time() * 1000)}.{extension_for_mime(mime)}"
        path.write_bytes(data)
        logger.info("Stored reference image for %s at %s", name, path)
        return self._put(name, str(path), image_type, self._load())

    def bind(self, name: str, path: str, image_type: str = IMAGE_TYPE_PERSON) -> CharacterBinding:
        """Bind name to an image that already exists on disk."""
        if not path or not Path(path).is_file():
            raise StoreError(f"Reference image not found: {path}")
        logger.info("Bound %s to %s", name, path)
        return self._put(name, str(path), image_type, self._load())

    def unbind(self, name: str) -> bool:
        """Clear name's image but keep its record; False when there is none."""
        bindings = self._load()
        binding = bindings.get(name)
        if binding is None:
            return False
        binding.reference_image_path = ""
        binding.bound = False
        self._save(bindings)
        logger.info("Unbound %s", name)
        return True

    def delete(self, name: str) -> bool:
        """
        Remove name's record; False when there is none.

        The image file is deleted only when it was uploaded into this store.
        """
        bindings = self._load()
        binding = bindings.pop(name, None)
        if binding is None:
            return False
        self._save(bindings)
        if binding.has_image:
            path = Path(binding.reference_image_path)
            if path.parent.resolve() == self.images_dir.resolve() and path.exists():
                path.unlink()
        logger.info("Deleted binding for %s", name)
        return True

    def add_tag(self, name: str, tag: str) -> CharacterBinding:
        bindings = self._load()
        binding = self._require(bindings, name)
        binding.tags = unique_tags([*binding.tags, tag])
        self._save(bindings)
        return binding

    def remove_tag(self, name: str, tag: str) -> CharacterBinding:
        bindings = self._load()
        binding = self._require(bindings, name)
        binding.tags = [t for t in binding.tags if t != tag.strip()]
        self._save(bindings)
        return binding
