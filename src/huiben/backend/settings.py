"""
Provider and generation settings for the embedded host.

Both documents are JSON under <data_dir>/config, validated with pydantic on
every load. The API config holds credentials: it is sealed with AES-256-GCM
under a per-install key (key.bin, owner-only) and stored as a 12-byte nonce
followed by the ciphertext.
"""

import json
import os
from pathlib import Path
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, Field, ValidationError

from huiben.core.models import APIConfig, GenerationConfig, ProviderEndpoint
from huiben.core.transport.adapter import (
    api_config_to_record,
    generation_config_to_record,
    normalize_api_config,
    normalize_generation_config,
)
from huiben.logging_config import get_logger
from huiben.utils.exceptions import StoreError

logger = get_logger(__name__)

API_CONFIG_FILE = "api_config.json"
GENERATION_CONFIG_FILE = "generation_config.json"
KEY_FILE = "key.bin"

KEY_SIZE = 32
NONCE_SIZE = 12

DEFAULT_SEEDREAM_BASE_URL = "https://eggfans.com"
DEFAULT_BANANA_PRO_BASE_URL = "https://api.zhongzhuan.chat"


class EndpointSchema(BaseModel):
    base_url: str = ""
    api_key: str = ""


class APIConfigSchema(BaseModel):
    """Schema for api_config.json."""

    seedream: EndpointSchema = Field(default_factory=EndpointSchema)
    banana_pro: EndpointSchema = Field(default_factory=EndpointSchema)


class GenerationConfigSchema(BaseModel):
    """Schema for generation_config.json."""

    model: str
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    count: int = Field(..., ge=1)
    quality: str
    size: str | None = None
    sequential_image_generation: str | None = None
    response_format: str | None = None
    watermark: bool | None = None


def default_api_config() -> APIConfig:
    return APIConfig(
        seedream=ProviderEndpoint(base_url=DEFAULT_SEEDREAM_BASE_URL),
        banana_pro=ProviderEndpoint(base_url=DEFAULT_BANANA_PRO_BASE_URL),
    )


def default_generation_config() -> GenerationConfig:
    """Defaults for a fresh install: square seedream output at 1024x1024."""
    return GenerationConfig(
        model="seedream",
        width=1,
        height=1,
        count=1,
        quality="standard",
        size="1024x1024",
        sequential_image_generation="disabled",
        response_format="url",
        watermark=False,
    )


def _format_errors(e: ValidationError) -> str:
    return "\n".join(
        f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
    )


class SettingsStore:
    """Reads and writes the API and generation config documents."""

    def __init__(self, data_dir: Path) -> None:
        self.config_dir = Path(data_dir) / "config"
        self.api_config_path = self.config_dir / API_CONFIG_FILE
        self.generation_config_path = self.config_dir / GENERATION_CONFIG_FILE
        self.key_path = self.config_dir / KEY_FILE

    def _replace(self, path: Path, data: bytes, private: bool = False) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_bytes(data)
        if private:
            os.chmod(tmp, 0o600)
        tmp.replace(path)

    def _key(self, create: bool) -> bytes:
        """
        The per-install encryption key.

        A key file of the wrong length is replaced when create is set;
        anything sealed under the old key becomes unreadable.

        Raises:
            StoreError: If no usable key exists and create is not set
        """
        if self.key_path.exists():
            try:
                key = self.key_path.read_bytes()
            except OSError as e:
                raise StoreError(f"Failed to read {self.key_path}: {e}") from e
            if len(key) == KEY_SIZE:
                return key
            logger.warning(
                "Ignoring %s: expected %d bytes, got %d", self.key_path, KEY_SIZE, len(key)
            )
        if not create:
            raise StoreError(f"No usable encryption key at {self.key_path}")
        key = AESGCM.generate_key(bit_length=KEY_SIZE * 8)
        self._replace(self.key_path, key, private=True)
        logger.info("Created encryption key %s", self.key_path)
        return key

    def _encrypt(self, plaintext: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(self._key(create=True)).encrypt(nonce, plaintext, None)

    def _decrypt(self, blob: bytes, path: Path) -> bytes:
        if len(blob) < NONCE_SIZE:
            raise StoreError(f"Encrypted data in {path} is too short")
        try:
            return AESGCM(self._key(create=False)).decrypt(
                blob[:NONCE_SIZE], blob[NONCE_SIZE:], None
            )
        except InvalidTag as e:
            raise StoreError(f"Failed to decrypt {path}: data or key was altered") from e

    def _read(self, path: Path, what: str, encrypted: bool = False) -> Any:
        if not path.exists():
            raise StoreError(f"No {what} has been saved yet")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StoreError(f"Failed to read {path}: {e}") from e
        if encrypted:
            data = self._decrypt(data, path)
        try:
            return json.loads(data.decode("utf-8"))
        except ValueError as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

    def _write(self, path: Path, payload: dict[str, Any], encrypted: bool = False) -> None:
        data = json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
        if encrypted:
            data = self._encrypt(data)
        self._replace(path, data, private=encrypted)

    def load_api_config(self) -> APIConfig:
        """
        Load and decrypt the stored API config.

        Raises:
            StoreError: If nothing was saved yet, or the file cannot be
                decrypted or is invalid
        """
        raw = self._read(self.api_config_path, "API config", encrypted=True)
        try:
            APIConfigSchema.model_validate(raw)
        except ValidationError as e:
            raise StoreError(f"Invalid {API_CONFIG_FILE}:\n{_format_errors(e)}") from e
        return normalize_api_config(raw)

    def save_api_config(self, config: APIConfig) -> None:
        self._write(self.api_config_path, api_config_to_record(config), encrypted=True)
        logger.info("Saved API config to %s", self.api_config_path)

    def load_generation_config(self) -> GenerationConfig:
        """
        Load the stored generation defaults.

        Raises:
            StoreError: If nothing was saved yet or the file is invalid
        """
        raw = self._read(self.generation_config_path, "generation config")
        try:
            GenerationConfigSchema.model_validate(raw)
        except ValidationError as e:
            raise StoreError(f"Invalid {GENERATION_CONFIG_FILE}:\n{_format_errors(e)}") from e
        return normalize_generation_config(raw)

    def save_generation_config(self, config: GenerationConfig) -> None:
        payload = generation_config_to_record(config)
        try:
            GenerationConfigSchema.model_validate(payload)
        except ValidationError as e:
            raise StoreError(f"Invalid generation config:\n{_format_errors(e)}") from e
        self._write(self.generation_config_path, payload)
        logger.info("Saved generation config to %s", self.generation_config_path)
