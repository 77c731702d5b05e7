"""
Seedream image generation provider.

OpenAI-style images endpoint: POST {base}/v1/images/generations with a bearer
key. Reference images are sent as data URLs; results come back as URLs or as
base64 payloads, which are returned as data URLs.
"""

import time
from typing import Any

from huiben.backend.providers.base import (
    check_models_endpoint,
    post_json,
    require_endpoint,
)
from huiben.core.models import MODEL_SEEDREAM, ImageGenerationParams, ProviderEndpoint
from huiben.logging_config import get_logger, log_prompts
from huiben.utils.exceptions import APIError

logger = get_logger(__name__)

SEEDREAM_MODEL_ID = "doubao-seedream-4-0-250828"
DEFAULT_SIZE = "2K"
DEFAULT_SEQUENTIAL = "auto"
SEQUENTIAL_MAX_IMAGES = 3


class SeedreamProvider:
    """Provider for the seedream images API."""

    name: str = MODEL_SEEDREAM

    def build_payload(
        self, prompt: str, params: ImageGenerationParams, images: list[str]
    ) -> dict[str, Any]:
        sequential = params.sequential_image_generation or DEFAULT_SEQUENTIAL
        payload: dict[str, Any] = {
            "model": SEEDREAM_MODEL_ID,
            "prompt": prompt,
            "size": params.size or DEFAULT_SIZE,
            "sequential_image_generation": sequential,
            "watermark": bool(params.watermark),
        }
        if sequential == "auto":
            payload["sequential_image_generation_options"] = {
                "max_images": SEQUENTIAL_MAX_IMAGES
            }
        if params.response_format:
            payload["response_format"] = params.response_format
        if images:
            payload["image"] = [
                img if img.startswith("data:") else f"data:image/png;base64,{img}"
                for img in images
            ]
        return payload

    def parse_response(self, result: Any) -> list[str]:
        """Extract image URLs (or b64_json payloads as data URLs) from data[]."""
        items = result.get("data") if isinstance(result, dict) else None
        if items is None and isinstance(result, dict):
            items = []
        if not isinstance(items, list):
            raise APIError("Unexpected API response shape", response=str(result)[:2000])
        images: list[str] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            if item.get("url"):
                images.append(item["url"])
            elif item.get("b64_json"):
                images.append(f"data:image/png;base64,{item['b64_json']}")
        if not images:
            raise APIError("No images in API response.", response=str(result)[:2000])
        return images

    def generate(
        self,
        prompt: str,
        params: ImageGenerationParams,
        endpoint: ProviderEndpoint,
        images: list[str],
        timeout: float,
        *,
        debug: bool = False,
    ) -> list[str]:
        require_endpoint(endpoint, self.name)
        logger.info(
            "Generating image provider=%s size=%s references=%d",
            self.name,
            params.size or DEFAULT_SIZE,
            len(images),
        )
        if log_prompts():
            logger.info("Prompt (used): %s", prompt)
        start = time.time()
        result = post_json(
            f"{endpoint.base_url.rstrip('/')}/v1/images/generations",
            self.build_payload(prompt, params, images),
            provider=self.name,
            model=SEEDREAM_MODEL_ID,
            timeout=timeout,
            headers={"Authorization": f"Bearer {endpoint.api_key}"},
            debug=debug,
        )
        urls = self.parse_response(result)
        logger.info(
            "Generated %d image(s) in %.1fs provider=%s", len(urls), time.time() - start, self.name
        )
        return urls

    def test_connection(self, endpoint: ProviderEndpoint, timeout: float) -> bool:
        return check_models_endpoint(endpoint, self.name, timeout)


__all__ = ["SEEDREAM_MODEL_ID", "SeedreamProvider"]
