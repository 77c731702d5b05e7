"""
Banana Pro image generation provider.

Gemini-style generateContent endpoint keyed by query parameter. Reference
images travel as inlineData parts ahead of the prompt text; the output shape
is an aspect ratio plus a resolution tier derived from the requested
dimensions. The requested image count is not sent.
"""

import time
from typing import Any

from huiben.backend.providers.base import (
    check_models_endpoint,
    post_json,
    require_endpoint,
)
from huiben.core.images import decode_image_payload
from huiben.core.models import MODEL_BANANA_PRO, ImageGenerationParams, ProviderEndpoint
from huiben.core.translator import normalize_ratio, ratio_label, resolution_for_dimensions
from huiben.logging_config import get_logger, log_prompts
from huiben.utils.exceptions import APIError

logger = get_logger(__name__)

BANANA_PRO_MODEL_ID = "gemini-3.1-flash-image-preview"


def _inline_part(image: str) -> dict[str, Any]:
    """inlineData part for a data URL or bare base64 reference image."""
    if image.startswith("data:"):
        mime = image[5:].split(";", 1)[0] or "image/png"
        data = image.split(",", 1)[1]
    else:
        _, mime = decode_image_payload(image)
        data = image
    return {"inlineData": {"mimeType": mime, "data": data}}


def _parts(result: dict[str, Any]) -> list[dict[str, Any]]:
    """Every content part of every candidate, rejecting malformed nesting."""
    candidates = result.get("candidates") or []
    if not isinstance(candidates, list):
        raise APIError("Unexpected API response shape", response=str(result)[:2000])
    parts: list[dict[str, Any]] = []
    for candidate in candidates:
        if not isinstance(candidate, dict):
            raise APIError("Unexpected API response shape", response=str(result)[:2000])
        content = candidate.get("content") or {}
        found = (content.get("parts") or []) if isinstance(content, dict) else None
        if not isinstance(found, list) or not all(isinstance(p, dict) for p in found):
            raise APIError("Unexpected API response shape", response=str(result)[:2000])
        parts.extend(found)
    return parts


class BananaProProvider:
    """Provider for the banana_pro generateContent API."""

    name: str = MODEL_BANANA_PRO

    def build_payload(
        self, prompt: str, params: ImageGenerationParams, images: list[str]
    ) -> dict[str, Any]:
        parts = [_inline_part(img) for img in images]
        parts.append({"text": prompt})
        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {
                    "aspectRatio": ratio_label(normalize_ratio(params.width, params.height)),
                    "imageSize": resolution_for_dimensions(params.width, params.height),
                },
            },
        }

    def parse_response(self, result: Any) -> list[str]:
        """Collect inline image parts of every candidate as data URLs."""
        if not isinstance(result, dict):
            raise APIError("Unexpected API response shape", response=str(result)[:2000])
        if result.get("error"):
            raise APIError(f"API returned an error: {result['error']}", response=str(result))
        images: list[str] = []
        for part in _parts(result):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline is not None and not isinstance(inline, dict):
                raise APIError("Unexpected API response shape", response=str(result)[:2000])
            if inline and inline.get("data"):
                mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                images.append(f"data:{mime};base64,{inline['data']}")
        if not images:
            raise APIError(
                "No images in API response. The model may have answered with text only.",
                response=str(result)[:2000],
            )
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
            "Generating image provider=%s size=%dx%d references=%d",
            self.name,
            params.width,
            params.height,
            len(images),
        )
        if log_prompts():
            logger.info("Prompt (used): %s", prompt)
        start = time.time()
        result = post_json(
            f"{endpoint.base_url.rstrip('/')}/v1beta/models/{BANANA_PRO_MODEL_ID}:generateContent",
            self.build_payload(prompt, params, images),
            provider=self.name,
            model=BANANA_PRO_MODEL_ID,
            timeout=timeout,
            params={"key": endpoint.api_key},
            debug=debug,
        )
        urls = self.parse_response(result)
        logger.info(
            "Generated %d image(s) in %.1fs provider=%s", len(urls), time.time() - start, self.name
        )
        return urls

    def test_connection(self, endpoint: ProviderEndpoint, timeout: float) -> bool:
        return check_models_endpoint(endpoint, self.name, timeout)


__all__ = ["BANANA_PRO_MODEL_ID", "BananaProProvider"]
