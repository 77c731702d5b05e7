"""
Image payload helpers.

Handles data URLs and raw base64 payloads, MIME sniffing from magic bytes,
shrinking oversized reference images before upload, and building retrieval
URLs for stored images.
"""

import base64
import binascii
import io
from urllib.parse import quote

from PIL import Image

from huiben.core.config import Config
from huiben.logging_config import get_logger
from huiben.utils.exceptions import ImageProcessingError, ValidationError

logger = get_logger(__name__)

DATA_URL_PREFIX = "data:"
DEFAULT_MIME = "image/png"

# Reference images above this size are downscaled and re-encoded before upload
UPLOAD_MAX_BYTES = 1024 * 1024
UPLOAD_MAX_SIDE = 1024
UPLOAD_JPEG_QUALITY = 80


def is_embedded_data(source: object) -> bool:
    """True for raw image bytes or a data: URL, as opposed to a path or remote URL."""
    if isinstance(source, (bytes, bytearray)):
        return True
    return isinstance(source, str) and source.strip().startswith(DATA_URL_PREFIX)


def infer_mime(data: bytes) -> str:
    """Infer an image MIME type from magic bytes; PNG when unknown."""
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:2] == b"\xff\xd8":
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return DEFAULT_MIME


def extension_for_mime(mime: str) -> str:
    """File extension for a MIME type: image/jpeg -> jpeg, image/svg+xml -> svg."""
    if "/" not in mime:
        return "png"
    return mime.split("/", 1)[1].split("+")[0].split(";")[0].strip().lower() or "png"


def parse_data_url(data_url: str) -> tuple[bytes, str]:
    """
    Decode a data:<mime>;base64,<payload> URL.

    Returns:
        (decoded bytes, MIME type)

    Raises:
        ValidationError: If the URL is not a base64 data URL
    """
    data_url = data_url.strip()
    if not data_url.startswith(DATA_URL_PREFIX):
        raise ValidationError("Not a data URL", field="image")
    idx = data_url.find(";base64,")
    if idx == -1:
        raise ValidationError("Data URL missing ;base64, part", field="image")
    try:
        payload = base64.b64decode(data_url[idx + 8 :], validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 in data URL: {e}", field="image") from e
    mime = data_url[len(DATA_URL_PREFIX) : idx].strip().lower() or infer_mime(payload)
    return payload, mime


def decode_image_payload(payload: str) -> tuple[bytes, str]:
    """Decode a data URL or a bare base64 string into (bytes, MIME type)."""
    if payload.strip().startswith(DATA_URL_PREFIX):
        return parse_data_url(payload)
    try:
        data = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 image data: {e}", field="image") from e
    return data, infer_mime(data)


def to_data_url(data: bytes, mime: str | None = None) -> str:
    """Encode raw image bytes as a data URL."""
    mime = mime or infer_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def convert_to_rgb(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any alpha channel on white."""
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    return image.convert("RGB")


def compress_for_upload(data: bytes, image_path: str = "") -> tuple[bytes, str]:
    """
    Shrink a reference image that exceeds UPLOAD_MAX_BYTES.

    Oversized images are scaled to fit UPLOAD_MAX_SIDE (aspect ratio kept) and
    re-encoded as JPEG at quality 80. Smaller images are returned untouched.

    Returns:
        (bytes to upload, MIME type)

    Raises:
        ImageProcessingError: If an oversized payload cannot be decoded
    """
    if len(data) <= UPLOAD_MAX_BYTES:
        return data, infer_mime(data)
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        if image.width > UPLOAD_MAX_SIDE or image.height > UPLOAD_MAX_SIDE:
            image.thumbnail((UPLOAD_MAX_SIDE, UPLOAD_MAX_SIDE), Image.Resampling.LANCZOS)
        buffer = io.BytesIO()
        convert_to_rgb(image).save(buffer, format="JPEG", quality=UPLOAD_JPEG_QUALITY)
    except (OSError, ValueError) as e:
        raise ImageProcessingError(
            f"Failed to compress reference image: {e}", image_path=image_path
        ) from e
    compressed = buffer.getvalue()
    logger.debug(
        "Compressed reference image %s from %d to %d bytes", image_path, len(data), len(compressed)
    )
    return compressed, "image/jpeg"


def image_url(path: str, *, embedded: bool, config: Config) -> str:
    """
    URL under which a stored image can be displayed.

    Remote and data URLs pass through. Local paths (with or without a file://
    prefix) are served by the local image service under the embedded
    transport and by the networked server otherwise.
    """
    if path.startswith(("http://", "https://", DATA_URL_PREFIX)):
        return path
    if path.startswith("file://"):
        path = path[len("file://") :]
    base = config.local_service_url if embedded else config.server_url
    escaped = quote(path, safe="!*'()")
    return f"{base.rstrip('/')}/api/image?path={escaped}"


__all__ = [
    "compress_for_upload",
    "convert_to_rgb",
    "decode_image_payload",
    "extension_for_mime",
    "image_url",
    "infer_mime",
    "is_embedded_data",
    "parse_data_url",
    "to_data_url",
]
