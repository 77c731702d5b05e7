"""
Export of generated images.

Under the embedded transport the user picks a destination and the command
host writes the file. Under the HTTP transport the bytes are fetched (or
decoded from a data URL) and handed to a downloader; if a remote image cannot
be fetched it is opened for the user to save instead.
"""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import requests

from huiben.core.images import DATA_URL_PREFIX, extension_for_mime, parse_data_url
from huiben.core.transport import Dispatcher
from huiben.logging_config import get_logger
from huiben.utils.exceptions import NetworkError, ValidationError

logger = get_logger(__name__)

# default filename -> chosen path, or None when the user cancels
SaveDialog = Callable[[str], str | None]
# (image bytes, filename) -> path the bytes were written to
Downloader = Callable[[bytes, str], str]
# (url, suggested filename) -> None
Opener = Callable[[str, str], None]


def default_filename(ext: str = "png") -> str:
    """generated_<YYYYMMDD>_<HHMMSS>_<ms>.<ext>"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:-3]
    return f"generated_{timestamp}.{ext or 'png'}"


def filename_from_url(url: str) -> str | None:
    """
    Last path segment of url when it is a plain filename with an extension.

    The path is unquoted before it is split, so encoded separators cannot
    smuggle a directory into the name.
    """
    name = PurePosixPath(unquote(urlparse(url).path)).name
    if not name or name.startswith(".") or "\\" in name or ".." in name:
        return None
    if "." not in name:
        return None
    return name


def directory_downloader(directory: Path) -> Downloader:
    """Downloader that writes into directory, creating it when needed."""

    def download(data: bytes, filename: str) -> str:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        if path.resolve().parent != directory.resolve():
            raise ValidationError(
                f"Refusing to write {filename!r} outside {directory}", field="filename"
            )
        path.write_bytes(data)
        return str(path)

    return download


class ExportHandler:
    """Persists a generated image the way the active transport allows."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        save_dialog: SaveDialog | None = None,
        downloader: Downloader | None = None,
        opener: Opener | None = None,
        timeout: float = 30,
    ) -> None:
        self.dispatcher = dispatcher
        self.save_dialog = save_dialog or (lambda name: name)
        self.downloader = downloader or directory_downloader(Path("."))
        self.opener = opener
        self.timeout = timeout

    def save_generated_image(self, source: str) -> str | None:
        """
        Save one generated image (remote URL or data URL).

        Returns:
            Where the image went: a file path, or the URL itself when it was
            handed to the opener; None when the user cancelled

        Raises:
            ValidationError: Malformed data URL
            TransportError: The command host failed to write the file
            NetworkError: A remote fetch failed and no opener is available
        """
        if self.dispatcher.is_embedded():
            return self._save_embedded(source)
        if source.startswith(DATA_URL_PREFIX):
            data, mime = parse_data_url(source)
            path = self.downloader(data, default_filename(extension_for_mime(mime)))
            logger.info("Saved generated image to %s", path)
            return path
        return self._download_remote(source)

    def _save_embedded(self, source: str) -> str | None:
        if source.startswith(DATA_URL_PREFIX):
            ext = extension_for_mime(source[len(DATA_URL_PREFIX) :].split(";", 1)[0])
        else:
            name = filename_from_url(source)
            ext = name.rsplit(".", 1)[1] if name else "png"
        path = self.save_dialog(default_filename(ext))
        if not path:
            logger.info("Save cancelled")
            return None
        saved = self.dispatcher.dispatch(
            "save_image_to_file", {"image_url": source, "file_path": path}
        )
        logger.info("Saved generated image to %s", saved or path)
        return str(saved or path)

    def _download_remote(self, url: str) -> str:
        filename = filename_from_url(url) or default_filename("png")
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            if self.opener is None:
                raise NetworkError(f"Failed to download {url}: {e}", original_error=e) from e
            logger.warning("Download failed (%s); opening %s instead", e, url)
            self.opener(url, filename)
            return url
        path = self.downloader(response.content, filename)
        logger.info("Saved generated image to %s", path)
        return path
