"""
Exceptions raised by huiben.

Every error the orchestrator or the embedded command host raises on purpose
derives from HuibenError. A generation that the provider rejected is not an
exception: it comes back as an ImageGenerationResult with success=False.
"""


class HuibenError(Exception):
    """Base exception for all huiben errors."""

    pass


class ValidationError(HuibenError):
    """Raised when user input is rejected before anything is dispatched."""

    def __init__(self, message: str, field: str = "") -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Name of the offending field (optional)
        """
        self.field = field
        super().__init__(message)


class TransportError(HuibenError):
    """Raised when the embedded command interface or the HTTP interface fails."""

    def __init__(self, message: str, status_code: int = 0, response: str = "") -> None:
        """
        Initialize transport error.

        Args:
            message: Error message
            status_code: HTTP status code, 0 when no response was received
            response: Raw response body (if any)
        """
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class NetworkError(TransportError):
    """Raised when a request produced no response at all."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """
        Initialize network error.

        Args:
            message: Error message
            original_error: The underlying exception that caused this error
        """
        self.original_error = original_error
        super().__init__(message)


class RequestTimeoutError(NetworkError):
    """Raised when a request timed out before a response arrived."""

    pass


class CommandError(TransportError):
    """Raised when an embedded command is unknown or fails."""

    def __init__(
        self,
        message: str,
        command: str = "",
        original_error: Exception | None = None,
    ) -> None:
        self.command = command
        self.original_error = original_error
        super().__init__(message)


class APIError(HuibenError):
    """Raised when an image provider API call fails."""

    def __init__(self, message: str, status_code: int = 0, response: str = "") -> None:
        """
        Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response: Raw API response (if available)
        """
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class ConfigurationError(HuibenError):
    """Raised when there is a configuration problem."""

    pass


class StoreError(HuibenError):
    """Raised when the binding or settings store cannot satisfy a request."""

    pass


class ImageProcessingError(HuibenError):
    """Raised when image data cannot be decoded, re-encoded or written."""

    def __init__(self, message: str, image_path: str = "") -> None:
        self.image_path = image_path
        super().__init__(message)
