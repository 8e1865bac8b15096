"""Error taxonomy for the swap pipeline.

Every failure the pipeline knows how to classify is a :class:`SwapError`.  Each
subclass carries the HTTP status the API layer should answer with and a
default, user-facing message.  Messages are intended to be shown directly to
the caller, so they must never contain stack traces or filesystem paths.
"""

from __future__ import annotations


class SwapError(Exception):
    """Base class for errors raised while handling a swap request."""

    status_code: int = 500
    default_message: str = "Image generation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SwapError):
    """A required upload is missing or malformed."""

    status_code = 400
    default_message = "Both face and body images are required"


class UploadTooLargeError(ValidationError):
    """An uploaded image is larger than the configured limit."""

    status_code = 413
    default_message = "Uploaded image is too large"


class UnsupportedMediaTypeError(ValidationError):
    """An upload declared a content type that is not an image."""

    status_code = 415
    default_message = "Uploaded files must be images"


class RemoteInvocationError(SwapError):
    """The remote job runner call failed (network, auth or model error)."""


class EmptyOutputError(SwapError):
    """The job finished but produced nothing usable."""

    default_message = "Model returned no output"


class StreamDrainError(SwapError):
    """Reading the job's output stream failed."""


class PersistenceError(SwapError):
    """Writing the generated artifact to disk failed."""

    default_message = "Failed to save generated image"
