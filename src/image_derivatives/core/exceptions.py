"""Custom exceptions for the image derivatives service."""

from __future__ import annotations

from typing import Optional


class ImageDerivativesError(Exception):
    """Base exception for all image derivatives errors."""


class ConfigurationError(ImageDerivativesError):
    """Error raised for invalid configuration or misuse of configuration."""


class UnreadableImageError(ImageDerivativesError):
    """The source could not be identified or parsed as an image."""


class EncodeError(ImageDerivativesError):
    """Resizing or re-encoding a variant failed."""


class PublishError(ImageDerivativesError):
    """Uploading or deleting an asset on the CDN failed."""


class CleanupError(ImageDerivativesError):
    """A file or directory could not be swept."""


class DerivationError(ImageDerivativesError):
    """A pipeline step failed; carries the stage name and the underlying cause."""

    def __init__(self, stage: str, cause: BaseException, filename: Optional[str] = None):
        self.stage = stage
        self.cause = cause
        self.filename = filename
        target = f" for {filename}" if filename else ""
        super().__init__(f"Stage '{stage}' failed{target}: {cause}")
