import pytest

from image_derivatives.core.exceptions import (
    CleanupError,
    ConfigurationError,
    DerivationError,
    EncodeError,
    ImageDerivativesError,
    PublishError,
    UnreadableImageError,
)


@pytest.mark.parametrize(
    "error_cls",
    [ConfigurationError, UnreadableImageError, EncodeError, PublishError, CleanupError],
)
def test_errors_share_base_class(error_cls) -> None:
    assert issubclass(error_cls, ImageDerivativesError)


def test_derivation_error_carries_stage_and_cause() -> None:
    cause = UnreadableImageError("cannot identify image file")
    error = DerivationError("metadata", cause, filename="cat.jpg")

    assert error.stage == "metadata"
    assert error.cause is cause
    assert error.filename == "cat.jpg"
    assert str(error) == "Stage 'metadata' failed for cat.jpg: cannot identify image file"


def test_derivation_error_without_filename() -> None:
    error = DerivationError("optimize", OSError("disk full"))
    assert str(error) == "Stage 'optimize' failed: disk full"
    assert isinstance(error, ImageDerivativesError)
