"""Core utilities and shared components for the image derivatives service."""

from .image_utils import (
    calculate_savings,
    fit_inside,
    generate_filename,
    read_image_metadata,
)
from .logging_config import get_logger, setup_logger
from .exceptions import (
    ImageDerivativesError,
    ConfigurationError,
    UnreadableImageError,
    EncodeError,
    PublishError,
    CleanupError,
    DerivationError,
)
from .models import (
    ArtifactRole,
    BatchItem,
    BatchResult,
    CDNConfig,
    DerivationResult,
    DerivedArtifact,
    EncodeProfile,
    EncodeSettings,
    EncodeStats,
    HealthReport,
    ImageMetadata,
    ItemError,
    PipelineStage,
    PipelineState,
    PublishedAsset,
    PublishFailure,
    ResponsiveURLSet,
    ServiceConfig,
    ThumbnailProfile,
)

__all__ = [
    "ArtifactRole",
    "BatchItem",
    "BatchResult",
    "CDNConfig",
    "DerivationResult",
    "DerivedArtifact",
    "EncodeProfile",
    "EncodeSettings",
    "EncodeStats",
    "HealthReport",
    "ImageMetadata",
    "ItemError",
    "PipelineStage",
    "PipelineState",
    "PublishedAsset",
    "PublishFailure",
    "ResponsiveURLSet",
    "ServiceConfig",
    "ThumbnailProfile",
    "calculate_savings",
    "fit_inside",
    "generate_filename",
    "read_image_metadata",
    "setup_logger",
    "get_logger",
    "ImageDerivativesError",
    "ConfigurationError",
    "UnreadableImageError",
    "EncodeError",
    "PublishError",
    "CleanupError",
    "DerivationError",
]
