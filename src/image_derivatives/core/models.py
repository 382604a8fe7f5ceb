"""Shared data models for the image derivatives service."""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class ArtifactRole(str, Enum):
    """Role of a derived artifact; the value is used in filenames and CDN ids."""

    OPTIMIZED = "optimized"
    THUMBNAIL = "thumbnail"
    ALT_FORMAT = "webp"


class PipelineStage(str, Enum):
    """Steps of the derivation pipeline, in execution order."""

    METADATA = "metadata"
    OPTIMIZE = "optimize"
    THUMBNAIL = "thumbnail"
    ALT_FORMAT = "alt_format"
    PUBLISH = "publish"


class PipelineState(str, Enum):
    """States an item moves through while being derived."""

    START = "start"
    METADATA_READ = "metadata_read"
    MASTER_ENCODED = "master_encoded"
    THUMBNAIL_ENCODED = "thumbnail_encoded"
    ALT_FORMAT_ENCODED = "alt_format_encoded"
    PUBLISHED = "published"
    DONE = "done"
    FAILED = "failed"


class ImageMetadata(BaseModel):
    """Intrinsic properties of a source image."""

    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    format: str
    size: int
    channels: int
    density: Optional[Tuple[float, float]] = None
    has_alpha: bool = False
    orientation: int = 1


class EncodeProfile(BaseModel):
    """Encode parameters for one output format."""

    model_config = ConfigDict(frozen=True)

    format: str
    quality: Optional[int] = Field(default=None, ge=1, le=100)
    options: Dict[str, Any] = Field(default_factory=dict)

    def save_params(self, quality: Optional[int] = None) -> Dict[str, Any]:
        """Keyword arguments for ``Image.save`` under this profile."""
        params = dict(self.options)
        effective = quality or self.quality
        if effective is not None:
            params["quality"] = effective
        return params


class ThumbnailProfile(BaseModel):
    """Fixed box the thumbnail is fitted to."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(default=300, gt=0)
    height: int = Field(default=300, gt=0)
    fit: str = Field(default="cover", pattern="^(cover|inside|fill)$")
    quality: int = Field(default=80, ge=1, le=100)


class EncodeSettings(BaseModel):
    """Per-format encode policy plus the global resize ceiling."""

    model_config = ConfigDict(frozen=True)

    jpeg: EncodeProfile = EncodeProfile(
        format="JPEG", quality=85, options={"progressive": True, "optimize": True}
    )
    webp: EncodeProfile = EncodeProfile(format="WEBP", quality=80, options={"method": 4})
    png: EncodeProfile = EncodeProfile(format="PNG", options={"compress_level": 8})
    thumbnail: ThumbnailProfile = ThumbnailProfile()
    max_width: int = Field(default=1920, gt=0)
    max_height: int = Field(default=1080, gt=0)

    def profile_for(self, target: str) -> Optional[EncodeProfile]:
        """Return the profile for a format name or file extension, if any."""
        key = target.lower().lstrip(".")
        if key in ("jpg", "jpeg"):
            return self.jpeg
        if key == "webp":
            return self.webp
        if key == "png":
            return self.png
        return None


class VariantSize(BaseModel):
    """One sized rendition of a CDN variant preset."""

    width: int
    height: int
    quality: int
    format: str = "webp"
    suffix: str


class VariantPreset(BaseModel):
    """Named group of CDN renditions for one kind of image."""

    name: str
    sizes: List[VariantSize]


def _sizes(*rows: Tuple[int, int, int, str]) -> List[VariantSize]:
    return [VariantSize(width=w, height=h, quality=q, suffix=s) for w, h, q, s in rows]


DEFAULT_VARIANT_PRESETS: Dict[str, VariantPreset] = {
    "profile_image": VariantPreset(
        name="profile_image",
        sizes=_sizes((400, 400, 90, "lg"), (200, 200, 85, "md"), (100, 100, 80, "sm"), (50, 50, 75, "xs")),
    ),
    "gallery_image": VariantPreset(
        name="gallery_image",
        sizes=_sizes((1200, 800, 90, "xl"), (800, 533, 85, "lg"), (400, 267, 80, "md"), (200, 133, 75, "sm")),
    ),
    "banner_image": VariantPreset(
        name="banner_image",
        sizes=_sizes((1920, 600, 85, "xl"), (1200, 375, 80, "lg"), (800, 250, 75, "md"), (400, 125, 70, "sm")),
    ),
    "thumbnail": VariantPreset(
        name="thumbnail",
        sizes=_sizes((300, 300, 80, "lg"), (150, 150, 75, "md"), (75, 75, 70, "sm")),
    ),
}


class CDNConfig(BaseModel):
    """Cloudinary credentials and naming scheme."""

    model_config = ConfigDict(frozen=True)

    cloud_name: str
    api_key: str
    api_secret: SecretStr = SecretStr("")
    secure: bool = True
    category: str = "images"
    folder: str = "image-derivatives"
    responsive_widths: Tuple[int, ...] = (320, 640, 768, 1024, 1280, 1600)
    upload_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)

    @classmethod
    def from_env(cls) -> Optional["CDNConfig"]:
        """Build from ``CLOUDINARY_*`` variables; ``None`` when not configured."""
        cloud_name = os.getenv("CLOUDINARY_CLOUD_NAME")
        api_key = os.getenv("CLOUDINARY_API_KEY")
        if not cloud_name or not api_key:
            return None
        extra: Dict[str, Any] = {}
        if os.getenv("CDN_CATEGORY"):
            extra["category"] = os.environ["CDN_CATEGORY"]
        if os.getenv("CDN_FOLDER"):
            extra["folder"] = os.environ["CDN_FOLDER"]
        return cls(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=SecretStr(os.getenv("CLOUDINARY_API_SECRET", "")),
            **extra,
        )

    def folder_for(self, role: ArtifactRole) -> str:
        """Remote folder an artifact role is grouped into."""
        if role is ArtifactRole.THUMBNAIL:
            return f"{self.folder}/thumbnails"
        if role is ArtifactRole.ALT_FORMAT:
            return f"{self.folder}/webp"
        return self.folder


class ServiceConfig(BaseModel):
    """Configuration for the service; built once at startup."""

    model_config = ConfigDict(frozen=True)

    uploads_dir: Path = Path("uploads")
    encode: EncodeSettings = EncodeSettings()
    concurrency: int = Field(default=3, ge=1)
    retention_days: float = Field(default=7, gt=0)
    cdn: Optional[CDNConfig] = None
    debug: bool = False

    @property
    def optimized_dir(self) -> Path:
        return self.uploads_dir / "optimized"

    @property
    def thumbnail_dir(self) -> Path:
        return self.uploads_dir / "thumbnails"

    @property
    def alt_format_dir(self) -> Path:
        return self.uploads_dir / "webp"

    @property
    def artifact_dirs(self) -> List[Path]:
        return [self.optimized_dir, self.thumbnail_dir, self.alt_format_dir]

    @classmethod
    def from_env(cls, **overrides: Any) -> "ServiceConfig":
        """Read ``IMAGE_UPLOADS_DIR``, ``BATCH_CONCURRENCY``, ``RETENTION_DAYS`` and CDN vars."""
        values: Dict[str, Any] = {"cdn": CDNConfig.from_env()}
        if os.getenv("IMAGE_UPLOADS_DIR"):
            values["uploads_dir"] = Path(os.environ["IMAGE_UPLOADS_DIR"])
        if os.getenv("BATCH_CONCURRENCY"):
            values["concurrency"] = os.environ["BATCH_CONCURRENCY"]
        if os.getenv("RETENTION_DAYS"):
            values["retention_days"] = os.environ["RETENTION_DAYS"]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class BatchItem(BaseModel):
    """An uploaded file waiting to be derived."""

    local_path: Path
    original_filename: str
    base_name: Optional[str] = None


class DerivedArtifact(BaseModel):
    """A file produced by the encoder."""

    local_path: Path
    role: ArtifactRole


class EncodeStats(BaseModel):
    """Byte sizes before and after an encode."""

    original_size: int
    optimized_size: int
    savings: str
    output_path: Path


class PublishedAsset(BaseModel):
    """Confirmation that an artifact has a durable remote copy."""

    url: str
    public_id: str
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    byte_size: Optional[int] = None


class PublishFailure(BaseModel):
    """Upload failure recorded for a single role."""

    role: ArtifactRole
    error: str


PublicationEntry = Union[PublishedAsset, PublishFailure]


class DerivationResult(BaseModel):
    """Everything derived from one source image."""

    source_path: Path
    original_filename: str
    metadata: ImageMetadata
    artifacts: List[DerivedArtifact] = Field(default_factory=list)
    published: Dict[ArtifactRole, PublicationEntry] = Field(default_factory=dict)
    optimization_stats: EncodeStats
    processing_time: float = 0.0
    success: bool = True

    def artifact(self, role: ArtifactRole) -> Optional[DerivedArtifact]:
        for artifact in self.artifacts:
            if artifact.role is role:
                return artifact
        return None


class ItemError(BaseModel):
    """Failure of one item, kept in its batch slot."""

    source_path: Path
    original_filename: str
    stage: Optional[PipelineStage] = None
    error: str
    error_type: str = "Exception"
    success: bool = False


BatchEntry = Union[DerivationResult, ItemError]


class BatchResult(BaseModel):
    """Per-item outcomes in submission order."""

    results: List[BatchEntry] = Field(default_factory=list)
    processing_time: float = 0.0

    def __len__(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r, DerivationResult))

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r, ItemError))


class ResponsiveURLSet(BaseModel):
    """Original URL plus one CDN URL per target width."""

    original: str
    responsive: Dict[int, str] = Field(default_factory=dict)

    def srcset(self) -> str:
        """Render as an HTML ``srcset`` attribute value."""
        return ", ".join(f"{url} {width}w" for width, url in sorted(self.responsive.items()))


class VariantURL(BaseModel):
    """A sized CDN rendition URL."""

    url: str
    width: int
    height: int
    format: str
    quality: int


class HealthReport(BaseModel):
    """Outcome of the service health probe."""

    status: str = "healthy"
    codec_available: bool = False
    directories_accessible: bool = False
    cdn_enabled: bool = False
    cdn_reachable: bool = False
    error: Optional[str] = None
