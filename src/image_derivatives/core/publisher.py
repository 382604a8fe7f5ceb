"""CDN publication of derived artifacts."""

import asyncio
from typing import Any, Dict, List, Optional

from .error_handling import retry_cdn_operation, with_error_handling
from .exceptions import ConfigurationError, PublishError
from .models import (
    DEFAULT_VARIANT_PRESETS,
    ArtifactRole,
    CDNConfig,
    DerivedArtifact,
    PublicationEntry,
    PublishFailure,
    PublishedAsset,
    ResponsiveURLSet,
    VariantPreset,
    VariantURL,
)
from .protocols import CDNClientProtocol, LoggerProtocol

AUTO_FORMAT_QUALITY = "f_auto,q_auto"


class CDNPublisher:
    """
    Uploads derived artifacts to the CDN and builds delivery URLs.

    A publisher built without a client or configuration is disabled: every
    call becomes a no-op that reports nothing published.
    """

    def __init__(
        self,
        client: Optional[CDNClientProtocol],
        config: Optional[CDNConfig],
        logger: LoggerProtocol,
        presets: Optional[Dict[str, VariantPreset]] = None,
    ):
        self._client = client if config is not None else None
        self._config = config
        self._logger = logger
        self._presets = presets or DEFAULT_VARIANT_PRESETS

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def public_id_for(self, base_name: str, role: ArtifactRole) -> str:
        """Deterministic remote identifier, ``{category}/{base_name}_{role}``."""
        category = self._config.category if self._config else "images"
        return f"{category}/{base_name}_{role.value}"

    def upload_options(self, base_name: str, role: ArtifactRole) -> Dict[str, Any]:
        """Provider options for uploading one artifact role."""
        options: Dict[str, Any] = {
            "public_id": self.public_id_for(base_name, role),
            "folder": self._config.folder_for(role),
            "resource_type": "image",
            "overwrite": True,
        }
        if role is ArtifactRole.OPTIMIZED:
            options["transformation"] = [{"quality": "auto", "fetch_format": "auto"}]
        return options

    @with_error_handling(PublishError)
    def _upload_once(self, artifact: DerivedArtifact, base_name: str) -> PublishedAsset:
        response = self._client.upload(
            str(artifact.local_path), **self.upload_options(base_name, artifact.role)
        )
        return PublishedAsset(
            url=response["secure_url"],
            public_id=response["public_id"],
            format=response.get("format"),
            width=response.get("width"),
            height=response.get("height"),
            byte_size=response.get("bytes"),
        )

    def upload_artifact(self, artifact: DerivedArtifact, base_name: str) -> PublishedAsset:
        """Upload one artifact, retrying transient CDN failures; raises PublishError."""
        if not self.enabled:
            raise ConfigurationError("CDN integration is not configured")
        upload = retry_cdn_operation(
            max_attempts=self._config.upload_attempts,
            initial_delay=self._config.retry_delay,
        )(self._upload_once)
        return upload(artifact, base_name)

    def publish(
        self, artifacts: List[DerivedArtifact], base_name: str
    ) -> Dict[ArtifactRole, PublicationEntry]:
        """
        Upload every artifact under its role-specific name.

        Never raises: a failed role is recorded as a PublishFailure and the
        remaining roles are still attempted. Returns an empty mapping when the
        CDN is disabled.
        """
        if not self.enabled:
            return {}

        published: Dict[ArtifactRole, PublicationEntry] = {}
        for artifact in artifacts:
            try:
                published[artifact.role] = self.upload_artifact(artifact, base_name)
            except Exception as e:  # noqa: BLE001
                self._logger.error(
                    f"CDN upload error for {base_name} ({artifact.role.value}): {e}"
                )
                published[artifact.role] = PublishFailure(role=artifact.role, error=str(e))

        uploaded = sum(1 for entry in published.values() if isinstance(entry, PublishedAsset))
        self._logger.info(f"Uploaded {base_name} to CDN", uploaded=uploaded, total=len(artifacts))
        return published

    async def publish_async(
        self, artifacts: List[DerivedArtifact], base_name: str
    ) -> Dict[ArtifactRole, PublicationEntry]:
        """Run :meth:`publish` in a worker thread."""
        if not self.enabled:
            return {}
        return await asyncio.to_thread(self.publish, artifacts, base_name)

    def derive_responsive_urls(
        self, public_id: Optional[str], base_url: str
    ) -> ResponsiveURLSet:
        """
        Build one auto-format, auto-quality URL per configured width.

        Only the original URL is returned when the CDN is disabled or there is
        no remote identifier.
        """
        if not self.enabled or not public_id:
            return ResponsiveURLSet(original=base_url)

        responsive = {
            width: self._client.url(public_id, f"{AUTO_FORMAT_QUALITY},w_{width}")
            for width in sorted(self._config.responsive_widths)
        }
        return ResponsiveURLSet(original=base_url, responsive=responsive)

    def derive_preset_variants(self, public_id: str, preset: str) -> Dict[str, VariantURL]:
        """Sized, cropped renditions of a remote asset for a named preset."""
        if preset not in self._presets:
            raise ConfigurationError(f"Unknown variant preset: {preset}")
        if not self.enabled or not public_id:
            return {}

        variants: Dict[str, VariantURL] = {}
        for size in self._presets[preset].sizes:
            transformation = ",".join(
                [
                    f"w_{size.width}",
                    f"h_{size.height}",
                    f"q_{size.quality}",
                    f"f_{size.format}",
                    "c_fill",
                ]
            )
            variants[size.suffix] = VariantURL(
                url=self._client.url(public_id, transformation),
                width=size.width,
                height=size.height,
                format=size.format,
                quality=size.quality,
            )
        return variants

    def unpublish(self, public_id: Optional[str]) -> bool:
        """Best-effort delete of a remote asset; False when disabled or on failure."""
        if not self.enabled or not public_id:
            return False

        try:
            response = self._client.destroy(public_id)
        except Exception as e:  # noqa: BLE001
            self._logger.error(f"CDN deletion error for {public_id}: {e}")
            return False

        if response.get("result") != "ok":
            self._logger.warning(f"CDN did not delete {public_id}", result=response.get("result"))
            return False

        self._logger.info(f"Deleted {public_id} from CDN")
        return True

    async def unpublish_async(self, public_id: Optional[str]) -> bool:
        return await asyncio.to_thread(self.unpublish, public_id)

    def ping(self) -> bool:
        """True when the CDN answers its reachability probe."""
        if not self.enabled:
            return False
        try:
            self._client.ping()
        except Exception as e:  # noqa: BLE001
            self._logger.warning(f"CDN ping failed: {e}")
            return False
        return True
