"""Service facade: directory lifecycle, CDN detection, processing entry points and health."""

import asyncio
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .core.exceptions import ConfigurationError
from .core.factories import CDNClientFactory, LoggerFactory
from .core.image_utils import PathLike, generate_filename
from .core.models import (
    BatchItem,
    BatchResult,
    DerivationResult,
    EncodeSettings,
    HealthReport,
    ResponsiveURLSet,
    ServiceConfig,
    VariantURL,
)
from .core.observability import MetricsCollector
from .core.protocols import CDNClientProtocol, LoggerProtocol
from .core.publisher import CDNPublisher
from .core.services import MetadataReader, RetentionSweeper, VariantEncoder
from .processors import BatchCoordinator, DerivationPipeline


class ImageDerivationService:
    """
    Entry point that owns configuration and wires the components together.

    The configuration is fixed at construction. Output directories are created
    once here, and CDN availability is decided once here: a service built
    without CDN credentials never talks to the CDN.
    """

    def __init__(
        self,
        config: ServiceConfig,
        logger: LoggerProtocol,
        cdn_client: Optional[CDNClientProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._config = config
        self._logger = logger
        self._metrics_collector = metrics_collector
        self._in_flight = 0

        self.setup_directories()

        if cdn_client is None:
            cdn_client = CDNClientFactory.create_client(config.cdn, logger)

        self._publisher = CDNPublisher(cdn_client, config.cdn, logger)
        self._reader = MetadataReader(logger)
        self._sweeper = RetentionSweeper(config.artifact_dirs, logger)
        self._build_pipeline()

    def _build_pipeline(self) -> None:
        self._encoder = VariantEncoder(self._config.encode, self._logger)
        self._pipeline = DerivationPipeline(
            self._reader,
            self._encoder,
            self._publisher,
            self._config,
            self._logger,
            self._metrics_collector,
        )
        self._coordinator = BatchCoordinator(self._pipeline, self._config.concurrency)

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def cdn_enabled(self) -> bool:
        return self._publisher.enabled

    @property
    def publisher(self) -> CDNPublisher:
        return self._publisher

    @property
    def pipeline(self) -> DerivationPipeline:
        return self._pipeline

    def setup_directories(self) -> None:
        """Create the artifact directories if they do not exist yet."""
        for directory in self._config.artifact_dirs:
            try:
                directory.mkdir(parents=True, exist_ok=True)
                self._logger.debug(f"Ensured directory: {directory}")
            except OSError as e:
                self._logger.error(f"Failed to create directory {directory}: {e}")

    def generate_filename(self, original_name: str, suffix: str = "") -> str:
        return generate_filename(original_name, suffix)

    async def process_upload(
        self, file_path: PathLike, filename: str, base_name: Optional[str] = None
    ) -> DerivationResult:
        """Run the full pipeline for one upload; raises DerivationError on failure."""
        self._in_flight += 1
        try:
            return await self._pipeline.derive(file_path, filename, base_name)
        finally:
            self._in_flight -= 1

    async def process_batch(self, items: Sequence[BatchItem]) -> BatchResult:
        """Run the pipeline over many uploads; never raises for item failures."""
        self._in_flight += 1
        try:
            return await self._coordinator.process_batch(items)
        finally:
            self._in_flight -= 1

    async def cleanup_old_files(self, max_age: Optional[timedelta] = None) -> int:
        """Delete derived files older than ``max_age`` (default: retention window)."""
        if max_age is None:
            max_age = timedelta(days=self._config.retention_days)
        return await self._sweeper.sweep_async(max_age)

    def generate_responsive_urls(self, base_url: str, public_id: Optional[str]) -> ResponsiveURLSet:
        return self._publisher.derive_responsive_urls(public_id, base_url)

    def generate_preset_variants(self, public_id: str, preset: str) -> Dict[str, VariantURL]:
        return self._publisher.derive_preset_variants(public_id, preset)

    async def delete_from_cdn(self, public_id: Optional[str]) -> bool:
        if not self.cdn_enabled or not public_id:
            return False
        return await self._publisher.unpublish_async(public_id)

    def reconfigure(self, encode: EncodeSettings) -> None:
        """
        Replace the encode settings.

        Raises:
            ConfigurationError: If any derivation is still running
        """
        if self._in_flight:
            raise ConfigurationError(
                f"Cannot reconfigure while {self._in_flight} derivation(s) are in flight"
            )
        self._config = self._config.model_copy(update={"encode": encode})
        self._build_pipeline()
        self._logger.info("Encode settings updated")

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "cdn_enabled": self.cdn_enabled,
            "directories": {
                "optimized": str(self._config.optimized_dir),
                "thumbnails": str(self._config.thumbnail_dir),
                "webp": str(self._config.alt_format_dir),
            },
            "concurrency": self._config.concurrency,
            "retention_days": self._config.retention_days,
            "settings": self._config.encode.model_dump(),
        }
        if self._metrics_collector is not None:
            stats["metrics"] = {
                operation: self._metrics_collector.get_summary(operation)
                for operation in self._metrics_collector.operations()
            }
        return stats

    def _directories_accessible(self) -> bool:
        return all(
            directory.is_dir() and os.access(directory, os.W_OK)
            for directory in self._config.artifact_dirs
        )

    async def health_check(self) -> HealthReport:
        """Probe codecs, directories and the CDN; degraded if any probe fails."""
        try:
            report = HealthReport(cdn_enabled=self.cdn_enabled)

            try:
                report.codec_available = await asyncio.to_thread(self._encoder.probe)
            except Exception as e:  # noqa: BLE001
                self._logger.warning(f"Codec probe failed: {e}")
                report.codec_available = False

            report.directories_accessible = await asyncio.to_thread(self._directories_accessible)

            if self.cdn_enabled:
                report.cdn_reachable = await asyncio.to_thread(self._publisher.ping)

            probes_ok = report.codec_available and report.directories_accessible
            if self.cdn_enabled:
                probes_ok = probes_ok and report.cdn_reachable
            report.status = "healthy" if probes_ok else "degraded"
            return report
        except Exception as e:  # noqa: BLE001
            self._logger.error(f"Health check failed: {e}")
            return HealthReport(status="unhealthy", error=str(e))


class ServiceFactory:
    """Factory for creating a fully wired service."""

    @staticmethod
    def create_service(
        config: Optional[ServiceConfig] = None,
        cdn_client: Optional[CDNClientProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        enable_metrics: bool = True,
    ) -> ImageDerivationService:
        """Create a service, reading any missing configuration from the environment."""
        if config is None:
            config = ServiceConfig.from_env()

        if logger is None:
            logger = LoggerFactory.create_logger("image-derivatives", debug=config.debug)

        return ImageDerivationService(
            config=config,
            logger=logger,
            cdn_client=cdn_client,
            metrics_collector=LoggerFactory.create_metrics_collector(enable_metrics),
        )


def batch_items(paths: Sequence[PathLike]) -> list:
    """Batch items for local files, using each file's own name as the upload name."""
    return [BatchItem(local_path=Path(p), original_filename=Path(p).name) for p in paths]
