"""Derivation pipeline: one source image to an optimized master and its derivatives."""

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..core.exceptions import DerivationError
from ..core.image_utils import PathLike, generate_filename
from ..core.models import (
    ArtifactRole,
    DerivationResult,
    DerivedArtifact,
    PipelineStage,
    PipelineState,
    PublicationEntry,
    PublishFailure,
    ServiceConfig,
)
from ..core.observability import LogContext, MetricsCollector, PerformanceMetrics
from ..core.protocols import LoggerProtocol
from ..core.publisher import CDNPublisher
from ..core.services import MetadataReader, VariantEncoder

ROLE_SUFFIXES = {
    ArtifactRole.OPTIMIZED: "_opt",
    ArtifactRole.THUMBNAIL: "_thumb",
    ArtifactRole.ALT_FORMAT: "_webp",
}


class DerivationPipeline:
    """
    Runs the derivation steps for a single image, strictly in order.

    metadata -> optimized master -> thumbnail -> alt format -> publish.
    Every later step reads the optimized master, never the raw upload. A
    failing step raises DerivationError and leaves any files already written
    in place; the retention sweep removes them eventually.
    """

    def __init__(
        self,
        reader: MetadataReader,
        encoder: VariantEncoder,
        publisher: CDNPublisher,
        config: ServiceConfig,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._reader = reader
        self._encoder = encoder
        self._publisher = publisher
        self._config = config
        self._logger = logger
        self._metrics_collector = metrics_collector

    def artifact_paths(self, original_filename: str) -> Dict[ArtifactRole, Path]:
        """Fresh, collision-resistant output paths for each role."""
        alt_extension = f".{self._config.encode.webp.format.lower()}"
        return {
            ArtifactRole.OPTIMIZED: self._config.optimized_dir
            / generate_filename(original_filename, ROLE_SUFFIXES[ArtifactRole.OPTIMIZED]),
            ArtifactRole.THUMBNAIL: self._config.thumbnail_dir
            / generate_filename(original_filename, ROLE_SUFFIXES[ArtifactRole.THUMBNAIL]),
            ArtifactRole.ALT_FORMAT: self._config.alt_format_dir
            / generate_filename(
                original_filename, ROLE_SUFFIXES[ArtifactRole.ALT_FORMAT], extension=alt_extension
            ),
        }

    async def derive(
        self,
        source_path: PathLike,
        original_filename: str,
        base_name: Optional[str] = None,
    ) -> DerivationResult:
        """
        Derive and optionally publish all artifacts for one upload.

        Args:
            source_path: Local path of the uploaded file
            original_filename: Filename supplied by the uploader
            base_name: Remote naming base; defaults to the filename stem

        Returns:
            DerivationResult for the upload

        Raises:
            DerivationError: If metadata reading or any encode step fails
        """
        start_time = time.time()
        filename = Path(original_filename).name
        base_name = base_name or Path(filename).stem
        context = LogContext(
            correlation_id=f"img_{base_name}_{int(start_time * 1000)}",
            operation="derive",
            component="derivation_pipeline",
        ).with_metadata(filename=filename)
        paths = self.artifact_paths(filename)

        self._logger.info("Processing image", context, state=PipelineState.START.value)

        metadata = await self._run_stage(
            PipelineStage.METADATA, context, self._reader.read, source_path
        )
        self._transition(PipelineState.METADATA_READ, context)

        master = paths[ArtifactRole.OPTIMIZED]
        stats = await self._run_stage(
            PipelineStage.OPTIMIZE, context, self._encoder.encode, source_path, master
        )
        self._transition(PipelineState.MASTER_ENCODED, context)

        await self._run_stage(
            PipelineStage.THUMBNAIL,
            context,
            self._encoder.generate_thumbnail,
            master,
            paths[ArtifactRole.THUMBNAIL],
        )
        self._transition(PipelineState.THUMBNAIL_ENCODED, context)

        await self._run_stage(
            PipelineStage.ALT_FORMAT,
            context,
            self._encoder.generate_alt_format,
            master,
            paths[ArtifactRole.ALT_FORMAT],
        )
        self._transition(PipelineState.ALT_FORMAT_ENCODED, context)

        artifacts = [DerivedArtifact(local_path=path, role=role) for role, path in paths.items()]

        published: Dict[ArtifactRole, PublicationEntry] = {}
        if self._publisher.enabled:
            published = await self._publish(artifacts, base_name, context)
            self._transition(PipelineState.PUBLISHED, context)

        processing_time = time.time() - start_time
        self._record("derive", start_time, True)
        self._logger.info(
            "Image processing complete",
            context,
            state=PipelineState.DONE.value,
            processing_time_ms=round(processing_time * 1000, 1),
        )

        return DerivationResult(
            source_path=Path(source_path),
            original_filename=filename,
            metadata=metadata,
            artifacts=artifacts,
            published=published,
            optimization_stats=stats,
            processing_time=processing_time,
        )

    async def _run_stage(
        self, stage: PipelineStage, context: LogContext, func: Callable[..., Any], *args: Any
    ) -> Any:
        started = time.time()
        try:
            result = await asyncio.to_thread(func, *args)
        except Exception as exc:
            self._record(stage.value, started, False, str(exc))
            self._logger.error(
                f"Image processing failed: {exc}",
                context.with_operation(stage.value),
                state=PipelineState.FAILED.value,
            )
            raise DerivationError(stage.value, exc, filename=context.metadata.get("filename")) from exc

        self._record(stage.value, started, True)
        return result

    async def _publish(
        self, artifacts: list, base_name: str, context: LogContext
    ) -> Dict[ArtifactRole, PublicationEntry]:
        started = time.time()
        try:
            published = await self._publisher.publish_async(artifacts, base_name)
        except Exception as exc:  # noqa: BLE001
            # Local artifacts already exist; publication problems stay per role.
            self._logger.error(f"CDN publication failed: {exc}", context.with_operation("publish"))
            published = {
                artifact.role: PublishFailure(role=artifact.role, error=str(exc))
                for artifact in artifacts
            }
        success = all(not isinstance(entry, PublishFailure) for entry in published.values())
        self._record(PipelineStage.PUBLISH.value, started, success)
        return published

    def _transition(self, state: PipelineState, context: LogContext) -> None:
        self._logger.debug("State transition", context, state=state.value)

    def _record(
        self, operation: str, start_time: float, success: bool, error_message: Optional[str] = None
    ) -> None:
        if self._metrics_collector is None:
            return
        self._metrics_collector.record_metric(
            PerformanceMetrics(
                operation=operation,
                start_time=start_time,
                end_time=time.time(),
                success=success,
                error_message=error_message,
            )
        )
