"""AsyncIO batch coordinator - runs the derivation pipeline with a concurrency ceiling."""

import asyncio
import time
from typing import List, Optional, Sequence

from ..core import get_logger
from ..core.error_handling import BatchOperationContextManager
from ..core.exceptions import ConfigurationError, DerivationError
from ..core.models import BatchEntry, BatchItem, BatchResult, ItemError, PipelineStage
from .pipeline import DerivationPipeline


def to_item_error(item: BatchItem, exc: BaseException) -> ItemError:
    """Describe a failed item; pipeline errors keep their stage and root cause."""
    if isinstance(exc, DerivationError):
        return ItemError(
            source_path=item.local_path,
            original_filename=item.original_filename,
            stage=PipelineStage(exc.stage),
            error=str(exc.cause),
            error_type=type(exc.cause).__name__,
        )
    return ItemError(
        source_path=item.local_path,
        original_filename=item.original_filename,
        error=str(exc),
        error_type=type(exc).__name__,
    )


class BatchCoordinator:
    """
    Derives many uploads concurrently, at most ``concurrency`` at a time.

    Results are written into slots indexed by submission order, so the
    returned BatchResult lines up with the input no matter which item
    finishes first. A failing item becomes an ItemError in its slot; it never
    cancels its siblings.
    """

    def __init__(self, pipeline: DerivationPipeline, concurrency: int = 3):
        if concurrency < 1:
            raise ConfigurationError(f"Concurrency must be at least 1, got {concurrency}")
        self._pipeline = pipeline
        self._concurrency = concurrency
        self._logger = get_logger("image-derivatives.batch")

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def process_batch(self, items: Sequence[BatchItem]) -> BatchResult:
        """Process every item and return one entry per item, in input order."""
        start_time = time.time()
        total = len(items)
        results: List[Optional[BatchEntry]] = [None] * total
        semaphore = asyncio.Semaphore(self._concurrency)
        completed = 0

        self._logger.info(
            f"Starting batch processing of {total} images (concurrency={self._concurrency})"
        )

        with BatchOperationContextManager(f"Batch of {total} images") as batch_errors:

            async def process_with_semaphore(index: int, item: BatchItem) -> None:
                nonlocal completed
                async with semaphore:
                    try:
                        results[index] = await self._pipeline.derive(
                            item.local_path, item.original_filename, item.base_name
                        )
                    except Exception as exc:  # noqa: BLE001
                        results[index] = to_item_error(item, exc)
                        batch_errors.add_error(str(exc), item.original_filename)
                    completed += 1
                    self._logger.debug(f"Processed {completed}/{total}: {item.original_filename}")

            await asyncio.gather(
                *(process_with_semaphore(i, item) for i, item in enumerate(items))
            )

        batch_result = BatchResult(results=results, processing_time=time.time() - start_time)
        self._logger.info(
            f"Batch processing complete: {batch_result.success_count} succeeded, "
            f"{batch_result.error_count} failed"
        )
        return batch_result


def process_batch(
    batch: Sequence[BatchItem], pipeline: DerivationPipeline, concurrency: int = 3
) -> BatchResult:
    """
    Process a batch of uploads using asyncio.

    This is the synchronous wrapper that runs the async coordinator.

    Args:
        batch: Uploads to derive
        pipeline: Pipeline used for every item
        concurrency: Maximum number of items derived at once

    Returns:
        BatchResult in submission order
    """
    return asyncio.run(BatchCoordinator(pipeline, concurrency).process_batch(batch))
