"""Async processors: the per-image derivation pipeline and the batch coordinator."""

from .pipeline import DerivationPipeline
from .asyncio_processor import BatchCoordinator, process_batch, to_item_error

__all__ = [
    "DerivationPipeline",
    "BatchCoordinator",
    "process_batch",
    "to_item_error",
]
