"""Tests for the batch coordinator."""

import asyncio
from pathlib import Path

import pytest

from image_derivatives.core.exceptions import ConfigurationError, DerivationError, UnreadableImageError
from image_derivatives.core.models import (
    ArtifactRole,
    BatchItem,
    DerivationResult,
    EncodeStats,
    ImageMetadata,
    ItemError,
    PipelineStage,
)
from image_derivatives.processors import BatchCoordinator, process_batch, to_item_error
from image_derivatives.testing.fakes import write_test_image


class RecordingPipeline:
    """Pipeline stand-in that records how many derivations overlap."""

    def __init__(self, delays=None, failures=()):
        self.delays = delays or {}
        self.failures = set(failures)
        self.active = 0
        self.peak = 0
        self.started = []
        self.base_names = []

    async def derive(self, source_path, original_filename, base_name=None):
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.started.append(original_filename)
        self.base_names.append(base_name)
        try:
            await asyncio.sleep(self.delays.get(original_filename, 0.01))
            if original_filename in self.failures:
                raise DerivationError(
                    PipelineStage.OPTIMIZE.value, OSError("disk full"), original_filename
                )
            return DerivationResult(
                source_path=Path(source_path),
                original_filename=original_filename,
                metadata=ImageMetadata(width=1, height=1, format="jpeg", size=1, channels=3),
                optimization_stats=EncodeStats(
                    original_size=1, optimized_size=1, savings="0.0%", output_path=Path("x")
                ),
            )
        finally:
            self.active -= 1


def _items(*names):
    return [BatchItem(local_path=Path(f"/uploads/{name}"), original_filename=name) for name in names]


class TestBatchCoordinator:
    """Tests for BatchCoordinator."""

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ConfigurationError):
            BatchCoordinator(RecordingPipeline(), concurrency=0)

    def test_empty_batch(self):
        result = asyncio.run(BatchCoordinator(RecordingPipeline()).process_batch([]))
        assert len(result) == 0
        assert result.success_count == 0

    def test_concurrency_ceiling(self):
        pipeline = RecordingPipeline()
        coordinator = BatchCoordinator(pipeline, concurrency=3)

        result = asyncio.run(coordinator.process_batch(_items(*(f"{i}.jpg" for i in range(10)))))

        assert len(result) == 10
        assert pipeline.peak == 3

    def test_sequential_with_concurrency_one(self):
        pipeline = RecordingPipeline()

        asyncio.run(BatchCoordinator(pipeline, concurrency=1).process_batch(_items("a.jpg", "b.jpg")))

        assert pipeline.peak == 1
        assert pipeline.started == ["a.jpg", "b.jpg"]

    def test_results_follow_input_order(self):
        # The first item finishes last
        pipeline = RecordingPipeline(delays={"slow.jpg": 0.1, "fast.jpg": 0.0})
        items = _items("slow.jpg", "fast.jpg", "medium.jpg")

        result = asyncio.run(BatchCoordinator(pipeline, concurrency=3).process_batch(items))

        assert [entry.original_filename for entry in result.results] == [
            "slow.jpg",
            "fast.jpg",
            "medium.jpg",
        ]

    def test_failure_isolated_in_its_slot(self):
        pipeline = RecordingPipeline(failures={"a.jpg"})

        result = asyncio.run(
            BatchCoordinator(pipeline, concurrency=1).process_batch(_items("a.jpg", "b.jpg", "c.jpg"))
        )

        first, second, third = result.results
        assert isinstance(first, ItemError)
        assert first.stage is PipelineStage.OPTIMIZE
        assert first.error == "disk full"
        assert first.error_type == "OSError"
        assert isinstance(second, DerivationResult)
        assert isinstance(third, DerivationResult)
        assert result.success_count == 2
        assert result.error_count == 1

    def test_unexpected_exception_becomes_item_error(self):
        class ExplodingPipeline:
            async def derive(self, source_path, original_filename, base_name=None):
                raise RuntimeError("boom")

        result = asyncio.run(BatchCoordinator(ExplodingPipeline()).process_batch(_items("a.jpg")))

        entry = result.results[0]
        assert isinstance(entry, ItemError)
        assert entry.stage is None
        assert entry.error_type == "RuntimeError"

    def test_sync_wrapper(self):
        result = process_batch(_items("a.jpg", "b.jpg"), RecordingPipeline(), concurrency=2)
        assert result.success_count == 2


class TestToItemError:
    """Tests for to_item_error."""

    def test_derivation_error_keeps_stage_and_cause(self):
        item = _items("a.jpg")[0]
        exc = DerivationError("metadata", UnreadableImageError("cannot identify"), "a.jpg")

        entry = to_item_error(item, exc)

        assert entry.stage is PipelineStage.METADATA
        assert entry.error == "cannot identify"
        assert entry.error_type == "UnreadableImageError"
        assert entry.success is False


class TestRealPipelineBatch:
    """Batch processing through a fully wired service."""

    def test_unreadable_first_item(self, tmp_path, local_service):
        broken = tmp_path / "incoming" / "a.jpg"
        broken.parent.mkdir(parents=True)
        broken.write_bytes(b"definitely not a jpeg")
        good_b = write_test_image(tmp_path / "incoming" / "b.jpg", 120, 90)
        good_c = write_test_image(tmp_path / "incoming" / "c.png", 90, 120, format="PNG")
        items = [
            BatchItem(local_path=broken, original_filename="a.jpg"),
            BatchItem(local_path=good_b, original_filename="b.jpg"),
            BatchItem(local_path=good_c, original_filename="c.png"),
        ]

        result = asyncio.run(local_service.process_batch(items))

        assert isinstance(result.results[0], ItemError)
        assert result.results[0].stage is PipelineStage.METADATA
        assert result.results[1].original_filename == "b.jpg"
        assert result.results[2].metadata.format == "png"
        assert result.success_count == 2

    def test_same_filename_with_distinct_base_names(self, tmp_path, cdn_service, cdn_client):
        first = write_test_image(tmp_path / "phone-a" / "photo.jpg", 120, 90)
        second = write_test_image(tmp_path / "phone-b" / "photo.jpg", 90, 120)
        items = [
            BatchItem(local_path=first, original_filename="photo.jpg", base_name="upload-1"),
            BatchItem(local_path=second, original_filename="photo.jpg", base_name="upload-2"),
        ]

        result = asyncio.run(cdn_service.process_batch(items))

        ids = [
            entry.published[ArtifactRole.OPTIMIZED].public_id for entry in result.results
        ]
        assert ids[0] != ids[1]
        assert ids[0].endswith("images/upload-1_optimized")
        assert ids[1].endswith("images/upload-2_optimized")
        assert len(cdn_client.assets) == 6
        assert result.results[0].published[ArtifactRole.OPTIMIZED].width == 120
        assert result.results[1].published[ArtifactRole.OPTIMIZED].width == 90

    def test_base_name_defaults_to_filename_stem(self, tmp_path, cdn_service, cdn_client):
        source = write_test_image(tmp_path / "cat.jpg", 60, 60)

        asyncio.run(cdn_service.process_batch([BatchItem(local_path=source, original_filename="cat.jpg")]))

        assert cdn_client.upload_calls[0]["public_id"] == "images/cat_optimized"


def test_batch_item_base_name_reaches_pipeline():
    pipeline = RecordingPipeline()
    items = [
        BatchItem(local_path=Path("/uploads/a.jpg"), original_filename="a.jpg", base_name="record-7"),
        BatchItem(local_path=Path("/uploads/b.jpg"), original_filename="b.jpg"),
    ]

    asyncio.run(BatchCoordinator(pipeline, concurrency=1).process_batch(items))

    assert pipeline.base_names == ["record-7", None]
