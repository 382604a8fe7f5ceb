"""Image services: metadata reading, variant encoding and retention sweeping."""

import asyncio
import io
import os
import time
from datetime import timedelta
from pathlib import Path
from typing import Optional, Sequence, Tuple, Dict, Any

from PIL import Image, ImageOps, features

from .error_handling import with_error_handling
from .exceptions import CleanupError, EncodeError
from .image_utils import PathLike, calculate_savings, fit_inside, has_alpha_channel, read_image_metadata
from .models import EncodeSettings, EncodeStats, ImageMetadata
from .protocols import LoggerProtocol

RESAMPLE = Image.Resampling.LANCZOS


def prepare_mode(img: Image.Image, format_type: str) -> Image.Image:
    """Convert ``img`` to a mode the target encoder accepts."""
    if format_type == "JPEG" and img.mode not in ("RGB", "L", "CMYK"):
        return img.convert("RGB")
    if format_type == "WEBP" and img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if has_alpha_channel(img) else "RGB")
    if format_type == "PNG" and img.mode == "CMYK":
        return img.convert("RGB")
    return img


class MetadataReader:
    """Reads intrinsic image properties."""

    def __init__(self, logger: LoggerProtocol):
        self._logger = logger

    def read(self, path: PathLike) -> ImageMetadata:
        """Read metadata; raises UnreadableImageError for unparseable files."""
        metadata = read_image_metadata(path)
        self._logger.debug(
            f"Read metadata for {Path(path).name}",
            width=metadata.width,
            height=metadata.height,
            format=metadata.format,
        )
        return metadata


class VariantEncoder:
    """Produces encoded image files according to the configured encode policy."""

    def __init__(self, settings: EncodeSettings, logger: LoggerProtocol):
        self._settings = settings
        self._logger = logger

    @property
    def settings(self) -> EncodeSettings:
        return self._settings

    def resolve_format(
        self,
        target_path: Path,
        target_format: Optional[str] = None,
        source_format: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        """
        Pick the Pillow format name and save parameters for an output file.

        An explicit ``target_format`` wins over the file extension. Formats
        without a profile are written with Pillow's defaults.
        """
        profile = self._settings.profile_for(target_format or target_path.suffix)
        if profile is not None:
            return profile.format, profile.save_params(quality)
        if target_format:
            return target_format.upper(), {}
        registered = Image.registered_extensions().get(target_path.suffix.lower())
        return registered or source_format or "PNG", {}

    @with_error_handling(EncodeError)
    def encode(
        self,
        source_path: PathLike,
        target_path: PathLike,
        max_width: Optional[int] = None,
        max_height: Optional[int] = None,
        quality: Optional[int] = None,
        target_format: Optional[str] = None,
    ) -> EncodeStats:
        """
        Write an optimized copy of ``source_path`` to ``target_path``.

        Orientation is applied first, then the image is shrunk to fit inside
        the ``max_width x max_height`` box if it exceeds it (never enlarged),
        then it is encoded with the profile for the target format.

        Returns:
            EncodeStats with original and output byte sizes

        Raises:
            EncodeError: If decoding, resizing or writing fails
        """
        source = Path(source_path)
        target = Path(target_path)
        max_width = max_width or self._settings.max_width
        max_height = max_height or self._settings.max_height

        with Image.open(source) as img:
            source_format = img.format
            image = ImageOps.exif_transpose(img)

            if image.width > max_width or image.height > max_height:
                new_size = fit_inside(image.width, image.height, max_width, max_height)
                self._logger.debug(
                    f"Resizing {source.name} from {image.width}x{image.height} to {new_size[0]}x{new_size[1]}"
                )
                image = image.resize(new_size, RESAMPLE)

            format_type, params = self.resolve_format(target, target_format, source_format, quality)
            prepare_mode(image, format_type).save(target, format=format_type, **params)

        original_size = source.stat().st_size
        optimized_size = target.stat().st_size
        savings = calculate_savings(original_size, optimized_size)
        self._logger.info(f"Optimized {source.name} - {savings} size reduction")

        return EncodeStats(
            original_size=original_size,
            optimized_size=optimized_size,
            savings=savings,
            output_path=target,
        )

    @with_error_handling(EncodeError)
    def generate_thumbnail(
        self,
        source_path: PathLike,
        target_path: PathLike,
        width: Optional[int] = None,
        height: Optional[int] = None,
        fit: Optional[str] = None,
    ) -> Path:
        """Fit the image to the thumbnail box and write it as a progressive JPEG."""
        profile = self._settings.thumbnail
        size = (width or profile.width, height or profile.height)
        fit = fit or profile.fit
        target = Path(target_path)

        with Image.open(source_path) as img:
            image = ImageOps.exif_transpose(img)
            if fit == "cover":
                thumb = ImageOps.fit(image, size, RESAMPLE)
            elif fit == "fill":
                thumb = image.resize(size, RESAMPLE)
            elif fit == "inside":
                thumb = image.copy()
                thumb.thumbnail(size, RESAMPLE)
            else:
                raise ValueError(f"Unknown fit mode: {fit}")

            prepare_mode(thumb, "JPEG").save(
                target, format="JPEG", quality=profile.quality, progressive=True
            )

        self._logger.info(f"Generated thumbnail: {target.name}")
        return target

    @with_error_handling(EncodeError)
    def generate_alt_format(
        self, source_path: PathLike, target_path: PathLike, quality: Optional[int] = None
    ) -> Path:
        """Re-encode an already optimized image into the modern lossy format."""
        profile = self._settings.webp
        target = Path(target_path)

        with Image.open(source_path) as img:
            prepare_mode(img, profile.format).save(
                target, format=profile.format, **profile.save_params(quality)
            )

        self._logger.info(f"Generated {profile.format}: {target.name}")
        return target

    def probe(self) -> bool:
        """Encode a blank image in memory to prove the codecs work."""
        buffer = io.BytesIO()
        Image.new("RGB", (100, 100), (255, 255, 255)).save(buffer, format="PNG")
        return buffer.tell() > 0 and features.check("webp")


class RetentionSweeper:
    """Deletes derived artifacts older than a retention window."""

    def __init__(self, directories: Sequence[PathLike], logger: LoggerProtocol):
        self._directories = [Path(d) for d in directories]
        self._logger = logger

    def sweep(self, max_age: timedelta, now: Optional[float] = None) -> int:
        """
        Delete files whose modification time is strictly older than ``now - max_age``.

        Directories are scanned without recursion. Errors on a single file or
        directory are logged and skipped.

        Returns:
            Number of files deleted across all directories
        """
        cutoff = (time.time() if now is None else now) - max_age.total_seconds()
        deleted_count = 0

        for directory in self._directories:
            try:
                with os.scandir(directory) as entries:
                    for entry in entries:
                        try:
                            if not entry.is_file(follow_symlinks=False):
                                continue
                            if entry.stat(follow_symlinks=False).st_mtime < cutoff:
                                os.unlink(entry.path)
                                deleted_count += 1
                        except OSError as exc:
                            self._report(CleanupError(f"Could not remove {entry.path}: {exc}"))
            except OSError as exc:
                self._report(CleanupError(f"Error cleaning directory {directory}: {exc}"))

        self._logger.info(f"Cleaned up {deleted_count} old image files")
        return deleted_count

    async def sweep_async(self, max_age: timedelta, now: Optional[float] = None) -> int:
        """Run :meth:`sweep` without blocking the event loop."""
        return await asyncio.to_thread(self.sweep, max_age, now)

    def _report(self, error: CleanupError) -> None:
        self._logger.warning(str(error), error_type=type(error).__name__)
