"""Image utilities for the image derivatives service."""

import os
import secrets
import time
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import ExifTags, Image, UnidentifiedImageError

from .exceptions import UnreadableImageError
from .models import ImageMetadata

PathLike = Union[str, os.PathLike]

_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")


def has_alpha_channel(img: Image.Image) -> bool:
    """True when the image carries transparency, either as a band or a palette entry."""
    if img.mode in _ALPHA_MODES:
        return True
    return img.mode == "P" and "transparency" in img.info


def read_image_metadata(path: PathLike) -> ImageMetadata:
    """
    Read intrinsic properties of an image without decoding its pixels.

    Args:
        path: Location of the source image

    Returns:
        ImageMetadata for the file

    Raises:
        UnreadableImageError: If Pillow cannot identify or parse the file
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            orientation = img.getexif().get(ExifTags.Base.Orientation, 1)
            density = img.info.get("dpi")
            metadata = ImageMetadata(
                width=width,
                height=height,
                format=(img.format or "unknown").lower(),
                size=os.path.getsize(path),
                channels=len(img.getbands()),
                density=tuple(float(v) for v in density) if density else None,
                has_alpha=has_alpha_channel(img),
                orientation=int(orientation) if orientation else 1,
            )
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise UnreadableImageError(f"Could not read image metadata from {path}: {exc}") from exc

    return metadata


def fit_inside(
    width: int, height: int, max_width: int, max_height: int
) -> Tuple[int, int]:
    """
    Size that fits ``width x height`` inside the box, keeping aspect ratio.

    Never enlarges: an image already inside the box keeps its size.
    """
    if width <= max_width and height <= max_height:
        return width, height

    scale = min(max_width / width, max_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def calculate_savings(original_size: int, optimized_size: int) -> str:
    """Percentage of bytes saved, rounded to one decimal (``"60.0%"``)."""
    if original_size <= 0:
        return "0.0%"
    return f"{(original_size - optimized_size) / original_size * 100:.1f}%"


def generate_filename(
    original_name: str, suffix: str = "", extension: Optional[str] = None
) -> str:
    """
    Build a collision-resistant filename for a derived artifact.

    The result is ``{stem}_{epoch_ms}_{random_hex}{suffix}{ext}``; the original
    extension is kept unless ``extension`` replaces it.

    Args:
        original_name: Uploaded filename (directories are ignored)
        suffix: Role suffix such as ``"_opt"``
        extension: Replacement extension, with or without the leading dot

    Returns:
        The generated filename
    """
    original = Path(original_name)
    ext = original.suffix
    if extension is not None:
        ext = extension if extension.startswith(".") else f".{extension}"
    timestamp = int(time.time() * 1000)
    token = secrets.token_hex(6)
    return f"{original.stem}_{timestamp}_{token}{suffix}{ext}"
