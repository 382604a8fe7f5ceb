"""Fake implementations for testing purposes."""

import io
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from dataclasses import dataclass, field
from PIL import Image


@dataclass
class CDNAsset:
    """Fake remote asset for testing."""

    public_id: str
    source_path: str
    folder: str = ""
    options: Dict[str, Any] = field(default_factory=dict)
    format: str = ""
    width: int = 0
    height: int = 0
    size: int = 0
    version: int = 1


class FakeCDNClient:
    """Fake CDN client implementing CDNClientProtocol."""

    def __init__(self, cloud_name: str = "demo"):
        self.cloud_name = cloud_name
        self.assets: Dict[str, CDNAsset] = {}
        self.upload_calls: List[Dict[str, Any]] = []
        self.destroy_calls: List[str] = []
        self.operation_count = 0
        self.should_fail = False
        self.failure_message = "Simulated CDN failure"
        self.failure_exception: Optional[Exception] = None
        self.fail_on: Set[str] = set()
        self.ping_fails = False
        self.delay_seconds = 0.0

    def set_failure_mode(
        self, should_fail: bool, message: str = "Simulated failure"
    ) -> None:
        """Configure failure mode for testing error handling."""
        self.should_fail = should_fail
        self.failure_message = message

    def fail_uploads_matching(self, *fragments: str) -> None:
        """Make uploads whose public id contains any fragment fail."""
        self.fail_on.update(fragments)

    def set_delay(self, seconds: float) -> None:
        """Set artificial delay for every remote call."""
        self.delay_seconds = seconds

    def _maybe_fail(self) -> None:
        self.operation_count += 1
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)
        if self.failure_exception is not None:
            raise self.failure_exception
        if self.should_fail:
            raise Exception(self.failure_message)

    def upload(self, file_path: str, **options: Any) -> Dict[str, Any]:
        """Store the upload and answer like the provider would."""
        self.upload_calls.append({"file_path": file_path, **options})
        self._maybe_fail()

        public_id = options.get("public_id") or Path(file_path).stem
        if any(fragment in public_id for fragment in self.fail_on):
            raise Exception(f"Upload rejected for {public_id}")

        folder = options.get("folder", "")
        full_id = f"{folder}/{public_id}" if folder else public_id

        with Image.open(file_path) as img:
            width, height = img.size
            image_format = (img.format or "").lower().replace("jpeg", "jpg")

        previous = self.assets.get(full_id)
        if previous is not None and not options.get("overwrite", False):
            asset = previous
        else:
            asset = CDNAsset(
                public_id=full_id,
                source_path=file_path,
                folder=folder,
                options=dict(options),
                format=image_format,
                width=width,
                height=height,
                size=Path(file_path).stat().st_size,
                version=previous.version + 1 if previous else 1,
            )
            self.assets[full_id] = asset

        return {
            "public_id": asset.public_id,
            "secure_url": self._delivery_url(asset.public_id, version=asset.version, ext=asset.format),
            "format": asset.format,
            "width": asset.width,
            "height": asset.height,
            "bytes": asset.size,
            "version": asset.version,
        }

    def destroy(self, public_id: str) -> Dict[str, Any]:
        """Delete an asset."""
        self.destroy_calls.append(public_id)
        self._maybe_fail()
        if self.assets.pop(public_id, None) is None:
            return {"result": "not found"}
        return {"result": "ok"}

    def url(self, public_id: str, transformation: str = "") -> str:
        """Build a delivery URL in the provider's path syntax."""
        return self._delivery_url(public_id, transformation=transformation)

    def ping(self) -> Dict[str, Any]:
        """Reachability probe."""
        self.operation_count += 1
        if self.ping_fails:
            raise Exception("CDN unreachable")
        return {"status": "ok"}

    def _delivery_url(
        self, public_id: str, transformation: str = "", version: Optional[int] = None, ext: str = ""
    ) -> str:
        parts = [f"https://res.cloudinary.com/{self.cloud_name}/image/upload"]
        if transformation:
            parts.append(transformation)
        if version is not None:
            parts.append(f"v{version}")
        parts.append(f"{public_id}.{ext}" if ext else public_id)
        return "/".join(parts)


class FakeLogger:
    """Fake logger for testing with support for LogContext."""

    def __init__(self, name: str = "test_logger"):
        self.name = name
        self.logs: List[Dict[str, Any]] = []

    def _log(
        self, level: str, message: str, context: Any = None, **kwargs: Any
    ) -> None:
        """Internal logging method with context support."""
        log_entry = {
            "level": level,
            "message": message,
            "timestamp": time.time(),
            **kwargs,
        }

        if context is not None:
            if hasattr(context, "correlation_id"):
                log_entry["correlation_id"] = context.correlation_id
            if hasattr(context, "operation"):
                log_entry["operation"] = context.operation
            if hasattr(context, "component"):
                log_entry["component"] = context.component
            if hasattr(context, "metadata"):
                log_entry.update(context.metadata)

        self.logs.append(log_entry)

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        self._log("DEBUG", message, context, **kwargs)

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        self._log("INFO", message, context, **kwargs)

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        self._log("WARNING", message, context, **kwargs)

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        self._log("ERROR", message, context, **kwargs)

    def get_logs(self, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get logged messages, optionally filtered by level."""
        if level:
            return [log for log in self.logs if log["level"] == level]
        return self.logs.copy()

    def clear_logs(self) -> None:
        """Clear all logged messages."""
        self.logs.clear()


def create_test_image(
    width: int = 100,
    height: int = 100,
    format: str = "JPEG",
    mode: str = "RGB",
    orientation: Optional[int] = None,
) -> bytes:
    """Create a test image in memory, optionally tagged with an EXIF orientation."""
    color = (255, 0, 0, 128) if mode == "RGBA" else "red"
    image = Image.new(mode, (width, height), color=color)

    # Add a pattern so encoders have something to compress
    blue = (0, 0, 255, 255) if mode == "RGBA" else (0, 0, 255)
    for x in range(0, width, 20):
        for y in range(0, height, 20):
            if (x + y) % 40 == 0:
                image.paste(blue, (x, y, min(x + 10, width), min(y + 10, height)))

    save_kwargs: Dict[str, Any] = {}
    if format == "JPEG":
        save_kwargs["quality"] = 95
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        save_kwargs["exif"] = exif.tobytes()

    img_bytes = io.BytesIO()
    image.save(img_bytes, format=format, **save_kwargs)
    return img_bytes.getvalue()


def write_test_image(path: Path, width: int = 100, height: int = 100, **kwargs: Any) -> Path:
    """Write a generated test image to ``path`` and return it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(create_test_image(width, height, **kwargs))
    return path
