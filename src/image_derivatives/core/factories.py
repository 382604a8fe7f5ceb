"""Factory classes for creating configured client and logger instances."""

from typing import Any, Dict, Optional

import cloudinary
import cloudinary.api
import cloudinary.uploader
import cloudinary.utils

from .models import CDNConfig
from .observability import (
    LogLevel,
    MetricsCollector,
    ObservabilityConfig,
    StructuredLogger,
    create_logger,
    create_metrics_collector,
)
from .protocols import CDNClientProtocol, LoggerProtocol


class CloudinaryClient:
    """Adapter exposing the Cloudinary SDK through CDNClientProtocol."""

    def __init__(self, config: CDNConfig):
        self._config = config
        cloudinary.config(
            cloud_name=config.cloud_name,
            api_key=config.api_key,
            api_secret=config.api_secret.get_secret_value(),
            secure=config.secure,
        )

    def upload(self, file_path: str, **options: Any) -> Dict[str, Any]:
        """Upload a local file."""
        return cloudinary.uploader.upload(file_path, **options)

    def destroy(self, public_id: str) -> Dict[str, Any]:
        """Delete a remote asset."""
        return cloudinary.uploader.destroy(public_id)

    def url(self, public_id: str, transformation: str = "") -> str:
        """Build a delivery URL with an on-the-fly transformation string."""
        options: Dict[str, Any] = {"secure": self._config.secure}
        if transformation:
            options["raw_transformation"] = transformation
        url, _ = cloudinary.utils.cloudinary_url(public_id, **options)
        return url

    def ping(self) -> Dict[str, Any]:
        """Reachability probe against the admin API."""
        return cloudinary.api.ping()


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "image-derivatives", debug: bool = False) -> StructuredLogger:
        """Create a structured logger; ``debug`` forces DEBUG level."""
        config = ObservabilityConfig(log_level=LogLevel.DEBUG if debug else None)
        return create_logger(name, config)

    @staticmethod
    def create_metrics_collector(enabled: bool = True) -> Optional[MetricsCollector]:
        return create_metrics_collector(ObservabilityConfig(enable_metrics=enabled))


class CDNClientFactory:
    """Factory for creating CDN client instances."""

    @staticmethod
    def create_client(
        config: Optional[CDNConfig], logger: Optional[LoggerProtocol] = None
    ) -> Optional[CDNClientProtocol]:
        """Create a Cloudinary client, or ``None`` when the CDN is not configured."""
        if config is None:
            if logger:
                logger.info("CDN not configured, using local storage")
            return None

        client = CloudinaryClient(config)
        if logger:
            logger.info("Cloudinary CDN configured", cloud_name=config.cloud_name)
        return client
