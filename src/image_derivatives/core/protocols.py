"""Protocol definitions for dependency injection and testability."""

from typing import Any, Dict, Protocol


class CDNClientProtocol(Protocol):
    """Protocol for the CDN provider boundary."""

    def upload(self, file_path: str, **options: Any) -> Dict[str, Any]:
        """Upload a local file; returns the provider's upload response."""
        ...

    def destroy(self, public_id: str) -> Dict[str, Any]:
        """Delete a remote asset."""
        ...

    def url(self, public_id: str, transformation: str = "") -> str:
        """Build a delivery URL; never touches the network."""
        ...

    def ping(self) -> Dict[str, Any]:
        """Reachability probe."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...
