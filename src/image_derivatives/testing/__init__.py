"""Testing utilities and fakes for the image derivatives service."""

from .fakes import (
    CDNAsset,
    FakeCDNClient,
    FakeLogger,
    create_test_image,
    write_test_image,
)

__all__ = [
    "CDNAsset",
    "FakeCDNClient",
    "FakeLogger",
    "create_test_image",
    "write_test_image",
]
