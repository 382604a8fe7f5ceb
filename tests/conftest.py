"""Shared fixtures for the image derivatives tests."""

import pytest

from image_derivatives.core.models import CDNConfig, ServiceConfig
from image_derivatives.service import ImageDerivationService
from image_derivatives.testing.fakes import FakeCDNClient, FakeLogger, write_test_image


@pytest.fixture
def logger():
    return FakeLogger()


@pytest.fixture
def cdn_client():
    return FakeCDNClient()


@pytest.fixture
def cdn_config():
    return CDNConfig(cloud_name="demo", api_key="key", api_secret="secret", retry_delay=0)


@pytest.fixture
def config(tmp_path):
    return ServiceConfig(uploads_dir=tmp_path / "uploads")


@pytest.fixture
def cdn_service_config(tmp_path, cdn_config):
    return ServiceConfig(uploads_dir=tmp_path / "uploads", cdn=cdn_config)


@pytest.fixture
def local_service(config, logger):
    """Service without CDN credentials."""
    return ImageDerivationService(config=config, logger=logger)


@pytest.fixture
def cdn_service(cdn_service_config, logger, cdn_client):
    """Service publishing to a fake CDN."""
    return ImageDerivationService(config=cdn_service_config, logger=logger, cdn_client=cdn_client)


@pytest.fixture
def sample_jpeg(tmp_path):
    return write_test_image(tmp_path / "incoming" / "photo.jpg", 400, 300)
