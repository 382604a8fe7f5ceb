"""Image derivatives: optimized masters, thumbnails and alt-format variants, published to a CDN."""

__version__ = "0.1.0"
