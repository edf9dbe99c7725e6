"""S3 client configuration and request execution."""

from .s3_client import (
    DEFAULT_CHUNK_SIZE,
    MAX_PART_SIZE,
    MIN_PART_SIZE,
    Client,
    ClientConfig,
    resolve_credentials,
)

__all__ = [
    "Client",
    "ClientConfig",
    "resolve_credentials",
    "DEFAULT_CHUNK_SIZE",
    "MIN_PART_SIZE",
    "MAX_PART_SIZE",
]
