"""A synchronous client for S3-compatible object stores.

This package signs and sends bucket and object requests, walks paginated
listings lazily, uploads arbitrary streams with the multipart protocol and
turns every failure into a typed exception.

Key Features:
    - Bucket create/delete, object put/get/delete
    - Streaming and buffered object bodies
    - Lazy ListObjectsV2 iteration
    - Multipart uploads of unbounded streams
    - Typed error taxonomy (UserError, StoreError, TransportError,
      InternalError)
    - CLI interface

Recommended Usage:
    >>> from strois import Client
    >>> client = Client.from_options(
    ...     endpoint_url="http://localhost:9000",
    ...     access_key="minioadmin",
    ...     secret_key="minioadmin",
    ... )
    >>> bucket = client.bucket("tamo")
    >>> bucket.put_object("greeting", "kero")
    >>> bucket.get_object_string("greeting")
    'kero'
    >>> for entry in bucket.list_objects(""):
    ...     print(entry.key, entry.size)
"""

__version__ = "0.1.0"

from .core.exceptions import (
    ConfigurationError,
    InternalError,
    PartLimitExceededError,
    PayloadNotUtf8Error,
    StroisError,
    TransportError,
    UserError,
)
from .objectstorage import (
    SINGLE_PUT_THRESHOLD,
    AddressingStyle,
    Bucket,
    Client,
    ClientConfig,
    Credentials,
    MultipartUpload,
    ObjectEntry,
    ObjectListing,
    S3ErrorCode,
    StoreError,
)

__all__ = [
    # Client
    "AddressingStyle",
    "Bucket",
    "Client",
    "ClientConfig",
    "Credentials",
    "MultipartUpload",
    "ObjectEntry",
    "ObjectListing",
    "SINGLE_PUT_THRESHOLD",
    # Errors
    "StroisError",
    "UserError",
    "ConfigurationError",
    "PartLimitExceededError",
    "PayloadNotUtf8Error",
    "StoreError",
    "S3ErrorCode",
    "TransportError",
    "InternalError",
]
