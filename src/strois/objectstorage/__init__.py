"""Object storage operations for S3-compatible services."""

from .bucket import SINGLE_PUT_THRESHOLD, Bucket
from .clients import Client, ClientConfig
from .errors import S3ErrorCode, StoreError, classify
from .listing import ListingState, ObjectListing
from .multipart import MAX_PARTS, CompletedPart, MultipartUpload, upload_multipart
from .signing import AddressingStyle, Credentials, S3Action, SignedRequest, Signer
from .transport import HttpRequest, HttpResponse, RequestsTransport, Transport
from .xml_codec import ErrorBody, ListPage, ObjectEntry

__all__ = [
    "AddressingStyle",
    "Bucket",
    "Client",
    "ClientConfig",
    "CompletedPart",
    "Credentials",
    "ErrorBody",
    "HttpRequest",
    "HttpResponse",
    "ListPage",
    "ListingState",
    "MAX_PARTS",
    "MultipartUpload",
    "ObjectEntry",
    "ObjectListing",
    "RequestsTransport",
    "S3Action",
    "S3ErrorCode",
    "SINGLE_PUT_THRESHOLD",
    "SignedRequest",
    "Signer",
    "StoreError",
    "Transport",
    "classify",
    "upload_multipart",
]
