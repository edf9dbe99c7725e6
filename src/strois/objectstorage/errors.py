"""Classification of S3 error responses.

A non-2xx response from the store carries an XML ``<Error>`` document.
:func:`classify` turns the status and body into a typed exception:

* parseable body -> :class:`StoreError` with an :class:`S3ErrorCode`
* unparseable body -> :class:`InternalError` carrying the parse failure

Error codes form an open set: a code this module does not know about
becomes :attr:`S3ErrorCode.UNRECOGNIZED` while the raw text stays available
on :attr:`StoreError.raw_code`, so new store-side codes never break
callers.

Example:
    try:
        bucket.create()
    except StoreError as e:
        if e.code not in (
            S3ErrorCode.BUCKET_ALREADY_EXISTS,
            S3ErrorCode.BUCKET_ALREADY_OWNED_BY_YOU,
        ):
            raise
"""

from enum import Enum
from typing import Optional

from strois.core import get_logger
from strois.core.exceptions import InternalError, StroisError

from .xml_codec import ErrorBody, parse_error, root_tag

logger = get_logger(__name__)


class S3ErrorCode(str, Enum):
    """Error codes documented for the S3 API."""

    ACCESS_DENIED = "AccessDenied"
    ACCOUNT_PROBLEM = "AccountProblem"
    ALL_ACCESS_DISABLED = "AllAccessDisabled"
    AMBIGUOUS_GRANT_BY_EMAIL_ADDRESS = "AmbiguousGrantByEmailAddress"
    AUTHORIZATION_HEADER_MALFORMED = "AuthorizationHeaderMalformed"
    BAD_DIGEST = "BadDigest"
    BUCKET_ALREADY_EXISTS = "BucketAlreadyExists"
    BUCKET_ALREADY_OWNED_BY_YOU = "BucketAlreadyOwnedByYou"
    BUCKET_NOT_EMPTY = "BucketNotEmpty"
    CREDENTIALS_NOT_SUPPORTED = "CredentialsNotSupported"
    CROSS_LOCATION_LOGGING_PROHIBITED = "CrossLocationLoggingProhibited"
    ENTITY_TOO_SMALL = "EntityTooSmall"
    ENTITY_TOO_LARGE = "EntityTooLarge"
    EXPIRED_TOKEN = "ExpiredToken"
    ILLEGAL_VERSIONING_CONFIGURATION_EXCEPTION = (
        "IllegalVersioningConfigurationException"
    )
    INCOMPLETE_BODY = "IncompleteBody"
    INCORRECT_NUMBER_OF_FILES_IN_POST_REQUEST = "IncorrectNumberOfFilesInPostRequest"
    INLINE_DATA_TOO_LARGE = "InlineDataTooLarge"
    INVALID_ACCESS_KEY_ID = "InvalidAccessKeyId"
    INVALID_ADDRESSING_HEADER = "InvalidAddressingHeader"
    INVALID_ARGUMENT = "InvalidArgument"
    INVALID_BUCKET_NAME = "InvalidBucketName"
    INVALID_BUCKET_STATE = "InvalidBucketState"
    INVALID_DIGEST = "InvalidDigest"
    INVALID_LOCATION_CONSTRAINT = "InvalidLocationConstraint"
    INVALID_OBJECT_STATE = "InvalidObjectState"
    INVALID_PART = "InvalidPart"
    INVALID_PART_ORDER = "InvalidPartOrder"
    INVALID_PAYER = "InvalidPayer"
    INVALID_POLICY_DOCUMENT = "InvalidPolicyDocument"
    INVALID_RANGE = "InvalidRange"
    INVALID_REQUEST = "InvalidRequest"
    INVALID_SECURITY = "InvalidSecurity"
    INVALID_SOAP_REQUEST = "InvalidSOAPRequest"
    INVALID_STORAGE_CLASS = "InvalidStorageClass"
    INVALID_TARGET_BUCKET_FOR_LOGGING = "InvalidTargetBucketForLogging"
    INVALID_TOKEN = "InvalidToken"
    INVALID_URI = "InvalidURI"
    MALFORMED_POST_REQUEST = "MalformedPOSTRequest"
    MALFORMED_XML = "MalformedXML"
    MAX_MESSAGE_LENGTH_EXCEEDED = "MaxMessageLengthExceeded"
    METADATA_TOO_LARGE = "MetadataTooLarge"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    MISSING_ATTACHMENT = "MissingAttachment"
    MISSING_CONTENT_LENGTH = "MissingContentLength"
    MISSING_SECURITY_ELEMENT = "MissingSecurityElement"
    MISSING_SECURITY_HEADER = "MissingSecurityHeader"
    NO_LOGGING_STATUS_FOR_KEY = "NoLoggingStatusForKey"
    NO_SUCH_BUCKET = "NoSuchBucket"
    NO_SUCH_BUCKET_POLICY = "NoSuchBucketPolicy"
    NO_SUCH_KEY = "NoSuchKey"
    NO_SUCH_LIFECYCLE_CONFIGURATION = "NoSuchLifecycleConfiguration"
    NO_SUCH_UPLOAD = "NoSuchUpload"
    NO_SUCH_VERSION = "NoSuchVersion"
    NOT_IMPLEMENTED = "NotImplemented"
    NOT_SIGNED_UP = "NotSignedUp"
    OPERATION_ABORTED = "OperationAborted"
    PERMANENT_REDIRECT = "PermanentRedirect"
    PRECONDITION_FAILED = "PreconditionFailed"
    REDIRECT = "Redirect"
    RESTORE_ALREADY_IN_PROGRESS = "RestoreAlreadyInProgress"
    REQUEST_IS_NOT_MULTI_PART_CONTENT = "RequestIsNotMultiPartContent"
    REQUEST_TIMEOUT = "RequestTimeout"
    REQUEST_TIME_TOO_SKEWED = "RequestTimeTooSkewed"
    SIGNATURE_DOES_NOT_MATCH = "SignatureDoesNotMatch"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    SLOW_DOWN = "SlowDown"
    TEMPORARY_REDIRECT = "TemporaryRedirect"
    TOKEN_REFRESH_REQUIRED = "TokenRefreshRequired"
    TOO_MANY_BUCKETS = "TooManyBuckets"
    UNEXPECTED_CONTENT = "UnexpectedContent"
    UNRESOLVABLE_GRANT_BY_EMAIL_ADDRESS = "UnresolvableGrantByEmailAddress"
    USER_KEY_MUST_BE_SPECIFIED = "UserKeyMustBeSpecified"

    # Anything the store sends that is not listed above
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "S3ErrorCode":
        """Map a raw ``Code`` value to a member, never failing."""
        if not raw or raw == cls.UNRECOGNIZED.value:
            return cls.UNRECOGNIZED
        try:
            return cls(raw)
        except ValueError:
            return cls.UNRECOGNIZED


class StoreError(StroisError):
    """The store rejected a request with a structured error document."""

    def __init__(
        self,
        status_code: int,
        code: S3ErrorCode,
        raw_code: str = "",
        message: str = "",
        bucket_name: Optional[str] = None,
        resource: Optional[str] = None,
        request_id: Optional[str] = None,
        host_id: Optional[str] = None,
    ):
        self.status_code = status_code
        self.code = code
        self.raw_code = raw_code
        self.message = message
        self.bucket_name = bucket_name
        self.resource = resource
        self.request_id = request_id
        self.host_id = host_id
        super().__init__(str(self))

    @classmethod
    def from_body(cls, status_code: int, body: ErrorBody) -> "StoreError":
        """Build the error from a parsed ``<Error>`` document."""
        return cls(
            status_code=status_code,
            code=S3ErrorCode.parse(body.code),
            raw_code=body.code or "",
            message=body.message or "",
            bucket_name=body.bucket_name,
            resource=body.resource,
            request_id=body.request_id,
            host_id=body.host_id,
        )

    def __str__(self) -> str:
        code = self.raw_code or self.code.value
        target = self.bucket_name or self.resource
        if target:
            return f"{code}: {self.message} on {target}"
        return f"{code}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"StoreError(status_code={self.status_code}, code={self.code.value}, "
            f"raw_code={self.raw_code!r}, request_id={self.request_id!r})"
        )


def is_success(status: int) -> bool:
    """Return True for 2xx statuses."""
    return 200 <= status < 300


def classify(status: int, body: bytes) -> Optional[StroisError]:
    """Turn an HTTP status and body into a typed error.

    Args:
        status: HTTP status code
        body: Full response payload

    Returns:
        None for 2xx statuses, otherwise the error describing the failure:
        a StoreError when the body is an S3 error document, an InternalError
        when it cannot be read as one
    """
    if is_success(status):
        return None

    try:
        error_body = parse_error(body)
    except InternalError as e:
        logger.debug("Unreadable S3 error body", status=status, error=str(e))
        return InternalError(f"S3 answered HTTP {status} with an unreadable body: {e}")

    return StoreError.from_body(status, error_body)


def raise_for_status(status: int, body: bytes) -> None:
    """Raise the error classified from ``status`` and ``body``, if any."""
    error = classify(status, body)
    if error is not None:
        raise error


def raise_for_embedded_error(status: int, body: bytes) -> None:
    """Raise when a 2xx response still carries an ``<Error>`` document.

    CompleteMultipartUpload may fail after the store has already sent a
    200 status; the failure then only shows up in the body.
    """
    if root_tag(body) == "Error":
        raise StoreError.from_body(status, parse_error(body))
