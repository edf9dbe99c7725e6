"""S3 client configuration and request execution.

This module holds the :class:`ClientConfig` validated at construction time
and the :class:`Client` that signs, sends and classifies every request
issued by buckets, multipart sessions and listings.

Authentication Methods Supported:
    1. Explicit credentials (access_key, secret_key)
    2. Temporary credentials (session_token on top of 1.)
    3. AWS CLI profiles (aws_profile), resolved once through boto3

S3-Compatible Services:
    Any endpoint speaking the S3 REST API (AWS, MinIO, Ceph RGW, ...) with
    either path-style or virtual-host-style addressing.
"""

from typing import TYPE_CHECKING, Any, Mapping, Optional
from urllib.parse import urlsplit

import boto3
from botocore.exceptions import BotoCoreError
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from strois.core import get_logger, get_tracer
from strois.core.exceptions import ConfigurationError

from ..errors import is_success, raise_for_status
from ..signing import AddressingStyle, Credentials, S3Action, SignedRequest, Signer
from ..transport import HttpRequest, HttpResponse, RequestBody, RequestsTransport, Transport

if TYPE_CHECKING:
    from ..bucket import Bucket

logger = get_logger(__name__)
tracer = get_tracer(__name__)

MIB = 1024 * 1024
# Smallest part S3 accepts for every part but the last one
MIN_PART_SIZE = 5 * MIB
MAX_PART_SIZE = 5 * 1024 * MIB
DEFAULT_CHUNK_SIZE = 25 * MIB
# SigV4 presigned URLs cannot outlive seven days
MAX_EXPIRES_IN = 7 * 24 * 60 * 60


class ClientConfig(BaseModel):
    """Configuration for S3 client connections.

    Example:
        # Explicit credentials against a local MinIO
        config = ClientConfig(
            endpoint_url="http://localhost:9000",
            access_key="minioadmin",
            secret_key="minioadmin",
        )

        # AWS profile, virtual-host addressing
        config = ClientConfig(
            endpoint_url="https://s3.eu-central-1.amazonaws.com",
            region="eu-central-1",
            aws_profile="my-profile",
            addressing_style="virtual",
        )
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    endpoint_url: str = Field(
        "http://localhost:9000", description="Base URL of the S3 endpoint"
    )
    region: str = Field("us-east-1", description="Region used in signatures")
    access_key: Optional[str] = Field(None, description="Access key ID")
    secret_key: Optional[str] = Field(None, description="Secret access key")
    session_token: Optional[str] = Field(
        None, description="Session token for temporary credentials"
    )
    aws_profile: Optional[str] = Field(
        None, description="AWS CLI profile used when no explicit key is given"
    )
    addressing_style: AddressingStyle = Field(
        AddressingStyle.PATH, description="Path-style or virtual-host-style URLs"
    )
    actions_expires_in: int = Field(
        3600, ge=1, le=MAX_EXPIRES_IN, description="Signature validity in seconds"
    )
    timeout: float = Field(60.0, gt=0, description="Per-request timeout in seconds")
    multipart_chunk_size: int = Field(
        DEFAULT_CHUNK_SIZE,
        ge=MIN_PART_SIZE,
        le=MAX_PART_SIZE,
        description="Part size used by multipart uploads",
    )
    abort_on_error: bool = Field(
        False, description="Abort multipart uploads when a step fails"
    )

    @field_validator("endpoint_url")
    @classmethod
    def _check_endpoint_url(cls, value: str) -> str:
        parsed = urlsplit(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(
                f"must be an absolute http(s) URL with a host, got '{value}'"
            )
        return value

    @model_validator(mode="after")
    def _check_credentials(self) -> "ClientConfig":
        if self.aws_profile:
            return self
        if not self.access_key:
            raise ValueError("access_key is required unless aws_profile is set")
        if not self.secret_key:
            raise ValueError("secret_key is required unless aws_profile is set")
        return self

    @classmethod
    def create(cls, **options: Any) -> "ClientConfig":
        """Validate ``options`` into a config.

        Raises:
            ConfigurationError: Naming the first missing or invalid field
        """
        try:
            return cls(**options)
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            field = location or _field_from_message(first.get("msg", ""))
            message = first.get("msg", str(e))
            raise ConfigurationError(
                f"Invalid client configuration: {field}: {message}"
                if field
                else f"Invalid client configuration: {message}",
                field=field or None,
            ) from e


def _field_from_message(message: str) -> str:
    for name in ("access_key", "secret_key"):
        if name in message:
            return name
    return ""


def resolve_credentials(config: ClientConfig) -> Credentials:
    """Resolve the credential set described by ``config``.

    Raises:
        ConfigurationError: If the profile cannot be loaded
    """
    if config.access_key and config.secret_key:
        return Credentials(
            access_key=config.access_key,
            secret_key=config.secret_key,
            session_token=config.session_token,
        )

    try:
        session = boto3.Session(profile_name=config.aws_profile)
        found = session.get_credentials()
    except BotoCoreError as e:
        raise ConfigurationError(
            f"Could not load AWS profile '{config.aws_profile}': {e}",
            field="aws_profile",
        ) from e

    if found is None:
        raise ConfigurationError(
            f"AWS profile '{config.aws_profile}' has no credentials",
            field="aws_profile",
        )

    frozen = found.get_frozen_credentials()
    logger.info("Credentials resolved from profile", profile=config.aws_profile)
    return Credentials(
        access_key=frozen.access_key,
        secret_key=frozen.secret_key,
        session_token=frozen.token,
    )


class Client:
    """Signs, sends and classifies S3 requests.

    A client is immutable once built and can be shared by any number of
    buckets and threads.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[Transport] = None,
    ):
        """Initialize the client.

        Args:
            config: Validated client configuration
            transport: HTTP transport; a ``requests`` based one by default
        """
        self.config = config
        self.credentials = resolve_credentials(config)
        self.signer = Signer(config.endpoint_url, config.region, config.addressing_style)
        self.transport: Transport = transport or RequestsTransport(config.timeout)
        logger.info(
            "S3 client initialized",
            endpoint_url=config.endpoint_url,
            region=config.region,
            addressing_style=config.addressing_style.value,
        )

    @classmethod
    def from_options(
        cls, transport: Optional[Transport] = None, **options: Any
    ) -> "Client":
        """Validate ``options`` and build a client in one step."""
        return cls(ClientConfig.create(**options), transport=transport)

    def __repr__(self) -> str:
        return (
            f"Client(endpoint_url={self.config.endpoint_url!r}, "
            f"region={self.config.region!r}, credentials={self.credentials!r})"
        )

    def bucket(self, name: str) -> "Bucket":
        """Return a handle on bucket ``name``.

        This does not create the bucket on the store; see ``Bucket.create``.
        """
        from ..bucket import Bucket

        return Bucket(client=self, name=name)

    def sign(self, action: S3Action, expires_in: Optional[int] = None) -> SignedRequest:
        """Presign ``action`` with this client's credentials."""
        return self.signer.sign(
            action,
            self.credentials,
            expires_in if expires_in is not None else self.config.actions_expires_in,
        )

    def execute(
        self,
        action: S3Action,
        body: RequestBody = None,
        headers: Optional[Mapping[str, str]] = None,
        stream: bool = False,
    ) -> HttpResponse:
        """Sign and send ``action``, raising the classified error on failure.

        Args:
            action: The call to perform
            body: Request payload
            headers: Extra request headers (never signed)
            stream: Leave the response body on the wire

        Returns:
            The successful response; close it when done with a streamed body

        Raises:
            StoreError: If the store rejected the request
            TransportError: If the HTTP exchange failed
            InternalError: If the error body could not be read
        """
        signed = self.sign(action)
        request = HttpRequest(
            method=signed.method,
            url=signed.url,
            headers={**signed.headers, **(headers or {})},
            body=body,
        )

        with tracer.start_as_current_span(f"s3.{action.method}") as span:
            span.set_attribute("s3.action", action.name)
            if action.bucket is not None:
                span.set_attribute("s3.bucket", action.bucket)
            if action.key is not None:
                span.set_attribute("s3.key", action.key)

            response = self.transport.send(request, stream=stream)
            span.set_attribute("http.status_code", response.status)

        if is_success(response.status):
            return response

        with response:
            error_body = response.read()
        logger.debug(
            "S3 request rejected",
            action=action.name,
            bucket=action.bucket,
            key=action.key,
            status=response.status,
        )
        raise_for_status(response.status, error_body)
        return response
