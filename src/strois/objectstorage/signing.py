"""Signed S3 actions.

An :class:`S3Action` describes one API call (method, bucket, key, query).
The :class:`Signer` turns it into a :class:`SignedRequest` whose URL carries
an AWS SigV4 query-string signature valid for a bounded time window.
Signature computation itself is delegated to botocore.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from botocore.auth import S3SigV4QueryAuth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials as BotocoreCredentials

from strois.core import get_logger

logger = get_logger(__name__)


class AddressingStyle(str, Enum):
    """Where the bucket name goes in request URLs."""

    PATH = "path"  # http://host/bucket/key
    VIRTUAL = "virtual"  # http://bucket.host/key


@dataclass(frozen=True)
class Credentials:
    """Access key, secret key and optional session token."""

    access_key: str
    secret_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class S3Action:
    """A single S3 API call, before signing."""

    name: str
    method: str
    bucket: Optional[str] = None
    key: Optional[str] = None
    query: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SignedRequest:
    """A ready-to-send request descriptor."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)


class Signer:
    """Builds and presigns URLs for one endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        region: str,
        addressing_style: AddressingStyle = AddressingStyle.PATH,
    ):
        parsed = urlsplit(endpoint_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Endpoint URL must be absolute: {endpoint_url}")

        self.endpoint_url = endpoint_url
        self.region = region
        self.addressing_style = AddressingStyle(addressing_style)
        self._scheme = parsed.scheme
        self._netloc = parsed.netloc
        self._base_path = parsed.path.rstrip("/")

        if self.addressing_style is AddressingStyle.VIRTUAL and parsed.hostname in (
            "localhost",
            "127.0.0.1",
        ):
            logger.warning(
                "Virtual host addressing rarely works against localhost",
                endpoint_url=endpoint_url,
            )

    def url_for(
        self,
        bucket: Optional[str],
        key: Optional[str] = None,
        query: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Build the unsigned URL of a bucket or object.

        Args:
            bucket: Bucket name, or None for service-level calls
            key: Object key, or None for bucket-level calls
            query: Query parameters of the call

        Returns:
            Absolute URL with the key percent-encoded
        """
        netloc = self._netloc
        path = self._base_path

        if bucket is not None:
            if self.addressing_style is AddressingStyle.VIRTUAL:
                netloc = f"{bucket}.{netloc}"
            else:
                path = f"{path}/{bucket}"

        if key is not None:
            path = f"{path}/{quote(key, safe='/')}"
        elif not path:
            path = "/"

        query_string = urlencode(dict(query or {}), quote_via=quote)
        return urlunsplit((self._scheme, netloc, path, query_string, ""))

    def sign(
        self, action: S3Action, credentials: Credentials, expires_in: int
    ) -> SignedRequest:
        """Presign ``action`` so it can be sent without further headers.

        Args:
            action: The call to sign
            credentials: Credentials proving the caller's identity
            expires_in: Validity of the signature, in seconds

        Returns:
            The signed request descriptor
        """
        url = self.url_for(action.bucket, action.key, action.query)
        request = AWSRequest(method=action.method, url=url)

        auth = S3SigV4QueryAuth(
            BotocoreCredentials(
                credentials.access_key,
                credentials.secret_key,
                credentials.session_token,
            ),
            "s3",
            self.region,
            expires=expires_in,
        )
        auth.add_auth(request)

        return SignedRequest(method=action.method, url=request.url)
