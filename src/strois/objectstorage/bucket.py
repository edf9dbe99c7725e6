"""Bucket and object operations.

A :class:`Bucket` is a client reference plus a bucket name. It holds no
other state: every call builds and signs a fresh request, so copies of a
bucket are interchangeable.
"""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, BinaryIO, Optional, Union

from strois.core import get_logger
from strois.core.exceptions import PayloadNotUtf8Error, UserError

from .listing import ObjectListing
from .multipart import MultipartUpload, upload_multipart
from .signing import S3Action
from .transport import HttpResponse, SizedReader

if TYPE_CHECKING:
    from .clients import Client

logger = get_logger(__name__)

# Objects of known size below this go through a single PutObject
SINGLE_PUT_THRESHOLD = 5 * 1024 * 1024


@dataclass(frozen=True)
class Bucket:
    """Handle on one bucket of an S3-compatible store."""

    client: "Client"
    name: str

    def _action(
        self, name: str, method: str, key: Optional[str] = None, **query: str
    ) -> S3Action:
        return S3Action(
            name=name, method=method, bucket=self.name, key=key, query=query
        )

    # Bucket lifecycle

    def create(self) -> "Bucket":
        """Create the bucket on the store.

        Raises:
            StoreError: ``BucketAlreadyExists`` or ``BucketAlreadyOwnedByYou``
                when it is already there
        """
        with self.client.execute(self._action("CreateBucket", "PUT")):
            pass
        logger.info("Bucket created", bucket=self.name)
        return self

    def delete(self) -> None:
        """Delete the (empty) bucket from the store."""
        with self.client.execute(self._action("DeleteBucket", "DELETE")):
            pass
        logger.info("Bucket deleted", bucket=self.name)

    # Writes

    def put_object(self, key: str, content: Union[bytes, str]) -> None:
        """Store ``content`` under ``key`` with a single request."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        with self.client.execute(
            self._action("PutObject", "PUT", key), body=bytes(content)
        ):
            pass
        logger.debug("Object stored", bucket=self.name, key=key, size=len(content))

    def put_object_stream(self, key: str, reader: BinaryIO, length: int) -> None:
        """Store exactly ``length`` bytes read from ``reader`` under ``key``.

        The body is streamed; ``Content-Length`` is sent explicitly since a
        generic reader cannot report its size.
        """
        if length < 0:
            raise UserError(f"Object length must not be negative, got {length}")
        # An empty reader would make requests fall back to chunked encoding
        body = SizedReader(reader, length) if length else b""
        with self.client.execute(
            self._action("PutObject", "PUT", key),
            body=body,
            headers={"Content-Length": str(length)},
        ):
            pass
        logger.debug("Object streamed", bucket=self.name, key=key, size=length)

    def put_object_multipart(
        self, key: str, source: BinaryIO, part_size: Optional[int] = None
    ) -> MultipartUpload:
        """Upload ``source`` under ``key`` with the multipart protocol.

        Args:
            key: Target object key
            source: Blocking binary stream, read until exhausted
            part_size: Part size; the client's configured chunk size when omitted

        Returns:
            The completed multipart session
        """
        config = self.client.config
        return upload_multipart(
            self,
            key,
            source,
            part_size if part_size is not None else config.multipart_chunk_size,
            abort_on_error=config.abort_on_error,
        )

    def upload(
        self, key: str, source: BinaryIO, length: Optional[int] = None
    ) -> None:
        """Store ``source`` with the cheapest protocol for its size.

        Sources of known ``length`` below 5 MiB are sent with one PutObject;
        anything else (including sources of unknown length) goes through
        the multipart engine.
        """
        if length is not None and length < SINGLE_PUT_THRESHOLD:
            self.put_object_stream(key, source, length)
        else:
            self.put_object_multipart(key, source)

    # Reads

    def get_object_reader(self, key: str) -> HttpResponse:
        """Open ``key`` for streaming reads.

        Returns:
            A response exposing ``read``/``iter_chunks``; close it (or use it
            as a context manager) when done
        """
        return self.client.execute(self._action("GetObject", "GET", key), stream=True)

    def get_object_bytes(self, key: str) -> bytes:
        """Return the content of ``key``. Never fails on encoding."""
        with self.get_object_reader(key) as response:
            return response.read()

    def get_object_string(self, key: str) -> str:
        """Return the content of ``key`` decoded as UTF-8.

        Raises:
            PayloadNotUtf8Error: If the content is not valid UTF-8; the raw
                bytes remain available through :meth:`get_object_bytes`
        """
        content = self.get_object_bytes(key)
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PayloadNotUtf8Error(key, e) from e

    def get_object_json(self, key: str) -> Any:
        """Return the content of ``key`` parsed as JSON.

        Raises:
            UserError: If the content is not a JSON document
        """
        text = self.get_object_string(key)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise UserError(f"Object '{key}' is not valid JSON: {e}") from e

    def get_object_to_writer(self, key: str, writer: BinaryIO) -> int:
        """Copy the content of ``key`` into ``writer`` through a bounded buffer.

        Returns:
            Number of bytes written
        """
        written = 0
        with self.get_object_reader(key) as response:
            for chunk in response.iter_chunks():
                writer.write(chunk)
                written += len(chunk)
        logger.debug("Object copied to writer", bucket=self.name, key=key, size=written)
        return written

    # Deletes and listing

    def delete_object(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key succeeds on S3."""
        with self.client.execute(self._action("DeleteObject", "DELETE", key)):
            pass
        logger.debug("Object deleted", bucket=self.name, key=key)

    def list_objects(
        self,
        prefix: str = "",
        max_keys: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> ObjectListing:
        """Lazily list the objects whose key starts with ``prefix``."""
        return ObjectListing(
            self, prefix=prefix, max_keys=max_keys, start_after=start_after
        )

    def presigned_url(
        self, key: str, method: str = "GET", expires_in: Optional[int] = None
    ) -> str:
        """Return a URL granting ``method`` on ``key`` to anyone holding it."""
        signed = self.client.sign(
            self._action("Presign", method.upper(), key), expires_in=expires_in
        )
        return signed.url
