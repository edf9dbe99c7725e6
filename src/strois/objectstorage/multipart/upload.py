"""Multipart upload engine.

Uploads an arbitrary byte stream as a sequence of parts:

1. CreateMultipartUpload returns an opaque upload id.
2. The stream is cut into ``chunk_size`` chunks; each chunk is sent with
   UploadPart under the next part number (1, 2, 3, ...) and the returned
   ETag is recorded.
3. CompleteMultipartUpload lists every ``(part number, ETag)`` pair in
   ascending order and the store assembles the object.

Parts are uploaded one at a time and nothing is retried. A failure leaves
the upload incomplete on the store unless ``abort_on_error`` is set, in
which case the engine aborts the upload before re-raising. Incomplete
uploads are billed by most stores; clean them up with a lifecycle rule or
:meth:`MultipartUpload.abort`.

An empty stream is uploaded as a single zero-length part so that the
completion request always references at least one part.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, BinaryIO, Union

from strois.core import get_logger
from strois.core.exceptions import (
    InternalError,
    PartLimitExceededError,
    StroisError,
    UserError,
)

from ..errors import raise_for_embedded_error
from ..signing import S3Action
from ..xml_codec import parse_upload_id, render_complete_multipart

if TYPE_CHECKING:
    from ..bucket import Bucket

logger = get_logger(__name__)

MAX_PARTS = 10_000


@dataclass(frozen=True)
class CompletedPart:
    """A part accepted by the store."""

    part_number: int
    etag: str


class UploadState(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


class MultipartUpload:
    """One multipart upload session.

    A session is owned by a single caller and must end in
    :meth:`complete` or :meth:`abort`.
    """

    def __init__(self, bucket: "Bucket", key: str, upload_id: str):
        self.bucket = bucket
        self.key = key
        self.upload_id = upload_id
        self.next_part_number = 1
        self.parts: list[CompletedPart] = []
        self.state = UploadState.IN_PROGRESS

    @classmethod
    def create(cls, bucket: "Bucket", key: str) -> "MultipartUpload":
        """Start a multipart upload of ``key`` in ``bucket``.

        Raises:
            InternalError: If the store's answer carries no upload id
        """
        action = S3Action(
            name="CreateMultipartUpload",
            method="POST",
            bucket=bucket.name,
            key=key,
            query={"uploads": ""},
        )
        with bucket.client.execute(action) as response:
            body = response.read()

        upload_id = parse_upload_id(body)
        logger.info(
            "Multipart upload created",
            bucket=bucket.name,
            key=key,
            upload_id=upload_id,
        )
        return cls(bucket, key, upload_id)

    def _action(self, name: str, method: str, **query: str) -> S3Action:
        return S3Action(
            name=name,
            method=method,
            bucket=self.bucket.name,
            key=self.key,
            query={**query, "uploadId": self.upload_id},
        )

    def _ensure_in_progress(self) -> None:
        if self.state is not UploadState.IN_PROGRESS:
            raise UserError(
                f"Multipart upload {self.upload_id} of '{self.key}' is already "
                f"{self.state.value}"
            )

    def upload_part(self, data: Union[bytes, bytearray, memoryview]) -> CompletedPart:
        """Upload ``data`` as the next part.

        Raises:
            PartLimitExceededError: Before any request, if this would be
                part 10,001 or later
            InternalError: If the store does not return an ETag
        """
        self._ensure_in_progress()
        if self.next_part_number > MAX_PARTS:
            raise PartLimitExceededError(self.key, MAX_PARTS)

        part_number = self.next_part_number
        action = self._action("UploadPart", "PUT", partNumber=str(part_number))
        with self.bucket.client.execute(action, body=bytes(data)) as response:
            etag = response.headers.get("ETag")

        if etag is None:
            raise InternalError(
                f"UploadPart {part_number} of '{self.key}' returned no ETag header"
            )

        part = CompletedPart(part_number=part_number, etag=etag.strip('"'))
        self.parts.append(part)
        self.next_part_number += 1
        logger.debug(
            "Part uploaded",
            key=self.key,
            upload_id=self.upload_id,
            part_number=part_number,
            size=len(data),
        )
        return part

    def complete(self) -> None:
        """Ask the store to assemble the uploaded parts."""
        self._ensure_in_progress()
        if not self.parts:
            raise UserError(
                f"Multipart upload {self.upload_id} of '{self.key}' has no parts"
            )

        body = render_complete_multipart(
            (part.part_number, part.etag) for part in self.parts
        )
        action = self._action("CompleteMultipartUpload", "POST")
        with self.bucket.client.execute(
            action, body=body, headers={"Content-Type": "application/xml"}
        ) as response:
            status = response.status
            payload = response.read()

        raise_for_embedded_error(status, payload)
        self.state = UploadState.COMPLETED
        logger.info(
            "Multipart upload completed",
            bucket=self.bucket.name,
            key=self.key,
            upload_id=self.upload_id,
            parts=len(self.parts),
        )

    def abort(self) -> None:
        """Discard the upload and every part stored so far."""
        self._ensure_in_progress()
        action = self._action("AbortMultipartUpload", "DELETE")
        with self.bucket.client.execute(action):
            pass
        self.state = UploadState.ABORTED
        logger.info(
            "Multipart upload aborted",
            bucket=self.bucket.name,
            key=self.key,
            upload_id=self.upload_id,
        )


def fill_buffer(source: BinaryIO, buffer: memoryview) -> int:
    """Read from ``source`` until ``buffer`` is full or the stream ends.

    A short read does not mean end of stream; only a read returning no
    bytes does.

    Returns:
        Number of bytes written at the start of ``buffer``
    """
    readinto = getattr(source, "readinto", None)
    filled = 0
    while filled < len(buffer):
        if readinto is not None:
            read = readinto(buffer[filled:])
        else:
            chunk = source.read(len(buffer) - filled)
            read = len(chunk) if chunk else 0
            buffer[filled : filled + read] = chunk or b""
        if not read:
            break
        filled += read
    return filled


def upload_multipart(
    bucket: "Bucket",
    key: str,
    source: BinaryIO,
    chunk_size: int,
    abort_on_error: bool = False,
) -> MultipartUpload:
    """Upload everything readable from ``source`` to ``key``.

    Args:
        bucket: Target bucket
        key: Target object key
        source: Blocking binary stream
        chunk_size: Size of every part but the last one
        abort_on_error: Abort the upload on the store when a step fails

    Returns:
        The completed session

    Raises:
        UserError: If ``chunk_size`` is not positive or the stream needs
            more than 10,000 parts
    """
    if chunk_size <= 0:
        raise UserError(f"Multipart chunk size must be positive, got {chunk_size}")

    session = MultipartUpload.create(bucket, key)
    buffer = memoryview(bytearray(chunk_size))

    try:
        while True:
            size = fill_buffer(source, buffer)
            if size == 0 and session.parts:
                break

            session.upload_part(buffer[:size])
            if size < chunk_size:
                # Short fill only happens at end of stream
                break

        session.complete()
    except Exception as e:
        if abort_on_error and session.state is UploadState.IN_PROGRESS:
            _abort_after_failure(session, e)
        else:
            logger.warning(
                "Multipart upload left incomplete on the store",
                bucket=bucket.name,
                key=key,
                upload_id=session.upload_id,
                error=str(e),
            )
        raise

    return session


def _abort_after_failure(session: MultipartUpload, cause: Exception) -> None:
    try:
        session.abort()
    except StroisError as abort_error:
        logger.error(
            "Could not abort failed multipart upload",
            key=session.key,
            upload_id=session.upload_id,
            cause=str(cause),
            error=str(abort_error),
        )
