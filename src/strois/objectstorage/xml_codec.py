"""XML payloads exchanged with S3-compatible stores.

Parsing strips the S3 document namespace so that lookups work the same for
stores that send it (AWS, MinIO) and stores that do not. Every parse
failure is raised as :class:`InternalError`: a well-behaved store never
sends a body these helpers cannot read.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional
from xml.etree import ElementTree as ET

from strois.core.exceptions import InternalError

S3_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"


@dataclass(frozen=True)
class ErrorBody:
    """Fields of an S3 ``<Error>`` document.

    Every field is optional on the wire; ``code`` is ``None`` when the
    document has no ``Code`` element at all.
    """

    code: Optional[str] = None
    message: Optional[str] = None
    bucket_name: Optional[str] = None
    resource: Optional[str] = None
    request_id: Optional[str] = None
    host_id: Optional[str] = None


@dataclass(frozen=True)
class ObjectEntry:
    """One object reported by a listing call."""

    key: str
    size: int
    last_modified: Optional[str] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None


@dataclass(frozen=True)
class ListPage:
    """One page of a ListObjectsV2 response."""

    entries: list[ObjectEntry] = field(default_factory=list)
    next_continuation_token: Optional[str] = None
    is_truncated: bool = False
    key_count: Optional[int] = None


def _strip_namespace(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def parse_document(body: bytes, what: str) -> ET.Element:
    """Parse ``body`` into an element tree with namespaces removed.

    Args:
        body: Raw response payload
        what: Short description of the payload, used in error messages

    Returns:
        The root element

    Raises:
        InternalError: If the payload is not well-formed XML
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise InternalError(f"Could not deserialize S3 {what} payload: {e}") from e

    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = _strip_namespace(element.tag)
    return root


def root_tag(body: bytes) -> Optional[str]:
    """Return the root element name of ``body``, or None if it is not XML."""
    if not body or not body.strip():
        return None
    try:
        return parse_document(body, "response").tag
    except InternalError:
        return None


def _expect_root(root: ET.Element, tag: str, what: str) -> None:
    if root.tag != tag:
        raise InternalError(
            f"Could not deserialize S3 {what} payload: "
            f"expected <{tag}>, got <{root.tag}>"
        )


def _required_text(element: ET.Element, name: str, what: str) -> str:
    value = element.findtext(name)
    if value is None:
        raise InternalError(
            f"Could not deserialize S3 {what} payload: missing <{name}>"
        )
    return value


def parse_error(body: bytes) -> ErrorBody:
    """Parse an S3 ``<Error>`` document.

    Raises:
        InternalError: If the body is not XML or not an ``<Error>`` document
    """
    root = parse_document(body, "error")
    _expect_root(root, "Error", "error")
    return ErrorBody(
        code=root.findtext("Code"),
        message=root.findtext("Message"),
        bucket_name=root.findtext("BucketName"),
        resource=root.findtext("Resource"),
        request_id=root.findtext("RequestId"),
        host_id=root.findtext("HostId"),
    )


def parse_list_objects(body: bytes) -> ListPage:
    """Parse a ListObjectsV2 ``<ListBucketResult>`` document."""
    root = parse_document(body, "listing")
    _expect_root(root, "ListBucketResult", "listing")

    entries = []
    for contents in root.findall("Contents"):
        size_text = _required_text(contents, "Size", "listing")
        try:
            size = int(size_text)
        except ValueError as e:
            raise InternalError(
                f"Could not deserialize S3 listing payload: bad <Size> {size_text!r}"
            ) from e

        etag = contents.findtext("ETag")
        entries.append(
            ObjectEntry(
                key=_required_text(contents, "Key", "listing"),
                size=size,
                last_modified=contents.findtext("LastModified"),
                etag=etag.strip('"') if etag is not None else None,
                storage_class=contents.findtext("StorageClass"),
            )
        )

    key_count = root.findtext("KeyCount")
    return ListPage(
        entries=entries,
        # An empty token element means "no more pages"
        next_continuation_token=root.findtext("NextContinuationToken") or None,
        is_truncated=(root.findtext("IsTruncated") or "").lower() == "true",
        key_count=int(key_count) if key_count and key_count.isdigit() else None,
    )


def parse_upload_id(body: bytes) -> str:
    """Extract ``UploadId`` from a CreateMultipartUpload response."""
    root = parse_document(body, "create multipart upload")
    _expect_root(root, "InitiateMultipartUploadResult", "create multipart upload")
    upload_id = _required_text(root, "UploadId", "create multipart upload")
    if not upload_id:
        raise InternalError(
            "Could not deserialize S3 create multipart upload payload: "
            "empty <UploadId>"
        )
    return upload_id


def render_complete_multipart(parts: Iterable[tuple[int, str]]) -> bytes:
    """Render the CompleteMultipartUpload request body.

    Args:
        parts: ``(part_number, etag)`` pairs in ascending part order, with
            unquoted ETags

    Returns:
        UTF-8 encoded XML document
    """
    root = ET.Element("CompleteMultipartUpload", xmlns=S3_NAMESPACE)
    for part_number, etag in parts:
        part = ET.SubElement(root, "Part")
        ET.SubElement(part, "PartNumber").text = str(part_number)
        ET.SubElement(part, "ETag").text = f'"{etag}"'
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
