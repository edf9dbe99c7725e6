"""Test configuration and fixtures for strois."""

import hashlib
import io
from typing import Callable, Optional
from urllib.parse import parse_qsl, unquote, urlsplit
from xml.etree import ElementTree as ET

import pytest

from strois.objectstorage import Client, HttpRequest, HttpResponse

S3_NS = "http://s3.amazonaws.com/doc/2006-03-01/"


def error_xml(
    code: str,
    message: str,
    resource: str = "",
    bucket: Optional[str] = None,
) -> bytes:
    """Render an S3 error document."""
    bucket_part = f"<BucketName>{bucket}</BucketName>" if bucket else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Error><Code>{code}</Code><Message>{message}</Message>{bucket_part}"
        f"<Resource>{resource}</Resource><RequestId>req-42</RequestId>"
        "<HostId>host-42</HostId></Error>"
    ).encode()


def list_xml(
    keys: list[tuple[str, int]], next_token: Optional[str] = None
) -> bytes:
    """Render a ListObjectsV2 page."""
    contents = "".join(
        f"<Contents><Key>{key}</Key><Size>{size}</Size>"
        f'<ETag>"etag-{key}"</ETag><StorageClass>STANDARD</StorageClass></Contents>'
        for key, size in keys
    )
    token = (
        f"<NextContinuationToken>{next_token}</NextContinuationToken>"
        if next_token
        else ""
    )
    truncated = "true" if next_token else "false"
    return (
        f'<?xml version="1.0" encoding="UTF-8"?><ListBucketResult xmlns="{S3_NS}">'
        f"<Name>test-bucket</Name><KeyCount>{len(keys)}</KeyCount>"
        f"<MaxKeys>1000</MaxKeys><IsTruncated>{truncated}</IsTruncated>"
        f"{contents}{token}</ListBucketResult>"
    ).encode()


def _body_bytes(body) -> bytes:
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    return body.read()


class FakeS3:
    """In-memory S3 store speaking the transport protocol.

    Handles path-style URLs only and ignores signatures. Every request is
    recorded in ``requests`` for inspection.
    """

    def __init__(self):
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.uploads: dict[str, dict] = {}
        self.requests: list[HttpRequest] = []
        self.omit_etag = False
        self.fail_part_number: Optional[int] = None
        self.before_send: Optional[Callable[[HttpRequest], None]] = None
        self._upload_counter = 0

    def requests_named(self, method: str, query_key: Optional[str] = None) -> list:
        """Return the recorded requests with ``method`` and a query parameter."""
        matched = []
        for request in self.requests:
            query = dict(parse_qsl(urlsplit(request.url).query, keep_blank_values=True))
            if request.method == method and (query_key is None or query_key in query):
                matched.append((request, query))
        return matched

    def send(self, request: HttpRequest, stream: bool = False) -> HttpResponse:
        if self.before_send is not None:
            self.before_send(request)
        self.requests.append(request)

        parsed = urlsplit(request.url)
        query = dict(parse_qsl(parsed.query, keep_blank_values=True))
        path = unquote(parsed.path).lstrip("/")
        bucket_name, _, key = path.partition("/")
        key = key if "/" in path else None
        body = _body_bytes(request.body)

        if key is None:
            return self._bucket_call(request.method, bucket_name, query)
        return self._object_call(request.method, bucket_name, key, query, body)

    def _bucket_call(self, method, bucket_name, query) -> HttpResponse:
        if method == "PUT":
            if bucket_name in self.buckets:
                return HttpResponse.from_bytes(
                    409,
                    content=error_xml(
                        "BucketAlreadyOwnedByYou",
                        "Your previous request to create the named bucket succeeded.",
                        f"/{bucket_name}",
                        bucket_name,
                    ),
                )
            self.buckets[bucket_name] = {}
            return HttpResponse.from_bytes(200)

        if bucket_name not in self.buckets:
            return self._no_such_bucket(bucket_name)

        if method == "DELETE":
            if self.buckets[bucket_name]:
                return HttpResponse.from_bytes(
                    409,
                    content=error_xml(
                        "BucketNotEmpty",
                        "The bucket you tried to delete is not empty",
                        f"/{bucket_name}",
                        bucket_name,
                    ),
                )
            del self.buckets[bucket_name]
            return HttpResponse.from_bytes(204)

        if method == "GET" and query.get("list-type") == "2":
            return self._list(bucket_name, query)

        return HttpResponse.from_bytes(
            405, content=error_xml("MethodNotAllowed", "Not supported by the fake")
        )

    def _list(self, bucket_name, query) -> HttpResponse:
        prefix = query.get("prefix", "")
        max_keys = int(query.get("max-keys", "1000"))
        after = query.get("continuation-token") or query.get("start-after") or ""

        keys = sorted(
            key
            for key in self.buckets[bucket_name]
            if key.startswith(prefix) and key > after
        )
        page = keys[:max_keys]
        next_token = page[-1] if len(keys) > max_keys else None
        objects = self.buckets[bucket_name]
        return HttpResponse.from_bytes(
            200,
            content=list_xml([(key, len(objects[key])) for key in page], next_token),
        )

    def _object_call(self, method, bucket_name, key, query, body) -> HttpResponse:
        if bucket_name not in self.buckets:
            return self._no_such_bucket(bucket_name)
        objects = self.buckets[bucket_name]

        if method == "POST" and "uploads" in query:
            self._upload_counter += 1
            upload_id = f"upload-{self._upload_counter}"
            self.uploads[upload_id] = {"key": key, "parts": {}, "state": "open"}
            return HttpResponse.from_bytes(
                200,
                content=(
                    f'<InitiateMultipartUploadResult xmlns="{S3_NS}">'
                    f"<Bucket>{bucket_name}</Bucket><Key>{key}</Key>"
                    f"<UploadId>{upload_id}</UploadId>"
                    "</InitiateMultipartUploadResult>"
                ).encode(),
            )

        if "uploadId" in query:
            return self._multipart_call(method, objects, key, query, body)

        if method == "PUT":
            objects[key] = body
            return HttpResponse.from_bytes(
                200, {"ETag": f'"{hashlib.md5(body).hexdigest()}"'}
            )

        if method == "GET":
            if key not in objects:
                return HttpResponse.from_bytes(
                    404,
                    content=error_xml(
                        "NoSuchKey",
                        "The specified key does not exist.",
                        f"/{bucket_name}/{key}",
                        bucket_name,
                    ),
                )
            return HttpResponse(200, {"Content-Length": str(len(objects[key]))}, io.BytesIO(objects[key]))

        if method == "DELETE":
            objects.pop(key, None)
            return HttpResponse.from_bytes(204)

        return HttpResponse.from_bytes(
            405, content=error_xml("MethodNotAllowed", "Not supported by the fake")
        )

    def _multipart_call(self, method, objects, key, query, body) -> HttpResponse:
        upload = self.uploads.get(query["uploadId"])
        if upload is None or upload["state"] != "open":
            return HttpResponse.from_bytes(
                404,
                content=error_xml("NoSuchUpload", "The specified upload does not exist."),
            )

        if method == "PUT":
            part_number = int(query["partNumber"])
            if part_number == self.fail_part_number:
                return HttpResponse.from_bytes(
                    503, content=error_xml("SlowDown", "Please reduce your request rate.")
                )
            etag = hashlib.md5(body).hexdigest()
            upload["parts"][part_number] = (etag, body)
            headers = {} if self.omit_etag else {"ETag": f'"{etag}"'}
            return HttpResponse.from_bytes(200, headers)

        if method == "POST":
            document = ET.fromstring(body)
            listed = [
                (
                    int(part.findtext(f"{{{S3_NS}}}PartNumber")),
                    part.findtext(f"{{{S3_NS}}}ETag").strip('"'),
                )
                for part in document.findall(f"{{{S3_NS}}}Part")
            ]
            numbers = [number for number, _ in listed]
            if not listed:
                return HttpResponse.from_bytes(
                    400, content=error_xml("MalformedXML", "No parts listed")
                )
            if numbers != sorted(numbers) or len(set(numbers)) != len(numbers):
                return HttpResponse.from_bytes(
                    400, content=error_xml("InvalidPartOrder", "Parts out of order")
                )
            for number, etag in listed:
                stored = upload["parts"].get(number)
                if stored is None or stored[0] != etag:
                    return HttpResponse.from_bytes(
                        400, content=error_xml("InvalidPart", f"Bad part {number}")
                    )
            objects[key] = b"".join(upload["parts"][number][1] for number in numbers)
            upload["state"] = "completed"
            return HttpResponse.from_bytes(
                200,
                content=(
                    f'<CompleteMultipartUploadResult xmlns="{S3_NS}">'
                    f"<Key>{key}</Key><ETag>\"final\"</ETag>"
                    "</CompleteMultipartUploadResult>"
                ).encode(),
            )

        if method == "DELETE":
            upload["state"] = "aborted"
            return HttpResponse.from_bytes(204)

        return HttpResponse.from_bytes(
            405, content=error_xml("MethodNotAllowed", "Not supported by the fake")
        )

    def _no_such_bucket(self, bucket_name) -> HttpResponse:
        return HttpResponse.from_bytes(
            404,
            content=error_xml(
                "NoSuchBucket",
                "The specified bucket does not exist",
                f"/{bucket_name}",
                bucket_name,
            ),
        )


class ScriptedTransport:
    """Replays canned responses in order and records the requests."""

    def __init__(self, responses: list[HttpResponse]):
        self._responses = list(responses)
        self.requests: list[HttpRequest] = []

    def send(self, request: HttpRequest, stream: bool = False) -> HttpResponse:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._responses.pop(0)


@pytest.fixture
def fake_s3():
    """Create an empty in-memory store."""
    return FakeS3()


@pytest.fixture
def client(fake_s3):
    """Create a client wired to the in-memory store."""
    return Client.from_options(
        transport=fake_s3,
        endpoint_url="http://localhost:9000",
        access_key="minioadmin",
        secret_key="minioadmin",
    )


@pytest.fixture
def bucket(client, fake_s3):
    """Create a bucket that already exists in the in-memory store."""
    fake_s3.buckets["test-bucket"] = {}
    return client.bucket("test-bucket")


@pytest.fixture
def scripted_client():
    """Build a client over a ScriptedTransport replaying ``responses``."""

    def _build(responses: list[HttpResponse]):
        transport = ScriptedTransport(responses)
        built = Client.from_options(
            transport=transport,
            endpoint_url="http://localhost:9000",
            access_key="minioadmin",
            secret_key="minioadmin",
        )
        return built, transport

    return _build
