"""Tests for bucket and object operations."""

import io
from urllib.parse import parse_qs, urlsplit

import pytest

from strois.core.exceptions import PayloadNotUtf8Error, UserError
from strois.objectstorage import SINGLE_PUT_THRESHOLD, S3ErrorCode, StoreError


class TestBucketLifecycle:
    """Test cases for bucket create and delete."""

    def test_create(self, client, fake_s3):
        """Test creating a bucket."""
        bucket = client.bucket("tamo").create()

        assert bucket.name == "tamo"
        assert "tamo" in fake_s3.buckets

    def test_create_existing(self, bucket):
        """Test that creating an existing bucket reports it."""
        with pytest.raises(StoreError) as exc_info:
            bucket.create()

        assert exc_info.value.code is S3ErrorCode.BUCKET_ALREADY_OWNED_BY_YOU
        assert exc_info.value.status_code == 409

    def test_delete(self, bucket, fake_s3):
        """Test deleting an empty bucket."""
        bucket.delete()

        assert "test-bucket" not in fake_s3.buckets

    def test_delete_not_empty(self, bucket):
        """Test that a bucket with objects cannot be deleted."""
        bucket.put_object("k", "v")

        with pytest.raises(StoreError) as exc_info:
            bucket.delete()

        assert exc_info.value.code is S3ErrorCode.BUCKET_NOT_EMPTY

    def test_delete_missing(self, client):
        """Test deleting a bucket that does not exist."""
        with pytest.raises(StoreError) as exc_info:
            client.bucket("nope").delete()

        assert exc_info.value.code is S3ErrorCode.NO_SUCH_BUCKET
        assert exc_info.value.bucket_name == "nope"


class TestObjects:
    """Test cases for object reads and writes."""

    def test_put_and_get_string(self, bucket):
        """Test the basic text roundtrip."""
        bucket.put_object("greeting", "kero")

        assert bucket.get_object_string("greeting") == "kero"
        assert bucket.get_object_bytes("greeting") == b"kero"

    def test_non_utf8_payload(self, bucket):
        """Test that binary objects fail as text but not as bytes."""
        bucket.put_object("binary", b"\xff\xfe\x00kero")

        with pytest.raises(PayloadNotUtf8Error) as exc_info:
            bucket.get_object_string("binary")

        assert exc_info.value.key == "binary"
        assert isinstance(exc_info.value, UserError)
        assert bucket.get_object_bytes("binary") == b"\xff\xfe\x00kero"

    def test_get_json(self, bucket):
        """Test JSON decoding of an object."""
        bucket.put_object("doc.json", '{"name": "kero", "tags": [1, 2]}')

        assert bucket.get_object_json("doc.json") == {"name": "kero", "tags": [1, 2]}

    def test_get_invalid_json(self, bucket):
        """Test that a non-JSON object is a user error."""
        bucket.put_object("doc.json", "kero")

        with pytest.raises(UserError, match="not valid JSON"):
            bucket.get_object_json("doc.json")

    def test_get_missing_key(self, bucket):
        """Test reading a key that does not exist."""
        with pytest.raises(StoreError) as exc_info:
            bucket.get_object_bytes("missing")

        error = exc_info.value
        assert error.code is S3ErrorCode.NO_SUCH_KEY
        assert error.status_code == 404
        assert error.resource == "/test-bucket/missing"

    def test_get_to_writer(self, bucket):
        """Test copying an object into a writer."""
        payload = bytes(range(256)) * 1000
        bucket.put_object("blob", payload)
        writer = io.BytesIO()

        written = bucket.get_object_to_writer("blob", writer)

        assert written == len(payload)
        assert writer.getvalue() == payload

    def test_get_reader(self, bucket):
        """Test streaming reads."""
        bucket.put_object("blob", b"abcdef")

        with bucket.get_object_reader("blob") as response:
            assert response.read(2) == b"ab"
            assert b"".join(response.iter_chunks(2)) == b"cdef"

    def test_delete_object(self, bucket, fake_s3):
        """Test deleting an object."""
        bucket.put_object("k", "v")

        bucket.delete_object("k")

        assert fake_s3.buckets["test-bucket"] == {}

    def test_delete_missing_object(self, bucket):
        """Test that deleting a missing key succeeds."""
        bucket.delete_object("never-existed")

    def test_put_object_stream(self, bucket, fake_s3):
        """Test streaming a reader of known length."""
        bucket.put_object_stream("streamed", io.BytesIO(b"0123456789"), 4)

        assert fake_s3.buckets["test-bucket"]["streamed"] == b"0123"
        assert fake_s3.requests[-1].headers["Content-Length"] == "4"

    def test_put_object_stream_empty(self, bucket, fake_s3):
        """Test streaming an empty reader."""
        bucket.put_object_stream("empty", io.BytesIO(b""), 0)

        assert fake_s3.buckets["test-bucket"]["empty"] == b""

    def test_put_object_stream_negative_length(self, bucket, fake_s3):
        """Test that negative lengths are refused before any request."""
        with pytest.raises(UserError):
            bucket.put_object_stream("bad", io.BytesIO(b"x"), -1)

        assert fake_s3.requests == []

    def test_keys_with_special_characters(self, bucket, fake_s3):
        """Test keys that need percent-encoding."""
        bucket.put_object("dir/a b+c é.txt", "kero")

        assert "dir/a b+c é.txt" in fake_s3.buckets["test-bucket"]
        assert bucket.get_object_string("dir/a b+c é.txt") == "kero"


class TestUpload:
    """Test cases for the size-based upload dispatch."""

    def test_small_known_size_uses_single_put(self, bucket, fake_s3):
        """Test that small sources avoid the multipart protocol."""
        bucket.upload("small", io.BytesIO(b"kero"), length=4)

        assert fake_s3.requests_named("POST", "uploads") == []
        assert fake_s3.buckets["test-bucket"]["small"] == b"kero"

    def test_unknown_size_uses_multipart(self, bucket, fake_s3):
        """Test that sources of unknown size go through multipart."""
        bucket.upload("unknown", io.BytesIO(b"kero"))

        assert len(fake_s3.requests_named("POST", "uploads")) == 1
        assert fake_s3.buckets["test-bucket"]["unknown"] == b"kero"

    def test_threshold_uses_multipart(self, bucket, fake_s3):
        """Test that a source of exactly the threshold size goes multipart."""
        payload = b"x" * SINGLE_PUT_THRESHOLD

        bucket.upload("big", io.BytesIO(payload), length=len(payload))

        assert len(fake_s3.requests_named("POST", "uploads")) == 1
        assert fake_s3.buckets["test-bucket"]["big"] == payload


class TestPresignedUrl:
    """Test cases for presigned URLs."""

    def test_get_url(self, bucket):
        """Test a presigned download URL."""
        url = bucket.presigned_url("dir/file.txt", expires_in=300)

        parts = urlsplit(url)
        params = parse_qs(parts.query)
        assert parts.path == "/test-bucket/dir/file.txt"
        assert params["X-Amz-Expires"] == ["300"]
        assert "X-Amz-Signature" in params

    def test_default_expiry(self, bucket):
        """Test that the client's expiry applies by default."""
        url = bucket.presigned_url("k", method="put")

        assert parse_qs(urlsplit(url).query)["X-Amz-Expires"] == ["3600"]

    def test_no_request_sent(self, bucket, fake_s3):
        """Test that presigning is purely local."""
        bucket.presigned_url("k")

        assert fake_s3.requests == []
