"""Multipart upload engine."""

from .upload import (
    MAX_PARTS,
    CompletedPart,
    MultipartUpload,
    UploadState,
    fill_buffer,
    upload_multipart,
)

__all__ = [
    "MAX_PARTS",
    "CompletedPart",
    "MultipartUpload",
    "UploadState",
    "fill_buffer",
    "upload_multipart",
]
