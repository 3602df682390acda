"""Uploaded file types and content-type resolution."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable

from workbench.telemetry.errors import UnsupportedFileError

GENERIC_MIME_TYPE = "application/octet-stream"

MIME_TYPES_BY_EXTENSION: dict[str, str] = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "eml": "message/rfc822",
    "msg": "application/vnd.ms-outlook",
    "txt": "text/plain",
}


@dataclass(frozen=True)
class UploadedFile:
    """A staged file. Never mutated; unpacking produces new instances."""

    name: str
    data: bytes
    content_type: str | None = None

    @property
    def extension(self) -> str:
        return file_extension(self.name)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class EncodedFile:
    """A file ready for the model request: base64 payload plus resolved type."""

    name: str
    data: str
    mime_type: str


def file_extension(name: str) -> str:
    return PurePath(name).suffix.lstrip(".").lower()


def resolve_mime_type(file: UploadedFile) -> str:
    """Resolve a definitive content type.

    Precedence: a declared, non-generic type; then the extension table; then
    the generic fallback when a (generic) type was declared. A file with no
    declared type and an unknown extension is unsupported.
    """
    declared = (file.content_type or "").strip()
    if declared and declared != GENERIC_MIME_TYPE:
        return declared
    by_extension = MIME_TYPES_BY_EXTENSION.get(file.extension)
    if by_extension:
        return by_extension
    if declared:
        return GENERIC_MIME_TYPE
    raise UnsupportedFileError(file.name)


def encode_file(file: UploadedFile) -> EncodedFile:
    return EncodedFile(
        name=file.name,
        data=base64.b64encode(file.data).decode("ascii"),
        mime_type=resolve_mime_type(file),
    )


def encode_files(files: Iterable[UploadedFile]) -> list[EncodedFile]:
    """Encode files in order; the first unsupported file aborts the batch."""
    return [encode_file(file) for file in files]
