"""Tests for file staging types and content-type resolution."""

import base64

import pytest

from workbench.ingest.files import (
    GENERIC_MIME_TYPE,
    UploadedFile,
    encode_file,
    encode_files,
    file_extension,
    resolve_mime_type,
)
from workbench.telemetry.errors import UnsupportedFileError


class TestResolveMimeType:
    def test_declared_specific_type_wins(self):
        file = UploadedFile(name="scan.bin", data=b"x", content_type="image/png")
        assert resolve_mime_type(file) == "image/png"

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("a.pdf", "application/pdf"),
            ("b.DOCX", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
            ("c.eml", "message/rfc822"),
            ("d.msg", "application/vnd.ms-outlook"),
            ("e.txt", "text/plain"),
        ],
    )
    def test_extension_table(self, name, expected):
        assert resolve_mime_type(UploadedFile(name=name, data=b"x")) == expected

    def test_generic_declared_type_uses_extension(self):
        file = UploadedFile(name="policy.pdf", data=b"x", content_type=GENERIC_MIME_TYPE)
        assert resolve_mime_type(file) == "application/pdf"

    def test_generic_declared_type_with_unknown_extension(self):
        file = UploadedFile(name="data.xyz", data=b"x", content_type=GENERIC_MIME_TYPE)
        assert resolve_mime_type(file) == GENERIC_MIME_TYPE

    def test_unknown_extension_without_type_is_unsupported(self):
        with pytest.raises(UnsupportedFileError) as excinfo:
            resolve_mime_type(UploadedFile(name="archive.xyz", data=b"x"))
        assert "archive.xyz" in str(excinfo.value)


class TestEncoding:
    def test_encode_file_base64(self):
        encoded = encode_file(UploadedFile(name="note.txt", data=b"hello"))
        assert encoded.name == "note.txt"
        assert encoded.mime_type == "text/plain"
        assert base64.b64decode(encoded.data) == b"hello"

    def test_encode_files_preserves_order(self):
        files = [UploadedFile(name=f"{i}.txt", data=b"x") for i in range(3)]
        assert [f.name for f in encode_files(files)] == ["0.txt", "1.txt", "2.txt"]

    def test_unsupported_file_aborts_batch(self):
        files = [UploadedFile(name="ok.pdf", data=b"x"), UploadedFile(name="bad.zzz", data=b"x")]
        with pytest.raises(UnsupportedFileError):
            encode_files(files)


def test_file_extension_is_lowercased():
    assert file_extension("Report.Final.PDF") == "pdf"
    assert file_extension("README") == ""


def test_uploaded_file_size():
    assert UploadedFile(name="a.txt", data=b"12345").size == 5
