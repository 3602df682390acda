"""Email unpacker: flattens message containers into body + attachment files.

``.eml`` files are read with the standard library ``email`` package and
``.msg`` files with ``extract-msg``. Any other file passes through unchanged.
Messages nested inside a container (forwarded mail) are unpacked in turn.
A container that cannot be read degrades to a fallback file instead of
failing the batch.
"""

from __future__ import annotations

import importlib.util
import logging
from dataclasses import dataclass, field
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import Any, Callable, Iterable

from workbench.ingest.files import GENERIC_MIME_TYPE, UploadedFile
from workbench.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

NO_BODY_PLACEHOLDER = "No text body found in email."
NESTED_MESSAGE_TYPE = "message/rfc822"


@dataclass
class ParsedMessage:
    body: str
    attachments: list[UploadedFile] = field(default_factory=list)


@dataclass(frozen=True)
class ReaderUnavailable:
    """Capability-check outcome: no usable reader for this container type."""

    extension: str
    reason: str


MessageReader = Callable[[bytes], ParsedMessage]


def _with_extension(name: str, extension: str) -> str:
    return name if name.lower().endswith(f".{extension}") else f"{name}.{extension}"


def read_eml(data: bytes) -> ParsedMessage:
    message: EmailMessage = BytesParser(policy=policy.default).parsebytes(data)

    text_part = message.get_body(preferencelist=("plain",))
    html_part = message.get_body(preferencelist=("html",))
    body = ""
    if text_part is not None:
        body = text_part.get_content()
    if not body and html_part is not None:
        body = html_part.get_content()

    attachments = []
    for index, part in enumerate(message.iter_attachments(), start=1):
        name = part.get_filename() or f"attachment_{index}"
        if part.get_content_type() == NESTED_MESSAGE_TYPE:
            # The payload of a message/rfc822 part is the parsed inner message.
            inner = part.get_payload(0)
            attachments.append(
                UploadedFile(
                    name=_with_extension(name, "eml"),
                    data=inner.as_bytes(),
                    content_type=NESTED_MESSAGE_TYPE,
                )
            )
            continue
        attachments.append(
            UploadedFile(
                name=name,
                data=part.get_payload(decode=True) or b"",
                content_type=part.get_content_type(),
            )
        )
    return ParsedMessage(body=body or NO_BODY_PLACEHOLDER, attachments=attachments)


def open_msg(data: bytes) -> Any:
    import extract_msg

    return extract_msg.Message(data)


def _msg_attachments(msg: Any) -> list[UploadedFile]:
    files: list[UploadedFile] = []
    for index, att in enumerate(msg.attachments, start=1):
        name = att.longFilename or att.shortFilename or f"attachment_{index}"
        payload = att.data
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        if isinstance(payload, bytes):
            files.append(UploadedFile(name=name, data=payload, content_type=GENERIC_MIME_TYPE))
        elif hasattr(payload, "attachments"):
            # Embedded Outlook item: its body becomes a text file, its attachments follow.
            label = att.longFilename or getattr(payload, "subject", None) or f"attachment_{index}"
            files.append(
                UploadedFile(
                    name=f"{label}_body.txt",
                    data=(payload.body or NO_BODY_PLACEHOLDER).encode("utf-8"),
                    content_type="text/plain",
                )
            )
            files.extend(_msg_attachments(payload))
        else:
            logger.warning(
                "Skipping unreadable .msg attachment",
                extra={"attachment": name, "payload_type": type(payload).__name__},
            )
    return files


def read_msg(data: bytes) -> ParsedMessage:
    msg = open_msg(data)
    try:
        return ParsedMessage(body=msg.body or NO_BODY_PLACEHOLDER, attachments=_msg_attachments(msg))
    finally:
        msg.close()


READERS: dict[str, MessageReader] = {
    "eml": read_eml,
    "msg": read_msg,
}

# Readers backed by an optional third-party library.
READER_LIBRARIES = {"msg": "extract_msg"}

# Text-based containers fall back to a plain-text read of the raw bytes.
TEXT_CONTAINERS = frozenset({"eml"})


def is_message_container(file: UploadedFile) -> bool:
    return file.extension in {"eml", "msg"}


def library_available(module_name: str) -> bool:
    return importlib.util.find_spec(module_name) is not None


def reader_for(extension: str) -> MessageReader | ReaderUnavailable:
    """Look up the reader for a container type, checking its library is installed."""
    reader = READERS.get(extension)
    if reader is None:
        return ReaderUnavailable(extension, f"no reader registered for .{extension} files")
    library = READER_LIBRARIES.get(extension)
    if library and not library_available(library):
        return ReaderUnavailable(extension, f"{library} is not installed")
    return reader


def _fallback(file: UploadedFile) -> UploadedFile:
    if file.extension in TEXT_CONTAINERS:
        return UploadedFile(
            name=file.name,
            data=file.data.decode("utf-8", errors="replace").encode("utf-8"),
            content_type="text/plain",
        )
    return file


def unpack_file(file: UploadedFile) -> list[UploadedFile]:
    """Expand one file, recursing into nested messages.

    Never raises; always returns at least one file.
    """
    if not is_message_container(file):
        return [file]

    reader = reader_for(file.extension)
    try:
        if isinstance(reader, ReaderUnavailable):
            raise RuntimeError(reader.reason)
        parsed = reader(file.data)
    except Exception as exc:
        emit_structured_error(
            logger,
            code=ErrorCode.EMAIL_UNPACK_FAILED,
            message=str(exc),
            suppressed=True,
            details={"filename": file.name, "extension": file.extension},
        )
        return [_fallback(file)]

    body_file = UploadedFile(
        name=f"{file.name}_body.txt",
        data=parsed.body.encode("utf-8"),
        content_type="text/plain",
    )
    logger.debug(
        "Unpacked message container",
        extra={"filename": file.name, "attachments": len(parsed.attachments)},
    )
    return [body_file, *unpack_files(parsed.attachments)]


def unpack_files(files: Iterable[UploadedFile]) -> list[UploadedFile]:
    """Expand message containers, preserving input order."""
    expanded: list[UploadedFile] = []
    for file in files:
        expanded.extend(unpack_file(file))
    return expanded
