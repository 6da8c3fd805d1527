#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import json
import re
import secrets
from collections.abc import Mapping
from dataclasses import dataclass

from .utils import get_header

MULTIPART_FORM_DATA = "multipart/form-data"
OCTET_STREAM = "application/octet-stream"

_NAME = re.compile(r'(?<![\w])name="([^"]*)"')
_FILE_NAME = re.compile(r'filename="([^"]*)"')
_BOUNDARY = re.compile(r'boundary="?([^";]+)"?')


@dataclass(frozen=True)
class FormFile:
    """A file section of a multipart form."""

    file_name: str
    data: bytes
    content_type: str = OCTET_STREAM


type FormSection = str | bytes | FormFile
type Form = Mapping[str, FormSection]


def generate_boundary() -> str:
    return secrets.token_hex(20)


def encode_multipart(form: Form, boundary: str | None = None) -> tuple[bytes, str]:
    """Serialize ``form`` as ``multipart/form-data``.

    :param form: Mapping of section names to their values.
    :param boundary: The boundary to use. A random one is generated if omitted.
    :returns: The encoded body and its content type. The boundary in the content type
        is quoted.
    """
    boundary = boundary or generate_boundary()
    body = bytearray()
    for name, section in form.items():
        body += f"--{boundary}\r\n".encode()
        match section:
            case FormFile():
                body += (
                    f'Content-Disposition: form-data; name="{name}"; '
                    f'filename="{section.file_name}"\r\n'
                    f"Content-Type: {section.content_type}\r\n\r\n"
                ).encode()
                body += section.data
            case bytes():
                body += (
                    f'Content-Disposition: form-data; name="{name}"\r\n'
                    f"Content-Type: {OCTET_STREAM}\r\n\r\n"
                ).encode()
                body += section
            case _:
                body += (
                    f'Content-Disposition: form-data; name="{name}"\r\n'
                    "Content-Type: text/plain; charset=utf-8\r\n\r\n"
                ).encode()
                body += section.encode()
        body += b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return bytes(body), f'{MULTIPART_FORM_DATA}; boundary="{boundary}"'


def describe_request_body(
    body: bytes | None, headers: Mapping[str, str] | None = None
) -> str | None:
    """Describe a request body for debug output.

    Multipart bodies are summarized as a JSON document listing each section's name and
    either its text value or, for files, its file name. Other bodies are decoded as
    text.
    """
    if not body:
        return None

    content_type = get_header(headers or {}, "Content-Type") or ""
    text = body.decode("utf-8", errors="replace")
    if MULTIPART_FORM_DATA not in content_type:
        return text

    if (match := _BOUNDARY.search(content_type)) is None:
        return text
    boundary = match.group(1)

    parts: list[list[str]] = []
    for section in text.split(f"--{boundary}"):
        section = section.strip("\r\n")
        if not section or section == "--":
            continue
        header, _, value = section.partition("\r\n\r\n")
        if (name := _NAME.search(header)) is None:
            continue
        if (file_name := _FILE_NAME.search(header)) is not None:
            parts.append([name.group(1), file_name.group(1)])
        elif OCTET_STREAM in header:
            parts.append([name.group(1), f"<{len(value)} bytes>"])
        else:
            parts.append([name.group(1), value])

    return json.dumps({"contentType": content_type, "formParts": parts})
