#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote


def parse_json_token(text: str | None) -> Any:
    """Parse ``text`` as JSON, falling back to the raw string.

    :param text: The text to parse.
    :returns: The decoded JSON value, the original string if it isn't valid JSON, or
        None if ``text`` is None.
    """
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def to_query(parameters: Mapping[str, str | None]) -> str:
    """Serialize a mapping into a query string, including the leading ``?``.

    Keys with a None value are written without a value.

    :param parameters: The query parameters to serialize.
    """
    if not parameters:
        return ""

    segments: list[str] = []
    for key, value in parameters.items():
        if value is None:
            segments.append(quote(key, safe=""))
        else:
            segments.append(f"{quote(key, safe='')}={quote(value, safe='')}")
    return "?" + "&".join(segments)


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
