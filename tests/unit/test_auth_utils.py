#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from typing import Any

import pytest
from utilities_rest.auth import get_basic_authentication, get_bearer_oauth_token
from utilities_rest.utils import get_header, parse_json_token, to_query


def test_basic_authentication() -> None:
    assert get_basic_authentication("Aladdin", "open sesame") == (
        "Basic QWxhZGRpbjpvcGVuIHNlc2FtZQ=="
    )


def test_basic_authentication_latin1() -> None:
    assert get_basic_authentication("ü", "p") == "Basic /Dpw"


def test_bearer_token() -> None:
    assert get_bearer_oauth_token("abc123") == "Bearer abc123"


@pytest.mark.parametrize(
    "parameters,expected",
    [
        ({}, ""),
        ({"a": "1"}, "?a=1"),
        ({"a": "1", "b": "two words"}, "?a=1&b=two%20words"),
        ({"flag": None, "q": "a&b"}, "?flag&q=a%26b"),
    ],
)
def test_to_query(parameters: dict[str, str | None], expected: str) -> None:
    assert to_query(parameters) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        (None, None),
        ('{"a": [1, 2]}', {"a": [1, 2]}),
        ("42", 42),
        ("not json", "not json"),
        ("", ""),
    ],
)
def test_parse_json_token(text: str | None, expected: Any) -> None:
    assert parse_json_token(text) == expected


def test_get_header_is_case_insensitive() -> None:
    headers = {"Content-Type": "text/plain"}

    assert get_header(headers, "content-type") == "text/plain"
    assert get_header(headers, "Accept") is None
