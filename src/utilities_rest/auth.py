#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from base64 import b64encode


def get_basic_authentication(username: str, password: str) -> str:
    """Build the value of a basic ``Authorization`` header."""
    credentials = f"{username}:{password}".encode("iso-8859-1")
    return f"Basic {b64encode(credentials).decode('ascii')}"


def get_bearer_oauth_token(token: str) -> str:
    """Build the value of a bearer ``Authorization`` header."""
    return f"Bearer {token}"
