"""
Authenticator.

Reads the BrowserStack username and access key from the process environment
and builds the header set reused by every request.
"""

from __future__ import annotations

import base64
import os
from typing import Dict, Mapping, Optional

from loguru import logger

from bstack_report.config.resolver import CredentialsConfig
from bstack_report.errors import ReportError


class CredentialError(ReportError):
    """Raised when a credential environment variable is missing or empty."""

    def __init__(self, message: str, missing: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.missing = missing or []


def build_auth_headers(
    credentials: CredentialsConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Build the Basic-auth header set from environment credentials.

    Args:
        credentials: Names of the username / access-key environment variables.
        environ: Environment mapping to read from (defaults to os.environ).

    Returns:
        Headers with ``Authorization`` and ``Accept``.

    Raises:
        CredentialError: If either variable is absent or empty.
    """
    environ = os.environ if environ is None else environ
    username = environ.get(credentials.username_env, "")
    access_key = environ.get(credentials.access_key_env, "")

    missing = [
        name
        for name, value in (
            (credentials.username_env, username),
            (credentials.access_key_env, access_key),
        )
        if not value
    ]
    if missing:
        raise CredentialError(
            f"Missing BrowserStack credentials. Please set "
            f"{credentials.username_env} and {credentials.access_key_env} "
            f"(missing: {', '.join(missing)}).",
            missing=missing,
        )

    token = base64.b64encode(f"{username}:{access_key}".encode("utf-8")).decode("ascii")
    logger.debug(f"Credentials loaded from {credentials.username_env}/{credentials.access_key_env}")
    return {
        "Authorization": f"Basic {token}",
        "Accept": "application/json",
    }
