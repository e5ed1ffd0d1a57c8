"""
BrowserStack API Client Module.

Provides integration with the BrowserStack REST APIs for:
- Building the auth header set from environment credentials.
- Authenticated JSON GET requests with explicit transport errors.
- Cursor and offset pagination with loop and ceiling guards.
"""

from bstack_report.api_client.auth import CredentialError, build_auth_headers
from bstack_report.api_client.client import (
    BrowserStackClient,
    DiscoveryTransportError,
    TransportError,
    endpoint,
)
from bstack_report.api_client.pagination import paginate_cursor, paginate_offset

__all__ = [
    "BrowserStackClient",
    "CredentialError",
    "DiscoveryTransportError",
    "TransportError",
    "build_auth_headers",
    "endpoint",
    "paginate_cursor",
    "paginate_offset",
]
