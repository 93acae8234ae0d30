# src/gateway_dashboard/errors.py

from typing import Optional

from fastapi import status


class GatewayError(Exception):
    """Base for every normalized failure of a forwarded gateway call."""

    kind = "upstream-error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Gateway request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticatedError(GatewayError):
    kind = "not-authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class UpstreamTimeoutError(GatewayError):
    kind = "upstream-timeout"
    default_message = "Gateway not responding"


class UpstreamUnreachableError(GatewayError):
    kind = "upstream-unreachable"
    default_message = "Unable to reach gateway"


class UpstreamError(GatewayError):
    kind = "upstream-error"


class MalformedResponseError(GatewayError):
    kind = "malformed-response"
    default_message = "Gateway returned a malformed response"


class CsrfRejectedError(GatewayError):
    kind = "csrf-rejected"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "CSRF validation failed"
