"""Error taxonomy shared by the gate, the minting service and the API layer."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body returned for every failed token request."""

    kind: str
    message: str
    retryable: bool = False
    retry_after: Optional[int] = None


class RelayError(Exception):
    """Base exception for relay failures that map onto an HTTP response.

    Messages are client-facing; never put the credential or a token value in
    one.
    """

    kind = "relay_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, retry_after: Optional[int] = None):
        self.message = message
        self.retry_after = retry_after
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            kind=self.kind,
            message=self.message,
            retryable=self.retryable,
            retry_after=self.retry_after,
        )

    def headers(self) -> dict[str, str]:
        if self.retry_after is not None:
            return {"Retry-After": str(self.retry_after)}
        return {}


class ConfigurationError(RelayError):
    """The process is missing configuration it cannot serve without."""

    kind = "configuration_error"
    status_code = 500


class MalformedRequest(RelayError):
    kind = "malformed_request"
    status_code = 400


class MethodNotAllowed(RelayError):
    kind = "method_not_allowed"
    status_code = 405

    def headers(self) -> dict[str, str]:
        return {"Allow": "POST"}


class RateLimited(RelayError):
    kind = "rate_limited"
    status_code = 429
    retryable = True


class UpstreamRejected(RelayError):
    """Upstream refused the mint; repeating the same request will not help."""

    kind = "upstream_rejected"
    status_code = 502


class UpstreamUnavailable(RelayError):
    kind = "upstream_unavailable"
    status_code = 502
    retryable = True


class UpstreamTimeout(RelayError):
    kind = "upstream_timeout"
    status_code = 502
    retryable = True


__all__ = [
    "ConfigurationError",
    "ErrorResponse",
    "MalformedRequest",
    "MethodNotAllowed",
    "RateLimited",
    "RelayError",
    "UpstreamRejected",
    "UpstreamTimeout",
    "UpstreamUnavailable",
]
