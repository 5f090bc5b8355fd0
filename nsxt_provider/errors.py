"""
Exception types raised by the NSX-T client and resource handlers.

Three kinds of failure reach a caller:
    - Transport errors from ``requests`` (connection refused, TLS, ...)
    - NSX API errors (HTTP status >= 400), mapped to NsxApiError
    - Handler errors (ResourceError) that wrap either of the above with
      the operation and object they happened in
"""

from __future__ import annotations

from typing import Any, Optional


class NsxProviderError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(NsxProviderError):
    """Missing or invalid provider / resource configuration."""


class ResourceError(NsxProviderError):
    """A CRUD handler failed. The message names the resource and operation."""


class NsxApiError(NsxProviderError):
    """
    NSX Manager answered with an HTTP error status.

    NSX error bodies look like:
        {
          "httpStatus": "BAD_REQUEST",
          "error_code": 500012,
          "module_name": "common-services",
          "error_message": "Invalid value for action",
          "related_errors": [...]
        }

    Attributes:
        status_code:   HTTP status code of the response
        error_code:    NSX numeric error code, if the body carried one
        error_message: NSX error message, or the raw body text
        response:      The underlying requests.Response (may be None)
    """

    def __init__(
        self,
        status_code: int,
        error_message: str = "",
        error_code: Optional[int] = None,
        response: Any = None,
    ):
        self.status_code = status_code
        self.error_message = error_message
        self.error_code = error_code
        self.response = response
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"HTTP {self.status_code}"
        if self.error_code is not None:
            text += f" (error {self.error_code})"
        if self.error_message:
            text += f": {self.error_message}"
        return text

    @classmethod
    def from_response(cls, response) -> "NsxApiError":
        """Build the matching error (NotFoundError for 404) from a response."""
        error_message = ""
        error_code = None
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error_message = body.get("error_message", "")
            error_code = body.get("error_code")
        elif response.text:
            error_message = response.text.strip()

        error_cls = NotFoundError if response.status_code == 404 else cls
        return error_cls(
            response.status_code,
            error_message=error_message,
            error_code=error_code,
            response=response,
        )


class NotFoundError(NsxApiError):
    """The addressed object does not exist (HTTP 404)."""


class ApplyError(ResourceError):
    """
    A handler failed part way through an apply.

    ``state`` records every object known to exist at that point: the entries
    handled so far plus the untouched entries of the previous state. Writing
    it keeps the next apply from creating duplicates.
    """

    def __init__(self, message: str, state: dict):
        super().__init__(message)
        self.state = state
