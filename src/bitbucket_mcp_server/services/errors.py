"""Structured Bitbucket error types and HTTP failure classification."""

from enum import Enum
from typing import Any, ClassVar

import httpx


class ErrorKind(str, Enum):
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT_ERROR = "CONFLICT_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_FETCH_ERROR = "FILE_FETCH_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    CONNECTION_TEST_FAILED = "CONNECTION_TEST_FAILED"


class BitbucketError(Exception):
    """
    Base class for classified Bitbucket failures.

    Every subclass fixes its kind, remediation hint and retryability; instances
    carry the message, optional HTTP status and diagnostic details.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.UNKNOWN_ERROR
    suggestion: ClassVar[str] = "An unexpected error occurred. Check the details and try again."
    is_retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errorKind": self.kind.value,
            "statusCode": self.status_code,
            "suggestion": self.suggestion,
            "isRetryable": self.is_retryable,
            "details": self.details,
        }


class AuthenticationError(BitbucketError):
    kind = ErrorKind.AUTHENTICATION_ERROR
    suggestion = (
        "Check ATLASSIAN_USER_EMAIL and ATLASSIAN_API_TOKEN. The token may be expired or revoked."
    )


class PermissionDeniedError(BitbucketError):
    kind = ErrorKind.PERMISSION_ERROR
    suggestion = "The credentials lack permission for this resource. Verify the token scopes and repository access."


class NotFoundError(BitbucketError):
    kind = ErrorKind.NOT_FOUND_ERROR
    suggestion = "Verify the workspace, repository slug and identifiers exist and are spelled correctly."


class BadRequestError(BitbucketError):
    kind = ErrorKind.VALIDATION_ERROR
    suggestion = "The request was rejected as invalid. Check the parameter values against the API requirements."


class ConflictError(BitbucketError):
    kind = ErrorKind.CONFLICT_ERROR
    suggestion = "The resource changed or already exists. Refresh its current state and retry the operation."


class RateLimitError(BitbucketError):
    kind = ErrorKind.RATE_LIMIT_ERROR
    suggestion = "Rate limit exceeded. Wait before sending more requests."
    is_retryable = True


class ServerError(BitbucketError):
    kind = ErrorKind.SERVER_ERROR
    suggestion = "Bitbucket returned a server error. Retry later or check the Bitbucket status page."
    is_retryable = True


class NetworkError(BitbucketError):
    kind = ErrorKind.NETWORK_ERROR
    suggestion = "Could not reach Bitbucket. Check ATLASSIAN_SITE_URL, DNS and network connectivity."
    is_retryable = True


class RequestTimeoutError(BitbucketError):
    kind = ErrorKind.TIMEOUT_ERROR
    suggestion = "The request timed out. Retry, or narrow the request if the payload is large."
    is_retryable = True


class RemoteFileNotFoundError(BitbucketError):
    kind = ErrorKind.FILE_NOT_FOUND
    suggestion = "Verify the file path and that it exists at the given commit."


class FileFetchError(BitbucketError):
    kind = ErrorKind.FILE_FETCH_ERROR
    suggestion = "The file could not be retrieved. Check the commit hash and file path."


class UnknownError(BitbucketError):
    pass


class ConnectionTestFailedError(BitbucketError):
    kind = ErrorKind.CONNECTION_TEST_FAILED
    suggestion = "Could not list workspaces. Check the site URL and credentials."

    def __init__(self, cause: BitbucketError):
        super().__init__(
            f"Connection test failed: {cause.message}",
            status_code=cause.status_code,
            details={"cause": cause.kind.value, **cause.details},
        )
        self.is_retryable = cause.is_retryable


_STATUS_ERRORS: dict[int, type[BitbucketError]] = {
    400: BadRequestError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
    429: RateLimitError,
}


def error_for_status(status_code: int) -> type[BitbucketError]:
    """Map an HTTP status code to its error class."""
    if status_code >= 500:
        return ServerError
    return _STATUS_ERRORS.get(status_code, UnknownError)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def classify_http_error(exc: Exception, method: str, path: str) -> BitbucketError:
    """
    Translate an httpx failure into a structured BitbucketError.

    Args:
        exc: The exception raised while sending the request or checking its status
        method: HTTP method of the failed request
        path: API path of the failed request (relative to the base URL)
    """
    details: dict[str, Any] = {"method": method, "path": path}

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        details["response"] = _response_body(exc.response)
        error_cls = error_for_status(status)
        return error_cls(f"Bitbucket API error {status} for {method} {path}", status_code=status, details=details)

    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(f"Request timed out: {method} {path}", details=details)

    if isinstance(exc, httpx.NetworkError):
        details["reason"] = str(exc)
        return NetworkError(f"Network error for {method} {path}: {exc}", details=details)

    details["reason"] = str(exc)
    return UnknownError(f"Unexpected error for {method} {path}: {exc}", details=details)
