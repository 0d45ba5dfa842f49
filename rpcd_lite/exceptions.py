"""
rpcd exception hierarchy and error handling utilities.
"""

from __future__ import annotations

import errno
import logging
import traceback
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Status codes returned to RPC callers (ubus numbering)."""

    OK = 0
    INVALID_COMMAND = 1
    INVALID_ARGUMENT = 2
    METHOD_NOT_FOUND = 3
    NOT_FOUND = 4
    NO_DATA = 5
    PERMISSION_DENIED = 6
    TIMEOUT = 7
    NOT_SUPPORTED = 8
    UNKNOWN_ERROR = 9


_ERRNO_CODES: Dict[int, ErrorCode] = {
    errno.EACCES: ErrorCode.PERMISSION_DENIED,
    errno.EPERM: ErrorCode.PERMISSION_DENIED,
    errno.ENOTDIR: ErrorCode.INVALID_ARGUMENT,
    errno.EINVAL: ErrorCode.INVALID_ARGUMENT,
    errno.ENOENT: ErrorCode.NOT_FOUND,
    errno.ESRCH: ErrorCode.NOT_FOUND,
}


class RpcdError(Exception):
    """Base exception for all rpcd errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    @classmethod
    def from_os_error(cls, exc: OSError) -> "RpcdError":
        """Map an OS-level failure to the matching caller-visible status."""
        code = _ERRNO_CODES.get(exc.errno, ErrorCode.UNKNOWN_ERROR)
        details: Dict[str, Any] = {"errno": exc.errno}
        if exc.filename:
            details["path"] = str(exc.filename)
        return cls(exc.strerror or str(exc), code=code, details=details, cause=exc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to JSON-serializable dict."""
        result = {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code.value,
            "code_name": self.code.name,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    def log(self, level: int = logging.ERROR):
        """Log this exception with context."""
        logger.log(
            level,
            f"{self.__class__.__name__}: {self.message} (code={self.code.name})",
            extra={"details": self.details, "cause": self.cause},
        )


class InvalidArgumentError(RpcdError):
    """Malformed, missing or disallowed request fields."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", ErrorCode.INVALID_ARGUMENT)
        super().__init__(message, **kwargs)


class NotFoundError(RpcdError):
    """Missing file, object or other resource."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", ErrorCode.NOT_FOUND)
        super().__init__(message, **kwargs)


class PermissionDeniedError(RpcdError):
    """Permission-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", ErrorCode.PERMISSION_DENIED)
        super().__init__(message, **kwargs)


class MethodNotFoundError(RpcdError):

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", ErrorCode.METHOD_NOT_FOUND)
        super().__init__(message, **kwargs)


def format_exception_details(exc: Exception) -> Dict[str, Any]:
    """Extract detailed information from exception."""
    return {
        "type": type(exc).__name__,
        "message": str(exc),
        "traceback": traceback.format_exc(),
    }
