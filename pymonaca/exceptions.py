"""Exceptions raised by the Monaca client and sync engine."""

from typing import Any, Optional


class MonacaError(Exception):
    """Base exception for all pymonaca errors."""


class MonacaIOError(MonacaError):
    """Local filesystem access failed (scan, transfer or config file)."""


class MonacaNetworkError(MonacaError):
    """Transport-level failure while talking to the Monaca API."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class MonacaAPIError(MonacaError):
    """The Monaca API answered with a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MonacaAuthenticationError(MonacaAPIError):
    """Not logged in, or the login was rejected."""


class MonacaInvalidResponseError(MonacaAPIError):
    """The API returned a body that could not be parsed."""


class MonacaValidationError(MonacaError):
    """Invalid input such as a missing build platform or config key."""


class MonacaConfigError(MonacaError):
    """Project or client configuration is missing."""


class MonacaLockTimeoutError(MonacaError):
    """The configuration lock could not be acquired in time."""


class MonacaTransferError(MonacaError):
    """A single file upload or download failed."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"Transfer of {path} failed: {cause}")
        self.path = path
        self.cause = cause


class MonacaBuildError(MonacaError):
    """Base class for remote build failures."""


class MonacaBuildTimeoutError(MonacaBuildError):
    """The build did not reach a terminal state within the polling bound."""


class MonacaBuildFailedError(MonacaBuildError):
    """The remote build finished with a failure status."""

    def __init__(self, message: str, payload: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}
