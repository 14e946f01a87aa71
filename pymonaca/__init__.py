"""PyMonaca - sync and build Monaca projects from Python."""

from ._version import __version__
from .api import MonacaClient
from .build import BuildOrchestrator, BuildRequest, BuildResult
from .exceptions import (
    MonacaAPIError,
    MonacaAuthenticationError,
    MonacaBuildError,
    MonacaBuildFailedError,
    MonacaBuildTimeoutError,
    MonacaConfigError,
    MonacaError,
    MonacaInvalidResponseError,
    MonacaIOError,
    MonacaLockTimeoutError,
    MonacaNetworkError,
    MonacaTransferError,
    MonacaValidationError,
)
from .utils import calculate_content_hash

__all__ = [
    "__version__",
    "MonacaClient",
    "BuildOrchestrator",
    "BuildRequest",
    "BuildResult",
    "MonacaError",
    "MonacaAPIError",
    "MonacaAuthenticationError",
    "MonacaBuildError",
    "MonacaBuildFailedError",
    "MonacaBuildTimeoutError",
    "MonacaConfigError",
    "MonacaInvalidResponseError",
    "MonacaIOError",
    "MonacaLockTimeoutError",
    "MonacaNetworkError",
    "MonacaTransferError",
    "MonacaValidationError",
    "calculate_content_hash",
]
