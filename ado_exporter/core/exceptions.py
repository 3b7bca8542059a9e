"""
Exporter error taxonomy

    ExporterError
    ├── ConfigurationError   fatal, aborts startup
    ├── APIError             one remote call failed
    │   ├── TransientAPIError    retry budget exhausted (timeouts, 5xx, throttling)
    │   └── PermanentAPIError    non-retryable 4xx
    │       └── AuthError        credential rejected (401/403) or missing at startup
    ├── DiscoveryError       resource enumeration failed, previous snapshot kept
    └── ApplyError           plug-in emitted a command it does not own
"""


class ExporterError(Exception):
    """Base class for all exporter errors."""

    pass


class ConfigurationError(ExporterError):
    """Raised when configuration is missing or invalid."""

    pass


class APIError(ExporterError):
    """
    A single Azure DevOps REST call failed.

    Attributes:
        resource: API path (or URL) that was requested
        status: HTTP status code, or None for network-level failures
    """

    def __init__(self, message: str, resource: str, status: int | None = None):
        super().__init__(message)
        self.resource = resource
        self.status = status

    def __str__(self) -> str:
        status = self.status if self.status is not None else "n/a"
        return f"{self.args[0]} [resource={self.resource} status={status}]"


class TransientAPIError(APIError):
    """Retryable failure that persisted after the whole retry budget."""

    pass


class PermanentAPIError(APIError):
    """Non-retryable client error (4xx other than throttling)."""

    pass


class AuthError(PermanentAPIError):
    """Credential missing at startup or rejected by the server."""

    def __init__(self, message: str, resource: str = "", status: int | None = None):
        super().__init__(message, resource, status)


class DiscoveryError(ExporterError):
    """Resource discovery failed; the previous snapshot stays in service."""

    pass


class ApplyError(ExporterError):
    """A queued apply command violates the plug-in contract."""

    pass
