"""Custom exceptions for the rate limiter service.

Rejections are never exceptions; they are ordinary decision results.
These classes cover transport and store failures only.
"""


class RateLabException(Exception):
    """Base class for service exceptions with HTTP status code."""
    status_code: int = 500

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class StoreUnavailableError(RateLabException):
    """Raised when the shared store cannot serve a call in time.

    Always caught by the shared-store fallback path; never surfaces to
    HTTP callers.
    """
    status_code = 503

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        detail = f"Shared store call '{operation}' failed"
        if cause is not None:
            detail += f": {cause!r}"
        super().__init__(detail)


class UnknownAlgorithmError(RateLabException):
    """Raised at the HTTP boundary for an unrecognised algorithm name.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404

    def __init__(self, algorithm: str):
        self.algorithm = algorithm
        super().__init__(f"Unknown algorithm: {algorithm}")


class InvalidConfigError(RateLabException):
    """Raised when a config request body is structurally unusable.

    Individual malformed values are dropped instead; this is only for a
    missing algorithm or config object. Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, detail: str = "algo and config required"):
        self.detail = detail
        super().__init__(detail)
