"""
Bundle pipeline error taxonomy.
Every stage raises one of these; the router turns them into {errorMessage, ...details}.
"""
from typing import Any, Dict, Optional


class BundleError(Exception):
    """Base class for errors that abort the add-bundle pipeline."""

    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"errorMessage": self.message}
        payload.update(self.details)
        return payload


class ValidationError(BundleError):
    """Missing/malformed input, pricing-method conflict, missing coverage."""


class NotFoundError(BundleError):
    """Product or variant could not be resolved upstream."""

    status_code = 404


class UpstreamError(BundleError):
    """The commerce API answered with an error list."""


class StockError(BundleError):
    """A requested variant has no available quantity."""

    def __init__(self, message: str = "One or more items in the bundle are out of stock"):
        super().__init__(message)


class UnexpectedError(BundleError):
    """Transport or parse failure. The cause is logged, never returned."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
