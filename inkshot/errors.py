"""Exception types raised by inkshot components."""
from typing import List


class InkshotError(Exception):
    """Base class for all inkshot errors"""

    error_type = "capture_error"


class BrowserUnavailable(InkshotError):
    """The rendering backend has not been initialized (or was closed)"""

    error_type = "browser_unavailable"


class NavigationTimeout(InkshotError):
    """The target page did not finish loading within the timeout"""

    error_type = "navigation_timeout"


class NavigationError(InkshotError):
    """The target page could not be loaded"""

    error_type = "navigation_error"


class UnsupportedFormat(InkshotError):
    error_type = "unsupported_format"


class NotFound(InkshotError):
    """Missing profile or screenshot"""

    error_type = "not_found"


class ValidationError(InkshotError):
    """Profile or request fields out of range; carries every violation"""

    error_type = "validation_error"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))
