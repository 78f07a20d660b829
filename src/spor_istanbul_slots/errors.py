from __future__ import annotations


class PortalError(RuntimeError):
    """
    Base class for fatal errors raised while checking the portal.
    """


class ConfigurationError(PortalError):
    """
    Raised when required configuration (e.g. credentials) is missing or invalid.

    Detected before any browser action is taken.
    """


class NavigationTimeoutError(PortalError):
    """
    Raised when a navigation step's completion condition is not met within its bound.
    """


class ResourceCleanupError(PortalError):
    """
    Raised when releasing the browser session fails after an otherwise successful run.
    """
