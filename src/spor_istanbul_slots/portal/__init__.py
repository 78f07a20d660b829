from .client import GymPortalClient
from .extraction import extract_appointments, extract_from_html
from .navigation import NavState, PortalCredentials
from .selectors import PortalSelectors

__all__ = [
    "GymPortalClient",
    "NavState",
    "PortalCredentials",
    "PortalSelectors",
    "extract_appointments",
    "extract_from_html",
]
