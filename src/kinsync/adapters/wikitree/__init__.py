"""WikiTree provider adapter."""

from __future__ import annotations

from .client import WikiTreeAPIError, WikiTreeAuthError, WikiTreeClient, WikiTreeNotFoundError
from .driver import WikiTreeDriver
from .schema import WikiTreeParent, WikiTreeProfile, WikiTreeProfileResponse
from .translator import parent_references, parse_date, translate_profile

__all__ = [
    "WikiTreeAPIError",
    "WikiTreeAuthError",
    "WikiTreeClient",
    "WikiTreeDriver",
    "WikiTreeNotFoundError",
    "WikiTreeParent",
    "WikiTreeProfile",
    "WikiTreeProfileResponse",
    "parent_references",
    "parse_date",
    "translate_profile",
]
