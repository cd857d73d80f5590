"""
Platform catalog clients.

CatalogClient (base) is the interface the conversion engine consumes.
Concrete clients live in tunebridge.spotify and tunebridge.youtube;
build_catalog() picks one by platform name.
"""

from tunebridge.catalog.base import CatalogClient, is_transient_message
from tunebridge.catalog.factory import build_catalog

__all__ = [
    "CatalogClient",
    "build_catalog",
    "is_transient_message",
]
