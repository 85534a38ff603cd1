"""
Enrichment Package.

Best-effort token metadata lookup used to decorate notifications.
"""

from .models import TokenMetadata
from .metadata import MetadataEnricher


__all__ = [
    "TokenMetadata",
    "MetadataEnricher",
]
