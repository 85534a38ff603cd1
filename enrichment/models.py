"""
Enrichment - Models.

Display metadata fetched from a token's metadata URI.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from core.constants import LINK_ORDER


@dataclass(frozen=True)
class TokenMetadata:
    """
    Optional display data for a token.

    `links` maps a link kind (see LINK_ORDER) to a URL; kinds
    outside LINK_ORDER are dropped on construction via from_json.
    """

    name: Optional[str] = None
    symbol: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    links: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.symbol or self.description or self.image or self.links)

    @classmethod
    def image_only(cls, uri: str) -> "TokenMetadata":
        """Metadata where the URI itself is the token image."""
        return cls(image=uri)

    @classmethod
    def from_json(cls, document: Mapping[str, Any]) -> "TokenMetadata":
        """
        Interpret a metadata JSON document.

        Links are read from the top level first, then from the
        `extensions` and `properties` objects used by common
        token metadata standards.
        """
        links: Dict[str, str] = {}
        sources = [document]
        for key in ("extensions", "properties"):
            nested = document.get(key)
            if isinstance(nested, Mapping):
                sources.append(nested)

        for kind in LINK_ORDER:
            for source in sources:
                value = _clean_text(source.get(kind))
                if value:
                    links[kind] = value
                    break

        return cls(
            name=_clean_text(document.get("name")),
            symbol=_clean_text(document.get("symbol")),
            description=_clean_text(document.get("description")),
            image=_clean_text(document.get("image")),
            links=links,
        )


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


__all__ = ["TokenMetadata"]
