"""
Enrichment - Token Metadata Fetcher.

============================================================
PURPOSE
============================================================
Best-effort lookup of display metadata behind a token URI.

POLICY (by response shape):
1. Network error / timeout / non-2xx status -> None
2. Content-Type image/*                     -> URI is the image
3. JSON object                              -> parsed metadata
4. Anything unparsable                      -> URI is the image

PRINCIPLES:
- Never raises: enrichment must not block delivery
- One attempt per record, no retry, no cache
- Bodies over MAX_DOCUMENT_BYTES are rejected, declared or chunked

============================================================
"""

import asyncio
import dataclasses
import json
import logging
from typing import Optional

import aiohttp

from core.constants import DEFAULT_IPFS_GATEWAY_URL, DEFAULT_METADATA_TIMEOUT_SECONDS
from core.exceptions import EnrichmentError

from .models import TokenMetadata


logger = logging.getLogger(__name__)


IPFS_SCHEME = "ipfs://"
MAX_DOCUMENT_BYTES = 1_048_576
READ_CHUNK_BYTES = 65_536


class MetadataEnricher:
    """
    Fetches and interprets token metadata documents.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_METADATA_TIMEOUT_SECONDS,
        ipfs_gateway_url: str = DEFAULT_IPFS_GATEWAY_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """
        Initialize the enricher.

        Args:
            timeout: Total timeout per fetch in seconds
            ipfs_gateway_url: HTTP gateway prefix for ipfs:// URIs
            session: Optional shared HTTP session (not closed by us)
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._gateway = ipfs_gateway_url if ipfs_gateway_url.endswith("/") else ipfs_gateway_url + "/"
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the enricher's own session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def resolve_uri(self, uri: str) -> str:
        """Rewrite ipfs:// URIs to the configured HTTP gateway."""
        if uri.lower().startswith(IPFS_SCHEME):
            path = uri[len(IPFS_SCHEME):]
            if path.lower().startswith("ipfs/"):
                path = path[len("ipfs/"):]
            return self._gateway + path
        return uri

    async def fetch(self, uri: Optional[str]) -> Optional[TokenMetadata]:
        """
        Fetch metadata for a token URI.

        Returns None when nothing usable could be obtained.
        """
        if not uri or not uri.strip():
            return None

        url = self.resolve_uri(uri.strip())

        try:
            return await self._fetch_document(url)
        except EnrichmentError as e:
            logger.warning(f"Metadata unavailable: {e.to_log_format()}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected error fetching metadata from {url}: {e}")
            return None

    async def _fetch_document(self, url: str) -> Optional[TokenMetadata]:
        """
        One GET of a metadata document.

        Raises:
            EnrichmentError: transport failure, non-2xx status or
                a document larger than MAX_DOCUMENT_BYTES
        """
        try:
            session = await self._get_session()
            async with session.get(url, timeout=self._timeout) as response:
                if not 200 <= response.status < 300:
                    raise EnrichmentError(f"HTTP {response.status}", uri=url)

                content_type = (response.headers.get("Content-Type") or "").lower()
                if content_type.startswith("image/"):
                    logger.debug(f"Metadata URI {url} is an image ({content_type})")
                    return TokenMetadata.image_only(url)

                if response.content_length and response.content_length > MAX_DOCUMENT_BYTES:
                    raise EnrichmentError(
                        f"Document too large ({response.content_length} bytes)", uri=url
                    )

                body = await self._read_limited(response, url)

        except asyncio.TimeoutError as e:
            raise EnrichmentError("Request timed out", uri=url, cause=e) from e
        except aiohttp.ClientError as e:
            raise EnrichmentError(f"Request failed: {e}", uri=url, cause=e) from e

        return self._interpret(body, url)

    @staticmethod
    async def _read_limited(response: aiohttp.ClientResponse, url: str) -> bytes:
        """Read the body, giving up once it passes MAX_DOCUMENT_BYTES."""
        body = bytearray()
        async for chunk in response.content.iter_chunked(READ_CHUNK_BYTES):
            body.extend(chunk)
            if len(body) > MAX_DOCUMENT_BYTES:
                raise EnrichmentError(
                    f"Document exceeds {MAX_DOCUMENT_BYTES} bytes", uri=url
                )
        return bytes(body)

    def _interpret(self, body: bytes, url: str) -> Optional[TokenMetadata]:
        """Parse a fetched body; unparsable content is treated as an image."""
        try:
            document = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            logger.warning(f"Metadata at {url} is not JSON, using it as image reference")
            return TokenMetadata.image_only(url)

        if not isinstance(document, dict):
            logger.warning(f"Metadata at {url} is not a JSON object, using it as image reference")
            return TokenMetadata.image_only(url)

        metadata = TokenMetadata.from_json(document)
        if metadata.is_empty:
            logger.warning(f"Metadata at {url} has no usable fields")
            return None

        if metadata.image:
            metadata = dataclasses.replace(metadata, image=self.resolve_uri(metadata.image))

        return metadata


__all__ = ["MetadataEnricher"]
