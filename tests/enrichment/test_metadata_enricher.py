"""
Tests for the metadata enricher.

============================================================
PURPOSE
============================================================
Enrichment is best-effort: every failure mode yields None
(or an image-only result) and nothing is ever raised.

============================================================
"""

import asyncio
import json
import logging
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from enrichment.metadata import MAX_DOCUMENT_BYTES, MetadataEnricher
from enrichment.models import TokenMetadata


# ============================================================
# FIXTURES
# ============================================================

def _response(
    status: int = 200,
    body: bytes = b"",
    content_type: str = "application/json",
    content_length: Optional[int] = None,
    chunk_size: int = 1024,
):
    async def iter_chunked(n):
        for start in range(0, len(body), chunk_size):
            yield body[start:start + chunk_size]

    response = MagicMock()
    response.status = status
    response.headers = {"Content-Type": content_type}
    response.content_length = content_length
    response.content.iter_chunked = MagicMock(side_effect=iter_chunked)
    return response


def _session(response=None, error: Optional[BaseException] = None):
    context = MagicMock()
    if error is not None:
        context.__aenter__ = AsyncMock(side_effect=error)
    else:
        context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.get = MagicMock(return_value=context)
    session.close = AsyncMock()
    return session


def _enricher(session) -> MetadataEnricher:
    return MetadataEnricher(timeout=1.0, ipfs_gateway_url="https://gw.example/ipfs", session=session)


# ============================================================
# FETCH
# ============================================================

class TestMetadataFetch:
    """Tests for MetadataEnricher.fetch."""

    @pytest.mark.asyncio
    async def test_empty_uri_returns_none_without_request(self):
        session = _session(_response())
        enricher = _enricher(session)

        assert await enricher.fetch("") is None
        assert await enricher.fetch(None) is None
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_json_document_is_parsed(self):
        document = {
            "name": "Foo",
            "symbol": "FOO",
            "description": "A token",
            "image": "https://img.example/foo.png",
            "extensions": {"website": "https://foo.example", "twitter": "foo"},
        }
        enricher = _enricher(_session(_response(body=json.dumps(document).encode())))

        metadata = await enricher.fetch("https://meta.example/foo.json")

        assert metadata.name == "Foo"
        assert metadata.symbol == "FOO"
        assert metadata.image == "https://img.example/foo.png"
        assert metadata.links == {"website": "https://foo.example", "twitter": "foo"}

    @pytest.mark.asyncio
    async def test_image_content_type_uses_uri_as_image(self):
        enricher = _enricher(_session(_response(content_type="image/png")))

        metadata = await enricher.fetch("https://img.example/foo.png")

        assert metadata == TokenMetadata(image="https://img.example/foo.png")

    @pytest.mark.asyncio
    async def test_unparsable_body_uses_uri_as_image(self):
        enricher = _enricher(_session(_response(body=b"\x89PNG....", content_type="")))

        metadata = await enricher.fetch("https://cdn.example/blob")

        assert metadata.image == "https://cdn.example/blob"
        assert metadata.name is None

    @pytest.mark.asyncio
    async def test_non_object_json_uses_uri_as_image(self):
        enricher = _enricher(_session(_response(body=b"[1, 2, 3]")))

        metadata = await enricher.fetch("https://meta.example/list.json")

        assert metadata.image == "https://meta.example/list.json"

    @pytest.mark.asyncio
    async def test_json_without_usable_fields_returns_none(self):
        enricher = _enricher(_session(_response(body=b'{"seller_fee_basis_points": 0}')))

        assert await enricher.fetch("https://meta.example/empty.json") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 302])
    async def test_non_2xx_returns_none(self, status):
        enricher = _enricher(_session(_response(status=status)))

        assert await enricher.fetch("https://meta.example/x.json") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        asyncio.TimeoutError(),
        aiohttp.ClientConnectionError("refused"),
        RuntimeError("unexpected"),
    ])
    async def test_transport_failures_return_none(self, error):
        enricher = _enricher(_session(error=error))

        assert await enricher.fetch("https://meta.example/x.json") is None

    @pytest.mark.asyncio
    async def test_oversized_document_returns_none(self):
        enricher = _enricher(_session(_response(content_length=50 * 1024 * 1024)))

        assert await enricher.fetch("https://meta.example/huge.json") is None

    @pytest.mark.asyncio
    async def test_oversized_chunked_document_stops_reading(self):
        body = b'{"name": "' + b"x" * (MAX_DOCUMENT_BYTES + 10) + b'"}'
        response = _response(body=body, chunk_size=256 * 1024)
        enricher = _enricher(_session(response))

        assert await enricher.fetch("https://meta.example/stream.json") is None
        response.content.iter_chunked.assert_called_once()

    @pytest.mark.asyncio
    async def test_failures_are_logged_as_enrichment_errors(self, caplog):
        enricher = _enricher(_session(_response(status=404)))

        with caplog.at_level(logging.WARNING, logger="enrichment.metadata"):
            assert await enricher.fetch("https://meta.example/gone.json") is None

        assert "EnrichmentError: HTTP 404" in caplog.text
        assert "uri=https://meta.example/gone.json" in caplog.text


class TestIpfsResolution:
    """Tests for ipfs:// gateway rewriting."""

    def test_ipfs_uri_is_rewritten(self):
        enricher = _enricher(_session())

        assert enricher.resolve_uri("ipfs://bafyabc/meta.json") == "https://gw.example/ipfs/bafyabc/meta.json"
        assert enricher.resolve_uri("ipfs://ipfs/bafyabc") == "https://gw.example/ipfs/bafyabc"

    def test_http_uri_is_unchanged(self):
        enricher = _enricher(_session())

        assert enricher.resolve_uri("https://x.example/a") == "https://x.example/a"

    @pytest.mark.asyncio
    async def test_fetch_uses_gateway_and_resolves_image(self):
        body = json.dumps({"name": "Foo", "image": "ipfs://bafyimg"}).encode()
        session = _session(_response(body=body))
        enricher = _enricher(session)

        metadata = await enricher.fetch("ipfs://bafymeta")

        assert session.get.call_args.args[0] == "https://gw.example/ipfs/bafymeta"
        assert metadata.image == "https://gw.example/ipfs/bafyimg"


class TestSessionOwnership:
    """The enricher only closes sessions it created."""

    @pytest.mark.asyncio
    async def test_shared_session_is_not_closed(self):
        session = _session()
        enricher = _enricher(session)

        await enricher.close()

        session.close.assert_not_called()


class TestTokenMetadataModel:
    """Tests for TokenMetadata.from_json."""

    def test_top_level_links_win_over_nested(self):
        metadata = TokenMetadata.from_json({
            "website": "https://top.example",
            "properties": {"website": "https://nested.example", "discord": "https://discord.gg/x"},
        })

        assert metadata.links == {
            "website": "https://top.example",
            "discord": "https://discord.gg/x",
        }

    def test_non_string_fields_are_ignored(self):
        metadata = TokenMetadata.from_json({"name": 5, "symbol": "  ", "image": None})

        assert metadata.is_empty
