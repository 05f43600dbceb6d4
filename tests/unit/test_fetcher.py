"""Unit tests for the HTTP fetcher — probes, downloads and error mapping."""

from __future__ import annotations

import httpx
import pytest

from conftest import ALPHA_BYTES, ALPHA_URL, MockNetwork
from manifestwarden.core.errors import TransportError
from manifestwarden.core.fetcher import HttpFetcher


class TestProbeLength:
    def test_head_length(self, network: MockNetwork):
        assert network.fetcher().probe_length(ALPHA_URL) == len(ALPHA_BYTES)
        assert network.calls == [("HEAD", ALPHA_URL)]

    def test_missing_length_is_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, request=request)

        fetcher = HttpFetcher(client=httpx.Client(transport=httpx.MockTransport(handler)))
        assert fetcher.probe_length("https://x.example.org/a") is None

    def test_head_refused_falls_back_to_get(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.method)
            if request.method == "HEAD":
                return httpx.Response(405, request=request)
            return httpx.Response(200, content=b"x" * 42, request=request)

        fetcher = HttpFetcher(client=httpx.Client(transport=httpx.MockTransport(handler)))
        assert fetcher.probe_length("https://x.example.org/a") == 42
        assert seen == ["HEAD", "GET"]

    def test_http_error_status(self, network: MockNetwork):
        network.status[ALPHA_URL] = 500
        with pytest.raises(TransportError) as exc_info:
            network.fetcher().probe_length(ALPHA_URL)
        assert not exc_info.value.timed_out

    def test_timeout_flagged(self, network: MockNetwork):
        network.timeouts.add(ALPHA_URL)
        with pytest.raises(TransportError) as exc_info:
            network.fetcher().probe_length(ALPHA_URL)
        assert exc_info.value.timed_out
        assert exc_info.value.url == ALPHA_URL


class TestDownload:
    def test_body_returned(self, network: MockNetwork):
        assert network.fetcher().download(ALPHA_URL) == ALPHA_BYTES

    def test_404_is_transport_error(self, network: MockNetwork):
        with pytest.raises(TransportError, match="download failed"):
            network.fetcher().download("https://downloads.example.org/missing")

    def test_timeout(self, network: MockNetwork):
        network.timeouts.add(ALPHA_URL)
        with pytest.raises(TransportError, match="timed out"):
            network.fetcher().download(ALPHA_URL)

    def test_context_manager_closes_owned_client(self):
        with HttpFetcher(timeout=1.0) as fetcher:
            assert fetcher is not None
