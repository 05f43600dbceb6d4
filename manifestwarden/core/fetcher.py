"""HTTP transport — metadata probes and downloads with explicit timeouts.

Every network operation goes through :class:`HttpFetcher`.  Any httpx
failure (connect error, HTTP error status, timeout) is re-raised as
``TransportError`` so callers can tell "could not check" apart from
"checked and failed".
"""

from __future__ import annotations

import logging

import httpx

from manifestwarden.core.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "manifestwarden/0.1"

# Statuses some hosts return for HEAD while serving GET fine.
_HEAD_REFUSED = frozenset({403, 405, 501})


def _parse_length(value: str | None) -> int | None:
    if value is None:
        return None
    value = value.strip()
    return int(value) if value.isdigit() else None


class HttpFetcher:
    """Thin wrapper around an ``httpx.Client``.

    Parameters
    ----------
    timeout:
        Seconds allowed for each connect/read/write/pool phase.
    user_agent:
        Value of the ``User-Agent`` header.
    client:
        Pre-built client (tests pass one backed by ``httpx.MockTransport``).
        When omitted, a redirect-following client is created.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Probe
    # ------------------------------------------------------------------

    def probe_length(self, url: str) -> int | None:
        """Return the remote Content-Length without downloading the body.

        Tries ``HEAD`` first; hosts that refuse it get a streamed ``GET``
        whose body is never read.  Returns ``None`` when the server does not
        declare a length.
        """
        try:
            response = self._client.head(url)
            if response.status_code in _HEAD_REFUSED:
                logger.debug("HEAD refused (%d) for %s, probing with GET", response.status_code, url)
                with self._client.stream("GET", url) as streamed:
                    streamed.raise_for_status()
                    return _parse_length(streamed.headers.get("content-length"))
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise TransportError(f"probe timed out: {url}", url=url, timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"probe failed for {url}: {exc}", url=url) from exc
        return _parse_length(response.headers.get("content-length"))

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def download(self, url: str) -> bytes:
        """Fetch the full body of *url*; non-2xx responses are failures."""
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise TransportError(f"download timed out: {url}", url=url, timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"download failed for {url}: {exc}", url=url) from exc
        logger.debug("Downloaded %d bytes from %s", len(response.content), url)
        return response.content
