"""
Concurrent dispatch of a validation request to every configured server.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Protocol, Sequence
from urllib.parse import urlsplit

import httpx
import structlog

from . import __version__
from .errors import TransportError
from .models import Classification, VerificationResult, Verdict
from .policy import decide
from .response import classify

logger = structlog.get_logger(__name__)

USER_AGENT = f"yubiotp-verifier/{__version__}"


class Fetcher(Protocol):
    """
    Transport used by the race.

    Returns the response body, or raises TransportError. Must be safe to call
    concurrently and must honour task cancellation.
    """

    def __call__(
        self,
        url: str,
        *,
        verify_tls: bool,
        timeout: float | None,
    ) -> Awaitable[str]: ...


class HttpxFetcher:
    """
    Default transport built on httpx.

    Args:
        timeout_s: Timeout applied when the caller passes none. Default: 5.0
        user_agent: User-Agent header sent to the servers
    """

    def __init__(self, timeout_s: float = 5.0, user_agent: str = USER_AGENT):
        self.timeout_s = timeout_s
        self.user_agent = user_agent

    async def __call__(
        self,
        url: str,
        *,
        verify_tls: bool = True,
        timeout: float | None = None,
    ) -> str:
        try:
            async with httpx.AsyncClient(
                verify=verify_tls,
                timeout=timeout or self.timeout_s,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        return response.text


def _host(url: str) -> str:
    # Never log the query: it carries the OTP and the signature
    return urlsplit(url).netloc


def compose_urls(query: str, endpoints: Sequence[str], https: bool = True) -> list[str]:
    """Full request URL for each endpoint, in endpoint order."""
    scheme = "https" if https else "http"
    return [f"{scheme}://{endpoint}?{query}" for endpoint in endpoints]


async def race(
    query: str,
    endpoints: Sequence[str],
    fetch: Fetcher,
    *,
    otp: str,
    nonce: str,
    key: bytes = b"",
    https: bool = True,
    verify_tls: bool = True,
    wait_for_all: bool = False,
    timeout: float | None = None,
) -> VerificationResult:
    """
    Send the same query to every endpoint at once and decide on the answers.

    Responses are classified in arrival order. Unless `wait_for_all` is set,
    the first OK or REPLAYED_OTP answer ends the race and every request still
    in flight is cancelled. A transport failure on one endpoint only removes
    that endpoint from consideration.

    Args:
        query: Finalized query string (see build_query)
        endpoints: Host and path fragments, e.g. "api.yubico.com/wsapi/2.0/verify"
        fetch: Transport used for each request
        otp: OTP sent in the query; responses must echo it
        nonce: Nonce sent in the query; responses must echo it
        key: Decoded shared key used to check response signatures
        https: Use https:// instead of http://
        verify_tls: Verify server certificates
        wait_for_all: Collect every response instead of stopping early
        timeout: Bound on each individual request, in seconds

    Returns:
        VerificationResult carrying the verdict and per-call diagnostics

    Raises:
        ValueError: If no endpoints are configured
    """
    if not endpoints:
        raise ValueError("No validation endpoints configured")

    urls = compose_urls(query, endpoints, https=https)
    result = VerificationResult(verdict=Verdict.TRANSPORT_FAILURE, query=" ".join(urls))
    log = logger.bind(endpoints=[_host(url) for url in urls], wait_for_all=wait_for_all)
    log.debug("Starting validation race")

    tasks = {
        asyncio.ensure_future(fetch(url, verify_tls=verify_tls, timeout=timeout)): url
        for url in urls
    }
    pending = set(tasks)
    classifications: list[Classification] = []
    tagged: list[str] = []
    decisive: Classification | None = None

    try:
        while pending and decisive is None:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                url = tasks[task]
                try:
                    body = task.result()
                except TransportError as e:
                    log.warning("Validation server failed", url=_host(url), error=str(e))
                    continue

                result.responses_received += 1
                if wait_for_all:
                    tagged.append(f"URL={url}\n{body}\n")

                classification = classify(body, otp=otp, nonce=nonce, key=key, url=url)
                classifications.append(classification)

                if classification.relevant and not result.response and not wait_for_all:
                    result.response = body
                if classification.verdict is None:
                    continue

                if not wait_for_all:
                    result.response = body
                    decisive = classification
                    break
    finally:
        for task in pending:
            task.cancel()
        # Collect cancelled and unprocessed tasks so their errors are retrieved
        await asyncio.gather(*tasks, return_exceptions=True)

    if wait_for_all:
        result.response = "".join(tagged)

    result.classifications = classifications
    result.verdict, result.status = decide(classifications, result.responses_received)
    result.url = next(
        (c.url for c in classifications if c.verdict is result.verdict), None
    )
    log.info(
        "Validation race finished",
        verdict=result.verdict.value,
        status=result.status,
        responses=result.responses_received,
        url=_host(result.url) if result.url else None,
    )
    return result
