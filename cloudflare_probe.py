"""
Cloudflare proxy confirmation.

An A record inside Cloudflare's anycast ranges does not prove the domain is
actually enrolled and proxied. A live HEAD request to the domain closes that
gap: only a proxied zone answers with Cloudflare's response headers.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 3.0

CLOUDFLARE_SERVER_NAME = "cloudflare"
CLOUDFLARE_MARKER_HEADERS = ("cf-ray", "cf-cache-status")


def has_cloudflare_headers(headers: httpx.Headers) -> bool:
    """True if the response headers carry a Cloudflare fingerprint."""
    server = headers.get("server", "")
    if CLOUDFLARE_SERVER_NAME in server.lower():
        return True
    return any(name in headers for name in CLOUDFLARE_MARKER_HEADERS)


async def confirms_cloudflare(domain: str, client: Optional[httpx.AsyncClient] = None) -> bool:
    """
    HEAD https://{domain} and inspect the headers for Cloudflare markers.

    Never raises: network errors, timeouts and invalid URLs all count as
    "not confirmed".
    """
    url = f"https://{domain}"
    try:
        if client is not None:
            resp = await client.head(url, timeout=PROBE_TIMEOUT_SECONDS, follow_redirects=False)
        else:
            async with httpx.AsyncClient(timeout=PROBE_TIMEOUT_SECONDS) as probe_client:
                resp = await probe_client.head(url, follow_redirects=False)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"Cloudflare probe failed for {domain}: {type(e).__name__}: {e}")
        return False

    confirmed = has_cloudflare_headers(resp.headers)
    logger.debug(f"Cloudflare probe for {domain}: status={resp.status_code} confirmed={confirmed}")
    return confirmed
