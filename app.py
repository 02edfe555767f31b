"""
TLS check server.

Run with:
    python app.py            (port from config.json, default 5555)
    uvicorn app:app          (behind an external process manager)
"""

import logging
from contextlib import asynccontextmanager
from functools import partial

import httpx
import uvicorn
from fastapi import FastAPI

import log_config  # noqa: F401  (configures logging on import)
from cloudflare_probe import confirms_cloudflare
from cloudflare_ranges import CloudflareRangeCache
from routes.domain_check import router as domain_check_router
from service_config import load_config
from verification import DomainVerifier

logger = logging.getLogger(__name__)

CLIENT_USER_AGENT = "tlscheck/1.0"


def build_http_client() -> httpx.AsyncClient:
    """One pooled client shared by the range refresh and the probes."""
    return httpx.AsyncClient(
        headers={"User-Agent": CLIENT_USER_AGENT},
        follow_redirects=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = load_config()
    client = build_http_client()
    range_cache = CloudflareRangeCache(client=client)

    app.state.config = config
    app.state.range_cache = range_cache
    app.state.verifier = DomainVerifier(
        config,
        range_cache,
        probe=partial(confirms_cloudflare, client=client),
    )

    # Warm the range cache; a failure here is logged and retried on demand
    await range_cache.get_ranges()

    logger.info(f"TLS check server is running on port {config.port}")

    try:
        yield
    finally:
        logger.info("Closing outbound HTTP client...")
        await client.aclose()


app = FastAPI(lifespan=lifespan)

app.include_router(domain_check_router)


if __name__ == '__main__':
    port = load_config().port
    logger.info(f"HTTP Server starting on 0.0.0.0:{port}")
    uvicorn.run(
        "app:app",
        host='0.0.0.0',
        port=port,
        log_config=None,
    )
