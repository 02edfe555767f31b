"""
Domain check endpoints.

GET /?domain=<name> answers with a plain-text verdict, suitable as the
"ask" hook of an on-demand TLS reverse proxy: 200 means the domain points
at us (directly or through Cloudflare), anything else means no.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from verification import DomainVerifier, VerificationOutcome

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Domain Check"])


@router.get("/", response_class=PlainTextResponse)
async def check_domain(request: Request, domain: Optional[str] = None):
    """
    Verify that `domain` points to a predefined IP or is proxied by Cloudflare.
    """
    verifier: DomainVerifier = request.app.state.verifier

    try:
        outcome = await verifier.verify(domain)
    except Exception:
        # Callers only ever see one of the fixed verdicts
        logger.exception(f"Unexpected error verifying domain {domain!r}")
        outcome = VerificationOutcome.REJECTED_NO_MATCH

    return PlainTextResponse(outcome.message, status_code=outcome.status_code)


@router.get("/health")
async def health(request: Request):
    """Liveness plus Cloudflare range cache status. No network access."""
    range_cache = request.app.state.range_cache
    return JSONResponse({
        "status": "ok",
        "cloudflare_ranges": range_cache.snapshot(),
    })
