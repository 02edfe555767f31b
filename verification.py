"""
Domain verification pipeline.

Decides whether a domain points at our infrastructure, either directly
(A record matches one of the predefined IPs) or through Cloudflare (A record
inside Cloudflare's ranges AND a live probe shows Cloudflare headers).

Flow (short-circuits at the first determining step, local checks first):
1. Empty or blocklisted domain        -> REJECTED_BLOCKLISTED
2. More dots than subdomainAmount     -> REJECTED_TOO_MANY_SUBDOMAINS
3. A lookup fails or returns nothing  -> REJECTED_RESOLUTION_FAILED
4. Any address is a predefined IP     -> ALLOWED_PREDEFINED
5. Any address in Cloudflare ranges and the probe confirms
                                      -> ALLOWED_CLOUDFLARE
6. Anything else                      -> REJECTED_NO_MATCH

No retries: the first resolution error is final.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import dns.asyncresolver
import dns.exception

from cloudflare_probe import confirms_cloudflare
from cloudflare_ranges import CloudflareRangeCache
from ip_ranges import is_in_ranges
from service_config import ServiceConfig, normalize_domain

logger = logging.getLogger(__name__)

DNS_TIMEOUT_SECONDS = 3.0

Resolver = Callable[[str], Awaitable[List[str]]]
Probe = Callable[[str], Awaitable[bool]]


class ResolutionError(Exception):
    """A domain could not be resolved to any IPv4 address."""


class VerificationOutcome(Enum):
    """Terminal states of the pipeline with their HTTP mapping."""

    ALLOWED_PREDEFINED = (200, "DNS is pointing to the predefined IP")
    ALLOWED_CLOUDFLARE = (200, "DNS is pointing to Cloudflare")
    REJECTED_BLOCKLISTED = (400, "Disallowed")
    REJECTED_TOO_MANY_SUBDOMAINS = (403, "Too many subdomains")
    REJECTED_RESOLUTION_FAILED = (403, "DNS resolution failed")
    REJECTED_NO_MATCH = (403, "DNS is not pointing to allowed IP or Cloudflare")

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message

    @property
    def allowed(self) -> bool:
        return self.status_code == 200


# =============================================================================
# DNS
# =============================================================================

_resolver: Optional[dns.asyncresolver.Resolver] = None


def _get_resolver() -> dns.asyncresolver.Resolver:
    global _resolver
    if _resolver is None:
        resolver = dns.asyncresolver.Resolver()
        resolver.timeout = DNS_TIMEOUT_SECONDS
        resolver.lifetime = DNS_TIMEOUT_SECONDS
        _resolver = resolver
    return _resolver


async def resolve_ipv4(domain: str) -> List[str]:
    """
    Resolve A records for a domain using the system's nameservers.

    Raises:
        ResolutionError: NXDOMAIN, no answer, timeout, server failure or
            an unparseable name; the caller does not distinguish them
    """
    try:
        answers = await _get_resolver().resolve(domain, "A")
    except (dns.exception.DNSException, ValueError) as e:
        raise ResolutionError(f"{type(e).__name__}: {e}") from e
    return [rdata.address for rdata in answers]


# =============================================================================
# Pipeline
# =============================================================================

def count_label_separators(domain: str) -> int:
    return domain.count(".")


class DomainVerifier:
    """
    Runs the verification pipeline for one domain per call.

    Shares only the immutable config and the range cache between calls, so
    one instance serves all concurrent requests.
    """

    def __init__(
        self,
        config: ServiceConfig,
        range_cache: CloudflareRangeCache,
        resolver: Optional[Resolver] = None,
        probe: Optional[Probe] = None,
    ):
        self._config = config
        self._range_cache = range_cache
        self._resolve = resolver or resolve_ipv4
        self._probe = probe or confirms_cloudflare

    async def verify(self, domain: Optional[str]) -> VerificationOutcome:
        outcome = await self._run(normalize_domain(domain))
        logger.info(f"Verification of {domain!r}: {outcome.name}")
        return outcome

    async def _run(self, domain: str) -> VerificationOutcome:
        if not domain or domain in self._config.block_list:
            return VerificationOutcome.REJECTED_BLOCKLISTED

        if count_label_separators(domain) > self._config.subdomain_amount:
            return VerificationOutcome.REJECTED_TOO_MANY_SUBDOMAINS

        try:
            addresses = await self._resolve(domain)
        except ResolutionError as e:
            logger.info(f"DNS resolution failed for {domain}: {e}")
            return VerificationOutcome.REJECTED_RESOLUTION_FAILED
        if not addresses:
            logger.info(f"DNS resolution for {domain} returned no addresses")
            return VerificationOutcome.REJECTED_RESOLUTION_FAILED

        # Direct ownership wins even if the domain is also behind Cloudflare
        if any(address in self._config.ips for address in addresses):
            return VerificationOutcome.ALLOWED_PREDEFINED

        # One read of the cache; every address is judged against the same list
        ranges = await self._range_cache.get_ranges()
        matches = await asyncio.gather(*(self._in_cloudflare_ranges(address, ranges) for address in addresses))
        if not any(matches):
            return VerificationOutcome.REJECTED_NO_MATCH

        if await self._probe(domain):
            return VerificationOutcome.ALLOWED_CLOUDFLARE
        logger.info(f"{domain} resolves into Cloudflare ranges but the probe did not confirm proxying")
        return VerificationOutcome.REJECTED_NO_MATCH

    async def _in_cloudflare_ranges(self, address: str, ranges: List[str]) -> bool:
        return is_in_ranges(address, ranges)
