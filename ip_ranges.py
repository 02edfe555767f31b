"""
IPv4 range helpers.

Membership checks of resolved addresses against CIDR blocks such as
Cloudflare's published edge ranges.
"""

import ipaddress
import logging
from typing import Iterable, List

logger = logging.getLogger(__name__)


def parse_ipv4_networks(lines: Iterable[str]) -> List[str]:
    """
    Validate newline-split CIDR strings from a range list.

    Blank lines are ignored.

    Returns:
        The stripped CIDR strings, in order

    Raises:
        ValueError: on the first line that is not an IPv4 CIDR block
    """
    networks = []
    for line in lines:
        entry = line.strip()
        if not entry:
            continue
        ipaddress.IPv4Network(entry, strict=False)
        networks.append(entry)
    return networks


def is_in_ranges(ip: str, ranges: Iterable[str]) -> bool:
    """
    Check if an IPv4 address falls within any of the given CIDR blocks.

    Malformed blocks are skipped. A malformed address never matches.
    """
    try:
        address = ipaddress.IPv4Address(ip.strip())
    except (ValueError, AttributeError):
        return False

    for block in ranges:
        try:
            network = ipaddress.IPv4Network(block.strip(), strict=False)
        except (ValueError, AttributeError):
            logger.debug(f"Skipping malformed CIDR block: {block!r}")
            continue
        if address in network:
            return True
    return False
