"""
Service Configuration Module.

Loads the TLS check configuration from a JSON file ONCE at startup.
The resulting ServiceConfig is immutable for the lifetime of the process.

File format (keys kept compatible with existing deployments):

    {
        "port": 5555,
        "blockList": ["evil.example"],
        "ips": ["203.0.113.5"],
        "subdomainAmount": 3
    }

Usage:
    from service_config import load_config

    config = load_config()
    if config.is_blocked("evil.example"):
        ...
"""

import ipaddress
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional, Union

import orjson
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_PORT = 5555
DEFAULT_SUBDOMAIN_AMOUNT = 10

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.json"


class ConfigError(Exception):
    """Raised when the configuration file exists but cannot be used."""


def normalize_domain(domain: Optional[str]) -> str:
    """Lowercase, strip whitespace and a single trailing root dot."""
    if not domain:
        return ""
    normalized = domain.strip().lower()
    if normalized.endswith("."):
        normalized = normalized[:-1]
    return normalized


@dataclass(frozen=True)
class ServiceConfig:
    """Typed view of config.json."""

    port: int = DEFAULT_PORT
    block_list: FrozenSet[str] = field(default_factory=frozenset)
    ips: FrozenSet[str] = field(default_factory=frozenset)
    subdomain_amount: int = DEFAULT_SUBDOMAIN_AMOUNT

    def is_blocked(self, domain: str) -> bool:
        return normalize_domain(domain) in self.block_list

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceConfig":
        """
        Build a config from the decoded JSON document.

        Raises:
            ConfigError: if a known key has the wrong type
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a JSON object")

        port = data.get("port", DEFAULT_PORT)
        if port is None:
            port = DEFAULT_PORT
        if isinstance(port, bool) or not isinstance(port, int) or not (0 < port < 65536):
            raise ConfigError(f"Invalid port: {port!r}")

        subdomain_amount = data.get("subdomainAmount", DEFAULT_SUBDOMAIN_AMOUNT)
        if subdomain_amount is None:
            subdomain_amount = DEFAULT_SUBDOMAIN_AMOUNT
        if isinstance(subdomain_amount, bool) or not isinstance(subdomain_amount, int) or subdomain_amount < 0:
            raise ConfigError(f"Invalid subdomainAmount: {subdomain_amount!r}")

        block_list = _string_list(data, "blockList")
        raw_ips = _string_list(data, "ips")

        ips = set()
        for raw_ip in raw_ips:
            candidate = raw_ip.strip()
            try:
                ipaddress.IPv4Address(candidate)
            except ValueError:
                logger.warning(f"Ignoring invalid IPv4 address in config: {raw_ip!r}")
                continue
            ips.add(candidate)

        return cls(
            port=port,
            block_list=frozenset(normalize_domain(d) for d in block_list if normalize_domain(d)),
            ips=frozenset(ips),
            subdomain_amount=subdomain_amount,
        )


def _string_list(data: dict, key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key} must be a list of strings")
    return value


def get_config_path() -> Path:
    """Config path from TLSCHECK_CONFIG, or config.json next to this module."""
    override = (os.getenv("TLSCHECK_CONFIG", "") or "").strip()
    if override:
        return Path(override)
    return _DEFAULT_CONFIG_PATH


def load_config(path: Optional[Union[str, Path]] = None) -> ServiceConfig:
    """
    Load the service configuration.

    Args:
        path: Explicit config file. Defaults to get_config_path().

    Returns:
        ServiceConfig (defaults if the file does not exist)

    Raises:
        ConfigError: if the file is unreadable, not valid JSON, or has wrong types
    """
    config_path = Path(path) if path is not None else get_config_path()

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        return ServiceConfig()

    try:
        with open(config_path, "rb") as f:
            data = orjson.loads(f.read())
    except orjson.JSONDecodeError as e:
        raise ConfigError(f"Error parsing config JSON {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading config {config_path}: {e}") from e

    config = ServiceConfig.from_dict(data)
    logger.info(
        f"Loaded config: port={config.port}, {len(config.ips)} predefined IPs, "
        f"{len(config.block_list)} blocked domains, subdomainAmount={config.subdomain_amount}"
    )
    return config
