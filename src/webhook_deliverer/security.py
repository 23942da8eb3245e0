"""URL validation for untrusted webhook destinations.

Job URLs come from upstream users, so every URL is checked before the
worker connects to it.

Security Controls:
    - http/https schemes only (plain HTTP can be disabled)
    - Hostname required, well-known internal hostnames blocked
    - Cloud metadata endpoint blocking (169.254.169.254)
    - Private IP range blocking (RFC 1918, RFC 4193, link-local), optional
    - Loopback blocking unless localhost is allowed
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from urllib.parse import urlparse

from webhook_deliverer.errors import DelivererErrorCode

logger = logging.getLogger(__name__)

__all__ = [
    "URLValidationError",
    "ValidatedURL",
    "WebhookURLValidator",
]


class URLValidationError(Exception):
    """Raised when URL validation fails."""

    error_code = DelivererErrorCode.URL_INVALID

    def __init__(self, reason: str, code: str = "invalid_url") -> None:
        self.reason = reason
        self.code = code
        super().__init__(reason)


@dataclass
class ValidatedURL:
    """Result of URL validation.

    Attributes:
        url: The validated URL
        host: Extracted hostname
        resolved_ips: IP addresses the hostname resolves to (empty when
            DNS resolution is disabled)
    """

    url: str
    host: str
    resolved_ips: list[str] = field(default_factory=list)


# Private IPv4 ranges (RFC 1918 + link-local)
PRIVATE_IPV4_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),  # Link-local
]

# Private IPv6 ranges (RFC 4193 + link-local)
PRIVATE_IPV6_NETWORKS = [
    ipaddress.ip_network("fc00::/7"),  # Unique local addresses
    ipaddress.ip_network("fe80::/10"),  # Link-local
]

# Cloud metadata endpoints, blocked regardless of configuration
METADATA_IPS = [
    "169.254.169.254",  # AWS, GCP, Azure
    "fd00:ec2::254",  # AWS IPv6
]

BLOCKED_HOSTNAMES = [
    "localhost",
    "metadata.google.internal",
    "metadata",
    "kubernetes.default.svc",
]


class WebhookURLValidator:
    """Validates webhook destination URLs.

    Example:
        >>> validator = WebhookURLValidator(resolve_dns=False)
        >>> result = await validator.validate("https://example.com/webhook")
        >>> result.host
        'example.com'

        >>> await validator.validate("ftp://example.com/hook")
        URLValidationError: Invalid scheme: ftp

        >>> await validator.validate("https://192.168.1.1/hook")
        URLValidationError: Private IP addresses are not allowed: 192.168.1.1
    """

    def __init__(
        self,
        allow_http: bool = True,
        allow_localhost: bool = False,
        allow_private_networks: bool = False,
        resolve_dns: bool = True,
        dns_timeout: float = 5.0,
    ) -> None:
        """Initialize URL validator.

        Args:
            allow_http: Allow plain HTTP URLs
            allow_localhost: Allow localhost URLs (development only)
            allow_private_networks: Allow private and link-local addresses
            resolve_dns: Resolve hostnames and validate every address
            dns_timeout: Timeout for DNS resolution in seconds
        """
        self.allow_http = allow_http
        self.allow_localhost = allow_localhost
        self.allow_private_networks = allow_private_networks
        self.resolve_dns = resolve_dns
        self.dns_timeout = dns_timeout

    async def validate(self, url: str) -> ValidatedURL:
        """Validate a webhook URL.

        Args:
            url: The URL to validate

        Returns:
            ValidatedURL with resolved information

        Raises:
            URLValidationError: If URL fails validation
        """
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError as e:
            raise URLValidationError(f"Invalid URL format: {e}") from e

        if parsed.scheme not in ("http", "https"):
            raise URLValidationError(
                f"Invalid scheme: {parsed.scheme or '(none)'}",
                code="invalid_scheme",
            )

        if parsed.scheme == "http" and not self.allow_http:
            raise URLValidationError(
                "URL must use HTTPS",
                code="https_required",
            )

        if not hostname:
            raise URLValidationError("URL must include a hostname")

        hostname = hostname.lower()

        if hostname in BLOCKED_HOSTNAMES and not (
            self.allow_localhost and hostname == "localhost"
        ):
            raise URLValidationError(
                f"Hostname not allowed: {hostname}",
                code="blocked_hostname",
            )

        # IP literals are always checked, even without DNS resolution
        try:
            ip = ipaddress.ip_address(hostname)
        except ValueError:
            ip = None

        if ip is not None:
            resolved_ips = [str(ip)]
        elif self.resolve_dns:
            resolved_ips = await self._resolve_host(hostname)
        else:
            resolved_ips = []

        for ip_str in resolved_ips:
            self._validate_ip(ip_str)

        return ValidatedURL(url=url, host=hostname, resolved_ips=resolved_ips)

    async def _resolve_host(self, hostname: str) -> list[str]:
        """Resolve hostname to IP addresses.

        Raises:
            URLValidationError: If DNS resolution fails or times out
        """
        loop = asyncio.get_running_loop()
        try:
            results = await asyncio.wait_for(
                loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM),
                timeout=self.dns_timeout,
            )
        except socket.gaierror as e:
            raise URLValidationError(
                f"DNS resolution failed for {hostname}: {e}",
                code="dns_resolution_failed",
            ) from e
        except asyncio.TimeoutError as e:
            raise URLValidationError(
                f"DNS resolution timed out for {hostname}",
                code="dns_timeout",
            ) from e

        # result[4][0] is the address string
        ips: list[str] = []
        for result in results:
            addr = result[4][0]
            if isinstance(addr, str) and addr not in ips:
                ips.append(addr)
        if not ips:
            raise URLValidationError(
                f"No IP addresses found for {hostname}",
                code="dns_resolution_failed",
            )
        return ips

    def _validate_ip(self, ip_str: str) -> None:
        """Validate an IP address is not blocked.

        Raises:
            URLValidationError: If IP is not allowed
        """
        try:
            ip = ipaddress.ip_address(ip_str.split("%", 1)[0])
        except ValueError as e:
            raise URLValidationError(f"Invalid IP address: {ip_str}") from e

        if str(ip) in METADATA_IPS:
            raise URLValidationError(
                "Cloud metadata endpoints are blocked",
                code="metadata_blocked",
            )

        if ip.is_loopback:
            if not self.allow_localhost:
                raise URLValidationError(
                    "Localhost addresses are not allowed",
                    code="localhost_blocked",
                )
            return

        if self.allow_private_networks:
            return

        networks = (
            PRIVATE_IPV4_NETWORKS
            if isinstance(ip, ipaddress.IPv4Address)
            else PRIVATE_IPV6_NETWORKS
        )
        for network in networks:
            if ip in network:
                raise URLValidationError(
                    f"Private IP addresses are not allowed: {ip_str}",
                    code="private_ip_blocked",
                )

        if ip.is_reserved:
            raise URLValidationError(
                f"Reserved IP addresses are not allowed: {ip_str}",
                code="reserved_ip_blocked",
            )
