"""
Source URL validation and normalization module.

Provides validation of listing source URLs, normalization of the host to
its canonical (lowercase, IDNA) form, and resolution of the source platform
from the host.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

import idna

from .config import PlatformConfig
from .enums import UrlValidationErrorCode
from .exceptions import ValidationError


ALLOWED_SCHEMES = frozenset({"http", "https"})

# Characters allowed in an ASCII (post-IDNA) host label
HOST_LABEL_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")


@dataclass
class UrlValidationError:
    """Structured error information for URL validation failures."""

    code: UrlValidationErrorCode
    message: str
    details: dict


@dataclass
class UrlValidationResult:
    """Result of URL validation."""

    valid: bool
    canonical_url: Optional[str]
    host: Optional[str]
    error: Optional[UrlValidationError]


class UrlValidator:
    """
    Validates and normalizes source URLs.

    Handles:
    - Rejection of empty, relative and non-http(s) URLs
    - Rejection of embedded credentials
    - IDNA encoding of international hosts
    - Platform lookup by host suffix
    """

    def __init__(self, platforms: Iterable[PlatformConfig] = ()) -> None:
        """
        Initialize validator with the configured platforms.

        Args:
            platforms: Platforms whose hosts are used for platform resolution
        """
        self._host_map: list[tuple[str, str]] = []
        for platform in platforms:
            for host in platform.hosts:
                self._host_map.append((host.lower().lstrip("."), platform.name))
        # Longest suffix wins (ebay.com.au before ebay.com)
        self._host_map.sort(key=lambda item: len(item[0]), reverse=True)

    def validate(self, raw_url: Optional[str]) -> UrlValidationResult:
        """
        Validate and normalize a URL string.

        Args:
            raw_url: The raw URL to validate

        Returns:
            UrlValidationResult with canonical URL and host, or error
        """
        if not raw_url or not raw_url.strip():
            return self._failure(
                UrlValidationErrorCode.EMPTY_INPUT,
                "URL is empty",
                {"raw_input": raw_url},
            )

        url = raw_url.strip()
        try:
            parts = urlsplit(url)
        except ValueError:
            return self._failure(
                UrlValidationErrorCode.INVALID_HOST,
                "URL could not be parsed",
                {"raw_input": raw_url},
            )

        if not parts.scheme or not parts.netloc:
            return self._failure(
                UrlValidationErrorCode.NOT_ABSOLUTE,
                "URL must be absolute",
                {"raw_input": raw_url},
            )

        scheme = parts.scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            return self._failure(
                UrlValidationErrorCode.UNSUPPORTED_SCHEME,
                f"Unsupported URL scheme: {scheme}",
                {"raw_input": raw_url, "scheme": scheme},
            )

        if parts.username is not None or parts.password is not None:
            return self._failure(
                UrlValidationErrorCode.INVALID_HOST,
                "URL must not carry credentials",
                {"scheme": scheme},
            )

        try:
            port = parts.port
        except ValueError:
            return self._failure(
                UrlValidationErrorCode.INVALID_HOST,
                "URL has an invalid port",
                {"raw_input": raw_url},
            )

        hostname = parts.hostname or ""
        try:
            host = self.normalize_host(hostname)
        except ValidationError as e:
            return self._failure(
                UrlValidationErrorCode(e.code),
                e.message,
                e.details,
            )

        netloc = host if port is None else f"{host}:{port}"
        canonical = urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))

        return UrlValidationResult(
            valid=True,
            canonical_url=canonical,
            host=host,
            error=None,
        )

    def normalize_host(self, hostname: str) -> str:
        """
        Convert a host to canonical form (lowercase, IDNA-encoded).

        Raises:
            ValidationError: If the host is empty, malformed or not IDNA-encodable
        """
        host = hostname.strip().rstrip(".").lower()
        if not host:
            raise ValidationError(
                code=UrlValidationErrorCode.INVALID_HOST.value,
                message="URL has no host",
                details={"host": hostname},
            )

        if any(ord(c) > 127 for c in host):
            try:
                host = idna.encode(host, uts46=True).decode("ascii")
            except idna.IDNAError as e:
                raise ValidationError(
                    code=UrlValidationErrorCode.IDNA_ERROR.value,
                    message=f"IDNA encoding failed: {e}",
                    details={"host": hostname, "idna_error": str(e)},
                )

        labels = host.split(".")
        if not all(HOST_LABEL_PATTERN.match(label) for label in labels):
            raise ValidationError(
                code=UrlValidationErrorCode.INVALID_HOST.value,
                message=f"Invalid host: {hostname}",
                details={"host": hostname},
            )

        return host

    def resolve_platform(self, host: Optional[str]) -> Optional[str]:
        """
        Find the platform whose configured hosts match the given host.

        Args:
            host: Canonical host (e.g. 'www.ebay.com')

        Returns:
            Platform name or None if no platform claims the host
        """
        if not host:
            return None
        host = host.lower()
        for suffix, platform_name in self._host_map:
            if host == suffix or host.endswith("." + suffix):
                return platform_name
        return None

    def _failure(
        self,
        code: UrlValidationErrorCode,
        message: str,
        details: dict,
    ) -> UrlValidationResult:
        return UrlValidationResult(
            valid=False,
            canonical_url=None,
            host=None,
            error=UrlValidationError(code=code, message=message, details=details),
        )
