"""
Configuration dataclasses for the source availability system.

This module defines all configuration structures used throughout the system,
including per-platform classification signals, fetcher settings, persistence
and logging configuration. All configuration objects are immutable and are
validated once at startup via validate_config().
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .enums import AvailabilityVerdict, FetchStrategy, LogLevel, SignalKind
from .exceptions import ConfigurationError


GENERIC_PLATFORM = "generic"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

SUPPORTED_LANGUAGES = ("en", "de")


@dataclass(frozen=True)
class ClassificationSignal:
    """A single static rule mapping a page pattern to the verdict it implies."""

    pattern: str
    kind: SignalKind
    verdict: AvailabilityVerdict = AvailabilityVerdict.SOLD
    priority: int = 100  # lower is checked first
    field: str = "availability"  # JSON-LD key, STRUCTURED signals only
    description: str = ""
    case_sensitive: bool = False  # TEXT signals only


@dataclass(frozen=True)
class PlatformConfig:
    """Classification rules for one source platform."""

    name: str
    signals: tuple[ClassificationSignal, ...]
    hosts: tuple[str, ...] = ()
    probe_url: Optional[str] = None


@dataclass(frozen=True)
class FetcherConfig:
    """Page fetch behaviour."""

    strategy: FetchStrategy = FetchStrategy.BROWSER
    timeout_seconds: float = 10.0
    cancel_grace_seconds: float = 0.5
    user_agent: str = DEFAULT_USER_AGENT
    blocked_resource_types: tuple[str, ...] = ("image", "stylesheet", "font", "media")
    headless: bool = True
    launch_args: tuple[str, ...] = ("--no-sandbox", "--disable-setuid-sandbox")
    min_content_length: int = 200
    max_redirects: int = 10


@dataclass(frozen=True)
class PersistenceConfig:
    """Listing store configuration."""

    listing_file_path: Path
    hmac_secret: str


@dataclass(frozen=True)
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "both"  # 'json', 'text', 'both'


@dataclass(frozen=True)
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    platforms: tuple[PlatformConfig, ...]
    fetcher: FetcherConfig
    persistence: PersistenceConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    language: str = "en"
    simulation_mode: bool = False
    startup_self_test: bool = False

    def platform(self, name: str) -> Optional[PlatformConfig]:
        """Look up a platform by name."""
        for platform in self.platforms:
            if platform.name == name:
                return platform
        return None


_SOLD_JSONLD = (
    ClassificationSignal(
        pattern="SoldOut",
        kind=SignalKind.STRUCTURED,
        priority=20,
        description="schema.org offer availability SoldOut",
    ),
    ClassificationSignal(
        pattern="OutOfStock",
        kind=SignalKind.STRUCTURED,
        priority=21,
        description="schema.org offer availability OutOfStock",
    ),
    ClassificationSignal(
        pattern="Discontinued",
        kind=SignalKind.STRUCTURED,
        priority=22,
        description="schema.org offer availability Discontinued",
    ),
)

EBAY_PLATFORM = PlatformConfig(
    name="ebay",
    hosts=("ebay.com", "ebay.co.uk", "ebay.de", "ebay.ca", "ebay.com.au", "ebay.fr", "ebay.it"),
    probe_url="https://www.ebay.com/",
    signals=(
        ClassificationSignal(
            pattern='<span class="ux-textspans ux-textspans--BOLD">Sold</span>',
            kind=SignalKind.MARKUP,
            priority=10,
            description="item status badge",
        ),
        *_SOLD_JSONLD,
        ClassificationSignal(
            pattern="This listing was ended",
            kind=SignalKind.TEXT,
            priority=30,
            description="ended-by-seller banner",
        ),
        ClassificationSignal(
            pattern="This listing has ended",
            kind=SignalKind.TEXT,
            priority=31,
            description="ended banner",
        ),
        ClassificationSignal(
            pattern="Item sold",
            kind=SignalKind.TEXT,
            priority=40,
            description="sold message",
            case_sensitive=True,
        ),
        ClassificationSignal(
            pattern="Buy It Now",
            kind=SignalKind.TEXT,
            verdict=AvailabilityVerdict.AVAILABLE,
            priority=90,
            description="purchase button",
        ),
        ClassificationSignal(
            pattern="InStock",
            kind=SignalKind.STRUCTURED,
            verdict=AvailabilityVerdict.AVAILABLE,
            priority=91,
            description="schema.org offer availability InStock",
        ),
    ),
)

GENERIC_PLATFORM_CONFIG = PlatformConfig(
    name=GENERIC_PLATFORM,
    signals=(
        *_SOLD_JSONLD,
        ClassificationSignal(
            pattern="This item is no longer available",
            kind=SignalKind.TEXT,
            priority=50,
            description="generic unavailable notice",
        ),
        ClassificationSignal(
            pattern="InStock",
            kind=SignalKind.STRUCTURED,
            verdict=AvailabilityVerdict.AVAILABLE,
            priority=90,
            description="schema.org offer availability InStock",
        ),
    ),
)

DEFAULT_PLATFORMS: tuple[PlatformConfig, ...] = (EBAY_PLATFORM, GENERIC_PLATFORM_CONFIG)


def validate_platform(platform: PlatformConfig) -> None:
    """
    Validate the signal table of a single platform.

    Raises:
        ConfigurationError: If the platform cannot produce a SOLD verdict or
            carries malformed signals
    """
    if not platform.name:
        raise ConfigurationError(
            code="empty_platform_name",
            message="Platform name is empty",
        )

    if not any(s.verdict == AvailabilityVerdict.SOLD for s in platform.signals):
        raise ConfigurationError(
            code="no_sold_signals",
            message=f"Platform '{platform.name}' defines no SOLD signals",
            details={"platform": platform.name},
        )

    for signal in platform.signals:
        if not signal.pattern:
            raise ConfigurationError(
                code="empty_pattern",
                message=f"Platform '{platform.name}' has a signal with an empty pattern",
                details={"platform": platform.name, "description": signal.description},
            )
        if signal.verdict == AvailabilityVerdict.UNKNOWN:
            raise ConfigurationError(
                code="invalid_signal_verdict",
                message=(
                    f"Platform '{platform.name}': signals may only imply "
                    f"SOLD or AVAILABLE, got UNKNOWN for {signal.pattern!r}"
                ),
                details={"platform": platform.name, "pattern": signal.pattern},
            )
        if signal.kind == SignalKind.STRUCTURED and not signal.field:
            raise ConfigurationError(
                code="missing_structured_field",
                message=f"Platform '{platform.name}': structured signal {signal.pattern!r} has no field",
                details={"platform": platform.name, "pattern": signal.pattern},
            )


def validate_platforms(platforms: tuple[PlatformConfig, ...]) -> None:
    """Validate a full platform table, including the generic fallback."""
    if not platforms:
        raise ConfigurationError(
            code="no_platforms",
            message="No source platforms configured",
        )

    names = [p.name for p in platforms]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(
            code="duplicate_platform",
            message=f"Duplicate platform names: {', '.join(duplicates)}",
            details={"platforms": duplicates},
        )

    if GENERIC_PLATFORM not in names:
        raise ConfigurationError(
            code="missing_generic_platform",
            message=f"A '{GENERIC_PLATFORM}' fallback platform must be configured",
        )

    for platform in platforms:
        validate_platform(platform)


def validate_config(config: SystemConfig) -> None:
    """
    Validate a complete system configuration at startup.

    Raises:
        ConfigurationError: On the first defect found
    """
    validate_platforms(config.platforms)

    fetcher = config.fetcher
    if not isinstance(fetcher.strategy, FetchStrategy):
        raise ConfigurationError(
            code="unknown_strategy",
            message=f"Unknown fetch strategy: {fetcher.strategy!r}",
        )
    if fetcher.timeout_seconds <= 0:
        raise ConfigurationError(
            code="invalid_timeout",
            message=f"Fetch timeout must be positive, got {fetcher.timeout_seconds}",
        )
    if fetcher.cancel_grace_seconds < 0:
        raise ConfigurationError(
            code="invalid_grace",
            message="Cancel grace period cannot be negative",
        )
    if fetcher.min_content_length < 0:
        raise ConfigurationError(
            code="invalid_min_content_length",
            message="Minimum content length cannot be negative",
        )

    if config.language not in SUPPORTED_LANGUAGES:
        raise ConfigurationError(
            code="unsupported_language",
            message=f"Unsupported language: {config.language}",
        )

    if config.logging.level not in {level.value for level in LogLevel}:
        raise ConfigurationError(
            code="invalid_log_level",
            message=f"Invalid log level: {config.logging.level}",
        )
    if config.logging.output_format not in ("json", "text", "both"):
        raise ConfigurationError(
            code="invalid_log_format",
            message=f"Invalid log output format: {config.logging.output_format}",
        )
    if config.logging.audit_mode and not config.logging.audit_signing_key:
        raise ConfigurationError(
            code="missing_audit_key",
            message="Audit mode requires an audit signing key",
        )
