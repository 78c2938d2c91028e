"""
Source Availability - just-in-time verification of mirrored listings.

This package re-checks the source page of a mirrored listing at checkout,
classifies it as available, sold or unknown, and gates the transaction:
blocking on a definitive sale, proceeding (with a warning) on uncertainty.
"""

__version__ = "0.1.0"
__author__ = "Source Availability Team"

from source_availability.exceptions import (
    SourceAvailabilityError,
    ValidationError,
    TransportError,
    ConfigurationError,
    PersistenceError,
    TamperingError,
    ListingNotFoundError,
)
from source_availability.enums import (
    AvailabilityVerdict,
    ListingAvailabilityState,
    CheckoutDecision,
    SignalKind,
    FetchStrategy,
    LogLevel,
    UrlValidationErrorCode,
    TransportErrorCode,
)
from source_availability.config import (
    ClassificationSignal,
    PlatformConfig,
    FetcherConfig,
    PersistenceConfig,
    LoggingConfig,
    SystemConfig,
    DEFAULT_PLATFORMS,
    GENERIC_PLATFORM,
    validate_config,
)
from source_availability.models import (
    CheckRequest,
    PageSnapshot,
    ClassificationResult,
    CheckMetadata,
    CheckResult,
    Listing,
    GateResult,
)
from source_availability.url_validator import (
    UrlValidator,
    UrlValidationResult,
    UrlValidationError,
)
from source_availability.fetcher import (
    Fetcher,
    BrowserFetcher,
    HttpFetcher,
    SimulatedFetcher,
    create_fetcher,
)
from source_availability.classifier import (
    Classifier,
)
from source_availability.metrics import (
    MetricsRecorder,
    NullMetrics,
    InMemoryMetrics,
)
from source_availability.audit_logger import (
    AuditLogger,
    LogEntry,
    mask_url,
)
from source_availability.checker import (
    AvailabilityChecker,
)
from source_availability.listing_store import (
    ListingRepository,
    InMemoryListingRepository,
    ListingStore,
)
from source_availability.gate import (
    CheckoutGate,
)
from source_availability.i18n import (
    get_message,
    get_all_message_keys,
    has_translation,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from source_availability.self_test import (
    SelfTest,
    SelfTestResult,
    EndpointTestResult,
    ConfigValidationResult,
    run_self_test,
)
from source_availability.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    load_config_from_env,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "SourceAvailabilityError",
    "ValidationError",
    "TransportError",
    "ConfigurationError",
    "PersistenceError",
    "TamperingError",
    "ListingNotFoundError",
    # Enums
    "AvailabilityVerdict",
    "ListingAvailabilityState",
    "CheckoutDecision",
    "SignalKind",
    "FetchStrategy",
    "LogLevel",
    "UrlValidationErrorCode",
    "TransportErrorCode",
    # Config
    "ClassificationSignal",
    "PlatformConfig",
    "FetcherConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "SystemConfig",
    "DEFAULT_PLATFORMS",
    "GENERIC_PLATFORM",
    "validate_config",
    # Models
    "CheckRequest",
    "PageSnapshot",
    "ClassificationResult",
    "CheckMetadata",
    "CheckResult",
    "Listing",
    "GateResult",
    # URL Validator
    "UrlValidator",
    "UrlValidationResult",
    "UrlValidationError",
    # Fetcher
    "Fetcher",
    "BrowserFetcher",
    "HttpFetcher",
    "SimulatedFetcher",
    "create_fetcher",
    # Classifier
    "Classifier",
    # Metrics
    "MetricsRecorder",
    "NullMetrics",
    "InMemoryMetrics",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    "mask_url",
    # Checker
    "AvailabilityChecker",
    # Listing Store
    "ListingRepository",
    "InMemoryListingRepository",
    "ListingStore",
    # Gate
    "CheckoutGate",
    # i18n
    "get_message",
    "get_all_message_keys",
    "has_translation",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # Self-Test
    "SelfTest",
    "SelfTestResult",
    "EndpointTestResult",
    "ConfigValidationResult",
    "run_self_test",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "load_config_from_env",
    "save_config_to_file",
]
