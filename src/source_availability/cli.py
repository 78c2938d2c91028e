"""
Command-line interface for the source availability system.

This module provides the main CLI entry point with commands for:
- check: Check a single source URL
- authorize: Run the checkout gate for a stored listing
- listing: Add or show stored listings
- config: Configuration management
- self-test: Configuration validation and platform connectivity

Environment variables (and a .env file) override the configuration file;
command line flags override both.
"""

import argparse
import asyncio
import dataclasses
import json
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .checker import AvailabilityChecker
from .config import (
    DEFAULT_PLATFORMS,
    ClassificationSignal,
    FetcherConfig,
    LoggingConfig,
    PersistenceConfig,
    PlatformConfig,
    SystemConfig,
    validate_config,
)
from .enums import AvailabilityVerdict, CheckoutDecision, FetchStrategy, LogLevel, SignalKind
from .exceptions import ConfigurationError, PersistenceError
from .gate import CheckoutGate
from .i18n import get_message
from .listing_store import InMemoryListingRepository, ListingStore
from .models import CheckRequest, Listing
from .self_test import DEFAULT_HMAC_SECRET, run_self_test


DEFAULT_HOME = Path.home() / ".source_availability"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"
DEFAULT_LISTINGS_PATH = DEFAULT_HOME / "listings.json"

# Exit codes of the 'check' command
EXIT_AVAILABLE = 0
EXIT_SOLD = 1
EXIT_UNKNOWN = 2


def create_default_config(
    simulation_mode: bool = False,
    language: str = "en",
    listing_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        simulation_mode: Enable simulation mode (no real page loads)
        language: Output language ('en' or 'de')
        listing_file: Path to the listing store
        hmac_secret: Secret for HMAC protection

    Returns:
        SystemConfig with default settings
    """
    return SystemConfig(
        platforms=DEFAULT_PLATFORMS,
        fetcher=FetcherConfig(),
        persistence=PersistenceConfig(
            listing_file_path=listing_file or DEFAULT_LISTINGS_PATH,
            hmac_secret=hmac_secret,
        ),
        logging=LoggingConfig(
            level="info",
            output_format="text",
        ),
        language=language,
        simulation_mode=simulation_mode,
        startup_self_test=False,
    )


def _signal_from_dict(data: dict) -> ClassificationSignal:
    return ClassificationSignal(
        pattern=data["pattern"],
        kind=SignalKind(data["kind"]),
        verdict=AvailabilityVerdict(data.get("verdict", AvailabilityVerdict.SOLD.value)),
        priority=data.get("priority", 100),
        field=data.get("field", "availability"),
        description=data.get("description", ""),
        case_sensitive=data.get("case_sensitive", False),
    )


def _signal_to_dict(signal: ClassificationSignal) -> dict:
    return {
        "pattern": signal.pattern,
        "kind": signal.kind.value,
        "verdict": signal.verdict.value,
        "priority": signal.priority,
        "field": signal.field,
        "description": signal.description,
        "case_sensitive": signal.case_sensitive,
    }


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Sections that are missing fall back to the defaults; an empty platform
    list means DEFAULT_PLATFORMS.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        platforms = tuple(
            PlatformConfig(
                name=platform_data["name"],
                hosts=tuple(platform_data.get("hosts", ())),
                probe_url=platform_data.get("probe_url"),
                signals=tuple(_signal_from_dict(s) for s in platform_data.get("signals", ())),
            )
            for platform_data in data.get("platforms", [])
        )
        if not platforms:
            platforms = DEFAULT_PLATFORMS

        defaults = FetcherConfig()
        fetcher_data = data.get("fetcher", {})
        fetcher = FetcherConfig(
            strategy=FetchStrategy(fetcher_data.get("strategy", defaults.strategy.value)),
            timeout_seconds=float(fetcher_data.get("timeout_seconds", defaults.timeout_seconds)),
            cancel_grace_seconds=float(
                fetcher_data.get("cancel_grace_seconds", defaults.cancel_grace_seconds)
            ),
            user_agent=fetcher_data.get("user_agent", defaults.user_agent),
            blocked_resource_types=tuple(
                fetcher_data.get("blocked_resource_types", defaults.blocked_resource_types)
            ),
            headless=fetcher_data.get("headless", defaults.headless),
            launch_args=tuple(fetcher_data.get("launch_args", defaults.launch_args)),
            min_content_length=int(
                fetcher_data.get("min_content_length", defaults.min_content_length)
            ),
            max_redirects=int(fetcher_data.get("max_redirects", defaults.max_redirects)),
        )

        persistence_data = data.get("persistence", {})
        listing_file_path = persistence_data.get("listing_file_path")
        persistence = PersistenceConfig(
            listing_file_path=Path(listing_file_path) if listing_file_path else DEFAULT_LISTINGS_PATH,
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            audit_mode=logging_data.get("audit_mode", False),
            audit_signing_key=logging_data.get("audit_signing_key"),
            output_format=logging_data.get("output_format", "text"),
        )

        return SystemConfig(
            platforms=platforms,
            fetcher=fetcher,
            persistence=persistence,
            logging=logging_config,
            language=data.get("language", "en"),
            simulation_mode=data.get("simulation_mode", False),
            startup_self_test=data.get("startup_self_test", False),
        )

    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "platforms": [
                {
                    "name": platform.name,
                    "hosts": list(platform.hosts),
                    "probe_url": platform.probe_url,
                    "signals": [_signal_to_dict(s) for s in platform.signals],
                }
                for platform in config.platforms
            ],
            "fetcher": {
                "strategy": config.fetcher.strategy.value,
                "timeout_seconds": config.fetcher.timeout_seconds,
                "cancel_grace_seconds": config.fetcher.cancel_grace_seconds,
                "user_agent": config.fetcher.user_agent,
                "blocked_resource_types": list(config.fetcher.blocked_resource_types),
                "headless": config.fetcher.headless,
                "launch_args": list(config.fetcher.launch_args),
                "min_content_length": config.fetcher.min_content_length,
                "max_redirects": config.fetcher.max_redirects,
            },
            "persistence": {
                "listing_file_path": str(config.persistence.listing_file_path),
                "hmac_secret": config.persistence.hmac_secret,
            },
            "logging": {
                "level": config.logging.level,
                "audit_mode": config.logging.audit_mode,
                "audit_signing_key": config.logging.audit_signing_key,
                "output_format": config.logging.output_format,
            },
            "language": config.language,
            "simulation_mode": config.simulation_mode,
            "startup_self_test": config.startup_self_test,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(
    config: SystemConfig,
    env_file: Optional[Path] = None,
) -> SystemConfig:
    """
    Apply SOURCE_CHECK_* environment overrides to a configuration.

    A .env file is loaded first; variables already set in the process
    environment take precedence over it.

    Raises:
        ConfigurationError: If a variable holds an unparsable value
    """
    load_dotenv(dotenv_path=env_file, override=False)

    fetcher = config.fetcher
    persistence = config.persistence
    updates: dict = {}

    timeout = os.getenv("SOURCE_CHECK_TIMEOUT", "").strip()
    if timeout:
        try:
            fetcher = dataclasses.replace(fetcher, timeout_seconds=float(timeout))
        except ValueError:
            raise ConfigurationError(
                code="invalid_env",
                message=f"SOURCE_CHECK_TIMEOUT is not a number: {timeout!r}",
            )

    strategy = os.getenv("SOURCE_CHECK_STRATEGY", "").strip().lower()
    if strategy:
        try:
            fetcher = dataclasses.replace(fetcher, strategy=FetchStrategy(strategy))
        except ValueError:
            raise ConfigurationError(
                code="invalid_env",
                message=f"SOURCE_CHECK_STRATEGY is not a known strategy: {strategy!r}",
            )

    language = os.getenv("SOURCE_CHECK_LANGUAGE", "").strip().lower()
    if language:
        updates["language"] = language

    dry_run = os.getenv("SOURCE_CHECK_DRY_RUN", "").strip()
    if dry_run:
        updates["simulation_mode"] = _env_flag(dry_run)

    hmac_secret = os.getenv("SOURCE_CHECK_HMAC_SECRET", "").strip()
    if hmac_secret:
        persistence = dataclasses.replace(persistence, hmac_secret=hmac_secret)

    listings_file = os.getenv("SOURCE_CHECK_LISTINGS_FILE", "").strip()
    if listings_file:
        persistence = dataclasses.replace(persistence, listing_file_path=Path(listings_file))

    return dataclasses.replace(config, fetcher=fetcher, persistence=persistence, **updates)


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """
    Build the effective configuration for a command.

    Order: config file (or defaults), environment, command line flags.
    Prints the problem and returns None if the result is invalid.
    """
    config = None
    config_path = getattr(args, "config", None)
    if config_path:
        config = load_config_from_file(Path(config_path))
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return None
    if config is None:
        config = create_default_config()

    try:
        config = load_config_from_env(config)
    except ConfigurationError as e:
        print(get_message("error.config", config.language, error=e.message), file=sys.stderr)
        return None

    fetcher = config.fetcher
    if getattr(args, "strategy", None):
        fetcher = dataclasses.replace(fetcher, strategy=FetchStrategy(args.strategy))
    if getattr(args, "timeout", None) is not None:
        fetcher = dataclasses.replace(fetcher, timeout_seconds=args.timeout)

    config = dataclasses.replace(
        config,
        fetcher=fetcher,
        language=getattr(args, "language", None) or config.language,
        simulation_mode=config.simulation_mode or getattr(args, "dry_run", False),
    )

    try:
        validate_config(config)
    except ConfigurationError as e:
        print(get_message("error.config", config.language, error=e.message), file=sys.stderr)
        return None

    return config


def create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    """Create the audit logger described by the logging configuration."""
    logger = AuditLogger(
        output_format=config.logging.output_format,
        min_level=LogLevel.DEBUG if verbose else LogLevel(config.logging.level),
    )
    if config.logging.audit_mode and config.logging.audit_signing_key:
        logger.enable_audit_mode(config.logging.audit_signing_key)
    return logger


def open_listing_store(config: SystemConfig) -> ListingStore:
    """
    Open and load the configured listing store.

    Raises:
        PersistenceError: If the file is unreadable or fails HMAC validation
    """
    store = ListingStore(
        file_path=config.persistence.listing_file_path,
        hmac_secret=config.persistence.hmac_secret,
        platforms=[p.name for p in config.platforms],
    )
    store.load()
    return store


async def _startup_self_test(config: SystemConfig, verbose: bool) -> bool:
    if not config.startup_self_test:
        return True
    result = await run_self_test(config=config, print_output=verbose, language=config.language)
    if not result.success:
        print(get_message("selftest.failed", config.language), file=sys.stderr)
    return result.success


async def check_source_url(
    url: str,
    config: SystemConfig,
    platform: Optional[str] = None,
    verbose: bool = False,
) -> int:
    """
    Check a single source URL.

    Returns:
        EXIT_AVAILABLE, EXIT_SOLD or EXIT_UNKNOWN
    """
    language = config.language

    if not await _startup_self_test(config, verbose):
        return EXIT_UNKNOWN

    if config.simulation_mode:
        print(get_message("cli.dry_run", language))

    print(get_message("cli.checking_url", language, url=url))

    checker = AvailabilityChecker(config, logger=create_logger(config, verbose))
    result = await checker.run(CheckRequest(
        url=url,
        timeout_seconds=config.fetcher.timeout_seconds,
        platform_hint=platform,
    ))

    verdict_text = get_message(f"verdict.{result.verdict.value}", language)
    print(get_message("cli.result", language, verdict=verdict_text))

    if verbose:
        print(f"  Platform: {result.platform}")
        print(f"  Duration: {result.metadata.total_duration_ms:.1f}ms")
        if result.matched_signal:
            print(f"  Signal: {result.matched_signal}")
        if result.error_code:
            print(f"  Error: {result.error_code}: {result.error_message}")

    if result.verdict == AvailabilityVerdict.AVAILABLE:
        return EXIT_AVAILABLE
    if result.verdict == AvailabilityVerdict.SOLD:
        return EXIT_SOLD
    return EXIT_UNKNOWN


async def authorize_listing(
    listing_id: str,
    config: SystemConfig,
    verbose: bool = False,
) -> int:
    """
    Run the checkout gate for a stored listing.

    In simulation mode the decision is computed against an in-memory copy
    so the listing file is never written.

    Returns:
        0 if checkout may proceed, 1 if blocked or on error
    """
    language = config.language

    try:
        store = open_listing_store(config)
    except PersistenceError as e:
        print(get_message("error.persistence", language, error=e.message), file=sys.stderr)
        return 1

    listing = store.get(listing_id)
    if listing is None:
        print(get_message("error.listing_not_found", language, listing_id=listing_id), file=sys.stderr)
        return 1

    if not await _startup_self_test(config, verbose):
        return 1

    repository = store
    if config.simulation_mode:
        print(get_message("cli.dry_run", language))
        repository = InMemoryListingRepository([listing])

    logger = create_logger(config, verbose)
    gate = CheckoutGate(
        checker=AvailabilityChecker(config, logger=logger),
        repository=repository,
        logger=logger,
        language=language,
    )
    result = await gate.authorize_checkout(listing)

    decision_text = get_message(f"decision.{result.decision.value}", language)
    print(get_message("cli.decision", language, decision=decision_text))
    if result.message:
        print(f"  {result.message}")
    if result.warning:
        print(f"  {get_message('gate.unverified_warning', language)}")
    for error in result.errors:
        print(f"  Error: {error}", file=sys.stderr)

    if verbose:
        print(json.dumps(result.to_response_body(), ensure_ascii=False))

    return 1 if result.decision == CheckoutDecision.BLOCKED else 0


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command."""
    config = resolve_config(args)
    if config is None:
        return EXIT_UNKNOWN

    return asyncio.run(check_source_url(
        url=args.url,
        config=config,
        platform=args.platform,
        verbose=args.verbose,
    ))


def cmd_authorize(args: argparse.Namespace) -> int:
    """Handle the 'authorize' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    return asyncio.run(authorize_listing(
        listing_id=args.listing_id,
        config=config,
        verbose=args.verbose,
    ))


def cmd_listing(args: argparse.Namespace) -> int:
    """Handle the 'listing' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    language = config.language

    try:
        store = open_listing_store(config)
    except PersistenceError as e:
        print(get_message("error.persistence", language, error=e.message), file=sys.stderr)
        return 1

    if args.action == "add":
        if not args.listing_id:
            print(get_message("cli.listing_id_required", language), file=sys.stderr)
            return 1
        try:
            store.add(Listing(
                id=args.listing_id,
                source_url=args.url,
                title=args.title or "",
                platform=args.platform,
            ))
        except ConfigurationError as e:
            print(get_message("error.config", language, error=e.message), file=sys.stderr)
            return 1
        except PersistenceError as e:
            print(get_message("error.persistence", language, error=e.message), file=sys.stderr)
            return 1
        print(get_message("cli.listing_added", language, listing_id=args.listing_id))
        return 0

    if args.action == "show":
        if args.listing_id:
            listing = store.get(args.listing_id)
            if listing is None:
                print(
                    get_message("error.listing_not_found", language, listing_id=args.listing_id),
                    file=sys.stderr,
                )
                return 1
            listings = [listing]
        else:
            listings = store.list()

        for listing in listings:
            state_text = get_message(f"state.{listing.availability_state.value}", language)
            source = listing.source_url or "-"
            print(f"{listing.id}\t{state_text}\t{listing.platform or '-'}\t{source}")
        return 0

    return 1


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    config = None
    if args.config:
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return 1
    if config is None:
        config = create_default_config()

    language = args.language or config.language
    result = asyncio.run(run_self_test(
        config=config,
        print_output=True,
        language=language,
    ))

    return 0 if result.success else 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  Strategy: {config.fetcher.strategy.value}")
        print(f"  Timeout: {config.fetcher.timeout_seconds}s")
        print(f"  Platforms: {', '.join(p.name for p in config.platforms)}")
        print(f"  Listing file: {config.persistence.listing_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Audit mode: {config.logging.audit_mode}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = create_default_config(language=args.language or "en")
        if save_config_to_file(config, config_path):
            print(get_message("cli.config_created", config.language, path=config_path))
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        try:
            validate_config(config)
        except ConfigurationError as e:
            print(f"Configuration at {config_path} is invalid: {e.code}: {e.message}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--language", "-l",
        choices=["en", "de"],
        default=None,
        help="Output language (default: from configuration, else en)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def _add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - no real page loads, no listing changes",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in FetchStrategy],
        help="Fetch strategy (default: browser)",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Fetch timeout in seconds (default: 10)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="source-availability",
        description="Just-in-time availability verification for mirrored listings",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'check' command
    check_parser = subparsers.add_parser(
        "check",
        help="Check whether a source listing is still available",
    )
    check_parser.add_argument(
        "url",
        help="Source listing URL (e.g., https://www.ebay.com/itm/123)",
    )
    check_parser.add_argument(
        "--platform", "-p",
        help="Platform whose signals to apply (default: resolved from the host)",
    )
    _add_fetch_arguments(check_parser)
    _add_common_arguments(check_parser)
    check_parser.set_defaults(func=cmd_check)

    # 'authorize' command
    authorize_parser = subparsers.add_parser(
        "authorize",
        help="Run the checkout gate for a stored listing",
    )
    authorize_parser.add_argument(
        "listing_id",
        help="Listing identifier",
    )
    _add_fetch_arguments(authorize_parser)
    _add_common_arguments(authorize_parser)
    authorize_parser.set_defaults(func=cmd_authorize)

    # 'listing' command
    listing_parser = subparsers.add_parser(
        "listing",
        help="Manage stored listings",
    )
    listing_parser.add_argument(
        "action",
        choices=["add", "show"],
        help="Listing action",
    )
    listing_parser.add_argument(
        "listing_id",
        nargs="?",
        help="Listing identifier (show: all listings if omitted)",
    )
    listing_parser.add_argument(
        "--url", "-u",
        help="Source URL of a mirrored listing",
    )
    listing_parser.add_argument(
        "--title",
        help="Listing title",
    )
    listing_parser.add_argument(
        "--platform", "-p",
        help="Source platform name",
    )
    _add_common_arguments(listing_parser)
    listing_parser.set_defaults(func=cmd_listing)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["en", "de"],
        default=None,
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # 'self-test' command
    self_test_parser = subparsers.add_parser(
        "self-test",
        help="Validate configuration and platform connectivity",
    )
    self_test_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    self_test_parser.add_argument(
        "--language", "-l",
        choices=["en", "de"],
        default=None,
        help="Output language (default: from configuration, else en)",
    )
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
