"""
Internationalization (i18n) module for the source availability system.

Provides translations for all user-facing messages in English (en) and
German (de), including the message shown to buyers when checkout is blocked.
"""

from typing import Optional

from .config import SUPPORTED_LANGUAGES as _CONFIG_LANGUAGES


# Supported languages
SUPPORTED_LANGUAGES = frozenset(_CONFIG_LANGUAGES)
DEFAULT_LANGUAGE = "en"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Verdicts
    "verdict.available": {
        "en": "Available",
        "de": "Verfügbar",
    },
    "verdict.sold": {
        "en": "Sold",
        "de": "Verkauft",
    },
    "verdict.unknown": {
        "en": "Unknown",
        "de": "Unbekannt",
    },

    # Checkout decisions
    "decision.proceed": {
        "en": "Proceed",
        "de": "Fortfahren",
    },
    "decision.blocked": {
        "en": "Blocked",
        "de": "Blockiert",
    },
    "decision.proceed_unverified": {
        "en": "Proceed (unverified)",
        "de": "Fortfahren (nicht verifiziert)",
    },

    # Listing states
    "state.active": {
        "en": "Active",
        "de": "Aktiv",
    },
    "state.sold_on_source": {
        "en": "Sold on source",
        "de": "An der Quelle verkauft",
    },

    # Checkout gate messages
    "gate.blocked_sold_on_source": {
        "en": "Item just sold at the source. Transaction blocked.",
        "de": "Artikel wurde gerade an der Quelle verkauft. Transaktion blockiert.",
    },
    "gate.unverified_warning": {
        "en": "Availability could not be verified.",
        "de": "Verfügbarkeit konnte nicht überprüft werden.",
    },
    "gate.persistence_failed": {
        "en": "Could not record sold state for listing {listing_id}",
        "de": "Verkauft-Status für Angebot {listing_id} konnte nicht gespeichert werden",
    },

    # Error messages
    "error.config": {
        "en": "Configuration error: {error}",
        "de": "Konfigurationsfehler: {error}",
    },
    "error.persistence": {
        "en": "Persistence error: {error}",
        "de": "Persistenzfehler: {error}",
    },
    "error.listing_not_found": {
        "en": "Listing not found: {listing_id}",
        "de": "Angebot nicht gefunden: {listing_id}",
    },

    # Self-test messages
    "selftest.header": {
        "en": "Source Availability Self-Test",
        "de": "Quellen-Verfügbarkeit Selbsttest",
    },
    "selftest.passed": {
        "en": "Self-test passed",
        "de": "Selbsttest bestanden",
    },
    "selftest.failed": {
        "en": "Self-test failed",
        "de": "Selbsttest fehlgeschlagen",
    },
    "selftest.config_validation": {
        "en": "Configuration Validation:",
        "de": "Konfigurationsvalidierung:",
    },
    "selftest.config_valid": {
        "en": "Configuration is valid",
        "de": "Konfiguration ist gültig",
    },
    "selftest.config_invalid": {
        "en": "Configuration is invalid",
        "de": "Konfiguration ist ungültig",
    },
    "selftest.warnings": {
        "en": "Warnings:",
        "de": "Warnungen:",
    },
    "selftest.connectivity": {
        "en": "Platform Connectivity:",
        "de": "Plattform-Konnektivität:",
    },
    "selftest.duration": {
        "en": "Total duration",
        "de": "Gesamtdauer",
    },

    # CLI messages
    "cli.checking_url": {
        "en": "Checking source URL: {url}",
        "de": "Prüfe Quell-URL: {url}",
    },
    "cli.result": {
        "en": "Result: {verdict}",
        "de": "Ergebnis: {verdict}",
    },
    "cli.decision": {
        "en": "Decision: {decision}",
        "de": "Entscheidung: {decision}",
    },
    "cli.dry_run": {
        "en": "Dry run - listing state will not be changed",
        "de": "Trockenlauf - Angebotsstatus wird nicht geändert",
    },
    "cli.listing_added": {
        "en": "Listing saved: {listing_id}",
        "de": "Angebot gespeichert: {listing_id}",
    },
    "cli.listing_id_required": {
        "en": "Error: listing id is required",
        "de": "Fehler: Angebots-ID ist erforderlich",
    },
    "cli.config_created": {
        "en": "Configuration written to {path}",
        "de": "Konfiguration geschrieben nach {path}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'gate.blocked_sold_on_source')
        language: Language code ('en' or 'de'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('verdict.sold', 'de')
        'Verkauft'
        >>> get_message('error.listing_not_found', 'en', listing_id='L1')
        'Listing not found: L1'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language) or translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            # Missing format argument, return the template unformatted
            pass

    return message


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def has_translation(key: str, language: str) -> bool:
    """Check if a translation exists for a key and language."""
    translations = TRANSLATIONS.get(key)
    if translations is None:
        return False
    return language in translations


def get_missing_translations(language: str) -> set[str]:
    """Get all message keys that are missing translations for a language."""
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    return {
        language: get_missing_translations(language)
        for language in SUPPORTED_LANGUAGES
    }
