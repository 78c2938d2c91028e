"""
Classifier for source page availability.

This module turns a page snapshot into a binary reading of the source
listing: SOLD or AVAILABLE. It applies the static signal table of the
source platform in priority order and follows one rule: if any SOLD signal
matches, the listing is SOLD, whatever else the page shows. Absence of every
SOLD signal on successfully fetched content reads as AVAILABLE.

The classifier is pure: no I/O, no mutation, deterministic for a given
snapshot and platform. It never returns UNKNOWN; that verdict belongs to
the checker's error path.
"""

import json
from typing import Any, Iterator, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from .config import (
    GENERIC_PLATFORM,
    ClassificationSignal,
    PlatformConfig,
    validate_platforms,
)
from .enums import AvailabilityVerdict, SignalKind
from .exceptions import ConfigurationError
from .fetcher import normalize_text
from .models import ClassificationResult, PageSnapshot
from .url_validator import UrlValidator


def extract_structured_values(html: str, field_name: str) -> list[str]:
    """
    Collect every value of a key from the page's JSON-LD blocks.

    Malformed JSON-LD blocks are skipped.

    Args:
        html: Serialized DOM
        field_name: JSON key to collect (e.g. 'availability')

    Returns:
        String values found anywhere in the JSON-LD documents
    """
    if "ld+json" not in html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    values: list[str] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = (script.string or script.get_text() or "").strip()
        if not raw:
            continue
        try:
            document = json.loads(raw)
        except ValueError:
            continue
        for value in _walk_field(document, field_name):
            if isinstance(value, str):
                values.append(value)
            elif isinstance(value, list):
                values.extend(v for v in value if isinstance(v, str))
    return values


def _walk_field(node: Any, field_name: str) -> Iterator[Any]:
    if isinstance(node, dict):
        for key, value in node.items():
            if key == field_name:
                yield value
            yield from _walk_field(value, field_name)
    elif isinstance(node, list):
        for item in node:
            yield from _walk_field(item, field_name)


def _structured_matches(pattern: str, values: list[str]) -> bool:
    # schema.org values appear as 'SoldOut', 'schema:SoldOut' or a full URL
    expected = pattern.lower()
    for value in values:
        token = value.strip().rstrip("/").lower()
        token = token.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
        if token == expected:
            return True
    return False


class Classifier:
    """
    Prioritized signal matcher.

    Signals are checked in (priority, declaration order). Structural signals
    such as a status badge in the markup or the JSON-LD offer availability
    are configured ahead of broad text signals. The first SOLD match decides;
    AVAILABLE signals seen before it are reported for diagnostics only.
    """

    def __init__(self, platforms: tuple[PlatformConfig, ...]) -> None:
        """
        Initialize the classifier with the platform signal tables.

        Args:
            platforms: Configured platforms, including the generic fallback

        Raises:
            ConfigurationError: If any platform table is invalid
        """
        validate_platforms(platforms)
        self._platforms: dict[str, PlatformConfig] = {p.name: p for p in platforms}
        self._ordered: dict[str, tuple[ClassificationSignal, ...]] = {
            p.name: tuple(
                signal
                for _, signal in sorted(
                    enumerate(p.signals),
                    key=lambda item: (item[1].priority, item[0]),
                )
            )
            for p in platforms
        }
        self._url_validator = UrlValidator(platforms)

    @property
    def platform_names(self) -> list[str]:
        """Names of all registered platforms."""
        return list(self._platforms)

    def has_platform(self, name: str) -> bool:
        """Check whether a platform is registered."""
        return name in self._platforms

    def resolve_platform(self, snapshot: PageSnapshot, platform_hint: Optional[str]) -> str:
        """
        Determine which platform's signals apply.

        Order: explicit hint, host of the requested URL, generic fallback.

        Raises:
            ConfigurationError: If an explicit hint names an unregistered platform
        """
        if platform_hint is not None:
            if platform_hint not in self._platforms:
                raise ConfigurationError(
                    code="unknown_platform",
                    message=f"No signals registered for platform: {platform_hint}",
                    details={
                        "platform": platform_hint,
                        "registered": sorted(self._platforms),
                    },
                )
            return platform_hint

        host = urlsplit(snapshot.url).hostname
        return self._url_validator.resolve_platform(host) or GENERIC_PLATFORM

    def classify(
        self,
        snapshot: PageSnapshot,
        platform_hint: Optional[str] = None,
    ) -> AvailabilityVerdict:
        """
        Classify a snapshot as SOLD or AVAILABLE.

        Args:
            snapshot: Validated page snapshot
            platform_hint: Optional platform name

        Returns:
            AvailabilityVerdict.SOLD or AvailabilityVerdict.AVAILABLE
        """
        return self.evaluate(snapshot, platform_hint).verdict

    def evaluate(
        self,
        snapshot: PageSnapshot,
        platform_hint: Optional[str] = None,
    ) -> ClassificationResult:
        """Classify a snapshot and report the signals behind the verdict."""
        platform = self.resolve_platform(snapshot, platform_hint)
        text = normalize_text(snapshot.text or "")
        folded = text.lower()
        html = snapshot.html or ""
        structured_cache: dict[str, list[str]] = {}

        available_seen: list[ClassificationSignal] = []
        for signal in self._ordered[platform]:
            if not self._matches(signal, text, folded, html, structured_cache):
                continue
            if signal.verdict == AvailabilityVerdict.SOLD:
                return ClassificationResult(
                    verdict=AvailabilityVerdict.SOLD,
                    platform=platform,
                    matched_signal=signal,
                    available_signals=tuple(available_seen),
                )
            available_seen.append(signal)

        return ClassificationResult(
            verdict=AvailabilityVerdict.AVAILABLE,
            platform=platform,
            matched_signal=None,
            available_signals=tuple(available_seen),
        )

    @staticmethod
    def _matches(
        signal: ClassificationSignal,
        text: str,
        folded: str,
        html: str,
        structured_cache: dict[str, list[str]],
    ) -> bool:
        if signal.kind == SignalKind.TEXT:
            pattern = normalize_text(signal.pattern)
            if signal.case_sensitive:
                return pattern in text
            return pattern.lower() in folded
        if signal.kind == SignalKind.MARKUP:
            return signal.pattern in html
        if signal.kind == SignalKind.STRUCTURED:
            if signal.field not in structured_cache:
                structured_cache[signal.field] = extract_structured_values(html, signal.field)
            return _structured_matches(signal.pattern, structured_cache[signal.field])
        return False
