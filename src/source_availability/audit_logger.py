"""
Audit Logger module for the source availability system.

Provides structured logging with dual-format output (JSON and human-readable
text), optional audit mode with HMAC signing, masking of sensitive values
and of query strings in logged URLs, and helpers for check results and
checkout decisions.
"""

import hmac
import hashlib
import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO
from urllib.parse import urlsplit, urlunsplit

from .enums import CheckoutDecision, LogLevel
from .models import CheckResult, GateResult


@dataclass
class LogEntry:
    """Represents a single log entry with all metadata."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)
    signature: Optional[str] = None


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


def mask_url(url: str) -> str:
    """
    Strip credentials, query string and fragment from a URL.

    Source URLs regularly carry tracking ids and session tokens in the query.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return AuditLogger.MASK_VALUE
    if not parts.scheme or not parts.netloc:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, "", ""))


class AuditLogger:
    """
    Audit logger with dual-format output and optional signing.

    Supports:
    - JSON and human-readable text output formats
    - Minimum level filtering for output (entries are always recorded)
    - Audit mode with HMAC-SHA256 signing of log entries
    - Automatic masking of sensitive data (tokens, secrets, cookies, keys)
    - Query-string masking for URL fields
    """

    # Keys that should be masked in log output
    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'hmac_secret',
        'auth', 'authorization', 'cookie', 'credential', 'credentials',
        'private_key', 'access_token', 'refresh_token', 'session_token',
        'api_secret', 'signing_key', 'stripe_key',
    })

    # Keys whose values are URLs and get query strings stripped
    URL_KEYS = frozenset({'url', 'source_url', 'request_url', 'final_url'})

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "both",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Initialize the audit logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for log entries (defaults to sys.stderr)
            min_level: Entries below this level are recorded but not written
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._min_level = min_level
        self._audit_mode = False
        self._signing_key: Optional[bytes] = None
        self._entries: list[LogEntry] = []

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def audit_mode(self) -> bool:
        return self._audit_mode

    @property
    def entries(self) -> list[LogEntry]:
        """Get all logged entries."""
        return self._entries.copy()

    def enable_audit_mode(self, signing_key: str) -> None:
        """
        Enable audit mode with HMAC signing of log entries.

        Args:
            signing_key: Secret key for HMAC-SHA256 signing
        """
        if not signing_key:
            raise ValueError("Signing key cannot be empty")

        self._audit_mode = True
        self._signing_key = signing_key.encode('utf-8')

    def disable_audit_mode(self) -> None:
        """Disable audit mode."""
        self._audit_mode = False
        self._signing_key = None

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> LogEntry:
        """
        Log an entry in the configured format(s).

        Args:
            level: Log severity level
            component: Component name generating the log
            message: Human-readable log message
            data: Optional additional data to include

        Returns:
            The created LogEntry object
        """
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
            signature=None,
        )

        if self._audit_mode and self._signing_key:
            entry.signature = self._sign_entry(entry)

        self._entries.append(entry)

        if _LEVEL_ORDER[level] >= _LEVEL_ORDER[self._min_level]:
            self._output_entry(entry)

        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        request_url: Optional[str] = None,
        additional_data: Optional[dict] = None,
    ) -> LogEntry:
        """
        Log an error with full context.

        Args:
            component: Component name generating the log
            message: Human-readable error message
            error: Optional exception object
            request_url: Optional URL of the failed request
            additional_data: Optional additional context data

        Returns:
            The created LogEntry object
        """
        data = additional_data.copy() if additional_data else {}

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            code = getattr(error, "code", None)
            if code is not None:
                data["error_code"] = code

        if request_url is not None:
            data["request_url"] = request_url

        return self.log(LogLevel.ERROR, component, message, data)

    def log_check(self, result: CheckResult) -> LogEntry:
        """Log the outcome of an availability check."""
        data = {
            "url": result.url,
            "verdict": result.verdict.value,
            "platform": result.platform,
            "matched_signal": result.matched_signal,
            "duration_ms": round(result.metadata.total_duration_ms, 1),
            "fetch_ms": round(result.metadata.fetch_duration_ms, 1),
        }
        if result.error_code:
            data["error_code"] = result.error_code
            data["error_message"] = result.error_message
            return self.log(
                LogLevel.WARN,
                "AvailabilityChecker",
                f"Could not confirm availability: {result.error_code}",
                data,
            )
        return self.log(
            LogLevel.INFO,
            "AvailabilityChecker",
            f"Check completed: {result.verdict.value}",
            data,
        )

    def log_decision(self, result: GateResult) -> LogEntry:
        """Log a checkout gate decision."""
        level = LogLevel.INFO
        if result.decision == CheckoutDecision.PROCEED_UNVERIFIED:
            level = LogLevel.WARN
        data = {
            "listing_id": result.listing_id,
            "decision": result.decision.value,
            "verdict": result.verdict.value if result.verdict else None,
            "state_changed": result.state_changed,
        }
        if result.errors:
            data["errors"] = list(result.errors)
        return self.log(
            level,
            "CheckoutGate",
            f"Checkout {result.decision.value} for listing {result.listing_id}",
            data,
        )

    def mask_sensitive_data(self, data: dict) -> dict:
        """
        Recursively mask sensitive data in a dictionary.

        Args:
            data: Dictionary potentially containing sensitive data

        Returns:
            New dictionary with sensitive values masked
        """
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            is_sensitive = any(
                sensitive_key in key_lower
                for sensitive_key in self.SENSITIVE_KEYS
            )

            if is_sensitive:
                masked[key] = self.MASK_VALUE
            elif key_lower in self.URL_KEYS and isinstance(value, str):
                masked[key] = mask_url(value)
            elif isinstance(value, dict):
                masked[key] = self.mask_sensitive_data(value)
            elif isinstance(value, list):
                masked[key] = [
                    self.mask_sensitive_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value

        return masked

    def _sign_entry(self, entry: LogEntry) -> str:
        if not self._signing_key:
            raise RuntimeError("Signing key not set")

        signable = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "message": entry.message,
            "data": entry.data,
        }
        content = json.dumps(signable, sort_keys=True, ensure_ascii=False, default=str)

        return hmac.new(
            self._signing_key,
            content.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

    def verify_signature(self, entry: LogEntry) -> bool:
        """
        Verify the signature of a log entry.

        Returns:
            True if signature is valid, False otherwise
        """
        if not entry.signature or not self._signing_key:
            return False

        expected = self._sign_entry(entry)
        return hmac.compare_digest(entry.signature, expected)

    def _output_entry(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self.format_json(entry) + "\n")

        if self._output_format in ("text", "both"):
            self._output_stream.write(self.format_text(entry) + "\n")

        self._output_stream.flush()

    def format_json(self, entry: LogEntry) -> str:
        """Format a log entry as a single JSON line."""
        obj = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "message": entry.message,
            "data": entry.data,
        }

        if entry.signature:
            obj["signature"] = entry.signature

        return json.dumps(obj, ensure_ascii=False, default=str)

    def format_text(self, entry: LogEntry) -> str:
        """Format a log entry as human-readable text."""
        # Format: [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        parts = [
            f"[{entry.timestamp}]",
            entry.level.value.upper(),
            f"[{entry.component}]",
            entry.message,
        ]

        if entry.data:
            parts.append(json.dumps(entry.data, ensure_ascii=False, default=str))

        text = " ".join(parts)

        if entry.signature:
            text += f" [sig:{entry.signature[:16]}...]"

        return text

    def clear_entries(self) -> None:
        """Clear all stored log entries."""
        self._entries.clear()
