"""
Availability Checker for mirrored listings.

This module provides the single fail-safe chokepoint between the live page
fetch and the checkout gate. It validates the request, fetches the page
under a hard deadline, classifies the snapshot and maps every failure to
UNKNOWN. It never raises to its caller and never retries; retry policy, if
any, belongs to the caller.

The checker holds no mutable state between calls. Concurrent checks for
different URLs need no coordination.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional

from .audit_logger import AuditLogger
from .classifier import Classifier
from .config import SystemConfig
from .enums import AvailabilityVerdict, LogLevel, TransportErrorCode
from .exceptions import TransportError
from .fetcher import Fetcher, create_fetcher
from .metrics import MetricsRecorder, NullMetrics
from .models import CheckMetadata, CheckRequest, CheckResult
from .url_validator import UrlValidator


class AvailabilityChecker:
    """
    Orchestrates fetcher and classifier behind one call.

    Policy:
    - fetch succeeded: the classifier's verdict (AVAILABLE or SOLD)
    - any fetch failure, timeout, invalid URL or unknown platform: UNKNOWN
    """

    def __init__(
        self,
        config: SystemConfig,
        fetcher: Optional[Fetcher] = None,
        classifier: Optional[Classifier] = None,
        metrics: Optional[MetricsRecorder] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the availability checker.

        Args:
            config: System configuration
            fetcher: Optional fetcher; defaults to the configured strategy
            classifier: Optional classifier; defaults to one built from the
                configured platforms
            metrics: Optional observability hooks
            logger: Optional audit logger

        Raises:
            ConfigurationError: If the platform signal tables are invalid
        """
        self._config = config
        self._classifier = classifier or Classifier(config.platforms)
        self._fetcher = fetcher or create_fetcher(config)
        self._metrics = metrics or NullMetrics()
        self._logger = logger
        self._url_validator = UrlValidator(config.platforms)

    async def check(
        self,
        url: str,
        platform_hint: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> AvailabilityVerdict:
        """
        Check whether the listing at url is still purchasable.

        Args:
            url: Absolute URL of the source listing
            platform_hint: Optional platform name selecting the signal table
            timeout: Deadline in seconds; defaults to the configured timeout

        Returns:
            AVAILABLE, SOLD, or UNKNOWN when availability could not be confirmed
        """
        request = CheckRequest(
            url=url,
            timeout_seconds=timeout if timeout is not None else self._config.fetcher.timeout_seconds,
            platform_hint=platform_hint,
        )
        result = await self.run(request)
        return result.verdict

    def check_sync(
        self,
        url: str,
        platform_hint: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> AvailabilityVerdict:
        """Blocking wrapper around check() for synchronous callers."""
        return asyncio.run(self.check(url, platform_hint, timeout))

    async def run(self, request: CheckRequest) -> CheckResult:
        """
        Execute a check request and return the verdict with diagnostics.

        Never raises.
        """
        start_time = time.perf_counter()

        validation = self._url_validator.validate(request.url)
        if not validation.valid:
            return self._finish(
                request,
                start_time,
                platform=request.platform_hint,
                error_code=TransportErrorCode.INVALID_URL.value,
                error_message=validation.error.message,
            )
        url = validation.canonical_url

        if request.platform_hint is not None and not self._classifier.has_platform(
            request.platform_hint
        ):
            self._log(
                LogLevel.ERROR,
                f"No signals registered for platform: {request.platform_hint}",
                {"url": url, "platform": request.platform_hint},
            )
            return self._finish(
                request,
                start_time,
                platform=request.platform_hint,
                error_code="unknown_platform",
                error_message=f"Unknown platform: {request.platform_hint}",
            )

        if request.timeout_seconds <= 0:
            return self._finish(
                request,
                start_time,
                platform=request.platform_hint,
                error_code="invalid_timeout",
                error_message=f"Timeout must be positive, got {request.timeout_seconds}",
            )

        # Step 1: fetch under the deadline
        fetch_start = time.perf_counter()
        try:
            snapshot = await asyncio.wait_for(
                self._fetcher.fetch(url, request.timeout_seconds),
                request.timeout_seconds + self._config.fetcher.cancel_grace_seconds,
            )
        except asyncio.TimeoutError:
            fetch_ms = self._elapsed_ms(fetch_start)
            self._metrics.observe_fetch_latency(fetch_ms, success=False)
            return self._finish(
                request,
                start_time,
                platform=request.platform_hint,
                fetch_ms=fetch_ms,
                error_code=TransportErrorCode.TIMEOUT.value,
                error_message=f"Fetch exceeded {request.timeout_seconds}s and was cancelled",
            )
        except TransportError as e:
            fetch_ms = self._elapsed_ms(fetch_start)
            self._metrics.observe_fetch_latency(fetch_ms, success=False)
            return self._finish(
                request,
                start_time,
                platform=request.platform_hint,
                fetch_ms=fetch_ms,
                error_code=e.code,
                error_message=e.message,
            )
        except Exception as e:
            fetch_ms = self._elapsed_ms(fetch_start)
            self._metrics.observe_fetch_latency(fetch_ms, success=False)
            if self._logger:
                self._logger.log_error(
                    "AvailabilityChecker",
                    "Unexpected fetcher failure",
                    error=e,
                    request_url=url,
                )
            return self._finish(
                request,
                start_time,
                platform=request.platform_hint,
                fetch_ms=fetch_ms,
                error_code="fetcher_failure",
                error_message=f"{type(e).__name__}: {e}",
            )

        fetch_ms = self._elapsed_ms(fetch_start)
        self._metrics.observe_fetch_latency(fetch_ms, success=True)

        # Step 2: classify
        try:
            classification = self._classifier.evaluate(snapshot, request.platform_hint)
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "AvailabilityChecker",
                    "Classifier failure",
                    error=e,
                    request_url=url,
                )
            return self._finish(
                request,
                start_time,
                platform=request.platform_hint,
                fetch_ms=fetch_ms,
                http_status=snapshot.http_status,
                error_code="classifier_failure",
                error_message=f"{type(e).__name__}: {e}",
            )

        matched = classification.matched_signal
        return self._finish(
            request,
            start_time,
            verdict=classification.verdict,
            platform=classification.platform,
            fetch_ms=fetch_ms,
            http_status=snapshot.http_status,
            matched_signal=(matched.description or matched.pattern) if matched else None,
        )

    def _finish(
        self,
        request: CheckRequest,
        start_time: float,
        verdict: AvailabilityVerdict = AvailabilityVerdict.UNKNOWN,
        platform: Optional[str] = None,
        fetch_ms: float = 0.0,
        http_status: Optional[int] = None,
        matched_signal: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> CheckResult:
        """Build the result, record metrics and log the outcome."""
        result = CheckResult(
            url=request.url,
            verdict=verdict,
            platform=platform,
            timestamp=datetime.now(timezone.utc).isoformat(),
            metadata=CheckMetadata(
                total_duration_ms=self._elapsed_ms(start_time),
                fetch_duration_ms=fetch_ms,
                http_status=http_status,
            ),
            matched_signal=matched_signal,
            error_code=error_code,
            error_message=error_message,
        )
        self._metrics.record_verdict(verdict, platform)
        if self._logger:
            self._logger.log_check(result)
        return result

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "AvailabilityChecker", message, data)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    @property
    def classifier(self) -> Classifier:
        return self._classifier

    @property
    def fetcher(self) -> Fetcher:
        return self._fetcher

    @property
    def config(self) -> SystemConfig:
        return self._config
