"""
Startup Self-Test module for the source availability system.

Validates the configuration and probes each platform's probe_url so that a
misconfigured deployment is caught before checkouts depend on it.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import httpx

from .config import SystemConfig, validate_config
from .exceptions import ConfigurationError
from .i18n import get_message


DEFAULT_HMAC_SECRET = "default-secret-change-me"

# Fetch timeouts outside this range are allowed but flagged
RECOMMENDED_TIMEOUT_RANGE = (8.0, 12.0)


@dataclass
class EndpointTestResult:
    """Result of probing a single platform endpoint."""

    endpoint: str
    platform: str
    success: bool
    response_time_ms: float
    error: Optional[str] = None
    http_status_code: Optional[int] = None


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class SelfTestResult:
    """Complete self-test result."""

    success: bool
    config_validation: ConfigValidationResult
    endpoint_results: list[EndpointTestResult] = field(default_factory=list)
    total_duration_ms: float = 0.0

    @property
    def failed_endpoints(self) -> list[EndpointTestResult]:
        """Return list of failed endpoint probes."""
        return [r for r in self.endpoint_results if not r.success]

    @property
    def successful_endpoints(self) -> list[EndpointTestResult]:
        """Return list of successful endpoint probes."""
        return [r for r in self.endpoint_results if r.success]


class SelfTest:
    """
    Startup self-test for the source availability system.

    Performs:
    1. Configuration validation (errors and warnings)
    2. Connectivity probes of every platform that defines a probe_url

    Probes are skipped in simulation mode.
    """

    # Timeout for connectivity probes (shorter than normal checks)
    CONNECTIVITY_TIMEOUT = 5.0

    def __init__(
        self,
        config: SystemConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the self-test.

        Args:
            config: System configuration to validate and test
            transport: Optional httpx transport for the probes
        """
        self._config = config
        self._transport = transport

    async def run(self) -> SelfTestResult:
        """
        Run the complete self-test.

        Returns:
            SelfTestResult with validation and connectivity results
        """
        start_time = time.perf_counter()

        config_result = self.validate_config()

        # Invalid configuration: no connectivity probes
        if not config_result.valid:
            return SelfTestResult(
                success=False,
                config_validation=config_result,
                total_duration_ms=self._elapsed_ms(start_time),
            )

        endpoint_results: list[EndpointTestResult] = []
        if not self._config.simulation_mode:
            endpoint_results = await self._test_all_endpoints()

        return SelfTestResult(
            success=all(r.success for r in endpoint_results),
            config_validation=config_result,
            endpoint_results=endpoint_results,
            total_duration_ms=self._elapsed_ms(start_time),
        )

    def validate_config(self) -> ConfigValidationResult:
        """
        Validate the system configuration.

        Errors come from config.validate_config(). Warnings flag settings
        that work but are unsafe or unusual for production.
        """
        errors: list[str] = []
        warnings: list[str] = []

        try:
            validate_config(self._config)
        except ConfigurationError as e:
            errors.append(f"{e.code}: {e.message}")

        if not self._config.persistence.hmac_secret:
            errors.append("HMAC secret is not configured")
        elif self._config.persistence.hmac_secret == DEFAULT_HMAC_SECRET:
            warnings.append("HMAC secret is using default value - please change for production")

        low, high = RECOMMENDED_TIMEOUT_RANGE
        timeout = self._config.fetcher.timeout_seconds
        if timeout > 0 and not low <= timeout <= high:
            warnings.append(
                f"Fetch timeout {timeout}s is outside the recommended {low:g}-{high:g}s range"
            )

        for platform in self._config.platforms:
            if platform.probe_url is None and platform.hosts:
                warnings.append(f"Platform '{platform.name}' has no probe_url")

        if self._config.simulation_mode:
            warnings.append("Simulation mode is enabled - no source pages will be fetched")

        return ConfigValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    async def _test_all_endpoints(self) -> list[EndpointTestResult]:
        tasks = [
            self._test_endpoint(platform.probe_url, platform.name)
            for platform in self._config.platforms
            if platform.probe_url
        ]
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def _test_endpoint(self, endpoint: str, platform: str) -> EndpointTestResult:
        """
        Probe a platform endpoint with a GET request.

        Any response below 500 counts as reachable.
        """
        start_time = time.perf_counter()

        parsed = urlparse(endpoint)
        if parsed.scheme.lower() != "https":
            return EndpointTestResult(
                endpoint=endpoint,
                platform=platform,
                success=False,
                response_time_ms=self._elapsed_ms(start_time),
                error="Endpoint does not use HTTPS",
            )

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.CONNECTIVITY_TIMEOUT),
                follow_redirects=True,
                headers={"User-Agent": self._config.fetcher.user_agent},
                transport=self._transport,
            ) as client:
                response = await client.get(endpoint)

            success = response.status_code < 500
            return EndpointTestResult(
                endpoint=endpoint,
                platform=platform,
                success=success,
                response_time_ms=self._elapsed_ms(start_time),
                http_status_code=response.status_code,
                error=None if success else f"Server error: {response.status_code}",
            )

        except httpx.TimeoutException:
            return EndpointTestResult(
                endpoint=endpoint,
                platform=platform,
                success=False,
                response_time_ms=self._elapsed_ms(start_time),
                error=f"Connection timed out after {self.CONNECTIVITY_TIMEOUT}s",
            )
        except httpx.ConnectError as e:
            error_msg = str(e)
            if "ssl" in error_msg.lower() or "certificate" in error_msg.lower():
                error = f"TLS/SSL error: {error_msg}"
            else:
                error = f"Connection error: {error_msg}"
            return EndpointTestResult(
                endpoint=endpoint,
                platform=platform,
                success=False,
                response_time_ms=self._elapsed_ms(start_time),
                error=error,
            )
        except httpx.HTTPError as e:
            return EndpointTestResult(
                endpoint=endpoint,
                platform=platform,
                success=False,
                response_time_ms=self._elapsed_ms(start_time),
                error=f"HTTP error: {e}",
            )

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    def print_results(self, result: SelfTestResult, language: str = "en") -> None:
        """Print self-test results to stdout."""
        print(get_message("selftest.header", language))
        print("=" * 60)

        print(f"\n{get_message('selftest.config_validation', language)}")
        if result.config_validation.valid:
            print(f"  ✓ {get_message('selftest.config_valid', language)}")
        else:
            print(f"  ✗ {get_message('selftest.config_invalid', language)}")
            for error in result.config_validation.errors:
                print(f"    - {error}")

        if result.config_validation.warnings:
            print(f"\n  {get_message('selftest.warnings', language)}")
            for warning in result.config_validation.warnings:
                print(f"    - {warning}")

        if result.endpoint_results:
            print(f"\n{get_message('selftest.connectivity', language)}")
            for endpoint_result in result.endpoint_results:
                status = "✓" if endpoint_result.success else "✗"
                print(
                    f"  {status} [{endpoint_result.platform}] "
                    f"{endpoint_result.endpoint} "
                    f"({endpoint_result.response_time_ms:.0f}ms)"
                )
                if endpoint_result.error:
                    print(f"      Error: {endpoint_result.error}")

        print(f"\n{'-' * 60}")
        if result.success:
            print(f"✓ {get_message('selftest.passed', language)}")
        else:
            print(f"✗ {get_message('selftest.failed', language)}")

        print(f"  {get_message('selftest.duration', language)}: {result.total_duration_ms:.0f}ms")


async def run_self_test(
    config: SystemConfig,
    print_output: bool = True,
    language: str = "en",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SelfTestResult:
    """
    Convenience function to run self-test.

    Args:
        config: System configuration to test
        print_output: Whether to print results to stdout
        language: Output language
        transport: Optional httpx transport for the probes

    Returns:
        SelfTestResult with test outcomes
    """
    self_test = SelfTest(config, transport=transport)
    result = await self_test.run()

    if print_output:
        self_test.print_results(result, language)

    return result
