"""
Property-based tests for the startup self-test.

Probes run against httpx.MockTransport so no network access is needed.
"""

import asyncio
import dataclasses
from pathlib import Path

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from source_availability.config import (
    DEFAULT_PLATFORMS,
    GENERIC_PLATFORM_CONFIG,
    FetcherConfig,
    PersistenceConfig,
    SystemConfig,
)
from source_availability.self_test import (
    DEFAULT_HMAC_SECRET,
    SelfTest,
    run_self_test,
)


def make_config(**changes) -> SystemConfig:
    config = SystemConfig(
        platforms=DEFAULT_PLATFORMS,
        fetcher=FetcherConfig(timeout_seconds=10.0),
        persistence=PersistenceConfig(Path("listings.json"), "production-secret"),
    )
    return dataclasses.replace(config, **changes)


def status_transport(status_code: int) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status_code, text="ok"))


class TestConfigValidationProperty:
    """
    Tests for configuration checks of the self-test.

    **Feature: source-availability, Property 35: Self-test reports configuration errors and warnings**
    """

    def test_clean_config_has_no_warnings(self) -> None:
        result = SelfTest(make_config()).validate_config()

        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_default_secret_is_a_warning(self) -> None:
        config = make_config(persistence=PersistenceConfig(Path("listings.json"), DEFAULT_HMAC_SECRET))

        result = SelfTest(config).validate_config()

        assert result.valid
        assert any("HMAC secret" in warning for warning in result.warnings)

    def test_empty_secret_is_an_error(self) -> None:
        config = make_config(persistence=PersistenceConfig(Path("listings.json"), ""))

        result = SelfTest(config).validate_config()

        assert not result.valid
        assert "HMAC secret is not configured" in result.errors

    @given(timeout=st.one_of(
        st.floats(min_value=0.1, max_value=7.99),
        st.floats(min_value=12.01, max_value=120.0),
    ))
    @settings(max_examples=50)
    def test_unusual_timeout_is_a_warning(self, timeout: float) -> None:
        """
        Property 35: Self-test reports configuration errors and warnings.

        *For any* positive fetch timeout outside 8-12s, the configuration
        SHALL stay valid and carry a timeout warning.
        """
        result = SelfTest(make_config(fetcher=FetcherConfig(timeout_seconds=timeout))).validate_config()

        assert result.valid
        assert any("recommended 8-12s range" in warning for warning in result.warnings)

    def test_invalid_config_is_an_error(self) -> None:
        result = SelfTest(make_config(language="fr")).validate_config()

        assert not result.valid
        assert result.errors[0].startswith("unsupported_language:")

    def test_platform_without_probe_url_is_a_warning(self) -> None:
        ebay = dataclasses.replace(DEFAULT_PLATFORMS[0], probe_url=None)
        config = make_config(platforms=(ebay, GENERIC_PLATFORM_CONFIG))

        result = SelfTest(config).validate_config()

        assert "Platform 'ebay' has no probe_url" in result.warnings


class TestConnectivityProperty:
    """
    Property-based tests for platform probes.

    **Feature: source-availability, Property 36: Only server errors and transport failures fail a probe**
    """

    @given(status_code=st.sampled_from([200, 301, 403, 404, 429, 500, 502, 503]))
    @settings(max_examples=20)
    def test_status_below_500_is_reachable(self, status_code: int) -> None:
        """
        Property 36: Only server errors and transport failures fail a probe.

        *For any* response status, the probe SHALL succeed exactly when the
        status is below 500.
        """
        if status_code == 301:
            transport = httpx.MockTransport(
                lambda request: httpx.Response(200)
                if request.url.path == "/moved"
                else httpx.Response(301, headers={"Location": "https://www.ebay.com/moved"})
            )
        else:
            transport = status_transport(status_code)

        result = asyncio.run(SelfTest(make_config(), transport=transport).run())

        assert len(result.endpoint_results) == 1
        probe = result.endpoint_results[0]
        assert probe.platform == "ebay"
        assert probe.success == (status_code < 500)
        assert result.success == (status_code < 500)

    def test_connection_error_fails_probe(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = asyncio.run(SelfTest(make_config(), transport=httpx.MockTransport(handler)).run())

        assert not result.success
        assert result.failed_endpoints[0].error.startswith("Connection error")

    def test_tls_error_is_reported(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("certificate verify failed", request=request)

        result = asyncio.run(SelfTest(make_config(), transport=httpx.MockTransport(handler)).run())

        assert result.failed_endpoints[0].error.startswith("TLS/SSL error")

    def test_timeout_fails_probe(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        result = asyncio.run(SelfTest(make_config(), transport=httpx.MockTransport(handler)).run())

        assert "timed out" in result.failed_endpoints[0].error

    def test_plain_http_probe_is_rejected(self) -> None:
        ebay = dataclasses.replace(DEFAULT_PLATFORMS[0], probe_url="http://www.ebay.com/")
        config = make_config(platforms=(ebay, GENERIC_PLATFORM_CONFIG))

        result = asyncio.run(SelfTest(config, transport=status_transport(200)).run())

        assert not result.success
        assert result.failed_endpoints[0].error == "Endpoint does not use HTTPS"

    def test_simulation_mode_skips_probes(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no probes in simulation mode")

        config = make_config(simulation_mode=True)

        result = asyncio.run(SelfTest(config, transport=httpx.MockTransport(handler)).run())

        assert result.success
        assert result.endpoint_results == []

    def test_invalid_config_skips_probes(self) -> None:
        result = asyncio.run(
            run_self_test(make_config(language="fr"), print_output=False, transport=status_transport(200))
        )

        assert not result.success
        assert result.endpoint_results == []

    def test_results_are_printed(self, capsys) -> None:
        asyncio.run(run_self_test(make_config(), language="de", transport=status_transport(200)))

        output = capsys.readouterr().out
        assert "Selbsttest bestanden" in output
        assert "[ebay] https://www.ebay.com/" in output
