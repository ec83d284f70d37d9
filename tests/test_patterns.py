"""Tests for the pattern catalog and line-oriented matcher."""

from __future__ import annotations

import pytest

from converge_migrator.config import default_config
from converge_migrator.errors import ConfigurationError
from converge_migrator.models import CATEGORY_WEIGHTS
from converge_migrator.patterns import (
    PatternMatcher,
    build_catalog,
    canonical_field_name,
    configure_catalog,
    get_catalog,
)


def test_endpoint_line_numbers_are_one_based():
    """Detections carry the 1-based line they were found on."""
    content = "const a = 1;\nconst url = '/hosted-payments/transaction_token';\n"
    detections = PatternMatcher().detect_endpoints(content)
    assert detections
    assert {d.line_number for d in detections} == {2}
    assert {d.kind for d in detections} == {"hosted-payments"}


def test_confidence_is_category_weight():
    """Confidence comes from the rule category, not the match."""
    matcher = PatternMatcher()
    endpoint = matcher.detect_endpoints("POST /ProcessTransactionOnline")[0]
    field = matcher.detect_ssl_fields("ssl_amount=10")[0]
    assert endpoint.confidence == CATEGORY_WEIGHTS["endpoint"]
    assert field.confidence == CATEGORY_WEIGHTS["ssl_field"]


def test_every_match_is_returned():
    """Repeated matches on one line are all reported."""
    detections = PatternMatcher().detect_ssl_fields("ssl_amount = ssl_amount + 1")
    assert len(detections) == 2
    assert [d.column for d in detections] == [0, 13]


def test_field_variations():
    """Upper-case, camel-case and bracket spellings are detected."""
    matcher = PatternMatcher()
    assert matcher.detect_ssl_fields("SSL_AMOUNT = 1")
    assert matcher.detect_ssl_fields("payload.sslMerchantId = id")
    assert matcher.detect_ssl_fields("$total = ssl['amount'];")
    assert not matcher.detect_ssl_fields("https://example.com")


def test_canonical_field_name():
    assert canonical_field_name("SSL_AMOUNT") == "ssl_amount"
    assert canonical_field_name("sslMerchantId") == "ssl_merchant_id"
    assert canonical_field_name("ssl['amount']") == "ssl_amount"
    assert canonical_field_name("ssl_txn_id") == "ssl_txn_id"


def test_url_host_families():
    matcher = PatternMatcher()
    legacy = matcher.detect_api_urls("url = 'https://api.demo.convergepay.com/VirtualMerchantDemo/processxml.do'")
    target = matcher.detect_api_urls("url = 'https://api.elavon.com/v1/transactions'")
    assert "converge" in {d.kind for d in legacy}
    assert {d.kind for d in target} == {"elavon"}


def test_api_calls_are_language_scoped():
    """Call idioms only apply to their own language unless scoped to all."""
    line = "fetch('https://api.convergepay.com/hosted-payments/transaction_token')"
    matcher = PatternMatcher()
    assert {d.kind for d in matcher.detect_api_calls(line, "javascript")} == {"fetch"}
    assert matcher.detect_api_calls(line, "php") == []
    assert matcher.detect_api_calls(line) != []


def test_shell_curl_applies_to_every_language():
    line = "curl -X POST https://api.convergepay.com/VirtualMerchant/processxml.do"
    assert {d.kind for d in PatternMatcher().detect_api_calls(line, "ruby")} == {"curl"}


def test_mentions_legacy_api():
    matcher = PatternMatcher()
    assert matcher.mentions_legacy_api("const host = 'https://api.convergepay.com';")
    assert matcher.mentions_legacy_api("post('/ProcessTransactionOnline')")
    assert not matcher.mentions_legacy_api("const host = 'https://api.elavon.com';")
    assert not matcher.mentions_legacy_api("let total = 0;")


def test_context_keywords_come_from_config():
    catalog = build_catalog({"patterns": {"context_keywords": ["LegacyPay"]}})
    matcher = PatternMatcher(catalog)
    assert matcher.mentions_legacy_api("legacypay.submit(order)")
    assert not matcher.mentions_legacy_api("// converge gateway")


def test_invalid_regex_fails_at_build():
    """A malformed rule is reported with its rule id when the catalog is built."""
    config = {"patterns": {"endpoints": {"checkout": ["(unclosed"]}}}
    with pytest.raises(ConfigurationError, match="endpoint.checkout.0"):
        build_catalog(config)


def test_empty_match_regex_rejected():
    config = {"patterns": {"endpoints": {"checkout": ["a*"]}}}
    with pytest.raises(ConfigurationError, match="empty string"):
        build_catalog(config)


def test_unknown_family_rejected():
    config = {"patterns": {"endpoints": {"refunds": ["refund"]}}}
    with pytest.raises(ConfigurationError, match="Unknown endpoint family"):
        build_catalog(config)


def test_api_call_needs_kind():
    config = {"patterns": {"api_calls": {"python": [{"regex": "requests"}]}}}
    with pytest.raises(ConfigurationError, match="needs a 'kind'"):
        build_catalog(config)


def test_literal_entries_are_escaped():
    """Literal entries match verbatim, regex metacharacters included."""
    catalog = build_catalog({"patterns": {"endpoints": {"checkout": [{"literal": "pay.js?v=1"}]}}})
    matcher = PatternMatcher(catalog)
    assert matcher.detect_endpoints("<script src='pay.js?v=1'>")
    assert not matcher.detect_endpoints("<script src='payxjs'>")


def test_configure_catalog_swaps_active_catalog():
    """Matchers without a fixed catalog see the new one; old snapshots are untouched."""
    before = get_catalog()
    matcher = PatternMatcher()

    configure_catalog({"patterns": {"endpoints": {"checkout": [{"literal": "MyCheckout"}]}}})

    assert get_catalog() is not before
    assert [d.kind for d in matcher.detect_endpoints("load MyCheckout here")] == ["Checkout.js"]
    assert matcher.detect_ssl_fields("ssl_amount") == []
    assert len(before.rules("ssl_field")) > 0


def test_failed_configure_keeps_previous_catalog():
    before = get_catalog()
    config = default_config()
    config["patterns"]["endpoints"]["batch_processing"] = ["[bad"]
    with pytest.raises(ConfigurationError):
        configure_catalog(config)
    assert get_catalog() is before


def test_pattern_statistics():
    stats = PatternMatcher().get_pattern_statistics()
    assert stats["total_patterns"] == sum(stats["categories"].values())
    assert set(stats["endpoint_families"]) == {
        "hosted-payments",
        "Checkout.js",
        "ProcessTransactionOnline",
        "batch-processing",
        "NonElavonCertifiedDevice",
    }
    assert "generic" in stats["supported_languages"]
    assert stats["api_call_languages"]["javascript"] > 0
