"""Tests for path and text helpers."""

from __future__ import annotations

from converge_migrator.codegen import to_identifier, to_pascal
from converge_migrator.utils import (
    content_digest,
    extract_code_block,
    is_always_excluded,
    matches_glob,
    should_exclude,
    split_lines,
)


def test_content_digest():
    assert content_digest(b"abc") == "sha256:ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert content_digest(b"").startswith("sha256:")


def test_split_lines_drops_carriage_returns():
    assert split_lines("a\r\nb\nc") == ["a", "b", "c"]


def test_extract_code_block_clips_to_bounds():
    lines = ["1", "2", "3", "4", "5"]
    assert extract_code_block(lines, 0, 2) == "1\n2\n3"
    assert extract_code_block(lines, 4, 1) == "4\n5"
    assert extract_code_block([], 0) == ""


def test_matches_glob():
    assert matches_glob("src/a/b.js", "src/*.js")
    assert matches_glob("b.txt", "**/*.txt")
    assert not matches_glob("src/b.js", "**/*.txt")


def test_always_excluded():
    assert is_always_excluded("node_modules/pkg/index.js")
    assert is_always_excluded("web/.git/config")
    assert is_always_excluded("static/app.min.js")
    assert not is_always_excluded("src/build_helpers.js")


def test_should_exclude():
    assert should_exclude("fixtures/pay.js", ["fixtures"])
    assert not should_exclude("src/fixtures.js", ["fixtures"])
    assert should_exclude("src/pay.test.js", ["**/*.test.js"])
    assert should_exclude("vendor/pay.php", [])


def test_identifier_filters():
    assert to_identifier("total.amount") == "total_amount"
    assert to_identifier("3ds-result") == "_3ds_result"
    assert to_pascal("ssl_merchant_id") == "SslMerchantId"
