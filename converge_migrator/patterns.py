"""
Pattern catalog and line-oriented matcher for legacy API usage.

The catalog is data: endpoint families, the field-name prefix convention,
host literals and per-language call idioms, compiled once at configuration
time. The active catalog is process-wide and replaced atomically by
configure_catalog(); a matcher call snapshots the catalog when it starts.

Example:
    matcher = PatternMatcher()
    for detection in matcher.detect_endpoints(source_text):
        print(detection.line_number, detection.kind, detection.matched_text)
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from converge_migrator.config import DEFAULT_CONFIG
from converge_migrator.errors import ConfigurationError, MatcherFailure
from converge_migrator.models import (
    CATEGORY_API_CALL,
    CATEGORY_ENDPOINT,
    CATEGORY_SSL_FIELD,
    CATEGORY_URL,
    CATEGORY_WEIGHTS,
    FAMILY_TYPES,
    Detection,
    Language,
    PatternRule,
)
from converge_migrator.utils import split_lines

if TYPE_CHECKING:
    from typing import Any, Iterable

logger = logging.getLogger(__name__)

CATEGORIES = (CATEGORY_ENDPOINT, CATEGORY_SSL_FIELD, CATEGORY_URL, CATEGORY_API_CALL)

# Call idioms may be scoped to any specialised language, or "*"
CALL_LANGUAGES = frozenset(lang.value for lang in Language if lang is not Language.GENERIC) | {"*"}

_BRACKET_FIELD = re.compile(r"ssl\[[\"']([a-zA-Z_][a-zA-Z0-9_]*)[\"']\]")
_PREFIXED_FIELD = re.compile(r"[Ss][Ss][Ll]_[A-Za-z0-9_]+")
_CAMEL_FIELD = re.compile(r"ssl([A-Z][A-Za-z0-9]*)")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


class PatternCatalog:
    """Immutable, compiled set of pattern rules."""

    def __init__(
        self,
        rules: Iterable[PatternRule],
        host_literals: Iterable[str] = (),
        core_fields: Iterable[str] = (),
        context_keywords: Iterable[str] = (),
    ) -> None:
        self._rules = tuple(rules)
        self.host_literals = tuple(host_literals)
        self.core_fields = tuple(f.lower() for f in core_fields)
        self.context_keywords = tuple(k.lower() for k in context_keywords)
        self._by_category: dict[str, tuple[PatternRule, ...]] = {
            category: tuple(r for r in self._rules if r.category == category)
            for category in CATEGORIES
        }

    def rules(self, category: str | None = None) -> tuple[PatternRule, ...]:
        """All rules, or the rules of one category, in catalog order."""
        if category is None:
            return self._rules
        return self._by_category.get(category, ())

    def __len__(self) -> int:
        return len(self._rules)

    def statistics(self) -> dict[str, Any]:
        """Summarise rule counts per category, family and language."""
        families: dict[str, int] = {}
        for rule in self.rules(CATEGORY_ENDPOINT):
            families[rule.kind] = families.get(rule.kind, 0) + 1

        languages: dict[str, int] = {}
        for rule in self.rules(CATEGORY_API_CALL):
            for lang in rule.language_scope:
                languages[lang] = languages.get(lang, 0) + 1

        return {
            "total_patterns": len(self._rules),
            "categories": {c: len(self._by_category[c]) for c in CATEGORIES},
            "endpoint_families": families,
            "api_call_languages": languages,
            "host_literals": len(self.host_literals),
            "core_fields": len(self.core_fields),
            "context_keywords": len(self.context_keywords),
        }


def _compile_entry(entry: Any, rule_id: str, flags: int) -> tuple[str, re.Pattern[str]]:
    """Compile one catalog entry (regex string, {regex} or {literal})."""
    if isinstance(entry, str):
        source = entry
    elif isinstance(entry, dict) and "literal" in entry:
        source = re.escape(str(entry["literal"]))
    elif isinstance(entry, dict) and "regex" in entry:
        source = str(entry["regex"])
    else:
        raise ConfigurationError(f"Pattern rule {rule_id!r} must be a string, {{regex}} or {{literal}}")

    try:
        compiled = re.compile(source, flags)
    except re.error as e:
        raise ConfigurationError(f"Invalid regex in pattern rule {rule_id!r} ({source!r}): {e}") from e

    if compiled.match(""):
        raise ConfigurationError(f"Pattern rule {rule_id!r} ({source!r}) matches the empty string")

    return source, compiled


def _make_rule(
    entry: Any,
    rule_id: str,
    category: str,
    kind: str,
    scope: tuple[str, ...] = ("*",),
) -> PatternRule:
    flags = 0 if category == CATEGORY_SSL_FIELD else re.IGNORECASE
    source, compiled = _compile_entry(entry, rule_id, flags)
    return PatternRule(
        id=rule_id,
        category=category,
        kind=kind,
        source_pattern=source,
        language_scope=scope,
        weight=CATEGORY_WEIGHTS[category],
        regex=compiled,
    )


def _require_mapping(value: Any, name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigurationError(f"Pattern config '{name}' must be a mapping")
    return value


def _require_list(value: Any, name: str) -> list[Any]:
    if not isinstance(value, list):
        raise ConfigurationError(f"Pattern config '{name}' must be a list")
    return value


def build_catalog(config: dict[str, Any] | None = None) -> PatternCatalog:
    """
    Compile the ``patterns`` section of a config into a catalog.

    Args:
        config: Full configuration dictionary; defaults when None.

    Returns:
        A new PatternCatalog.

    Raises:
        ConfigurationError: If any section is malformed or any regex is invalid.
    """
    patterns = (config or DEFAULT_CONFIG).get("patterns")
    if patterns is None:
        patterns = DEFAULT_CONFIG["patterns"]
    patterns = _require_mapping(patterns, "patterns")

    rules: list[PatternRule] = []

    endpoints = _require_mapping(patterns.get("endpoints", {}), "patterns.endpoints")
    for family, entries in endpoints.items():
        if family not in FAMILY_TYPES:
            raise ConfigurationError(
                f"Unknown endpoint family {family!r}; expected one of {sorted(FAMILY_TYPES)}"
            )
        for i, entry in enumerate(_require_list(entries, f"patterns.endpoints.{family}")):
            kind = FAMILY_TYPES[family].value
            rules.append(_make_rule(entry, f"endpoint.{family}.{i}", CATEGORY_ENDPOINT, kind))

    ssl_fields = _require_mapping(patterns.get("ssl_fields", {}), "patterns.ssl_fields")
    if ssl_fields.get("core"):
        rules.append(_make_rule(ssl_fields["core"], "ssl_field.core.0", CATEGORY_SSL_FIELD, "ssl_field"))
    variations = _require_list(ssl_fields.get("variations", []), "patterns.ssl_fields.variations")
    for i, entry in enumerate(variations):
        rules.append(_make_rule(entry, f"ssl_field.variation.{i}", CATEGORY_SSL_FIELD, "ssl_field"))

    urls = _require_mapping(patterns.get("urls", {}), "patterns.urls")
    for host_kind, entries in urls.items():
        for i, entry in enumerate(_require_list(entries, f"patterns.urls.{host_kind}")):
            rules.append(_make_rule(entry, f"url.{host_kind}.{i}", CATEGORY_URL, str(host_kind)))

    api_calls = _require_mapping(patterns.get("api_calls", {}), "patterns.api_calls")
    for language, entries in api_calls.items():
        if language not in CALL_LANGUAGES:
            raise ConfigurationError(
                f"Unknown language {language!r} in patterns.api_calls; expected one of {sorted(CALL_LANGUAGES)}"
            )
        for i, entry in enumerate(_require_list(entries, f"patterns.api_calls.{language}")):
            rule_id = f"api_call.{language}.{i}"
            if not isinstance(entry, dict) or not entry.get("kind"):
                raise ConfigurationError(f"Pattern rule {rule_id!r} needs a 'kind'")
            rules.append(_make_rule(entry, rule_id, CATEGORY_API_CALL, str(entry["kind"]), (language,)))

    host_literals = _require_list(patterns.get("host_literals", []), "patterns.host_literals")
    core_fields = _require_list(patterns.get("core_fields", []), "patterns.core_fields")
    keywords = _require_list(patterns.get("context_keywords", []), "patterns.context_keywords")

    catalog = PatternCatalog(
        rules,
        [str(h) for h in host_literals],
        [str(f) for f in core_fields],
        [str(k) for k in keywords],
    )
    logger.debug("Built pattern catalog with %d rules", len(catalog))
    return catalog


# Process-wide active catalog. Replaced by assignment, never mutated.
_active_catalog: PatternCatalog | None = None


def get_catalog() -> PatternCatalog:
    """Return the active catalog, building the default one on first use."""
    global _active_catalog
    catalog = _active_catalog
    if catalog is None:
        catalog = build_catalog(DEFAULT_CONFIG)
        _active_catalog = catalog
    return catalog


def configure_catalog(config: dict[str, Any]) -> PatternCatalog:
    """
    Build a catalog from config and make it the active one.

    The new catalog is fully compiled before the swap, so a bad config
    leaves the previous catalog in place.
    """
    global _active_catalog
    catalog = build_catalog(config)
    _active_catalog = catalog
    logger.info("Pattern catalog reconfigured (%d rules)", len(catalog))
    return catalog


def reset_catalog() -> None:
    """Drop the active catalog; the next use rebuilds the default."""
    global _active_catalog
    _active_catalog = None


def canonical_field_name(text: str) -> str:
    """
    Normalise a matched field spelling to its ``ssl_`` form.

    ``ssl['amount']`` -> ``ssl_amount``, ``SSL_AMOUNT`` -> ``ssl_amount``,
    ``sslMerchantId`` -> ``ssl_merchant_id``. Lower-case prefixed names are
    returned as written.
    """
    match = _BRACKET_FIELD.search(text)
    if match:
        return "ssl_" + match.group(1)

    match = _PREFIXED_FIELD.search(text)
    if match:
        name = match.group(0)
        return name if name.startswith("ssl_") else name.lower()

    match = _CAMEL_FIELD.search(text)
    if match:
        return "ssl_" + _CAMEL_BOUNDARY.sub(r"_\1", match.group(1)).lower()

    return text


class PatternMatcher:
    """
    Run catalog rules over source text, line by line.

    Every match of every rule is returned; confidence is the rule
    category's fixed weight and is only used for ranking.
    """

    def __init__(self, catalog: PatternCatalog | None = None) -> None:
        """
        Args:
            catalog: A fixed catalog. When None, each call uses the
                process-wide active catalog at the moment it starts.
        """
        self._catalog = catalog

    @property
    def catalog(self) -> PatternCatalog:
        return self._catalog if self._catalog is not None else get_catalog()

    def detect_endpoints(self, content: str) -> list[Detection]:
        """Detect endpoint-family references."""
        return self._detect(content, (CATEGORY_ENDPOINT,), None, self.catalog)

    def detect_ssl_fields(self, content: str) -> list[Detection]:
        """Detect legacy field names."""
        return self._detect(content, (CATEGORY_SSL_FIELD,), None, self.catalog)

    def detect_api_urls(self, content: str) -> list[Detection]:
        """Detect legacy and target host URLs; ``kind`` is the host family."""
        return self._detect(content, (CATEGORY_URL,), None, self.catalog)

    def detect_api_calls(self, content: str, language: str | None = None) -> list[Detection]:
        """Detect HTTP call idioms aimed at the legacy API."""
        return self._detect(content, (CATEGORY_API_CALL,), language, self.catalog)

    def analyze(self, content: str, language: str | None = None) -> dict[str, list[Detection]]:
        """Run all four detectors against a single catalog snapshot."""
        catalog = self.catalog
        return {
            "endpoints": self._detect(content, (CATEGORY_ENDPOINT,), None, catalog),
            "ssl_fields": self._detect(content, (CATEGORY_SSL_FIELD,), None, catalog),
            "urls": self._detect(content, (CATEGORY_URL,), None, catalog),
            "api_calls": self._detect(content, (CATEGORY_API_CALL,), language, catalog),
        }

    def mentions_legacy_api(self, line: str) -> bool:
        """Whether a line names the legacy API, one of its hosts, endpoints or URLs."""
        catalog = self.catalog
        lower = line.lower()
        if any(keyword in lower for keyword in catalog.context_keywords):
            return True
        if any(host.lower() in lower for host in catalog.host_literals):
            return True
        for rule in catalog.rules(CATEGORY_ENDPOINT) + catalog.rules(CATEGORY_URL):
            if rule.kind != "elavon" and rule.regex is not None and rule.regex.search(line):
                return True
        return False

    def get_pattern_statistics(self) -> dict[str, Any]:
        """Summary of the active catalog."""
        stats = self.catalog.statistics()
        stats["supported_languages"] = [lang.value for lang in Language]
        return stats

    def _detect(
        self,
        content: str,
        categories: tuple[str, ...],
        language: str | None,
        catalog: PatternCatalog,
    ) -> list[Detection]:
        rules = [
            rule
            for category in categories
            for rule in catalog.rules(category)
            if rule.applies_to(language)
        ]

        results: list[Detection] = []
        try:
            for line_number, line in enumerate(split_lines(content), 1):
                for rule in rules:
                    for match in rule.regex.finditer(line):
                        results.append(Detection(
                            kind=rule.kind,
                            matched_text=match.group(0),
                            line_number=line_number,
                            confidence=rule.weight,
                            category=rule.category,
                            column=match.start(),
                            rule_id=rule.id,
                        ))
        except (re.error, RecursionError, TypeError, AttributeError) as e:
            raise MatcherFailure(f"Pattern matching failed: {e}") from e

        return results
