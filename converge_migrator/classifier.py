"""
Source classifier.

Dispatches a file to its language strategy, falls back to the generic
strategy and, if the pattern engine fails, to the lexical fallback. The
records that come out are deduplicated by (file, line, endpoint type).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from converge_migrator.config import DEFAULT_CONTEXT_LINES
from converge_migrator.errors import MatcherFailure
from converge_migrator.models import EndpointAnalysis, EndpointRecord
from converge_migrator.parsers import LexicalFallback, ParserRegistry
from converge_migrator.patterns import PatternMatcher

if TYPE_CHECKING:
    from typing import Any

    from converge_migrator.mapping import MappingDictionaryService
    from converge_migrator.parsers import BaseParser

logger = logging.getLogger(__name__)


def dedupe_records(records: list[EndpointRecord]) -> list[EndpointRecord]:
    """Drop records whose (file, line, type) was already seen; first wins."""
    seen: set[tuple[Any, ...]] = set()
    unique = []
    for record in records:
        if record.key not in seen:
            seen.add(record.key)
            unique.append(record)
    return unique


def decode_source(data: bytes) -> str:
    """Decode file bytes as UTF-8, replacing undecodable sequences."""
    return data.decode("utf-8", errors="replace")


def assess_complexity(record: EndpointRecord) -> str:
    count = len(record.ssl_fields)
    size = len(record.code_snippet)
    if count <= 5 and size < 500:
        return "simple"
    if count <= 15 and size < 1500:
        return "moderate"
    return "complex"


class SourceClassifier:
    """
    Turn source files into endpoint records.

    Example:
        classifier = SourceClassifier()
        for record in classifier.parse_file(Path("checkout.php")):
            print(record.line_number, record.endpoint_type.value)
    """

    def __init__(
        self,
        matcher: PatternMatcher | None = None,
        config: dict[str, Any] | None = None,
        mapping: MappingDictionaryService | None = None,
    ) -> None:
        """
        Args:
            matcher: Pattern matcher; one over the active catalog if omitted.
            config: Full configuration (only ``classifier`` is read).
            mapping: Optional mapping service, used to enrich endpoint analysis.
        """
        self.matcher = matcher or PatternMatcher()
        self.config = config or {}
        self.mapping = mapping
        self._strategies: dict[str, BaseParser] = {}

    def strategy_for(self, language: str) -> BaseParser:
        strategy = self._strategies.get(language)
        if strategy is None:
            strategy = ParserRegistry.create(language, self.matcher, self.config)
            self._strategies[language] = strategy
        return strategy

    def strategy_chain(self, file_path: str | Path) -> list[BaseParser]:
        """Language strategy first, then generic."""
        language = ParserRegistry.language_for(file_path)
        chain = [self.strategy_for(language)]
        if language != "generic":
            chain.append(self.strategy_for("generic"))
        return chain

    def parse_file(self, path: str | Path) -> list[EndpointRecord]:
        """
        Read and classify a file.

        An unreadable file is logged and yields no records.
        """
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            return []
        return self.parse_content(str(path), decode_source(data))

    def parse_content(self, file_path: str, content: str) -> list[EndpointRecord]:
        """Classify already-read file text."""
        records: list[EndpointRecord] = []
        failed = False

        for strategy in self.strategy_chain(file_path):
            try:
                records = strategy.scan(content, file_path)
            except MatcherFailure as e:
                logger.warning("%s: %s strategy failed: %s", file_path, strategy.language, e)
                failed = True
                continue
            if records:
                break

        if not records and failed:
            records = self._fallback().scan(content, file_path)

        return dedupe_records(records)

    def _fallback(self) -> LexicalFallback:
        catalog = self.matcher.catalog
        context_lines = int((self.config.get("classifier") or {}).get("context_lines", DEFAULT_CONTEXT_LINES))
        return LexicalFallback(catalog.host_literals, catalog.core_fields, context_lines)

    def analyze_endpoint(self, record: EndpointRecord) -> EndpointAnalysis:
        """Complexity bucket and migration notes for one record."""
        notes = []
        fields = record.ssl_fields

        if "ssl_recurring_flag" in fields:
            notes.append("Contains recurring payment logic - verify target recurring API compatibility")
        if "ssl_token" in fields:
            notes.append("Uses tokenization - map to target payment instrument tokens")
        if "batch" in record.code_snippet.lower():
            notes.append("Batch processing detected - review target batch API requirements")
        if len(fields) > 20:
            notes.append("Complex field mapping required - consider breaking into smaller migrations")

        if self.mapping is not None and fields:
            mapped = self.mapping.get_field_mappings(fields)
            unmapped = [f for f in fields if f not in mapped]
            if unmapped:
                notes.append(f"No mapping for: {', '.join(unmapped)}")
            deprecated = [f for f, m in mapped.items() if m.deprecated]
            if deprecated:
                notes.append(f"Deprecated fields: {', '.join(deprecated)}")

        return EndpointAnalysis(
            ssl_fields=list(fields),
            endpoint_type=record.endpoint_type,
            complexity=assess_complexity(record),
            migration_notes=notes,
        )
